from typing import Optional

from app.core.exceptions import ValidationError


def required_text(value: Optional[str], field: str) -> str:
    """Strip `value`; whitespace-only or missing text is a ValidationError on `field`."""
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required", field=field)
    return text
