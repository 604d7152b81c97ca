from typing import Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ServiceError):
    """Malformed or out-of-range input. `field` names the offending input."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.field = field


class DuplicateKeyError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class AlreadyEnrolledError(ServiceError):
    def __init__(self, message: str = "Already enrolled in this course for the selected semester") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class StorageUnavailableError(ServiceError):
    """Storage operation failed or timed out. Callers must verify and repair."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)
