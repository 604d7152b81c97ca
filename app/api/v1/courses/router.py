from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import CourseCreate, CourseEnrollmentItem, CourseResponse, CourseUpdate, CreditHoursUpdate
from . import service

router = APIRouter(prefix="/api/v1/courses", tags=["courses"])


@router.post("", response_model=CourseResponse, status_code=status.HTTP_201_CREATED)
async def create_course(
    payload: CourseCreate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.create_course(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[CourseResponse])
async def list_courses(
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_courses(db, active_only=active_only)


@router.get("/{course_id}", response_model=CourseResponse)
async def get_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.get_course(db, course_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{course_id}/enrollments", response_model=List[CourseEnrollmentItem])
async def list_course_enrollments(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Students enrolled in the course, with semester and grade."""
    try:
        return await service.list_course_enrollments(db, course_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{course_id}", response_model=CourseResponse)
async def update_course(
    course_id: UUID,
    payload: CourseUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.update_course(db, course_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{course_id}/credit-hours", response_model=CourseResponse)
async def update_credit_hours(
    course_id: UUID,
    payload: CreditHoursUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Change credit hours and propagate them to every enrollment of the course."""
    try:
        return await service.update_credit_hours(db, course_id, payload.credit_hours)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Delete the course and remove it from every student's enrollments."""
    try:
        await service.remove_course(db, course_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
