from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.courses.schemas import CourseResponse
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import EnrollRequest, GradeUpdate, StudentCreate, StudentResponse, StudentUpdate
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post("", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.create_student(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[StudentResponse])
async def list_students(
    db: AsyncSession = Depends(get_db),
) -> List[StudentResponse]:
    return await service.list_students(db)


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.get_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: int,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.update_student(db, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{student_id}/available-courses", response_model=List[CourseResponse])
async def available_courses(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> List[CourseResponse]:
    """Courses the student can still be enrolled in."""
    try:
        return await service.available_courses(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{student_id}/courses", response_model=StudentResponse)
async def enroll_in_course(
    student_id: int,
    payload: EnrollRequest,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.enroll_in_course(db, student_id, payload.course_id, payload.semester)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{student_id}/courses/{course_id}", response_model=StudentResponse)
async def drop_course(
    student_id: int,
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.drop_course(db, student_id, course_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{student_id}/courses/{course_id}/grade", response_model=StudentResponse)
async def record_grade(
    student_id: int,
    course_id: UUID,
    payload: GradeUpdate,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    """Set or clear a grade. Input that is not a number clears the grade."""
    try:
        return await service.record_grade(db, student_id, course_id, payload.grade)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
