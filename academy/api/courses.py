"""Course catalogue and enrollment endpoints."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from academy.api.dependencies import get_progression, require_user
from academy.models.principal import Principal
from academy.services.progression import ProgressionService

router = APIRouter(prefix="/v1/courses", tags=["courses"])


class CourseOut(BaseModel):
    id: str
    courseNumber: int
    title: str
    isLocked: bool
    isEnrolled: bool
    isCompleted: bool


class EnrollmentOut(BaseModel):
    courseId: str
    enrolledAt: int
    currentLesson: int
    unlockedCourses: int


@router.get("", response_model=list[CourseOut])
async def list_courses(
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[ProgressionService, Depends(get_progression)],
) -> list[CourseOut]:
    views = await engine.course_overview(principal.user_id)
    return [
        CourseOut(
            id=str(v.course.id),
            courseNumber=v.course.course_number,
            title=v.course.title,
            isLocked=v.is_locked,
            isEnrolled=v.is_enrolled,
            isCompleted=v.is_completed,
        )
        for v in views
    ]


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_in_course(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[ProgressionService, Depends(get_progression)],
) -> EnrollmentOut:
    enrollment = await engine.enroll(principal.user_id, course_id)
    return EnrollmentOut(
        courseId=str(enrollment.course_id),
        enrolledAt=enrollment.enrolled_at,
        currentLesson=enrollment.current_lesson,
        unlockedCourses=enrollment.unlocked_courses,
    )
