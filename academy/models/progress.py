"""Per-user progress state.

Lock state is never stored: it is derived from the watermarks held here
(current_activity, current_lesson, unlocked_courses), which only move
forward.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal
from uuid import UUID

ProjectStatus = Literal["pending", "approved", "needs_revision"]
GradingStatus = Literal["GRADED", "PENDING_REVIEW"]

PROJECT_PENDING: ProjectStatus = "pending"
PROJECT_APPROVED: ProjectStatus = "approved"
PROJECT_NEEDS_REVISION: ProjectStatus = "needs_revision"

GRADED: GradingStatus = "GRADED"
PENDING_REVIEW: GradingStatus = "PENDING_REVIEW"


@dataclass(frozen=True, slots=True)
class Enrollment:
    user_id: str
    course_id: UUID
    enrolled_at: int
    current_lesson: int = 1
    unlocked_courses: int = 1
    completed_at: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


@dataclass(frozen=True, slots=True)
class LessonProgress:
    user_id: str
    lesson_id: UUID
    current_activity: int = 1
    completed: bool = False
    completed_at: int | None = None
    video_position: int = 0


@dataclass(frozen=True, slots=True)
class ActivitySubmission:
    user_id: str
    activity_id: UUID
    response: dict[str, Any]
    submitted_at: int
    completed: bool = True
    feedback: str | None = None


@dataclass(frozen=True, slots=True)
class FinalProjectSubmission:
    user_id: str
    project_id: UUID
    submitted_at: int
    submission: dict[str, Any] = field(default_factory=dict)
    status: ProjectStatus = PROJECT_PENDING
    feedback: str | None = None


@dataclass(frozen=True, slots=True)
class FinalExamResult:
    user_id: str
    exam_id: UUID
    score: int  # percentage 0..100
    passed: bool
    grading_status: GradingStatus
    answers: dict[str, str]
    submitted_at: int
