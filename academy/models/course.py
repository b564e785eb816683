"""Learning content: courses, lessons, activities, final project and exam.

Numbers (course_number, lesson_number, activity_number) are 1-based and
contiguous within their parent; authoring tools enforce that, the engine
assumes it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    course_number: int
    title: str
    published: bool = True
    final_project_id: UUID | None = None
    final_exam_id: UUID | None = None

    @staticmethod
    def new(*, course_number: int, title: str, published: bool = True) -> Course:
        return Course(
            id=uuid4(), course_number=course_number, title=title, published=published
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    course_id: UUID
    lesson_number: int
    title: str = ""

    @staticmethod
    def new(*, course_id: UUID, lesson_number: int, title: str = "") -> Lesson:
        return Lesson(
            id=uuid4(), course_id=course_id, lesson_number=lesson_number, title=title
        )


@dataclass(frozen=True, slots=True)
class Activity:
    id: UUID
    lesson_id: UUID
    activity_number: int
    type: str  # quiz|exercise|reflection|practical_task|...
    content: dict[str, Any] = field(default_factory=dict)
    required: bool = True
    title: str = ""
    description: str = ""

    @staticmethod
    def new(
        *,
        lesson_id: UUID,
        activity_number: int,
        type: str,
        content: dict[str, Any] | None = None,
        required: bool = True,
        title: str = "",
    ) -> Activity:
        return Activity(
            id=uuid4(),
            lesson_id=lesson_id,
            activity_number=activity_number,
            type=type,
            content=content or {},
            required=required,
            title=title,
        )


@dataclass(frozen=True, slots=True)
class FinalProject:
    id: UUID
    course_id: UUID
    title: str
    description: str = ""
    requirements: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def new(*, course_id: UUID, title: str, description: str = "") -> FinalProject:
        return FinalProject(
            id=uuid4(), course_id=course_id, title=title, description=description
        )


@dataclass(frozen=True, slots=True)
class ExamOption:
    id: str
    text: str
    is_correct: bool = False


@dataclass(frozen=True, slots=True)
class ExamQuestion:
    id: str
    text: str
    type: str  # multiple_choice|true_false|short_answer
    points: int
    order: int = 0
    options: tuple[ExamOption, ...] = ()

    def correct_option(self) -> ExamOption | None:
        return next((o for o in self.options if o.is_correct), None)


@dataclass(frozen=True, slots=True)
class FinalExam:
    id: UUID
    course_id: UUID
    title: str
    passing_score: int = 70
    time_limit: int = 60  # minutes
    questions: tuple[ExamQuestion, ...] = ()

    @staticmethod
    def new(
        *,
        course_id: UUID,
        title: str,
        questions: tuple[ExamQuestion, ...] = (),
        passing_score: int = 70,
    ) -> FinalExam:
        return FinalExam(
            id=uuid4(),
            course_id=course_id,
            title=title,
            passing_score=passing_score,
            questions=questions,
        )
