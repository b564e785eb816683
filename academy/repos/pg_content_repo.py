"""PostgreSQL implementation of ContentRepo."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.db.tables import (
    ActivityRow,
    CourseRow,
    FinalExamRow,
    FinalProjectRow,
    LessonRow,
)
from academy.models.course import (
    Activity,
    Course,
    ExamOption,
    ExamQuestion,
    FinalExam,
    FinalProject,
    Lesson,
)


class PgContentRepo:
    """Satisfies the ContentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def _course_select(self) -> Select[Any]:
        return (
            select(CourseRow, FinalProjectRow.id, FinalExamRow.id)
            .outerjoin(FinalProjectRow, FinalProjectRow.course_id == CourseRow.id)
            .outerjoin(FinalExamRow, FinalExamRow.course_id == CourseRow.id)
        )

    async def get_course(self, course_id: UUID) -> Course | None:
        stmt = self._course_select().where(CourseRow.id == course_id)
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return _row_to_course(*row)

    async def get_course_by_number(self, course_number: int) -> Course | None:
        stmt = self._course_select().where(CourseRow.course_number == course_number)
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return _row_to_course(*row)

    async def list_courses(self) -> list[Course]:
        stmt = self._course_select().order_by(CourseRow.course_number)
        rows = (await self._session.execute(stmt)).all()
        return [_row_to_course(*r) for r in rows]

    async def count_courses(self) -> int:
        stmt = select(func.count()).select_from(CourseRow)
        return int((await self._session.execute(stmt)).scalar_one())

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        stmt = select(LessonRow).where(LessonRow.id == lesson_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_lesson(row)

    async def get_lesson_by_number(
        self, course_id: UUID, lesson_number: int
    ) -> Lesson | None:
        stmt = select(LessonRow).where(
            LessonRow.course_id == course_id,
            LessonRow.lesson_number == lesson_number,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_lesson(row)

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .where(LessonRow.course_id == course_id)
            .order_by(LessonRow.lesson_number)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def get_activity(self, activity_id: UUID) -> Activity | None:
        stmt = select(ActivityRow).where(ActivityRow.id == activity_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_activity(row)

    async def list_activities(self, lesson_id: UUID) -> list[Activity]:
        stmt = (
            select(ActivityRow)
            .where(ActivityRow.lesson_id == lesson_id)
            .order_by(ActivityRow.activity_number)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_activity(r) for r in rows]

    async def get_final_project(self, project_id: UUID) -> FinalProject | None:
        stmt = select(FinalProjectRow).where(FinalProjectRow.id == project_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_project(row)

    async def get_final_project_for_course(
        self, course_id: UUID
    ) -> FinalProject | None:
        stmt = select(FinalProjectRow).where(FinalProjectRow.course_id == course_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_project(row)

    async def get_final_exam(self, exam_id: UUID) -> FinalExam | None:
        stmt = select(FinalExamRow).where(FinalExamRow.id == exam_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_exam(row)


def _row_to_course(
    row: CourseRow, project_id: UUID | None, exam_id: UUID | None
) -> Course:
    return Course(
        id=row.id,
        course_number=row.course_number,
        title=row.title,
        published=row.published,
        final_project_id=project_id,
        final_exam_id=exam_id,
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        course_id=row.course_id,
        lesson_number=row.lesson_number,
        title=row.title or "",
    )


def _row_to_activity(row: ActivityRow) -> Activity:
    return Activity(
        id=row.id,
        lesson_id=row.lesson_id,
        activity_number=row.activity_number,
        type=row.type,
        content=dict(row.content or {}),
        required=row.required,
        title=row.title or "",
        description=row.description or "",
    )


def _row_to_project(row: FinalProjectRow) -> FinalProject:
    return FinalProject(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        description=row.description or "",
        requirements=dict(row.requirements or {}),
    )


def _row_to_exam(row: FinalExamRow) -> FinalExam:
    questions = tuple(
        ExamQuestion(
            id=str(q["id"]),
            text=q.get("text", ""),
            type=q.get("type", "multiple_choice"),
            points=int(q.get("points", 0)),
            order=int(q.get("order", 0)),
            options=tuple(
                ExamOption(
                    id=str(o["id"]),
                    text=o.get("text", ""),
                    is_correct=bool(o.get("isCorrect", False)),
                )
                for o in q.get("options", [])
            ),
        )
        for q in row.questions or []
    )
    return FinalExam(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        passing_score=row.passing_score,
        time_limit=row.time_limit,
        questions=tuple(sorted(questions, key=lambda q: q.order)),
    )
