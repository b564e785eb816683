"""PostgreSQL implementation of ProgressRepo.

Watermark advances are single statements with a ``WHERE current < :new``
guard (or the ``ON CONFLICT DO UPDATE ... WHERE`` equivalent for upserts),
so concurrent requests never need a read-modify-write round trip and the
stored value can only move forward.  ``rowcount`` tells the caller whether
this statement was the one that moved it.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.db.tables import (
    ActivitySubmissionRow,
    EnrollmentRow,
    FinalExamResultRow,
    FinalProjectSubmissionRow,
    LessonProgressRow,
)
from academy.models.progress import (
    ActivitySubmission,
    Enrollment,
    FinalExamResult,
    FinalProjectSubmission,
    LessonProgress,
    ProjectStatus,
)
from academy.repos.errors import DuplicateKeyError


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- enrollments ---

    async def get_enrollment(self, user_id: str, course_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.user_id == user_id, EnrollmentRow.course_id == course_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def list_enrollments(self, user_id: str) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.user_id == user_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def add_enrollment(self, enrollment: Enrollment) -> None:
        row = EnrollmentRow(
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            enrolled_at=enrollment.enrolled_at,
            current_lesson=enrollment.current_lesson,
            unlocked_courses=enrollment.unlocked_courses,
            completed_at=enrollment.completed_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError as exc:
            raise DuplicateKeyError("enrollment already exists") from exc

    async def advance_current_lesson(
        self, user_id: str, course_id: UUID, lesson_number: int
    ) -> bool:
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.user_id == user_id)
            .where(EnrollmentRow.course_id == course_id)
            .where(EnrollmentRow.current_lesson < lesson_number)
            .values(current_lesson=lesson_number)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def mark_course_completed(
        self, user_id: str, course_id: UUID, completed_at: int
    ) -> bool:
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.user_id == user_id)
            .where(EnrollmentRow.course_id == course_id)
            .where(EnrollmentRow.completed_at.is_(None))
            .values(completed_at=completed_at)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def raise_unlocked_courses(self, user_id: str, value: int) -> int:
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.user_id == user_id)
            .where(EnrollmentRow.unlocked_courses < value)
            .values(unlocked_courses=value)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    # --- lesson progress ---

    async def get_lesson_progress(
        self, user_id: str, lesson_id: UUID
    ) -> LessonProgress | None:
        stmt = select(LessonProgressRow).where(
            LessonProgressRow.user_id == user_id,
            LessonProgressRow.lesson_id == lesson_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_lesson_progress(row)

    async def list_lesson_progress(self, user_id: str) -> list[LessonProgress]:
        stmt = select(LessonProgressRow).where(LessonProgressRow.user_id == user_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson_progress(r) for r in rows]

    async def advance_current_activity(
        self, user_id: str, lesson_id: UUID, activity_number: int
    ) -> bool:
        stmt = insert(LessonProgressRow).values(
            user_id=user_id,
            lesson_id=lesson_id,
            current_activity=activity_number,
            completed=False,
            video_position=0,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[LessonProgressRow.user_id, LessonProgressRow.lesson_id],
            set_={"current_activity": stmt.excluded.current_activity},
            where=LessonProgressRow.current_activity < stmt.excluded.current_activity,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def mark_lesson_completed(
        self, user_id: str, lesson_id: UUID, completed_at: int, current_activity: int
    ) -> bool:
        stmt = insert(LessonProgressRow).values(
            user_id=user_id,
            lesson_id=lesson_id,
            current_activity=current_activity,
            completed=True,
            completed_at=completed_at,
            video_position=0,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[LessonProgressRow.user_id, LessonProgressRow.lesson_id],
            set_={"completed": True, "completed_at": stmt.excluded.completed_at},
            where=LessonProgressRow.completed.is_(False),
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def set_video_position(
        self, user_id: str, lesson_id: UUID, position: int
    ) -> None:
        stmt = insert(LessonProgressRow).values(
            user_id=user_id,
            lesson_id=lesson_id,
            current_activity=1,
            completed=False,
            video_position=position,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[LessonProgressRow.user_id, LessonProgressRow.lesson_id],
            set_={"video_position": stmt.excluded.video_position},
        )
        await self._session.execute(stmt)

    # --- activity submissions ---

    async def upsert_submission(self, submission: ActivitySubmission) -> None:
        stmt = insert(ActivitySubmissionRow).values(
            user_id=submission.user_id,
            activity_id=submission.activity_id,
            response=submission.response,
            submitted_at=submission.submitted_at,
            completed=submission.completed,
            feedback=submission.feedback,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[
                ActivitySubmissionRow.user_id,
                ActivitySubmissionRow.activity_id,
            ],
            set_={
                "response": stmt.excluded.response,
                "submitted_at": stmt.excluded.submitted_at,
                "completed": stmt.excluded.completed,
                "feedback": stmt.excluded.feedback,
            },
        )
        await self._session.execute(stmt)

    async def list_submissions(
        self, user_id: str, activity_ids: list[UUID]
    ) -> list[ActivitySubmission]:
        if not activity_ids:
            return []
        stmt = select(ActivitySubmissionRow).where(
            ActivitySubmissionRow.user_id == user_id,
            ActivitySubmissionRow.activity_id.in_(activity_ids),
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_submission(r) for r in rows]

    async def count_completed_submissions(
        self, user_id: str, activity_ids: list[UUID]
    ) -> int:
        if not activity_ids:
            return 0
        stmt = (
            select(func.count())
            .select_from(ActivitySubmissionRow)
            .where(
                ActivitySubmissionRow.user_id == user_id,
                ActivitySubmissionRow.activity_id.in_(activity_ids),
                ActivitySubmissionRow.completed.is_(True),
            )
        )
        return int((await self._session.execute(stmt)).scalar_one())

    # --- final project ---

    async def get_project_submission(
        self, user_id: str, project_id: UUID
    ) -> FinalProjectSubmission | None:
        stmt = select(FinalProjectSubmissionRow).where(
            FinalProjectSubmissionRow.user_id == user_id,
            FinalProjectSubmissionRow.project_id == project_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_project_submission(row)

    async def upsert_project_submission(
        self, submission: FinalProjectSubmission
    ) -> None:
        stmt = insert(FinalProjectSubmissionRow).values(
            user_id=submission.user_id,
            project_id=submission.project_id,
            submitted_at=submission.submitted_at,
            submission=submission.submission,
            status=submission.status,
            feedback=submission.feedback,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[
                FinalProjectSubmissionRow.user_id,
                FinalProjectSubmissionRow.project_id,
            ],
            set_={
                "submitted_at": stmt.excluded.submitted_at,
                "submission": stmt.excluded.submission,
                "status": stmt.excluded.status,
                "feedback": stmt.excluded.feedback,
            },
        )
        await self._session.execute(stmt)

    async def set_project_status(
        self,
        user_id: str,
        project_id: UUID,
        status: ProjectStatus,
        feedback: str | None,
    ) -> FinalProjectSubmission | None:
        stmt = (
            update(FinalProjectSubmissionRow)
            .where(FinalProjectSubmissionRow.user_id == user_id)
            .where(FinalProjectSubmissionRow.project_id == project_id)
            .values(status=status, feedback=feedback)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get_project_submission(user_id, project_id)

    # --- final exam ---

    async def upsert_exam_result(self, result: FinalExamResult) -> None:
        stmt = insert(FinalExamResultRow).values(
            user_id=result.user_id,
            exam_id=result.exam_id,
            score=result.score,
            passed=result.passed,
            grading_status=result.grading_status,
            answers=result.answers,
            submitted_at=result.submitted_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[FinalExamResultRow.user_id, FinalExamResultRow.exam_id],
            set_={
                "score": stmt.excluded.score,
                "passed": stmt.excluded.passed,
                "grading_status": stmt.excluded.grading_status,
                "answers": stmt.excluded.answers,
                "submitted_at": stmt.excluded.submitted_at,
            },
        )
        await self._session.execute(stmt)

    async def get_exam_result(
        self, user_id: str, exam_id: UUID
    ) -> FinalExamResult | None:
        stmt = select(FinalExamResultRow).where(
            FinalExamResultRow.user_id == user_id,
            FinalExamResultRow.exam_id == exam_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_exam_result(row)

    async def list_exam_results(self, user_id: str) -> list[FinalExamResult]:
        stmt = select(FinalExamResultRow).where(FinalExamResultRow.user_id == user_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_exam_result(r) for r in rows]


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        user_id=row.user_id,
        course_id=row.course_id,
        enrolled_at=row.enrolled_at,
        current_lesson=row.current_lesson,
        unlocked_courses=row.unlocked_courses,
        completed_at=row.completed_at,
    )


def _row_to_lesson_progress(row: LessonProgressRow) -> LessonProgress:
    return LessonProgress(
        user_id=row.user_id,
        lesson_id=row.lesson_id,
        current_activity=row.current_activity,
        completed=row.completed,
        completed_at=row.completed_at,
        video_position=row.video_position,
    )


def _row_to_submission(row: ActivitySubmissionRow) -> ActivitySubmission:
    return ActivitySubmission(
        user_id=row.user_id,
        activity_id=row.activity_id,
        response=dict(row.response or {}),
        submitted_at=row.submitted_at,
        completed=row.completed,
        feedback=row.feedback,
    )


def _row_to_project_submission(
    row: FinalProjectSubmissionRow,
) -> FinalProjectSubmission:
    return FinalProjectSubmission(
        user_id=row.user_id,
        project_id=row.project_id,
        submitted_at=row.submitted_at,
        submission=dict(row.submission or {}),
        status=row.status,  # type: ignore[arg-type]
        feedback=row.feedback,
    )


def _row_to_exam_result(row: FinalExamResultRow) -> FinalExamResult:
    return FinalExamResult(
        user_id=row.user_id,
        exam_id=row.exam_id,
        score=row.score,
        passed=row.passed,
        grading_status=row.grading_status,  # type: ignore[arg-type]
        answers=dict(row.answers or {}),
        submitted_at=row.submitted_at,
    )
