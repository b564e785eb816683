"""Progress state repository.

Every watermark write here is CONDITIONAL: ``advance_*`` and ``raise_*``
only ever move a cursor forward ("set to X only if current < X").  Two
requests racing to advance the same cursor can interleave in any order
and the stored value still ends at the maximum either of them wanted.

Upserts key on (user, unit); the PostgreSQL implementation backs each one
with a unique constraint and ``INSERT ... ON CONFLICT``.  The in-memory
implementation gets the same atomicity for free because no method awaits
between its read and its write.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from academy.models.progress import (
    ActivitySubmission,
    Enrollment,
    FinalExamResult,
    FinalProjectSubmission,
    LessonProgress,
    ProjectStatus,
)
from academy.repos.errors import DuplicateKeyError


class ProgressRepo(Protocol):
    # --- enrollments ---
    async def get_enrollment(
        self, user_id: str, course_id: UUID
    ) -> Enrollment | None: ...
    async def list_enrollments(self, user_id: str) -> list[Enrollment]: ...
    async def add_enrollment(self, enrollment: Enrollment) -> None: ...
    async def advance_current_lesson(
        self, user_id: str, course_id: UUID, lesson_number: int
    ) -> bool: ...
    async def mark_course_completed(
        self, user_id: str, course_id: UUID, completed_at: int
    ) -> bool: ...
    async def raise_unlocked_courses(self, user_id: str, value: int) -> int: ...

    # --- lesson progress ---
    async def get_lesson_progress(
        self, user_id: str, lesson_id: UUID
    ) -> LessonProgress | None: ...
    async def list_lesson_progress(self, user_id: str) -> list[LessonProgress]: ...
    async def advance_current_activity(
        self, user_id: str, lesson_id: UUID, activity_number: int
    ) -> bool: ...
    async def mark_lesson_completed(
        self, user_id: str, lesson_id: UUID, completed_at: int, current_activity: int
    ) -> bool: ...
    async def set_video_position(
        self, user_id: str, lesson_id: UUID, position: int
    ) -> None: ...

    # --- activity submissions ---
    async def upsert_submission(self, submission: ActivitySubmission) -> None: ...
    async def list_submissions(
        self, user_id: str, activity_ids: list[UUID]
    ) -> list[ActivitySubmission]: ...
    async def count_completed_submissions(
        self, user_id: str, activity_ids: list[UUID]
    ) -> int: ...

    # --- final project ---
    async def get_project_submission(
        self, user_id: str, project_id: UUID
    ) -> FinalProjectSubmission | None: ...
    async def upsert_project_submission(
        self, submission: FinalProjectSubmission
    ) -> None: ...
    async def set_project_status(
        self,
        user_id: str,
        project_id: UUID,
        status: ProjectStatus,
        feedback: str | None,
    ) -> FinalProjectSubmission | None: ...

    # --- final exam ---
    async def upsert_exam_result(self, result: FinalExamResult) -> None: ...
    async def get_exam_result(
        self, user_id: str, exam_id: UUID
    ) -> FinalExamResult | None: ...
    async def list_exam_results(self, user_id: str) -> list[FinalExamResult]: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._enrollments: dict[tuple[str, UUID], Enrollment] = {}
        self._lessons: dict[tuple[str, UUID], LessonProgress] = {}
        self._submissions: dict[tuple[str, UUID], ActivitySubmission] = {}
        self._projects: dict[tuple[str, UUID], FinalProjectSubmission] = {}
        self._exams: dict[tuple[str, UUID], FinalExamResult] = {}

    def clear(self) -> None:
        self._enrollments.clear()
        self._lessons.clear()
        self._submissions.clear()
        self._projects.clear()
        self._exams.clear()

    # --- enrollments ---

    async def get_enrollment(self, user_id: str, course_id: UUID) -> Enrollment | None:
        return self._enrollments.get((user_id, course_id))

    async def list_enrollments(self, user_id: str) -> list[Enrollment]:
        return [e for (uid, _), e in self._enrollments.items() if uid == user_id]

    async def add_enrollment(self, enrollment: Enrollment) -> None:
        key = (enrollment.user_id, enrollment.course_id)
        if key in self._enrollments:
            raise DuplicateKeyError("enrollment already exists")
        self._enrollments[key] = enrollment

    async def advance_current_lesson(
        self, user_id: str, course_id: UUID, lesson_number: int
    ) -> bool:
        e = self._enrollments.get((user_id, course_id))
        if e is None or e.current_lesson >= lesson_number:
            return False
        self._enrollments[(user_id, course_id)] = replace(
            e, current_lesson=lesson_number
        )
        return True

    async def mark_course_completed(
        self, user_id: str, course_id: UUID, completed_at: int
    ) -> bool:
        e = self._enrollments.get((user_id, course_id))
        if e is None or e.completed_at is not None:
            return False
        self._enrollments[(user_id, course_id)] = replace(e, completed_at=completed_at)
        return True

    async def raise_unlocked_courses(self, user_id: str, value: int) -> int:
        changed = 0
        for key, e in list(self._enrollments.items()):
            if key[0] == user_id and e.unlocked_courses < value:
                self._enrollments[key] = replace(e, unlocked_courses=value)
                changed += 1
        return changed

    # --- lesson progress ---

    async def get_lesson_progress(
        self, user_id: str, lesson_id: UUID
    ) -> LessonProgress | None:
        return self._lessons.get((user_id, lesson_id))

    async def list_lesson_progress(self, user_id: str) -> list[LessonProgress]:
        return [p for (uid, _), p in self._lessons.items() if uid == user_id]

    async def advance_current_activity(
        self, user_id: str, lesson_id: UUID, activity_number: int
    ) -> bool:
        key = (user_id, lesson_id)
        p = self._lessons.get(key)
        if p is None:
            self._lessons[key] = LessonProgress(
                user_id=user_id, lesson_id=lesson_id, current_activity=activity_number
            )
            return True
        if p.current_activity >= activity_number:
            return False
        self._lessons[key] = replace(p, current_activity=activity_number)
        return True

    async def mark_lesson_completed(
        self, user_id: str, lesson_id: UUID, completed_at: int, current_activity: int
    ) -> bool:
        key = (user_id, lesson_id)
        p = self._lessons.get(key)
        if p is None:
            self._lessons[key] = LessonProgress(
                user_id=user_id,
                lesson_id=lesson_id,
                current_activity=current_activity,
                completed=True,
                completed_at=completed_at,
            )
            return True
        if p.completed:
            return False
        self._lessons[key] = replace(p, completed=True, completed_at=completed_at)
        return True

    async def set_video_position(
        self, user_id: str, lesson_id: UUID, position: int
    ) -> None:
        key = (user_id, lesson_id)
        p = self._lessons.get(key) or LessonProgress(user_id=user_id, lesson_id=lesson_id)
        self._lessons[key] = replace(p, video_position=position)

    # --- activity submissions ---

    async def upsert_submission(self, submission: ActivitySubmission) -> None:
        self._submissions[(submission.user_id, submission.activity_id)] = submission

    async def list_submissions(
        self, user_id: str, activity_ids: list[UUID]
    ) -> list[ActivitySubmission]:
        return [
            s
            for aid in activity_ids
            if (s := self._submissions.get((user_id, aid))) is not None
        ]

    async def count_completed_submissions(
        self, user_id: str, activity_ids: list[UUID]
    ) -> int:
        subs = await self.list_submissions(user_id, activity_ids)
        return sum(1 for s in subs if s.completed)

    # --- final project ---

    async def get_project_submission(
        self, user_id: str, project_id: UUID
    ) -> FinalProjectSubmission | None:
        return self._projects.get((user_id, project_id))

    async def upsert_project_submission(
        self, submission: FinalProjectSubmission
    ) -> None:
        self._projects[(submission.user_id, submission.project_id)] = submission

    async def set_project_status(
        self,
        user_id: str,
        project_id: UUID,
        status: ProjectStatus,
        feedback: str | None,
    ) -> FinalProjectSubmission | None:
        key = (user_id, project_id)
        sub = self._projects.get(key)
        if sub is None:
            return None
        updated = replace(sub, status=status, feedback=feedback)
        self._projects[key] = updated
        return updated

    # --- final exam ---

    async def upsert_exam_result(self, result: FinalExamResult) -> None:
        self._exams[(result.user_id, result.exam_id)] = result

    async def get_exam_result(
        self, user_id: str, exam_id: UUID
    ) -> FinalExamResult | None:
        return self._exams.get((user_id, exam_id))

    async def list_exam_results(self, user_id: str) -> list[FinalExamResult]:
        return [r for (uid, _), r in self._exams.items() if uid == user_id]
