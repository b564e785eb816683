"""Gating cursors on the in-memory progress repository only ever move up."""

from __future__ import annotations

import asyncio
import uuid

from academy.models.progress import Enrollment
from academy.repos.progress_repo import InMemoryProgressRepo
from tests.conftest import T0


def test_current_activity_never_regresses() -> None:
    repo = InMemoryProgressRepo()
    lesson_id = uuid.uuid4()

    async def scenario() -> tuple[list[bool], int]:
        results = [
            await repo.advance_current_activity("u1", lesson_id, 3),
            await repo.advance_current_activity("u1", lesson_id, 2),
            await repo.advance_current_activity("u1", lesson_id, 3),
        ]
        progress = await repo.get_lesson_progress("u1", lesson_id)
        assert progress is not None
        return results, progress.current_activity

    assert asyncio.run(scenario()) == ([True, False, False], 3)


def test_current_lesson_never_regresses() -> None:
    repo = InMemoryProgressRepo()
    course_id = uuid.uuid4()

    async def scenario() -> tuple[list[bool], int]:
        await repo.add_enrollment(
            Enrollment(user_id="u1", course_id=course_id, enrolled_at=T0)
        )
        results = [
            await repo.advance_current_lesson("u1", course_id, 4),
            await repo.advance_current_lesson("u1", course_id, 2),
        ]
        enrollment = await repo.get_enrollment("u1", course_id)
        assert enrollment is not None
        return results, enrollment.current_lesson

    assert asyncio.run(scenario()) == ([True, False], 4)


def test_unlocked_courses_never_regress() -> None:
    repo = InMemoryProgressRepo()
    first, second = uuid.uuid4(), uuid.uuid4()

    async def scenario() -> tuple[list[int], list[int]]:
        for course_id in (first, second):
            await repo.add_enrollment(
                Enrollment(user_id="u1", course_id=course_id, enrolled_at=T0)
            )
        changed = [
            await repo.raise_unlocked_courses("u1", 3),
            await repo.raise_unlocked_courses("u1", 2),
        ]
        values = sorted(e.unlocked_courses for e in await repo.list_enrollments("u1"))
        return changed, values

    assert asyncio.run(scenario()) == ([2, 0], [3, 3])


def test_lesson_completion_transition_happens_once() -> None:
    repo = InMemoryProgressRepo()
    lesson_id = uuid.uuid4()

    async def scenario() -> list[bool]:
        return [
            await repo.mark_lesson_completed("u1", lesson_id, T0, 2),
            await repo.mark_lesson_completed("u1", lesson_id, T0 + 60, 2),
        ]

    assert asyncio.run(scenario()) == [True, False]
    progress = asyncio.run(repo.get_lesson_progress("u1", lesson_id))
    assert progress is not None and progress.completed_at == T0
