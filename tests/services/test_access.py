"""Access evaluation: lock state derived from the three watermarks."""

from __future__ import annotations

import asyncio
import uuid

from academy.models.progress import (
    PROJECT_APPROVED,
    PROJECT_PENDING,
    Enrollment,
    FinalProjectSubmission,
)
from academy.repos.registry import Repositories
from academy.services.access import AccessEvaluator
from tests.conftest import T0, build_course


def _evaluator(repos: Repositories) -> AccessEvaluator:
    return AccessEvaluator(repos.content, repos.progress)


# ---- activities ----


def test_first_activity_unlocked_without_progress(repos: Repositories) -> None:
    built = build_course(repos.content, 1)
    first, second = built.activities_of(1)
    access = _evaluator(repos)

    assert asyncio.run(access.can_access_activity("u1", first.id)) is True
    assert asyncio.run(access.can_access_activity("u1", second.id)) is False


def test_activity_unlocks_when_cursor_advances(repos: Repositories) -> None:
    built = build_course(repos.content, 1)
    lesson = built.lessons[0]
    second = built.activities_of(1)[1]
    access = _evaluator(repos)

    asyncio.run(repos.progress.advance_current_activity("u1", lesson.id, 2))

    assert asyncio.run(access.can_access_activity("u1", second.id)) is True
    # Another user's cursor is untouched.
    assert asyncio.run(access.can_access_activity("u2", second.id)) is False


def test_unknown_activity_is_not_accessible(repos: Repositories) -> None:
    access = _evaluator(repos)
    assert asyncio.run(access.can_access_activity("u1", uuid.uuid4())) is False


# ---- lessons ----


def test_lesson_requires_enrollment(repos: Repositories) -> None:
    built = build_course(repos.content, 1)
    access = _evaluator(repos)
    assert asyncio.run(access.can_access_lesson("u1", built.lessons[0].id)) is False

    asyncio.run(
        repos.progress.add_enrollment(
            Enrollment(user_id="u1", course_id=built.course.id, enrolled_at=T0)
        )
    )
    assert asyncio.run(access.can_access_lesson("u1", built.lessons[0].id)) is True
    assert asyncio.run(access.can_access_lesson("u1", built.lessons[1].id)) is False


def test_lesson_unlocks_with_current_lesson(repos: Repositories) -> None:
    built = build_course(repos.content, 1)
    access = _evaluator(repos)
    asyncio.run(
        repos.progress.add_enrollment(
            Enrollment(user_id="u1", course_id=built.course.id, enrolled_at=T0)
        )
    )
    asyncio.run(repos.progress.advance_current_lesson("u1", built.course.id, 2))

    assert asyncio.run(access.can_access_lesson("u1", built.lessons[1].id)) is True


# ---- courses ----


def test_only_course_one_unlocked_for_new_user(repos: Repositories) -> None:
    c1 = build_course(repos.content, 1)
    c2 = build_course(repos.content, 2)
    access = _evaluator(repos)

    assert asyncio.run(access.effective_unlocked_courses("new-user")) == 1
    assert asyncio.run(access.can_access_course("new-user", c1.course.id)) is True
    assert asyncio.run(access.can_access_course("new-user", c2.course.id)) is False


def test_course_watermark_is_max_over_enrollments(repos: Repositories) -> None:
    """A stale enrollment row never locks a course another row has unlocked."""
    c1 = build_course(repos.content, 1)
    c2 = build_course(repos.content, 2)
    c3 = build_course(repos.content, 3)
    access = _evaluator(repos)

    asyncio.run(
        repos.progress.add_enrollment(
            Enrollment(
                user_id="u1", course_id=c1.course.id, enrolled_at=T0, unlocked_courses=1
            )
        )
    )
    asyncio.run(
        repos.progress.add_enrollment(
            Enrollment(
                user_id="u1", course_id=c2.course.id, enrolled_at=T0, unlocked_courses=3
            )
        )
    )

    assert asyncio.run(access.effective_unlocked_courses("u1")) == 3
    assert asyncio.run(access.can_access_course("u1", c3.course.id)) is True


# ---- final project / exam ----


def test_project_unlocks_only_when_every_lesson_completed(
    repos: Repositories,
) -> None:
    built = build_course(repos.content, 1)
    access = _evaluator(repos)
    course_id = built.course.id

    assert asyncio.run(access.is_project_unlocked("u1", course_id)) is False

    asyncio.run(repos.progress.mark_lesson_completed("u1", built.lessons[0].id, T0, 2))
    assert asyncio.run(access.is_project_unlocked("u1", course_id)) is False

    asyncio.run(repos.progress.mark_lesson_completed("u1", built.lessons[1].id, T0, 2))
    assert asyncio.run(access.is_project_unlocked("u1", course_id)) is True


def test_project_locked_for_course_without_lessons(repos: Repositories) -> None:
    built = build_course(repos.content, 1, lesson_count=0)
    access = _evaluator(repos)
    assert asyncio.run(access.is_project_unlocked("u1", built.course.id)) is False


def test_exam_unlocks_only_after_project_approval(repos: Repositories) -> None:
    built = build_course(repos.content, 1)
    access = _evaluator(repos)
    assert built.project is not None

    submission = FinalProjectSubmission(
        user_id="u1",
        project_id=built.project.id,
        submitted_at=T0,
        submission={"repo": "https://example.com/repo"},
        status=PROJECT_PENDING,
    )
    asyncio.run(repos.progress.upsert_project_submission(submission))
    assert asyncio.run(access.is_exam_unlocked("u1", built.course.id)) is False

    asyncio.run(
        repos.progress.set_project_status("u1", built.project.id, PROJECT_APPROVED, None)
    )
    assert asyncio.run(access.is_exam_unlocked("u1", built.course.id)) is True
