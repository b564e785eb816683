from __future__ import annotations

import asyncio

from academy.models.credential import Achievement
from academy.models.progress import Enrollment, FinalExamResult
from academy.repos.credential_repo import InMemoryAchievementRepo
from academy.repos.errors import DuplicateKeyError
from academy.repos.registry import Repositories
from academy.services.achievements import (
    DEFINITIONS,
    SPEED_DEMON_SECONDS,
    TRIGGERS,
    AchievementEvaluator,
    public_definitions,
)
from tests.conftest import T0, FakeClock, build_course


def _evaluator(repos: Repositories, clock: FakeClock) -> AchievementEvaluator:
    return AchievementEvaluator(
        repos.content, repos.progress, repos.achievements, clock=clock
    )


def test_every_trigger_names_a_known_definition() -> None:
    known = {d.id for d in DEFINITIONS}
    for ids in TRIGGERS.values():
        assert set(ids) <= known


def test_public_definitions_hide_check_functions() -> None:
    defs = public_definitions()
    assert len(defs) == 7
    assert set(defs[0]) == {"id", "title", "description", "icon", "rarity"}


def test_unlock_is_idempotent(repos: Repositories, clock: FakeClock) -> None:
    built = build_course(repos.content, 1)
    evaluator = _evaluator(repos, clock)
    asyncio.run(
        repos.progress.add_enrollment(
            Enrollment(user_id="u1", course_id=built.course.id, enrolled_at=T0)
        )
    )

    first = asyncio.run(evaluator.evaluate("u1", "course_enrolled"))
    second = asyncio.run(evaluator.evaluate("u1", "course_enrolled"))

    assert [a.title for a in first] == ["Course Starter"]
    assert second == []
    assert len(asyncio.run(repos.achievements.list_for_user("u1"))) == 1


def test_lost_insert_race_reads_as_already_granted(
    repos: Repositories, clock: FakeClock
) -> None:
    """A concurrent grant landing between the check and the insert is not an error."""
    built = build_course(repos.content, 1)

    class _RacingRepo(InMemoryAchievementRepo):
        async def has_title(self, user_id: str, title: str) -> bool:
            return False

        async def add(self, achievement: Achievement) -> None:
            raise DuplicateKeyError("already granted")

    racing = _RacingRepo()
    evaluator = AchievementEvaluator(repos.content, repos.progress, racing, clock=clock)
    asyncio.run(
        repos.progress.add_enrollment(
            Enrollment(user_id="u1", course_id=built.course.id, enrolled_at=T0)
        )
    )

    assert asyncio.run(evaluator.unlock("u1", "course-starter")) is None


def test_unknown_definition_is_ignored(repos: Repositories, clock: FakeClock) -> None:
    assert asyncio.run(_evaluator(repos, clock).unlock("u1", "no-such-thing")) is None


def test_dedicated_learner_needs_five_consecutive_lessons(
    repos: Repositories, clock: FakeClock
) -> None:
    built = build_course(repos.content, 1, lesson_count=6)
    evaluator = _evaluator(repos, clock)

    async def complete(numbers: list[int]) -> None:
        for offset, number in enumerate(numbers):
            await repos.progress.mark_lesson_completed(
                "u1", built.lessons[number - 1].id, T0 + offset, 1
            )

    # 1, 2, 4, 5, 6: five lessons, but not consecutive.
    asyncio.run(complete([1, 2, 4, 5, 6]))
    assert asyncio.run(evaluator.unlock("u1", "dedicated-learner")) is None

    asyncio.run(repos.progress.mark_lesson_completed("u1", built.lessons[2].id, T0 + 10, 1))
    # Completion order is now 1, 2, 4, 5, 6, 3: still no run of five in order.
    assert asyncio.run(evaluator.unlock("u1", "dedicated-learner")) is None


def test_dedicated_learner_granted_for_ordered_run(
    repos: Repositories, clock: FakeClock
) -> None:
    built = build_course(repos.content, 1, lesson_count=5)
    evaluator = _evaluator(repos, clock)

    async def scenario() -> None:
        for number in range(1, 6):
            await repos.progress.mark_lesson_completed(
                "u1", built.lessons[number - 1].id, T0 + number, 1
            )

    asyncio.run(scenario())
    granted = asyncio.run(evaluator.unlock("u1", "dedicated-learner"))
    assert granted is not None and granted.rarity == "rare"


def test_speed_demon_window(repos: Repositories, clock: FakeClock) -> None:
    c1 = build_course(repos.content, 1)
    c2 = build_course(repos.content, 2)
    evaluator = _evaluator(repos, clock)

    async def scenario() -> None:
        await repos.progress.add_enrollment(
            Enrollment(user_id="slow", course_id=c1.course.id, enrolled_at=T0)
        )
        await repos.progress.mark_course_completed(
            "slow", c1.course.id, T0 + SPEED_DEMON_SECONDS + 1
        )
        await repos.progress.add_enrollment(
            Enrollment(user_id="fast", course_id=c2.course.id, enrolled_at=T0)
        )
        await repos.progress.mark_course_completed(
            "fast", c2.course.id, T0 + SPEED_DEMON_SECONDS
        )

    asyncio.run(scenario())
    assert asyncio.run(evaluator.unlock("slow", "speed-demon")) is None
    assert asyncio.run(evaluator.unlock("fast", "speed-demon")) is not None


def test_boss_commander_requires_every_course(
    repos: Repositories, clock: FakeClock
) -> None:
    c1 = build_course(repos.content, 1)
    c2 = build_course(repos.content, 2)
    evaluator = _evaluator(repos, clock)

    async def finish(course_id) -> None:
        await repos.progress.add_enrollment(
            Enrollment(user_id="u1", course_id=course_id, enrolled_at=T0)
        )
        await repos.progress.mark_course_completed("u1", course_id, T0)

    asyncio.run(finish(c1.course.id))
    assert asyncio.run(evaluator.unlock("u1", "boss-commander")) is None
    asyncio.run(finish(c2.course.id))
    assert asyncio.run(evaluator.unlock("u1", "boss-commander")) is not None


def test_perfect_score_requires_passed_hundred(
    repos: Repositories, clock: FakeClock
) -> None:
    built = build_course(repos.content, 1)
    assert built.exam is not None
    evaluator = _evaluator(repos, clock)

    def result(score: int, passed: bool) -> FinalExamResult:
        return FinalExamResult(
            user_id="u1",
            exam_id=built.exam.id,  # type: ignore[union-attr]
            score=score,
            passed=passed,
            grading_status="GRADED",
            answers={},
            submitted_at=T0,
        )

    asyncio.run(repos.progress.upsert_exam_result(result(90, True)))
    assert asyncio.run(evaluator.unlock("u1", "perfect-score")) is None
    asyncio.run(repos.progress.upsert_exam_result(result(100, True)))
    assert asyncio.run(evaluator.unlock("u1", "perfect-score")) is not None
