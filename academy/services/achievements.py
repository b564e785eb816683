"""Achievement definitions and evaluation.

Each trigger (lesson_completed, course_enrolled, course_completed,
exam_submitted) maps to the definitions worth re-checking for it.  A
definition is granted at most once per user: the (user_id, title) unique
key decides, and losing an insert race is read as "already granted".
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal

from academy.core.metrics import ACHIEVEMENTS_GRANTED
from academy.models.credential import Achievement
from academy.repos.content_repo import ContentRepo
from academy.repos.credential_repo import AchievementRepo
from academy.repos.errors import DuplicateKeyError
from academy.repos.progress_repo import ProgressRepo
from academy.services.clock import Clock, iso, now_ts
from academy.services.webhooks import NotificationDispatcher

logger = logging.getLogger(__name__)

Trigger = Literal[
    "lesson_completed", "course_enrolled", "course_completed", "exam_submitted"
]

STREAK_LENGTH = 5
SPEED_DEMON_SECONDS = 14 * 24 * 60 * 60


@dataclass(frozen=True, slots=True)
class AchievementContext:
    content: ContentRepo
    progress: ProgressRepo


Check = Callable[[AchievementContext, str], Awaitable[bool]]


@dataclass(frozen=True, slots=True)
class AchievementDefinition:
    id: str
    title: str
    description: str
    icon: str
    rarity: str
    check: Check


async def _first_steps(ctx: AchievementContext, user_id: str) -> bool:
    return any(p.completed for p in await ctx.progress.list_lesson_progress(user_id))


async def _course_starter(ctx: AchievementContext, user_id: str) -> bool:
    return len(await ctx.progress.list_enrollments(user_id)) >= 1


async def _dedicated_learner(ctx: AchievementContext, user_id: str) -> bool:
    # Five lessons of one course, consecutive by number, completed in order.
    completed = sorted(
        (p for p in await ctx.progress.list_lesson_progress(user_id) if p.completed),
        key=lambda p: p.completed_at or 0,
    )
    if len(completed) < STREAK_LENGTH:
        return False

    keyed: list[tuple[object, int]] = []
    for p in completed:
        lesson = await ctx.content.get_lesson(p.lesson_id)
        if lesson is not None:
            keyed.append((lesson.course_id, lesson.lesson_number))

    for start in range(len(keyed) - STREAK_LENGTH + 1):
        course_id, first = keyed[start]
        window = keyed[start : start + STREAK_LENGTH]
        if all(
            cid == course_id and number == first + offset
            for offset, (cid, number) in enumerate(window)
        ):
            return True
    return False


async def _course_conqueror(ctx: AchievementContext, user_id: str) -> bool:
    return any(e.is_completed for e in await ctx.progress.list_enrollments(user_id))


async def _perfect_score(ctx: AchievementContext, user_id: str) -> bool:
    results = await ctx.progress.list_exam_results(user_id)
    return any(r.passed and r.score == 100 for r in results)


async def _boss_commander(ctx: AchievementContext, user_id: str) -> bool:
    total = await ctx.content.count_courses()
    completed = sum(
        1 for e in await ctx.progress.list_enrollments(user_id) if e.is_completed
    )
    return total > 0 and completed >= total


async def _speed_demon(ctx: AchievementContext, user_id: str) -> bool:
    return any(
        e.completed_at is not None
        and e.completed_at - e.enrolled_at <= SPEED_DEMON_SECONDS
        for e in await ctx.progress.list_enrollments(user_id)
    )


DEFINITIONS: tuple[AchievementDefinition, ...] = (
    AchievementDefinition(
        "first-steps", "First Steps", "Complete your first lesson", "👣", "common",
        _first_steps,
    ),
    AchievementDefinition(
        "course-starter", "Course Starter", "Enroll in your first course", "🎯",
        "common", _course_starter,
    ),
    AchievementDefinition(
        "dedicated-learner", "Dedicated Learner", "Complete 5 lessons in a row",
        "🔥", "rare", _dedicated_learner,
    ),
    AchievementDefinition(
        "course-conqueror", "Course Conqueror", "Complete your first course", "🎓",
        "epic", _course_conqueror,
    ),
    AchievementDefinition(
        "perfect-score", "Perfect Score", "Score 100% on a final exam", "⭐", "epic",
        _perfect_score,
    ),
    AchievementDefinition(
        "boss-commander", "Boss Commander", "Complete every course", "💎",
        "legendary", _boss_commander,
    ),
    AchievementDefinition(
        "speed-demon", "Speed Demon", "Complete a course in under 2 weeks", "⚡",
        "rare", _speed_demon,
    ),
)

_BY_ID = {d.id: d for d in DEFINITIONS}

TRIGGERS: dict[str, tuple[str, ...]] = {
    "lesson_completed": ("first-steps", "dedicated-learner"),
    "course_enrolled": ("course-starter",),
    "course_completed": ("course-conqueror", "speed-demon", "boss-commander"),
    "exam_submitted": ("perfect-score",),
}


class AchievementEvaluator:
    def __init__(
        self,
        content: ContentRepo,
        progress: ProgressRepo,
        achievements: AchievementRepo,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock = now_ts,
    ) -> None:
        self._ctx = AchievementContext(content=content, progress=progress)
        self._achievements = achievements
        self._dispatcher = dispatcher
        self._clock = clock

    async def evaluate(self, user_id: str, trigger: Trigger) -> list[Achievement]:
        """Grant every definition mapped to ``trigger`` that the user now qualifies for."""
        granted: list[Achievement] = []
        for definition_id in TRIGGERS.get(trigger, ()):
            achievement = await self.unlock(user_id, definition_id)
            if achievement is not None:
                granted.append(achievement)
        return granted

    async def unlock(self, user_id: str, definition_id: str) -> Achievement | None:
        definition = _BY_ID.get(definition_id)
        if definition is None:
            logger.warning("Unknown achievement id: %s", definition_id)
            return None

        if await self._achievements.has_title(user_id, definition.title):
            return None
        if not await definition.check(self._ctx, user_id):
            return None

        achievement = Achievement.new(
            user_id=user_id,
            title=definition.title,
            description=definition.description,
            icon=definition.icon,
            rarity=definition.rarity,
            unlocked_at=self._clock(),
        )
        try:
            await self._achievements.add(achievement)
        except DuplicateKeyError:
            logger.debug(
                "Achievement %r already granted to user=%s", definition.title, user_id
            )
            return None

        ACHIEVEMENTS_GRANTED.labels(title=definition.title).inc()
        logger.info(
            "Achievement unlocked: %s", definition.title, extra={"user_id": user_id}
        )

        if self._dispatcher is not None:
            try:
                await self._dispatcher.dispatch(
                    user_id,
                    "achievement.earned",
                    {
                        "achievementId": str(achievement.id),
                        "title": achievement.title,
                        "description": achievement.description,
                        "icon": achievement.icon,
                        "rarity": achievement.rarity,
                        "unlockedAt": iso(achievement.unlocked_at),
                    },
                )
            except Exception:
                logger.exception("Failed to send achievement webhook")
        return achievement

    async def list_for_user(self, user_id: str) -> list[Achievement]:
        return await self._achievements.list_for_user(user_id)


def public_definitions() -> list[dict[str, str]]:
    return [
        {
            "id": d.id,
            "title": d.title,
            "description": d.description,
            "icon": d.icon,
            "rarity": d.rarity,
        }
        for d in DEFINITIONS
    ]
