from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Achievement:
    """A granted achievement.  ``title`` is the durable identity key per user."""

    id: UUID
    user_id: str
    title: str
    description: str
    icon: str
    rarity: str  # common|rare|epic|legendary
    unlocked_at: int

    @staticmethod
    def new(
        *,
        user_id: str,
        title: str,
        description: str,
        icon: str,
        rarity: str,
        unlocked_at: int,
    ) -> Achievement:
        return Achievement(
            id=uuid4(),
            user_id=user_id,
            title=title,
            description=description,
            icon=icon,
            rarity=rarity,
            unlocked_at=unlocked_at,
        )


@dataclass(frozen=True, slots=True)
class Certificate:
    """Course completion certificate.  verification_code is the public key."""

    id: UUID
    user_id: str
    course_id: UUID
    verification_code: str
    issued_at: int

    @staticmethod
    def new(
        *, user_id: str, course_id: UUID, verification_code: str, issued_at: int
    ) -> Certificate:
        return Certificate(
            id=uuid4(),
            user_id=user_id,
            course_id=course_id,
            verification_code=verification_code,
            issued_at=issued_at,
        )
