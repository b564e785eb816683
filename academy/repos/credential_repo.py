"""Achievement and certificate storage.

Both are insert-only.  Uniqueness lives in the store: (user_id, title) for
achievements, (user_id, course_id) and verification_code for
certificates.  A losing concurrent insert raises DuplicateKeyError, which
the services read as "already granted".
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from academy.models.credential import Achievement, Certificate
from academy.repos.errors import DuplicateKeyError


class AchievementRepo(Protocol):
    async def has_title(self, user_id: str, title: str) -> bool: ...
    async def add(self, achievement: Achievement) -> None: ...
    async def list_for_user(self, user_id: str) -> list[Achievement]: ...


class CertificateRepo(Protocol):
    async def get_for_course(
        self, user_id: str, course_id: UUID
    ) -> Certificate | None: ...
    async def get_by_code(self, verification_code: str) -> Certificate | None: ...
    async def add(self, certificate: Certificate) -> None: ...
    async def list_for_user(self, user_id: str) -> list[Certificate]: ...


class InMemoryAchievementRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, str], Achievement] = {}

    def clear(self) -> None:
        self._store.clear()

    async def has_title(self, user_id: str, title: str) -> bool:
        return (user_id, title) in self._store

    async def add(self, achievement: Achievement) -> None:
        key = (achievement.user_id, achievement.title)
        if key in self._store:
            raise DuplicateKeyError(f"achievement {achievement.title!r} already granted")
        self._store[key] = achievement

    async def list_for_user(self, user_id: str) -> list[Achievement]:
        found = [a for (uid, _), a in self._store.items() if uid == user_id]
        return sorted(found, key=lambda a: a.unlocked_at, reverse=True)


class InMemoryCertificateRepo:
    def __init__(self) -> None:
        self._by_owner: dict[tuple[str, UUID], Certificate] = {}
        self._by_code: dict[str, Certificate] = {}

    def clear(self) -> None:
        self._by_owner.clear()
        self._by_code.clear()

    async def get_for_course(self, user_id: str, course_id: UUID) -> Certificate | None:
        return self._by_owner.get((user_id, course_id))

    async def get_by_code(self, verification_code: str) -> Certificate | None:
        return self._by_code.get(verification_code)

    async def add(self, certificate: Certificate) -> None:
        key = (certificate.user_id, certificate.course_id)
        if key in self._by_owner:
            raise DuplicateKeyError("certificate already issued for course")
        if certificate.verification_code in self._by_code:
            raise DuplicateKeyError("verification code already in use")
        self._by_owner[key] = certificate
        self._by_code[certificate.verification_code] = certificate

    async def list_for_user(self, user_id: str) -> list[Certificate]:
        found = [c for (uid, _), c in self._by_owner.items() if uid == user_id]
        return sorted(found, key=lambda c: c.issued_at, reverse=True)
