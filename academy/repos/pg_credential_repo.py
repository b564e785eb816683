"""PostgreSQL implementations of AchievementRepo and CertificateRepo.

Inserts run inside a SAVEPOINT so a unique-constraint violation only rolls
back the insert itself, leaving the surrounding request transaction (and
the progress writes already made in it) intact.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.db.tables import AchievementRow, CertificateRow
from academy.models.credential import Achievement, Certificate
from academy.repos.errors import DuplicateKeyError


class PgAchievementRepo:
    """Satisfies the AchievementRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def has_title(self, user_id: str, title: str) -> bool:
        stmt = select(AchievementRow.id).where(
            AchievementRow.user_id == user_id, AchievementRow.title == title
        )
        return (await self._session.execute(stmt)).first() is not None

    async def add(self, achievement: Achievement) -> None:
        row = AchievementRow(
            id=achievement.id,
            user_id=achievement.user_id,
            title=achievement.title,
            description=achievement.description,
            icon=achievement.icon,
            rarity=achievement.rarity,
            unlocked_at=achievement.unlocked_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError as exc:
            raise DuplicateKeyError(
                f"achievement {achievement.title!r} already granted"
            ) from exc

    async def list_for_user(self, user_id: str) -> list[Achievement]:
        stmt = (
            select(AchievementRow)
            .where(AchievementRow.user_id == user_id)
            .order_by(AchievementRow.unlocked_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            Achievement(
                id=r.id,
                user_id=r.user_id,
                title=r.title,
                description=r.description,
                icon=r.icon,
                rarity=r.rarity,
                unlocked_at=r.unlocked_at,
            )
            for r in rows
        ]


class PgCertificateRepo:
    """Satisfies the CertificateRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_for_course(self, user_id: str, course_id: UUID) -> Certificate | None:
        stmt = select(CertificateRow).where(
            CertificateRow.user_id == user_id, CertificateRow.course_id == course_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_certificate(row)

    async def get_by_code(self, verification_code: str) -> Certificate | None:
        stmt = select(CertificateRow).where(
            CertificateRow.verification_code == verification_code
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_certificate(row)

    async def add(self, certificate: Certificate) -> None:
        row = CertificateRow(
            id=certificate.id,
            user_id=certificate.user_id,
            course_id=certificate.course_id,
            verification_code=certificate.verification_code,
            issued_at=certificate.issued_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError as exc:
            raise DuplicateKeyError("certificate insert conflicted") from exc

    async def list_for_user(self, user_id: str) -> list[Certificate]:
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.user_id == user_id)
            .order_by(CertificateRow.issued_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_certificate(r) for r in rows]


def _row_to_certificate(row: CertificateRow) -> Certificate:
    return Certificate(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        verification_code=row.verification_code,
        issued_at=row.issued_at,
    )
