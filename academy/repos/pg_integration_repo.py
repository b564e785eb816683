"""PostgreSQL implementation of IntegrationRepo."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.db.tables import WebhookIntegrationRow
from academy.models.integration import WebhookIntegration


class PgIntegrationRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> WebhookIntegration | None:
        stmt = select(WebhookIntegrationRow).where(
            WebhookIntegrationRow.user_id == user_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_integration(row)

    async def list_active(self) -> list[WebhookIntegration]:
        stmt = select(WebhookIntegrationRow).where(
            WebhookIntegrationRow.is_active.is_(True)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_integration(r) for r in rows]


def _row_to_integration(row: WebhookIntegrationRow) -> WebhookIntegration:
    return WebhookIntegration(
        user_id=row.user_id,
        external_user_id=row.external_user_id,
        webhook_url=row.webhook_url,
        webhook_secret=row.webhook_secret,
        is_active=row.is_active,
    )
