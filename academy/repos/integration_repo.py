from __future__ import annotations

from typing import Protocol

from academy.models.integration import WebhookIntegration


class IntegrationRepo(Protocol):
    async def get(self, user_id: str) -> WebhookIntegration | None: ...
    async def list_active(self) -> list[WebhookIntegration]: ...


class InMemoryIntegrationRepo:
    def __init__(self) -> None:
        self._by_user: dict[str, WebhookIntegration] = {}

    def add(self, integration: WebhookIntegration) -> None:
        self._by_user[integration.user_id] = integration

    def clear(self) -> None:
        self._by_user.clear()

    async def get(self, user_id: str) -> WebhookIntegration | None:
        return self._by_user.get(user_id)

    async def list_active(self) -> list[WebhookIntegration]:
        return [i for i in self._by_user.values() if i.is_active]
