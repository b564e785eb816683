"""Outbound progress webhooks.

Events (course.enrolled, course.progress_updated, course.completed,
achievement.earned) go to the external system a user has linked through
a WebhookIntegration.  Every request body is the JSON envelope

    {"eventType": ..., "userId": <external user id>,
     "timestamp": <ISO-8601>, "data": {...}}

signed with HMAC-SHA256 (hex) over the exact bytes sent, using the
integration's own secret.  The signature travels in X-Webhook-Signature
and the event type in X-Webhook-Event-Type.

DELIVERY
--------
  dispatch():  LPUSH onto ``webhook:queue:<user_id>`` (key expires after
               24h).  No queue configured, or the push fails → deliver
               directly with the same 10s timeout.  When the dispatcher is
               bound to a database transaction (``after_commit``), direct
               sends wait until that transaction has committed.
  drain():     for each active integration, RPOP up to a batch of entries
               and deliver each with up to 3 attempts, sleeping 2**attempt
               seconds between them.  After the third failure the entry is
               dropped and logged; it is never re-queued.
  sweep():     remove queue entries older than 7 days, or unparsable.

LPUSH at the head and RPOP at the tail gives FIFO per user.  Delivery is
at-most-once past the retry bound.

Nothing in this module raises into the caller of dispatch(): a slow or
broken endpoint must never fail or roll back a learner's progress.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any, Protocol, runtime_checkable

import httpx

from academy.core.metrics import WEBHOOK_DELIVERIES, WEBHOOK_QUEUE_DEPTH
from academy.models.integration import WebhookIntegration
from academy.repos.integration_repo import IntegrationRepo
from academy.services.clock import Clock, iso, now_ts, parse_iso

logger = logging.getLogger(__name__)

QUEUE_KEY_PREFIX = "webhook:queue:"
QUEUE_TTL_SECONDS = 24 * 60 * 60
SWEEP_MAX_AGE_SECONDS = 7 * 24 * 60 * 60
MAX_ATTEMPTS = 3

SIGNATURE_HEADER = "X-Webhook-Signature"
EVENT_TYPE_HEADER = "X-Webhook-Event-Type"


def sign(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def queue_key(user_id: str) -> str:
    return f"{QUEUE_KEY_PREFIX}{user_id}"


class WebhookDeliveryError(Exception):
    """The receiving endpoint could not be reached or answered non-2xx."""


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------


@runtime_checkable
class WebhookQueue(Protocol):
    async def push(self, user_id: str, entry: str) -> None: ...
    async def pop(self, user_id: str) -> str | None: ...
    async def entries(self, user_id: str) -> list[str]: ...
    async def remove(self, user_id: str, entry: str) -> int: ...
    async def length(self, user_id: str) -> int: ...


class InMemoryWebhookQueue:
    """In-memory queue for tests.  Key expiry is not modelled."""

    def __init__(self) -> None:
        self._lists: dict[str, list[str]] = {}

    def clear(self) -> None:
        self._lists.clear()

    async def push(self, user_id: str, entry: str) -> None:
        self._lists.setdefault(queue_key(user_id), []).insert(0, entry)

    async def pop(self, user_id: str) -> str | None:
        items = self._lists.get(queue_key(user_id))
        if not items:
            return None
        return items.pop()

    async def entries(self, user_id: str) -> list[str]:
        return list(self._lists.get(queue_key(user_id), []))

    async def remove(self, user_id: str, entry: str) -> int:
        items = self._lists.get(queue_key(user_id), [])
        if entry in items:
            items.remove(entry)
            return 1
        return 0

    async def length(self, user_id: str) -> int:
        return len(self._lists.get(queue_key(user_id), []))


class RedisWebhookQueue:
    """Redis-backed queue: LPUSH + EXPIRE on write, RPOP on drain."""

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def push(self, user_id: str, entry: str) -> None:
        key = queue_key(user_id)
        await self._redis.lpush(key, entry)
        await self._redis.expire(key, QUEUE_TTL_SECONDS)

    async def pop(self, user_id: str) -> str | None:
        return await self._redis.rpop(queue_key(user_id))

    async def entries(self, user_id: str) -> list[str]:
        return await self._redis.lrange(queue_key(user_id), 0, -1)

    async def remove(self, user_id: str, entry: str) -> int:
        return await self._redis.lrem(queue_key(user_id), 1, entry)

    async def length(self, user_id: str) -> int:
        return await self._redis.llen(queue_key(user_id))


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class NotificationDispatcher:
    def __init__(
        self,
        integrations: IntegrationRepo,
        queue: WebhookQueue | None = None,
        *,
        timeout_seconds: float = 10,
        batch_size: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Clock = now_ts,
        after_commit: list[Callable[[], Awaitable[None]]] | None = None,
    ) -> None:
        self._integrations = integrations
        self._queue = queue
        self._timeout = timeout_seconds
        self._batch_size = batch_size
        self._transport = transport
        self._sleep = sleep
        self._clock = clock
        self._after_commit = after_commit

    async def dispatch(self, user_id: str, event_type: str, payload: dict[str, Any]) -> None:
        """Queue an event for delivery, or deliver it now.  Never raises."""
        if self._queue is not None:
            entry = json.dumps(
                {
                    "userId": user_id,
                    "eventType": event_type,
                    "payload": payload,
                    "timestamp": iso(self._clock()),
                    "retryCount": 0,
                }
            )
            try:
                await self._queue.push(user_id, entry)
                WEBHOOK_DELIVERIES.labels(result="queued").inc()
                logger.info(
                    "Webhook queued",
                    extra={"user_id": user_id, "event_type": event_type},
                )
                return
            except Exception:
                logger.warning(
                    "Webhook queue push failed, delivering synchronously",
                    exc_info=True,
                    extra={"user_id": user_id, "event_type": event_type},
                )

        if self._after_commit is None:
            await self._send_quietly(user_id, event_type, payload)
            return
        try:
            integration = await self._usable_integration(user_id, event_type)
        except Exception:
            logger.exception(
                "Webhook integration lookup failed",
                extra={"user_id": user_id, "event_type": event_type},
            )
            return
        if integration is not None:
            self._after_commit.append(
                partial(self._post_quietly, integration, event_type, payload)
            )

    async def _send_quietly(
        self, user_id: str, event_type: str, payload: dict[str, Any]
    ) -> None:
        try:
            await self.send(user_id, event_type, payload)
        except Exception:
            logger.exception(
                "Synchronous webhook delivery failed",
                extra={"user_id": user_id, "event_type": event_type},
            )

    async def _post_quietly(
        self, integration: WebhookIntegration, event_type: str, payload: dict[str, Any]
    ) -> None:
        try:
            await self._post(integration, event_type, payload)
        except Exception:
            logger.exception(
                "Synchronous webhook delivery failed",
                extra={"user_id": integration.user_id, "event_type": event_type},
            )

    async def _usable_integration(
        self, user_id: str, event_type: str
    ) -> WebhookIntegration | None:
        integration = await self._integrations.get(user_id)
        reason = _skip_reason(integration)
        if reason is not None:
            WEBHOOK_DELIVERIES.labels(result="skipped").inc()
            logger.warning(
                "Skipping webhook: %s",
                reason,
                extra={"user_id": user_id, "event_type": event_type},
            )
            return None
        return integration

    async def send(self, user_id: str, event_type: str, payload: dict[str, Any]) -> bool:
        """Deliver one event now.

        Returns False when the user has no usable integration (logged skip).
        Raises WebhookDeliveryError when the endpoint fails.
        """
        integration = await self._usable_integration(user_id, event_type)
        if integration is None:
            return False
        await self._post(integration, event_type, payload)
        return True

    async def _post(
        self, integration: WebhookIntegration, event_type: str, payload: dict[str, Any]
    ) -> None:
        user_id = integration.user_id
        envelope = {
            "eventType": event_type,
            "userId": integration.external_user_id,
            "timestamp": iso(self._clock()),
            "data": payload,
        }
        body = json.dumps(envelope, separators=(",", ":")).encode()
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: sign(body, integration.webhook_secret or ""),
            EVENT_TYPE_HEADER: event_type,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    integration.webhook_url or "", content=body, headers=headers
                )
                response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            WEBHOOK_DELIVERIES.labels(result="failed").inc()
            logger.warning(
                "Webhook delivery failed: %s",
                exc,
                extra={"user_id": user_id, "event_type": event_type},
            )
            raise WebhookDeliveryError(str(exc)) from exc

        WEBHOOK_DELIVERIES.labels(result="sent").inc()
        logger.info(
            "Webhook sent status=%d",
            response.status_code,
            extra={"user_id": user_id, "event_type": event_type},
        )

    async def drain(self) -> dict[str, int]:
        """Deliver queued entries for every active integration."""
        processed = 0
        failed = 0
        if self._queue is None:
            logger.warning("No webhook queue configured, nothing to drain")
            return {"processed": 0, "failed": 0}

        depth = 0
        for integration in await self._integrations.list_active():
            for _ in range(self._batch_size):
                raw = await self._queue.pop(integration.user_id)
                if raw is None:
                    break
                try:
                    delivered = await self._deliver_entry(raw)
                except Exception:
                    logger.exception(
                        "Webhook entry failed", extra={"user_id": integration.user_id}
                    )
                    WEBHOOK_DELIVERIES.labels(result="dropped").inc()
                    delivered = False
                if delivered:
                    processed += 1
                else:
                    failed += 1
            depth += await self._queue.length(integration.user_id)

        WEBHOOK_QUEUE_DEPTH.set(depth)
        logger.info("Queued webhooks processed processed=%d failed=%d", processed, failed)
        return {"processed": processed, "failed": failed}

    async def _deliver_entry(self, raw: str) -> bool:
        try:
            entry = json.loads(raw)
            user_id = entry["userId"]
            event_type = entry["eventType"]
            payload = entry.get("payload") or {}
        except (ValueError, KeyError, TypeError):
            logger.error("Dropping unparsable webhook entry: %r", raw)
            WEBHOOK_DELIVERIES.labels(result="dropped").inc()
            return False

        for attempt in range(MAX_ATTEMPTS):
            try:
                await self.send(user_id, event_type, payload)
                return True
            except WebhookDeliveryError:
                if attempt + 1 < MAX_ATTEMPTS:
                    await self._sleep(2**attempt)

        WEBHOOK_DELIVERIES.labels(result="dropped").inc()
        logger.error(
            "Webhook dropped after %d attempts",
            MAX_ATTEMPTS,
            extra={"user_id": user_id, "event_type": event_type},
        )
        return False

    async def sweep(self) -> dict[str, int]:
        """Remove queue entries older than 7 days, or unparsable."""
        cleaned = 0
        if self._queue is None:
            logger.warning("No webhook queue configured, nothing to sweep")
            return {"cleaned": 0}

        cutoff = self._clock() - SWEEP_MAX_AGE_SECONDS
        for integration in await self._integrations.list_active():
            for raw in await self._queue.entries(integration.user_id):
                try:
                    stale = parse_iso(json.loads(raw)["timestamp"]) < cutoff
                except (ValueError, KeyError, TypeError):
                    stale = True
                if stale:
                    cleaned += await self._queue.remove(integration.user_id, raw)

        logger.info("Old webhooks cleaned up cleaned=%d", cleaned)
        return {"cleaned": cleaned}


def _skip_reason(integration: WebhookIntegration | None) -> str | None:
    if integration is None or not integration.is_active:
        return "integration not found or inactive"
    if not integration.webhook_url:
        return "webhook URL not configured"
    if not integration.webhook_secret:
        return "webhook secret not configured"
    return None
