from __future__ import annotations

import hmac
import logging
from collections.abc import AsyncGenerator
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from academy.core.config import SETTINGS
from academy.core.logging import user_id_var
from academy.db import engine as db_engine
from academy.db.redis import redis_pool
from academy.models.principal import Principal
from academy.repos.registry import (
    Repositories,
    in_memory_repositories,
    pg_repositories,
    run_after_commit,
)
from academy.services import token_service
from academy.services.progression import ProgressionService
from academy.services.webhooks import (
    NotificationDispatcher,
    RedisWebhookQueue,
    WebhookQueue,
)

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")

# Selected once at startup: Redis when configured, otherwise direct send.
webhook_queue: WebhookQueue | None = (
    RedisWebhookQueue(redis_pool) if redis_pool is not None else None
)


async def require_user(
    request: Request,
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Decode the bearer token and bind the learner id to this request's logs."""
    try:
        principal = token_service.principal_from_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    user_id_var.set(principal.user_id)
    request.state.user_id = principal.user_id
    logger.debug(
        "Token validated for user=%s roles=%s",
        principal.user_id,
        principal.roles,
    )
    return principal


def require_reviewer(
    principal: Annotated[Principal, Depends(require_user)],
) -> Principal:
    """Final-project reviews are restricted to the reviewer role."""
    if not principal.can_review:
        logger.warning("Review denied: user=%s lacks reviewer role", principal.user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return principal


def require_cron_secret(
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Guard for scheduler-triggered endpoints: ``Authorization: Bearer <CRON_SECRET>``."""
    if not SETTINGS.cron_secret:
        logger.error("CRON_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Cron authentication not configured",
        )
    expected = f"Bearer {SETTINGS.cron_secret}"
    if authorization is None or not hmac.compare_digest(authorization, expected):
        logger.warning("Unauthorized cron job attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
        )


async def get_repositories() -> AsyncGenerator[Repositories, None]:
    """Request-scoped repositories: PostgreSQL when configured, else in-memory.

    With PostgreSQL every repo shares the request's unit of work, and
    deferred webhook sends go out only once it has committed.
    """
    if db_engine.async_session_factory is None:
        yield in_memory_repositories()
        return
    async with db_engine.unit_of_work() as session:
        repos = pg_repositories(session)
        yield repos
    await run_after_commit(repos)


def build_dispatcher(repos: Repositories) -> NotificationDispatcher:
    return NotificationDispatcher(
        repos.integrations,
        webhook_queue,
        timeout_seconds=SETTINGS.webhook_timeout_seconds,
        batch_size=SETTINGS.webhook_batch_size,
        after_commit=repos.after_commit,
    )


def get_dispatcher(
    repos: Annotated[Repositories, Depends(get_repositories)],
) -> NotificationDispatcher:
    return build_dispatcher(repos)


def get_progression(
    repos: Annotated[Repositories, Depends(get_repositories)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
) -> ProgressionService:
    return ProgressionService(repos, dispatcher)
