"""Observability endpoints: health, readiness and the Prometheus scrape.

  /health (liveness):  "Is this process alive?"  Always 200; the body's
                       ``status`` field reports degraded dependencies.
  /ready (readiness):  "Can this instance take traffic?"  503 when the
                       database is configured but unreachable.  Redis is
                       optional (webhooks fall back to direct delivery), so
                       it never fails readiness.
  /metrics:            Prometheus text exposition; the webhook queue depth
                       gauge is refreshed by the dispatcher, not here.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text

from academy.db import engine as db_engine
from academy.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["observability"])


async def _database_status() -> str:
    if db_engine.engine is None:
        return "not_configured"
    try:
        async with db_engine.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"


async def _redis_status() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
        return "ok"
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _database_status(),
        "redis": await _redis_status(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _database_status() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
