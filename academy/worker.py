"""Background worker process.

RUN:  python -m academy.worker

Same image as the API, different command:
  api:    uvicorn academy.main:app --host 0.0.0.0 --port 8000
  worker: python -m academy.worker

Every WORKER_INTERVAL_SECONDS the worker runs each registered job once:
``drain`` delivers queued webhooks, ``sweep`` discards week-old entries.
A failing job is logged and the loop carries on with the next one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Coroutine
from contextlib import asynccontextmanager
from typing import Any

from academy.api.dependencies import build_dispatcher
from academy.core.config import SETTINGS
from academy.core.logging import setup_logging
from academy.db import engine as db_engine
from academy.repos.registry import (
    Repositories,
    in_memory_repositories,
    pg_repositories,
    run_after_commit,
)
from academy.services.webhooks import NotificationDispatcher

JobHandler = Callable[[NotificationDispatcher], Coroutine[Any, Any, dict[str, int]]]

logger = logging.getLogger("worker")


# ---------------------------------------------------------------------------
# Job registry
# ---------------------------------------------------------------------------

JOBS: dict[str, JobHandler] = {}


def register_job(name: str):
    """Decorator: register a coroutine as a periodic job."""

    def decorator(func):
        JOBS[name] = func
        return func

    return decorator


@register_job("drain")
async def drain_webhooks(dispatcher: NotificationDispatcher) -> dict[str, int]:
    return await dispatcher.drain()


@register_job("sweep")
async def sweep_webhooks(dispatcher: NotificationDispatcher) -> dict[str, int]:
    return await dispatcher.sweep()


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _repositories() -> AsyncIterator[Repositories]:
    if db_engine.async_session_factory is None:
        yield in_memory_repositories()
        return
    async with db_engine.unit_of_work() as session:
        repos = pg_repositories(session)
        yield repos
    await run_after_commit(repos)


async def run_cycle() -> dict[str, dict[str, int]]:
    """Run every registered job once.  Returns each job's result."""
    results: dict[str, dict[str, int]] = {}
    for name, job in JOBS.items():
        try:
            async with _repositories() as repos:
                results[name] = await job(build_dispatcher(repos))
            logger.info("Job [%s] completed: %s", name, results[name])
        except Exception:
            logger.exception("Job [%s] failed", name)
    return results


async def run_worker(*, max_cycles: int | None = None) -> None:
    logger.info(
        "Worker started, jobs=%s interval=%ds",
        list(JOBS),
        SETTINGS.worker_interval_seconds,
    )
    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        await run_cycle()
        cycles += 1
        if max_cycles is None or cycles < max_cycles:
            await asyncio.sleep(SETTINGS.worker_interval_seconds)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
