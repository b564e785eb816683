"""Scheduler-triggered webhook maintenance.

The worker process runs the same drain/sweep cycle on its own timer; these
endpoints let an external scheduler trigger it instead.  Both require
``Authorization: Bearer <CRON_SECRET>``.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from academy.api.dependencies import get_dispatcher, require_cron_secret
from academy.services.webhooks import NotificationDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1/cron",
    tags=["cron"],
    dependencies=[Depends(require_cron_secret)],
)


@router.post("/process-webhooks")
async def process_webhooks(
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
) -> dict:
    result = await dispatcher.drain()
    logger.info("Cron: webhooks processed %s", result)
    return {"success": True, **result}


@router.post("/cleanup-webhooks")
async def cleanup_webhooks(
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
) -> dict:
    result = await dispatcher.sweep()
    logger.info("Cron: webhooks cleaned %s", result)
    return {"success": True, **result}
