from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from academy.api.dependencies import get_progression, require_user
from academy.models.principal import Principal
from academy.services.progression import ProgressionService


router = APIRouter(prefix="/v1/activities", tags=["activities"])


class SubmissionIn(BaseModel):
    # Shape depends on the activity type; the engine's validator decides.
    response: Any = None


class SubmissionOut(BaseModel):
    success: bool
    feedback: str
    nextActivityUnlocked: bool
    lessonCompleted: bool


@router.post("/{activity_id}/submit", response_model=SubmissionOut)
async def submit_activity(
    activity_id: UUID,
    payload: SubmissionIn,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[ProgressionService, Depends(get_progression)],
) -> SubmissionOut:
    outcome = await engine.submit_activity(
        principal.user_id, activity_id, payload.response
    )
    return SubmissionOut(
        success=True,
        feedback=outcome.feedback,
        nextActivityUnlocked=outcome.next_activity_unlocked,
        lessonCompleted=outcome.lesson_completed,
    )
