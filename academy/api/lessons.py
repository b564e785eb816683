"""Lesson endpoints: activity listing with derived lock state, video resume point."""

from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from academy.api.dependencies import get_progression, require_user
from academy.models.principal import Principal
from academy.services.progression import ProgressionService

router = APIRouter(prefix="/v1/lessons", tags=["lessons"])


class ActivityOut(BaseModel):
    id: str
    activityNumber: int
    title: str
    description: str
    type: str
    content: dict[str, Any]
    required: bool
    state: str  # locked|unlocked|completed
    isLocked: bool
    isCompleted: bool
    feedback: str | None = None


class VideoPositionIn(BaseModel):
    position: int


class VideoPositionOut(BaseModel):
    lessonId: str
    videoPosition: int


@router.get("/{lesson_id}/activities", response_model=list[ActivityOut])
async def list_lesson_activities(
    lesson_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[ProgressionService, Depends(get_progression)],
) -> list[ActivityOut]:
    views = await engine.lesson_activities(principal.user_id, lesson_id)
    return [
        ActivityOut(
            id=str(v.activity.id),
            activityNumber=v.activity.activity_number,
            title=v.activity.title,
            description=v.activity.description,
            type=v.activity.type,
            content=v.activity.content,
            required=v.activity.required,
            state=v.state,
            isLocked=v.state == "locked",
            isCompleted=v.state == "completed",
            feedback=v.submission.feedback if v.submission else None,
        )
        for v in views
    ]


@router.put("/{lesson_id}/video-position", response_model=VideoPositionOut)
async def update_video_position(
    lesson_id: UUID,
    payload: VideoPositionIn,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[ProgressionService, Depends(get_progression)],
) -> VideoPositionOut:
    await engine.update_video_position(principal.user_id, lesson_id, payload.position)
    return VideoPositionOut(lessonId=str(lesson_id), videoPosition=payload.position)
