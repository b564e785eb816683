from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from academy.api.dependencies import get_progression, require_user
from academy.models.principal import Principal
from academy.services.achievements import public_definitions
from academy.services.progression import ProgressionService

router = APIRouter(prefix="/v1/achievements", tags=["achievements"])


class AchievementOut(BaseModel):
    id: str
    title: str
    description: str
    icon: str
    rarity: str
    unlockedAt: int


class AchievementDefinitionOut(BaseModel):
    id: str
    title: str
    description: str
    icon: str
    rarity: str


@router.get("", response_model=list[AchievementOut])
async def list_my_achievements(
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[ProgressionService, Depends(get_progression)],
) -> list[AchievementOut]:
    granted = await engine.achievements.list_for_user(principal.user_id)
    return [
        AchievementOut(
            id=str(a.id),
            title=a.title,
            description=a.description,
            icon=a.icon,
            rarity=a.rarity,
            unlockedAt=a.unlocked_at,
        )
        for a in granted
    ]


@router.get("/definitions", response_model=list[AchievementDefinitionOut])
async def list_definitions() -> list[AchievementDefinitionOut]:
    return [AchievementDefinitionOut(**d) for d in public_definitions()]
