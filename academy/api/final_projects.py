"""Final project submission and review.

Review is restricted to the ``admin`` role.  Approval is what unlocks the
course's final exam.
"""

from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from academy.api.dependencies import get_progression, require_reviewer, require_user
from academy.models.principal import Principal
from academy.models.progress import FinalProjectSubmission
from academy.services.progression import ProgressionService

router = APIRouter(prefix="/v1/final-projects", tags=["final-projects"])


class ProjectSubmissionIn(BaseModel):
    submission: dict[str, Any] = {}


class ProjectReviewIn(BaseModel):
    userId: str
    approve: bool
    feedback: str | None = None


class ProjectSubmissionOut(BaseModel):
    projectId: str
    userId: str
    status: str
    submittedAt: int
    feedback: str | None = None


def _to_out(sub: FinalProjectSubmission) -> ProjectSubmissionOut:
    return ProjectSubmissionOut(
        projectId=str(sub.project_id),
        userId=sub.user_id,
        status=sub.status,
        submittedAt=sub.submitted_at,
        feedback=sub.feedback,
    )


@router.post(
    "/{project_id}/submit",
    response_model=ProjectSubmissionOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_final_project(
    project_id: UUID,
    payload: ProjectSubmissionIn,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[ProgressionService, Depends(get_progression)],
) -> ProjectSubmissionOut:
    sub = await engine.submit_final_project(
        principal.user_id, project_id, payload.submission
    )
    return _to_out(sub)


@router.post("/{project_id}/review", response_model=ProjectSubmissionOut)
async def review_final_project(
    project_id: UUID,
    payload: ProjectReviewIn,
    reviewer: Annotated[Principal, Depends(require_reviewer)],
    engine: Annotated[ProgressionService, Depends(get_progression)],
) -> ProjectSubmissionOut:
    sub = await engine.review_final_project(
        reviewer.user_id,
        payload.userId,
        project_id,
        approve=payload.approve,
        feedback=payload.feedback,
    )
    return _to_out(sub)
