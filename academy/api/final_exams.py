from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from academy.api.dependencies import get_progression, require_user
from academy.models.principal import Principal
from academy.services.progression import ProgressionService

router = APIRouter(prefix="/v1/final-exams", tags=["final-exams"])


class ExamSubmissionIn(BaseModel):
    answers: dict[str, str] = {}  # question id -> option id or free text


class ExamResultOut(BaseModel):
    score: int
    passed: bool
    gradingStatus: str


@router.post("/{exam_id}/submit", response_model=ExamResultOut)
async def submit_final_exam(
    exam_id: UUID,
    payload: ExamSubmissionIn,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[ProgressionService, Depends(get_progression)],
) -> ExamResultOut:
    outcome = await engine.submit_final_exam(
        principal.user_id, exam_id, payload.answers
    )
    return ExamResultOut(
        score=outcome.score,
        passed=outcome.passed,
        gradingStatus=outcome.grading_status,
    )
