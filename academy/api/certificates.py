"""Certificate listing and public verification.

``/verify/{code}`` is unauthenticated: anyone holding a verification code
(an employer, say) can confirm the certificate exists.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from academy.api.dependencies import get_progression, require_user
from academy.models.credential import Certificate
from academy.models.principal import Principal
from academy.services.progression import ProgressionService

router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


class CertificateOut(BaseModel):
    id: str
    courseId: str
    verificationCode: str
    issuedAt: int


def _to_out(cert: Certificate) -> CertificateOut:
    return CertificateOut(
        id=str(cert.id),
        courseId=str(cert.course_id),
        verificationCode=cert.verification_code,
        issuedAt=cert.issued_at,
    )


@router.get("", response_model=list[CertificateOut])
async def list_my_certificates(
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[ProgressionService, Depends(get_progression)],
) -> list[CertificateOut]:
    return [
        _to_out(c) for c in await engine.certificates.list_for_user(principal.user_id)
    ]


@router.get("/verify/{code}", response_model=CertificateOut)
async def verify_certificate(
    code: str,
    engine: Annotated[ProgressionService, Depends(get_progression)],
) -> CertificateOut:
    cert = await engine.certificates.verify(code)
    if cert is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Certificate not found"
        )
    return _to_out(cert)
