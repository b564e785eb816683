"""Certificate issuance and verification.

``issue`` is idempotent per (user, course).  Instead of trusting a
check-then-insert, it inserts and lets the store's unique constraints
arbitrate: if the (user, course) key is taken another request won and we
return its certificate; if only the verification code collided we draw a
new code and try again.
"""

from __future__ import annotations

import logging
import secrets
from uuid import UUID

from academy.core.errors import Conflict, NotCompleted
from academy.core.metrics import CERTIFICATES_ISSUED
from academy.models.credential import Certificate
from academy.repos.credential_repo import CertificateRepo
from academy.repos.errors import DuplicateKeyError
from academy.repos.progress_repo import ProgressRepo
from academy.services.clock import Clock, now_ts

logger = logging.getLogger(__name__)

CODE_PREFIX = "SSIA"
MAX_CODE_ATTEMPTS = 5

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_verification_code(timestamp_ms: int) -> str:
    random_part = secrets.token_hex(6).upper()
    return f"{CODE_PREFIX}-{_base36(timestamp_ms).upper()}-{random_part}"


class CertificateIssuer:
    def __init__(
        self,
        progress: ProgressRepo,
        certificates: CertificateRepo,
        clock: Clock = now_ts,
    ) -> None:
        self._progress = progress
        self._certificates = certificates
        self._clock = clock

    async def issue(self, user_id: str, course_id: UUID) -> Certificate:
        existing = await self._certificates.get_for_course(user_id, course_id)
        if existing is not None:
            return existing

        enrollment = await self._progress.get_enrollment(user_id, course_id)
        if enrollment is None or not enrollment.is_completed:
            raise NotCompleted("Course has not been completed")

        for _ in range(MAX_CODE_ATTEMPTS):
            issued_at = self._clock()
            certificate = Certificate.new(
                user_id=user_id,
                course_id=course_id,
                verification_code=generate_verification_code(issued_at * 1000),
                issued_at=issued_at,
            )
            try:
                await self._certificates.add(certificate)
            except DuplicateKeyError:
                winner = await self._certificates.get_for_course(user_id, course_id)
                if winner is not None:
                    return winner
                logger.warning("Verification code collision, regenerating")
                continue

            CERTIFICATES_ISSUED.inc()
            logger.info(
                "Certificate issued code=%s course=%s",
                certificate.verification_code,
                course_id,
                extra={"user_id": user_id},
            )
            return certificate

        raise Conflict("Could not allocate a unique verification code")

    async def verify(self, verification_code: str) -> Certificate | None:
        return await self._certificates.get_by_code(verification_code.strip().upper())

    async def list_for_user(self, user_id: str) -> list[Certificate]:
        return await self._certificates.list_for_user(user_id)
