from __future__ import annotations

import asyncio
import re

import pytest

from academy.core.errors import Conflict, NotCompleted
from academy.models.credential import Certificate
from academy.models.progress import Enrollment
from academy.repos.credential_repo import InMemoryCertificateRepo
from academy.repos.registry import Repositories
from academy.services import certificates as certificates_module
from academy.services.certificates import (
    MAX_CODE_ATTEMPTS,
    CertificateIssuer,
    generate_verification_code,
)
from tests.conftest import T0, FakeClock, build_course

CODE_PATTERN = re.compile(r"^SSIA-[0-9A-Z]+-[0-9A-F]{12}$")


def _completed_enrollment(repos: Repositories, course_id) -> None:
    asyncio.run(
        repos.progress.add_enrollment(
            Enrollment(user_id="u1", course_id=course_id, enrolled_at=T0)
        )
    )
    asyncio.run(repos.progress.mark_course_completed("u1", course_id, T0))


def test_generated_code_format() -> None:
    code = generate_verification_code(T0 * 1000)
    assert CODE_PATTERN.match(code)
    assert generate_verification_code(T0 * 1000) != code


def test_issue_requires_completed_course(repos: Repositories, clock: FakeClock) -> None:
    built = build_course(repos.content, 1)
    issuer = CertificateIssuer(repos.progress, repos.certificates, clock)

    with pytest.raises(NotCompleted):
        asyncio.run(issuer.issue("u1", built.course.id))

    asyncio.run(
        repos.progress.add_enrollment(
            Enrollment(user_id="u1", course_id=built.course.id, enrolled_at=T0)
        )
    )
    with pytest.raises(NotCompleted):
        asyncio.run(issuer.issue("u1", built.course.id))


def test_issue_is_idempotent(repos: Repositories, clock: FakeClock) -> None:
    built = build_course(repos.content, 1)
    _completed_enrollment(repos, built.course.id)
    issuer = CertificateIssuer(repos.progress, repos.certificates, clock)

    first = asyncio.run(issuer.issue("u1", built.course.id))
    clock.advance(60)
    second = asyncio.run(issuer.issue("u1", built.course.id))

    assert second == first
    assert first.issued_at == T0
    assert len(asyncio.run(issuer.list_for_user("u1"))) == 1


def test_code_collision_draws_a_new_code(
    repos: Repositories, clock: FakeClock, monkeypatch: pytest.MonkeyPatch
) -> None:
    built = build_course(repos.content, 1)
    _completed_enrollment(repos, built.course.id)
    taken = Certificate.new(
        user_id="someone-else",
        course_id=built.course.id,
        verification_code="SSIA-TAKEN-000000000000",
        issued_at=T0,
    )
    asyncio.run(repos.certificates.add(taken))

    codes = iter(["SSIA-TAKEN-000000000000", "SSIA-FRESH-111111111111"])
    monkeypatch.setattr(
        certificates_module, "generate_verification_code", lambda _ts: next(codes)
    )
    issuer = CertificateIssuer(repos.progress, repos.certificates, clock)

    cert = asyncio.run(issuer.issue("u1", built.course.id))
    assert cert.verification_code == "SSIA-FRESH-111111111111"


def test_concurrent_issue_returns_the_winner(
    repos: Repositories, clock: FakeClock
) -> None:
    built = build_course(repos.content, 1)
    _completed_enrollment(repos, built.course.id)
    winner = Certificate.new(
        user_id="u1",
        course_id=built.course.id,
        verification_code="SSIA-WINNER-ABCDEF012345",
        issued_at=T0,
    )

    class _LateRepo(InMemoryCertificateRepo):
        """Misses the winner on the first read, as a racing request would."""

        def __init__(self) -> None:
            super().__init__()
            self._reads = 0

        async def get_for_course(self, user_id, course_id):
            self._reads += 1
            if self._reads == 1:
                await super().add(winner)
                return None
            return await super().get_for_course(user_id, course_id)

    issuer = CertificateIssuer(repos.progress, _LateRepo(), clock)
    assert asyncio.run(issuer.issue("u1", built.course.id)) == winner


def test_exhausted_code_attempts_is_a_conflict(
    repos: Repositories, clock: FakeClock, monkeypatch: pytest.MonkeyPatch
) -> None:
    built = build_course(repos.content, 1)
    _completed_enrollment(repos, built.course.id)
    asyncio.run(
        repos.certificates.add(
            Certificate.new(
                user_id="someone-else",
                course_id=built.course.id,
                verification_code="SSIA-SAME-000000000000",
                issued_at=T0,
            )
        )
    )
    calls = []

    def same_code(ts: int) -> str:
        calls.append(ts)
        return "SSIA-SAME-000000000000"

    monkeypatch.setattr(certificates_module, "generate_verification_code", same_code)
    issuer = CertificateIssuer(repos.progress, repos.certificates, clock)

    with pytest.raises(Conflict):
        asyncio.run(issuer.issue("u1", built.course.id))
    assert len(calls) == MAX_CODE_ATTEMPTS


def test_verify_normalizes_code(repos: Repositories, clock: FakeClock) -> None:
    built = build_course(repos.content, 1)
    _completed_enrollment(repos, built.course.id)
    issuer = CertificateIssuer(repos.progress, repos.certificates, clock)
    cert = asyncio.run(issuer.issue("u1", built.course.id))

    found = asyncio.run(issuer.verify(f"  {cert.verification_code.lower()} "))
    assert found == cert
    assert asyncio.run(issuer.verify("SSIA-NOPE-000000000000")) is None
