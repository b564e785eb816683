"""Repository bundles.

Services take one ``Repositories`` value instead of five arguments.  Two
ways to build one:

  in_memory_repositories()      module-level singletons, used when
                                DATABASE_URL is not configured and by tests
  pg_repositories(session)      one bundle per request-scoped AsyncSession

``savepoint`` scopes a best-effort side effect: on PostgreSQL it is a
SAVEPOINT, so a failing side effect rolls back only its own writes and the
learner's recorded progress still commits with the request.

``after_commit`` collects network work (direct webhook sends) that must
not run while the transaction holds row locks.  It is None for the
in-memory bundle, where nothing is locked and sends go out inline.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from academy.repos.content_repo import (
    ContentRepo,
    InMemoryContentRepo,
    seed_sample_content,
)
from academy.repos.credential_repo import (
    AchievementRepo,
    CertificateRepo,
    InMemoryAchievementRepo,
    InMemoryCertificateRepo,
)
from academy.repos.integration_repo import InMemoryIntegrationRepo, IntegrationRepo
from academy.repos.pg_content_repo import PgContentRepo
from academy.repos.pg_credential_repo import PgAchievementRepo, PgCertificateRepo
from academy.repos.pg_integration_repo import PgIntegrationRepo
from academy.repos.pg_progress_repo import PgProgressRepo
from academy.repos.progress_repo import InMemoryProgressRepo, ProgressRepo

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _no_savepoint():
    yield


@dataclass(frozen=True, slots=True)
class Repositories:
    content: ContentRepo
    progress: ProgressRepo
    achievements: AchievementRepo
    certificates: CertificateRepo
    integrations: IntegrationRepo
    savepoint: Callable[[], AbstractAsyncContextManager[object]] = field(
        default=_no_savepoint
    )
    after_commit: list[Callable[[], Awaitable[None]]] | None = None


def pg_repositories(session: AsyncSession) -> Repositories:
    return Repositories(
        content=PgContentRepo(session),
        progress=PgProgressRepo(session),
        achievements=PgAchievementRepo(session),
        certificates=PgCertificateRepo(session),
        integrations=PgIntegrationRepo(session),
        savepoint=session.begin_nested,
        after_commit=[],
    )


async def run_after_commit(repos: Repositories) -> None:
    """Run the hooks queued during a committed unit of work, in order."""
    hooks = repos.after_commit or []
    while hooks:
        hook = hooks.pop(0)
        try:
            await hook()
        except Exception:
            logger.exception("after-commit hook failed")


# ---------------------------------------------------------------------------
# In-memory singletons
# ---------------------------------------------------------------------------

content_repo = InMemoryContentRepo()
progress_repo = InMemoryProgressRepo()
achievement_repo = InMemoryAchievementRepo()
certificate_repo = InMemoryCertificateRepo()
integration_repo = InMemoryIntegrationRepo()

seed_sample_content(content_repo)


def in_memory_repositories() -> Repositories:
    return Repositories(
        content=content_repo,
        progress=progress_repo,
        achievements=achievement_repo,
        certificates=certificate_repo,
        integrations=integration_repo,
    )
