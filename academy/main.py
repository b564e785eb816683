from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from academy.api.achievements import router as achievements_router
from academy.api.activities import router as activities_router
from academy.api.certificates import router as certificates_router
from academy.api.courses import router as courses_router
from academy.api.cron import router as cron_router
from academy.api.final_exams import router as final_exams_router
from academy.api.final_projects import router as final_projects_router
from academy.api.health import router as health_router
from academy.api.lessons import router as lessons_router
from academy.core.config import SETTINGS
from academy.core.errors import ProgressionError
from academy.core.logging import setup_logging
from academy.db.engine import lifespan_db
from academy.db.redis import lifespan_redis
from academy.middleware.metrics import MetricsMiddleware
from academy.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order (LIFO).
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="academy",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) → Metrics → CORS → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(ProgressionError)
async def progression_error_handler(
    request: Request, exc: ProgressionError
) -> JSONResponse:
    logger.info(
        "%s on %s %s: %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(health_router)
app.include_router(courses_router)
app.include_router(lessons_router)
app.include_router(activities_router)
app.include_router(final_projects_router)
app.include_router(final_exams_router)
app.include_router(achievements_router)
app.include_router(certificates_router)
app.include_router(cron_router)

logger.info(
    "academy started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
