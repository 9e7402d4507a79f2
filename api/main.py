"""Opsdesk API: FastAPI entry point.

Registers middleware, error handlers, routers, and lifecycle hooks. The
tasks vertical mounts its router under /api/.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.middleware import ViewerMiddleware
from core.database import close_db, init_db
from core.logging import configure_logging, get_logger
from core.observability.otel_setup import setup_otel
from core.resilience.idempotency import DuplicateInFlight
from verticals.tasks import service as task_service
from verticals.tasks.errors import TaskError, TransportError

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:3001"
).split(",")
CREATE_TABLES = os.getenv("DB_CREATE_TABLES", "false").lower() == "true"
VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown hooks."""
    configure_logging()
    config = task_service.configure(tracer=setup_otel("opsdesk"))
    if CREATE_TABLES:
        await init_db()

    logger.info(
        "api.started",
        extra={"watermark_backend": config.watermark_backend, "admins": len(config.admin_user_ids)},
    )
    yield
    logger.info("api.stopping")
    await close_db()


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Opsdesk",
    description="Task lifecycle and engagement engine: completion, priority, unread comments and nudges",
    version=VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Viewer identity middleware
app.add_middleware(ViewerMiddleware)


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

@app.exception_handler(TaskError)
async def task_error_handler(request: Request, exc: TaskError):
    if exc.status_code >= 500:
        logger.error("api.task_error", extra={"code": exc.code, "path": request.url.path})
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    """Failures outside the repository, such as the request-scoped commit."""
    logger.error("api.storage_error", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(
        status_code=TransportError.status_code,
        content={"detail": "Task store unavailable", "code": TransportError.code},
    )


@app.exception_handler(DuplicateInFlight)
async def duplicate_in_flight_handler(request: Request, exc: DuplicateInFlight):
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "code": "duplicate_in_flight"},
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

from verticals.tasks.router import router as tasks_router  # noqa: E402

app.include_router(tasks_router, prefix="/api", tags=["Tasks"])


# ---------------------------------------------------------------------------
# Health & root
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}


@app.get("/")
async def root():
    return {
        "name": "Opsdesk",
        "version": VERSION,
        "docs": "/docs",
        "verticals": ["tasks"],
    }
