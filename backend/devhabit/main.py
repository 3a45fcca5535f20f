"""
DevHabit Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() assembles middleware, exception handlers, routers and the
       process-wide components kept on `app.state`.
Who:   uvicorn devhabit.main:app

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                         FastAPI App                          │
    │                                                              │
    │  Middleware (outermost first):                               │
    │    Request ID → Logging → GZip → CORS → ETag                 │
    │                                                              │
    │  Routes:                                                     │
    │    /habits  /habits/{id}/tags  /tags  /entries  /health      │
    │                                                              │
    │  app.state (created once, shared by every request):          │
    │    data_shaping       DataShapingService (accessor cache)    │
    │    sort_mappings      SortMappingProvider                    │
    │    etag_store         InMemoryETagStore                      │
    │    idempotency_cache  IdempotencyCache over MemoryCache      │
    │                                                              │
    │  Errors: every DevHabitError → application/problem+json      │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → configuration check → wait for the database
    Shutdown: dispose the engine (close pooled connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncGenerator, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from devhabit import __version__
from devhabit.config import settings
from devhabit.database import dispose_engine, wait_for_database
from devhabit.exceptions import (
    ConfigurationError,
    DatabaseError,
    DevHabitError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from devhabit.middleware.etag import ETagMiddleware
from devhabit.middleware.logging import RequestLoggingMiddleware
from devhabit.middleware.request_id import RequestIDMiddleware, request_id_var
from devhabit.models.entry import Entry
from devhabit.models.habit import Habit
from devhabit.responses import problem_response
from devhabit.routes import entries, habit_tags, habits, health, tags
from devhabit.schemas.entry import ENTRY_SORT_MAPPING, EntryDto
from devhabit.schemas.habit import HABIT_SORT_MAPPING, HabitDto
from devhabit.services.data_shaping import DataShapingService
from devhabit.services.etag_store import InMemoryETagStore
from devhabit.services.idempotency import IdempotencyCache
from devhabit.services.memory_cache import MemoryCache
from devhabit.services.sorting import SortMappingProvider

logger = logging.getLogger(__name__)

# (DTO, entity) pairs the list endpoints sort; checked once at startup
SORTED_RESOURCES = ((HabitDto, Habit), (EntryDto, Entry))


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════


class RequestIdLogFilter(logging.Filter):
    """Stamps every record with the current request ID ("-" outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("") or "-"
        return True


def setup_logging() -> None:
    """
    Configure the root logger once for the whole application.

    Format: 2024-01-15T12:00:00 [INFO] devhabit.routes.habits [a1b2c3d4e5f6] message
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdLogFilter())
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Third-party libraries log every operation at INFO/DEBUG
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("DevHabit API %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health and the problem responses explain the state
        logger.error("Configuration error: %s", str(e))

    await wait_for_database()
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("DevHabit API shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════


def _validation_errors(exc: RequestValidationError) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        location = [
            str(part)
            for part in error.get("loc", ())
            if part not in ("body", "query", "path", "header")
        ]
        key = ".".join(location) or "request"
        message = str(error.get("msg", "Invalid value"))
        # pydantic prefixes messages raised by our validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(key, []).append(message)
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to problem+json responses.

        RequestValidationError   → 400 with an `errors` map (field → messages)
        ValidationError          → 400
        UnauthorizedError        → 401 + WWW-Authenticate
        NotFoundError            → 404
        ConfigurationError       → 500, stack trace logged
        DatabaseError            → 500, generic message
        DevHabitError (others)   → the exception's own status and title
        Exception                → 500, generic message

    Response bodies never contain stack traces, SQL or internal context.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = _validation_errors(exc)
        logger.warning("Request validation failed: %s", errors)
        return problem_response(400, "Bad Request", "One or more validation errors occurred.", errors)

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("Validation error: %s", exc.message)
        errors = {exc.field: [exc.message]} if exc.field else None
        return problem_response(exc.status_code, exc.title, exc.message, errors)

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(request: Request, exc: UnauthorizedError):
        return problem_response(
            exc.status_code, exc.title, exc.message, headers={"WWW-Authenticate": "Bearer"}
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return problem_response(exc.status_code, exc.title, exc.message)

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(request: Request, exc: ConfigurationError):
        logger.error(
            "Configuration error: %s | Context: %s",
            exc.message,
            exc.context,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return problem_response(500, exc.title, "An internal error occurred. Please try again later.")

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("Database error: %s | Context: %s", exc.message, exc.context)
        return problem_response(500, exc.title, "An internal error occurred. Please try again later.")

    @app.exception_handler(DevHabitError)
    async def handle_devhabit_error(request: Request, exc: DevHabitError):
        logger.info("%s: %s", type(exc).__name__, exc.message)
        return problem_response(exc.status_code, exc.title, exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "Unexpected error: %s",
            str(exc),
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return problem_response(
            500,
            "Internal Server Error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════


def create_app() -> FastAPI:
    """
    Build a fully configured application.

    A factory rather than a bare module-level app so tests get a fresh
    `app.state` (ETag store, idempotency cache) per instance.
    """
    app = FastAPI(
        title="DevHabit API",
        description="Habit tracking API with HATEOAS links, data shaping and pagination.",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Shared components ─────────────────────────────────────────────────
    sort_mappings = SortMappingProvider([HABIT_SORT_MAPPING, ENTRY_SORT_MAPPING])
    sort_mappings.ensure_registered(SORTED_RESOURCES)
    app.state.sort_mappings = sort_mappings
    app.state.data_shaping = DataShapingService()
    app.state.etag_store = InMemoryETagStore()
    app.state.idempotency_cache = IdempotencyCache(
        MemoryCache(), timedelta(minutes=settings.idempotency_ttl_minutes)
    )

    # ── Middleware ────────────────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → GZip → CORS → ETag
    app.add_middleware(ETagMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "ETag", "Location", "Idempotent-Replayed"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────────
    app.include_router(habits.router)
    app.include_router(habit_tags.router)
    app.include_router(tags.router)
    app.include_router(entries.router)
    app.include_router(health.router)

    return app


app = create_app()
