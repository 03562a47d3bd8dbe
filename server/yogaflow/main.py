# ─────────────────────────────────────────────────────────────────────────────
# FastAPI Application Factory + Lifespan
# ─────────────────────────────────────────────────────────────────────────────
# Entrypoint: uvicorn yogaflow.main:create_app --factory --host 0.0.0.0 --port 8080
# The --factory flag tells uvicorn to call create_app() for the app instance.
# ─────────────────────────────────────────────────────────────────────────────

import os
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from yogaflow.auth import build_session_provider
from yogaflow.backends.registry import build_backend
from yogaflow.config import get_settings
from yogaflow.exceptions import register_exception_handlers
from yogaflow.logging_config import configure_logging
from yogaflow.middleware import RequestContextMiddleware
from yogaflow.rate_limit import limiter, rate_limit_exceeded_handler
from yogaflow.routes import auth as auth_routes
from yogaflow.routes import debug, health, sequences
from yogaflow.services.generation import SequenceGenerator

logger = structlog.get_logger(__name__)


def _configure_otel(exporter_type: str) -> None:
    """Configure OpenTelemetry tracing for the generation spans.

    Only "console" is wired; anything else is logged and ignored.
    """
    from opentelemetry import trace
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

    if exporter_type != "console":
        logger.warning("unknown_otel_exporter", exporter=exporter_type)
        return

    provider = TracerProvider()
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    logger.info("otel_configured", exporter=exporter_type)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the per-process collaborators and store them in app.state.

    Routes reach them through the Depends() providers in dependencies.py.
    """
    settings = get_settings()

    otel_exporter = os.environ.get("OTEL_EXPORTER", "")
    if otel_exporter:
        _configure_otel(otel_exporter)

    # One pooled client for all identity-provider lookups.
    http_client = httpx.AsyncClient(timeout=settings.identity_timeout_seconds)
    backend = build_backend(settings)

    app.state.settings = settings
    app.state.session_provider = build_session_provider(settings, http_client)
    app.state.sequence_generator = SequenceGenerator(backend, settings)
    logger.info("startup_complete", backend=backend.name)

    yield

    await http_client.aclose()
    close_backend = getattr(backend, "aclose", None)
    if close_backend is not None:
        await close_backend()


def _parse_origins(allowed_origins: str) -> list[str]:
    """Parse comma-separated origin string into a list.

    Returns ``["*"]`` if the input is empty (development mode).
    """
    if not allowed_origins.strip():
        return ["*"]
    return [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]


def create_app() -> FastAPI:
    """Application factory. Invoked by: uvicorn yogaflow.main:create_app --factory"""
    settings = get_settings()
    configure_logging(log_level=settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title="Yoga Flow API",
        description="Yoga sequence generation: validation, sessions, and backend orchestration",
        version="0.1.0",
        lifespan=lifespan,
    )

    # ── Rate limiter (slowapi reads it from app.state) ───────────────────────
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # ── Middleware stack ─────────────────────────────────────────────────────
    # Starlette runs middleware in reverse order of add_middleware calls:
    #   CORS → RequestContext → route handler
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_parse_origins(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    # ── Exception handlers ───────────────────────────────────────────────────
    register_exception_handlers(app)

    # ── Routes ───────────────────────────────────────────────────────────────
    app.include_router(health.router, tags=["health"])
    app.include_router(sequences.router, tags=["sequences"])
    app.include_router(auth_routes.router, tags=["auth"])
    if settings.enable_debug_routes:
        app.include_router(debug.router, tags=["debug"])

    return app
