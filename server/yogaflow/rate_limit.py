# ─────────────────────────────────────────────────────────────────────────────
# Rate limiting — slowapi limiter shared by the generation routes
# ─────────────────────────────────────────────────────────────────────────────
# Keyed by client IP. The limit string comes from settings at call time so
# tests and deployments can change it without re-importing routes.
# ─────────────────────────────────────────────────────────────────────────────


import structlog
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from yogaflow.config import get_settings

logger = structlog.get_logger(__name__)

limiter = Limiter(key_func=get_remote_address)


def generation_limit() -> str:
    """Current per-IP limit for generation routes, e.g. ``"30/minute"``."""
    return get_settings().generation_rate_limit


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Structured JSON 429 in the same shape as the other error bodies."""
    logger.warning(
        "rate_limit_exceeded",
        path=request.url.path,
        method=request.method,
        detail=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={"error": "Too many requests", "message": f"Rate limit exceeded: {exc.detail}"},
    )
