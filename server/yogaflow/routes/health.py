# ─────────────────────────────────────────────────────────────────────────────
# Health Check Routes — liveness and readiness
# ─────────────────────────────────────────────────────────────────────────────
#   /health        → Liveness probe. "Is the process alive?" No I/O.
#   /health/ready  → Readiness probe. "Has the lifespan wired the backend?"
#                    503 until app.state is populated.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from yogaflow.schemas import LivenessResponse, ReadinessResponse

router = APIRouter()


@router.get("/health", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe. Keep it free of dependencies."""
    return LivenessResponse(status="ok")


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> JSONResponse:
    """Readiness probe: the generator and session provider exist.

    An unconfigured identity provider does not make the instance unready;
    the open routes still work, protected ones answer 401.
    """
    generator = getattr(request.app.state, "sequence_generator", None)
    provider = getattr(request.app.state, "session_provider", None)
    ready = generator is not None and provider is not None

    response = ReadinessResponse(
        status="ready" if ready else "not_ready",
        backend=generator.backend_name if generator is not None else "none",
        identity_provider_configured=bool(provider is not None and provider.configured),
    )
    return JSONResponse(status_code=200 if ready else 503, content=response.model_dump())
