# ─────────────────────────────────────────────────────────────────────────────
# GET /auth/callback — identity provider sign-in callback
# ─────────────────────────────────────────────────────────────────────────────
# The provider sends the browser here with ?code=...&redirect=/path after a
# magic link / OAuth sign-in. We trade the code for a session, store the
# access token in the session cookie, and send the browser back to where
# it was headed. A failed exchange is logged and the redirect still happens;
# the destination page then sees no session and bounces to login.
# ─────────────────────────────────────────────────────────────────────────────


import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from yogaflow.auth import SessionProvider, safe_redirect_path
from yogaflow.config import Settings
from yogaflow.dependencies import get_session_provider, get_settings_dep
from yogaflow.exceptions import IdentityProviderError

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/auth/callback", response_class=RedirectResponse, status_code=307)
async def auth_callback(
    request: Request,
    code: str | None = None,
    redirect: str | None = None,
    provider: SessionProvider = Depends(get_session_provider),
    settings: Settings = Depends(get_settings_dep),
) -> RedirectResponse:
    """Exchange the sign-in code for a session cookie and redirect back."""
    target = safe_redirect_path(redirect)
    response = RedirectResponse(str(request.base_url).rstrip("/") + target, status_code=307)
    logger.info("auth_callback", has_code=bool(code), redirect=target)

    if not code:
        return response

    verifier = request.cookies.get(settings.code_verifier_cookie_name, "")
    try:
        session = await provider.exchange_code(code, verifier)
    except IdentityProviderError as exc:
        logger.warning("code_exchange_failed", error=exc.message)
        return response

    response.set_cookie(
        settings.session_cookie_name,
        session.access_token,
        max_age=session.expires_in or settings.session_cookie_max_age,
        httponly=True,
        secure=request.url.scheme == "https",
        samesite="lax",
        path="/",
    )
    response.delete_cookie(settings.code_verifier_cookie_name, path="/")
    logger.info("session_established", user_id=session.user_id)
    return response
