# ─────────────────────────────────────────────────────────────────────────────
# Dependency Injection — FastAPI Depends() providers
# ─────────────────────────────────────────────────────────────────────────────
# State flows: lifespan creates → app.state stores → Depends() injects.
# No global variables. Every dependency is explicit in endpoint signatures.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import Request

from yogaflow.auth import AuthGate, SessionProvider
from yogaflow.config import Settings
from yogaflow.services.generation import SequenceGenerator


def get_settings_dep(request: Request) -> Settings:
    """Inject Settings into endpoints via Depends()."""
    return request.app.state.settings


def get_sequence_generator(request: Request) -> SequenceGenerator:
    """Inject the SequenceGenerator into endpoints via Depends()."""
    return request.app.state.sequence_generator


def get_session_provider(request: Request) -> SessionProvider:
    """Inject the identity provider client into endpoints via Depends()."""
    return request.app.state.session_provider


async def resolve_auth_gate(
    request: Request, provider: SessionProvider, settings: Settings
) -> AuthGate:
    """Resolve this request's session from its cookies.

    Called by protected handlers once the body has decoded, so a malformed
    body is answered without an identity-provider round trip. Only the
    cookie mapping is handed to the gate; it never sees the request.
    """
    return await AuthGate.from_cookies(
        request.cookies,
        provider,
        cookie_name=settings.session_cookie_name,
        login_path=settings.login_path,
    )
