# ─────────────────────────────────────────────────────────────────────────────
# Session / Auth Gate — cookie sessions backed by an external identity provider
# ─────────────────────────────────────────────────────────────────────────────
# The provider (Supabase Auth over plain HTTP) is the source of truth; this
# module only:
#   - pulls the access token out of the request cookies
#   - asks the provider who it belongs to
#   - makes the allow/deny decision
#   - chooses between a 401 (API routes) and a login redirect (pages)
#
# The gate is built from an explicit cookie mapping, never from ambient
# request state, so it can be constructed directly in tests.
# ─────────────────────────────────────────────────────────────────────────────


import base64
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import unquote, urlencode

import httpx
import structlog
from starlette.responses import RedirectResponse

from yogaflow.config import Settings
from yogaflow.exceptions import AppError, Err, ErrorKind, IdentityProviderError, Ok, Result

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Session:
    user_id: str
    access_token: str
    email: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None


class SessionProvider(Protocol):
    async def get_session(self, access_token: str) -> Session | None: ...

    async def exchange_code(self, code: str, code_verifier: str) -> Session: ...

    @property
    def configured(self) -> bool: ...


def extract_access_token(cookie_value: str) -> str | None:
    """Return the JWT stored in a session cookie.

    Accepts a bare token, or the JSON array/object (optionally prefixed
    with ``base64-``) that the provider's browser helpers write.
    """
    value = unquote(cookie_value).strip()
    if not value:
        return None
    if value.startswith("base64-"):
        # base64url, unpadded; the standard alphabet is accepted as well.
        encoded = value[len("base64-") :].replace("+", "-").replace("/", "_")
        try:
            value = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
        except ValueError:
            return None
        if not value:
            return None
    if value[0] in "[{":
        try:
            decoded = json.loads(value)
        except ValueError:
            return None
        if isinstance(decoded, list) and decoded and isinstance(decoded[0], str):
            return decoded[0] or None
        if isinstance(decoded, dict) and isinstance(decoded.get("access_token"), str):
            return decoded["access_token"] or None
        return None
    return value


def _json_object(response: httpx.Response, what: str) -> dict:
    try:
        body = response.json()
    except ValueError as exc:
        raise IdentityProviderError(f"Identity provider sent invalid JSON for {what}") from exc
    if not isinstance(body, dict):
        raise IdentityProviderError(f"Identity provider sent an unexpected body for {what}")
    return body


class SupabaseSessionProvider:
    """Session lookups against a Supabase Auth (GoTrue) server."""

    def __init__(self, base_url: str, anon_key: str, client: httpx.AsyncClient) -> None:
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._client = client

    @property
    def configured(self) -> bool:
        return True

    async def get_session(self, access_token: str) -> Session | None:
        """Resolve a token to a session; ``None`` when the provider rejects it."""
        try:
            response = await self._client.get(
                f"{self._base_url}/auth/v1/user",
                headers={"apikey": self._anon_key, "Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as exc:
            raise IdentityProviderError(f"Identity provider unreachable: {exc}") from exc

        if response.status_code in (401, 403):
            return None
        if response.status_code != 200:
            raise IdentityProviderError(
                f"Identity provider returned {response.status_code} for user lookup"
            )

        user = _json_object(response, "user lookup")
        if not user.get("id"):
            raise IdentityProviderError("Identity provider returned a user without an id")
        return Session(user_id=str(user["id"]), access_token=access_token, email=user.get("email"))

    async def exchange_code(self, code: str, code_verifier: str) -> Session:
        """Trade an OAuth/magic-link code for a session (PKCE flow)."""
        try:
            response = await self._client.post(
                f"{self._base_url}/auth/v1/token",
                params={"grant_type": "pkce"},
                headers={"apikey": self._anon_key},
                json={"auth_code": code, "code_verifier": code_verifier},
            )
        except httpx.HTTPError as exc:
            raise IdentityProviderError(f"Identity provider unreachable: {exc}") from exc

        if response.status_code != 200:
            raise IdentityProviderError(f"Code exchange failed with status {response.status_code}")

        data = _json_object(response, "code exchange")
        if not data.get("access_token"):
            raise IdentityProviderError("Code exchange returned no access token")
        user = data.get("user") or {}
        return Session(
            user_id=str(user.get("id", "")),
            access_token=data["access_token"],
            email=user.get("email"),
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
        )


class UnconfiguredSessionProvider:
    """Stand-in used when no identity provider URL is set: nobody is signed in."""

    @property
    def configured(self) -> bool:
        return False

    async def get_session(self, access_token: str) -> Session | None:
        return None

    async def exchange_code(self, code: str, code_verifier: str) -> Session:
        raise IdentityProviderError("No identity provider configured")


def build_session_provider(settings: Settings, client: httpx.AsyncClient) -> SessionProvider:
    """Pick the session provider for the current configuration."""
    if not settings.supabase_url:
        logger.warning("identity_provider_disabled", reason="SUPABASE_URL not set")
        return UnconfiguredSessionProvider()
    return SupabaseSessionProvider(
        settings.supabase_url,
        settings.supabase_anon_key.get_secret_value(),
        client,
    )


def safe_redirect_path(target: str | None) -> str:
    """Keep post-login redirects on this site: relative paths only."""
    if not target or not target.startswith("/") or target.startswith("//") or "\\" in target:
        return "/"
    return target


class AuthGate:
    """Allow/deny decision for one request."""

    def __init__(self, session: Session | None, login_path: str = "/login") -> None:
        self._session = session
        self._login_path = login_path

    @classmethod
    async def from_cookies(
        cls,
        cookies: Mapping[str, str],
        provider: SessionProvider,
        *,
        cookie_name: str,
        login_path: str = "/login",
    ) -> "AuthGate":
        """Resolve zero-or-one session from a cookie mapping."""
        raw = cookies.get(cookie_name)
        token = extract_access_token(raw) if raw else None
        if token is None:
            return cls(None, login_path)
        session = await provider.get_session(token)
        if session is None:
            logger.info("session_rejected", cookie=cookie_name)
        return cls(session, login_path)

    @property
    def session(self) -> Session | None:
        return self._session

    def is_authenticated(self) -> bool:
        return self._session is not None

    def current_user_id(self) -> str | None:
        return self._session.user_id if self._session else None

    def require_session(self) -> Result[Session]:
        """API-route branch: the session, or an AUTHORIZATION error (401)."""
        if self._session is None:
            return Err(AppError(kind=ErrorKind.AUTHORIZATION, error="Authentication required"))
        return Ok(self._session)

    def login_redirect(self, path: str) -> RedirectResponse:
        """Page-route branch: send the browser to login, then back to ``path``."""
        query = urlencode({"redirect": safe_redirect_path(path)})
        return RedirectResponse(f"{self._login_path}?{query}", status_code=307)

    def guard_page(self, path: str) -> RedirectResponse | None:
        """``None`` when the page may render, otherwise the login redirect."""
        if self.is_authenticated():
            return None
        return self.login_redirect(path)
