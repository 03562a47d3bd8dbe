# ─────────────────────────────────────────────────────────────────────────────
# Test support — identity provider and backend doubles, app wiring
# ─────────────────────────────────────────────────────────────────────────────

from yogaflow.auth import Session
from yogaflow.backends.base import GenerationRequest
from yogaflow.backends.template import TemplateBackend
from yogaflow.config import Settings
from yogaflow.exceptions import IdentityProviderError
from yogaflow.main import create_app
from yogaflow.schemas import Sequence, SequencePhase
from yogaflow.services.generation import SequenceGenerator

VALID_TOKEN = "valid-token"
USER_ID = "user-123"
GOOD_CODE = "good-code"


class FakeSessionProvider:
    """Identity provider double: knows a fixed set of tokens."""

    configured = True

    def __init__(self, tokens: dict[str, str] | None = None) -> None:
        self._tokens = tokens if tokens is not None else {VALID_TOKEN: USER_ID}
        self.lookups: list[str] = []

    async def get_session(self, access_token: str) -> Session | None:
        self.lookups.append(access_token)
        user_id = self._tokens.get(access_token)
        if user_id is None:
            return None
        return Session(user_id=user_id, access_token=access_token)

    async def exchange_code(self, code: str, code_verifier: str) -> Session:
        if code != GOOD_CODE:
            raise IdentityProviderError("Code exchange failed with status 400")
        return Session(user_id=USER_ID, access_token=VALID_TOKEN, expires_in=3600)


class RecordingBackend:
    """TemplateBackend wrapper that records which operations were called."""

    name = "recording"

    def __init__(self) -> None:
        self._inner = TemplateBackend()
        self.calls: list[str] = []
        self.requests: list[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> Sequence:
        self._record("generate", request)
        return await self._inner.generate(request)

    async def generate_structure(self, request: GenerationRequest) -> list[SequencePhase]:
        self._record("generate_structure", request)
        return await self._inner.generate_structure(request)

    async def fill_structure(
        self, request: GenerationRequest, structure: list[SequencePhase]
    ) -> Sequence:
        self._record("fill_structure", request)
        return await self._inner.fill_structure(request, structure)

    def _record(self, operation: str, request: GenerationRequest) -> None:
        self.calls.append(operation)
        self.requests.append(request)


class FailingBackend:
    """Backend whose every operation raises the given exception."""

    name = "failing"

    def __init__(self, exc: Exception) -> None:
        self._exc = exc
        self.calls: list[str] = []

    async def generate(self, request):
        self.calls.append("generate")
        raise self._exc

    async def generate_structure(self, request):
        self.calls.append("generate_structure")
        raise self._exc

    async def fill_structure(self, request, structure):
        self.calls.append("fill_structure")
        raise self._exc


def build_app(backend, session_provider, settings: Settings):
    """create_app() with app.state filled in by hand.

    ASGITransport does not run the lifespan, so the state it would create
    is set here instead.
    """
    app = create_app()
    app.state.settings = settings
    app.state.session_provider = session_provider
    app.state.sequence_generator = SequenceGenerator(backend, settings)
    return app
