# ─────────────────────────────────────────────────────────────────────────────
# Test Fixtures — shared across all tests
# ─────────────────────────────────────────────────────────────────────────────

import os

# Set env BEFORE importing yogaflow modules (get_settings is cached).
os.environ["GENERATION_BACKEND"] = "template"
os.environ["SUPABASE_URL"] = ""
os.environ["ENABLE_DEBUG_ROUTES"] = "true"
os.environ["GENERATION_RATE_LIMIT"] = "1000/minute"
os.environ["LOG_JSON"] = "false"

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from support import VALID_TOKEN, FakeSessionProvider, RecordingBackend, build_app
from yogaflow.config import Settings
from yogaflow.rate_limit import limiter
from yogaflow.services.generation import SequenceGenerator


@pytest.fixture(autouse=True)
def _reset_rate_limits() -> None:
    limiter.reset()


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing: template backend, no identity provider."""
    return Settings(
        generation_backend="template",
        supabase_url="",
        enable_debug_routes=True,
        log_json=False,
        log_level="DEBUG",
    )


@pytest.fixture
def session_provider() -> FakeSessionProvider:
    return FakeSessionProvider()


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def generator(backend: RecordingBackend, test_settings: Settings) -> SequenceGenerator:
    return SequenceGenerator(backend, test_settings)


@pytest.fixture
def valid_params() -> dict:
    return {
        "duration": 30,
        "difficulty": "intermediate",
        "style": "vinyasa",
        "focus": "full body",
    }


@pytest.fixture
def auth_cookie() -> dict[str, str]:
    return {"Cookie": f"sb-access-token={VALID_TOKEN}"}


@pytest.fixture
async def client(
    backend: RecordingBackend,
    session_provider: FakeSessionProvider,
    test_settings: Settings,
) -> AsyncIterator[AsyncClient]:
    """httpx AsyncClient against the app wired with the recording backend."""
    app = build_app(backend, session_provider, test_settings)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
