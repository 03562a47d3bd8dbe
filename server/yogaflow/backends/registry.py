# ─────────────────────────────────────────────────────────────────────────────
# Backend selection — builds the configured GenerationBackend at startup
# ─────────────────────────────────────────────────────────────────────────────


import structlog
from openai import AsyncOpenAI

from yogaflow.backends.base import GenerationBackend
from yogaflow.backends.openai_backend import OpenAIBackend
from yogaflow.backends.template import TemplateBackend
from yogaflow.config import Settings
from yogaflow.pipeline.prompt_templates import load_guidelines

logger = structlog.get_logger(__name__)

BACKEND_NAMES = ("template", "openai")


def build_backend(settings: Settings) -> GenerationBackend:
    """Instantiate the backend named by ``settings.generation_backend``.

    Falls back to the template backend when OpenAI is selected without an
    API key, so a misconfigured dev box still serves requests.
    """
    choice = settings.generation_backend.lower()
    if choice not in BACKEND_NAMES:
        raise ValueError(
            f"Unknown generation backend '{settings.generation_backend}'. "
            f"Available: {', '.join(BACKEND_NAMES)}"
        )

    if choice == "openai":
        api_key = settings.openai_api_key.get_secret_value()
        if api_key:
            client = AsyncOpenAI(
                api_key=api_key,
                timeout=settings.generation_timeout_seconds,
                max_retries=0,
            )
            logger.info("backend_selected", backend="openai", model=settings.openai_model)
            return OpenAIBackend(
                client,
                model=settings.openai_model,
                temperature=settings.openai_temperature,
                max_tokens=settings.openai_max_tokens,
                guidelines=load_guidelines(settings.guidelines_path),
            )
        logger.warning("openai_backend_unavailable", reason="OPENAI_API_KEY not set")

    logger.info("backend_selected", backend="template")
    return TemplateBackend()
