# ─────────────────────────────────────────────────────────────────────────────
# OpenAI backend — sequence generation via chat completions
# ─────────────────────────────────────────────────────────────────────────────
# The model answers in JSON (see prompt_templates). Replies are parsed into
# loose "draft" models first, then converted into the public Sequence model
# with server-assigned ids and positions. Anything unparsable is a
# BackendError; the orchestrator maps it to GENERATION_FAILURE.
# ─────────────────────────────────────────────────────────────────────────────


import json
import re
import uuid
from datetime import datetime, timezone

import structlog
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, Field, ValidationError

from yogaflow.backends.base import GenerationRequest
from yogaflow.exceptions import BackendError
from yogaflow.pipeline.prompt_templates import (
    SYSTEM_MESSAGE,
    build_fill_prompt,
    build_sequence_prompt,
    build_structure_prompt,
)
from yogaflow.schemas import PhaseType, Sequence, SequencePhase, SequencePose, Side

logger = structlog.get_logger(__name__)

_FENCED = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_BRACED = re.compile(r"\{[\s\S]*\}")
_SLUG = re.compile(r"[^a-z0-9]+")


# ── Draft models (what the model is asked to return) ─────────────────────────


class _DraftPose(BaseModel):
    name: str
    sanskrit_name: str | None = None
    duration_seconds: int = Field(gt=0)
    side: Side | None = None
    cues: str | None = None
    transition: str | None = None
    breath_cue: str | None = None
    modifications: list[str] = Field(default_factory=list)


class _DraftPhase(BaseModel):
    name: str
    phase_type: PhaseType
    description: str | None = None
    duration_minutes: float | None = Field(default=None, ge=0)
    poses: list[_DraftPose] = Field(default_factory=list)


class _DraftSequence(BaseModel):
    name: str
    description: str | None = None
    phases: list[_DraftPhase] = Field(min_length=1)


class _DraftStructure(BaseModel):
    phases: list[_DraftPhase] = Field(min_length=1)


def extract_json(content: str) -> dict:
    """Pull the JSON object out of a reply, tolerating markdown fences."""
    fenced = _FENCED.search(content)
    if fenced:
        text = fenced.group(1)
    else:
        braced = _BRACED.search(content)
        text = braced.group(0) if braced else content
    try:
        decoded = json.loads(text)
    except ValueError as exc:
        raise BackendError(f"Failed to parse sequence: {exc}") from exc
    if not isinstance(decoded, dict):
        raise BackendError("Failed to parse sequence: reply is not a JSON object")
    return decoded


def _slug(name: str) -> str:
    return _SLUG.sub("-", name.lower()).strip("-") or "pose"


class OpenAIBackend:
    """Chat-completion backend. One request per operation, no retries."""

    name = "openai"

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens: int = 4000,
        guidelines: str = "",
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._guidelines = guidelines

    async def generate(self, request: GenerationRequest) -> Sequence:
        prompt = build_sequence_prompt(request, self._guidelines)
        draft = self._parse(await self._complete(prompt), _DraftSequence)
        return self._to_sequence(request, draft)

    async def generate_structure(self, request: GenerationRequest) -> list[SequencePhase]:
        prompt = build_structure_prompt(request)
        draft = self._parse(await self._complete(prompt), _DraftStructure)
        return [
            SequencePhase(
                id=str(uuid.uuid4()),
                name=phase.name,
                phase_type=phase.phase_type,
                position=index,
                description=phase.description,
                duration_minutes=phase.duration_minutes,
            )
            for index, phase in enumerate(draft.phases)
        ]

    async def fill_structure(
        self, request: GenerationRequest, structure: list[SequencePhase]
    ) -> Sequence:
        prompt = build_fill_prompt(request, structure, self._guidelines)
        draft = self._parse(await self._complete(prompt), _DraftSequence)
        if len(draft.phases) != len(structure):
            raise BackendError(
                f"Filled sequence has {len(draft.phases)} phases, outline had {len(structure)}"
            )
        sequence = self._to_sequence(request, draft)
        # Keep the outline's identity so the client can match phases up.
        phases = [
            filled.model_copy(
                update={
                    "id": outline.id,
                    "name": outline.name,
                    "phase_type": outline.phase_type,
                    "position": outline.position,
                }
            )
            for filled, outline in zip(sequence.phases, structure)
        ]
        return sequence.model_copy(update={"phases": phases})

    async def aclose(self) -> None:
        await self._client.close()

    # ── internals ────────────────────────────────────────────────────────

    async def _complete(self, prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_MESSAGE},
                    {"role": "user", "content": prompt},
                ],
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            raise BackendError(f"Error generating sequence: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise BackendError("Failed to generate sequence content")
        usage = getattr(response, "usage", None)
        logger.info(
            "openai_completion",
            model=self._model,
            total_tokens=getattr(usage, "total_tokens", None),
        )
        return content

    @staticmethod
    def _parse(content: str, model: type[BaseModel]):
        try:
            return model.model_validate(extract_json(content))
        except ValidationError as exc:
            logger.warning("openai_reply_invalid", errors=exc.error_count())
            raise BackendError(f"Failed to parse sequence: {exc.error_count()} invalid fields") from exc

    def _to_sequence(self, request: GenerationRequest, draft: _DraftSequence) -> Sequence:
        params = request.params
        peak = request.peak_pose
        position = 1
        phases: list[SequencePhase] = []
        for index, phase in enumerate(draft.phases):
            poses = []
            for pose in phase.poses:
                pose_id = _slug(pose.name)
                if peak is not None and pose.name.strip().lower() == peak.name.strip().lower():
                    pose_id = peak.id
                poses.append(
                    SequencePose(
                        id=str(uuid.uuid4()),
                        pose_id=pose_id,
                        position=position,
                        **pose.model_dump(),
                    )
                )
                position += 1
            phases.append(
                SequencePhase(
                    id=str(uuid.uuid4()),
                    name=phase.name,
                    phase_type=phase.phase_type,
                    position=index,
                    description=phase.description,
                    duration_minutes=phase.duration_minutes,
                    poses=poses,
                )
            )

        now = datetime.now(timezone.utc)
        return Sequence(
            id=str(uuid.uuid4()),
            name=draft.name,
            description=draft.description,
            duration_minutes=params.duration,
            difficulty=params.difficulty,
            style=params.style,
            focus=params.focus,
            phases=phases,
            created_at=now,
            updated_at=now,
            user_id=request.user_id,
            notes=params.additional_notes,
        )
