# ─────────────────────────────────────────────────────────────────────────────
# Pydantic schemas — request parameters, sequence model, response envelopes
# ─────────────────────────────────────────────────────────────────────────────
# Wire names stay camelCase where clients already send them (additionalNotes,
# peakPose, structureOnly); Python attributes are snake_case via aliases.
# Serialize with model_dump(by_alias=True) to keep the wire names.
# ─────────────────────────────────────────────────────────────────────────────


from datetime import datetime
from typing import Annotated, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ── Closed enumerations ──────────────────────────────────────────────────────

Difficulty = Literal["beginner", "intermediate", "advanced"]
Style = Literal["vinyasa", "hatha", "yin", "power", "restorative"]
Focus = Literal["full body", "upper body", "lower body", "core", "balance", "flexibility"]
PhaseType = Literal["centering", "warm_up", "building", "peak", "cool_down", "closing"]
Side = Literal["left", "right", "both", "none"]

DIFFICULTIES: tuple[str, ...] = get_args(Difficulty)
STYLES: tuple[str, ...] = get_args(Style)
FOCUSES: tuple[str, ...] = get_args(Focus)
PHASE_TYPES: tuple[str, ...] = get_args(PhaseType)

# Longest outline fill-poses accepts; a phase type may repeat once.
MAX_STRUCTURE_PHASES = 2 * len(PHASE_TYPES)

# Numbers only: "30" is rejected rather than coerced.
Minutes = Annotated[float, Field(ge=5, le=90, strict=True, allow_inf_nan=False)]
WholeMinutes = Annotated[int, Field(gt=0, le=90, strict=True)]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── Request parameters ───────────────────────────────────────────────────────


class PeakPose(_WireModel):
    """Target pose the generated sequence should build toward."""

    id: str
    name: str
    sanskrit_name: str | None = None


class SequenceParams(_WireModel):
    """Parameters accepted by the public full-generation route."""

    duration: Minutes
    difficulty: Difficulty
    style: Style
    focus: Focus
    additional_notes: str | None = Field(default=None, alias="additionalNotes")
    peak_pose: PeakPose | None = Field(default=None, alias="peakPose")


class SimpleSequenceParams(_WireModel):
    """Parameters accepted by the open, simple generation route (no peak pose)."""

    duration: Minutes
    difficulty: Difficulty
    style: Style
    focus: Focus
    additional_notes: str | None = Field(default=None, alias="additionalNotes")


class StructureParams(_WireModel):
    """Parameters accepted by the structure and fill-poses routes.

    Duration is whole minutes here, matching what the structure preview UI
    sends.
    """

    duration: WholeMinutes
    difficulty: Difficulty
    style: Style
    focus: Focus
    additional_notes: str | None = Field(default=None, alias="additionalNotes")
    peak_pose: PeakPose | None = Field(default=None, alias="peakPose")


AnyParams = SequenceParams | SimpleSequenceParams | StructureParams


# ── Sequence model ───────────────────────────────────────────────────────────


class Pose(_WireModel):
    """Catalog pose. Read-only from this service's point of view."""

    id: str
    name: str
    sanskrit_name: str | None = None
    description: str | None = None
    difficulty: Difficulty | None = None
    category: str | None = None
    duration_seconds: int | None = None
    image_url: str | None = None


class SequencePose(_WireModel):
    """A pose placed inside a phase."""

    id: str
    pose_id: str
    name: str
    sanskrit_name: str | None = None
    position: int = Field(ge=0)
    duration_seconds: int = Field(gt=0)
    side: Side | None = None
    cues: str | None = None
    transition: str | None = None
    breath_cue: str | None = None
    modifications: list[str] = Field(default_factory=list)
    image_url: str | None = None


class SequencePhase(_WireModel):
    """Named, ordered segment of a sequence. Owns its poses."""

    id: str
    name: str
    phase_type: PhaseType
    position: int = Field(ge=0)
    description: str | None = None
    duration_minutes: float | None = Field(default=None, ge=0)
    poses: list[SequencePose] = Field(default_factory=list)


class Sequence(_WireModel):
    """Top-level practice plan."""

    id: str
    name: str
    description: str | None = None
    duration_minutes: float
    difficulty: Difficulty
    style: Style
    focus: Focus
    phases: list[SequencePhase]
    created_at: datetime
    updated_at: datetime | None = None
    user_id: str | None = None
    is_favorite: bool = False
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None
    structure_only: bool = Field(default=False, alias="structureOnly")


class FillPosesRequest(_WireModel):
    """Body of the fill-poses route: a previewed structure plus its params."""

    structure: list[SequencePhase] = Field(min_length=1, max_length=MAX_STRUCTURE_PHASES)
    params: StructureParams

    @field_validator("structure")
    @classmethod
    def _ordered_phases(cls, phases: list[SequencePhase]) -> list[SequencePhase]:
        positions = [phase.position for phase in phases]
        if len(set(positions)) != len(positions):
            raise ValueError("phase positions must be unique")
        return sorted(phases, key=lambda phase: phase.position)


# ── Response envelopes ───────────────────────────────────────────────────────


class SequenceEnvelope(_WireModel):
    sequence: Sequence


class StructureEnvelope(_WireModel):
    structure: list[SequencePhase]


class ErrorBody(BaseModel):
    error: str
    message: str | None = None
    details: dict[str, list[str]] | None = None


class LivenessResponse(BaseModel):
    status: str


class ReadinessResponse(BaseModel):
    status: str
    backend: str
    identity_provider_configured: bool
