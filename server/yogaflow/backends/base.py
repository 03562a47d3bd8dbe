# ─────────────────────────────────────────────────────────────────────────────
# Generation backend interface
# ─────────────────────────────────────────────────────────────────────────────
# The orchestrator talks to backends only through this protocol. Backends
# raise YogaFlowError subclasses (BackendError, BackendUnauthorizedError,
# BackendUserNotFoundError) or let arbitrary exceptions escape; the
# orchestrator classifies both.
# ─────────────────────────────────────────────────────────────────────────────


from dataclasses import dataclass
from typing import Protocol

from yogaflow.schemas import AnyParams, PeakPose, Sequence, SequencePhase


@dataclass(frozen=True)
class GenerationRequest:
    """Outbound request, shaped once from validated parameters."""

    params: AnyParams
    target_pose_count: int
    user_id: str | None = None

    @property
    def peak_pose(self) -> PeakPose | None:
        # SimpleSequenceParams has no peak pose field at all.
        return getattr(self.params, "peak_pose", None)


class GenerationBackend(Protocol):
    name: str

    async def generate(self, request: GenerationRequest) -> Sequence:
        """A fully elaborated sequence."""
        ...

    async def generate_structure(self, request: GenerationRequest) -> list[SequencePhase]:
        """Phase outline only: names, types, order, durations; no poses."""
        ...

    async def fill_structure(
        self, request: GenerationRequest, structure: list[SequencePhase]
    ) -> Sequence:
        """Elaborate a previously generated outline into a full sequence."""
        ...
