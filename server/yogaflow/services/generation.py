# ─────────────────────────────────────────────────────────────────────────────
# Sequence Generator — generation orchestration between routes and backend
# ─────────────────────────────────────────────────────────────────────────────
# Endpoints delegate here. This owns:
#   - Shaping one GenerationRequest from validated params
#   - The single outbound backend call (no retries, no persistence)
#   - Classifying backend failures into AppError values
#   - Rejecting incomplete or inconsistent backend results
# ─────────────────────────────────────────────────────────────────────────────


import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from opentelemetry import trace

from yogaflow.backends.base import GenerationBackend, GenerationRequest
from yogaflow.config import Settings
from yogaflow.exceptions import AppError, Err, ErrorKind, Ok, Result, YogaFlowError
from yogaflow.pipeline.prompt_templates import calculate_target_pose_count
from yogaflow.schemas import AnyParams, Sequence, SequencePhase, StructureParams

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")


class InconsistentResultError(Exception):
    """The backend answered, but with something this service will not return."""


def _generation_failure(message: str) -> AppError:
    return AppError(
        kind=ErrorKind.GENERATION_FAILURE,
        error="Sequence generation failed",
        message=message or "An unexpected error occurred",
    )


def classify_backend_error(exc: Exception) -> AppError:
    """Map a backend exception onto the error taxonomy."""
    if isinstance(exc, YogaFlowError) and exc.kind is ErrorKind.AUTHORIZATION:
        if exc.status_code == 403:
            return AppError(
                kind=ErrorKind.AUTHORIZATION,
                error="User account issue",
                message="Your user account is not properly set up. Please contact support.",
                status_code=403,
            )
        return AppError(
            kind=ErrorKind.AUTHORIZATION,
            error="Authentication required",
            message="Please sign in or create an account to generate sequences.",
        )
    if isinstance(exc, YogaFlowError):
        return _generation_failure(exc.message)
    return _generation_failure(str(exc))


def check_sequence(sequence: Sequence, params: AnyParams, tolerance: float) -> Sequence:
    """Validate a full sequence and return it with phases/poses in position order.

    Raises InconsistentResultError when the result is partial or does not
    match the request.
    """
    if not sequence.phases:
        raise InconsistentResultError("sequence has no phases")
    for field in ("difficulty", "style", "focus"):
        if getattr(sequence, field) != getattr(params, field):
            raise InconsistentResultError(f"sequence {field} does not match the request")

    _require_unique([phase.position for phase in sequence.phases], "phase positions")
    phases = []
    total_seconds = 0
    for phase in sorted(sequence.phases, key=lambda p: p.position):
        if not phase.poses:
            raise InconsistentResultError(f"phase '{phase.name}' has no poses")
        _require_unique([pose.position for pose in phase.poses], f"pose positions in '{phase.name}'")
        poses = sorted(phase.poses, key=lambda p: p.position)
        total_seconds += sum(pose.duration_seconds for pose in poses)
        phases.append(phase.model_copy(update={"poses": poses}))

    requested = params.duration * 60
    if abs(total_seconds - requested) > requested * tolerance:
        raise InconsistentResultError(
            f"poses total {total_seconds}s for a {requested:g}s class"
        )
    return sequence.model_copy(update={"phases": phases, "structure_only": False})


def check_structure(phases: list[SequencePhase]) -> list[SequencePhase]:
    """Validate a structure-only result and return it in position order."""
    if not phases:
        raise InconsistentResultError("structure has no phases")
    _require_unique([phase.position for phase in phases], "phase positions")
    for phase in phases:
        if phase.poses:
            raise InconsistentResultError(f"structure phase '{phase.name}' carries poses")
    return sorted(phases, key=lambda p: p.position)


def _require_unique(positions: list[int], what: str) -> None:
    if len(set(positions)) != len(positions):
        raise InconsistentResultError(f"duplicate {what}")


class SequenceGenerator:
    """Drives the generation backend for the sequence routes.

    Stateless between calls; one instance is created in the lifespan and
    shared by all requests.
    """

    def __init__(self, backend: GenerationBackend, settings: Settings) -> None:
        self._backend = backend
        self._settings = settings

    @property
    def backend_name(self) -> str:
        return self._backend.name

    def shape_request(self, params: AnyParams, user_id: str | None = None) -> GenerationRequest:
        return GenerationRequest(
            params=params,
            target_pose_count=calculate_target_pose_count(params.style, params.duration),
            user_id=user_id,
        )

    async def generate_sequence(
        self, params: AnyParams, user_id: str | None = None
    ) -> Result[Sequence]:
        """Full sequence: every phase populated with poses."""
        request = self.shape_request(params, user_id)
        return await self._run(
            "generate_sequence",
            request,
            lambda: self._backend.generate(request),
            lambda sequence: self._finish(sequence, request),
        )

    async def generate_structure(
        self, params: AnyParams, user_id: str | None = None
    ) -> Result[list[SequencePhase]]:
        """Phase outline only. A separate backend call, not a trimmed full result."""
        request = self.shape_request(params, user_id)
        return await self._run(
            "generate_structure",
            request,
            lambda: self._backend.generate_structure(request),
            check_structure,
        )

    async def fill_structure(
        self,
        params: StructureParams,
        structure: list[SequencePhase],
        user_id: str | None = None,
    ) -> Result[Sequence]:
        """Elaborate a previewed outline into a full sequence."""
        request = self.shape_request(params, user_id)
        return await self._run(
            "fill_structure",
            request,
            lambda: self._backend.fill_structure(request, structure),
            lambda sequence: self._finish(sequence, request),
        )

    # ── internals ────────────────────────────────────────────────────────

    def _finish(self, sequence: Sequence, request: GenerationRequest) -> Sequence:
        checked = check_sequence(sequence, request.params, self._settings.duration_tolerance)
        if checked.user_id is None and request.user_id is not None:
            checked = checked.model_copy(update={"user_id": request.user_id})
        return checked

    async def _run(
        self,
        operation: str,
        request: GenerationRequest,
        call: Callable[[], Awaitable[T]],
        check: Callable[[T], T],
    ) -> Result[T]:
        params = request.params
        log = logger.bind(
            operation=operation,
            backend=self._backend.name,
            style=params.style,
            difficulty=params.difficulty,
            duration=params.duration,
        )
        with tracer.start_as_current_span(operation) as span:
            span.set_attribute("backend", self._backend.name)
            span.set_attribute("style", params.style)
            span.set_attribute("peak_pose", request.peak_pose is not None)
            start = time.perf_counter()

            try:
                raw = await call()
            except Exception as exc:
                error = classify_backend_error(exc)
                span.set_attribute("error_kind", error.kind.value)
                log.error("backend_call_failed", error=str(exc), error_kind=error.kind.value, exc_info=exc)
                return Err(error)

            try:
                result = check(raw)
            except InconsistentResultError as exc:
                span.set_attribute("error_kind", ErrorKind.GENERATION_FAILURE.value)
                log.error("backend_result_inconsistent", reason=str(exc))
                return Err(_generation_failure(f"Inconsistent result: {exc}"))

            elapsed = int((time.perf_counter() - start) * 1000)
            span.set_attribute("latency_ms", elapsed)
            log.info("generation_complete", time_ms=elapsed)
            return Ok(result)
