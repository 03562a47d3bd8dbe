# ─────────────────────────────────────────────────────────────────────────────
# Tests — SequenceGenerator orchestration and result checks
# ─────────────────────────────────────────────────────────────────────────────

from datetime import datetime, timezone

import pytest

from support import FailingBackend
from yogaflow.backends.base import GenerationRequest
from yogaflow.backends.template import CATALOG, TemplateBackend
from yogaflow.exceptions import (
    BackendError,
    BackendUnauthorizedError,
    BackendUserNotFoundError,
    Err,
    ErrorKind,
    Ok,
    status_for,
)
from yogaflow.schemas import (
    DIFFICULTIES,
    MAX_STRUCTURE_PHASES,
    PHASE_TYPES,
    PeakPose,
    Pose,
    Sequence,
    SequenceParams,
    SequencePhase,
    SequencePose,
    SimpleSequenceParams,
    StructureParams,
)
from yogaflow.services.generation import SequenceGenerator, classify_backend_error


def _params(**overrides) -> SequenceParams:
    values = {"duration": 30, "difficulty": "intermediate", "style": "vinyasa", "focus": "full body"}
    values.update(overrides)
    return SequenceParams(**values)


def _pose(position: int, seconds: int = 60) -> SequencePose:
    return SequencePose(
        id=f"sp{position}",
        pose_id="mountain",
        name="Mountain Pose",
        position=position,
        duration_seconds=seconds,
    )


def _phase(position: int, poses: list[SequencePose]) -> SequencePhase:
    return SequencePhase(
        id=f"ph{position}", name=f"Phase {position}", phase_type="building", position=position, poses=poses
    )


def _sequence(phases: list[SequencePhase], **overrides) -> Sequence:
    values = {
        "id": "seq-1",
        "name": "Test flow",
        "duration_minutes": 30,
        "difficulty": "intermediate",
        "style": "vinyasa",
        "focus": "full body",
        "phases": phases,
        "created_at": datetime.now(timezone.utc),
    }
    values.update(overrides)
    return Sequence(**values)


class StaticBackend:
    """Returns canned results regardless of the request."""

    name = "static"

    def __init__(self, sequence: Sequence | None = None, structure: list | None = None) -> None:
        self._sequence = sequence
        self._structure = structure

    async def generate(self, request):
        return self._sequence

    async def generate_structure(self, request):
        return self._structure

    async def fill_structure(self, request, structure):
        return self._sequence


class TestGenerateSequence:
    """Full generation through the template backend."""

    @pytest.mark.asyncio
    async def test_success_matches_request(self, generator):
        result = await generator.generate_sequence(_params())
        assert isinstance(result, Ok)
        sequence = result.value
        assert sequence.difficulty == "intermediate"
        assert sequence.style == "vinyasa"
        assert sequence.focus == "full body"
        assert sequence.structure_only is False
        assert sequence.phases
        assert all(phase.poses for phase in sequence.phases)

    @pytest.mark.asyncio
    async def test_phases_and_poses_are_in_position_order(self, generator):
        result = await generator.generate_sequence(_params(duration=62.5, style="hatha"))
        assert isinstance(result, Ok)
        phase_positions = [phase.position for phase in result.value.phases]
        assert phase_positions == sorted(phase_positions)
        pose_positions = [pose.position for phase in result.value.phases for pose in phase.poses]
        assert pose_positions == sorted(pose_positions)
        assert len(set(pose_positions)) == len(pose_positions)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("style", ["vinyasa", "hatha", "yin", "power", "restorative"])
    async def test_hold_times_add_up_to_duration(self, generator, style):
        result = await generator.generate_sequence(_params(style=style, duration=45))
        assert isinstance(result, Ok)
        total = sum(pose.duration_seconds for phase in result.value.phases for pose in phase.poses)
        assert total == 45 * 60

    @pytest.mark.asyncio
    async def test_peak_pose_closes_the_peak_phase(self, generator):
        peak = PeakPose(id="crow", name="Crow Pose", sanskrit_name="Bakasana")
        result = await generator.generate_sequence(_params(style="yin", peak_pose=peak))
        assert isinstance(result, Ok)
        peak_phases = [phase for phase in result.value.phases if phase.phase_type == "peak"]
        assert len(peak_phases) == 1
        assert peak_phases[0].poses[-1].pose_id == "crow"

    @pytest.mark.asyncio
    async def test_simple_params_have_no_peak_pose(self, backend, generator):
        params = SimpleSequenceParams(
            duration=20, difficulty="beginner", style="restorative", focus="flexibility"
        )
        result = await generator.generate_sequence(params)
        assert isinstance(result, Ok)
        assert backend.requests[0].peak_pose is None

    @pytest.mark.asyncio
    async def test_user_id_is_passed_to_backend_and_result(self, backend, generator):
        result = await generator.generate_sequence(_params(), user_id="user-9")
        assert isinstance(result, Ok)
        assert backend.requests[0].user_id == "user-9"
        assert result.value.user_id == "user-9"

    @pytest.mark.asyncio
    async def test_one_backend_call_per_request(self, backend, generator):
        await generator.generate_sequence(_params())
        assert backend.calls == ["generate"]

    def test_target_pose_count_follows_style(self, generator):
        assert generator.shape_request(_params(style="vinyasa", duration=30)).target_pose_count == 40
        assert generator.shape_request(_params(style="yin", duration=30)).target_pose_count == 6


class TestGenerateStructure:
    """Structure-only generation."""

    @pytest.mark.asyncio
    async def test_structure_has_no_poses(self, backend, generator):
        params = StructureParams(duration=45, difficulty="beginner", style="hatha", focus="core")
        result = await generator.generate_structure(params, user_id="user-1")
        assert isinstance(result, Ok)
        assert result.value
        assert all(phase.poses == [] for phase in result.value)
        assert [p.position for p in result.value] == list(range(len(result.value)))
        assert backend.calls == ["generate_structure"]

    @pytest.mark.asyncio
    async def test_structure_with_poses_is_rejected(self, test_settings):
        backend = StaticBackend(structure=[_phase(0, [_pose(1)])])
        result = await SequenceGenerator(backend, test_settings).generate_structure(_params())
        assert isinstance(result, Err)
        assert result.error.kind is ErrorKind.GENERATION_FAILURE

    @pytest.mark.asyncio
    async def test_unordered_structure_is_sorted(self, test_settings):
        backend = StaticBackend(structure=[_phase(2, []), _phase(0, []), _phase(1, [])])
        result = await SequenceGenerator(backend, test_settings).generate_structure(_params())
        assert isinstance(result, Ok)
        assert [p.position for p in result.value] == [0, 1, 2]


class TestFillStructure:
    """Elaborating a previewed outline."""

    @pytest.mark.asyncio
    async def test_fill_keeps_outline_phases(self, generator):
        params = StructureParams(duration=30, difficulty="advanced", style="power", focus="balance")
        outline = await generator.generate_structure(params)
        assert isinstance(outline, Ok)

        result = await generator.fill_structure(params, outline.value, user_id="user-1")
        assert isinstance(result, Ok)
        assert [p.id for p in result.value.phases] == [p.id for p in outline.value]
        assert all(phase.poses for phase in result.value.phases)
        assert result.value.user_id == "user-1"


class TestBackendFailures:
    """Backend exceptions are classified, never raised to the caller."""

    @pytest.mark.asyncio
    async def test_unauthenticated_backend_is_401(self, test_settings):
        generator = SequenceGenerator(FailingBackend(BackendUnauthorizedError()), test_settings)
        result = await generator.generate_sequence(_params())
        assert isinstance(result, Err)
        assert result.error.kind is ErrorKind.AUTHORIZATION
        assert status_for(result.error) == 401
        assert result.error.error == "Authentication required"
        assert "sign in" in result.error.message

    @pytest.mark.asyncio
    async def test_missing_user_record_is_403(self, test_settings):
        generator = SequenceGenerator(FailingBackend(BackendUserNotFoundError()), test_settings)
        result = await generator.generate_structure(_params())
        assert isinstance(result, Err)
        assert status_for(result.error) == 403
        assert result.error.error == "User account issue"

    @pytest.mark.asyncio
    async def test_backend_error_is_generation_failure(self, test_settings):
        generator = SequenceGenerator(FailingBackend(BackendError("model timed out")), test_settings)
        result = await generator.generate_sequence(_params())
        assert isinstance(result, Err)
        assert result.error.kind is ErrorKind.GENERATION_FAILURE
        assert status_for(result.error) == 500
        assert result.error.error == "Sequence generation failed"
        assert result.error.message == "model timed out"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_generation_failure(self, test_settings):
        backend = FailingBackend(RuntimeError("boom"))
        result = await SequenceGenerator(backend, test_settings).generate_sequence(_params())
        assert isinstance(result, Err)
        assert result.error.kind is ErrorKind.GENERATION_FAILURE
        assert result.error.message == "boom"
        assert backend.calls == ["generate"]

    def test_empty_message_gets_a_default(self):
        error = classify_backend_error(RuntimeError())
        assert error.message == "An unexpected error occurred"


class TestInconsistentResults:
    """Partial or mismatched backend output becomes GENERATION_FAILURE."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "sequence",
        [
            _sequence([]),
            _sequence([_phase(0, [])]),
            _sequence([_phase(0, [_pose(1, 1800)])], style="yin"),
            _sequence([_phase(0, [_pose(1, 900)]), _phase(0, [_pose(2, 900)])]),
            _sequence([_phase(0, [_pose(1, 900), _pose(1, 900)])]),
            _sequence([_phase(0, [_pose(1, 10)])]),
        ],
        ids=["no-phases", "empty-phase", "wrong-style", "dup-phase", "dup-pose", "too-short"],
    )
    async def test_rejected(self, test_settings, sequence):
        result = await SequenceGenerator(StaticBackend(sequence), test_settings).generate_sequence(_params())
        assert isinstance(result, Err)
        assert result.error.kind is ErrorKind.GENERATION_FAILURE
        assert result.error.message.startswith("Inconsistent result")

    @pytest.mark.asyncio
    async def test_poses_within_tolerance_are_sorted(self, test_settings):
        sequence = _sequence(
            [
                _phase(1, [_pose(4, 600), _pose(3, 600)]),
                _phase(0, [_pose(2, 300), _pose(1, 300)]),
            ]
        )
        result = await SequenceGenerator(StaticBackend(sequence), test_settings).generate_sequence(_params())
        assert isinstance(result, Ok)
        assert [p.position for p in result.value.phases] == [0, 1]
        assert [pose.position for pose in result.value.phases[0].poses] == [1, 2]
        assert [pose.position for pose in result.value.phases[1].poses] == [3, 4]


class TestGenerationRequest:
    """Tests for GenerationRequest."""

    def test_peak_pose_absent_for_simple_params(self):
        params = SimpleSequenceParams(duration=10, difficulty="beginner", style="yin", focus="core")
        assert GenerationRequest(params=params, target_pose_count=5).peak_pose is None


class TestTemplateBackend:
    """Tests for TemplateBackend."""

    @pytest.mark.asyncio
    async def test_same_request_same_poses(self):
        backend = TemplateBackend()
        request = GenerationRequest(params=_params(), target_pose_count=12)
        first = await backend.generate(request)
        second = await backend.generate(request)
        assert [[p.pose_id for p in phase.poses] for phase in first.phases] == [
            [p.pose_id for p in phase.poses] for phase in second.phases
        ]
    @pytest.mark.asyncio
    async def test_longest_outline_keeps_a_pose_in_every_phase(self):
        # One-minute class, twelve phases, one of them claiming nearly all the time.
        structure = [
            SequencePhase(
                id=f"ph{i}",
                name=f"Phase {i}",
                phase_type=PHASE_TYPES[i % len(PHASE_TYPES)],
                position=i,
                duration_minutes=90 if i == 0 else 0.01,
            )
            for i in range(MAX_STRUCTURE_PHASES)
        ]
        params = StructureParams(duration=1, difficulty="beginner", style="yin", focus="core")
        request = GenerationRequest(params=params, target_pose_count=5)
        sequence = await TemplateBackend().fill_structure(request, structure)
        assert len(sequence.phases) == MAX_STRUCTURE_PHASES
        assert all(phase.poses for phase in sequence.phases)
        assert sum(p.duration_seconds for phase in sequence.phases for p in phase.poses) == 60

    def test_catalog_entries_are_pose_records(self):
        for phase_type, poses in CATALOG.items():
            assert phase_type in PHASE_TYPES
            for pose in poses:
                assert isinstance(pose, Pose)
                assert pose.category == phase_type
                assert pose.difficulty in DIFFICULTIES

    @pytest.mark.asyncio
    async def test_one_sided_poses_are_held_on_both_sides(self):
        request = GenerationRequest(params=_params(difficulty="advanced"), target_pose_count=40)
        sequence = await TemplateBackend().generate(request)
        sides = {p.pose_id: p.side for phase in sequence.phases for p in phase.poses}
        assert sides["warrior-2"] == "both"
        assert sides["chair"] == "none"
