# ─────────────────────────────────────────────────────────────────────────────
# Template backend — deterministic, offline sequence generation
# ─────────────────────────────────────────────────────────────────────────────
# Used when no AI backend is configured and as the backend in tests.
# Same inputs always produce the same phases, poses and hold times (ids and
# timestamps aside). Hold times are sized so the poses add up exactly to the
# requested duration.
# ─────────────────────────────────────────────────────────────────────────────


import uuid
from datetime import datetime, timezone

import structlog

from yogaflow.backends.base import GenerationRequest
from yogaflow.schemas import DIFFICULTIES, FOCUSES, Pose, Sequence, SequencePhase, SequencePose

logger = structlog.get_logger(__name__)


# ── Built-in catalog, grouped by the phase a pose suits ──────────────────────
# (id, name, sanskrit_name, difficulty, held once per side)

_CatalogRow = tuple[str, str, str, str, bool]

_CATALOG_ROWS: dict[str, tuple[_CatalogRow, ...]] = {
    "centering": (
        ("easy-pose", "Easy Pose", "Sukhasana", "beginner", False),
        ("childs-pose", "Child's Pose", "Balasana", "beginner", False),
        ("hero-pose", "Hero Pose", "Virasana", "beginner", False),
    ),
    "warm_up": (
        ("cat-cow", "Cat-Cow", "Marjaryasana-Bitilasana", "beginner", False),
        ("downward-dog", "Downward-Facing Dog", "Adho Mukha Svanasana", "beginner", False),
        ("low-lunge", "Low Lunge", "Anjaneyasana", "beginner", True),
        ("mountain", "Mountain Pose", "Tadasana", "beginner", False),
        ("forward-fold", "Standing Forward Fold", "Uttanasana", "beginner", False),
    ),
    "building": (
        ("warrior-1", "Warrior I", "Virabhadrasana I", "beginner", True),
        ("warrior-2", "Warrior II", "Virabhadrasana II", "beginner", True),
        ("triangle", "Triangle Pose", "Trikonasana", "beginner", True),
        ("chair", "Chair Pose", "Utkatasana", "beginner", False),
        ("tree", "Tree Pose", "Vrksasana", "beginner", True),
        ("boat", "Boat Pose", "Navasana", "intermediate", False),
        ("half-moon", "Half Moon", "Ardha Chandrasana", "intermediate", True),
        ("side-plank", "Side Plank", "Vasisthasana", "intermediate", True),
    ),
    "peak": (
        ("camel", "Camel Pose", "Ustrasana", "intermediate", False),
        ("crow", "Crow Pose", "Bakasana", "intermediate", False),
        ("wheel", "Wheel Pose", "Urdhva Dhanurasana", "advanced", False),
        ("headstand", "Supported Headstand", "Salamba Sirsasana", "advanced", False),
        ("bridge", "Bridge Pose", "Setu Bandha Sarvangasana", "beginner", False),
    ),
    "cool_down": (
        ("seated-forward-bend", "Seated Forward Bend", "Paschimottanasana", "beginner", False),
        ("pigeon", "Pigeon Pose", "Eka Pada Rajakapotasana", "intermediate", True),
        ("supine-twist", "Supine Twist", "Supta Matsyendrasana", "beginner", True),
        ("happy-baby", "Happy Baby", "Ananda Balasana", "beginner", False),
    ),
    "closing": (
        ("savasana", "Corpse Pose", "Savasana", "beginner", False),
        ("legs-up-wall", "Legs Up the Wall", "Viparita Karani", "beginner", False),
    ),
}

CATALOG: dict[str, tuple[Pose, ...]] = {
    phase_type: tuple(
        Pose(id=pose_id, name=name, sanskrit_name=sanskrit, difficulty=difficulty, category=phase_type)
        for pose_id, name, sanskrit, difficulty, _ in rows
    )
    for phase_type, rows in _CATALOG_ROWS.items()
}

_BILATERAL: frozenset[str] = frozenset(
    row[0] for rows in _CATALOG_ROWS.values() for row in rows if row[4]
)

# (phase_type, name, description, share of the class)
_PhasePlan = tuple[tuple[str, str, str, float], ...]

_FLOWING: _PhasePlan = (
    ("centering", "Centering", "Arrive and connect with the breath", 0.08),
    ("warm_up", "Warm-Up", "Mobilize the spine and hips", 0.17),
    ("building", "Standing Flow", "Build heat, strength and balance", 0.35),
    ("peak", "Peak", "Work toward the most demanding shape of the class", 0.15),
    ("cool_down", "Cool Down", "Release with seated and supine stretches", 0.15),
    ("closing", "Final Relaxation", "Integrate the practice", 0.10),
)

_STEADY: _PhasePlan = (
    ("centering", "Centering", "Settle in and find a steady breath", 0.10),
    ("warm_up", "Warm-Up", "Gentle movements to prepare the body", 0.20),
    ("building", "Standing Sequence", "Held standing poses with clear alignment", 0.30),
    ("peak", "Peak", "The focal pose of the class", 0.10),
    ("cool_down", "Floor Sequence", "Seated and reclined poses for flexibility", 0.20),
    ("closing", "Final Relaxation", "Complete relaxation", 0.10),
)

_SLOW: _PhasePlan = (
    ("centering", "Centering", "Breath awareness and arrival", 0.10),
    ("warm_up", "Gentle Opening", "Soft movement before long holds", 0.10),
    ("building", "Long Holds", "Passive, supported holds", 0.50),
    ("cool_down", "Unwinding", "Counter-poses and gentle twists", 0.15),
    ("closing", "Final Relaxation", "Extended rest", 0.15),
)

_PLANS: dict[str, _PhasePlan] = {
    "vinyasa": _FLOWING,
    "power": _FLOWING,
    "hatha": _STEADY,
    "yin": _SLOW,
    "restorative": _SLOW,
}

# Peak phase inserted into slow plans when the caller asks for a peak pose.
_PEAK_INSERT = ("peak", "Peak", "Gently approach the chosen peak pose", 0.10)


def _split(total: int, weights: list[float]) -> list[int]:
    """Split an integer total by weights; parts sum to ``total`` exactly."""
    scale = sum(weights) or 1.0
    parts: list[int] = []
    running = 0.0
    allocated = 0
    for weight in weights:
        running += weight / scale
        upto = round(total * running)
        parts.append(upto - allocated)
        allocated = upto
    return parts


class TemplateBackend:
    """Rule-based backend over a small built-in pose catalog."""

    name = "template"

    async def generate(self, request: GenerationRequest) -> Sequence:
        phases = self._outline(request)
        return self._build_sequence(request, phases)

    async def generate_structure(self, request: GenerationRequest) -> list[SequencePhase]:
        return self._outline(request)

    async def fill_structure(
        self, request: GenerationRequest, structure: list[SequencePhase]
    ) -> Sequence:
        outline = [phase.model_copy(update={"poses": []}) for phase in structure]
        return self._build_sequence(request, outline)

    # ── internals ────────────────────────────────────────────────────────

    def _plan(self, request: GenerationRequest) -> _PhasePlan:
        plan = _PLANS[request.params.style]
        if request.peak_pose is not None and not any(p[0] == "peak" for p in plan):
            # Before the cool-down, shrinking the long-hold block to make room.
            plan = tuple(
                (kind, name, desc, share - _PEAK_INSERT[3] if kind == "building" else share)
                for kind, name, desc, share in plan
            )
            index = next(i for i, p in enumerate(plan) if p[0] == "cool_down")
            plan = plan[:index] + (_PEAK_INSERT,) + plan[index:]
        return plan

    def _outline(self, request: GenerationRequest) -> list[SequencePhase]:
        plan = self._plan(request)
        minutes = request.params.duration
        return [
            SequencePhase(
                id=str(uuid.uuid4()),
                name=name,
                phase_type=kind,
                position=index,
                description=description,
                duration_minutes=round(minutes * share, 2),
            )
            for index, (kind, name, description, share) in enumerate(plan)
        ]

    def _build_sequence(self, request: GenerationRequest, outline: list[SequencePhase]) -> Sequence:
        params = request.params
        total_seconds = round(params.duration * 60)
        weights = [phase.duration_minutes or 1.0 for phase in outline]

        # Every phase gets at least one pose; the rest follow phase length.
        extra = max(request.target_pose_count - len(outline), 0)
        counts = [1 + n for n in _split(extra, weights)]
        # One second reserved per phase so no phase ends up without a pose.
        seconds = [1 + s for s in _split(total_seconds - len(outline), weights)]

        phases: list[SequencePhase] = []
        position = 1
        for phase, count, phase_seconds in zip(outline, counts, seconds):
            picks = self._pick(phase.phase_type, count, request)
            holds = _split(phase_seconds, [1.0] * len(picks))
            poses = []
            for pose, hold in zip(picks, holds):
                if hold <= 0:
                    continue
                poses.append(
                    SequencePose(
                        id=str(uuid.uuid4()),
                        pose_id=pose.id,
                        name=pose.name,
                        sanskrit_name=pose.sanskrit_name,
                        position=position,
                        duration_seconds=hold,
                        side="both" if pose.id in _BILATERAL else "none",
                    )
                )
                position += 1
            phases.append(phase.model_copy(update={"poses": poses}))

        now = datetime.now(timezone.utc)
        duration_label = f"{params.duration:g}"
        logger.debug("template_sequence_built", phases=len(phases), poses=position - 1)
        return Sequence(
            id=str(uuid.uuid4()),
            name=f"{duration_label} min {params.focus} {params.style} sequence",
            description=f"A {params.difficulty} {params.style} sequence focusing on {params.focus}",
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

    def _pick(self, phase_type: str, count: int, request: GenerationRequest) -> list[Pose]:
        params = request.params
        level = DIFFICULTIES.index(params.difficulty)
        pool = [
            pose
            for pose in CATALOG[phase_type]
            if DIFFICULTIES.index(pose.difficulty or "beginner") <= level
        ] or list(CATALOG[phase_type])

        peak = request.peak_pose
        if phase_type == "peak" and peak is not None:
            # The requested peak pose closes the phase; catalog poses lead up to it.
            chosen = Pose(id=peak.id, name=peak.name, sanskrit_name=peak.sanskrit_name)
            lead_in = [self._cycle(pool, i, params.focus) for i in range(count - 1)]
            return lead_in + [chosen]
        return [self._cycle(pool, i, params.focus) for i in range(count)]

    @staticmethod
    def _cycle(pool: list[Pose], index: int, focus: str) -> Pose:
        # Offset by focus so different focuses open with different poses.
        return pool[(index + FOCUSES.index(focus)) % len(pool)]
