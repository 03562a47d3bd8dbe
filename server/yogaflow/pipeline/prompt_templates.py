# ─────────────────────────────────────────────────────────────────────────────
# Prompt Templates — chat prompts for the AI generation backend
# ─────────────────────────────────────────────────────────────────────────────


import math
from pathlib import Path

import structlog

from yogaflow.backends.base import GenerationRequest
from yogaflow.schemas import SequencePhase

logger = structlog.get_logger(__name__)


SYSTEM_MESSAGE = (
    "You are an experienced yoga teacher who designs safe, well-paced class "
    "sequences. You answer with a single JSON object and nothing else."
)

# ── Style-specific pacing hints ──────────────────────────────────────────────
# Appended after the parameter block to steer hold lengths.

_STYLE_HINTS: dict[str, str] = {
    "vinyasa":     "Link poses breath-to-movement; most holds are 3-5 breaths.",
    "power":       "Keep the pace brisk and strength-focused; short holds, strong transitions.",
    "hatha":       "Hold each pose for 5-8 breaths with clear alignment between poses.",
    "yin":         "Use long passive holds of 3-5 minutes, mostly seated or supine.",
    "restorative": "Use fully supported poses held 5-10 minutes with props.",
}

_DIFFICULTY_WORDS: dict[str, str] = {
    "beginner":     "basic",
    "intermediate": "moderate",
    "advanced":     "challenging",
}

_PHASE_TYPES_LINE = "centering, warm_up, building, peak, cool_down, closing"

_SEQUENCE_SHAPE = """{
  "name": "Name of the sequence",
  "description": "Brief description",
  "phases": [
    {
      "name": "Phase name",
      "phase_type": "one of: %s",
      "description": "What this phase does",
      "poses": [
        {
          "name": "English pose name",
          "sanskrit_name": "Sanskrit name or null",
          "duration_seconds": 30,
          "side": "left | right | both | none",
          "cues": "Alignment cues",
          "transition": "How to move into the next pose",
          "breath_cue": "Breath guidance",
          "modifications": ["Easier or harder variation"]
        }
      ]
    }
  ]
}""" % _PHASE_TYPES_LINE

_STRUCTURE_SHAPE = """{
  "phases": [
    {
      "name": "Phase name",
      "phase_type": "one of: %s",
      "description": "What this phase does",
      "duration_minutes": 5
    }
  ]
}""" % _PHASE_TYPES_LINE


def calculate_target_pose_count(style: str, duration_minutes: float) -> int:
    """Rough number of poses a class of this style and length should hold.

    Slow styles hold few poses for long; flowing styles move through many.
    """
    style = style.lower()
    if style in ("restorative", "yin"):
        return max(5, math.ceil(duration_minutes / 5))
    if style == "hatha":
        return max(8, math.ceil(duration_minutes / 2))
    if style in ("vinyasa", "power"):
        return max(10, math.ceil(duration_minutes / 0.75))
    return max(8, math.ceil(duration_minutes / 1.5))


def difficulty_wording(difficulty: str) -> str:
    return _DIFFICULTY_WORDS.get(difficulty.lower(), "appropriate")


def load_guidelines(path: str) -> str:
    """Teaching guidelines appended to prompts; empty when the file is absent."""
    guidelines = Path(path)
    if not guidelines.is_file():
        logger.debug("guidelines_missing", path=path)
        return ""
    return guidelines.read_text(encoding="utf-8")


def _parameter_block(request: GenerationRequest) -> str:
    params = request.params
    lines = [
        f"- Duration: {_format_minutes(params.duration)} minutes "
        f"({int(params.duration * 60)} seconds in total)",
        f"- Difficulty: {params.difficulty} (use {difficulty_wording(params.difficulty)} variations)",
        f"- Style: {params.style}",
        f"- Focus: {params.focus}",
        f"- Target pose count: about {request.target_pose_count}",
    ]
    if params.additional_notes:
        lines.append(f"- Additional Notes: {params.additional_notes}")
    if request.peak_pose is not None:
        peak = request.peak_pose
        sanskrit = f" ({peak.sanskrit_name})" if peak.sanskrit_name else ""
        lines.append(f"- Peak Pose: {peak.name}{sanskrit}; build the sequence toward it")
    return "\n".join(lines)


def build_sequence_prompt(request: GenerationRequest, guidelines: str = "") -> str:
    """Prompt for a fully elaborated sequence."""
    parts = [
        "Create a yoga sequence with the following parameters:",
        _parameter_block(request),
        _STYLE_HINTS.get(request.params.style, ""),
    ]
    if guidelines:
        parts.append(f"--- YOGA GUIDELINES ---\n{guidelines}\n---")
    parts += [
        "Respond with JSON of exactly this shape:",
        _SEQUENCE_SHAPE,
        "Rules: use only real, established yoga poses; include warm-up and "
        "cool-down; pose durations must add up to the requested duration; "
        "bilateral poses appear once per side.",
    ]
    return "\n\n".join(part for part in parts if part)


def build_structure_prompt(request: GenerationRequest) -> str:
    """Cheaper prompt for the phase outline only, without poses."""
    parts = [
        "Outline the phases of a yoga class with these parameters:",
        _parameter_block(request),
        "Do not list individual poses. Respond with JSON of exactly this shape:",
        _STRUCTURE_SHAPE,
        "Phase durations must add up to the requested duration.",
    ]
    return "\n\n".join(parts)


def build_fill_prompt(
    request: GenerationRequest, structure: list[SequencePhase], guidelines: str = ""
) -> str:
    """Prompt that elaborates an accepted phase outline into poses."""
    outline = "\n".join(
        f"{phase.position + 1}. {phase.name} [{phase.phase_type}]"
        + (f", {_format_minutes(phase.duration_minutes)} min" if phase.duration_minutes else "")
        + (f": {phase.description}" if phase.description else "")
        for phase in structure
    )
    parts = [
        "Fill this class outline with poses, keeping the phases and their order:",
        outline,
        "Class parameters:",
        _parameter_block(request),
    ]
    if guidelines:
        parts.append(f"--- YOGA GUIDELINES ---\n{guidelines}\n---")
    parts += ["Respond with JSON of exactly this shape:", _SEQUENCE_SHAPE]
    return "\n\n".join(parts)


def _format_minutes(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"
