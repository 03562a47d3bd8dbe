# ─────────────────────────────────────────────────────────────────────────────
# Debug Routes — for development and prompt debugging
# ─────────────────────────────────────────────────────────────────────────────
# Only mounted when settings.enable_debug_routes is True.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from yogaflow.config import Settings
from yogaflow.dependencies import get_sequence_generator, get_settings_dep
from yogaflow.exceptions import Err, error_response
from yogaflow.pipeline.prompt_templates import (
    build_sequence_prompt,
    build_structure_prompt,
    load_guidelines,
)
from yogaflow.schemas import SequenceParams
from yogaflow.services.generation import SequenceGenerator
from yogaflow.validation import decode_json_body, validate_params

router = APIRouter()


@router.get("/api/debug")
async def debug_status(
    generator: SequenceGenerator = Depends(get_sequence_generator),
) -> dict:
    """Confirm the API is reachable and report which backend is wired."""
    return {
        "status": "ok",
        "message": "Debug endpoint is working",
        "backend": generator.backend_name,
    }


@router.post("/api/debug")
async def debug_echo(request: Request) -> JSONResponse:
    """Echo a JSON body back; 400 when it does not decode."""
    body = await decode_json_body(request)
    if isinstance(body, Err):
        return error_response(body.error)
    return JSONResponse(
        {
            "status": "ok",
            "message": "Debug endpoint received POST request",
            "receivedData": body.value,
        }
    )


@router.post("/api/debug/prompt")
async def debug_prompt(
    request: Request,
    generator: SequenceGenerator = Depends(get_sequence_generator),
    settings: Settings = Depends(get_settings_dep),
) -> JSONResponse:
    """Render the prompts an AI backend would receive for these parameters.

    Nothing is sent to the backend.
    """
    body = await decode_json_body(request)
    if isinstance(body, Err):
        return error_response(body.error)
    params = validate_params(body.value, SequenceParams)
    if isinstance(params, Err):
        return error_response(params.error)

    shaped = generator.shape_request(params.value)
    return JSONResponse(
        {
            "target_pose_count": shaped.target_pose_count,
            "sequence_prompt": build_sequence_prompt(shaped, load_guidelines(settings.guidelines_path)),
            "structure_prompt": build_structure_prompt(shaped),
        }
    )
