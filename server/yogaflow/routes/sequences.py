# ─────────────────────────────────────────────────────────────────────────────
# Sequence generation routes (THIN)
# ─────────────────────────────────────────────────────────────────────────────
# Each route walks the same steps and stops at the first failure:
#   decode body (400) → session (401, protected routes only)
#   → validate (400 + details) → orchestrator (500 / 401 / 403) → success
# The variants are separate contracts on purpose; callers depend on each.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from yogaflow.auth import SessionProvider
from yogaflow.config import Settings
from yogaflow.dependencies import (
    get_sequence_generator,
    get_session_provider,
    get_settings_dep,
    resolve_auth_gate,
)
from yogaflow.exceptions import Err, Ok, error_response
from yogaflow.rate_limit import generation_limit, limiter
from yogaflow.schemas import (
    ErrorBody,
    FillPosesRequest,
    Sequence,
    SequenceEnvelope,
    SequenceParams,
    SimpleSequenceParams,
    StructureEnvelope,
    StructureParams,
)
from yogaflow.services.generation import SequenceGenerator
from yogaflow.validation import decode_json_body, validate_params

router = APIRouter()


_ERRORS = {
    400: {"model": ErrorBody, "description": "Malformed body or invalid parameters"},
    500: {"model": ErrorBody, "description": "Generation failed"},
}
_PROTECTED_ERRORS = {**_ERRORS, 401: {"model": ErrorBody, "description": "No session"}}


def _json(model: BaseModel, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=model.model_dump(mode="json", by_alias=True))


@router.post(
    "/api/sequence/generate",
    status_code=201,
    response_model=SequenceEnvelope,
    responses={**_ERRORS, 401: {"model": ErrorBody, "description": "Backend needs a user"}},
)
@limiter.limit(generation_limit)
async def generate_sequence(
    request: Request,
    generator: SequenceGenerator = Depends(get_sequence_generator),
) -> JSONResponse:
    """Generate a full sequence. Open route; accepts an optional peak pose."""
    body = await decode_json_body(request)
    if isinstance(body, Err):
        return error_response(body.error)
    params = validate_params(body.value, SequenceParams)
    if isinstance(params, Err):
        return error_response(params.error)

    result = await generator.generate_sequence(params.value)
    if isinstance(result, Err):
        return error_response(result.error)
    return _json(SequenceEnvelope(sequence=result.value), status_code=201)


@router.post(
    "/api/generate-sequence",
    status_code=201,
    response_model=Sequence,
    responses=_ERRORS,
)
@limiter.limit(generation_limit)
async def generate_sequence_simple(
    request: Request,
    generator: SequenceGenerator = Depends(get_sequence_generator),
) -> JSONResponse:
    """Generate a full sequence without a peak pose; returns the bare Sequence."""
    body = await decode_json_body(request)
    if isinstance(body, Err):
        return error_response(body.error)
    params = validate_params(body.value, SimpleSequenceParams)
    if isinstance(params, Err):
        return error_response(params.error)

    result = await generator.generate_sequence(params.value)
    if isinstance(result, Err):
        return error_response(result.error)
    return _json(result.value, status_code=201)


@router.post(
    "/api/sequence/structure",
    response_model=StructureEnvelope,
    responses=_PROTECTED_ERRORS,
)
@limiter.limit(generation_limit)
async def sequence_structure(
    request: Request,
    provider: SessionProvider = Depends(get_session_provider),
    settings: Settings = Depends(get_settings_dep),
    generator: SequenceGenerator = Depends(get_sequence_generator),
) -> JSONResponse:
    """Generate a phase outline for preview. Requires a session."""
    body = await decode_json_body(request)
    if isinstance(body, Err):
        return error_response(body.error)
    gate = await resolve_auth_gate(request, provider, settings)
    session = gate.require_session()
    if isinstance(session, Err):
        return error_response(session.error)
    params = validate_params(body.value, StructureParams)
    if isinstance(params, Err):
        return error_response(params.error)

    result = await generator.generate_structure(params.value, user_id=session.value.user_id)
    if isinstance(result, Err):
        return error_response(result.error)
    return _json(StructureEnvelope(structure=result.value))


@router.post(
    "/api/sequence/fill-poses",
    response_model=SequenceEnvelope,
    responses=_PROTECTED_ERRORS,
)
@limiter.limit(generation_limit)
async def fill_poses(
    request: Request,
    provider: SessionProvider = Depends(get_session_provider),
    settings: Settings = Depends(get_settings_dep),
    generator: SequenceGenerator = Depends(get_sequence_generator),
) -> JSONResponse:
    """Turn a previewed outline into a full sequence. Requires a session."""
    body = await decode_json_body(request)
    if isinstance(body, Err):
        return error_response(body.error)
    gate = await resolve_auth_gate(request, provider, settings)
    session = gate.require_session()
    if isinstance(session, Err):
        return error_response(session.error)
    payload = validate_params(body.value, FillPosesRequest)
    if isinstance(payload, Err):
        return error_response(payload.error)

    fill = payload.value
    result = await generator.fill_structure(fill.params, fill.structure, user_id=session.value.user_id)
    if isinstance(result, Ok):
        return _json(SequenceEnvelope(sequence=result.value))
    return error_response(result.error)
