# ─────────────────────────────────────────────────────────────────────────────
# Request validation — body decoding + schema application
# ─────────────────────────────────────────────────────────────────────────────
# Two independent steps, in this order:
#   decode_json_body  → BAD_REQUEST when the bytes are not JSON
#   validate_params   → VALIDATION with every failing field reported
# Neither raises for bad client input; both return Ok / Err.
# ─────────────────────────────────────────────────────────────────────────────


from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError
from starlette.requests import Request

from yogaflow.exceptions import AppError, Err, ErrorKind, Ok, Result

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

# Key used when the payload itself (not one of its fields) is the problem,
# e.g. a JSON array where an object was expected.
ROOT_PATH = "_root"


async def decode_json_body(request: Request) -> Result[Any]:
    """Decode the request body as JSON without interpreting its shape."""
    try:
        return Ok(await request.json())
    except ValueError as exc:
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors.
        logger.info("body_decode_failed", path=request.url.path, reason=str(exc))
        return Err(
            AppError(
                kind=ErrorKind.BAD_REQUEST,
                error="Invalid request body",
                message="Request body must be valid JSON",
            )
        )


def validate_params(raw: Any, model: type[M]) -> Result[M]:
    """Apply ``model`` to an already-decoded payload.

    Every field is checked before reporting. On failure the details map is
    keyed by dotted field path (``"peakPose.id"``) and ordered by the
    model's field declaration order.
    """
    try:
        return Ok(model.model_validate(raw))
    except ValidationError as exc:
        details = _field_errors(exc, model)
        logger.info("params_invalid", model=model.__name__, fields=list(details))
        return Err(
            AppError(
                kind=ErrorKind.VALIDATION,
                error="Invalid request parameters",
                details=details,
            )
        )


def _field_errors(exc: ValidationError, model: type[BaseModel]) -> dict[str, list[str]]:
    order = {
        (info.alias or name): rank for rank, (name, info) in enumerate(model.model_fields.items())
    }

    def rank(error: dict[str, Any]) -> int:
        loc = error["loc"]
        if not loc:
            return -1
        return order.get(str(loc[0]), len(order))

    details: dict[str, list[str]] = {}
    # sorted() is stable, so errors within one field keep pydantic's order.
    for error in sorted(exc.errors(include_url=False), key=rank):
        path = ".".join(str(part) for part in error["loc"]) or ROOT_PATH
        details.setdefault(path, []).append(error["msg"])
    return details
