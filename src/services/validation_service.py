"""Order submission validation.

Pure functions: no I/O happens here, so the same payload always yields the
same result.
"""

from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from src.schemas.order import FieldError, OrderSubmission

_VALUE_ERROR_PREFIX = "Value error, "


@dataclass
class ValidationResult:
    """Outcome of validating a raw order submission."""

    success: bool
    data: OrderSubmission | None = None
    errors: list[FieldError] = field(default_factory=list)


def _field_path(loc: tuple[int | str, ...]) -> str:
    return ".".join(str(part) for part in loc) or "body"


def _message(error: dict[str, Any]) -> str:
    message = error["msg"]
    if message.startswith(_VALUE_ERROR_PREFIX):
        return message[len(_VALUE_ERROR_PREFIX):]
    return message


def format_validation_errors(exc: ValidationError) -> list[FieldError]:
    """Convert a pydantic ValidationError into field-level errors.

    Args:
        exc: The validation error raised by pydantic.

    Returns:
        list[FieldError]: One entry per violation, in pydantic's order.
    """
    return [
        FieldError(field_path=_field_path(error["loc"]), message=_message(error))
        for error in exc.errors(include_url=False)
    ]


def validate_order_submission(payload: Any) -> ValidationResult:
    """Validate and sanitize a raw order submission.

    Every violation is reported, not just the first one found.

    Args:
        payload: Decoded JSON body of the submission request.

    Returns:
        ValidationResult: Trusted data on success, otherwise the error list.
    """
    if not isinstance(payload, dict):
        return ValidationResult(
            success=False,
            errors=[FieldError(field_path="body", message="Request body must be a JSON object")],
        )

    try:
        submission = OrderSubmission.model_validate(payload)
    except ValidationError as e:
        return ValidationResult(success=False, errors=format_validation_errors(e))

    return ValidationResult(success=True, data=submission)
