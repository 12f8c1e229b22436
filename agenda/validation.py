"""
Helpers around request validation.

Request bodies are validated by the pydantic models in :mod:`agenda.schemas`;
this module parses contact identifiers and turns a pydantic
``ValidationError`` into the single message reported with a 400.
"""
import re
from typing import Any, Optional

from pydantic import ValidationError

ID_RE = re.compile(r"^[0-9]+$")

# Largest value a signed 64-bit INTEGER column can hold
MAX_ID = 2 ** 63 - 1


def parse_id(value: Any) -> Optional[int]:
    """
    Parses a contact identifier.

    :param value: Raw identifier from a query parameter or a JSON body.
    :return: The identifier as a positive integer, or None if it is malformed or out of range.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and ID_RE.match(value):
        value = int(value)
    if isinstance(value, int) and 0 < value <= MAX_ID:
        return value
    return None


def error_message(exc: ValidationError) -> str:
    """
    Describes the first error of a failed validation.

    :param exc: Error raised by ``Model.model_validate``.
    :return: Human-readable message naming the offending field.
    """
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error["loc"]) or "body"
    kind = error["type"]
    ctx = error.get("ctx") or {}

    if kind == "missing":
        return f"The '{field}' field is required."
    if kind == "string_type":
        return f"The '{field}' field must be a string."
    if kind == "string_too_short":
        if ctx.get("min_length", 1) > 1:
            return f"The '{field}' field must be at least {ctx['min_length']} characters long."
        return f"The '{field}' field is required."
    if kind == "string_too_long":
        return f"The '{field}' field cannot exceed {ctx['max_length']} characters."
    if kind == "string_pattern_mismatch":
        return f"The '{field}' field does not have a valid format."
    if kind == "value_error":
        return str(ctx["error"])
    return f"The '{field}' field is invalid: {error['msg']}"
