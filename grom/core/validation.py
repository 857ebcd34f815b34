"""Request guards and a minimal payload type checker.

``check`` turns a failed precondition into an HTTP error; ``validate``
compares payload fields against a flat ``{field: type}`` schema and reports
every mismatch at once.
"""

from __future__ import annotations

from typing import Any, Mapping

from grom.core.errors import ApiError, ValidationAppError

_MISSING = object()

# Schema type names and the Python types they accept
TYPE_NAMES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list, tuple),
}


def check(condition: Any, status_code: int = 400, message: str = "Bad Request") -> None:
    """Raise ApiError when condition is falsy.

    Example:
        >>> check(user is not None, 404, "User not found")
    """
    if not condition:
        raise ApiError(status_code, message)


def type_name(value: Any) -> str:
    """Return the schema type name describing value."""

    if value is _MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    for name, types in TYPE_NAMES.items():
        if isinstance(value, types):
            return name
    return type(value).__name__


def _matches(expected: str | type, value: Any) -> bool:
    if isinstance(expected, type):
        # bool is an int subclass; only accept it where bool is asked for
        if isinstance(value, bool) and expected is not bool:
            return False
        return value is not _MISSING and isinstance(value, expected)
    if expected == "undefined":
        return value is _MISSING
    if expected not in TYPE_NAMES:
        raise ValueError(f"unknown schema type: {expected!r}")
    return type_name(value) == expected


def validate(schema: Mapping[str, str | type], data: Mapping[str, Any] | None) -> None:
    """Check that every field in schema has the expected type in data.

    Args:
        schema: Field name → type name ("string", "number", "boolean",
            "object", "array", "undefined") or a Python type.
        data: Payload to check; None is treated as an empty payload.

    Raises:
        ValidationAppError: With one message per mismatching field in
            ``details["errors"]``.
        ValueError: If the schema names an unknown type.
    """

    payload = data or {}
    errors: list[str] = []
    for key, expected in schema.items():
        value = payload.get(key, _MISSING)
        if _matches(expected, value):
            continue
        expected_name = expected.__name__ if isinstance(expected, type) else expected
        errors.append(
            f"'{key}' should be of type '{expected_name}', got '{type_name(value)}'"
        )

    if errors:
        raise ValidationAppError(
            code="validation_error",
            message="Validation Error",
            details={"errors": errors},
        )
