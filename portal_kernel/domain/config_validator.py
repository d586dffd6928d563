"""
Configuration schema validation -- pure functions.

Responsibility:
    Validates a request's ``configuration`` document against the JSON-schema
    document stored on its resource type.  Supports the subset of JSON
    Schema the catalog uses: ``type``, ``properties``, ``required``,
    ``additionalProperties`` (false only), ``enum``, ``minimum``,
    ``maximum``, ``minLength``, ``maxLength``, ``pattern`` and ``items``.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Returns a
    ``ValidationResult``; raising is the service layer's decision.

Failure modes:
    None raised.  Unknown schema keywords are ignored.

Error codes:
    MISSING_REQUIRED_FIELD, INVALID_TYPE, VALUE_NOT_ALLOWED, VALUE_TOO_SMALL,
    VALUE_TOO_LARGE, STRING_TOO_SHORT, STRING_TOO_LONG, PATTERN_MISMATCH,
    UNKNOWN_FIELD
"""

from __future__ import annotations

import re
from typing import Any

from portal_kernel.domain.dtos import ValidationError, ValidationResult
from portal_kernel.logging_config import get_logger

logger = get_logger("domain.config_validator")


def _describe(path: str | None) -> str:
    return path or "<root>"


def _join(path: str | None, key: str) -> str:
    return f"{path}.{key}" if path else key


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


_TYPE_CHECKS = {
    "object": lambda v: isinstance(v, dict),
    "array": lambda v: isinstance(v, list),
    "string": lambda v: isinstance(v, str),
    "boolean": lambda v: isinstance(v, bool),
    "integer": _is_integer,
    "number": _is_number,
    "null": lambda v: v is None,
}


def check_type(value: Any, expected: str | list[str], path: str | None) -> ValidationError | None:
    """Return an INVALID_TYPE error unless ``value`` matches ``expected``."""
    expected_types = [expected] if isinstance(expected, str) else list(expected)
    for name in expected_types:
        check = _TYPE_CHECKS.get(name)
        if check is None or check(value):
            return None
    return ValidationError(
        code="INVALID_TYPE",
        message=(
            f"Expected {' or '.join(expected_types)} at {_describe(path)}, "
            f"got {type(value).__name__}"
        ),
        field=path,
    )


def check_constraints(value: Any, schema: dict[str, Any], path: str | None) -> list[ValidationError]:
    """Validate enum, numeric bounds, and string constraints."""
    errors: list[ValidationError] = []

    allowed = schema.get("enum")
    if allowed is not None and value not in allowed:
        errors.append(
            ValidationError(
                code="VALUE_NOT_ALLOWED",
                message=f"Value {value!r} at {_describe(path)} not in allowed values: {allowed}",
                field=path,
            )
        )

    if _is_number(value):
        minimum = schema.get("minimum")
        if minimum is not None and value < minimum:
            errors.append(
                ValidationError(
                    code="VALUE_TOO_SMALL",
                    message=f"Value at {_describe(path)} is {value}, minimum is {minimum}",
                    field=path,
                )
            )
        maximum = schema.get("maximum")
        if maximum is not None and value > maximum:
            errors.append(
                ValidationError(
                    code="VALUE_TOO_LARGE",
                    message=f"Value at {_describe(path)} is {value}, maximum is {maximum}",
                    field=path,
                )
            )

    if isinstance(value, str):
        min_length = schema.get("minLength")
        if min_length is not None and len(value) < min_length:
            errors.append(
                ValidationError(
                    code="STRING_TOO_SHORT",
                    message=f"String at {_describe(path)} is {len(value)} chars, minimum is {min_length}",
                    field=path,
                )
            )
        max_length = schema.get("maxLength")
        if max_length is not None and len(value) > max_length:
            errors.append(
                ValidationError(
                    code="STRING_TOO_LONG",
                    message=f"String at {_describe(path)} is {len(value)} chars, maximum is {max_length}",
                    field=path,
                )
            )
        pattern = schema.get("pattern")
        if pattern is not None and re.search(pattern, value) is None:
            errors.append(
                ValidationError(
                    code="PATTERN_MISMATCH",
                    message=f"String at {_describe(path)} does not match pattern: {pattern}",
                    field=path,
                )
            )

    return errors


def validate_node(value: Any, schema: dict[str, Any], path: str | None) -> list[ValidationError]:
    """Validate one value against one (sub)schema, recursing into objects and arrays."""
    expected = schema.get("type")
    if expected is not None:
        type_error = check_type(value, expected, path)
        if type_error:
            return [type_error]

    errors = check_constraints(value, schema, path)

    if isinstance(value, dict):
        properties: dict[str, Any] = schema.get("properties") or {}
        for name in schema.get("required") or ():
            if value.get(name) is None:
                errors.append(
                    ValidationError(
                        code="MISSING_REQUIRED_FIELD",
                        message=f"Required field missing: {_join(path, name)}",
                        field=_join(path, name),
                    )
                )
        for name, sub_value in value.items():
            sub_schema = properties.get(name)
            if sub_schema is None:
                if schema.get("additionalProperties") is False:
                    errors.append(
                        ValidationError(
                            code="UNKNOWN_FIELD",
                            message=f"Field not allowed: {_join(path, name)}",
                            field=_join(path, name),
                        )
                    )
                continue
            if sub_value is None:
                continue
            errors.extend(validate_node(sub_value, sub_schema, _join(path, name)))

    if isinstance(value, list):
        item_schema = schema.get("items")
        if isinstance(item_schema, dict):
            for i, item in enumerate(value):
                errors.extend(validate_node(item, item_schema, f"{path or ''}[{i}]"))

    return errors


def validate_configuration(
    schema: dict[str, Any] | None,
    document: Any,
    resource_type: str = "",
) -> ValidationResult:
    """
    Validate a configuration document against a resource type schema.

    An empty or missing schema accepts any object.

    Args:
        schema: JSON-schema document from the resource type.
        document: The request's configuration.
        resource_type: Name used in log output only.

    Returns:
        ValidationResult with every error found (not just the first).
    """
    effective = dict(schema or {})
    effective.setdefault("type", "object")

    errors = validate_node(document, effective, None)

    if errors:
        logger.info(
            "configuration_validation_failed",
            extra={
                "resource_type": resource_type,
                "error_count": len(errors),
                "error_codes": [e.code for e in errors],
            },
        )
        return ValidationResult.failure(*errors)
    return ValidationResult.success()
