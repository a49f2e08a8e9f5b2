"""
Ledgerline Manifest Store — Input Schema
========================================
Structural contract for caller arguments.

Supported subset of JSON Schema:
    type                  object | string | number | integer |
                          boolean | array | null  (or a list of them)
    required              list of property names (objects)
    properties            nested schemas (objects)
    additionalProperties  bool, default True (objects)
    enum                  list of allowed literal values
    minimum / maximum     inclusive bounds (numbers)
    exclusiveMinimum      strict lower bound (numbers)
    format                "date": a valid ISO calendar date (strings)
    minLength             minimum length (strings)
    items                 schema applied to every element (arrays)

Validation stops at the first violation and reports it as a
SchemaViolation with the dotted path of the offending value.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

from core.manifest.errors import InvalidSchemaDefinition


SUPPORTED_TYPES = frozenset({
    "object", "string", "number", "integer", "boolean", "array", "null",
})

SUPPORTED_KEYWORDS = frozenset({
    "type", "required", "properties", "additionalProperties", "enum",
    "minimum", "maximum", "exclusiveMinimum", "minLength", "format",
    "items", "description",
})

SUPPORTED_FORMATS = frozenset({"date"})


@dataclass(frozen=True)
class SchemaViolation:
    field: str
    reason: str


def _matches_type(value: Any, expected: str) -> bool:
    if expected == "object":
        return isinstance(value, Mapping)
    if expected == "string":
        return isinstance(value, str)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "array":
        return isinstance(value, (list, tuple))
    if expected == "null":
        return value is None
    return False


def _is_iso_date(value: str) -> bool:
    if len(value) != 10 or value[4] != "-" or value[7] != "-":
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def check_schema(schema: Mapping[str, Any], path: str = "$") -> None:
    """
    Verify a schema only uses the supported subset.

    Raises InvalidSchemaDefinition. Called once at manifest load so
    bad schemas fail at startup rather than on the first request.
    """
    if not isinstance(schema, Mapping):
        raise InvalidSchemaDefinition(path, "schema must be a mapping.")

    unknown = set(schema) - SUPPORTED_KEYWORDS
    if unknown:
        raise InvalidSchemaDefinition(
            path, f"unsupported keywords: {sorted(unknown)}"
        )

    declared = schema.get("type")
    if declared is not None:
        types = declared if isinstance(declared, list) else [declared]
        for name in types:
            if name not in SUPPORTED_TYPES:
                raise InvalidSchemaDefinition(path, f"unknown type '{name}'.")

    required = schema.get("required", [])
    if not isinstance(required, list) or not all(isinstance(r, str) for r in required):
        raise InvalidSchemaDefinition(path, "required must be a list of names.")

    for name, sub_schema in schema.get("properties", {}).items():
        check_schema(sub_schema, f"{path}.{name}")

    if "items" in schema:
        check_schema(schema["items"], f"{path}[]")

    if "enum" in schema and not isinstance(schema["enum"], list):
        raise InvalidSchemaDefinition(path, "enum must be a list.")

    if "format" in schema and schema["format"] not in SUPPORTED_FORMATS:
        raise InvalidSchemaDefinition(path, f"unknown format '{schema['format']}'.")


def validate_against_schema(
    value: Any,
    schema: Mapping[str, Any],
    path: str,
) -> Optional[SchemaViolation]:
    """
    Validate a value. Returns None when it conforms, else the first
    SchemaViolation found (depth-first, properties in schema order).
    """
    declared = schema.get("type")
    if declared is not None:
        types = declared if isinstance(declared, list) else [declared]
        if not any(_matches_type(value, name) for name in types):
            return SchemaViolation(
                field=path,
                reason=f"expected {' or '.join(types)}, got {type(value).__name__}",
            )

    if "enum" in schema and value not in schema["enum"]:
        return SchemaViolation(
            field=path, reason=f"must be one of {schema['enum']}"
        )

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if "minimum" in schema and value < schema["minimum"]:
            return SchemaViolation(
                field=path, reason=f"must be >= {schema['minimum']}"
            )
        if "maximum" in schema and value > schema["maximum"]:
            return SchemaViolation(
                field=path, reason=f"must be <= {schema['maximum']}"
            )
        if "exclusiveMinimum" in schema and value <= schema["exclusiveMinimum"]:
            return SchemaViolation(
                field=path, reason=f"must be > {schema['exclusiveMinimum']}"
            )

    if isinstance(value, str) and "minLength" in schema:
        if len(value) < schema["minLength"]:
            return SchemaViolation(
                field=path,
                reason=f"must be at least {schema['minLength']} characters",
            )

    if isinstance(value, str) and schema.get("format") == "date" and not _is_iso_date(value):
        return SchemaViolation(field=path, reason="must be an ISO date (YYYY-MM-DD)")

    if isinstance(value, Mapping):
        for name in schema.get("required", []):
            if name not in value:
                return SchemaViolation(field=f"{path}.{name}", reason="is required")

        properties = schema.get("properties", {})
        for name, sub_schema in properties.items():
            if name in value:
                violation = validate_against_schema(
                    value[name], sub_schema, f"{path}.{name}"
                )
                if violation is not None:
                    return violation

        if schema.get("additionalProperties", True) is False:
            extra = sorted(set(value) - set(properties))
            if extra:
                return SchemaViolation(
                    field=f"{path}.{extra[0]}",
                    reason="is not an allowed property",
                )

    if isinstance(value, (list, tuple)) and "items" in schema:
        for index, item in enumerate(value):
            violation = validate_against_schema(
                item, schema["items"], f"{path}[{index}]"
            )
            if violation is not None:
                return violation

    return None
