"""JSON Schema validation utilities."""

from typing import Any

from jsonschema import Draft7Validator


def schema_errors(data: Any, schema: dict[str, Any]) -> list[tuple[str, str]]:
    """
    Validate data against a JSON Schema and collect every error.

    Args:
        data: The data to validate
        schema: JSON Schema to validate against

    Returns:
        List of (field path, error message) pairs; the path is empty for
        errors on the document root
    """
    if not schema:
        return []

    validator = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])

    return [(".".join(str(p) for p in e.path), e.message) for e in errors]


def create_tool_schema(
    parameters: list[dict[str, Any]],
    required: list[str] | None = None
) -> dict[str, Any]:
    """
    Create a JSON Schema from a list of parameter definitions.

    Args:
        parameters: List of parameter definitions with name, type, description
        required: List of required parameter names

    Returns:
        JSON Schema dictionary
    """
    properties = {}

    type_mapping = {
        "string": "string",
        "str": "string",
        "integer": "integer",
        "int": "integer",
        "number": "number",
        "float": "number",
        "boolean": "boolean",
        "bool": "boolean",
        "array": "array",
        "list": "array",
        "object": "object",
        "dict": "object",
    }

    for param in parameters:
        param_schema: dict[str, Any] = {
            "type": type_mapping.get(param.get("type", "string"), "string"),
            "description": param.get("description", ""),
        }

        for key in ("enum", "default", "format"):
            if key in param:
                param_schema[key] = param[key]

        if param_schema["type"] == "array" and "items" in param:
            param_schema["items"] = param["items"]

        properties[param["name"]] = param_schema

    schema: dict[str, Any] = {
        "type": "object",
        "properties": properties,
    }

    if required is not None:
        schema["required"] = required
    else:
        # Auto-detect required fields
        schema["required"] = [
            p["name"] for p in parameters
            if p.get("required", True) and "default" not in p
        ]

    return schema
