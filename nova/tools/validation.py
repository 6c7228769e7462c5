"""Validation of model-supplied tool arguments against a tool's JSON schema."""

from typing import Any

from nova.models.tools import ToolDescriptor

_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    "string": str,
    "number": (int, float),
    "integer": int,
    "boolean": bool,
    "array": list,
    "object": dict,
    "null": type(None),
}


def validate_tool_arguments(
    tool: ToolDescriptor,
    arguments: dict[str, Any],
) -> tuple[dict[str, Any], list[str]]:
    """
    Check arguments against a tool's parameter schema.

    Covers required keys, declared types and enum membership. Keys the
    schema does not declare are dropped rather than rejected.

    Args:
        tool: Tool to validate against
        arguments: Arguments supplied by the model

    Returns:
        Tuple of (accepted arguments, list of error messages)
    """
    errors: list[str] = []
    schema = tool.parameters
    properties: dict[str, Any] = schema.get("properties", {})

    for param in schema.get("required", []):
        if arguments.get(param) in (None, ""):
            errors.append(f"Missing required parameter: {param}")

    accepted: dict[str, Any] = {}
    for name, value in arguments.items():
        if name not in properties or value is None:
            continue
        prop = properties[name]
        expected_type = prop.get("type")
        if not _check_type(value, expected_type):
            errors.append(f"Invalid type for {name}: expected {expected_type}")
            continue
        if "enum" in prop and value not in prop["enum"]:
            errors.append(f"Invalid value for {name}: must be one of {', '.join(map(str, prop['enum']))}")
            continue
        accepted[name] = value

    return accepted, errors


def dropped_arguments(tool: ToolDescriptor, arguments: dict[str, Any]) -> list[str]:
    """Names of supplied arguments the schema does not declare."""
    properties = tool.parameters.get("properties", {})
    return [name for name in arguments if name not in properties]


def _check_type(value: Any, expected_type: str | None) -> bool:
    """Check if a value matches the expected JSON Schema type."""
    if expected_type is None:
        return True

    expected = _TYPE_MAP.get(expected_type)
    if expected is None:
        return True

    # bool is a subclass of int but not a JSON number
    if expected_type in ("integer", "number") and isinstance(value, bool):
        return False
    return isinstance(value, expected)
