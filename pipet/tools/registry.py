"""
Tool Registry — the capabilities declared to every provider.

The pet has exactly one tool: ``run_shell``. Its JSON Schema is declared once
here and each provider backend converts it to its own declaration format.

Tool descriptions are prompts: they tell the model not just what the tool
does but what limits it runs under.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ToolDefinition:
    """A declared tool: name, description and JSON Schema for its input."""
    name: str
    description: str
    input_schema: dict[str, Any]

    def to_api_format(self) -> dict[str, Any]:
        """The shape the Claude Messages API expects in its 'tools' array."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


RUN_SHELL_TOOL = ToolDefinition(
    name="run_shell",
    description=(
        "Execute a shell command on the host you live on. Use this to check "
        "system status, manage services, or investigate issues. Commands run "
        "under a timeout and a blocked-pattern filter for safety, and long "
        "output is truncated."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "command": {
                "type": "string",
                "description": "The shell command to execute",
            },
        },
        "required": ["command"],
    },
)


# JSON Schema type -> Python types (for lightweight validation)
_JSON_TYPE_MAP: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}


def validate_tool_input(
    schema: dict[str, Any],
    tool_input: Any,
) -> Optional[str]:
    """
    Check required fields and basic types against a tool's JSON Schema.

    Returns an error message on failure, or None if the input is valid.
    """
    if not isinstance(tool_input, dict):
        return f"Tool input must be an object, got {type(tool_input).__name__}"

    missing = [name for name in schema.get("required", []) if name not in tool_input]
    if missing:
        return f"Missing required parameter(s): {', '.join(missing)}"

    properties = schema.get("properties", {})
    for name, value in tool_input.items():
        prop_schema = properties.get(name)
        if not isinstance(prop_schema, dict):
            continue
        expected_type = prop_schema.get("type")
        py_types = _JSON_TYPE_MAP.get(expected_type) if expected_type else None
        if py_types is None:
            continue
        # bool is an int subclass in Python, but not in JSON
        if isinstance(value, bool) and expected_type in ("integer", "number"):
            return f"Parameter '{name}' expected {expected_type}, got boolean"
        if not isinstance(value, py_types):
            return f"Parameter '{name}' expected {expected_type}, got {type(value).__name__}"

    return None
