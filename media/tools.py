"""
Function-calling definitions for chat models.

Each operation is published under its preferred tool name, which is the
alias where one exists, with a JSON schema generated from its argument model.
"""
import json
from typing import Any, Dict, List, Optional, Tuple

from media.dispatch import DispatchTable
from media.errors import ValidationError
from media.params import schema_for

INFORMATIONAL_TOOLS = {
    "get_supported_formats": "List the video and audio formats, codecs and bitrates available for conversion.",
}


def tool_name_for(table: DispatchTable, operation: str) -> str:
    for alias, target in table.aliases.items():
        if target == operation:
            return alias
    return operation


def _function(name: str, description: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": parameters,
        },
    }


def tool_definitions(table: DispatchTable) -> List[Dict[str, Any]]:
    """Tool list in the OpenAI function-calling format."""
    tools = []
    for spec in table:
        tools.append(_function(tool_name_for(table, spec.name), spec.description, schema_for(spec.params)))
    for name, description in INFORMATIONAL_TOOLS.items():
        tools.append(_function(name, description, {"type": "object", "properties": {}}))
    return tools


def resolve_tool_call(
    table: DispatchTable, name: str, arguments: Optional[str]
) -> Tuple[str, Dict[str, Any]]:
    """Map a model's tool call to ``(operation, args)``.

    Raises UnresolvedOperationError for unknown names and ValidationError for
    arguments that are not a JSON object.
    """
    spec = table.resolve(name)
    if not arguments:
        return spec.name, {}
    try:
        args = json.loads(arguments)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Tool arguments are not valid JSON: {e.msg}", field="arguments", constraint="json") from e
    if not isinstance(args, dict):
        raise ValidationError("Tool arguments must be a JSON object", field="arguments", constraint="type")
    return spec.name, args
