"""
Tool catalog for server mode.

The agent's own ``execute`` capability is advertised as one tool named
after the agent; its input schema is synthesised from the declared
options. Auxiliary tools follow in declaration order.
"""

from __future__ import annotations

from typing import Any

from sfa.core.domain.agent_definition import AgentDefinition, AgentOption

EMPTY_OBJECT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}

_JSON_TYPES = {"string": "string", "number": "number", "boolean": "boolean"}


def option_property(option: AgentOption) -> dict[str, Any]:
    prop: dict[str, Any] = {
        "type": _JSON_TYPES.get(option.type, "string"),
        "description": option.description,
    }
    if option.default is not None:
        prop["default"] = option.default
    return prop


def build_primary_tool_schema(definition: AgentDefinition) -> dict[str, Any]:
    """JSON Schema for calling the agent itself as a tool."""
    properties: dict[str, Any] = {
        "context": {"type": "string", "description": "Input context for the agent"},
    }
    required: list[str] = ["context"] if definition.context_required else []

    for option in definition.options:
        properties[option.name] = option_property(option)
        if option.required:
            required.append(option.name)

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def build_tool_list(definition: AgentDefinition) -> list[dict[str, Any]]:
    """Full ``tools/list`` catalog: primary tool first, then auxiliary tools."""
    tools = [
        {
            "name": definition.name,
            "description": definition.description,
            "inputSchema": build_primary_tool_schema(definition),
        }
    ]
    for tool in definition.tools:
        tools.append(
            {
                "name": tool.name,
                "description": tool.description,
                "inputSchema": dict(tool.input_schema) if tool.input_schema else dict(EMPTY_OBJECT_SCHEMA),
            }
        )
    return tools


def is_known_tool(definition: AgentDefinition, name: str) -> bool:
    return name == definition.name or definition.find_tool(name) is not None
