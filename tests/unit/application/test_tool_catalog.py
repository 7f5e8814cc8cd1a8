"""Unit tests for tool schema synthesis."""

from unittest.mock import AsyncMock

from sfa.application.tool_catalog import (
    EMPTY_OBJECT_SCHEMA,
    build_primary_tool_schema,
    build_tool_list,
    is_known_tool,
)
from sfa.core.domain.agent_definition import AgentDefinition, AgentOption, ToolDefinition


async def _execute(ctx):
    return "ok"


def _definition(**overrides):
    values = dict(
        name="reviewer",
        version="1.0.0",
        description="Reviews code",
        execute=_execute,
        options=(
            AgentOption(name="severity", description="Minimum severity", default="warning"),
            AgentOption(name="limit", description="Max findings", type="number", required=True),
            AgentOption(name="strict", description="Strict mode", type="boolean"),
        ),
    )
    values.update(overrides)
    return AgentDefinition(**values)


class TestPrimaryToolSchema:
    def test_context_and_options(self):
        schema = build_primary_tool_schema(_definition())

        assert schema["type"] == "object"
        assert schema["properties"]["context"]["type"] == "string"
        assert schema["properties"]["severity"] == {
            "type": "string",
            "description": "Minimum severity",
            "default": "warning",
        }
        assert schema["properties"]["limit"]["type"] == "number"
        assert schema["properties"]["strict"]["type"] == "boolean"
        assert schema["required"] == ["limit"]

    def test_context_required(self):
        schema = build_primary_tool_schema(_definition(options=(), context_required=True))
        assert schema["required"] == ["context"]

    def test_no_required_key_when_nothing_required(self):
        schema = build_primary_tool_schema(_definition(options=()))
        assert "required" not in schema


class TestToolList:
    def test_primary_first_then_auxiliary(self):
        explain = ToolDefinition(
            name="explain",
            description="Explain code",
            handler=AsyncMock(),
            input_schema={"type": "object", "properties": {"code": {"type": "string"}}},
        )
        bare = ToolDefinition(name="stats", description="Stats", handler=AsyncMock())

        tools = build_tool_list(_definition(tools=(explain, bare)))

        assert [tool["name"] for tool in tools] == ["reviewer", "explain", "stats"]
        assert tools[0]["description"] == "Reviews code"
        assert tools[1]["inputSchema"]["properties"]["code"]["type"] == "string"
        assert tools[2]["inputSchema"] == EMPTY_OBJECT_SCHEMA

    def test_is_known_tool(self):
        definition = _definition(tools=(ToolDefinition(name="explain", description="d", handler=AsyncMock()),))
        assert is_known_tool(definition, "reviewer")
        assert is_known_tool(definition, "explain")
        assert not is_known_tool(definition, "nope")
