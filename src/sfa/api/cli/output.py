"""Result, diagnostic and ``--describe`` rendering for single-execution mode."""

from __future__ import annotations

import json
import sys
from typing import Any, TextIO

from sfa.core.domain.agent_definition import AgentDefinition, AgentResult
from sfa.core.domain.enums import OutputFormat

OUTPUT_FORMATS = [fmt.value for fmt in OutputFormat]


def render_result(result: AgentResult, output_format: OutputFormat) -> str:
    if output_format is OutputFormat.JSON:
        payload: dict[str, Any] = {"result": result.result}
        if result.metadata:
            payload["metadata"] = result.metadata
        if result.warnings:
            payload["warnings"] = list(result.warnings)
        if result.error:
            payload["error"] = result.error
        return json.dumps(payload, ensure_ascii=False)
    if isinstance(result.result, str):
        return result.result
    return json.dumps(result.result, indent=2, ensure_ascii=False)


def write_result(result: AgentResult, output_format: OutputFormat, stream: TextIO | None = None) -> None:
    """Results go to stdout, one rendering followed by a newline."""
    stream = stream or sys.stdout
    stream.write(render_result(result, output_format) + "\n")
    stream.flush()


def write_diagnostic(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stderr
    stream.write(f"error: {message}\n")
    stream.flush()


def capabilities(definition: AgentDefinition) -> list[str]:
    caps = ["cli"]
    if definition.mcp_supported:
        caps.append("mcp")
    if definition.env:
        caps.append("env")
    return caps


def build_describe(definition: AgentDefinition) -> dict[str, Any]:
    """Machine-readable metadata printed by ``--describe``. Never includes env values."""
    describe: dict[str, Any] = {
        "name": definition.name,
        "version": definition.version,
        "description": definition.description,
        "trustLevel": definition.trust_level,
        "capabilities": capabilities(definition),
        "input": {"contextRequired": definition.context_required, "accepts": ["text", "json"]},
        "output": {"formats": list(OUTPUT_FORMATS)},
        "options": [
            {
                "name": option.name,
                "alias": option.alias,
                "description": option.description,
                "type": option.type,
                "default": option.default,
                "required": option.required,
            }
            for option in definition.options
        ],
        "env": [
            {
                "name": decl.name,
                "required": decl.required,
                "secret": decl.secret,
                "description": decl.description,
            }
            for decl in definition.env
        ],
        "contextRetention": definition.context_retention,
        "mcpSupported": definition.mcp_supported,
    }
    if definition.mcp_supported and definition.tools:
        describe["tools"] = [
            {"name": tool.name, "description": tool.description, "inputSchema": tool.input_schema}
            for tool in definition.tools
        ]
    if definition.examples:
        describe["examples"] = list(definition.examples)
    return describe


def build_epilog(definition: AgentDefinition) -> str:
    """Help text section listing agent options and examples."""
    lines: list[str] = []
    if definition.options:
        lines.append("Agent options:")
        for option in definition.options:
            flag = f"--{option.name}"
            if option.alias:
                flag = f"-{option.alias}, {flag}"
            details = [option.type]
            if option.required:
                details.append("required")
            if option.default is not None:
                details.append(f"default: {option.default}")
            lines.append(f"  {flag}  {option.description} [{', '.join(details)}]")
    if definition.examples:
        if lines:
            lines.append("")
        lines.append("Examples:")
        lines.extend(f"  {example}" for example in definition.examples)
    return "\n\n".join(lines) if lines else ""
