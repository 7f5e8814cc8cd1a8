"""Tool-server mode: framing, method dispatch and the server loop."""

from sfa.api.mcp.dispatcher import MethodDispatcher
from sfa.api.mcp.framing import LineReader, LineWriter, open_stdin_reader
from sfa.api.mcp.server import PROTOCOL_VERSION, ToolServer

__all__ = ["PROTOCOL_VERSION", "LineReader", "LineWriter", "MethodDispatcher", "ToolServer", "open_stdin_reader"]
