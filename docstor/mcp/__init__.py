"""MCP module with tool schemas, handlers, and serializers."""

from docstor.mcp.serializers import serialize_document, serialize_model
from docstor.mcp.tool_handlers import TOOL_HANDLERS, call_tool_handler
from docstor.mcp.tool_schemas import get_tool_schemas

__all__ = [
    "call_tool_handler",
    "TOOL_HANDLERS",
    "get_tool_schemas",
    "serialize_document",
    "serialize_model",
]
