"""MCP (Model Context Protocol) server for Docstor.

Exposes the document, checklist, template and runbook operations to AI agents
over stdio using the mcp library's JSON-RPC 2.0 transport.
"""

import asyncio
import logging

from mcp import McpError
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.types import ErrorData, TextContent, Tool

from docstor import __version__
from docstor.logging_config import configure_logging
from docstor.mcp.tool_handlers import INTERNAL_ERROR, call_tool_handler
from docstor.mcp.tool_schemas import get_tool_schemas
from docstor.storage.database import Database

logger = logging.getLogger(__name__)

# Initialize MCP server
app = Server("docstor")

# Set by main(); handlers receive it explicitly
_db: Database | None = None


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List all available MCP tools."""
    return [Tool(**schema) for schema in get_tool_schemas().values()]


@app.call_tool()
async def call_tool(name: str, arguments: dict | None) -> list[TextContent]:
    """Handle tool calls."""
    if arguments is None:
        arguments = {}

    if _db is None:
        raise McpError(ErrorData(code=INTERNAL_ERROR, message="Database not initialized"))

    try:
        # Handlers open and close their own database sessions
        return await call_tool_handler(name, arguments, _db)
    except McpError:
        raise
    except Exception as e:
        logger.exception("Unexpected error handling tool %s", name, extra={"tool": name})
        raise McpError(
            ErrorData(
                code=INTERNAL_ERROR,
                message=f"Internal error: {str(e)}",
            )
        )


async def main(db: Database | None = None):
    """Main entry point for MCP server."""
    global _db
    _db = db or Database()
    logger.info("Starting docstor MCP server", extra={"event": "startup"})
    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name="docstor",
                    server_version=__version__,
                    capabilities=app.get_capabilities(
                        notification_options=NotificationOptions(), experimental_capabilities={}
                    ),
                ),
            )
    finally:
        _db.dispose()


def run() -> None:
    """Console script entry point."""
    configure_logging()
    asyncio.run(main())


if __name__ == "__main__":
    run()
