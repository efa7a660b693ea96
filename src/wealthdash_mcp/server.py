"""MCP Server for wealthdash financial analytics."""

import json
import logging
from datetime import date
from typing import Any

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool

from .config import DEFAULT_CONFIG, EngineConfig, Settings, configure_logging, load_settings
from .database import Database, LedgerStore
from .resources import get_accounts_resource, get_categories_resource, get_date_context_resource
from .rest_store import RestStore
from .tools import TOOLS, TOOLS_BY_NAME, ToolContext


logger = logging.getLogger(__name__)

# Initialize MCP server
server = Server("wealthdash-mcp")

# Global state
_store: LedgerStore | None = None
_settings: Settings | None = None
_config: EngineConfig = DEFAULT_CONFIG


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def get_store() -> LedgerStore:
    """Get or create the ledger store (remote when configured, else SQLite)."""
    global _store
    if _store is None:
        settings = get_settings()
        if settings.use_remote_store:
            logger.info("Using remote store at %s", settings.store_url)
            _store = RestStore(settings.store_url, settings.store_key, page_size=_config.page_size)
        else:
            settings.db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.info("Using SQLite store at %s", settings.db_path)
            db = Database(settings.db_path, page_size=_config.page_size)
            db.init_schema()
            _store = db
    return _store


def init_for_testing(store: LedgerStore, settings: Settings | None = None) -> None:
    """Initialize server with a test store.

    Args:
        store: Store instance to use.
        settings: Optional settings (e.g. a benchmark URL).
    """
    global _store, _settings
    _store = store
    _settings = settings


def make_context(now: date | None = None) -> ToolContext:
    """Fresh context for one call; nothing carries over between calls."""
    settings = _settings
    return ToolContext(
        store=get_store(),
        config=_config,
        now=now or date.today(),
        benchmark_url=settings.benchmark_url if settings else None,
    )


# ============================================================================
# Tools
# ============================================================================

@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name=tool.name,
            description=tool.description,
            inputSchema=tool.input_schema(),
        )
        for tool in TOOLS
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
    """Handle tool calls."""
    tool = TOOLS_BY_NAME.get(name)
    if tool is None:
        raise ValueError(f"Unknown tool: {name}")

    result = await tool.arun(arguments or {}, make_context())
    return [TextContent(type="text", text=json.dumps(result, ensure_ascii=False, indent=2))]


# ============================================================================
# Resources
# ============================================================================

RESOURCES = {
    "wealthdash://date-context": get_date_context_resource,
    "wealthdash://accounts": get_accounts_resource,
    "wealthdash://categories": get_categories_resource,
}


@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri="wealthdash://date-context",
            name="Date Context",
            description="Today's date and the exact ranges for last month, this month and this year",
            mimeType="application/json",
        ),
        Resource(
            uri="wealthdash://accounts",
            name="Accounts",
            description="Latest balance per account",
            mimeType="application/json",
        ),
        Resource(
            uri="wealthdash://categories",
            name="Categories",
            description="Excluded, income and cash category sets and budget categories",
            mimeType="application/json",
        ),
    ]


@server.read_resource()
async def read_resource(uri: Any) -> str:
    """Read resource content."""
    handler = RESOURCES.get(str(uri))
    if handler is None:
        raise ValueError(f"Unknown resource: {uri}")

    result = handler(make_context())
    return json.dumps(result, ensure_ascii=False, indent=2)


# ============================================================================
# Main
# ============================================================================

def main() -> None:
    """Run the MCP server."""
    import asyncio

    from mcp.server.stdio import stdio_server

    settings = get_settings()
    configure_logging(settings.log_level)

    async def run():
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())

    asyncio.run(run())


if __name__ == "__main__":
    main()
