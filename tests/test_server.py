"""Tests for the MCP surface: tool listing, dispatch and resources."""

import json

import pytest

from wealthdash_mcp import server
from wealthdash_mcp.config import load_settings
from wealthdash_mcp.database import Database


@pytest.fixture
def wired(populated_db: Database):
    """Point the server at the seeded ledger and restore globals afterwards."""
    saved = (server._store, server._settings)
    server.init_for_testing(populated_db, load_settings({}))
    yield populated_db
    server._store, server._settings = saved


class TestListTools:
    """Tests for list_tools."""

    @pytest.mark.asyncio
    async def test_all_tools_listed(self, wired):
        tools = await server.list_tools()
        names = {tool.name for tool in tools}
        assert len(tools) == 12
        assert {
            "get_financial_snapshot", "analyze_spending", "get_budget_vs_actual",
            "get_financial_health_summary", "analyze_forecast_evolution",
            "get_forecast_gap_over_time", "get_net_worth_trend",
            "analyze_monthly_category_trends", "get_cash_runway", "detect_recurring_payments",
            "convert_currency", "lookup_benchmark",
        } == names

    @pytest.mark.asyncio
    async def test_schemas_use_camel_case_names(self, wired):
        tools = {tool.name: tool for tool in await server.list_tools()}
        spending = tools["analyze_spending"].inputSchema
        assert spending["type"] == "object"
        assert "startDate" in spending["properties"]
        assert "includeExcluded" in spending["properties"]
        assert "startDate" in tools["analyze_forecast_evolution"].inputSchema["required"]


class TestCallTool:
    """Tests for call_tool dispatch."""

    @pytest.mark.asyncio
    async def test_returns_json_text(self, wired):
        content = await server.call_tool("get_financial_snapshot", {})
        assert len(content) == 1
        assert content[0].type == "text"

        result = json.loads(content[0].text)
        assert result["snapshot"]["date"] == "current"
        assert result["snapshot"]["totalsByCurrency"] == {"GBP": 4500.0, "USD": 3000.0}

    @pytest.mark.asyncio
    async def test_none_arguments(self, wired):
        content = await server.call_tool("convert_currency", None)
        assert "error" in json.loads(content[0].text)

    @pytest.mark.asyncio
    async def test_invalid_arguments_become_error_payload(self, wired):
        content = await server.call_tool("get_budget_vs_actual", {"period": "weekly"})
        result = json.loads(content[0].text)
        assert result["error"].startswith("Invalid arguments")

    @pytest.mark.asyncio
    async def test_unknown_tool(self, wired):
        with pytest.raises(ValueError, match="Unknown tool"):
            await server.call_tool("drop_tables", {})

    @pytest.mark.asyncio
    async def test_unconfigured_benchmark_is_unavailable(self, wired):
        content = await server.call_tool("lookup_benchmark", {"query": "grocery spend"})
        result = json.loads(content[0].text)
        assert result["unavailable"] is True
        assert result["benchmarks"] is None


class TestResources:
    """Tests for list_resources and read_resource."""

    @pytest.mark.asyncio
    async def test_list_resources(self, wired):
        uris = {str(resource.uri) for resource in await server.list_resources()}
        assert uris == set(server.RESOURCES)

    @pytest.mark.asyncio
    async def test_read_date_context(self, wired):
        context = json.loads(await server.read_resource("wealthdash://date-context"))
        assert "today" in context
        assert "last_month" in context

    @pytest.mark.asyncio
    async def test_read_accounts(self, wired):
        accounts = json.loads(await server.read_resource("wealthdash://accounts"))
        assert accounts["count"] == 5
        current = next(a for a in accounts["accounts"] if a["account_name"] == "Current")
        assert current["balance"] == 1000
        moonfare = next(a for a in accounts["accounts"] if a["institution"] == "Moonfare")
        assert moonfare["category"] == "Alt Inv"

    @pytest.mark.asyncio
    async def test_read_categories(self, wired):
        categories = json.loads(await server.read_resource("wealthdash://categories"))
        assert "Excluded" in categories["excluded"]
        assert "Groceries" in categories["budgetCategories"]

    @pytest.mark.asyncio
    async def test_unknown_resource(self, wired):
        with pytest.raises(ValueError, match="Unknown resource"):
            await server.read_resource("wealthdash://secrets")
