"""Smoke tests: verify the adapters are wired up correctly.

These tests check that:
1. All modules can be imported without errors
2. Configuration loads with default values
3. The FastAPI app serves /health and routes /partd to the dispatcher
4. The MCP and LangChain wrappers reach the same dispatcher

Network access is replaced everywhere: the FastAPI client dependency is
overridden, and the wrappers get a patched CMSClient.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient


def _fake_cms_client(**returns: Any) -> AsyncMock:
    client = AsyncMock()
    for method, value in returns.items():
        getattr(client, method).return_value = value
    return client


def _patched_client_class(client: AsyncMock) -> MagicMock:
    """A CMSClient stand-in whose `async with` yields `client`."""
    cls = MagicMock()
    cls.return_value.__aenter__.return_value = client
    return cls


def test_imports() -> None:
    """Verify all modules can be imported without crashing."""
    import partd  # noqa: F401
    import partd.app  # noqa: F401
    import partd.cms_client  # noqa: F401
    import partd.config  # noqa: F401
    import partd.formatting  # noqa: F401
    import partd.handlers  # noqa: F401
    import partd.mcp_server  # noqa: F401
    import partd.models  # noqa: F401
    import partd.tool  # noqa: F401


def test_config_defaults() -> None:
    """Config should load with sensible defaults even without a .env file."""
    from partd.config import CMS_BASE_URL

    assert CMS_BASE_URL == "https://data.cms.gov/data-api/v1/dataset"


# --- FastAPI ---


def _test_app(client: AsyncMock) -> TestClient:
    from partd.app import app, get_cms_client

    async def override() -> AsyncIterator[AsyncMock]:
        yield client

    app.dependency_overrides[get_cms_client] = override
    return TestClient(app)


def test_health_endpoint() -> None:
    """The /health endpoint should describe the server and its actions."""
    from partd.app import app

    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["server"] == "partd-mcp-server"
    assert data["tool"]["actions"] == [
        "drug",
        "spending",
        "prescribers",
        "top",
        "search",
        "api",
        "help",
    ]
    assert client.get("/").json() == data


def test_partd_endpoint_help() -> None:
    cms = _fake_cms_client()
    client = _test_app(cms)

    response = client.post("/partd", json={"action": "help"})

    assert response.status_code == 200
    data = response.json()
    assert data["isError"] is False
    assert data["content"][0]["type"] == "text"
    assert "Medicare Part D" in data["content"][0]["text"]


def test_partd_endpoint_error_envelope() -> None:
    """Missing parameters come back as isError, still HTTP 200."""
    cms = _fake_cms_client()
    client = _test_app(cms)

    response = client.post("/partd", json={"action": "prescribers"})

    assert response.status_code == 200
    assert response.json()["isError"] is True
    assert not cms.method_calls


def test_partd_endpoint_rejects_unknown_action() -> None:
    client = _test_app(_fake_cms_client())

    response = client.post("/partd", json={"action": "teleport"})

    assert response.status_code == 422


def test_dataset_stats_endpoint() -> None:
    from partd.models import Dataset

    cms = _fake_cms_client(get_dataset_stats={"total_rows": 14000})
    client = _test_app(cms)

    response = client.get("/datasets/annual/stats")

    assert response.status_code == 200
    assert response.json() == {"total_rows": 14000}
    cms.get_dataset_stats.assert_awaited_once_with(Dataset.SPENDING_ANNUAL)


def test_dataset_stats_upstream_failure() -> None:
    from partd.cms_client import DataSourceError

    cms = _fake_cms_client()
    cms.get_dataset_stats.side_effect = DataSourceError(404, "Not Found")
    client = _test_app(cms)

    response = client.get("/datasets/bogus/stats")

    assert response.status_code == 502
    assert "404" in response.json()["detail"]


# --- MCP ---


@pytest.mark.asyncio
async def test_mcp_tool_returns_text() -> None:
    from partd.mcp_server import partd
    from partd.models import Action

    cms = _fake_cms_client(get_drug_spending_quarterly=[])
    with patch("partd.mcp_server.CMSClient", _patched_client_class(cms)):
        text = await partd(action=Action.DRUG, drug="Ozempic")

    assert text == "No quarterly data found for 'Ozempic'"


@pytest.mark.asyncio
async def test_mcp_tool_raises_on_error_result() -> None:
    from fastmcp.exceptions import ToolError

    from partd.mcp_server import partd
    from partd.models import Action

    cms = _fake_cms_client()
    with patch("partd.mcp_server.CMSClient", _patched_client_class(cms)):
        with pytest.raises(ToolError, match="drug or query parameter required"):
            await partd(action=Action.SPENDING)


# --- LangChain ---


def test_langchain_tool_schema() -> None:
    from partd.tool import build_partd_tool

    tool = build_partd_tool()

    assert tool.name == "partd"
    assert "action" in tool.args
    assert "npi" in tool.args


@pytest.mark.asyncio
async def test_langchain_tool_invoke() -> None:
    from partd.tool import build_partd_tool

    cms = _fake_cms_client(search_drug=[])
    with patch("partd.tool.CMSClient", _patched_client_class(cms)):
        text = await build_partd_tool().ainvoke({"action": "search", "query": "zzz"})

    assert text == "No drugs found matching 'zzz'"
    cms.search_drug.assert_awaited_once_with("zzz", 15)
