"""FastAPI server: the HTTP entry point for the partd tool.

Endpoints:

- GET  /health                 Static descriptor (also served at /)
- POST /partd                  Run one partd action, get a ToolResult back
- GET  /datasets/{name}/stats  Row counts and other stats for a dataset

Every request gets its own CMSClient, closed when the request finishes.

Run locally with:
    uvicorn partd.app:app --reload
"""

from collections.abc import AsyncIterator
from typing import Any

from fastapi import Depends, FastAPI, HTTPException

from partd.cms_client import CMSClient, DataSourceError
from partd.handlers import handle_action
from partd.models import (
    SERVER_NAME,
    SERVER_VERSION,
    Action,
    PartDParams,
    ToolResult,
    resolve_dataset,
)

app = FastAPI(
    title="Medicare Part D Data Tool",
    description="CMS Medicare Part D drug spending and prescriber data",
    version=SERVER_VERSION,
)

HEALTH_DESCRIPTOR: dict[str, Any] = {
    "status": "healthy",
    "server": SERVER_NAME,
    "version": SERVER_VERSION,
    "description": "Medicare Part D Drug Spending & Prescriber Data MCP Server",
    "endpoints": {"partd": "/partd", "health": "/health"},
    "tool": {
        "name": "partd",
        "actions": [action.value for action in Action],
    },
    "data": {
        "source": "CMS data.cms.gov",
        "quarterly": "2024 Q1-Q4",
        "annual": "2019-2023",
    },
    "documentation": "https://data.cms.gov/tools/medicare-part-d-drug-spending-dashboard",
}


async def get_cms_client() -> AsyncIterator[CMSClient]:
    """Request-scoped CMS client dependency."""
    async with CMSClient() as client:
        yield client


@app.get("/")
@app.get("/health")
async def health() -> dict[str, Any]:
    """Health check endpoint. Returns the server descriptor."""
    return HEALTH_DESCRIPTOR


@app.post("/partd", response_model=ToolResult)
async def partd(
    params: PartDParams,
    client: CMSClient = Depends(get_cms_client),
) -> ToolResult:
    """Run a partd action.

    Always answers 200: failures are reported inside the ToolResult with
    isError set, never as an HTTP error.
    """
    return await handle_action(params, client)


@app.get("/datasets/{name}/stats")
async def dataset_stats(
    name: str,
    client: CMSClient = Depends(get_cms_client),
) -> Any:
    """Stats for a dataset, by alias (quarterly, annual, ...) or UUID."""
    try:
        return await client.get_dataset_stats(resolve_dataset(name))
    except DataSourceError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
