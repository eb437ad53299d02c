"""LangChain wrapper for the partd tool.

LangChain / LangGraph agents take tools as StructuredTool objects: the
function plus a name, a description, and an args schema the LLM fills in.
build_partd_tool() packages handle_action() that way, reusing PartDParams
as the schema, so any LangChain agent can call it directly:

    tools = [build_partd_tool()]
    agent = create_react_agent(model=model, tools=tools)
"""

from __future__ import annotations

from typing import Any

from langchain_core.tools import StructuredTool

from partd.cms_client import CMSClient
from partd.handlers import HELP_TEXT, handle_action
from partd.models import PartDParams

TOOL_DESCRIPTION = (
    "Medicare Part D drug spending and prescriber data from CMS. "
    "Pick an action: drug, spending, prescribers, top, search, api, help.\n\n"
    + HELP_TEXT
)


async def run_partd(**kwargs: Any) -> str:
    """Run one partd call with its own CMS client and return the text."""
    params = PartDParams(**kwargs)
    async with CMSClient() as client:
        result = await handle_action(params, client)
    return result.text


def build_partd_tool() -> StructuredTool:
    """Wrap the partd dispatcher as a LangChain StructuredTool."""
    return StructuredTool.from_function(
        coroutine=run_partd,
        name="partd",
        description=TOOL_DESCRIPTION,
        args_schema=PartDParams,
    )
