"""MCP server exposing the partd tool.

One tool, action-dispatched: the client picks an action and passes the
parameters that action needs. Keeping everything behind a single tool
keeps the tool list the model has to read short.

Error results are raised as ToolError so MCP clients see isError=true.

Run over stdio:
    partd-mcp
"""

import logging
import sys

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from partd.cms_client import CMSClient
from partd.config import PARTD_LOG_LEVEL
from partd.handlers import handle_action
from partd.models import SERVER_NAME, Action, PartDParams

logger = logging.getLogger(__name__)

mcp = FastMCP(SERVER_NAME)


async def partd(
    action: Action,
    query: str | None = None,
    drug: str | None = None,
    state: str | None = None,
    npi: str | None = None,
    dataset: str | None = None,
    max_results: int | None = None,
    path: str | None = None,
) -> str:
    """Medicare Part D drug spending and prescriber data (CMS).

    Actions:
      drug        - spending details for a drug (dataset: quarterly | annual)
      spending    - quarterly figures plus 2019-2023 trends
      prescribers - prescribers of a drug (optional state), or by npi
      top         - top drugs by total spending
      search      - search drugs by name
      api         - raw CMS dataset query
      help        - usage reference

    Args:
        action: Which operation to run.
        query: Search term (drug name, NPI, or keyword).
        drug: Drug name (brand or generic).
        state: Two-letter state code to filter prescribers.
        npi: Prescriber NPI (10 digits).
        dataset: quarterly, annual, prescriber (api also takes
            prescriber-provider, prescriber-geo, or a dataset UUID).
        max_results: Maximum results to return.
        path: Reserved.
    """
    params = PartDParams(
        action=action,
        query=query,
        drug=drug,
        state=state,
        npi=npi,
        dataset=dataset,
        max_results=max_results,
        path=path,
    )
    async with CMSClient() as client:
        result = await handle_action(params, client)

    if result.is_error:
        raise ToolError(result.text)
    return result.text


mcp.tool(partd)


def main() -> None:
    """Run the MCP server over stdio."""
    # stdout carries the MCP protocol, so logs go to stderr.
    logging.basicConfig(
        level=PARTD_LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logger.info("Starting %s", SERVER_NAME)
    mcp.run()


if __name__ == "__main__":
    main()
