"""Action handlers for the partd tool.

handle_action() is the single entry point. It looks up the handler for
the requested action, runs it, and turns whatever happens (a result, a
missing parameter, an upstream failure, a bug) into a ToolResult. No
exception gets past it.

Actions:
- drug:        Spending details for one drug (quarterly or annual)
- spending:    Quarterly figures plus multi-year trends, fetched together
- prescribers: Prescribers of a drug, or one prescriber's top drugs by NPI
- top:         Highest-spending drugs
- search:      Drugs matching a name, one line per brand
- api:         Raw dataset query, returned as JSON
- help:        Static usage reference
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable

from partd.cms_client import CMSClient
from partd.formatting import (
    find_aggregate_or_first,
    format_count,
    format_currency,
    format_drug_annual,
    format_drug_quarterly,
    format_prescriber,
    prescriber_location,
    prescriber_name,
)
from partd.models import (
    AGGREGATE_MANUFACTURER,
    Action,
    PartDParams,
    ToolResult,
    resolve_dataset,
)

logger = logging.getLogger(__name__)

DEFAULT_PRESCRIBER_RESULTS = 10
DEFAULT_TOP_RESULTS = 20
DEFAULT_SEARCH_RESULTS = 15
DEFAULT_API_PAGE_SIZE = 10
TOP_DRUGS_PER_PRESCRIBER = 10

# Year shown under the "top" table when there are no rows to read it from.
DEFAULT_DATA_YEAR = "2024"


class InputValidationError(Exception):
    """Raised when a call is missing the parameters its action needs."""


Handler = Callable[[PartDParams, CMSClient], Awaitable[ToolResult]]


def _require(value: str | None, message: str) -> str:
    if not value:
        raise InputValidationError(message)
    return value


# --- drug ---


async def handle_drug(params: PartDParams, client: CMSClient) -> ToolResult:
    drug_name = _require(params.drug or params.query, "drug or query parameter required")

    if params.dataset == "annual":
        annual = await client.get_drug_spending_annual(drug_name)
        record = find_aggregate_or_first(annual)
        if record is None:
            return ToolResult.text_result(f"No annual data found for '{drug_name}'")
        return ToolResult.text_result(format_drug_annual(record))

    quarterly = await client.get_drug_spending_quarterly(drug_name)
    row = find_aggregate_or_first(quarterly)
    if row is None:
        return ToolResult.text_result(f"No quarterly data found for '{drug_name}'")
    return ToolResult.text_result(format_drug_quarterly(row))


# --- spending ---


async def handle_spending(params: PartDParams, client: CMSClient) -> ToolResult:
    drug_name = _require(
        params.drug or params.query, "drug or query parameter required for spending"
    )

    # Both fetches must succeed; a failure in either fails the action.
    quarterly, annual = await asyncio.gather(
        client.get_drug_spending_quarterly(drug_name),
        client.get_drug_spending_annual(drug_name),
    )

    if not quarterly and not annual:
        return ToolResult.text_result(f"No spending data found for '{drug_name}'")

    lines = [f"# Spending Analysis: {drug_name}\n"]

    q = find_aggregate_or_first(quarterly)
    if q is not None:
        lines.append("## Current (2024 Q1-Q4)\n")
        lines.append(format_drug_quarterly(q))

    a = find_aggregate_or_first(annual)
    if a is not None:
        lines.append("\n## Historical Trends\n")
        lines.append(format_drug_annual(a))

    return ToolResult.text_result("\n".join(lines))


# --- prescribers ---


async def _prescriber_by_npi(npi: str, client: CMSClient) -> ToolResult:
    rows = await client.get_prescriber_by_npi(npi)
    if not rows:
        return ToolResult.text_result(f"No prescriber found with NPI {npi}")

    provider = rows[0]
    lines = [
        f"# Prescriber NPI: {npi}\n",
        f"**{prescriber_name(provider)}**",
        f"{prescriber_location(provider)}\n",
        "## Top Prescribed Drugs\n",
    ]

    # One row per drug (and sometimes several per brand), so sum per brand.
    totals: dict[str, dict[str, float]] = {}
    for row in rows:
        brand = row.get("Brnd_Name", "")
        entry = totals.setdefault(brand, {"claims": 0, "cost": 0.0})
        entry["claims"] += int(float(row.get("Tot_Clms") or "0"))
        entry["cost"] += float(row.get("Tot_Drug_Cst") or "0")

    ranked = sorted(totals.items(), key=lambda item: item[1]["cost"], reverse=True)
    for brand, data in ranked[:TOP_DRUGS_PER_PRESCRIBER]:
        lines.append(
            f"- **{brand}**: {format_count(data['claims'])} claims, "
            f"{format_currency(data['cost'])}"
        )

    return ToolResult.text_result("\n".join(lines))


async def handle_prescribers(params: PartDParams, client: CMSClient) -> ToolResult:
    if params.npi:
        return await _prescriber_by_npi(params.npi, client)

    drug_name = _require(
        params.drug or params.query, "drug, query, or npi parameter required"
    )
    max_results = params.max_results or DEFAULT_PRESCRIBER_RESULTS
    rows = await client.get_prescribers_for_drug(drug_name, params.state, max_results)

    if not rows:
        where = f" in {params.state}" if params.state else ""
        return ToolResult.text_result(f"No prescribers found for '{drug_name}'{where}")

    suffix = f" ({params.state})" if params.state else ""
    lines = [f"# Top Prescribers: {drug_name}{suffix}\n"]
    for row in rows[:max_results]:
        lines.append(format_prescriber(row))
        lines.append("")

    return ToolResult.text_result("\n".join(lines))


# --- top ---


async def handle_top(params: PartDParams, client: CMSClient) -> ToolResult:
    max_results = params.max_results or DEFAULT_TOP_RESULTS
    rows = await client.get_top_drugs_by_spending(max_results)

    lines = [
        "# Top Medicare Part D Drugs by Spending (2024)\n",
        "| Rank | Drug | Generic | Spending | Beneficiaries |",
        "|------|------|---------|----------|---------------|",
    ]
    for rank, d in enumerate(rows, start=1):
        lines.append(
            f"| {rank} | {d.get('Brnd_Name', '')} | {d.get('Gnrc_Name', '')} | "
            f"{format_currency(d.get('Tot_Spndng'))} | {format_count(d.get('Tot_Benes'))} |"
        )

    year = (rows[0].get("Year") if rows else None) or DEFAULT_DATA_YEAR
    lines.append(f"\n_Source: CMS Medicare Part D Spending Data ({year})_")

    return ToolResult.text_result("\n".join(lines))


# --- search ---


async def handle_search(params: PartDParams, client: CMSClient) -> ToolResult:
    query = _require(params.query or params.drug, "query parameter required for search")
    max_results = params.max_results or DEFAULT_SEARCH_RESULTS
    rows = await client.search_drug(query, max_results)

    if not rows:
        return ToolResult.text_result(f"No drugs found matching '{query}'")

    # One line per brand, using its "Overall" row. Brands with no
    # "Overall" row in this page are left out.
    seen: set[str] = set()
    unique = []
    for row in rows:
        brand = row.get("Brnd_Name", "")
        if brand in seen or row.get("Mftr_Name") != AGGREGATE_MANUFACTURER:
            continue
        seen.add(brand)
        unique.append(row)

    lines = [f"# Search Results: '{query}'\n"]
    for d in unique[:max_results]:
        lines.append(
            f"- **{d.get('Brnd_Name', '')}** ({d.get('Gnrc_Name', '')}): "
            f"{format_currency(d.get('Tot_Spndng'))} total, "
            f"{format_count(d.get('Tot_Benes'))} beneficiaries"
        )
    lines.append('\nUse {"action": "drug", "drug": "..."} for full details.')

    return ToolResult.text_result("\n".join(lines))


# --- api ---


async def handle_api(params: PartDParams, client: CMSClient) -> ToolResult:
    dataset_id = resolve_dataset(params.dataset or "quarterly")

    api_params: dict[str, str] = {"size": str(DEFAULT_API_PAGE_SIZE)}
    if params.query:
        api_params["keyword"] = params.query
    if params.max_results:
        api_params["size"] = str(params.max_results)

    result = await client.api_request(dataset_id, api_params)
    return ToolResult.text_result(json.dumps(result, indent=2))


# --- help ---

HELP_TEXT = """\
# Medicare Part D MCP Server

Access CMS Medicare Part D drug spending and prescriber data.

## Actions

**drug** - Get drug spending details
  {"action": "drug", "drug": "Ozempic"}
  {"action": "drug", "drug": "Eliquis", "dataset": "annual"}

**spending** - Full spending analysis (quarterly + trends)
  {"action": "spending", "drug": "Humira"}

**prescribers** - Find prescribers for a drug or by NPI
  {"action": "prescribers", "drug": "Ozempic", "state": "CA"}
  {"action": "prescribers", "npi": "1234567890"}

**top** - Top drugs by total spending
  {"action": "top", "max_results": 20}

**search** - Search drugs by name
  {"action": "search", "query": "insulin"}

**api** - Raw CMS Data API access
  {"action": "api", "dataset": "quarterly", "query": "metformin"}

## Datasets

| Name | Description | Data |
|------|-------------|------|
| quarterly | Part D Spending by Drug | 2024 Q1-Q4 |
| annual | Part D Spending Trends | 2019-2023 |
| prescriber | Prescribers by Drug | 2022 |

## More Info
- CMS Data: https://data.cms.gov
- Part D Dashboard: https://data.cms.gov/tools/medicare-part-d-drug-spending-dashboard"""


async def handle_help(params: PartDParams, client: CMSClient) -> ToolResult:
    return ToolResult.text_result(HELP_TEXT)


# --- dispatch ---

HANDLERS: dict[Action, Handler] = {
    Action.DRUG: handle_drug,
    Action.SPENDING: handle_spending,
    Action.PRESCRIBERS: handle_prescribers,
    Action.TOP: handle_top,
    Action.SEARCH: handle_search,
    Action.API: handle_api,
    Action.HELP: handle_help,
}


async def handle_action(params: PartDParams, client: CMSClient) -> ToolResult:
    """Run one partd tool call and wrap the outcome in a ToolResult.

    Args:
        params: The validated tool arguments.
        client: CMS client to use for any upstream requests.

    Returns:
        The formatted result. Missing parameters, upstream errors and
        unexpected exceptions all come back as a ToolResult with
        is_error=True rather than being raised.
    """
    try:
        handler = HANDLERS.get(params.action)
        if handler is None:
            return ToolResult.error_result(f"Unknown action: {params.action}")
        logger.info("partd action=%s", handler.__name__)
        return await handler(params, client)
    except InputValidationError as e:
        return ToolResult.error_result(str(e))
    except Exception as e:
        logger.exception("partd action %r failed", params.action)
        return ToolResult.error_result(f"Error: {e}")
