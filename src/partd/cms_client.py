"""HTTP client for the CMS Data API (data.cms.gov).

This module provides the CMSClient class, which handles:
1. Building query parameters for the Part D datasets
2. Sending GET requests and decoding the JSON rows
3. Filtering, sorting and trimming rows where the API can't do it for us

Concept: the CMS Data API
    Every dataset is addressed by a UUID. Rows are fetched from
    /dataset/{uuid}/data with two query parameters we care about:
    - keyword: free-text match across all columns
    - size: maximum number of rows to return

    The response is a JSON array of flat objects. Every value is a
    string, even the numeric columns. No API key is needed.

Usage:
    async with CMSClient() as client:
        rows = await client.search_drug("insulin", max_results=15)
"""

from __future__ import annotations

import logging
from typing import Any, cast

import httpx

from partd.config import CMS_BASE_URL
from partd.models import (
    AGGREGATE_MANUFACTURER,
    Dataset,
    DrugSpendingAnnual,
    DrugSpendingQuarterly,
    PrescriberByDrug,
)

logger = logging.getLogger(__name__)

# Row limit sent when the caller does not choose one.
DEFAULT_PAGE_SIZE = "25"


class DataSourceError(Exception):
    """Raised when the CMS API returns an error or an unreadable body."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"CMS API error: {status_code} {detail}")


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class CMSClient:
    """Async HTTP client for the CMS Medicare Part D datasets.

    One client is meant to serve one request: create it, make the calls
    you need, then close it (or use it as an async context manager).

    Attributes:
        base_url: Dataset API root (e.g., "https://data.cms.gov/data-api/v1/dataset").
    """

    def __init__(
        self,
        base_url: str = CMS_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")

        # No timeout override: httpx's default applies to every round trip.
        self._http = httpx.AsyncClient(
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> CMSClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    # --- Low-level request ---

    async def _request(
        self,
        dataset_id: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """GET rows from one dataset.

        Fills in size=25 when the caller didn't choose a size, and turns
        every parameter value into a string before sending it.

        Args:
            dataset_id: Dataset UUID (or any identifier the API accepts).
            params: Query parameters (e.g., {"keyword": "Ozempic"}).

        Returns:
            The decoded JSON body (a list of row dicts for /data).

        Raises:
            DataSourceError: On transport failure, status >= 400, or a
                body that isn't valid JSON.
        """
        query = {key: str(value) for key, value in (params or {}).items()}
        if not query.get("size"):
            query["size"] = DEFAULT_PAGE_SIZE

        return await self._get_json(f"{self.base_url}/{dataset_id}/data", query)

    async def _get_json(self, url: str, params: dict[str, str] | None = None) -> Any:
        logger.debug("GET %s params=%s", url, params)
        try:
            response = await self._http.get(url, params=params)
        except httpx.HTTPError as exc:
            raise DataSourceError(
                status_code=0,
                detail=f"Request to {url} failed: {exc}",
            ) from exc

        if response.status_code >= 400:
            logger.warning("CMS API returned %d for %s", response.status_code, url)
            raise DataSourceError(
                status_code=response.status_code,
                detail=response.reason_phrase,
            )

        try:
            return response.json()
        except ValueError as exc:
            # JSONDecodeError and UnicodeDecodeError both land here.
            raise DataSourceError(
                status_code=response.status_code,
                detail=f"Invalid JSON in response: {exc}",
            ) from exc

    # --- Drug spending ---

    async def search_drug(
        self, query: str, max_results: int = 25
    ) -> list[DrugSpendingQuarterly]:
        """Search the quarterly spending data by brand or generic name.

        Rows are returned as-is, so the same brand can appear once per
        manufacturer plus once for the "Overall" aggregate.
        """
        rows = await self._request(
            Dataset.SPENDING_QUARTERLY,
            {"keyword": query, "size": max_results},
        )
        return cast(list[DrugSpendingQuarterly], rows)

    async def get_drug_spending_quarterly(
        self, drug_name: str
    ) -> list[DrugSpendingQuarterly]:
        """Get quarterly spending rows for a drug."""
        rows = await self._request(
            Dataset.SPENDING_QUARTERLY,
            {"keyword": drug_name, "size": 10},
        )
        return cast(list[DrugSpendingQuarterly], rows)

    async def get_drug_spending_annual(self, drug_name: str) -> list[DrugSpendingAnnual]:
        """Get annual (multi-year trend) spending rows for a drug."""
        rows = await self._request(
            Dataset.SPENDING_ANNUAL,
            {"keyword": drug_name, "size": 10},
        )
        return cast(list[DrugSpendingAnnual], rows)

    async def get_top_drugs_by_spending(
        self, max_results: int = 25
    ) -> list[DrugSpendingQuarterly]:
        """Get the highest-spending drugs from the quarterly data.

        The API can't sort by spending and filter by manufacturer in the
        same request, so we fetch twice as many rows as needed, keep the
        "Overall" rows, and sort locally. If the window holds fewer than
        max_results aggregate rows, fewer rows come back; there is no
        second fetch.
        """
        rows: list[DrugSpendingQuarterly] = await self._request(
            Dataset.SPENDING_QUARTERLY,
            {"size": max_results * 2},
        )
        overall = [r for r in rows if r.get("Mftr_Name") == AGGREGATE_MANUFACTURER]
        overall.sort(key=lambda r: _to_float(r.get("Tot_Spndng")), reverse=True)
        return overall[:max_results]

    # --- Prescribers ---

    async def get_prescribers_for_drug(
        self,
        drug_name: str,
        state: str | None = None,
        max_results: int = 25,
    ) -> list[PrescriberByDrug]:
        """Get prescribers of a drug, optionally limited to one state.

        The state filter runs after the fetch (the API has no state
        parameter), so a filtered result can be shorter than max_results.
        """
        rows: list[PrescriberByDrug] = await self._request(
            Dataset.PRESCRIBER_BY_DRUG,
            {"keyword": drug_name, "size": max_results},
        )
        if state:
            wanted = state.upper()
            return [
                r
                for r in rows
                if (r.get("Prscrbr_State_Abrvtn") or "").upper() == wanted
            ]
        return rows

    async def get_prescriber_by_npi(self, npi: str) -> list[PrescriberByDrug]:
        """Get every drug row for one prescriber.

        A prescriber has one row per drug they prescribe, so we ask for
        up to 100 rows.
        """
        rows = await self._request(
            Dataset.PRESCRIBER_BY_DRUG,
            {"keyword": npi, "size": 100},
        )
        return cast(list[PrescriberByDrug], rows)

    # --- Raw access ---

    async def api_request(
        self, dataset_id: str, params: dict[str, Any] | None = None
    ) -> Any:
        """Query any dataset with any parameters and return the raw JSON."""
        return await self._request(dataset_id, params)

    async def get_dataset_stats(self, dataset_id: str) -> Any:
        """Get the /data/stats summary for a dataset (row counts etc.)."""
        return await self._get_json(f"{self.base_url}/{dataset_id}/data/stats")
