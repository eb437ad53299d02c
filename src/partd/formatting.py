"""Text formatting for CMS Part D records.

Pure functions: each takes a record (or a number) and returns display
text. Nothing here touches the network.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

from partd.models import (
    AGGREGATE_MANUFACTURER,
    DrugSpendingAnnual,
    DrugSpendingQuarterly,
    PrescriberByDrug,
)

RecordT = TypeVar("RecordT", bound=Mapping[str, object])

# Longest "Uses" text shown before it is cut off with "..."
MAX_USES_LENGTH = 500

# CMS fills Drug_Uses with this phrase when it has no description.
_USES_UNAVAILABLE = "not available"
_USES_LABEL = re.compile(r"^\s*USES:\s*", re.IGNORECASE)

_CURRENCY_SCALES = (
    (1_000_000_000, "B"),
    (1_000_000, "M"),
    (1_000, "K"),
)


def _parse_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def format_currency(value: str | float | None) -> str:
    """Format a dollar amount with a B/M/K suffix.

    >>> format_currency("1234567")
    '$1.23M'

    The scale is picked on the absolute value; negatives keep their sign
    in front of the dollar sign. Values that aren't numbers render "N/A".
    """
    num = _parse_float(value)
    if num is None:
        return "N/A"

    sign = "-" if num < 0 else ""
    magnitude = abs(num)
    for threshold, suffix in _CURRENCY_SCALES:
        if magnitude >= threshold:
            return f"{sign}${magnitude / threshold:.2f}{suffix}"
    return f"{sign}${magnitude:.2f}"


def format_count(value: str | float | None) -> str:
    """Format a whole number with thousands separators ("1,234,567")."""
    num = _parse_float(value)
    if num is None:
        return "N/A"
    return f"{int(num):,}"


def _clean_uses(text: str) -> str:
    uses = text
    if uses.startswith('"'):
        uses = uses[1:]
    if uses.endswith('"'):
        uses = uses[:-1]
    uses = _USES_LABEL.sub("", uses, count=1)
    if len(uses) > MAX_USES_LENGTH:
        uses = uses[:MAX_USES_LENGTH] + "..."
    return uses


def format_drug_quarterly(drug: DrugSpendingQuarterly) -> str:
    """Render one quarterly spending row as a metric table."""
    lines = [
        f"**{drug.get('Brnd_Name', '')}** ({drug.get('Gnrc_Name', '')})",
        f"Manufacturer: {drug.get('Mftr_Name', '')}",
        f"Period: {drug.get('Year', '')}",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Total Spending | {format_currency(drug.get('Tot_Spndng'))} |",
        f"| Beneficiaries | {format_count(drug.get('Tot_Benes'))} |",
        f"| Claims | {format_count(drug.get('Tot_Clms'))} |",
        f"| Avg/Beneficiary | {format_currency(drug.get('Avg_Spnd_Per_Bene'))} |",
        f"| Avg/Claim | {format_currency(drug.get('Avg_Spnd_Per_Clm'))} |",
    ]

    uses = drug.get("Drug_Uses")
    if uses and _USES_UNAVAILABLE not in uses:
        lines.extend(["", f"**Uses:** {_clean_uses(uses)}"])

    return "\n".join(lines)


def _format_rate(label: str, value: Any) -> str | None:
    rate = _parse_float(value) if value else None
    if rate is None:
        return None
    pct = rate * 100
    sign = "+" if pct >= 0 else ""
    return f"- {label}: {sign}{pct:.1f}%"


def format_drug_annual(drug: DrugSpendingAnnual) -> str:
    """Render one annual spending row: 2023 totals plus trend lines."""
    lines = [
        f"**{drug.get('Brnd_Name', '')}** ({drug.get('Gnrc_Name', '')})",
        f"Manufacturer: {drug.get('Mftr_Name', '')}",
        "",
        "**2023 Data:**",
        f"- Total Spending: {format_currency(drug.get('Tot_Spndng_2023'))}",
        f"- Beneficiaries: {format_count(drug.get('Tot_Benes_2023'))}",
        f"- Avg/Beneficiary: {format_currency(drug.get('Avg_Spnd_Per_Bene_2023'))}",
    ]

    for label, field in (
        ("YoY Change (2022-2023)", "Chg_Avg_Spnd_Per_Dsg_Unt_22_23"),
        ("4-Year CAGR (2019-2023)", "CAGR_Avg_Spnd_Per_Dsg_Unt_19_23"),
    ):
        line = _format_rate(label, drug.get(field))
        if line:
            lines.append(line)

    return "\n".join(lines)


def prescriber_name(prescriber: PrescriberByDrug) -> str:
    """Display name: first + last for people, the org name alone otherwise."""
    first = prescriber.get("Prscrbr_First_Name")
    last = prescriber.get("Prscrbr_Last_Org_Name", "")
    return f"{first} {last}" if first else last


def prescriber_location(prescriber: PrescriberByDrug) -> str:
    return (
        f"{prescriber.get('Prscrbr_Type', '')} - "
        f"{prescriber.get('Prscrbr_City', '')}, "
        f"{prescriber.get('Prscrbr_State_Abrvtn', '')}"
    )


def format_prescriber(prescriber: PrescriberByDrug) -> str:
    """Render one prescriber-by-drug row."""
    return "\n".join(
        [
            f"**{prescriber_name(prescriber)}** (NPI: {prescriber.get('Prscrbr_NPI', '')})",
            prescriber_location(prescriber),
            f"Drug: {prescriber.get('Brnd_Name', '')} ({prescriber.get('Gnrc_Name', '')})",
            f"Claims: {format_count(prescriber.get('Tot_Clms'))} | "
            f"Cost: {format_currency(prescriber.get('Tot_Drug_Cst'))} | "
            f"Days Supply: {format_count(prescriber.get('Tot_Day_Suply'))}",
        ]
    )


def find_aggregate_or_first(records: Sequence[RecordT]) -> RecordT | None:
    """Pick the "Overall" (all-manufacturer) row, else the first row.

    Returns None for an empty sequence.
    """
    for record in records:
        if record.get("Mftr_Name") == AGGREGATE_MANUFACTURER:
            return record
    return records[0] if records else None
