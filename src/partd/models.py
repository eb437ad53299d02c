"""Data model for the Part D query tool.

Three kinds of types live here:

- Dataset identifiers: the five CMS datasets this tool knows about.
- Record shapes: TypedDicts describing the rows the CMS Data API returns.
  The API sends every value as a string, numbers included, so the
  formatters parse them before doing arithmetic.
- Request/response models: pydantic models for the inbound tool call
  (PartDParams) and the uniform result envelope (ToolResult).
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, TypedDict

from pydantic import BaseModel, ConfigDict, Field

SERVER_NAME = "partd-mcp-server"
SERVER_VERSION = "1.0.0"

# Manufacturer value the CMS spending datasets use for the row that sums
# a drug across all of its manufacturers.
AGGREGATE_MANUFACTURER = "Overall"


class Dataset:
    """CMS dataset UUIDs (data.cms.gov)."""

    SPENDING_QUARTERLY = "4ff7c618-4e40-483a-b390-c8a58c94fa15"
    SPENDING_ANNUAL = "7e0b4365-fd63-4a29-8f5e-e0ac9f66a81b"
    PRESCRIBER_BY_DRUG = "9552739e-3d05-4c1b-8eff-ecabf391e2e5"
    PRESCRIBER_BY_PROVIDER = "14d8e8a9-7e9b-4370-a044-bf97c46b4b44"
    PRESCRIBER_BY_GEO = "c8ea3f8e-3a09-4fea-86f2-8902fb4b0920"


# Friendly names accepted by the "api" action and the stats endpoint.
DATASET_ALIASES: dict[str, str] = {
    "quarterly": Dataset.SPENDING_QUARTERLY,
    "annual": Dataset.SPENDING_ANNUAL,
    "prescriber": Dataset.PRESCRIBER_BY_DRUG,
    "prescriber-provider": Dataset.PRESCRIBER_BY_PROVIDER,
    "prescriber-geo": Dataset.PRESCRIBER_BY_GEO,
}


def resolve_dataset(name: str) -> str:
    """Map a dataset alias to its UUID; anything else passes through as-is."""
    return DATASET_ALIASES.get(name, name)


# --- CMS record shapes ---


class DrugSpendingQuarterly(TypedDict, total=False):
    Brnd_Name: str
    Gnrc_Name: str
    Mftr_Name: str
    Year: str
    Tot_Benes: str
    Tot_Clms: str
    Tot_Spndng: str
    Avg_Spnd_Per_Bene: str
    Avg_Spnd_Per_Clm: str
    Drug_Uses: str


class DrugSpendingAnnual(TypedDict, total=False):
    Brnd_Name: str
    Gnrc_Name: str
    Mftr_Name: str
    Tot_Spndng_2023: str
    Tot_Benes_2023: str
    Tot_Clms_2023: str
    Avg_Spnd_Per_Bene_2023: str
    Chg_Avg_Spnd_Per_Dsg_Unt_22_23: str
    CAGR_Avg_Spnd_Per_Dsg_Unt_19_23: str


class PrescriberByDrug(TypedDict, total=False):
    Prscrbr_NPI: str
    Prscrbr_Last_Org_Name: str
    Prscrbr_First_Name: str
    Prscrbr_City: str
    Prscrbr_State_Abrvtn: str
    Prscrbr_Type: str
    Brnd_Name: str
    Gnrc_Name: str
    Tot_Clms: str
    Tot_Drug_Cst: str
    Tot_Day_Suply: str


# --- Tool request / response ---


class Action(str, Enum):
    """The seven things the partd tool can do."""

    DRUG = "drug"
    SPENDING = "spending"
    PRESCRIBERS = "prescribers"
    TOP = "top"
    SEARCH = "search"
    API = "api"
    HELP = "help"


class PartDParams(BaseModel):
    """Arguments of a partd tool call.

    Only the shape is validated here. Cross-field rules ("drug or query
    required") are checked by the handlers, which know which action needs
    what.
    """

    action: Action = Field(description="Which operation to run.")
    query: str | None = Field(
        default=None, description="Search term (drug name, NPI, or keyword)."
    )
    drug: str | None = Field(default=None, description="Drug name (brand or generic).")
    state: str | None = Field(
        default=None, description="Two-letter state code to filter prescribers."
    )
    npi: str | None = Field(default=None, description="Prescriber NPI (10 digits).")
    dataset: str | None = Field(
        default=None,
        description=(
            "Dataset: quarterly (default), annual, or prescriber. The api "
            "action also accepts prescriber-provider, prescriber-geo, or a "
            "raw CMS dataset UUID."
        ),
    )
    max_results: int | None = Field(default=None, description="Maximum results to return.")
    path: str | None = Field(default=None, description="Reserved.")


class TextContent(BaseModel):
    """One block of display text."""

    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    """What every action returns: text blocks plus an error flag."""

    model_config = ConfigDict(populate_by_name=True)

    content: list[TextContent]
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def text_result(cls, text: str) -> ToolResult:
        return cls(content=[TextContent(text=text)])

    @classmethod
    def error_result(cls, text: str) -> ToolResult:
        return cls(content=[TextContent(text=text)], is_error=True)

    @property
    def text(self) -> str:
        """All content blocks joined into a single string."""
        return "\n".join(block.text for block in self.content)
