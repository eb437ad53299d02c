"""Configuration for the Part D query tool.

Loads settings from environment variables (via a .env file or the system
environment). Every setting has a default so the package imports cleanly
in CI and in tests, where no .env file exists.

The CMS Data API is public, so there are no credentials to configure.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists (it won't exist in CI or Docker)
_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(_env_path)

# --- CMS Data API ---
# Base URL of the dataset API. A dataset UUID and "/data" are appended to it.
CMS_BASE_URL: str = os.getenv(
    "CMS_BASE_URL", "https://data.cms.gov/data-api/v1/dataset"
)

# --- Logging ---
# Level used by the MCP entry point when it configures logging on stderr.
PARTD_LOG_LEVEL: str = os.getenv("PARTD_LOG_LEVEL", "INFO")
