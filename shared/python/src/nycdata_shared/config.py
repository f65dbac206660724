"""
config.py — pydantic-settings Settings class.

All environment variables for the nycdata pipeline are declared here.

Usage:
    from nycdata_shared.config import settings
    print(settings.dcp_housing_database_url)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Supabase
    # -------------------------------------------------------------------------
    supabase_url: str = Field(default="http://localhost:54321")
    supabase_service_key: str = Field(default="")

    # -------------------------------------------------------------------------
    # Data sources
    # -------------------------------------------------------------------------
    dcp_housing_database_url: str = Field(
        default=(
            "https://services5.arcgis.com/GfwWNkhOj9bNBqoJ/ArcGIS/rest/services/"
            "Housing_Database/FeatureServer/0"
        )
    )
    housing_ny_url: str = Field(
        default="https://data.cityofnewyork.us/resource/hg8x-zxpr.json"
    )
    cpdb_url: str = Field(
        default="https://data.cityofnewyork.us/resource/9jkp-n57r.geojson"
    )
    http_timeout: float = Field(default=60.0)
    arcgis_batch_size: int = Field(default=2000, gt=0)
    opendata_page_size: int = Field(default=10000, gt=0)

    # -------------------------------------------------------------------------
    # Pipeline bounds
    # -------------------------------------------------------------------------
    completion_year_min: int = Field(default=2014)
    completion_year_max: int = Field(default=2025)
    geometry_tolerance: float = Field(default=0.0001, ge=0)
    change_detection_sample_size: int = Field(default=1000, gt=0)
    insert_batch_size: int = Field(default=500, gt=0)

    # -------------------------------------------------------------------------
    # Validation thresholds
    # -------------------------------------------------------------------------
    min_housing_records: int = Field(default=10000)
    min_housing_ny_records: int = Field(default=100)
    min_capital_projects: int = Field(default=1000)
    capital_min_completion_date: str = Field(default="2025-01-01")

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    # -------------------------------------------------------------------------
    # Derived / computed
    # -------------------------------------------------------------------------
    @property
    def completion_year_range(self) -> tuple[int, int]:
        return (self.completion_year_min, self.completion_year_max)

    @field_validator(
        "supabase_url", "dcp_housing_database_url", "housing_ny_url", "cpdb_url",
        mode="before",
    )
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_year_range(self) -> "Settings":
        if self.completion_year_min > self.completion_year_max:
            raise ValueError(
                f"completion_year_min ({self.completion_year_min}) must not exceed "
                f"completion_year_max ({self.completion_year_max})"
            )
        return self


# ---------------------------------------------------------------------------
# Module-level singleton — import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
