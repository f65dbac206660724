"""
models/housing.py — Pydantic models for the housing construction and demolition tables.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from nycdata_shared.config import settings
from nycdata_shared.constants import DATA_SOURCE_DCP, BuildingType, DataSource

BBL_PATTERN = r"^\d{10}$"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AffordableOverlay(BaseModel):
    """One Housing NY project, reduced to the fields overlaid onto a DCP building."""

    model_config = ConfigDict(frozen=True)

    bbl: str = Field(pattern=BBL_PATTERN)
    completion_year: int
    counted_units: int
    affordable_units: int = 0
    affordable_percentage: float = 0.0

    # Income-restricted units
    extreme_low_income_units: int = 0
    very_low_income_units: int = 0
    low_income_units: int = 0
    moderate_income_units: int = 0
    middle_income_units: int = 0
    other_income_units: int = 0

    # Bedroom breakdown
    studio_units: int = 0
    one_br_units: int = 0
    two_br_units: int = 0
    three_br_units: int = 0
    four_br_units: int = 0
    five_br_units: int = 0
    six_br_units: int = 0
    unknown_br_units: int = 0

    # Program metadata
    project_id: str | None = None
    project_name: str | None = None
    construction_type: str | None = None
    extended_affordability_only: bool = False


class HousingBuilding(BaseModel):
    """Matches the housing_buildings table row. One row per completed DCP job."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str

    # DCP core fields
    job_number: str
    job_type: str
    job_status: str | None = None
    job_description: str | None = None

    # Location
    longitude: float
    latitude: float
    address: str
    borough: str
    bbl: str | None = Field(default=None, pattern=BBL_PATTERN)
    bin: str | None = None

    # Geography
    community_district: str | None = None
    council_district: str | None = None
    census_tract_2020: str | None = None
    nta_2020: str | None = None
    nta_name_2020: str | None = None

    # Dates
    completion_year: int
    completion_date: str | None = None
    permit_year: int | None = None
    permit_date: str | None = None

    # Unit counts
    class_a_init: int = 0
    class_a_prop: int = 0
    class_a_net: int
    units_co: int = 0
    total_units: int

    # Affordability (zero until overlaid)
    affordable_units: int = 0
    affordable_percentage: float = 0.0
    extreme_low_income_units: int = 0
    very_low_income_units: int = 0
    low_income_units: int = 0
    moderate_income_units: int = 0
    middle_income_units: int = 0
    other_income_units: int = 0
    studio_units: int = 0
    one_br_units: int = 0
    two_br_units: int = 0
    three_br_units: int = 0
    four_br_units: int = 0
    five_br_units: int = 0
    six_br_units: int = 0
    unknown_br_units: int = 0

    # Classification
    building_type: BuildingType
    physical_building_type: BuildingType
    building_class: str | None = None
    zoning_district_1: str | None = None
    zoning_district_2: str | None = None
    zoning_district_3: str | None = None

    # Building details
    floors_init: float | None = None
    floors_prop: float | None = None
    ownership: str | None = None

    # Provenance
    data_source: DataSource = DATA_SOURCE_DCP
    has_affordable_overlay: bool = False
    housing_ny_project_id: str | None = None
    housing_ny_project_name: str | None = None
    housing_ny_construction_type: str | None = None
    housing_ny_extended_affordability_only: bool = False

    last_synced_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def check_completed_units(self) -> "HousingBuilding":
        low, high = settings.completion_year_range
        if not low <= self.completion_year <= high:
            raise ValueError(
                f"completion_year {self.completion_year} outside {low}-{high}"
            )
        if self.total_units <= 0:
            raise ValueError(f"total_units must be positive, got {self.total_units}")
        return self

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "HousingBuilding":
        return cls.model_validate(row)

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class HousingDemolition(BaseModel):
    """Matches the housing_demolitions table row."""

    model_config = ConfigDict(frozen=True)

    id: str
    job_number: str
    job_type: str = "Demolition"
    job_status: str | None = None
    job_description: str | None = None

    bbl: str | None = Field(default=None, pattern=BBL_PATTERN)
    borough: str
    address: str
    latitude: float | None = None
    longitude: float | None = None

    demolition_year: int
    demolition_date: str | None = None

    class_a_init: int = 0
    class_a_net: int = 0
    estimated_units: int = 0
    building_class: str | None = None

    # Set by the demolition matcher
    has_new_construction: bool = False

    last_synced_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "HousingDemolition":
        return cls.model_validate(row)

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
