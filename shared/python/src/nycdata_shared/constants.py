"""
constants.py — Static lookup tables shared across the pipeline.
"""

from __future__ import annotations

from typing import Literal

# ---------------------------------------------------------------------------
# Boroughs (DCP Housing Database uses numeric codes)
# ---------------------------------------------------------------------------

BOROUGH_NAMES: dict[str, str] = {
    "1": "Manhattan",
    "2": "Bronx",
    "3": "Brooklyn",
    "4": "Queens",
    "5": "Staten Island",
}

UNKNOWN_BOROUGH = "Unknown"

# ---------------------------------------------------------------------------
# Job types
# ---------------------------------------------------------------------------

JOB_TYPE_NEW_BUILDING = "New Building"
JOB_TYPE_ALTERATION = "Alteration"
JOB_TYPE_DEMOLITION = "Demolition"

# ---------------------------------------------------------------------------
# Building classification
# ---------------------------------------------------------------------------

BuildingType = Literal[
    "affordable",
    "renovation",
    "one-two-family",
    "multifamily-walkup",
    "multifamily-elevator",
    "mixed-use",
    "unknown",
]

BUILDING_TYPES: tuple[str, ...] = (
    "affordable",
    "renovation",
    "one-two-family",
    "multifamily-walkup",
    "multifamily-elevator",
    "mixed-use",
    "unknown",
)

# Building class code prefixes treated as mixed-use structures
MIXED_USE_CLASS_PREFIXES: frozenset[str] = frozenset({"D", "O"})

ELEVATOR_MIN_UNITS = 50
WALKUP_MIN_UNITS = 3
ONE_TWO_FAMILY_MAX_UNITS = 2

# ---------------------------------------------------------------------------
# Provenance
# ---------------------------------------------------------------------------

DataSource = Literal["dcp", "dcp-affordable"]

DATA_SOURCE_DCP: DataSource = "dcp"
DATA_SOURCE_DCP_AFFORDABLE: DataSource = "dcp-affordable"

# ---------------------------------------------------------------------------
# Housing NY field names
# ---------------------------------------------------------------------------

# Income tiers that count towards affordable units (other_income_units does not)
AFFORDABLE_INCOME_FIELDS: tuple[str, ...] = (
    "extremely_low_income_units",
    "very_low_income_units",
    "low_income_units",
    "moderate_income_units",
    "middle_income_units",
)

# Housing NY raw field -> canonical bedroom field
BEDROOM_FIELDS: dict[str, str] = {
    "studio_units": "studio_units",
    "1_br_units": "one_br_units",
    "2_br_units": "two_br_units",
    "3_br_units": "three_br_units",
    "4_br_units": "four_br_units",
    "5_br_units": "five_br_units",
    "6_br_units": "six_br_units",
    "unknown_br_units": "unknown_br_units",
}

# ---------------------------------------------------------------------------
# Capital budget data correction
# ---------------------------------------------------------------------------

# A single CPDB project reports ~100 billion instead of 100 million
BUDGET_ERROR_RANGE: tuple[float, float] = (99e9, 101e9)
BUDGET_CORRECTED_VALUE = 100e6

# ---------------------------------------------------------------------------
# Persisted tables
# ---------------------------------------------------------------------------

TABLE_HOUSING_BUILDINGS = "housing_buildings"
TABLE_HOUSING_DEMOLITIONS = "housing_demolitions"
TABLE_CAPITAL_PROJECTS = "capital_projects"

ALL_TABLES: tuple[str, ...] = (
    TABLE_HOUSING_BUILDINGS,
    TABLE_HOUSING_DEMOLITIONS,
    TABLE_CAPITAL_PROJECTS,
)

# Columns maintained by the database or stamped per sync; never part of content
VOLATILE_COLUMNS: frozenset[str] = frozenset({"created_at", "updated_at", "last_synced_at"})
