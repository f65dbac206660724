"""
transforms/classify.py — Building type classification.

Two tiers: program status (affordable overlay, alteration) overrides the
physical form derived from unit count and building class. Buildings are
classified once at normalization and again after the affordability overlay,
because overlay presence is only known post-merge.
"""

from __future__ import annotations

from nycdata_shared.constants import (
    ELEVATOR_MIN_UNITS,
    JOB_TYPE_ALTERATION,
    MIXED_USE_CLASS_PREFIXES,
    ONE_TWO_FAMILY_MAX_UNITS,
    WALKUP_MIN_UNITS,
    BuildingType,
)


def physical_building_type(total_units: int, building_class: str | None) -> BuildingType:
    """Structural type, independent of affordability or renovation status."""
    if building_class and building_class[0].upper() in MIXED_USE_CLASS_PREFIXES:
        return "mixed-use"

    if total_units >= ELEVATOR_MIN_UNITS:
        return "multifamily-elevator"
    if total_units >= WALKUP_MIN_UNITS:
        return "multifamily-walkup"
    if 0 < total_units <= ONE_TWO_FAMILY_MAX_UNITS:
        return "one-two-family"
    return "unknown"


def classify_building(
    total_units: int,
    building_class: str | None,
    job_type: str | None,
    has_affordable_overlay: bool,
    affordable_units: int,
) -> BuildingType:
    """
    Classify a building; first match wins.

    1. affordable overlay with affordable units > 0 -> "affordable"
    2. alteration job                                -> "renovation"
    3. physical_building_type()
    """
    if has_affordable_overlay and affordable_units > 0:
        return "affordable"
    if job_type == JOB_TYPE_ALTERATION:
        return "renovation"
    return physical_building_type(total_units, building_class)
