"""
transforms/overlay.py — Housing NY affordability overlay onto DCP buildings.

Housing NY and the DCP Housing Database are keyed independently; the only
shared key is the BBL. For each BBL the overlay with the most affordable
units is kept, then copied wholesale onto every DCP building on that lot.

Usage:
    from nycdata_pipeline.transforms.overlay import build_overlay_index, merge_overlays

    index = build_overlay_index(overlays)
    buildings, report = merge_overlays(buildings, index)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

import structlog

from nycdata_shared.constants import DATA_SOURCE_DCP_AFFORDABLE
from nycdata_shared.models import AffordableOverlay, HousingBuilding
from nycdata_pipeline.transforms.classify import classify_building

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OverlayReport:
    buildings_total: int
    overlaid_count: int
    total_units: int
    affordable_units: int

    @property
    def affordable_percentage(self) -> float:
        if self.total_units <= 0:
            return 0.0
        return self.affordable_units / self.total_units * 100


def build_overlay_index(
    overlays: Iterable[AffordableOverlay],
) -> Mapping[str, AffordableOverlay]:
    """
    Map BBL -> overlay with the greatest affordable_units.

    On an exact tie the first overlay seen is kept. The returned mapping is
    read-only.
    """
    best: dict[str, AffordableOverlay] = {}
    for overlay in overlays:
        current = best.get(overlay.bbl)
        if current is None or overlay.affordable_units > current.affordable_units:
            best[overlay.bbl] = overlay
    return MappingProxyType(best)


def apply_overlay(building: HousingBuilding, overlay: AffordableOverlay) -> HousingBuilding:
    """
    Return a copy of building with every affordability field replaced by the
    overlay's, provenance set to dcp-affordable, and the type reclassified.
    """
    return building.model_copy(
        update={
            "affordable_units": overlay.affordable_units,
            "affordable_percentage": overlay.affordable_percentage,
            "extreme_low_income_units": overlay.extreme_low_income_units,
            "very_low_income_units": overlay.very_low_income_units,
            "low_income_units": overlay.low_income_units,
            "moderate_income_units": overlay.moderate_income_units,
            "middle_income_units": overlay.middle_income_units,
            "other_income_units": overlay.other_income_units,
            "studio_units": overlay.studio_units,
            "one_br_units": overlay.one_br_units,
            "two_br_units": overlay.two_br_units,
            "three_br_units": overlay.three_br_units,
            "four_br_units": overlay.four_br_units,
            "five_br_units": overlay.five_br_units,
            "six_br_units": overlay.six_br_units,
            "unknown_br_units": overlay.unknown_br_units,
            "housing_ny_project_id": overlay.project_id,
            "housing_ny_project_name": overlay.project_name,
            "housing_ny_construction_type": overlay.construction_type,
            "housing_ny_extended_affordability_only": overlay.extended_affordability_only,
            "data_source": DATA_SOURCE_DCP_AFFORDABLE,
            "has_affordable_overlay": True,
            "building_type": classify_building(
                building.total_units,
                building.building_class,
                building.job_type,
                True,
                overlay.affordable_units,
            ),
        }
    )


def merge_overlays(
    buildings: Iterable[HousingBuilding],
    index: Mapping[str, AffordableOverlay],
) -> tuple[list[HousingBuilding], OverlayReport]:
    """Apply the indexed overlay to each building whose BBL has one."""
    merged: list[HousingBuilding] = []
    overlaid = 0
    total_units = 0
    affordable_units = 0

    for building in buildings:
        overlay = index.get(building.bbl) if building.bbl else None
        if overlay is not None:
            building = apply_overlay(building, overlay)
            overlaid += 1
        total_units += building.total_units
        affordable_units += building.affordable_units
        merged.append(building)

    report = OverlayReport(
        buildings_total=len(merged),
        overlaid_count=overlaid,
        total_units=total_units,
        affordable_units=affordable_units,
    )
    log.info(
        "overlay_merged",
        buildings=report.buildings_total,
        overlaid=report.overlaid_count,
        total_units=report.total_units,
        affordable_units=report.affordable_units,
        affordable_percentage=round(report.affordable_percentage, 1),
    )
    return merged, report
