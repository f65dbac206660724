"""
transforms/normalize.py — Raw provider records -> typed pipeline records.

Three providers, four record shapes:
  normalize_housing_records()     DCP Housing Database (new buildings, alterations)
  normalize_demolition_records()  DCP Housing Database (demolitions)
  normalize_overlay_records()     Housing NY affordable projects
  normalize_capital_projects()    CPDB GeoJSON features

Invalid records (unparseable or zero coordinates, completion year outside
the configured range, no units) are dropped and counted per reason in the
returned NormalizeStats; they never raise. Only input that is not a
sequence of records at all raises TypeError.

Usage:
    from nycdata_pipeline.transforms.normalize import normalize_housing_records

    buildings, stats = normalize_housing_records(raw, year_range=(2014, 2025))
    print(stats.accepted, stats.dropped, dict(stats.drop_reasons))
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import pydantic
import structlog
from dateutil import parser as date_parser

from nycdata_shared.config import settings
from nycdata_shared.constants import (
    AFFORDABLE_INCOME_FIELDS,
    BEDROOM_FIELDS,
    BUDGET_CORRECTED_VALUE,
    BUDGET_ERROR_RANGE,
    JOB_TYPE_DEMOLITION,
)
from nycdata_shared.geo import borough_name, normalize_bbl, parse_coordinate
from nycdata_shared.models import (
    AffordableOverlay,
    CapitalProject,
    HousingBuilding,
    HousingDemolition,
)
from nycdata_pipeline.transforms.classify import classify_building, physical_building_type

log = structlog.get_logger(__name__)

ADDRESS_NOT_AVAILABLE = "Address Not Available"


@dataclass
class NormalizeStats:
    """Accepted/dropped counters for one normalization pass."""

    dataset: str
    accepted: int = 0
    dropped: int = 0
    drop_reasons: Counter[str] = field(default_factory=Counter)

    @property
    def total(self) -> int:
        return self.accepted + self.dropped

    def drop(self, reason: str) -> None:
        self.dropped += 1
        self.drop_reasons[reason] += 1

    def log(self) -> None:
        log.info(
            "normalize_complete",
            dataset=self.dataset,
            accepted=self.accepted,
            dropped=self.dropped,
            drop_reasons=dict(self.drop_reasons),
        )


# ---------------------------------------------------------------------------
# Value parsing helpers
# ---------------------------------------------------------------------------


def _ensure_sequence(records: Any, dataset: str) -> Sequence[Any]:
    if isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Sequence):
        raise TypeError(
            f"{dataset}: expected a sequence of records, got {type(records).__name__}"
        )
    return records


def _parse_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def _parse_int(value: Any) -> int | None:
    """Integer part of a numeric value ("2020", 2020.0, "2020.7" -> 2020)."""
    parsed = _parse_float(value)
    return int(parsed) if parsed is not None else None


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _iso_date(value: Any) -> str | None:
    """ISO-8601 string from an epoch-millisecond number or a date string."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()
    try:
        return date_parser.parse(str(value)).isoformat()
    except (ValueError, OverflowError):
        return None


def _year(value: Any) -> int | None:
    iso = _iso_date(value)
    return int(iso[:4]) if iso else None


def _address(record: Mapping[str, Any]) -> str:
    number = _text(record.get("AddressNum")) or ""
    street = _text(record.get("AddressSt")) or ""
    return f"{number} {street}".strip() or ADDRESS_NOT_AVAILABLE


def _in_range(year: int | None, year_range: tuple[int, int]) -> bool:
    return year is not None and year_range[0] <= year <= year_range[1]


# ---------------------------------------------------------------------------
# DCP Housing Database — new buildings and alterations
# ---------------------------------------------------------------------------


def normalize_housing_records(
    records: Sequence[Mapping[str, Any]],
    *,
    year_range: tuple[int, int] | None = None,
) -> tuple[list[HousingBuilding], NormalizeStats]:
    """
    Convert DCP Housing Database rows to HousingBuilding records.

    Drops rows with invalid coordinates, a completion year outside
    year_range, or a non-positive net unit change (ClassANet).
    Affordability fields start at zero and unknown-bedroom units equal
    total units until the Housing NY overlay replaces them.
    """
    records = _ensure_sequence(records, "DCP Housing Database")
    year_range = year_range or settings.completion_year_range
    stats = NormalizeStats(dataset="DCP Housing Database")
    buildings: list[HousingBuilding] = []

    for record in records:
        if not isinstance(record, Mapping):
            stats.drop("malformed_record")
            continue

        lat = parse_coordinate(record.get("Latitude"))
        lon = parse_coordinate(record.get("Longitude"))
        if lat is None or lon is None:
            stats.drop("invalid_coordinates")
            continue

        completion_year = _parse_int(record.get("CompltYear"))
        if not _in_range(completion_year, year_range):
            stats.drop("completion_year_out_of_range")
            continue

        class_a_net = _parse_float(record.get("ClassANet")) or 0.0
        total_units = _round_half_up(class_a_net)
        if total_units <= 0:
            stats.drop("non_positive_units")
            continue

        job_number = _text(record.get("Job_Number")) or f"DCP-{_text(record.get('OBJECTID'))}"
        job_type = _text(record.get("Job_Type")) or "Unknown"
        borough = borough_name(record.get("Boro"))
        address = _address(record)
        building_class = _text(record.get("Bldg_Class"))

        try:
            building = HousingBuilding(
                id=job_number,
                name=f"{address}, {borough}",
                job_number=job_number,
                job_type=job_type,
                job_status=_text(record.get("Job_Status")),
                job_description=_text(record.get("Job_Desc")),
                longitude=lon,
                latitude=lat,
                address=address,
                borough=borough,
                bbl=normalize_bbl(record.get("BBL")),
                bin=_text(record.get("BIN")),
                community_district=_text(record.get("CommntyDst")),
                council_district=_text(record.get("CouncilDst")),
                census_tract_2020=_text(record.get("BCT2020")),
                nta_2020=_text(record.get("NTA2020")),
                nta_name_2020=_text(record.get("NTAName20")),
                completion_year=completion_year,
                completion_date=_iso_date(record.get("DateComplt")),
                permit_year=_parse_int(record.get("PermitYear")) or None,
                permit_date=_iso_date(record.get("DatePermit")),
                class_a_init=_round_half_up(_parse_float(record.get("ClassAInit")) or 0.0),
                class_a_prop=_round_half_up(_parse_float(record.get("ClassAProp")) or 0.0),
                class_a_net=total_units,
                units_co=_round_half_up(_parse_float(record.get("Units_CO")) or 0.0),
                total_units=total_units,
                unknown_br_units=total_units,
                building_type=classify_building(total_units, building_class, job_type, False, 0),
                physical_building_type=physical_building_type(total_units, building_class),
                building_class=building_class,
                zoning_district_1=_text(record.get("ZoningDst1")),
                zoning_district_2=_text(record.get("ZoningDst2")),
                zoning_district_3=_text(record.get("ZoningDst3")),
                floors_init=_parse_float(record.get("FloorsInit")) or None,
                floors_prop=_parse_float(record.get("FloorsProp")) or None,
                ownership=_text(record.get("Ownership")),
            )
        except pydantic.ValidationError as exc:
            log.debug("record_rejected", job_number=job_number, error=str(exc))
            stats.drop("malformed_record")
            continue

        buildings.append(building)
        stats.accepted += 1

    stats.log()
    return buildings, stats


# ---------------------------------------------------------------------------
# DCP Housing Database — demolitions
# ---------------------------------------------------------------------------


def normalize_demolition_records(
    records: Sequence[Mapping[str, Any]],
    *,
    year_range: tuple[int, int] | None = None,
) -> tuple[list[HousingDemolition], NormalizeStats]:
    """
    Convert DCP demolition jobs to HousingDemolition records.

    Rows whose Job_Type is not "Demolition" are skipped without counting as
    drops. Coordinates are optional here; estimated units come from the
    pre-demolition unit count (ClassAInit), falling back to |ClassANet|.
    """
    records = _ensure_sequence(records, "DCP Demolitions")
    year_range = year_range or settings.completion_year_range
    stats = NormalizeStats(dataset="DCP Demolitions")
    demolitions: list[HousingDemolition] = []

    for record in records:
        if not isinstance(record, Mapping):
            stats.drop("malformed_record")
            continue
        if record.get("Job_Type") != JOB_TYPE_DEMOLITION:
            continue

        demolition_year = _parse_int(record.get("CompltYear"))
        if not _in_range(demolition_year, year_range):
            stats.drop("completion_year_out_of_range")
            continue

        job_number = _text(record.get("Job_Number")) or f"DCP-DM-{_text(record.get('OBJECTID'))}"
        class_a_init = _round_half_up(abs(_parse_float(record.get("ClassAInit")) or 0.0))
        class_a_net = _round_half_up(_parse_float(record.get("ClassANet")) or 0.0)

        try:
            demolition = HousingDemolition(
                id=job_number,
                job_number=job_number,
                job_type=JOB_TYPE_DEMOLITION,
                job_status=_text(record.get("Job_Status")),
                job_description=_text(record.get("Job_Desc")),
                bbl=normalize_bbl(record.get("BBL")),
                borough=borough_name(record.get("Boro")),
                address=_address(record),
                latitude=parse_coordinate(record.get("Latitude")),
                longitude=parse_coordinate(record.get("Longitude")),
                demolition_year=demolition_year,
                demolition_date=_iso_date(record.get("DateComplt")),
                class_a_init=class_a_init,
                class_a_net=class_a_net,
                estimated_units=class_a_init or abs(class_a_net),
                building_class=_text(record.get("Bldg_Class")),
            )
        except pydantic.ValidationError as exc:
            log.debug("record_rejected", job_number=job_number, error=str(exc))
            stats.drop("malformed_record")
            continue

        demolitions.append(demolition)
        stats.accepted += 1

    stats.log()
    return demolitions, stats


# ---------------------------------------------------------------------------
# Housing NY — affordable overlay
# ---------------------------------------------------------------------------


def _unit_count(record: Mapping[str, Any], key: str) -> int:
    return _parse_int(record.get(key)) or 0


def normalize_overlay_records(
    records: Sequence[Mapping[str, Any]],
    *,
    year_range: tuple[int, int] | None = None,
) -> tuple[list[AffordableOverlay], NormalizeStats]:
    """
    Convert Housing NY project rows to AffordableOverlay records.

    Requires a BBL, a completion date inside year_range, and a non-zero
    counted-unit total. Affordable units are the sum of the five
    income-restricted tiers; other_income_units is carried but not counted.
    """
    records = _ensure_sequence(records, "Housing NY")
    year_range = year_range or settings.completion_year_range
    stats = NormalizeStats(dataset="Housing NY")
    overlays: list[AffordableOverlay] = []

    for record in records:
        if not isinstance(record, Mapping):
            stats.drop("malformed_record")
            continue

        bbl = normalize_bbl(record.get("bbl"))
        if not bbl:
            stats.drop("missing_bbl")
            continue

        completion_year = _year(record.get("building_completion_date"))
        if completion_year is None:
            stats.drop("missing_completion_date")
            continue
        if not _in_range(completion_year, year_range):
            stats.drop("completion_year_out_of_range")
            continue

        counted_units = _parse_int(record.get("all_counted_units") or record.get("total_units")) or 0
        if counted_units == 0:
            stats.drop("no_counted_units")
            continue

        affordable_units = sum(_unit_count(record, f) for f in AFFORDABLE_INCOME_FIELDS)

        overlays.append(
            AffordableOverlay(
                bbl=bbl,
                completion_year=completion_year,
                counted_units=counted_units,
                affordable_units=affordable_units,
                affordable_percentage=affordable_units / counted_units * 100,
                extreme_low_income_units=_unit_count(record, "extremely_low_income_units"),
                very_low_income_units=_unit_count(record, "very_low_income_units"),
                low_income_units=_unit_count(record, "low_income_units"),
                moderate_income_units=_unit_count(record, "moderate_income_units"),
                middle_income_units=_unit_count(record, "middle_income_units"),
                other_income_units=_unit_count(record, "other_income_units"),
                **{column: _unit_count(record, raw) for raw, column in BEDROOM_FIELDS.items()},
                project_id=_text(record.get("project_id")),
                project_name=_text(record.get("project_name")),
                construction_type=_text(record.get("reporting_construction_type")),
                extended_affordability_only=record.get("extended_affordability_only") == "Yes",
            )
        )
        stats.accepted += 1

    stats.log()
    return overlays, stats


# ---------------------------------------------------------------------------
# CPDB — capital projects
# ---------------------------------------------------------------------------


def correct_allocate_total(value: float, maprojid: str | None = None) -> float:
    """
    Patch the known CPDB data error: one project reports ~100 billion
    allocated where the true figure is 100 million.
    """
    low, high = BUDGET_ERROR_RANGE
    if low <= value <= high:
        log.warning(
            "budget_value_corrected",
            maprojid=maprojid,
            original=value,
            corrected=BUDGET_CORRECTED_VALUE,
        )
        return BUDGET_CORRECTED_VALUE
    return value


def _year_prefix(value: Any) -> int | None:
    text = _text(value)
    if not text:
        return None
    return _parse_int(text[:4])


def normalize_capital_projects(
    features: Sequence[Mapping[str, Any]],
) -> tuple[list[CapitalProject], NormalizeStats]:
    """
    Convert CPDB GeoJSON features to CapitalProject records.

    Geometry is carried as-is; centroids and simplified shapes are added
    later by transforms.geometry.
    """
    features = _ensure_sequence(features, "Capital Projects")
    stats = NormalizeStats(dataset="Capital Projects")
    projects: list[CapitalProject] = []

    for index, feature in enumerate(features):
        if not isinstance(feature, Mapping) or not isinstance(feature.get("properties"), Mapping):
            stats.drop("malformed_record")
            continue

        props = feature["properties"]
        maprojid = _text(props.get("maprojid"))
        allocate_total = correct_allocate_total(
            _parse_float(props.get("allocate_total")) or 0.0, maprojid
        )

        try:
            project = CapitalProject(
                id=maprojid or f"project-{index}",
                maprojid=maprojid or "Unknown",
                description=_text(props.get("description")) or "Unnamed Project",
                managing_agency=_text(props.get("magencyname")) or "Unknown Agency",
                managing_agency_acronym=_text(props.get("magencyacro")) or "N/A",
                type_category=_text(props.get("typecategory")) or "Unknown",
                min_date=_text(props.get("mindate")),
                max_date=_text(props.get("maxdate")),
                fiscal_year=_year_prefix(props.get("mindate")),
                completion_year=_year_prefix(props.get("maxdate")),
                allocate_total=allocate_total,
                commit_total=_parse_float(props.get("commit_total")) or 0.0,
                spent_total=_parse_float(props.get("spent_total")) or 0.0,
                planned_commit_total=_parse_float(props.get("plannedcommit_total")) or 0.0,
                geometry=feature.get("geometry"),
            )
        except pydantic.ValidationError as exc:
            log.debug("record_rejected", maprojid=maprojid, error=str(exc))
            stats.drop("malformed_record")
            continue

        projects.append(project)
        stats.accepted += 1

    stats.log()
    return projects, stats
