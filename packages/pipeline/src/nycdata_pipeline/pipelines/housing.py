"""
pipelines/housing.py — NYC housing construction and demolition pipeline.

Sources:
  - DCP Housing Database (ArcGIS): completed new buildings and alterations
    with net units added, plus demolitions
  - Housing NY (NYC Open Data): affordable projects, overlaid by BBL

Tables (replaced together, only when either one changed):
  - housing_buildings
  - housing_demolitions

Every validation gate runs before anything is cleared; a failed gate ends
the run with status "validation_failed" and the stored tables untouched.

Usage:
    from nycdata_pipeline.pipelines.housing import run
    outcome = await run()                 # fetch, reconcile, replace if changed
    outcome = await run(dry_run=True)     # everything except change detection and writes
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import polars as pl

from nycdata_shared.config import settings
from nycdata_shared.constants import (
    JOB_TYPE_ALTERATION,
    JOB_TYPE_DEMOLITION,
    JOB_TYPE_NEW_BUILDING,
    TABLE_HOUSING_BUILDINGS,
    TABLE_HOUSING_DEMOLITIONS,
)
from nycdata_shared.models import HousingBuilding, HousingDemolition
from nycdata_pipeline.loaders.change_detection import detect_data_changes
from nycdata_pipeline.loaders.supabase_loader import SupabaseLoader
from nycdata_pipeline.pipelines.outcome import RunOutcome
from nycdata_pipeline.sources.arcgis import ArcGISSource
from nycdata_pipeline.sources.opendata import OpenDataSource
from nycdata_pipeline.transforms.dedup import deduplicate_buildings
from nycdata_pipeline.transforms.demolitions import construction_bbls, match_demolitions
from nycdata_pipeline.transforms.normalize import (
    normalize_demolition_records,
    normalize_housing_records,
    normalize_overlay_records,
)
from nycdata_pipeline.transforms.overlay import build_overlay_index, merge_overlays
from nycdata_pipeline.utils.logging import configure_logging, get_logger, pipeline_context
from nycdata_pipeline.utils.validation import (
    ValidationGate,
    require_fields,
    validate_data_types,
    validate_minimum_record_count,
    validate_processed_records,
    validate_required_fields,
    validators,
)

log = get_logger(__name__)

PIPELINE = "housing"

DCP_REQUIRED_FIELDS = ["Job_Number", "CompltYear", "BBL", "Latitude", "Longitude", "ClassANet"]
HOUSING_NY_REQUIRED_FIELDS = ["bbl", "building_completion_date", "all_counted_units"]
HOUSING_NY_PAGE_SIZE = 20000


def _dcp_where(job_type: str, year_range: tuple[int, int], *, positive_net: bool = False) -> str:
    clause = f"Job_Type = '{job_type}'"
    if positive_net:
        clause += " AND ClassANet > 0"
    return f"{clause} AND CompltYear >= '{year_range[0]}' AND CompltYear <= '{year_range[1]}'"


# ---------------------------------------------------------------------------
# Validation gates
# ---------------------------------------------------------------------------


def _validate_dcp(records: Sequence[dict[str, Any]], year_range: tuple[int, int]) -> ValidationGate:
    dataset = "DCP Housing Database"
    gate = ValidationGate(dataset)
    gate.check(validate_minimum_record_count(records, settings.min_housing_records, dataset))
    gate.check(validate_required_fields(records, DCP_REQUIRED_FIELDS, dataset, 50))
    gate.check(
        validate_data_types(
            records,
            {
                "Latitude": validators.is_valid_latitude,
                "Longitude": validators.is_valid_longitude,
                "CompltYear": validators.is_year_in_range(*year_range),
                "ClassANet": validators.is_number,
            },
            dataset,
            50,
        )
    )
    return gate


def _validate_housing_ny(records: Sequence[dict[str, Any]]) -> ValidationGate:
    dataset = "Housing NY"
    gate = ValidationGate(dataset)
    gate.check(validate_minimum_record_count(records, settings.min_housing_ny_records, dataset))
    gate.check(validate_required_fields(records, HOUSING_NY_REQUIRED_FIELDS, dataset, 20))
    return gate


def _validate_processed(
    buildings: Sequence[HousingBuilding],
    demolitions: Sequence[HousingDemolition],
) -> ValidationGate:
    gate = ValidationGate("Housing (processed)")
    gate.check(
        validate_processed_records(
            buildings,
            [
                lambda records: validate_minimum_record_count(
                    records, settings.min_housing_records, "Processed Buildings"
                ),
                require_fields("Housing Buildings", "id", "total_units", "completion_year"),
            ],
            "Housing Buildings",
        )
    )
    gate.check(
        validate_processed_records(
            demolitions,
            [require_fields("Demolitions", "id", "demolition_year")],
            "Demolitions",
            allow_empty=True,
        )
    )
    return gate


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def summarize(
    buildings: Sequence[HousingBuilding],
    demolitions: Sequence[HousingDemolition],
) -> dict[str, Any]:
    """Run summary: building counts by source and type, units, demolitions by borough."""
    buildings_df = pl.DataFrame(
        {
            "data_source": [b.data_source for b in buildings],
            "building_type": [b.building_type for b in buildings],
            "total_units": [b.total_units for b in buildings],
            "affordable_units": [b.affordable_units for b in buildings],
        },
        schema={
            "data_source": pl.String,
            "building_type": pl.String,
            "total_units": pl.Int64,
            "affordable_units": pl.Int64,
        },
    )
    demolitions_df = pl.DataFrame(
        {
            "borough": [d.borough for d in demolitions],
            "has_new_construction": [d.has_new_construction for d in demolitions],
            "estimated_units": [d.estimated_units for d in demolitions],
        },
        schema={
            "borough": pl.String,
            "has_new_construction": pl.Boolean,
            "estimated_units": pl.Int64,
        },
    )

    def _counts(df: pl.DataFrame, column: str) -> dict[str, int]:
        grouped = df.group_by(column).agg(pl.len().alias("n")).sort(column)
        return dict(zip(grouped[column].to_list(), grouped["n"].to_list()))

    total_units = int(buildings_df["total_units"].sum() or 0)
    affordable_units = int(buildings_df["affordable_units"].sum() or 0)
    standalone_df = demolitions_df.filter(~pl.col("has_new_construction"))

    return {
        "buildings": len(buildings_df),
        "buildings_by_data_source": _counts(buildings_df, "data_source"),
        "buildings_by_type": _counts(buildings_df, "building_type"),
        "total_units": total_units,
        "affordable_units": affordable_units,
        "affordable_percentage": (
            round(affordable_units / total_units * 100, 1) if total_units > 0 else 0.0
        ),
        "demolitions": len(demolitions_df),
        "standalone_demolitions": len(standalone_df),
        "demolitions_by_borough": _counts(demolitions_df, "borough"),
        "standalone_demolitions_by_borough": _counts(standalone_df, "borough"),
    }


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


async def run(
    *,
    dry_run: bool = False,
    arcgis: ArcGISSource | None = None,
    opendata: OpenDataSource | None = None,
    loader: SupabaseLoader | None = None,
    year_range: tuple[int, int] | None = None,
) -> RunOutcome:
    """
    Fetch, reconcile and (if changed) replace the housing tables.

    Args:
        dry_run:    Run every step except change detection and writes.
        arcgis:     DCP Housing Database source (default: settings URL).
        opendata:   NYC Open Data source for Housing NY.
        loader:     Storage collaborator (default: SupabaseLoader()).
        year_range: Inclusive completion-year bounds (default: settings).

    Returns:
        RunOutcome with status success, skipped, dry_run or validation_failed.

    Raises:
        StorageError: a write failed after the tables were cleared.
    """
    configure_logging()
    with pipeline_context(PIPELINE, dry_run=dry_run):
        return await _run(
            dry_run=dry_run, arcgis=arcgis, opendata=opendata, loader=loader, year_range=year_range
        )


async def _run(
    *,
    dry_run: bool,
    arcgis: ArcGISSource | None,
    opendata: OpenDataSource | None,
    loader: SupabaseLoader | None,
    year_range: tuple[int, int] | None,
) -> RunOutcome:
    year_range = year_range or settings.completion_year_range
    arcgis = arcgis or ArcGISSource(settings.dcp_housing_database_url)
    opendata = opendata or OpenDataSource()

    log.info("housing_pipeline_start", year_range=list(year_range))

    # --- DCP Housing Database: new buildings + alterations -------------------
    new_buildings = await arcgis.run(
        where=_dcp_where(JOB_TYPE_NEW_BUILDING, year_range),
        order_by="CompltYear DESC",
        batch_size=settings.arcgis_batch_size,
    )
    alterations = await arcgis.run(
        where=_dcp_where(JOB_TYPE_ALTERATION, year_range, positive_net=True),
        order_by="CompltYear DESC",
        batch_size=settings.arcgis_batch_size,
    )
    dcp_records = [*new_buildings, *alterations]
    log.info("dcp_records_fetched", new_buildings=len(new_buildings), alterations=len(alterations))

    gate = _validate_dcp(dcp_records, year_range)
    if not gate.passed:
        gate.log_failures()
        return RunOutcome.validation_failed(PIPELINE, gate.failures)

    # --- Housing NY ----------------------------------------------------------
    housing_ny_records = await opendata.run(
        url=settings.housing_ny_url,
        limit=HOUSING_NY_PAGE_SIZE,
        order="building_completion_date DESC",
    )

    gate = _validate_housing_ny(housing_ny_records)
    if not gate.passed:
        gate.log_failures()
        return RunOutcome.validation_failed(PIPELINE, gate.failures)

    # --- Demolitions ---------------------------------------------------------
    demolition_records = await arcgis.run(
        where=_dcp_where(JOB_TYPE_DEMOLITION, year_range),
        order_by="CompltYear DESC",
        batch_size=settings.arcgis_batch_size,
    )

    # --- Reconcile -----------------------------------------------------------
    dcp_buildings, _ = normalize_housing_records(dcp_records, year_range=year_range)
    overlays, _ = normalize_overlay_records(housing_ny_records, year_range=year_range)
    merged, _ = merge_overlays(dcp_buildings, build_overlay_index(overlays))
    buildings, _ = deduplicate_buildings(merged)

    normalized_demolitions, _ = normalize_demolition_records(
        demolition_records, year_range=year_range
    )
    demolitions, _ = match_demolitions(normalized_demolitions, construction_bbls(buildings))

    gate = _validate_processed(buildings, demolitions)
    if not gate.passed:
        gate.log_failures()
        return RunOutcome.validation_failed(PIPELINE, gate.failures)

    summary = summarize(buildings, demolitions)

    if dry_run:
        log.info("dry_run_skip", buildings=len(buildings), demolitions=len(demolitions))
        log.info("housing_pipeline_complete", status="dry_run", **summary)
        return RunOutcome(PIPELINE, "dry_run", reason="Dry run: no writes", summary=summary)

    # --- Change detection + replace ------------------------------------------
    loader = loader or SupabaseLoader()
    building_rows = [b.to_insert_dict() for b in buildings]
    demolition_rows = [d.to_insert_dict() for d in demolitions]

    changes = {
        TABLE_HOUSING_BUILDINGS: await detect_data_changes(
            loader, TABLE_HOUSING_BUILDINGS, building_rows
        ),
        TABLE_HOUSING_DEMOLITIONS: await detect_data_changes(
            loader, TABLE_HOUSING_DEMOLITIONS, demolition_rows
        ),
    }

    if not any(c.has_changes for c in changes.values()):
        log.info("housing_pipeline_complete", status="skipped", reason="No changes detected")
        return RunOutcome(
            PIPELINE,
            "skipped",
            reason="No changes detected",
            changes=changes,
            summary=summary,
        )

    loads = {
        TABLE_HOUSING_BUILDINGS: await loader.replace(TABLE_HOUSING_BUILDINGS, building_rows),
        TABLE_HOUSING_DEMOLITIONS: await loader.replace(TABLE_HOUSING_DEMOLITIONS, demolition_rows),
    }

    log.info(
        "housing_pipeline_complete",
        status="success",
        tables={t: r.records_loaded for t, r in loads.items()},
        **summary,
    )
    return RunOutcome(
        PIPELINE,
        "success",
        reason="; ".join(f"{t}: {c.reason}" for t, c in changes.items() if c.has_changes),
        changes=changes,
        loads=loads,
        summary=summary,
    )
