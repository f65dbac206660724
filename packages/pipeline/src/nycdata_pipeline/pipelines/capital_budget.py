"""
pipelines/capital_budget.py — NYC Capital Projects Database (CPDB) pipeline.

Fetches active and future capital projects with allocated budgets as
GeoJSON, corrects the known budget outlier, pre-computes centroids and
simplified geometry, and replaces the capital_projects table when its
contents changed.

Usage:
    from nycdata_pipeline.pipelines.capital_budget import run
    outcome = await run()
    outcome = await run(dry_run=True, tolerance=0.0005)
"""

from __future__ import annotations

from nycdata_shared.config import settings
from nycdata_shared.constants import TABLE_CAPITAL_PROJECTS
from nycdata_pipeline.loaders.change_detection import detect_data_changes
from nycdata_pipeline.loaders.supabase_loader import SupabaseLoader
from nycdata_pipeline.pipelines.outcome import RunOutcome
from nycdata_pipeline.sources.opendata import OpenDataSource
from nycdata_pipeline.transforms.geometry import simplify_projects
from nycdata_pipeline.transforms.normalize import normalize_capital_projects
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

PIPELINE = "capital_budget"
DATASET = "Capital Projects"

CPDB_REQUIRED_FIELDS = ["maprojid", "description", "magencyname", "allocate_total"]
CPDB_FEATURE_LIMIT = 10000


async def run(
    *,
    dry_run: bool = False,
    opendata: OpenDataSource | None = None,
    loader: SupabaseLoader | None = None,
    tolerance: float | None = None,
) -> RunOutcome:
    """
    Fetch, simplify and (if changed) replace capital_projects.

    Raises:
        StorageError: a write failed after the table was cleared.
    """
    configure_logging()
    with pipeline_context(PIPELINE, dry_run=dry_run):
        return await _run(dry_run=dry_run, opendata=opendata, loader=loader, tolerance=tolerance)


async def _run(
    *,
    dry_run: bool,
    opendata: OpenDataSource | None,
    loader: SupabaseLoader | None,
    tolerance: float | None,
) -> RunOutcome:
    tolerance = tolerance if tolerance is not None else settings.geometry_tolerance
    opendata = opendata or OpenDataSource()

    where = f"maxdate>='{settings.capital_min_completion_date}' AND allocate_total>0"
    log.info("capital_budget_pipeline_start", where=where, tolerance=tolerance)

    features = await opendata.extract_features(
        settings.cpdb_url, where=where, limit=CPDB_FEATURE_LIMIT
    )
    properties = [f.get("properties") or {} for f in features]

    gate = ValidationGate(DATASET)
    gate.check(validate_minimum_record_count(features, settings.min_capital_projects, DATASET))
    gate.check(validate_required_fields(properties, CPDB_REQUIRED_FIELDS, DATASET, 30))
    gate.check(
        validate_data_types(
            properties,
            {
                "allocate_total": validators.is_number,
                "commit_total": validators.is_number,
                "spent_total": validators.is_number,
            },
            DATASET,
            30,
        )
    )
    if not gate.passed:
        gate.log_failures()
        return RunOutcome.validation_failed(PIPELINE, gate.failures)

    normalized, _ = normalize_capital_projects(features)
    projects, simplification = simplify_projects(normalized, tolerance)

    gate = ValidationGate(f"{DATASET} (processed)")
    gate.check(
        validate_processed_records(
            projects,
            [
                lambda records: validate_minimum_record_count(
                    records, settings.min_capital_projects, "Processed Capital Projects"
                ),
                require_fields(DATASET, "id", "maprojid", "description"),
            ],
            DATASET,
        )
    )
    if not gate.passed:
        gate.log_failures()
        return RunOutcome.validation_failed(PIPELINE, gate.failures)

    summary = {
        "projects": len(projects),
        "total_allocated": round(sum(p.allocate_total for p in projects)),
        "with_geometry": simplification.with_geometry,
        "vertices_before": simplification.vertices_before,
        "vertices_after": simplification.vertices_after,
    }

    if dry_run:
        log.info("capital_budget_pipeline_complete", status="dry_run", **summary)
        return RunOutcome(PIPELINE, "dry_run", reason="Dry run: no writes", summary=summary)

    loader = loader or SupabaseLoader()
    rows = [p.to_insert_dict() for p in projects]

    change = await detect_data_changes(loader, TABLE_CAPITAL_PROJECTS, rows)
    changes = {TABLE_CAPITAL_PROJECTS: change}
    if not change.has_changes:
        log.info("capital_budget_pipeline_complete", status="skipped", reason=change.reason)
        return RunOutcome(PIPELINE, "skipped", reason=change.reason, changes=changes, summary=summary)

    load = await loader.replace(TABLE_CAPITAL_PROJECTS, rows)

    log.info(
        "capital_budget_pipeline_complete",
        status="success",
        records_loaded=load.records_loaded,
        **summary,
    )
    return RunOutcome(
        PIPELINE,
        "success",
        reason=change.reason,
        changes=changes,
        loads={TABLE_CAPITAL_PROJECTS: load},
        summary=summary,
    )
