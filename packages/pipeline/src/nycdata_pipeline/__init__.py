"""
nycdata_pipeline — reconciliation pipeline for NYC civic data sets.

Architecture:
  sources/     — ArcGIS FeatureServer and NYC Open Data (Socrata) collaborators
  transforms/  — normalize, classify, overlay, dedup, demolition matching, geometry
  loaders/     — Supabase clear+insert store and content-hash change detection
  pipelines/   — orchestrators that wire sources -> transforms -> validation -> loaders
  utils/       — structlog configuration, retry decorator, validation gates

Quick start:
    from nycdata_pipeline.pipelines.housing import run as run_housing
    import asyncio
    outcome = asyncio.run(run_housing(dry_run=True))

CLI:
    nycdata-pipeline run housing --dry-run
    nycdata-pipeline run all
    nycdata-pipeline status

Shared code from nycdata_shared:
    from nycdata_shared.config import settings
    from nycdata_shared.db import get_supabase_client
    from nycdata_shared.models import HousingBuilding, HousingDemolition, CapitalProject
    from nycdata_shared.geo import normalize_bbl
"""

__version__ = "0.1.0"
