"""
models/capital.py — Pydantic model for the capital_projects table.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CapitalProject(BaseModel):
    """Matches the capital_projects table row. One row per CPDB project."""

    model_config = ConfigDict(frozen=True)

    id: str
    maprojid: str
    description: str

    managing_agency: str
    managing_agency_acronym: str | None = None
    type_category: str | None = None

    min_date: str | None = None
    max_date: str | None = None
    fiscal_year: int | None = None
    completion_year: int | None = None

    # Budget allocations (dollars)
    allocate_total: float = 0.0
    commit_total: float = 0.0
    spent_total: float = 0.0
    planned_commit_total: float = 0.0

    # GeoJSON geometry object (Point | Polygon | MultiPolygon | other)
    geometry: dict[str, Any] | None = None

    # Filled in by the geometry simplifier
    centroid_lon: float | None = None
    centroid_lat: float | None = None
    geometry_simplified: dict[str, Any] | None = None

    last_synced_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "CapitalProject":
        return cls.model_validate(row)

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
