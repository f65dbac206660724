"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  mock_supabase_client  — MagicMock of the Supabase client (prevents real DB calls)
  mock_supabase         — patches get_supabase_client() to return it
  mock_http             — configured respx router for faking HTTP responses
  dcp_record / housing_ny_record / cpdb_feature
                        — factories for raw provider records
  make_building / make_overlay / make_demolition
                        — factories for normalized pipeline records
  fake_store            — in-memory stand-in for the storage collaborator
"""

from __future__ import annotations

from typing import Any, Callable
from unittest.mock import MagicMock, patch

import pytest
import respx

from nycdata_shared.models import AffordableOverlay, HousingBuilding, HousingDemolition


# ---------------------------------------------------------------------------
# Supabase client mock
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_supabase_client() -> MagicMock:
    """
    A MagicMock that simulates the supabase.Client interface.

    Every query chain used by SupabaseLoader returns empty data and count 0
    by default. Override in individual tests:
        mock_supabase_client.table.return_value.select.return_value...
    """
    client = MagicMock()

    default_result = MagicMock()
    default_result.data = []
    default_result.count = 0

    table = client.table.return_value
    table.select.return_value.limit.return_value.execute.return_value = default_result
    (
        table.select.return_value
        .order.return_value
        .limit.return_value
        .execute.return_value
    ) = default_result
    table.delete.return_value.neq.return_value.execute.return_value = default_result
    table.insert.return_value.execute.return_value = default_result

    return client


@pytest.fixture
def mock_supabase(mock_supabase_client: MagicMock):
    """
    Patch get_supabase_client() as seen by the loader to return the mock client.
    Yields the mock so tests can inspect calls.
    """
    with patch(
        "nycdata_pipeline.loaders.supabase_loader.get_supabase_client",
        return_value=mock_supabase_client,
    ) as patched:
        yield patched


# ---------------------------------------------------------------------------
# respx HTTP mock router
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_http():
    """
    Activate the respx mock router for all httpx requests.

    Usage in tests:
        def test_something(mock_http):
            mock_http.get("https://...").mock(return_value=httpx.Response(200, json={...}))
    """
    with respx.mock(assert_all_called=False) as router:
        yield router


# ---------------------------------------------------------------------------
# Raw provider records
# ---------------------------------------------------------------------------

@pytest.fixture
def dcp_record() -> Callable[..., dict[str, Any]]:
    """Factory for a raw DCP Housing Database attributes dict."""

    def _make(**overrides: Any) -> dict[str, Any]:
        record: dict[str, Any] = {
            "OBJECTID": 1,
            "Job_Number": "121234567",
            "Job_Type": "New Building",
            "Job_Status": "5. Completed Construction",
            "Job_Desc": "NEW 6 STORY RESIDENTIAL BUILDING",
            "Boro": "1",
            "BBL": "1000123456",
            "BIN": 1012345.0,
            "AddressNum": "100",
            "AddressSt": "BROADWAY",
            "Latitude": "40.7128",
            "Longitude": "-74.0060",
            "CompltYear": "2020",
            "DateComplt": 1590969600000,
            "PermitYear": "2018",
            "DatePermit": "2018-03-15",
            "ClassAInit": 0,
            "ClassAProp": 40,
            "ClassANet": 40,
            "Units_CO": 40,
            "Bldg_Class": "C1",
            "FloorsInit": None,
            "FloorsProp": "6",
            "Ownership": "Private",
            "CommntyDst": 101,
            "CouncilDst": 1,
        }
        record.update(overrides)
        return record

    return _make


@pytest.fixture
def housing_ny_record() -> Callable[..., dict[str, Any]]:
    """Factory for a raw Housing NY project row."""

    def _make(**overrides: Any) -> dict[str, Any]:
        record: dict[str, Any] = {
            "project_id": "65432",
            "project_name": "BROADWAY COMMONS",
            "bbl": "1000123456",
            "building_completion_date": "2020-06-30T00:00:00.000",
            "reporting_construction_type": "New Construction",
            "extended_affordability_only": "No",
            "extremely_low_income_units": "2",
            "very_low_income_units": "3",
            "low_income_units": "4",
            "moderate_income_units": "1",
            "middle_income_units": "0",
            "other_income_units": "1",
            "studio_units": "5",
            "1_br_units": "20",
            "2_br_units": "15",
            "3_br_units": "5",
            "all_counted_units": "45",
            "total_units": "45",
        }
        record.update(overrides)
        return record

    return _make


@pytest.fixture
def cpdb_feature() -> Callable[..., dict[str, Any]]:
    """Factory for a CPDB GeoJSON feature."""

    def _make(geometry: dict[str, Any] | None = None, **properties: Any) -> dict[str, Any]:
        props: dict[str, Any] = {
            "maprojid": "850PW-1234",
            "description": "RECONSTRUCTION OF STREET",
            "magencyname": "Department of Transportation",
            "magencyacro": "DOT",
            "typecategory": "Fixed Asset",
            "mindate": "2019-07-01",
            "maxdate": "2026-06-30",
            "allocate_total": "2500000",
            "commit_total": "1000000",
            "spent_total": "500000",
            "plannedcommit_total": "1500000",
        }
        props.update(properties)
        return {
            "type": "Feature",
            "properties": props,
            "geometry": geometry
            if geometry is not None
            else {"type": "Point", "coordinates": [-73.95, 40.65]},
        }

    return _make


# ---------------------------------------------------------------------------
# Normalized records
# ---------------------------------------------------------------------------

@pytest.fixture
def make_building() -> Callable[..., HousingBuilding]:
    def _make(**overrides: Any) -> HousingBuilding:
        fields: dict[str, Any] = {
            "id": "121234567",
            "name": "100 BROADWAY, Manhattan",
            "job_number": "121234567",
            "job_type": "New Building",
            "longitude": -74.006,
            "latitude": 40.7128,
            "address": "100 BROADWAY",
            "borough": "Manhattan",
            "bbl": "1000123456",
            "completion_year": 2020,
            "class_a_net": 40,
            "total_units": 40,
            "unknown_br_units": 40,
            "building_type": "multifamily-walkup",
            "physical_building_type": "multifamily-walkup",
        }
        fields.update(overrides)
        if "job_number" in overrides and "id" not in overrides:
            fields["id"] = overrides["job_number"]
        return HousingBuilding(**fields)

    return _make


@pytest.fixture
def make_overlay() -> Callable[..., AffordableOverlay]:
    def _make(**overrides: Any) -> AffordableOverlay:
        fields: dict[str, Any] = {
            "bbl": "1000123456",
            "completion_year": 2020,
            "counted_units": 45,
            "affordable_units": 10,
            "affordable_percentage": 10 / 45 * 100,
            "extreme_low_income_units": 2,
            "very_low_income_units": 3,
            "low_income_units": 4,
            "moderate_income_units": 1,
            "studio_units": 5,
            "one_br_units": 20,
            "two_br_units": 15,
            "three_br_units": 5,
            "project_id": "65432",
            "project_name": "BROADWAY COMMONS",
            "construction_type": "New Construction",
        }
        fields.update(overrides)
        return AffordableOverlay(**fields)

    return _make


@pytest.fixture
def make_demolition() -> Callable[..., HousingDemolition]:
    def _make(**overrides: Any) -> HousingDemolition:
        fields: dict[str, Any] = {
            "id": "320000001",
            "job_number": "320000001",
            "bbl": "3000100001",
            "borough": "Brooklyn",
            "address": "1 FULTON ST",
            "demolition_year": 2019,
            "class_a_init": 2,
            "estimated_units": 2,
        }
        fields.update(overrides)
        return HousingDemolition(**fields)

    return _make


# ---------------------------------------------------------------------------
# In-memory storage collaborator
# ---------------------------------------------------------------------------

class FakeStore:
    """Tables held as lists of row dicts; replace() records each call."""

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = tables or {}
        self.replaced: list[str] = []

    async def current_count(self, table: str) -> int:
        return len(self.tables.get(table, []))

    async def sample(self, table: str, limit: int) -> list[dict[str, Any]]:
        rows = sorted(self.tables.get(table, []), key=lambda r: str(r.get("id", "")))
        return rows[:limit]

    async def replace(self, table: str, rows: list[dict[str, Any]]):
        from nycdata_pipeline.loaders.supabase_loader import LoadResult

        self.tables[table] = list(rows)
        self.replaced.append(table)
        return LoadResult(table=table, records_loaded=len(rows))


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()
