"""
tests/test_pipelines/test_housing.py — Unit tests for the housing pipeline.

Sources and storage are mocked (AsyncMock sources, in-memory store). No
network or database access required.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from nycdata_shared.config import settings
from nycdata_shared.constants import TABLE_HOUSING_BUILDINGS, TABLE_HOUSING_DEMOLITIONS
from nycdata_pipeline.loaders.supabase_loader import StorageError
from nycdata_pipeline.pipelines.housing import _dcp_where, run, summarize
from nycdata_pipeline.transforms.dedup import deduplicate_buildings
from nycdata_pipeline.transforms.overlay import build_overlay_index, merge_overlays


@pytest.fixture(autouse=True)
def _low_thresholds():
    with patch.multiple(settings, min_housing_records=2, min_housing_ny_records=1), patch(
        "nycdata_pipeline.pipelines.housing.configure_logging"
    ):
        yield


@pytest.fixture
def raw(dcp_record, housing_ny_record):
    """Raw payloads: two DCP jobs on one lot, one elsewhere, one Housing NY project, two demolitions."""
    return {
        "new_buildings": [
            dcp_record(Job_Number="121000001", ClassANet=40),
            dcp_record(Job_Number="121000002", ClassANet=45),
            dcp_record(
                Job_Number="421000003", BBL="4000200003", Boro="4", ClassANet=2, Bldg_Class="B1"
            ),
        ],
        "alterations": [
            dcp_record(Job_Number="321000004", Job_Type="Alteration", BBL="3000300004", Boro="3", ClassANet=6),
        ],
        "housing_ny": [housing_ny_record()],
        "demolitions": [
            dcp_record(Job_Number="120000001", Job_Type="Demolition", ClassAInit=3, ClassANet=-3),
            dcp_record(
                Job_Number="520000002", Job_Type="Demolition", BBL="5000400005", Boro="5",
                ClassAInit=1, ClassANet=-1,
            ),
        ],
    }


def _sources(raw: dict) -> tuple[MagicMock, MagicMock]:
    arcgis = MagicMock()
    arcgis.run = AsyncMock(side_effect=[raw["new_buildings"], raw["alterations"], raw["demolitions"]])
    opendata = MagicMock()
    opendata.run = AsyncMock(return_value=raw["housing_ny"])
    return arcgis, opendata


class TestDcpWhere:
    def test_new_building_clause(self):
        assert _dcp_where("New Building", (2014, 2025)) == (
            "Job_Type = 'New Building' AND CompltYear >= '2014' AND CompltYear <= '2025'"
        )

    def test_alteration_requires_positive_net(self):
        assert "ClassANet > 0" in _dcp_where("Alteration", (2014, 2025), positive_net=True)


class TestHousingRun:
    @pytest.mark.asyncio
    async def test_dry_run_reconciles_without_writes(self, raw, fake_store):
        arcgis, opendata = _sources(raw)
        outcome = await run(dry_run=True, arcgis=arcgis, opendata=opendata, loader=fake_store)

        assert outcome.status == "dry_run"
        assert outcome.exit_code == 0
        assert fake_store.replaced == []
        assert outcome.summary["buildings"] == 3
        assert outcome.summary["demolitions"] == 2
        assert outcome.summary["standalone_demolitions"] == 1
        assert arcgis.run.await_count == 3

    @pytest.mark.asyncio
    async def test_initial_seed_replaces_both_tables(self, raw, fake_store):
        arcgis, opendata = _sources(raw)
        outcome = await run(arcgis=arcgis, opendata=opendata, loader=fake_store)

        assert outcome.status == "success"
        assert fake_store.replaced == [TABLE_HOUSING_BUILDINGS, TABLE_HOUSING_DEMOLITIONS]
        assert outcome.changes[TABLE_HOUSING_BUILDINGS].reason == "Table is empty - initial seed required"
        assert outcome.records_loaded == 5

        buildings = {r["job_number"]: r for r in fake_store.tables[TABLE_HOUSING_BUILDINGS]}
        assert set(buildings) == {"121000002", "421000003", "321000004"}
        survivor = buildings["121000002"]
        assert survivor["total_units"] == 45
        assert survivor["building_type"] == "affordable"
        assert survivor["data_source"] == "dcp-affordable"
        assert survivor["affordable_units"] == 10
        assert buildings["421000003"]["building_type"] == "one-two-family"
        assert buildings["321000004"]["building_type"] == "renovation"

        demolitions = {r["job_number"]: r for r in fake_store.tables[TABLE_HOUSING_DEMOLITIONS]}
        assert demolitions["120000001"]["has_new_construction"] is True
        assert demolitions["520000002"]["has_new_construction"] is False

    @pytest.mark.asyncio
    async def test_unchanged_data_skips_write(self, raw, fake_store):
        arcgis, opendata = _sources(raw)
        await run(arcgis=arcgis, opendata=opendata, loader=fake_store)

        arcgis, opendata = _sources(raw)
        outcome = await run(arcgis=arcgis, opendata=opendata, loader=fake_store)

        assert outcome.status == "skipped"
        assert outcome.exit_code == 0
        assert fake_store.replaced == [TABLE_HOUSING_BUILDINGS, TABLE_HOUSING_DEMOLITIONS]
        assert not any(c.has_changes for c in outcome.changes.values())

    @pytest.mark.asyncio
    async def test_one_changed_table_replaces_both(self, raw, fake_store, dcp_record):
        arcgis, opendata = _sources(raw)
        await run(arcgis=arcgis, opendata=opendata, loader=fake_store)

        raw["demolitions"].append(
            dcp_record(Job_Number="220000003", Job_Type="Demolition", BBL="2000500006", Boro="2")
        )
        arcgis, opendata = _sources(raw)
        outcome = await run(arcgis=arcgis, opendata=opendata, loader=fake_store)

        assert outcome.status == "success"
        assert not outcome.changes[TABLE_HOUSING_BUILDINGS].has_changes
        assert outcome.changes[TABLE_HOUSING_DEMOLITIONS].has_changes
        assert fake_store.replaced[2:] == [TABLE_HOUSING_BUILDINGS, TABLE_HOUSING_DEMOLITIONS]

    @pytest.mark.asyncio
    async def test_too_few_dcp_records_blocks_write(self, raw, fake_store):
        raw["new_buildings"] = raw["new_buildings"][:1]
        raw["alterations"] = []
        arcgis, opendata = _sources(raw)
        fake_store.tables[TABLE_HOUSING_BUILDINGS] = [{"id": "existing"}]

        outcome = await run(arcgis=arcgis, opendata=opendata, loader=fake_store)

        assert outcome.status == "validation_failed"
        assert outcome.exit_code == 1
        assert "Insufficient records" in outcome.validation_failures[0].message
        assert fake_store.replaced == []
        assert fake_store.tables[TABLE_HOUSING_BUILDINGS] == [{"id": "existing"}]
        opendata.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_housing_ny_schema_change_blocks_write(self, raw, fake_store):
        raw["housing_ny"] = [{"project_id": "1"}]
        arcgis, opendata = _sources(raw)

        outcome = await run(arcgis=arcgis, opendata=opendata, loader=fake_store)

        assert outcome.status == "validation_failed"
        assert fake_store.replaced == []

    @pytest.mark.asyncio
    async def test_too_few_processed_buildings_blocks_write(self, raw, fake_store, dcp_record):
        # Enough raw rows, but all but one are dropped by normalization
        raw["new_buildings"] = [dcp_record(), dcp_record(Job_Number="9", ClassANet=0)]
        raw["alterations"] = []
        arcgis, opendata = _sources(raw)

        outcome = await run(arcgis=arcgis, opendata=opendata, loader=fake_store)

        assert outcome.status == "validation_failed"
        assert "Processed Buildings" in outcome.reason
        assert fake_store.replaced == []

    @pytest.mark.asyncio
    async def test_storage_error_propagates(self, raw):
        arcgis, opendata = _sources(raw)
        loader = MagicMock()
        loader.current_count = AsyncMock(return_value=0)
        loader.sample = AsyncMock(return_value=[])
        loader.replace = AsyncMock(side_effect=StorageError("insert failed"))

        with pytest.raises(StorageError):
            await run(arcgis=arcgis, opendata=opendata, loader=loader)


class TestDuplicateResolution:
    def test_larger_overlaid_record_survives_and_is_affordable(self, make_building, make_overlay):
        plain = make_building(job_number="121000001", total_units=40, class_a_net=40)
        overlaid = make_building(job_number="121000002", total_units=45, class_a_net=45)

        merged, _ = merge_overlays([overlaid], build_overlay_index([make_overlay()]))
        buildings, report = deduplicate_buildings([plain, *merged])

        assert len(buildings) == 1
        assert buildings[0].job_number == "121000002"
        assert buildings[0].has_affordable_overlay is True
        assert buildings[0].building_type == "affordable"
        assert report.removed_count == 1


class TestSummarize:
    def test_aggregates(self, make_building, make_demolition, make_overlay):
        merged, _ = merge_overlays(
            [make_building(job_number="1"), make_building(job_number="2", bbl="2000000001")],
            build_overlay_index([make_overlay()]),
        )
        demolitions = [
            make_demolition(id="a", job_number="a", has_new_construction=True),
            make_demolition(id="b", job_number="b"),
            make_demolition(id="c", job_number="c", borough="Queens"),
        ]
        summary = summarize(merged, demolitions)

        assert summary["buildings"] == 2
        assert summary["buildings_by_data_source"] == {"dcp": 1, "dcp-affordable": 1}
        assert summary["buildings_by_type"] == {"affordable": 1, "multifamily-walkup": 1}
        assert summary["total_units"] == 80
        assert summary["affordable_units"] == 10
        assert summary["affordable_percentage"] == 12.5
        assert summary["demolitions_by_borough"] == {"Brooklyn": 2, "Queens": 1}
        assert summary["standalone_demolitions_by_borough"] == {"Brooklyn": 1, "Queens": 1}

    def test_empty(self):
        summary = summarize([], [])
        assert summary["buildings"] == 0
        assert summary["affordable_percentage"] == 0.0
        assert summary["demolitions_by_borough"] == {}
