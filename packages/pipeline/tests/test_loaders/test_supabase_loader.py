"""
tests/test_loaders/test_supabase_loader.py — Tests for SupabaseLoader.

The Supabase client is a MagicMock; no database access required.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from nycdata_pipeline.loaders.supabase_loader import LoadResult, StorageError, SupabaseLoader


def _rows(n: int) -> list[dict]:
    return [{"id": str(i)} for i in range(n)]


class TestLoadResult:
    def test_status(self):
        assert LoadResult(table="t", records_loaded=5).status == "success"
        assert LoadResult(table="t", records_loaded=5, batches_failed=1).status == "partial_failure"
        assert LoadResult(table="t", batches_failed=1).status == "failure"


class TestReads:
    @pytest.mark.asyncio
    async def test_current_count(self, mock_supabase_client: MagicMock):
        result = MagicMock(count=1234, data=[])
        table = mock_supabase_client.table.return_value
        table.select.return_value.limit.return_value.execute.return_value = result

        loader = SupabaseLoader(mock_supabase_client)
        assert await loader.current_count("housing_buildings") == 1234
        table.select.assert_called_with("id", count="exact")

    @pytest.mark.asyncio
    async def test_sample_ordered_by_id(self, mock_supabase_client: MagicMock):
        table = mock_supabase_client.table.return_value
        chain = table.select.return_value.order.return_value.limit.return_value
        chain.execute.return_value = MagicMock(data=[{"id": "a"}])

        loader = SupabaseLoader(mock_supabase_client)
        rows = await loader.sample("capital_projects", 1000)

        assert rows == [{"id": "a"}]
        table.select.return_value.order.assert_called_with("id")
        table.select.return_value.order.return_value.limit.assert_called_with(1000)

    @pytest.mark.asyncio
    async def test_last_synced(self, mock_supabase_client: MagicMock):
        table = mock_supabase_client.table.return_value
        chain = table.select.return_value.order.return_value.limit.return_value
        chain.execute.return_value = MagicMock(data=[{"last_synced_at": "2026-10-01T12:00:00+00:00"}])

        loader = SupabaseLoader(mock_supabase_client)
        assert await loader.last_synced("housing_buildings") == datetime(
            2026, 10, 1, 12, tzinfo=timezone.utc
        )

    @pytest.mark.asyncio
    async def test_last_synced_empty_table(self, mock_supabase_client: MagicMock):
        loader = SupabaseLoader(mock_supabase_client)
        assert await loader.last_synced("housing_buildings") is None

    def test_default_client_from_singleton(self, mock_supabase, mock_supabase_client):
        loader = SupabaseLoader()
        assert loader._client is mock_supabase_client


class TestReplace:
    @pytest.mark.asyncio
    async def test_clears_then_inserts_in_batches(self, mock_supabase_client: MagicMock):
        loader = SupabaseLoader(mock_supabase_client, batch_size=2)
        result = await loader.replace("housing_demolitions", _rows(5))

        table = mock_supabase_client.table.return_value
        table.delete.return_value.neq.assert_called_once_with("id", "")
        assert table.insert.call_count == 3
        assert [len(c.args[0]) for c in table.insert.call_args_list] == [2, 2, 1]
        assert result.records_loaded == 5
        assert result.batches_total == 3
        assert result.success

    @pytest.mark.asyncio
    async def test_empty_rows_only_clears(self, mock_supabase_client: MagicMock):
        loader = SupabaseLoader(mock_supabase_client)
        result = await loader.replace("housing_demolitions", [])

        table = mock_supabase_client.table.return_value
        table.delete.assert_called_once()
        table.insert.assert_not_called()
        assert result.records_loaded == 0

    @pytest.mark.asyncio
    async def test_failed_batch_raises(self, mock_supabase_client: MagicMock):
        table = mock_supabase_client.table.return_value
        table.insert.return_value.execute.side_effect = [MagicMock(), RuntimeError("payload too large")]

        loader = SupabaseLoader(mock_supabase_client, batch_size=2)
        with pytest.raises(StorageError) as exc_info:
            await loader.replace("housing_buildings", _rows(6))

        result = exc_info.value.result
        assert result.records_loaded == 2
        assert result.batches_failed == 1
        assert "payload too large" in result.errors[0]
        assert table.insert.call_count == 2

    @pytest.mark.asyncio
    async def test_failed_clear_raises(self, mock_supabase_client: MagicMock):
        table = mock_supabase_client.table.return_value
        table.delete.return_value.neq.return_value.execute.side_effect = RuntimeError("denied")

        loader = SupabaseLoader(mock_supabase_client)
        with pytest.raises(StorageError):
            await loader.replace("housing_buildings", _rows(1))
        table.insert.assert_not_called()
