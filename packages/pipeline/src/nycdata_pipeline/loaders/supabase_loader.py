"""
loaders/supabase_loader.py — Storage collaborator for the pipeline tables.

Tables are never updated row by row: each run either leaves a table alone
or replaces it wholesale (clear, then batched insert). The loader exposes
exactly what the change detector and pipelines need:

  current_count(table)   exact row count
  sample(table, limit)   first `limit` rows ordered by id
  last_synced(table)     newest last_synced_at
  replace(table, rows)   delete all rows, insert rows in batches

A failed batch raises StorageError; nothing is retried here.

Usage:
    from nycdata_pipeline.loaders.supabase_loader import SupabaseLoader

    loader = SupabaseLoader()
    if await loader.current_count("housing_buildings") == 0:
        result = await loader.replace("housing_buildings", rows)
        print(result.records_loaded, result.duration_ms)
"""

from __future__ import annotations

import math
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog
from dateutil import parser as date_parser
from supabase import Client

from nycdata_shared.config import settings
from nycdata_shared.db import get_supabase_client

log = structlog.get_logger(__name__)


class StorageError(RuntimeError):
    """A write to Supabase failed; the table may be partially loaded."""

    def __init__(self, message: str, result: "LoadResult | None" = None) -> None:
        super().__init__(message)
        self.result = result


@dataclass
class LoadResult:
    """Summary of a replace operation."""

    table: str
    records_cleared: int = 0
    records_loaded: int = 0
    batches_total: int = 0
    batches_failed: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.batches_failed == 0

    @property
    def status(self) -> str:
        if self.batches_failed == 0:
            return "success"
        if self.records_loaded > 0:
            return "partial_failure"
        return "failure"


class SupabaseLoader:
    """
    Reads counts and samples from, and replaces the contents of, Supabase tables.

    Uses the service role key so RLS is bypassed for ETL writes.
    """

    def __init__(self, client: Client | None = None, *, batch_size: int | None = None) -> None:
        self._client = client if client is not None else get_supabase_client()
        self._batch_size = batch_size or settings.insert_batch_size

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def current_count(self, table: str) -> int:
        response = self._client.table(table).select("id", count="exact").limit(1).execute()
        return response.count or 0

    async def sample(self, table: str, limit: int) -> list[dict[str, Any]]:
        response = self._client.table(table).select("*").order("id").limit(limit).execute()
        return list(response.data or [])

    async def last_synced(self, table: str) -> datetime | None:
        response = (
            self._client.table(table)
            .select("last_synced_at")
            .order("last_synced_at", desc=True)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        if not rows or not rows[0].get("last_synced_at"):
            return None
        return date_parser.isoparse(rows[0]["last_synced_at"])

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def clear(self, table: str) -> int:
        """Delete every row of table; returns the number of rows removed."""
        existing = await self.current_count(table)
        try:
            self._client.table(table).delete().neq("id", "").execute()
        except Exception as exc:
            log.error("clear_failed", table=table, error=str(exc))
            raise StorageError(f"Failed to clear {table}: {exc}") from exc
        log.info("table_cleared", table=table, records_cleared=existing)
        return existing

    async def replace(self, table: str, rows: Sequence[dict[str, Any]]) -> LoadResult:
        """
        Replace the contents of table with rows.

        Raises:
            StorageError: clearing the table or inserting any batch failed.
        """
        result = LoadResult(table=table)
        t0 = time.monotonic()

        loader_log = log.bind(table=table, total_rows=len(rows))
        loader_log.info("replace_start")

        result.records_cleared = await self.clear(table)

        n_batches = math.ceil(len(rows) / self._batch_size)
        result.batches_total = n_batches

        for batch_idx in range(n_batches):
            start = batch_idx * self._batch_size
            batch = list(rows[start : start + self._batch_size])

            try:
                self._client.table(table).insert(batch).execute()
            except Exception as exc:
                error_msg = f"Batch {batch_idx + 1}/{n_batches}: {exc}"
                loader_log.error("batch_failed", batch=batch_idx + 1, error=str(exc))
                result.batches_failed += 1
                result.errors.append(error_msg)
                result.duration_ms = int((time.monotonic() - t0) * 1000)
                raise StorageError(f"Insert into {table} failed. {error_msg}", result) from exc

            result.records_loaded += len(batch)
            loader_log.debug(
                "batch_loaded",
                batch=batch_idx + 1,
                n_batches=n_batches,
                batch_size=len(batch),
                progress=f"{result.records_loaded / len(rows) * 100:.1f}%",
            )

        result.duration_ms = int((time.monotonic() - t0) * 1000)
        loader_log.info(
            "replace_complete",
            records_cleared=result.records_cleared,
            records_loaded=result.records_loaded,
            duration_ms=result.duration_ms,
            status=result.status,
        )
        return result
