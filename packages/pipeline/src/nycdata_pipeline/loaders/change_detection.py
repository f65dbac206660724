"""
loaders/change_detection.py — Decide whether a table needs replacing.

Replacing a table is destructive, so a run first compares what it is about
to write with what is stored:

  1. Row counts differ                 -> changed
  2. Fingerprints of a bounded sample  -> changed if they differ
  3. Anything goes wrong comparing     -> changed (fail open)

The fingerprint covers the first `sample_size` rows ordered by id, on both
sides. Changes that fall entirely outside that window are not detected.

Usage:
    from nycdata_pipeline.loaders.change_detection import detect_data_changes

    result = await detect_data_changes(loader, "housing_buildings", rows)
    if result.has_changes:
        await loader.replace("housing_buildings", rows)
"""

from __future__ import annotations

import json
import struct
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

import structlog

from nycdata_shared.config import settings
from nycdata_shared.constants import VOLATILE_COLUMNS

log = structlog.get_logger(__name__)

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
EMPTY_HASH = "empty"

REASON_EMPTY_TABLE = "Table is empty - initial seed required"
REASON_HASH_MISMATCH = "Data content has changed (hash mismatch)"
REASON_IDENTICAL = "Data is identical to existing records"
REASON_FAILED = "Change detection failed - proceeding with update"


class Store(Protocol):
    async def current_count(self, table: str) -> int: ...

    async def sample(self, table: str, limit: int) -> list[dict[str, Any]]: ...


@dataclass
class ChangeResult:
    table: str
    has_changes: bool
    reason: str
    stats: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


# ---------------------------------------------------------------------------
# Fingerprint
# ---------------------------------------------------------------------------


def _fnv1a(text: str) -> str:
    h = FNV_OFFSET_BASIS
    for byte in text.encode("utf-8"):
        h ^= byte
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return format(h, "x")


def _serialize(record: Mapping[str, Any]) -> str:
    return json.dumps(record, sort_keys=True, default=str)


def _as_stored(value: Any) -> Any:
    # real columns hold float4; integral values come back as JSON integers
    if not isinstance(value, float):
        return value
    try:
        value = struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        return value
    return int(value) if value.is_integer() else value


def content_view(record: Mapping[str, Any]) -> dict[str, Any]:
    """
    Record minus columns stamped by the database or the sync itself, with
    float values narrowed to the precision the table stores them at.
    """
    return {k: _as_stored(v) for k, v in record.items() if k not in VOLATILE_COLUMNS}


def calculate_data_hash(records: Sequence[Mapping[str, Any]]) -> str:
    """
    Order-sensitive FNV-1a (32-bit) digest of a record sample.

    Covers the count, the first and last records, and up to five evenly
    spaced records. Returns "empty" for no records.
    """
    if not records:
        return EMPTY_HASH

    step = max(len(records) // 5, 1)
    summary = {
        "count": len(records),
        "first": _serialize(records[0]),
        "last": _serialize(records[-1]),
        "samples": [_serialize(r) for r in records[::step][:5]],
    }
    return _fnv1a(json.dumps(summary, sort_keys=True, ensure_ascii=True))


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


async def detect_data_changes(
    store: Store,
    table: str,
    new_records: Sequence[Mapping[str, Any]],
    *,
    sample_size: int | None = None,
) -> ChangeResult:
    """
    Compare new_records with the stored contents of table.

    new_records are insert-ready dicts; they are ordered by id before
    sampling so both sides see the same window. Never raises.
    """
    sample_size = sample_size or settings.change_detection_sample_size
    detect_log = log.bind(table=table)

    try:
        current_count = await store.current_count(table)
        new_count = len(new_records)
        detect_log.info("change_detection_counts", current=current_count, new=new_count)

        if current_count != new_count:
            reason = (
                REASON_EMPTY_TABLE
                if current_count == 0
                else f"Record count changed ({current_count} -> {new_count})"
            )
            detect_log.info("changes_detected", reason=reason)
            return ChangeResult(
                table=table,
                has_changes=True,
                reason=reason,
                stats={
                    "current_count": current_count,
                    "new_count": new_count,
                    "difference": new_count - current_count,
                },
            )

        existing = [content_view(r) for r in await store.sample(table, sample_size)]
        if current_count <= sample_size:
            # whole table sampled: database collation must not decide the order
            existing.sort(key=lambda r: str(r.get("id", "")))
        incoming = sorted(
            (content_view(r) for r in new_records), key=lambda r: str(r.get("id", ""))
        )[:sample_size]

        existing_hash = calculate_data_hash(existing)
        new_hash = calculate_data_hash(incoming)

        if existing_hash != new_hash:
            detect_log.info(
                "changes_detected",
                reason=REASON_HASH_MISMATCH,
                existing_hash=existing_hash,
                new_hash=new_hash,
            )
            return ChangeResult(
                table=table,
                has_changes=True,
                reason=REASON_HASH_MISMATCH,
                stats={
                    "current_count": current_count,
                    "new_count": new_count,
                    "existing_hash": existing_hash,
                    "new_hash": new_hash,
                },
            )

        detect_log.info("no_changes_detected", count=current_count)
        return ChangeResult(
            table=table,
            has_changes=False,
            reason=REASON_IDENTICAL,
            stats={"current_count": current_count, "new_count": new_count},
        )

    except Exception as exc:
        detect_log.warning("change_detection_failed", error=str(exc))
        return ChangeResult(table=table, has_changes=True, reason=REASON_FAILED, error=str(exc))


# ---------------------------------------------------------------------------
# Staleness
# ---------------------------------------------------------------------------


@dataclass
class FreshnessResult:
    table: str
    needs_update: bool
    reason: str
    last_synced: datetime | None = None
    hours_since_sync: float | None = None


class SyncedStore(Protocol):
    async def last_synced(self, table: str) -> datetime | None: ...


async def check_needs_update(
    store: SyncedStore,
    table: str,
    max_age_hours: float = 168,
) -> FreshnessResult:
    """Whether the newest last_synced_at in table is older than max_age_hours."""
    try:
        last_synced = await store.last_synced(table)
    except Exception as exc:
        log.warning("update_check_failed", table=table, error=str(exc))
        return FreshnessResult(table=table, needs_update=True, reason="Update check failed")

    if last_synced is None:
        return FreshnessResult(table=table, needs_update=True, reason="Never synced before")

    if last_synced.tzinfo is None:
        last_synced = last_synced.replace(tzinfo=timezone.utc)
    hours = (datetime.now(timezone.utc) - last_synced).total_seconds() / 3600

    if hours >= max_age_hours:
        reason = f"Data is {hours:.1f} hours old (max: {max_age_hours}h)"
        needs_update = True
    else:
        reason = f"Data is recent ({hours:.1f}h old)"
        needs_update = False

    return FreshnessResult(
        table=table,
        needs_update=needs_update,
        reason=reason,
        last_synced=last_synced,
        hours_since_sync=hours,
    )
