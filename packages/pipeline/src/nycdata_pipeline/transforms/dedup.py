"""
transforms/dedup.py — Collapse duplicate DCP jobs on the same lot and year.

The DCP Housing Database can report one physical building several times
(a new-building job plus amendments, or split filings). Buildings are
grouped by (BBL, completion year) and one survivor is kept per group:

    1. most total units
    2. then has an affordable overlay
    3. then greatest job number

Buildings without a BBL cannot be grouped and are always kept.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from nycdata_shared.models import HousingBuilding

log = structlog.get_logger(__name__)

MAX_DECISION_SAMPLES = 10

DedupKey = tuple[str, int]


@dataclass(frozen=True)
class Candidate:
    job_number: str
    total_units: int
    has_affordable_overlay: bool
    address: str


@dataclass(frozen=True)
class DedupDecision:
    key: DedupKey
    kept: str
    candidates: tuple[Candidate, ...]


@dataclass
class DedupReport:
    original_count: int = 0
    deduplicated_count: int = 0
    duplicate_groups: int = 0
    samples: list[DedupDecision] = field(default_factory=list)

    @property
    def removed_count(self) -> int:
        return self.original_count - self.deduplicated_count


def dedup_key(building: HousingBuilding) -> DedupKey | None:
    if not building.bbl:
        return None
    return (building.bbl, building.completion_year)


def precedence(building: HousingBuilding) -> tuple[int, bool, str]:
    """Sort key; the greatest value survives."""
    return (building.total_units, building.has_affordable_overlay, building.job_number)


def deduplicate_buildings(
    buildings: Sequence[HousingBuilding],
) -> tuple[list[HousingBuilding], DedupReport]:
    """
    Keep one building per (BBL, completion year).

    Output order: buildings without a BBL first (input order), then one
    survivor per group in order of the group's first appearance.
    """
    passthrough: list[HousingBuilding] = []
    groups: dict[DedupKey, list[HousingBuilding]] = {}

    for building in buildings:
        key = dedup_key(building)
        if key is None:
            passthrough.append(building)
        else:
            groups.setdefault(key, []).append(building)

    report = DedupReport(original_count=len(buildings))
    survivors = list(passthrough)

    for key, group in groups.items():
        winner = max(group, key=precedence)
        survivors.append(winner)
        if len(group) == 1:
            continue

        report.duplicate_groups += 1
        if len(report.samples) < MAX_DECISION_SAMPLES:
            report.samples.append(
                DedupDecision(
                    key=key,
                    kept=winner.job_number,
                    candidates=tuple(
                        Candidate(
                            job_number=b.job_number,
                            total_units=b.total_units,
                            has_affordable_overlay=b.has_affordable_overlay,
                            address=b.address,
                        )
                        for b in group
                    ),
                )
            )

    report.deduplicated_count = len(survivors)

    log.info(
        "dedup_complete",
        original=report.original_count,
        deduplicated=report.deduplicated_count,
        removed=report.removed_count,
        duplicate_groups=report.duplicate_groups,
        without_bbl=len(passthrough),
    )
    for decision in report.samples:
        log.debug(
            "dedup_decision",
            bbl=decision.key[0],
            year=decision.key[1],
            kept=decision.kept,
            candidates=[
                f"{c.job_number} ({c.total_units} units) {c.address}"
                for c in decision.candidates
            ],
        )

    return survivors, report
