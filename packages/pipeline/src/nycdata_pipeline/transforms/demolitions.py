"""
transforms/demolitions.py — Match demolitions to later construction on the same lot.

A demolition whose BBL also appears among the (deduplicated) completed
buildings was replaced; the rest are standalone demolitions and represent
net loss of housing stock.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import structlog

from nycdata_shared.models import HousingBuilding, HousingDemolition

log = structlog.get_logger(__name__)


@dataclass
class DemolitionReport:
    total: int = 0
    matched: int = 0
    standalone: list[HousingDemolition] = field(default_factory=list)

    @property
    def standalone_count(self) -> int:
        return len(self.standalone)

    @property
    def standalone_units(self) -> int:
        return sum(d.estimated_units for d in self.standalone)


def construction_bbls(buildings: Iterable[HousingBuilding]) -> frozenset[str]:
    return frozenset(b.bbl for b in buildings if b.bbl)


def match_demolitions(
    demolitions: Sequence[HousingDemolition],
    bbls: frozenset[str],
) -> tuple[list[HousingDemolition], DemolitionReport]:
    """Set has_new_construction on every demolition whose BBL is in bbls."""
    report = DemolitionReport(total=len(demolitions))
    matched: list[HousingDemolition] = []

    for demolition in demolitions:
        has_new_construction = bool(demolition.bbl) and demolition.bbl in bbls
        if demolition.has_new_construction != has_new_construction:
            demolition = demolition.model_copy(
                update={"has_new_construction": has_new_construction}
            )
        if has_new_construction:
            report.matched += 1
        else:
            report.standalone.append(demolition)
        matched.append(demolition)

    log.info(
        "demolitions_matched",
        total=report.total,
        with_new_construction=report.matched,
        standalone=report.standalone_count,
        standalone_units=report.standalone_units,
    )
    return matched, report
