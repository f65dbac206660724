"""
pipelines/outcome.py — Result of one pipeline run.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from nycdata_pipeline.loaders.change_detection import ChangeResult
from nycdata_pipeline.loaders.supabase_loader import LoadResult
from nycdata_pipeline.utils.validation import ValidationResult

RunStatus = Literal["success", "skipped", "dry_run", "validation_failed"]


@dataclass
class RunOutcome:
    pipeline: str
    status: RunStatus
    reason: str = ""
    validation_failures: list[ValidationResult] = field(default_factory=list)
    changes: dict[str, ChangeResult] = field(default_factory=dict)
    loads: dict[str, LoadResult] = field(default_factory=dict)
    summary: dict[str, Any] = field(default_factory=dict)

    @property
    def exit_code(self) -> int:
        return 1 if self.status == "validation_failed" else 0

    @property
    def records_loaded(self) -> int:
        return sum(r.records_loaded for r in self.loads.values())

    @classmethod
    def validation_failed(
        cls, pipeline: str, failures: Sequence[ValidationResult]
    ) -> "RunOutcome":
        return cls(
            pipeline=pipeline,
            status="validation_failed",
            reason="; ".join(f.message for f in failures),
            validation_failures=list(failures),
        )
