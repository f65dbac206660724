"""
sources/base.py — Common shape of the provider collaborators.

A source knows one provider (ArcGIS FeatureServer, Socrata) and hands back
raw records: provider field names, values untouched. Typing and filtering
happen later in transforms.normalize.

Subclasses implement:
  extract()      — page through the provider and return every raw record
  get_metadata() — where the data comes from; attached to run() log events

Pipelines call run(), which times extract() and logs its outcome.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any

import structlog

log = structlog.get_logger(__name__)


class BaseSource(ABC):
    name: str = "unknown"

    def __init__(self) -> None:
        self._log = log.bind(source_name=self.name)

    @abstractmethod
    async def extract(self, **kwargs: Any) -> list[dict[str, Any]]:
        """Fetch every raw record matching kwargs (provider-specific query options)."""

    @abstractmethod
    async def get_metadata(self) -> dict[str, Any]:
        """source_name, url and a human description of the provider."""

    async def run(self, **kwargs: Any) -> list[dict[str, Any]]:
        """
        extract() with timing and structured logging.

        Failures are logged with the elapsed time and re-raised; a run that
        cannot fetch its inputs must not continue with partial data.
        """
        metadata = await self.get_metadata()
        run_log = self._log.bind(
            url=metadata.get("url"),
            query={k: str(v) for k, v in kwargs.items()},
        )
        run_log.info("fetch_start")

        started = time.monotonic()
        try:
            records = await self.extract(**kwargs)
        except Exception as exc:
            run_log.error(
                "fetch_failed",
                error=str(exc),
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            raise

        run_log.info(
            "fetch_complete",
            records=len(records),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return records
