"""
sources/opendata.py — NYC Open Data (Socrata) source collaborator.

Socrata resources page with $limit/$offset. JSON resources return an array
of row objects; .geojson resources return a FeatureCollection.

Usage:
    source = OpenDataSource()
    housing_ny = await source.run(
        url=settings.housing_ny_url,
        limit=20000,
        order="building_completion_date DESC",
    )
    features = await source.extract_features(
        settings.cpdb_url,
        where="maxdate>='2025-01-01' AND allocate_total>0",
        limit=10000,
    )
"""

from __future__ import annotations

import asyncio
import math
from typing import Any

import httpx
import structlog

from nycdata_shared.config import settings
from nycdata_pipeline.sources.base import BaseSource
from nycdata_pipeline.utils.retry import with_retry

log = structlog.get_logger(__name__)

# Socrata throttles anonymous clients; pause between pages
PAGE_DELAY_S = 0.5


class OpenDataSource(BaseSource):
    """Pages rows from NYC Open Data resources."""

    name = "NYC Open Data"

    def __init__(self, *, timeout: float | None = None, page_delay: float = PAGE_DELAY_S) -> None:
        super().__init__()
        self._timeout = timeout if timeout is not None else settings.http_timeout
        self._page_delay = page_delay

    @with_retry(max_attempts=3, base_delay=2.0)
    async def _get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: dict[str, str],
    ) -> Any:
        response = await client.get(url, params=params, headers={"Accept": "application/json"})
        response.raise_for_status()
        return response.json()

    async def extract(
        self,
        *,
        url: str,
        limit: int | None = None,
        total_limit: float = math.inf,
        where: str | None = None,
        order: str | None = None,
        params: dict[str, str] | None = None,
        **_: Any,
    ) -> list[dict[str, Any]]:
        """
        Fetch every row of a Socrata JSON resource.

        Args:
            url:         Resource endpoint (…/resource/<id>.json).
            limit:       Rows per page.
            total_limit: Stop once this many rows are collected.
            where:       SoQL $where clause.
            order:       SoQL $order clause; needed for stable paging.
            params:      Extra query parameters.
        """
        limit = limit or settings.opendata_page_size
        rows: list[dict[str, Any]] = []
        offset = 0

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            while len(rows) < total_limit:
                query: dict[str, str] = {
                    "$limit": str(limit),
                    "$offset": str(offset),
                    **(params or {}),
                }
                if where:
                    query["$where"] = where
                if order:
                    query["$order"] = order

                batch = await self._get_json(client, url, query)
                if not batch:
                    break

                rows.extend(batch)
                self._log.debug("page_fetched", offset=offset, page=len(batch), total=len(rows))

                offset += len(batch)
                if len(batch) < limit:
                    break
                if self._page_delay:
                    await asyncio.sleep(self._page_delay)

        if math.isfinite(total_limit):
            rows = rows[: int(total_limit)]
        return rows

    async def extract_features(
        self,
        url: str,
        *,
        where: str | None = None,
        limit: int = 10000,
    ) -> list[dict[str, Any]]:
        """Fetch a GeoJSON resource and return its features list."""
        query: dict[str, str] = {"$limit": str(limit)}
        if where:
            query["$where"] = where

        self._log.info("geojson_fetch_start", url=url, where=where)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            collection = await self._get_json(client, url, query)

        features = (collection or {}).get("features") or []
        self._log.info("geojson_fetch_complete", features=len(features))
        return features

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "url": "https://data.cityofnewyork.us",
            "description": "NYC Open Data (Socrata SODA API)",
        }
