"""
sources/arcgis.py — ArcGIS FeatureServer source collaborator.

The DCP Housing Database is published as an ArcGIS Feature Service layer.
Its /query endpoint caps each response (2000 features by default), so
records are paged with resultOffset until a short or empty page arrives.

Usage:
    source = ArcGISSource(settings.dcp_housing_database_url)
    records = await source.run(
        where="Job_Type = 'New Building' AND CompltYear >= '2014'",
        order_by="CompltYear DESC",
    )
    count = await source.get_count("Job_Type = 'Demolition'")
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from nycdata_shared.config import settings
from nycdata_pipeline.sources.base import BaseSource
from nycdata_pipeline.utils.retry import with_retry

log = structlog.get_logger(__name__)

# Pause between pages to stay polite to the shared ArcGIS host
PAGE_DELAY_S = 0.1


class ArcGISError(RuntimeError):
    """The service answered 200 but with an ArcGIS error payload."""


class ArcGISSource(BaseSource):
    """Pages every feature matching a where clause from an ArcGIS layer."""

    name = "ArcGIS"

    def __init__(
        self,
        service_url: str | None = None,
        *,
        timeout: float | None = None,
        page_delay: float = PAGE_DELAY_S,
    ) -> None:
        super().__init__()
        self._service_url = (service_url or settings.dcp_housing_database_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.http_timeout
        self._page_delay = page_delay

    @property
    def query_url(self) -> str:
        return f"{self._service_url}/query"

    @with_retry(max_attempts=3, base_delay=2.0)
    async def _fetch_page(self, client: httpx.AsyncClient, params: dict[str, str]) -> dict[str, Any]:
        response = await client.get(self.query_url, params=params)
        response.raise_for_status()
        data = response.json()
        if isinstance(data, dict) and data.get("error"):
            raise ArcGISError(f"ArcGIS Error: {data['error'].get('message', data['error'])}")
        return data

    async def extract(
        self,
        *,
        where: str = "1=1",
        out_fields: str = "*",
        batch_size: int | None = None,
        order_by: str | None = None,
        include_geometry: bool = False,
        **_: Any,
    ) -> list[dict[str, Any]]:
        """
        Fetch all feature attributes matching where.

        Args:
            where:            SQL where clause.
            out_fields:       Fields to return ("*" for all).
            batch_size:       Records per request.
            order_by:         orderByFields value; stable ordering keeps offsets consistent.
            include_geometry: Attach each feature's geometry under "geometry".

        Returns:
            List of attribute dicts.
        """
        batch_size = batch_size or settings.arcgis_batch_size
        features: list[dict[str, Any]] = []
        offset = 0

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            while True:
                params = {
                    "where": where,
                    "outFields": out_fields,
                    "resultRecordCount": str(batch_size),
                    "resultOffset": str(offset),
                    "orderByFields": order_by or "",
                    "returnGeometry": "true" if include_geometry else "false",
                    "f": "json",
                }
                data = await self._fetch_page(client, params)
                page = data.get("features") or []
                if not page:
                    break

                for feature in page:
                    attributes = dict(feature.get("attributes") or {})
                    if include_geometry and feature.get("geometry"):
                        attributes["geometry"] = feature["geometry"]
                    features.append(attributes)

                self._log.debug("page_fetched", offset=offset, page=len(page), total=len(features))

                if len(page) < batch_size:
                    break
                offset += batch_size
                if self._page_delay:
                    await asyncio.sleep(self._page_delay)

        return features

    async def get_count(self, where: str = "1=1") -> int:
        """Return the number of features matching where."""
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            data = await self._fetch_page(
                client, {"where": where, "returnCountOnly": "true", "f": "json"}
            )
        return int(data.get("count") or 0)

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "url": self._service_url,
            "description": "DCP Housing Database (ArcGIS Feature Service)",
        }
