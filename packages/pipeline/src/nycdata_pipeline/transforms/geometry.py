"""
transforms/geometry.py — Centroids and Douglas-Peucker simplification for
capital project GeoJSON.

Tolerance is in coordinate degrees; 0.0001 is roughly 11 m at NYC's
latitude. Points and geometry types other than Polygon/MultiPolygon are
passed through unchanged.

Usage:
    from nycdata_pipeline.transforms.geometry import simplify_projects

    projects, report = simplify_projects(projects, tolerance=0.0001)
    print(report.vertices_before, report.vertices_after)
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from nycdata_shared.models import CapitalProject

log = structlog.get_logger(__name__)

DEFAULT_TOLERANCE = 0.0001

Point = Sequence[float]


# ---------------------------------------------------------------------------
# Centroid
# ---------------------------------------------------------------------------


def _outer_rings(geometry: dict[str, Any]) -> list[Sequence[Point]]:
    kind = geometry.get("type")
    coordinates = geometry.get("coordinates") or []
    if kind == "Polygon":
        return [coordinates[0]] if coordinates else []
    if kind == "MultiPolygon":
        return [polygon[0] for polygon in coordinates if polygon]
    return []


def centroid(geometry: dict[str, Any] | None) -> tuple[float | None, float | None]:
    """
    (lon, lat) of a geometry.

    A Point is returned as-is (an empty Point has no centroid). Polygons
    and MultiPolygons use the plain mean of their outer-ring vertices: holes
    are ignored and the result is not area-weighted. Anything else, or no
    vertices, gives (None, None).
    """
    if not geometry or not geometry.get("type"):
        return None, None

    if geometry["type"] == "Point":
        position = geometry.get("coordinates") or []
        if len(position) < 2:
            return None, None
        return position[0], position[1]

    total_x = 0.0
    total_y = 0.0
    count = 0
    for ring in _outer_rings(geometry):
        for lon, lat, *_ in ring:
            total_x += lon
            total_y += lat
            count += 1

    if count == 0:
        return None, None
    return total_x / count, total_y / count


# ---------------------------------------------------------------------------
# Douglas-Peucker
# ---------------------------------------------------------------------------


def perpendicular_distance(point: Point, start: Point, end: Point) -> float:
    """Distance from point to the infinite line through start and end."""
    x0, y0 = point[0], point[1]
    x1, y1 = start[0], start[1]
    x2, y2 = end[0], end[1]
    length = math.hypot(x2 - x1, y2 - y1)
    if length == 0:
        return math.hypot(x0 - x1, y0 - y1)
    return abs((y2 - y1) * x0 - (x2 - x1) * y0 + x2 * y1 - y2 * x1) / length


def simplify_line(points: Sequence[Point], tolerance: float = DEFAULT_TOLERANCE) -> list[Point]:
    """
    Douglas-Peucker simplification of a point sequence.

    Sequences of two points or fewer come back unchanged. If the endpoints
    coincide (as in a closed ring) the result is the first point alone.
    """
    if len(points) <= 2:
        return list(points)

    first, last = points[0], points[-1]
    if first[0] == last[0] and first[1] == last[1]:
        return [first]

    max_distance = 0.0
    max_index = 0
    for i in range(1, len(points) - 1):
        distance = perpendicular_distance(points[i], first, last)
        if distance > max_distance:
            max_distance = distance
            max_index = i

    if max_distance > tolerance:
        left = simplify_line(points[: max_index + 1], tolerance)
        right = simplify_line(points[max_index:], tolerance)
        return left[:-1] + right

    return [first, last]


def simplify_geometry(
    geometry: dict[str, Any] | None,
    tolerance: float = DEFAULT_TOLERANCE,
) -> dict[str, Any] | None:
    """Simplify every ring of a Polygon or MultiPolygon; other types unchanged."""
    if not geometry or not geometry.get("type"):
        return geometry

    rings = geometry.get("coordinates") or []
    if geometry["type"] == "Polygon":
        return {
            "type": "Polygon",
            "coordinates": [simplify_line(ring, tolerance) for ring in rings],
        }
    if geometry["type"] == "MultiPolygon":
        return {
            "type": "MultiPolygon",
            "coordinates": [
                [simplify_line(ring, tolerance) for ring in polygon]
                for polygon in rings
            ],
        }
    return geometry


def vertex_count(geometry: dict[str, Any] | None) -> int:
    if not geometry:
        return 0
    kind = geometry.get("type")
    coordinates = geometry.get("coordinates") or []
    if kind == "Point":
        return 1 if len(coordinates) >= 2 else 0
    if kind == "Polygon":
        return sum(len(ring) for ring in coordinates)
    if kind == "MultiPolygon":
        return sum(len(ring) for polygon in coordinates for ring in polygon)
    return 0


# ---------------------------------------------------------------------------
# Capital projects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SimplificationReport:
    projects: int
    with_geometry: int
    vertices_before: int
    vertices_after: int

    @property
    def reduction_percentage(self) -> float:
        if self.vertices_before == 0:
            return 0.0
        return (1 - self.vertices_after / self.vertices_before) * 100


def simplify_project(project: CapitalProject, tolerance: float = DEFAULT_TOLERANCE) -> CapitalProject:
    """Fill in centroid_lon/centroid_lat and geometry_simplified."""
    lon, lat = centroid(project.geometry)
    return project.model_copy(
        update={
            "centroid_lon": lon,
            "centroid_lat": lat,
            "geometry_simplified": simplify_geometry(project.geometry, tolerance),
        }
    )


def simplify_projects(
    projects: Sequence[CapitalProject],
    tolerance: float = DEFAULT_TOLERANCE,
) -> tuple[list[CapitalProject], SimplificationReport]:
    simplified = [simplify_project(p, tolerance) for p in projects]
    report = SimplificationReport(
        projects=len(simplified),
        with_geometry=sum(1 for p in simplified if p.geometry),
        vertices_before=sum(vertex_count(p.geometry) for p in simplified),
        vertices_after=sum(vertex_count(p.geometry_simplified) for p in simplified),
    )
    log.info(
        "geometry_simplified",
        projects=report.projects,
        with_geometry=report.with_geometry,
        tolerance=tolerance,
        vertices_before=report.vertices_before,
        vertices_after=report.vertices_after,
        reduction_percentage=round(report.reduction_percentage, 1),
    )
    return simplified, report
