"""Feature polylines, baked influence textures and spatial indexes for queries."""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Sequence

import numpy as np

from hydroterrain.config import DEFAULT_SEA_LEVEL, InfluenceConfig
from hydroterrain.contour import is_closed_loop
from hydroterrain.geometry import Bounds
from hydroterrain.influence import bake_coastline_influence, bake_influence_field
from hydroterrain.polyline_index import IndexedPolyline, PolylineIndex, create_polyline_index
from hydroterrain.rivers import River

Point = tuple[float, float]

ROAD_TYPES = ("highway", "road", "trail", "path")


@dataclass(frozen=True)
class RoadWaypoint:
    x: float
    z: float
    elevation: float
    road_elevation: float | None = None


@dataclass(frozen=True)
class Road:
    """Externally planned road; only its geometry feeds the query layer."""

    id: str
    type: str
    width: float
    waypoints: tuple[RoadWaypoint, ...]
    start_id: str | None = None
    end_id: str | None = None


@dataclass(frozen=True)
class ContinentMetadata:
    bounds: Bounds
    coastlines: tuple[IndexedPolyline, ...]
    rivers: tuple[IndexedPolyline, ...]
    roads: tuple[IndexedPolyline, ...]
    coastline_influence: np.ndarray
    river_influence: np.ndarray
    road_influence: np.ndarray
    coastline_index: PolylineIndex
    river_index: PolylineIndex
    road_index: PolylineIndex
    road_types: dict[str, str] = field(default_factory=dict)
    query_threshold: int = 2


def river_to_polyline(river: River) -> IndexedPolyline:
    return IndexedPolyline(
        id=river.id,
        points=tuple((v.x, v.z) for v in river.vertices),
        attributes=tuple(
            {"width": v.width, "flow": v.flow, "elevation": v.elevation} for v in river.vertices
        ),
    )


def road_to_polyline(road: Road) -> IndexedPolyline:
    """Road centreline with per-point width, grade and surface elevation.

    Grade is the forward elevation difference over planar distance; the last
    point looks backward.
    """

    wps = road.waypoints
    attributes = []
    for i, wp in enumerate(wps):
        grade = 0.0
        if len(wps) >= 2:
            forward = i < len(wps) - 1
            other = wps[i + 1] if forward else wps[i - 1]
            dist = math.hypot(other.x - wp.x, other.z - wp.z)
            if dist > 1e-8:
                delta = other.elevation - wp.elevation if forward else wp.elevation - other.elevation
                grade = delta / dist
        surface = wp.road_elevation if wp.road_elevation is not None else wp.elevation
        attributes.append({"width": road.width, "grade": grade, "elevation": surface})
    return IndexedPolyline(
        id=road.id,
        points=tuple((wp.x, wp.z) for wp in wps),
        attributes=tuple(attributes),
    )


def coastline_to_polyline(points: Sequence[Point], index: int, sea_level: float = DEFAULT_SEA_LEVEL) -> IndexedPolyline:
    return IndexedPolyline(
        id=f"coastline_{index}",
        points=tuple((float(p[0]), float(p[1])) for p in points),
        attributes=tuple({"elevation": sea_level} for _ in points),
        closed=is_closed_loop(points),
    )


def _max_width(polylines: Sequence[IndexedPolyline]) -> float:
    widest = 0.0
    for pl in polylines:
        for attr in pl.attributes or ():
            widest = max(widest, float(attr.get("width", 0.0)))
    return widest


def _bake_corridor(polylines: Sequence[IndexedPolyline], multiplier: float, resolution: int, bounds: Bounds) -> np.ndarray:
    if not polylines:
        return np.zeros((resolution, resolution), dtype=np.uint8)
    widest = _max_width(polylines)
    return bake_influence_field(
        [pl.points for pl in polylines],
        resolution=resolution,
        inner_radius=widest,
        outer_radius=widest * multiplier,
        bounds=bounds,
    )


def create_continent_metadata(
    *,
    coastline_polylines: Sequence[Sequence[Point]] = (),
    rivers: Sequence[River] = (),
    roads: Sequence[Road] = (),
    sea_level: float = DEFAULT_SEA_LEVEL,
    bounds: Bounds = Bounds(),
    influence: InfluenceConfig = InfluenceConfig(),
    coastline_influence: np.ndarray | None = None,
    river_influence: np.ndarray | None = None,
    road_influence: np.ndarray | None = None,
) -> ContinentMetadata:
    """Bundle feature polylines with influence textures (baked unless supplied) and indexes."""

    res = influence.texture_resolution
    coastlines = tuple(coastline_to_polyline(pl, i, sea_level) for i, pl in enumerate(coastline_polylines))
    river_lines = tuple(river_to_polyline(r) for r in rivers)
    road_lines = tuple(road_to_polyline(r) for r in roads)

    if coastline_influence is None:
        coastline_influence = bake_coastline_influence(
            [pl.points for pl in coastlines],
            resolution=res,
            beach_width=influence.beach_width,
            transition_width=influence.transition_width,
            bounds=bounds,
        )
    if river_influence is None:
        river_influence = _bake_corridor(river_lines, influence.river_outer_multiplier, res, bounds)
    if road_influence is None:
        road_influence = _bake_corridor(road_lines, influence.road_outer_multiplier, res, bounds)

    return ContinentMetadata(
        bounds=bounds,
        coastlines=coastlines,
        rivers=river_lines,
        roads=road_lines,
        coastline_influence=coastline_influence,
        river_influence=river_influence,
        road_influence=road_influence,
        coastline_index=create_polyline_index(coastlines, bounds=bounds),
        river_index=create_polyline_index(river_lines, bounds=bounds),
        road_index=create_polyline_index(road_lines, bounds=bounds),
        road_types={r.id: r.type for r in roads},
        query_threshold=influence.query_threshold,
    )
