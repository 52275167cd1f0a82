"""Two-tier feature queries: influence texture rejection, then exact polyline geometry."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any

import numpy as np

from hydroterrain.geometry import Bounds, lerp
from hydroterrain.influence import SHORELINE_VALUE, coastline_texel
from hydroterrain.metadata import ContinentMetadata
from hydroterrain.polyline_index import PolylineIndex, SegmentHit, query_nearby_segments

Vec2 = tuple[float, float]

ROAD_PRIORITY = {"highway": 0, "road": 1, "trail": 2, "path": 3}
_UNKNOWN_PRIORITY = 99
_NORMAL_EPS = 1e-8


@dataclass(frozen=True)
class CoastlineQuery:
    influence: float
    distance_to_shore: float
    shore_normal: Vec2
    shore_elevation: float


@dataclass(frozen=True)
class RiverQuery:
    influence: float
    distance_to_center: float
    width: float
    flow_direction: Vec2
    elevation: float
    bank_side: str | None


@dataclass(frozen=True)
class RoadQuery:
    influence: float
    distance_to_center: float
    width: float
    road_type: str | None
    grade: float
    surface_elevation: float


@dataclass(frozen=True)
class FeatureQuery:
    coastline: CoastlineQuery | None
    river: RiverQuery | None
    road: RoadQuery | None


def sample_influence_texture(texture: np.ndarray, bounds: Bounds, x: float, z: float) -> int:
    """Raw texel under (x, z), clamped to the texture edge."""

    rows, cols = texture.shape
    u = (x - bounds.min_x) / bounds.span_x
    v = (z - bounds.min_z) / bounds.span_z
    col = min(max(math.floor(u * cols), 0), cols - 1)
    row = min(max(math.floor(v * rows), 0), rows - 1)
    return int(texture[row, col])


def _lerp_attr(hit: SegmentHit, key: str, fallback: float = 0.0) -> float:
    a: dict[str, Any] = hit.segment.attr_start or {}
    b: dict[str, Any] = hit.segment.attr_end or {}
    return lerp(float(a.get(key, fallback)), float(b.get(key, fallback)), hit.t)


def _search_radius(index: PolylineIndex) -> float:
    return index.cell_size * 3.0


def _no_coast(distance: float) -> CoastlineQuery:
    return CoastlineQuery(0.0, distance, (0.0, 1.0), 0.0)


def query_coastline(metadata: ContinentMetadata, x: float, z: float) -> CoastlineQuery:
    """Shore influence peaking at 1 on the coastline; distance is negative offshore."""

    texture = metadata.coastline_influence
    if texture.size == 0:
        return _no_coast(math.inf)

    raw = sample_influence_texture(texture, metadata.bounds, x, z)
    threshold = metadata.query_threshold
    if raw <= threshold:
        return _no_coast(-math.inf)
    if raw >= 255 - threshold:
        return _no_coast(math.inf)

    influence = coastline_texel(raw)
    is_land = raw > SHORELINE_VALUE
    hits = query_nearby_segments(metadata.coastline_index, x, z, _search_radius(metadata.coastline_index))
    if not hits:
        return CoastlineQuery(influence, 0.0, (0.0, 1.0), 0.0)

    nearest = hits[0]
    dist = nearest.distance
    if dist > _NORMAL_EPS:
        nx = (x - nearest.closest[0]) / dist
        nz = (z - nearest.closest[1]) / dist
        if not is_land:
            nx, nz = -nx, -nz
    else:
        p0, p1 = nearest.segment.p0, nearest.segment.p1
        dx = p1[0] - p0[0]
        dz = p1[1] - p0[1]
        length = math.hypot(dx, dz)
        nx, nz = (-dz / length, dx / length) if length > _NORMAL_EPS else (0.0, 1.0)

    return CoastlineQuery(
        influence=influence,
        distance_to_shore=dist if is_land else -dist,
        shore_normal=(nx, nz),
        shore_elevation=_lerp_attr(nearest, "elevation"),
    )


def _no_river(influence: float = 0.0) -> RiverQuery:
    return RiverQuery(influence, math.inf, 0.0, (0.0, 0.0), 0.0, None)


def query_river(metadata: ContinentMetadata, x: float, z: float) -> RiverQuery:
    """Nearest river channel with interpolated width, water elevation and bank side."""

    texture = metadata.river_influence
    if texture.size == 0:
        return _no_river()
    raw = sample_influence_texture(texture, metadata.bounds, x, z)
    if raw <= metadata.query_threshold:
        return _no_river()

    influence = raw / 255.0
    hits = query_nearby_segments(metadata.river_index, x, z, _search_radius(metadata.river_index))
    if not hits:
        return _no_river(influence)

    nearest = hits[0]
    width = _lerp_attr(nearest, "width")
    p0, p1 = nearest.segment.p0, nearest.segment.p1
    dx = p1[0] - p0[0]
    dz = p1[1] - p0[1]
    length = math.hypot(dx, dz) or 1.0
    flow = (dx / length, dz / length)

    bank_side = None
    if nearest.distance > width * 0.5:
        cross = flow[0] * (z - nearest.closest[1]) - flow[1] * (x - nearest.closest[0])
        bank_side = "left" if cross > 0 else "right"

    return RiverQuery(
        influence=influence,
        distance_to_center=nearest.distance,
        width=width,
        flow_direction=flow,
        elevation=_lerp_attr(nearest, "elevation"),
        bank_side=bank_side,
    )


def _no_road(influence: float = 0.0) -> RoadQuery:
    return RoadQuery(influence, math.inf, 0.0, None, 0.0, 0.0)


def query_road(metadata: ContinentMetadata, x: float, z: float) -> RoadQuery:
    """Highest-priority nearby road (highway > road > trail > path), nearest on ties."""

    texture = metadata.road_influence
    if texture.size == 0:
        return _no_road()
    raw = sample_influence_texture(texture, metadata.bounds, x, z)
    if raw <= metadata.query_threshold:
        return _no_road()

    influence = raw / 255.0
    hits = query_nearby_segments(metadata.road_index, x, z, _search_radius(metadata.road_index))
    if not hits:
        return _no_road(influence)

    nearest_per_road: dict[str, SegmentHit] = {}
    for hit in hits:
        seen = nearest_per_road.get(hit.segment.polyline_id)
        if seen is None or hit.distance < seen.distance:
            nearest_per_road[hit.segment.polyline_id] = hit

    def rank(hit: SegmentHit) -> tuple[int, float]:
        road_type = metadata.road_types.get(hit.segment.polyline_id)
        return ROAD_PRIORITY.get(road_type, _UNKNOWN_PRIORITY), hit.distance

    best = min(nearest_per_road.values(), key=rank)
    return RoadQuery(
        influence=influence,
        distance_to_center=best.distance,
        width=_lerp_attr(best, "width"),
        road_type=metadata.road_types.get(best.segment.polyline_id),
        grade=_lerp_attr(best, "grade"),
        surface_elevation=_lerp_attr(best, "elevation"),
    )


def query_all_features(metadata: ContinentMetadata, x: float, z: float) -> FeatureQuery:
    """Run all three queries; features without influence come back as None."""

    coastline = query_coastline(metadata, x, z)
    river = query_river(metadata, x, z)
    road = query_road(metadata, x, z)
    return FeatureQuery(
        coastline=coastline if coastline.influence > 0 else None,
        river=river if river.influence > 0 else None,
        road=road if road.influence > 0 else None,
    )
