"""Coastline extraction from the elevation field."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Sequence

import structlog

from hydroterrain.config import DEFAULT_SEA_LEVEL, CoastlineConfig
from hydroterrain.contour import extract_contours, is_closed_loop, simplify_polyline
from hydroterrain.field import ElevationField
from hydroterrain.geometry import Bounds
from hydroterrain.noise import fbm_noise
from hydroterrain.polygon import polygon_area
from hydroterrain.rng import RngStream

logger = structlog.get_logger(__name__)

Point = tuple[float, float]

_MIN_TANGENT = 1e-4


@dataclass(frozen=True)
class CoastlineStats:
    polyline_count: int
    total_vertices: int
    total_length: float
    closed_loops: int
    open_chains: int
    areas: tuple[float, ...]
    min_area: float
    max_area: float

    def to_dict(self) -> dict[str, object]:
        return {
            "polyline_count": self.polyline_count,
            "total_vertices": self.total_vertices,
            "total_length": self.total_length,
            "closed_loops": self.closed_loops,
            "open_chains": self.open_chains,
            "min_area": self.min_area,
            "max_area": self.max_area,
        }


def extract_coastline(
    field: ElevationField,
    sea_level: float = DEFAULT_SEA_LEVEL,
    bounds: Bounds | None = None,
    config: CoastlineConfig = CoastlineConfig(),
) -> list[list[Point]]:
    """Sea-level iso-lines of the bilinearly sampled field, simplified."""

    polylines = extract_contours(
        field.sample_bilinear,
        sea_level,
        bounds or field.bounds,
        config.sample_resolution,
    )
    return [simplify_polyline(pl, config.simplify_epsilon) for pl in polylines]


def displace_coastline(polyline: Sequence[Point], stream: RngStream, config: CoastlineConfig) -> list[Point]:
    """Push interior vertices along the local normal by fBm sampled over arc length.

    Endpoints stay put, so closed loops remain closed.
    """

    points = [(float(p[0]), float(p[1])) for p in polyline]
    amplitude = config.displacement_amplitude
    if len(points) < 2 or amplitude <= 0:
        return points

    noise = fbm_noise(
        stream.fork("coastline-displacement"),
        octaves=config.displacement_octaves,
        persistence=0.5,
        lacunarity=2.0,
        frequency=config.displacement_frequency,
    )

    out: list[Point] = [points[0]]
    arc = 0.0
    last = len(points) - 1
    for i in range(1, len(points)):
        x, z = points[i]
        px, pz = points[i - 1]
        arc += math.hypot(x - px, z - pz)
        if i == last:
            out.append((x, z))
            continue
        nx_, nz_ = points[i + 1]
        tx = nx_ - px
        tz = nz_ - pz
        length = math.hypot(tx, tz)
        if length < _MIN_TANGENT:
            out.append((x, z))
            continue
        offset = noise(arc, 0.0) * amplitude
        out.append((x - tz / length * offset, z + tx / length * offset))
    return out


def displace_all_coastlines(
    polylines: Sequence[Sequence[Point]],
    stream: RngStream,
    config: CoastlineConfig,
) -> list[list[Point]]:
    return [displace_coastline(pl, stream.fork(f"coastline_{i}"), config) for i, pl in enumerate(polylines)]


def filter_small_islands(
    polylines: Sequence[Sequence[Point]],
    min_area: float = 0.0,
    min_vertices: int = 0,
) -> list[list[Point]]:
    """Drop polylines with too few vertices, and closed loops enclosing too little area."""

    if min_area <= 0 and min_vertices <= 0:
        return [list(pl) for pl in polylines]

    kept = []
    for pl in polylines:
        if min_vertices > 0 and len(pl) < min_vertices:
            continue
        if min_area > 0 and is_closed_loop(pl) and abs(polygon_area(pl)) < min_area:
            continue
        kept.append(list(pl))
    return kept


def extract_refined_coastline(
    field: ElevationField,
    stream: RngStream,
    *,
    sea_level: float = DEFAULT_SEA_LEVEL,
    bounds: Bounds | None = None,
    config: CoastlineConfig = CoastlineConfig(),
) -> list[list[Point]]:
    """Extraction, optional displacement and island filtering in one pass."""

    polylines = extract_coastline(field, sea_level, bounds, config)
    if config.displace and config.displacement_amplitude > 0:
        polylines = displace_all_coastlines(polylines, stream, config)
    before = len(polylines)
    polylines = filter_small_islands(polylines, config.min_island_area, config.min_island_vertices)
    logger.info(
        "coastline.extracted",
        polylines=len(polylines),
        filtered=before - len(polylines),
        displaced=config.displace,
    )
    return polylines


def coastline_stats(polylines: Sequence[Sequence[Point]]) -> CoastlineStats:
    total_vertices = 0
    total_length = 0.0
    closed = 0
    areas: list[float] = []
    for pl in polylines:
        total_vertices += len(pl)
        for a, b in zip(pl[:-1], pl[1:]):
            total_length += math.hypot(b[0] - a[0], b[1] - a[1])
        if is_closed_loop(pl):
            closed += 1
            areas.append(abs(polygon_area(pl)))
    return CoastlineStats(
        polyline_count=len(polylines),
        total_vertices=total_vertices,
        total_length=total_length,
        closed_loops=closed,
        open_chains=len(polylines) - closed,
        areas=tuple(areas),
        min_area=min(areas) if areas else 0.0,
        max_area=max(areas) if areas else 0.0,
    )
