"""Lake records: depression lakes, explicitly placed lakes and their linking."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import math
from typing import TYPE_CHECKING, Callable, Sequence

import numpy as np

from hydroterrain.config import HydrologyConfig
from hydroterrain.contour import extract_contours, is_closed_loop, simplify_polyline
from hydroterrain.field import ElevationField
from hydroterrain.geometry import Bounds, point_to_segment_distance
from hydroterrain.polygon import point_in_polygon, polygon_area
from hydroterrain.rivers import BASIN, River
from hydroterrain.spines import Spines

if TYPE_CHECKING:
    from hydroterrain.hydrology import SpillResult

Point = tuple[float, float]

_TARGET_LAKE_ELEVATION = 0.20


@dataclass(frozen=True)
class Lake:
    """Still water surface with a closed boundary ring (first point repeated)."""

    id: str
    center: Point
    water_level: float
    spill_elevation: float
    boundary: tuple[Point, ...]
    area: float
    endorheic: bool
    spill_point: Point | None = None
    inflow_river_ids: tuple[str, ...] = field(default_factory=tuple)
    outflow_river_id: str | None = None

    def contains(self, x: float, z: float) -> bool:
        return point_in_polygon(x, z, self.boundary)


def close_ring(points: Sequence[Point]) -> tuple[Point, ...]:
    ring = [(float(p[0]), float(p[1])) for p in points]
    if len(ring) >= 2 and ring[0] != ring[-1]:
        ring.append(ring[0])
    return tuple(ring)


def build_lake(field: ElevationField, spill: "SpillResult", config: HydrologyConfig) -> Lake:
    """Lake over a flooded depression, outlined by the water-level contour."""

    rows, cols = np.divmod(np.asarray(spill.filled_cells, dtype=np.int64), field.width)
    xs = field.bounds.min_x + (cols + 0.5) * field.cell_w
    zs = field.bounds.min_z + (rows + 0.5) * field.cell_h
    min_col, max_col = int(cols.min()), int(cols.max())
    min_row, max_row = int(rows.min()), int(rows.max())

    pad = config.lake_padding_cells
    region = Bounds(
        min_x=field.bounds.min_x + max(0, min_col - pad) * field.cell_w,
        max_x=field.bounds.min_x + min(field.width, max_col + pad + 1) * field.cell_w,
        min_z=field.bounds.min_z + max(0, min_row - pad) * field.cell_h,
        max_z=field.bounds.min_z + min(field.height, max_row + pad + 1) * field.cell_h,
    )
    res = field.cell_w * config.lake_contour_cells
    contours = extract_contours(field.sample_nearest, spill.water_level, region, res)
    if contours:
        # Samples past the far grid edge read as 0 and leave open chains along the border.
        loops = [c for c in contours if is_closed_loop(c)]
        ring = simplify_polyline(max(loops or contours, key=len), res * 0.5)
    else:
        x0 = field.bounds.min_x + min_col * field.cell_w
        x1 = field.bounds.min_x + (max_col + 1) * field.cell_w
        z0 = field.bounds.min_z + min_row * field.cell_h
        z1 = field.bounds.min_z + (max_row + 1) * field.cell_h
        ring = [(x0, z0), (x1, z0), (x1, z1), (x0, z1)]

    return Lake(
        id=f"lake_{min_col}_{min_row}",
        center=(float(xs.mean()), float(zs.mean())),
        water_level=float(spill.water_level),
        spill_elevation=float(field.data[spill.spill_row, spill.spill_col]),
        spill_point=field.cell_center(spill.spill_row, spill.spill_col),
        boundary=close_ring(ring),
        area=float(rows.size * field.cell_w * field.cell_h),
        endorheic=False,
    )


@dataclass(frozen=True)
class _LakeSite:
    row: int
    col: int
    x: float
    z: float
    elevation: float
    score: float


def _lake_margin(size: int, config: HydrologyConfig) -> int:
    if size >= 2 * config.lake_margin_cells:
        return config.lake_margin_cells
    return max(config.lake_flatness_radius, size // 4)


def _spine_distance(spines: Spines, x: float, z: float) -> float:
    best = math.inf
    for va, vb in spines.segment_endpoints():
        dist, _ = point_to_segment_distance(x, z, va.x, va.z, vb.x, vb.z)
        best = min(best, dist)
    return best


def _score_lake_sites(
    field: ElevationField,
    spines: Spines,
    sea_level: float,
    rng: np.random.Generator,
    config: HydrologyConfig,
) -> list[_LakeSite]:
    margin_c = _lake_margin(field.width, config)
    margin_r = _lake_margin(field.height, config)
    span_c = field.width - 2 * margin_c
    span_r = field.height - 2 * margin_r
    if span_c <= 0 or span_r <= 0:
        return []

    rad = config.lake_flatness_radius
    sites: list[_LakeSite] = []
    for _ in range(config.lake_candidates):
        col = int(math.floor(rng.random() * span_c)) + margin_c
        row = int(math.floor(rng.random() * span_r)) + margin_r
        elev = float(field.data[row, col])
        if elev < sea_level + config.lake_min_elevation_above_sea or elev > config.lake_max_elevation:
            continue

        window = field.data[max(0, row - rad) : row + rad + 1, max(0, col - rad) : col + rad + 1]
        variance = float(np.mean(window * window) - np.mean(window) ** 2)
        if variance > config.lake_max_variance:
            continue

        x, z = field.cell_center(row, col)
        spine_dist = _spine_distance(spines, x, z)
        if spine_dist < config.lake_min_spine_distance:
            continue

        flat_score = 1.0 - min(variance / config.lake_max_variance, 1.0)
        elev_score = 1.0 - abs(elev - _TARGET_LAKE_ELEVATION) * 5.0
        dist_score = min(spine_dist * 4.0, 1.0)
        score = flat_score * 0.5 + elev_score * 0.3 + dist_score * 0.2
        sites.append(_LakeSite(row, col, x, z, elev, score))
    return sites


def _lake_outline(
    site: _LakeSite,
    semi_major: float,
    semi_minor: float,
    rotation: float,
    noise: Callable[[float, float], float],
    points: int,
) -> list[Point]:
    cos_r = math.cos(rotation)
    sin_r = math.sin(rotation)
    ring: list[Point] = []
    for j in range(points):
        theta = j / points * math.pi * 2.0
        cos_t = math.cos(theta)
        sin_t = math.sin(theta)
        base = semi_major * semi_minor / math.hypot(semi_minor * cos_t, semi_major * sin_t)
        n1 = noise(site.x + cos_t * 3.7, site.z + sin_t * 3.7)
        n2 = noise(site.x + cos_t * 7.3 + 50.0, site.z + sin_t * 7.3 + 50.0)
        r = base * (1.0 + n1 * 0.3 + n2 * 0.12)
        lx = r * cos_t
        lz = r * sin_t
        ring.append((site.x + lx * cos_r - lz * sin_r, site.z + lx * sin_r + lz * cos_r))
    return ring


def place_explicit_lakes(
    field: ElevationField,
    spines: Spines | None,
    sea_level: float,
    rng: np.random.Generator,
    noise: Callable[[float, float], float],
    config: HydrologyConfig,
) -> list[Lake]:
    """Endorheic lakes at flat, mid-elevation spots away from ridges."""

    if spines is None or not config.explicit_lakes or config.max_placed_lakes <= 0:
        return []

    sites = _score_lake_sites(field, spines, sea_level, rng, config)
    sites.sort(key=lambda s: s.score, reverse=True)
    min_spacing_sq = config.lake_min_spacing * config.lake_min_spacing
    selected: list[_LakeSite] = []
    for site in sites:
        if len(selected) >= config.max_placed_lakes:
            break
        if any((site.x - s.x) ** 2 + (site.z - s.z) ** 2 < min_spacing_sq for s in selected):
            continue
        selected.append(site)

    lakes = []
    for site in selected:
        semi_major = 0.025 + rng.random() * 0.04
        semi_minor = semi_major * (0.55 + rng.random() * 0.45)
        rotation = rng.random() * math.pi
        ring = _lake_outline(site, semi_major, semi_minor, rotation, noise, config.lake_boundary_points)
        lakes.append(
            Lake(
                id=f"placed_lake_{site.col}_{site.row}",
                center=(site.x, site.z),
                water_level=site.elevation,
                spill_elevation=site.elevation,
                boundary=close_ring(ring),
                area=abs(polygon_area(ring)),
                endorheic=True,
            )
        )
    return lakes


def merge_duplicate_lakes(lakes: Sequence[Lake]) -> list[Lake]:
    """Collapse lakes sharing an id, uniting their inflow rivers."""

    merged: dict[str, Lake] = {}
    for lake in lakes:
        seen = merged.get(lake.id)
        if seen is None:
            merged[lake.id] = lake
            continue
        inflow = seen.inflow_river_ids + tuple(r for r in lake.inflow_river_ids if r not in seen.inflow_river_ids)
        merged[lake.id] = replace(
            seen,
            inflow_river_ids=inflow,
            outflow_river_id=seen.outflow_river_id or lake.outflow_river_id,
        )
    return list(merged.values())


def dedupe_placed_lakes(placed: Sequence[Lake], river_lakes: Sequence[Lake]) -> list[Lake]:
    """Drop placed lakes overlapping a depression lake."""

    kept = []
    for lake in placed:
        overlaps = any(
            other.contains(*lake.center) or lake.contains(*other.center) for other in river_lakes
        )
        if not overlaps:
            kept.append(lake)
    return kept


def link_terminal_lakes(rivers: Sequence[River], lakes: Sequence[Lake]) -> tuple[list[River], list[Lake]]:
    """Attach basin rivers to the lake holding their terminus."""

    lake_list = list(lakes)
    out_rivers = []
    for river in rivers:
        if river.termination != BASIN or not river.vertices:
            out_rivers.append(river)
            continue
        end = river.vertices[-1]
        hit = next((i for i, lake in enumerate(lake_list) if lake.contains(end.x, end.z)), None)
        if hit is None:
            out_rivers.append(river)
            continue
        lake = lake_list[hit]
        if river.id not in lake.inflow_river_ids:
            lake_list[hit] = replace(lake, inflow_river_ids=lake.inflow_river_ids + (river.id,))
        out_rivers.append(replace(river, terminating_lake_id=lake.id))
    return out_rivers, lake_list

