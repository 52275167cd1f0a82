"""River valley carving sampled from traced river geometry."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Sequence

import numpy as np

from hydroterrain.config import DEFAULT_SEA_LEVEL, HydrologyConfig
from hydroterrain.geometry import Bounds
from hydroterrain.rivers import River, compute_carve_depth, find_nearest_river_point

_REACH_WIDTHS = 2.0
_FALLOFF_SHARPNESS = 3.0
_GRID_EPS = 1e-9


@dataclass(frozen=True)
class RiverInfo:
    river: River
    distance: float
    width: float
    flow: float
    carve_depth: float


def compute_carve_profile(distance: float, width: float, max_depth: float) -> float:
    """Gaussian valley cross-section reaching zero at twice the channel width."""

    reach = width * _REACH_WIDTHS
    if distance >= reach:
        return 0.0
    t = distance / reach
    return max_depth * math.exp(-t * t * _FALLOFF_SHARPNESS)


def calculate_safe_carve_depth(
    flow: float,
    base_elevation: float,
    config: HydrologyConfig,
    sea_level: float = DEFAULT_SEA_LEVEL,
) -> float:
    return compute_carve_depth(flow, base_elevation, config, sea_level)


def sample_river_carving(rivers: Sequence[River], x: float, z: float, *, carve_enabled: bool = True) -> float:
    """Deepest carve any river applies at (x, z), as a non-positive offset."""

    if not carve_enabled:
        return 0.0
    deepest = 0.0
    for river in rivers:
        if len(river.vertices) < 2:
            continue
        nearest = find_nearest_river_point(river, x, z)
        deepest = max(deepest, compute_carve_profile(nearest.distance, nearest.width, nearest.carve_depth))
    return -deepest


def _river_nearest_grid(river: River, px: np.ndarray, pz: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Per-point distance, width and carve depth at the closest channel point."""

    best = np.full(px.shape, np.inf, dtype=np.float64)
    width = np.zeros(px.shape, dtype=np.float64)
    carve = np.zeros(px.shape, dtype=np.float64)
    verts = river.vertices
    for v0, v1 in zip(verts[:-1], verts[1:]):
        dx = v1.x - v0.x
        dz = v1.z - v0.z
        len_sq = dx * dx + dz * dz
        if len_sq > 0.0:
            t = np.clip(((px - v0.x) * dx + (pz - v0.z) * dz) / len_sq, 0.0, 1.0)
        else:
            t = np.zeros(px.shape, dtype=np.float64)
        dist = np.hypot(px - (v0.x + t * dx), pz - (v0.z + t * dz))
        closer = dist < best
        best[closer] = dist[closer]
        width[closer] = (v0.width + t * (v1.width - v0.width))[closer]
        carve[closer] = (v0.carve_depth + t * (v1.carve_depth - v0.carve_depth))[closer]
    return best, width, carve


def compute_river_carving_field(
    rivers: Sequence[River],
    bounds: Bounds,
    resolution: float,
    *,
    carve_enabled: bool = True,
) -> np.ndarray:
    """Carve depth (positive) sampled at cell centres of a ``resolution``-spaced grid."""

    if resolution <= 0:
        raise ValueError("resolution must be positive")
    cols = max(1, math.ceil(bounds.span_x / resolution - _GRID_EPS))
    rows = max(1, math.ceil(bounds.span_z / resolution - _GRID_EPS))
    field = np.zeros((rows, cols), dtype=np.float64)
    if not carve_enabled:
        return field

    xs = bounds.min_x + (np.arange(cols, dtype=np.float64) + 0.5) * resolution
    zs = bounds.min_z + (np.arange(rows, dtype=np.float64) + 0.5) * resolution
    px, pz = np.meshgrid(xs, zs)
    for river in rivers:
        if len(river.vertices) < 2:
            continue
        dist, width, carve = _river_nearest_grid(river, px, pz)
        reach = width * _REACH_WIDTHS
        inside = dist < reach
        t = np.divide(dist, reach, out=np.zeros_like(dist), where=reach > 0)
        depth = np.where(inside, carve * np.exp(-t * t * _FALLOFF_SHARPNESS), 0.0)
        np.maximum(field, depth, out=field)
    return field


def is_in_river(rivers: Sequence[River], x: float, z: float) -> bool:
    for river in rivers:
        if len(river.vertices) < 2:
            continue
        nearest = find_nearest_river_point(river, x, z)
        if nearest.distance < nearest.width:
            return True
    return False


def get_river_info_at(rivers: Sequence[River], x: float, z: float) -> RiverInfo | None:
    """Closest river within twice its width of (x, z), or None."""

    best_river = None
    best = None
    for river in rivers:
        if len(river.vertices) < 2:
            continue
        nearest = find_nearest_river_point(river, x, z)
        if best is None or nearest.distance < best.distance:
            best_river = river
            best = nearest
    if best_river is None or best is None or best.distance > best.width * _REACH_WIDTHS:
        return None

    vertex = best_river.vertices[int(math.floor(best.t * (len(best_river.vertices) - 1)))]
    return RiverInfo(
        river=best_river,
        distance=best.distance,
        width=best.width,
        flow=vertex.flow,
        carve_depth=best.carve_depth,
    )
