"""Segment-grid acceleration and influence texture baking."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Sequence

import numpy as np

from hydroterrain.contour import is_closed_loop
from hydroterrain.geometry import Bounds, point_to_segment_distance

Point = tuple[float, float]
Polyline = Sequence[Point]

DEFAULT_TEXTURE_RESOLUTION = 512
SHORELINE_VALUE = 127


@dataclass(frozen=True)
class SegmentGrid:
    """Uniform bucket grid; each bucket holds indices into ``segments``."""

    cells: tuple[tuple[int, ...], ...]
    cols: int
    rows: int
    cell_size: float
    bounds: Bounds
    segments: np.ndarray

    def cell_of(self, x: float, z: float) -> tuple[int, int]:
        return (
            math.floor((z - self.bounds.min_z) / self.cell_size),
            math.floor((x - self.bounds.min_x) / self.cell_size),
        )

    def neighbourhood(self, row: int, col: int) -> np.ndarray:
        found: list[int] = []
        for r in range(row - 1, row + 2):
            if r < 0 or r >= self.rows:
                continue
            for c in range(col - 1, col + 2):
                if c < 0 or c >= self.cols:
                    continue
                found.extend(self.cells[r * self.cols + c])
        if not found:
            return np.zeros(0, dtype=np.int64)
        return np.unique(np.asarray(found, dtype=np.int64))


def build_segment_grid(polylines: Sequence[Polyline], bounds: Bounds, cell_size: float) -> SegmentGrid:
    """Insert every polyline segment into each cell its AABB overlaps."""

    if cell_size <= 0:
        raise ValueError("cell_size must be positive")
    cols = max(1, math.ceil(bounds.span_x / cell_size))
    rows = max(1, math.ceil(bounds.span_z / cell_size))
    buckets: list[list[int]] = [[] for _ in range(rows * cols)]
    segments: list[tuple[float, float, float, float]] = []

    for polyline in polylines:
        if polyline is None or len(polyline) < 2:
            continue
        for (ax, az), (bx, bz) in zip(polyline[:-1], polyline[1:]):
            seg_id = len(segments)
            segments.append((ax, az, bx, bz))
            c0 = max(0, math.floor((min(ax, bx) - bounds.min_x) / cell_size))
            c1 = min(cols - 1, math.floor((max(ax, bx) - bounds.min_x) / cell_size))
            r0 = max(0, math.floor((min(az, bz) - bounds.min_z) / cell_size))
            r1 = min(rows - 1, math.floor((max(az, bz) - bounds.min_z) / cell_size))
            for r in range(r0, r1 + 1):
                for c in range(c0, c1 + 1):
                    buckets[r * cols + c].append(seg_id)

    seg_array = np.asarray(segments, dtype=np.float64).reshape((-1, 4))
    return SegmentGrid(tuple(tuple(b) for b in buckets), cols, rows, float(cell_size), bounds, seg_array)


def query_min_distance(grid: SegmentGrid, x: float, z: float) -> float:
    """Nearest segment distance over the 3x3 cell neighbourhood, inf if empty."""

    row, col = grid.cell_of(x, z)
    best = math.inf
    for seg_id in grid.neighbourhood(row, col).tolist():
        ax, az, bx, bz = grid.segments[seg_id]
        dist, _ = point_to_segment_distance(x, z, ax, az, bx, bz)
        if dist < best:
            best = dist
    return best


def texel_centers(bounds: Bounds, resolution: int) -> tuple[np.ndarray, np.ndarray]:
    """World x (per column) and z (per row) of texel centres."""

    cols = bounds.min_x + (np.arange(resolution, dtype=np.float64) + 0.5) * (bounds.span_x / resolution)
    rows = bounds.min_z + (np.arange(resolution, dtype=np.float64) + 0.5) * (bounds.span_z / resolution)
    return cols, rows


def min_distance_field(grid: SegmentGrid, xs: np.ndarray, zs: np.ndarray) -> np.ndarray:
    """Evaluate query_min_distance for every (z, x) lattice point, blockwise per grid cell."""

    out = np.full((zs.size, xs.size), np.inf, dtype=np.float64)
    if grid.segments.shape[0] == 0:
        return out

    col_ids = np.floor((xs - grid.bounds.min_x) / grid.cell_size).astype(np.int64)
    row_ids = np.floor((zs - grid.bounds.min_z) / grid.cell_size).astype(np.int64)

    for row, z_slice in _runs(row_ids):
        for col, x_slice in _runs(col_ids):
            candidates = grid.neighbourhood(row, col)
            if candidates.size == 0:
                continue
            out[z_slice, x_slice] = _block_distance(
                grid.segments[candidates],
                xs[x_slice],
                zs[z_slice],
            )
    return out


def _runs(ids: np.ndarray) -> list[tuple[int, slice]]:
    runs: list[tuple[int, slice]] = []
    start = 0
    for i in range(1, ids.size + 1):
        if i == ids.size or ids[i] != ids[start]:
            runs.append((int(ids[start]), slice(start, i)))
            start = i
    return runs


def _block_distance(segs: np.ndarray, xs: np.ndarray, zs: np.ndarray) -> np.ndarray:
    px = xs[None, :, None]
    pz = zs[:, None, None]
    ax = segs[:, 0]
    az = segs[:, 1]
    dx = segs[:, 2] - ax
    dz = segs[:, 3] - az
    len_sq = dx * dx + dz * dz
    safe = np.where(len_sq > 0.0, len_sq, 1.0)
    t = np.clip(((px - ax) * dx + (pz - az) * dz) / safe, 0.0, 1.0)
    t = np.where(len_sq > 0.0, t, 0.0)
    dist = np.hypot(px - (ax + t * dx), pz - (az + t * dz))
    return dist.min(axis=2)


def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def _smoothstep_array(edge0: float, edge1: float, x: np.ndarray) -> np.ndarray:
    if edge0 == edge1:
        return np.where(x < edge0, 0.0, 1.0)
    t = np.clip((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def bake_influence_field(
    polylines: Sequence[Polyline],
    *,
    resolution: int = DEFAULT_TEXTURE_RESOLUTION,
    inner_radius: float = 0.0,
    outer_radius: float = 0.0,
    bounds: Bounds = Bounds(),
) -> np.ndarray:
    """Bake a (resolution, resolution) uint8 proximity texture: 255 inside inner, 0 beyond outer."""

    if resolution <= 0:
        raise ValueError("resolution must be positive")
    output = np.zeros((resolution, resolution), dtype=np.uint8)
    if not polylines or outer_radius <= 0:
        return output

    cell_size = max(outer_radius, max(bounds.span_x, bounds.span_z) / 500.0)
    grid = build_segment_grid(polylines, bounds, cell_size)
    xs, zs = texel_centers(bounds, resolution)
    dist = min_distance_field(grid, xs, zs)

    near = dist < outer_radius
    influence = _smoothstep_array(outer_radius, inner_radius, dist[near])
    output[near] = _round_half_up(influence * 255.0).astype(np.uint8)
    return output


def land_mask_from_polylines(polylines: Sequence[Polyline], xs: np.ndarray, zs: np.ndarray) -> np.ndarray:
    """Even-odd inside test of every lattice point against closed polylines."""

    inside = np.zeros((zs.size, xs.size), dtype=bool)
    for polyline in polylines:
        if len(polyline) < 3 or not is_closed_loop(polyline):
            continue
        poly_inside = np.zeros_like(inside)
        n = len(polyline)
        for i in range(n):
            xi, zi = polyline[i]
            xj, zj = polyline[i - 1]
            rows = np.flatnonzero((zi > zs) != (zj > zs))
            if rows.size == 0:
                continue
            x_cross = (xj - xi) * (zs[rows] - zi) / (zj - zi) + xi
            poly_inside[rows, :] ^= xs[None, :] < x_cross[:, None]
        inside ^= poly_inside
    return inside


def bake_coastline_influence(
    polylines: Sequence[Polyline],
    *,
    resolution: int = DEFAULT_TEXTURE_RESOLUTION,
    beach_width: float = 0.02,
    transition_width: float = 0.05,
    bounds: Bounds = Bounds(),
) -> np.ndarray:
    """Bake signed shoreline distance: 0 open ocean, 127 at the shore, 255 inland."""

    if resolution <= 0:
        raise ValueError("resolution must be positive")
    if not polylines:
        return np.full((resolution, resolution), 255, dtype=np.uint8)

    max_radius = max(beach_width, transition_width)
    cell_size = max(max_radius or 0.01, max(bounds.span_x, bounds.span_z) / 500.0)
    grid = build_segment_grid(polylines, bounds, cell_size)
    xs, zs = texel_centers(bounds, resolution)
    dist = min_distance_field(grid, xs, zs)
    land = land_mask_from_polylines(polylines, xs, zs)
    signed = np.where(land, dist, -dist)

    output = np.full((resolution, resolution), 255, dtype=np.uint8)
    ocean_far = signed <= -transition_width
    ocean_near = (~ocean_far) & (signed < 0.0)
    beach = (signed >= 0.0) & (signed < beach_width)

    output[ocean_far] = 0
    output[ocean_near] = _round_half_up(
        _smoothstep_array(-transition_width, 0.0, signed[ocean_near]) * SHORELINE_VALUE
    ).astype(np.uint8)
    output[beach] = SHORELINE_VALUE + _round_half_up(
        _smoothstep_array(0.0, beach_width, signed[beach]) * 128.0
    ).astype(np.uint8)
    return output


def coastline_texel(value: int) -> float:
    """Decode a coastline texel into an influence weight peaking at the shore."""

    return 1.0 - abs(int(value) - SHORELINE_VALUE) / float(SHORELINE_VALUE)
