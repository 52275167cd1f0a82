"""Marching-squares contour extraction and polyline simplification."""

from __future__ import annotations

import math
from typing import Callable, Sequence

import numpy as np

from hydroterrain.geometry import Bounds

Point = tuple[float, float]
SampleFn = Callable[[float, float], float]

_FLAT_EDGE_EPS = 1e-4

# Corner order: 0 top-left, 1 top-right, 2 bottom-right, 3 bottom-left.
# Complementary cases share a contour; 5 and 10 are saddles.
_EDGE_TABLE: dict[int, tuple[tuple[str, str], ...]] = {
    1: (("left", "top"),),
    2: (("top", "right"),),
    3: (("left", "right"),),
    4: (("right", "bottom"),),
    5: (("left", "top"), ("right", "bottom")),
    6: (("top", "bottom"),),
    7: (("left", "bottom"),),
    8: (("left", "bottom"),),
    9: (("top", "bottom"),),
    10: (("top", "right"), ("left", "bottom")),
    11: (("right", "bottom"),),
    12: (("left", "right"),),
    13: (("top", "right"),),
    14: (("left", "top"),),
}

_H_EDGE = 0
_V_EDGE = 1


def sample_grid(sample_fn: SampleFn, bounds: Bounds, resolution: float) -> np.ndarray:
    """Sample a scalar function on the lattice used by contour extraction."""

    if resolution <= 0:
        raise ValueError("resolution must be positive")
    grid_w = math.ceil(bounds.span_x / resolution) + 1
    grid_h = math.ceil(bounds.span_z / resolution) + 1
    grid = np.empty((max(grid_h, 0), max(grid_w, 0)), dtype=np.float64)
    for i in range(grid.shape[0]):
        wz = bounds.min_z + i * resolution
        for j in range(grid.shape[1]):
            grid[i, j] = sample_fn(bounds.min_x + j * resolution, wz)
    return grid


def extract_contours(
    sample_fn: SampleFn,
    threshold: float,
    bounds: Bounds,
    resolution: float,
) -> list[list[Point]]:
    """Extract iso-lines of sample_fn at threshold as connected polylines."""

    grid = sample_grid(sample_fn, bounds, resolution)
    return extract_contours_from_grid(grid, threshold, bounds.min_x, bounds.min_z, resolution)


def extract_contours_from_grid(
    grid: np.ndarray,
    threshold: float,
    origin_x: float,
    origin_z: float,
    resolution: float,
) -> list[list[Point]]:
    """Marching squares over a pre-sampled lattice anchored at (origin_x, origin_z)."""

    grid_h, grid_w = grid.shape
    if grid_w < 2 or grid_h < 2:
        return []

    above = (grid >= threshold).astype(np.int32)
    cases = (
        above[:-1, :-1]
        + above[:-1, 1:] * 2
        + above[1:, 1:] * 4
        + above[1:, :-1] * 8
    )

    points: list[Point] = []
    edge_index: dict[int, int] = {}

    def edge_point(row: int, col: int, orientation: int) -> int:
        key = (row * grid_w + col) * 2 + orientation
        idx = edge_index.get(key)
        if idx is not None:
            return idx
        if orientation == _H_EDGE:
            t = _edge_t(float(grid[row, col]), float(grid[row, col + 1]), threshold)
            point = (origin_x + (col + t) * resolution, origin_z + row * resolution)
        else:
            t = _edge_t(float(grid[row, col]), float(grid[row + 1, col]), threshold)
            point = (origin_x + col * resolution, origin_z + (row + t) * resolution)
        idx = len(points)
        points.append(point)
        edge_index[key] = idx
        return idx

    segments: list[tuple[int, int]] = []
    rows, cols = np.nonzero((cases != 0) & (cases != 15))
    for i, j in zip(rows.tolist(), cols.tolist()):
        edges = {
            "top": (i, j, _H_EDGE),
            "bottom": (i + 1, j, _H_EDGE),
            "left": (i, j, _V_EDGE),
            "right": (i, j + 1, _V_EDGE),
        }
        for start, end in _EDGE_TABLE[int(cases[i, j])]:
            segments.append((edge_point(*edges[start]), edge_point(*edges[end])))

    return [[points[k] for k in chain] for chain in _chain_segments(segments)]


def connect_segments(segments: Sequence[tuple[Point, Point]]) -> list[list[Point]]:
    """Chain segments into polylines by exact endpoint equality."""

    ids: dict[Point, int] = {}
    points: list[Point] = []
    indexed: list[tuple[int, int]] = []
    for a, b in segments:
        pair = []
        for p in (a, b):
            key = (float(p[0]), float(p[1]))
            if key not in ids:
                ids[key] = len(points)
                points.append(key)
            pair.append(ids[key])
        indexed.append((pair[0], pair[1]))
    return [[points[k] for k in chain] for chain in _chain_segments(indexed)]


def _chain_segments(segments: Sequence[tuple[int, int]]) -> list[list[int]]:
    if not segments:
        return []

    adjacency: dict[int, list[tuple[int, int]]] = {}
    for seg_idx, (p0, p1) in enumerate(segments):
        adjacency.setdefault(p0, []).append((seg_idx, 0))
        adjacency.setdefault(p1, []).append((seg_idx, 1))

    used = [False] * len(segments)
    chains: list[list[int]] = []

    def next_unused(point: int) -> tuple[int, int] | None:
        for seg_idx, endpoint in adjacency.get(point, ()):
            if not used[seg_idx]:
                return seg_idx, endpoint
        return None

    for start_idx, (p0, p1) in enumerate(segments):
        if used[start_idx]:
            continue
        used[start_idx] = True
        forward = [p0, p1]
        while True:
            hit = next_unused(forward[-1])
            if hit is None:
                break
            seg_idx, endpoint = hit
            used[seg_idx] = True
            forward.append(segments[seg_idx][1 - endpoint])

        backward: list[int] = []
        current = forward[0]
        while True:
            hit = next_unused(current)
            if hit is None:
                break
            seg_idx, endpoint = hit
            used[seg_idx] = True
            current = segments[seg_idx][1 - endpoint]
            backward.append(current)

        backward.reverse()
        chains.append(backward + forward)
    return chains


def _edge_t(e1: float, e2: float, threshold: float) -> float:
    d = e2 - e1
    if abs(d) < _FLAT_EDGE_EPS:
        return 0.5
    return min(1.0, max(0.0, (threshold - e1) / d))


def simplify_polyline(points: Sequence[Point], epsilon: float) -> list[Point]:
    """Douglas-Peucker simplification; the endpoints are always kept."""

    n = len(points)
    if n <= 2:
        return list(points)

    coords = np.asarray([(p[0], p[1]) for p in points], dtype=np.float64)
    keep = np.zeros(n, dtype=bool)
    keep[0] = True
    keep[n - 1] = True

    stack = [(0, n - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue
        dists = _segment_distances(coords[first + 1 : last], coords[first], coords[last])
        local = int(np.argmax(dists))
        if float(dists[local]) > epsilon:
            split = first + 1 + local
            keep[split] = True
            stack.append((split, last))
            stack.append((first, split))

    return [points[i] for i in np.flatnonzero(keep).tolist()]


def _segment_distances(pts: np.ndarray, start: np.ndarray, end: np.ndarray) -> np.ndarray:
    d = end - start
    len_sq = float(d @ d)
    rel = pts - start
    if len_sq == 0.0:
        return np.hypot(rel[:, 0], rel[:, 1])
    t = np.clip((rel @ d) / len_sq, 0.0, 1.0)
    closest = start + t[:, None] * d
    diff = pts - closest
    return np.hypot(diff[:, 0], diff[:, 1])


def is_closed_loop(points: Sequence[Point], tolerance: float = 0.001) -> bool:
    if len(points) < 3:
        return False
    (x0, z0), (x1, z1) = points[0], points[-1]
    return math.hypot(x1 - x0, z1 - z0) <= tolerance
