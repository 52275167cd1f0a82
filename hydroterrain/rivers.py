"""River records and per-vertex post-processing."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import math
from typing import Callable, Sequence

import numpy as np

from hydroterrain.config import HydrologyConfig

COAST = "coast"
BASIN = "basin"
EDGE = "edge"
TERMINATIONS = (COAST, BASIN, EDGE)

_MAX_CURVATURE = 500.0
_CURVATURE_GAIN = 200.0
_CURVATURE_CAP = 3.0
_CARVE_FREEBOARD = 0.01


@dataclass(frozen=True)
class RiverVertex:
    x: float
    z: float
    elevation: float
    flow: float
    width: float
    carve_depth: float = 0.0
    curvature: float = 0.0


@dataclass(frozen=True)
class River:
    """A traced channel, source first; elevation never rises downstream."""

    id: str
    vertices: tuple[RiverVertex, ...]
    termination: str
    terminating_lake_id: str | None = None
    tributary_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def points(self) -> list[tuple[float, float]]:
        return [(v.x, v.z) for v in self.vertices]

    @property
    def max_width(self) -> float:
        return max((v.width for v in self.vertices), default=0.0)

    def length(self) -> float:
        total = 0.0
        for a, b in zip(self.vertices[:-1], self.vertices[1:]):
            total += math.hypot(b.x - a.x, b.z - a.z)
        return total


@dataclass(frozen=True)
class RiverPointInfo:
    distance: float
    width: float
    carve_depth: float
    t: float
    curvature: float
    tangent: tuple[float, float]
    side: int


def enforce_monotonic_elevations(elevations: Sequence[float], sea_level: float, *, ramp_start: float = 0.7) -> np.ndarray:
    """Clamp to non-increasing, ramping the tail toward sea level when it ends inland."""

    elev = np.minimum.accumulate(np.asarray(elevations, dtype=np.float64))
    n = elev.size
    if n < 2:
        return elev

    if elev[-1] > sea_level:
        start = int(math.floor(n * ramp_start))
        start_elev = float(elev[start])
        span = n - 1 - start
        idx = np.arange(start, n, dtype=np.float64)
        t = (idx - start) / span if span > 0 else np.ones_like(idx)
        ramp = start_elev + (sea_level - start_elev) * t
        elev[start:] = np.minimum(elev[start:], ramp)

    return np.minimum.accumulate(elev)


def enforce_monotonic(vertices: Sequence[RiverVertex], sea_level: float, *, ramp_start: float = 0.7) -> list[RiverVertex]:
    elev = enforce_monotonic_elevations([v.elevation for v in vertices], sea_level, ramp_start=ramp_start)
    return [replace(v, elevation=float(e)) for v, e in zip(vertices, elev)]


def simplify_river_path(vertices: Sequence[RiverVertex], epsilon: float) -> list[RiverVertex]:
    """Douglas-Peucker on vertex positions; spans of three or fewer vertices are kept whole."""

    n = len(vertices)
    if n <= 3:
        return list(vertices)

    coords = np.asarray([(v.x, v.z) for v in vertices], dtype=np.float64)
    keep = np.zeros(n, dtype=bool)
    keep[0] = True
    keep[-1] = True
    stack = [(0, n - 1)]
    while stack:
        first, last = stack.pop()
        if last - first <= 2:
            keep[first : last + 1] = True
            continue
        start = coords[first]
        d = coords[last] - start
        len_sq = float(d @ d)
        rel = coords[first + 1 : last] - start
        if len_sq == 0.0:
            dists = np.hypot(rel[:, 0], rel[:, 1])
        else:
            t = np.clip((rel @ d) / len_sq, 0.0, 1.0)
            off = rel - t[:, None] * d
            dists = np.hypot(off[:, 0], off[:, 1])
        local = int(np.argmax(dists))
        if float(dists[local]) > epsilon:
            split = first + 1 + local
            stack.append((split, last))
            stack.append((first, split))
    return [vertices[i] for i in np.flatnonzero(keep).tolist()]


def compute_river_curvatures(vertices: Sequence[RiverVertex]) -> list[RiverVertex]:
    """Signed curvature per vertex (positive bends left), clamped to +/-500."""

    n = len(vertices)
    if n < 3:
        return [replace(v, curvature=0.0) for v in vertices]

    curv = [0.0] * n
    for i in range(1, n - 1):
        prev, curr, nxt = vertices[i - 1], vertices[i], vertices[i + 1]
        t1x, t1z = curr.x - prev.x, curr.z - prev.z
        t2x, t2z = nxt.x - curr.x, nxt.z - curr.z
        len1 = math.hypot(t1x, t1z)
        len2 = math.hypot(t2x, t2z)
        seg_len = (len1 + len2) / 2.0
        if seg_len < 1e-5 or len1 == 0.0 or len2 == 0.0:
            continue
        cross = (t1x / len1) * (t2z / len2) - (t1z / len1) * (t2x / len2)
        curv[i] = max(-_MAX_CURVATURE, min(_MAX_CURVATURE, cross / seg_len))
    curv[0] = curv[1]
    curv[-1] = curv[-2]
    return [replace(v, curvature=c) for v, c in zip(vertices, curv)]


def compute_carve_depth(flow: float, elevation: float, config: HydrologyConfig, sea_level: float) -> float:
    if not config.carve_enabled:
        return 0.0
    headroom = elevation - sea_level - _CARVE_FREEBOARD
    return min(flow / config.river_threshold * config.carve_factor, max(0.0, headroom))


def apply_carve_depths(vertices: Sequence[RiverVertex], config: HydrologyConfig, sea_level: float) -> list[RiverVertex]:
    return [replace(v, carve_depth=compute_carve_depth(v.flow, v.elevation, config, sea_level)) for v in vertices]


def apply_width_noise(
    vertices: Sequence[RiverVertex],
    noise: Callable[[float, float], float],
    config: HydrologyConfig,
) -> list[RiverVertex]:
    """Jitter widths with noise, widen and deepen bends, then keep widths non-decreasing."""

    freq = config.width_noise_frequency
    out: list[RiverVertex] = []
    running_width = 0.0
    for v in vertices:
        jitter = 1.0 + noise(v.x * freq, v.z * freq) * config.width_noise_amplitude
        bend = min(abs(v.curvature) * _CURVATURE_GAIN, _CURVATURE_CAP)
        width = v.width * jitter * (1.0 + bend * config.meander_widening_strength)
        running_width = max(running_width, width)
        carve = v.carve_depth * (1.0 + bend * config.meander_erosion_strength)
        out.append(replace(v, width=running_width, carve_depth=carve))
    return out


def find_nearest_river_point(river: River, x: float, z: float) -> RiverPointInfo:
    """Closest point on the river polyline with interpolated channel attributes."""

    best = RiverPointInfo(math.inf, 0.0, 0.0, 0.0, 0.0, (0.0, 1.0), 1)
    verts = river.vertices
    if len(verts) < 2:
        return best
    last_index = len(verts) - 1

    for i in range(last_index):
        v0 = verts[i]
        v1 = verts[i + 1]
        sdx = v1.x - v0.x
        sdz = v1.z - v0.z
        seg_len_sq = sdx * sdx + sdz * sdz
        t = 0.0
        if seg_len_sq > 0.0:
            t = max(0.0, min(1.0, ((x - v0.x) * sdx + (z - v0.z) * sdz) / seg_len_sq))
        dist_x = x - (v0.x + t * sdx)
        dist_z = z - (v0.z + t * sdz)
        dist = math.hypot(dist_x, dist_z)
        if dist >= best.distance:
            continue

        tangent = best.tangent
        seg_len = math.sqrt(seg_len_sq)
        if seg_len > 1e-5:
            tangent = (sdx / seg_len, sdz / seg_len)
        side = 1 if tangent[0] * dist_z - tangent[1] * dist_x >= 0.0 else -1
        best = RiverPointInfo(
            distance=dist,
            width=v0.width + t * (v1.width - v0.width),
            carve_depth=v0.carve_depth + t * (v1.carve_depth - v0.carve_depth),
            t=(i + t) / last_index,
            curvature=v0.curvature + t * (v1.curvature - v0.curvature),
            tangent=tangent,
            side=side,
        )
    return best


def merge_river_confluences(rivers: Sequence[River], cell_of: Callable[[float, float], tuple[int, int]]) -> list[River]:
    """Record as tributaries the rivers sharing a grid cell with a higher-flow river."""

    by_cell: dict[tuple[int, int], list[tuple[float, int]]] = {}
    for ri, river in enumerate(rivers):
        for v in river.vertices:
            by_cell.setdefault(cell_of(v.x, v.z), []).append((v.flow, ri))

    tributaries: dict[int, list[str]] = {}
    for entries in by_cell.values():
        owners = {ri for _, ri in entries}
        if len(owners) < 2:
            continue
        main = max(entries, key=lambda e: (e[0], -e[1]))[1]
        for ri in sorted(owners - {main}):
            ids = tributaries.setdefault(main, [])
            if rivers[ri].id not in ids:
                ids.append(rivers[ri].id)

    return [
        replace(river, tributary_ids=tuple(tributaries.get(ri, ()))) if ri in tributaries else river
        for ri, river in enumerate(rivers)
    ]
