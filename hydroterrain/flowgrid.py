"""D8 flow directions and flow accumulation over an elevation field."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

import numpy as np

from hydroterrain.field import ElevationField

# (d_row, d_col) in order N, NE, E, SE, S, SW, W, NW; rows follow +z.
D8_OFFSETS = (
    (-1, 0),
    (-1, 1),
    (0, 1),
    (1, 1),
    (1, 0),
    (1, -1),
    (0, -1),
    (-1, -1),
)
SINK = 255
FLAT_TOLERANCE = 1e-4


@dataclass(frozen=True)
class FlowGrid:
    """Per-cell D8 direction (``SINK`` when none) and upstream cell count."""

    elevation: np.ndarray
    directions: np.ndarray
    accumulation: np.ndarray

    @property
    def height(self) -> int:
        return int(self.elevation.shape[0])

    @property
    def width(self) -> int:
        return int(self.elevation.shape[1])

    def downstream(self, row: int, col: int) -> tuple[int, int] | None:
        d = int(self.directions[row, col])
        if d == SINK:
            return None
        dr, dc = D8_OFFSETS[d]
        nr, nc = row + dr, col + dc
        if not (0 <= nr < self.height and 0 <= nc < self.width):
            return None
        return nr, nc


def _neighbor_values(values: np.ndarray, dr: int, dc: int, *, fill: float) -> np.ndarray:
    """out[r, c] = values[r + dr, c + dc], ``fill`` where that falls off the grid."""

    h, w = values.shape
    out = np.full((h, w), fill, dtype=np.float64)
    out[max(0, -dr) : h - max(0, dr), max(0, -dc) : w - max(0, dc)] = values[
        max(0, dr) : h - max(0, -dr), max(0, dc) : w - max(0, -dc)
    ]
    return out


def compute_flow_directions(elevation: np.ndarray, cell_w: float = 1.0, cell_h: float = 1.0) -> np.ndarray:
    """Steepest strictly-downhill neighbour per cell; ties keep the earlier direction."""

    elev = np.asarray(elevation, dtype=np.float64)
    best_slope = np.zeros(elev.shape, dtype=np.float64)
    directions = np.full(elev.shape, SINK, dtype=np.uint8)
    for d, (dr, dc) in enumerate(D8_OFFSETS):
        neighbour = _neighbor_values(elev, dr, dc, fill=np.inf)
        slope = (elev - neighbour) / float(np.hypot(dc * cell_w, dr * cell_h))
        better = slope > best_slope
        best_slope[better] = slope[better]
        directions[better] = d
    return directions


def resolve_flat_areas(elevation: np.ndarray, directions: np.ndarray, *, tolerance: float = FLAT_TOLERANCE) -> np.ndarray:
    """Route sinks across flats to the nearest cell that already drains or lies lower.

    Breadth-first search from each sink through neighbours no higher than the
    sink plus ``tolerance``. Every cell on the path found is pointed one step
    along it, so later searches that reach the path follow it to the drain.
    Sinks with no such path stay ``SINK``.
    """

    elev = np.asarray(elevation, dtype=np.float64)
    h, w = elev.shape
    dirs = directions.copy()
    elev_flat = elev.ravel()
    dir_flat = dirs.ravel()

    for sink in np.flatnonzero(dir_flat == SINK).tolist():
        if dir_flat[sink] != SINK:
            continue
        sink_elev = elev_flat[sink]
        limit = sink_elev + tolerance
        parent = {sink: (-1, -1)}
        queue = deque([sink])
        drain = -1
        while queue:
            idx = queue.popleft()
            if idx != sink and (dir_flat[idx] != SINK or elev_flat[idx] < sink_elev):
                drain = idx
                break
            r, c = divmod(idx, w)
            for d, (dr, dc) in enumerate(D8_OFFSETS):
                nr, nc = r + dr, c + dc
                if nr < 0 or nr >= h or nc < 0 or nc >= w:
                    continue
                nidx = nr * w + nc
                if nidx in parent or elev_flat[nidx] > limit:
                    continue
                parent[nidx] = (idx, d)
                queue.append(nidx)

        if drain < 0:
            continue
        node = drain
        while node != sink:
            prev, d = parent[node]
            dir_flat[prev] = d
            node = prev
    return dirs


def compute_flow_accumulation(directions: np.ndarray) -> np.ndarray:
    """Each cell counts itself plus every cell draining through it.

    Cells are visited in topological order of the downstream graph; cells on a
    direction cycle keep their partial counts.
    """

    h, w = directions.shape
    n = h * w
    rows, cols = np.divmod(np.arange(n, dtype=np.int64), w)
    dir_flat = directions.ravel().astype(np.int64)
    downstream = np.full(n, -1, dtype=np.int64)
    for d, (dr, dc) in enumerate(D8_OFFSETS):
        sel = dir_flat == d
        nr = rows[sel] + dr
        nc = cols[sel] + dc
        ok = (nr >= 0) & (nr < h) & (nc >= 0) & (nc < w)
        target = np.full(nr.shape, -1, dtype=np.int64)
        target[ok] = nr[ok] * w + nc[ok]
        downstream[sel] = target

    has_dst = downstream >= 0
    indegree = np.bincount(downstream[has_dst], minlength=n)
    accum = np.ones(n, dtype=np.float64)
    queue = deque(np.flatnonzero(indegree == 0).tolist())
    while queue:
        src = queue.popleft()
        dst = int(downstream[src])
        if dst < 0:
            continue
        accum[dst] += accum[src]
        indegree[dst] -= 1
        if indegree[dst] == 0:
            queue.append(dst)
    return accum.reshape((h, w))


def compute_flow_grid(field: ElevationField) -> FlowGrid:
    directions = compute_flow_directions(field.data, field.cell_w, field.cell_h)
    directions = resolve_flat_areas(field.data, directions)
    return FlowGrid(
        elevation=np.asarray(field.data, dtype=np.float64),
        directions=directions,
        accumulation=compute_flow_accumulation(directions),
    )


def find_high_flow_cells(grid: FlowGrid, threshold: float, sea_level: float) -> list[tuple[int, int, float]]:
    """Land cells with accumulation >= threshold as (row, col, accumulation), highest first."""

    mask = (grid.accumulation >= threshold) & (grid.elevation > sea_level)
    rows, cols = np.nonzero(mask)
    acc = grid.accumulation[rows, cols]
    order = np.argsort(-acc, kind="stable")
    return [(int(rows[i]), int(cols[i]), float(acc[i])) for i in order]


def find_sink_cells(grid: FlowGrid) -> list[tuple[int, int]]:
    rows, cols = np.nonzero(grid.directions == SINK)
    return list(zip(rows.tolist(), cols.tolist()))
