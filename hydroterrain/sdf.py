"""Chamfer distance transforms for river and lake masks."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Sequence

import numpy as np

from hydroterrain.field import ElevationField

if TYPE_CHECKING:
    from hydroterrain.lakes import Lake
    from hydroterrain.rivers import River

FAR_DISTANCE = 1e6
_LAKE_MASK_PADDING = 5


def _min_plus_scan(row: np.ndarray, step: float) -> np.ndarray:
    """Left-to-right relaxation ``row[c] = min(row[c], row[c-1] + step)``."""

    offsets = np.arange(row.size, dtype=np.float64) * step
    return np.minimum(row, np.minimum.accumulate(row - offsets) + offsets)


def chamfer_distance(mask: np.ndarray, cell_w: float, cell_h: float | None = None) -> np.ndarray:
    """Two-pass 8-connected chamfer distance to the nearest True cell.

    Cardinal steps cost the cell size along their axis, diagonal steps the
    cell diagonal. Cells are ``FAR_DISTANCE`` when the mask is empty.
    """

    mask = np.asarray(mask, dtype=bool)
    cs_x = float(cell_w)
    cs_z = float(cell_w if cell_h is None else cell_h)
    dg = math.hypot(cs_x, cs_z)
    h, w = mask.shape
    d = np.where(mask, 0.0, FAR_DISTANCE)
    if not mask.any():
        return d

    for r in range(h):
        row = d[r]
        if r > 0:
            prev = d[r - 1]
            row = np.minimum(row, prev + cs_z)
            if w > 1:
                row[1:] = np.minimum(row[1:], prev[:-1] + dg)
                row[:-1] = np.minimum(row[:-1], prev[1:] + dg)
        d[r] = _min_plus_scan(row, cs_x)

    for r in range(h - 1, -1, -1):
        row = d[r]
        if r < h - 1:
            nxt = d[r + 1]
            row = np.minimum(row, nxt + cs_z)
            if w > 1:
                row[:-1] = np.minimum(row[:-1], nxt[1:] + dg)
                row[1:] = np.minimum(row[1:], nxt[:-1] + dg)
        d[r] = _min_plus_scan(row[::-1], cs_x)[::-1]

    d[mask] = 0.0
    return d


def _line_indices(y0: int, x0: int, y1: int, x1: int) -> tuple[np.ndarray, np.ndarray]:
    steps = int(max(abs(y1 - y0), abs(x1 - x0))) + 1
    ys = np.linspace(y0, y1, steps)
    xs = np.linspace(x0, x1, steps)
    return np.round(ys).astype(np.int64), np.round(xs).astype(np.int64)


def river_mask(rivers: Sequence["River"], field: ElevationField) -> np.ndarray:
    """Cells crossed by any river polyline, rasterized segment by segment."""

    mask = np.zeros((field.height, field.width), dtype=bool)
    for river in rivers:
        cells = [field.world_to_cell(v.x, v.z) for v in river.vertices]
        if len(cells) == 1:
            cells = cells * 2
        for (r0, c0), (r1, c1) in zip(cells[:-1], cells[1:]):
            ys, xs = _line_indices(r0, c0, r1, c1)
            ok = (ys >= 0) & (ys < field.height) & (xs >= 0) & (xs < field.width)
            mask[ys[ok], xs[ok]] = True
    return mask


def compute_river_sdf(rivers: Sequence["River"], field: ElevationField) -> np.ndarray:
    """Unsigned distance to the nearest river cell; 0 on the channel."""

    return chamfer_distance(river_mask(rivers, field), field.cell_w, field.cell_h)


def lake_mask(lakes: Sequence["Lake"], field: ElevationField, sea_level: float) -> np.ndarray:
    """Land cells at or below a lake's water level within reach of its centre."""

    mask = np.zeros((field.height, field.width), dtype=bool)
    data = field.data
    for lake in lakes:
        cr, cc = field.world_to_cell(lake.center[0], lake.center[1])
        reach = math.sqrt(max(lake.area, 0.0))
        rad_c = int(math.ceil(reach / field.cell_w)) + _LAKE_MASK_PADDING
        rad_r = int(math.ceil(reach / field.cell_h)) + _LAKE_MASK_PADDING
        r0, r1 = max(0, cr - rad_r), min(field.height, cr + rad_r + 1)
        c0, c1 = max(0, cc - rad_c), min(field.width, cc + rad_c + 1)
        if r0 >= r1 or c0 >= c1:
            continue
        window = data[r0:r1, c0:c1]
        mask[r0:r1, c0:c1] |= (window <= lake.water_level) & (window > sea_level)
    return mask


def compute_lake_sdf(lakes: Sequence["Lake"], field: ElevationField, sea_level: float) -> np.ndarray:
    """Signed distance to lake water: negative inside, positive outside."""

    mask = lake_mask(lakes, field, sea_level)
    outside = chamfer_distance(mask, field.cell_w, field.cell_h)
    inside = chamfer_distance(~mask, field.cell_w, field.cell_h)
    return np.where(mask, -inside, outside)
