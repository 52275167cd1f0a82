from __future__ import annotations

import numpy as np

from hydroterrain.field import ElevationField
from hydroterrain.flowgrid import (
    SINK,
    compute_flow_accumulation,
    compute_flow_directions,
    compute_flow_grid,
    find_high_flow_cells,
    find_sink_cells,
    resolve_flat_areas,
)

EAST = 2


def _east_ramp(height: int = 6, width: int = 8) -> np.ndarray:
    cols = np.arange(width, dtype=np.float64)
    return np.tile((width - 1 - cols) * 0.1, (height, 1))


def test_ramp_drains_east_and_accumulates_whole_rows() -> None:
    field = ElevationField.from_array(_east_ramp())
    grid = compute_flow_grid(field)

    assert np.all(grid.directions[:, :-1] == EAST)
    assert np.all(grid.directions[:, -1] == SINK)
    assert np.all(grid.accumulation[:, 0] == 1.0)
    assert np.all(grid.accumulation[:, -1] == 8.0)
    assert grid.downstream(2, 3) == (2, 4)
    assert grid.downstream(2, 7) is None


def test_sinks_and_high_flow_cells() -> None:
    grid = compute_flow_grid(ElevationField.from_array(_east_ramp()))

    assert find_sink_cells(grid) == [(r, 7) for r in range(6)]
    high = find_high_flow_cells(grid, 8.0, sea_level=-1.0)
    assert sorted((r, c) for r, c, _ in high) == [(r, 7) for r in range(6)]
    assert all(acc == 8.0 for _, _, acc in high)
    assert find_high_flow_cells(grid, 8.0, sea_level=0.5) == []


def test_flat_cell_is_routed_to_draining_neighbour() -> None:
    elev = np.array([[1.0, 0.5, 0.5, 0.0]])
    raw = compute_flow_directions(elev)
    assert raw[0, 1] == SINK
    assert raw[0, 2] == EAST

    resolved = resolve_flat_areas(elev, raw)
    assert resolved[0, 1] == EAST
    assert resolved[0, 3] == SINK
    assert compute_flow_accumulation(resolved)[0, 3] == 4.0


def test_isolated_pit_stays_sink() -> None:
    elev = np.full((5, 5), 1.0)
    elev[2, 2] = 0.0
    dirs = resolve_flat_areas(elev, compute_flow_directions(elev))

    assert dirs[2, 2] == SINK
    accum = compute_flow_accumulation(dirs)
    assert accum[2, 2] == 25.0
