from __future__ import annotations

import math

import numpy as np
import pytest

from hydroterrain.contour import (
    connect_segments,
    extract_contours,
    extract_contours_from_grid,
    is_closed_loop,
    simplify_polyline,
)
from hydroterrain.geometry import Bounds


def _cone(x: float, z: float) -> float:
    return 1.0 - math.hypot(x, z)


def test_circle_contour_is_one_closed_loop_on_the_radius() -> None:
    polylines = extract_contours(_cone, 0.5, Bounds(), 0.05)

    assert len(polylines) == 1
    loop = polylines[0]
    assert is_closed_loop(loop)
    radii = [math.hypot(x, z) for x, z in loop]
    assert max(abs(r - 0.5) for r in radii) < 0.01


def test_single_cell_vertical_edge() -> None:
    grid = np.array([[0.0, 1.0], [0.0, 1.0]])
    polylines = extract_contours_from_grid(grid, 0.5, 0.0, 0.0, 1.0)

    assert len(polylines) == 1
    assert sorted(polylines[0]) == [(0.5, 0.0), (0.5, 1.0)]


def test_uniform_grid_has_no_contours() -> None:
    assert extract_contours_from_grid(np.ones((4, 4)), 0.5, 0.0, 0.0, 1.0) == []
    assert extract_contours_from_grid(np.ones((1, 4)), 0.5, 0.0, 0.0, 1.0) == []


def test_connect_segments_chains_in_order() -> None:
    segments = [((1.0, 0.0), (2.0, 0.0)), ((0.0, 0.0), (1.0, 0.0)), ((2.0, 0.0), (3.0, 0.0))]
    chains = connect_segments(segments)

    assert len(chains) == 1
    xs = [p[0] for p in chains[0]]
    assert xs in ([0.0, 1.0, 2.0, 3.0], [3.0, 2.0, 1.0, 0.0])


def test_simplify_drops_collinear_points_and_keeps_endpoints() -> None:
    line = [(float(i), 0.0) for i in range(10)]
    assert simplify_polyline(line, 0.01) == [(0.0, 0.0), (9.0, 0.0)]

    bent = [(0.0, 0.0), (1.0, 0.0), (2.0, 1.0), (3.0, 0.0), (4.0, 0.0)]
    simplified = simplify_polyline(bent, 0.1)
    assert simplified[0] == bent[0]
    assert simplified[-1] == bent[-1]
    assert (2.0, 1.0) in simplified


def test_is_closed_loop_tolerance() -> None:
    assert is_closed_loop([(0.0, 0.0), (1.0, 0.0), (0.0, 1.0), (0.0005, 0.0)])
    assert not is_closed_loop([(0.0, 0.0), (1.0, 0.0), (0.0, 1.0)])
    assert not is_closed_loop([(0.0, 0.0), (0.0, 0.0)])


@pytest.mark.parametrize("threshold", [0.25, 0.75])
def test_contour_points_lie_on_threshold(threshold: float) -> None:
    def ramp(x: float, z: float) -> float:
        return (x + 1.0) / 2.0

    polylines = extract_contours(ramp, threshold, Bounds(), 0.1)
    assert polylines
    for polyline in polylines:
        for x, _ in polyline:
            assert ramp(x, 0.0) == pytest.approx(threshold, abs=1e-9)


@pytest.mark.parametrize(
    ("grid", "expected"),
    [
        ([[1.0, 0.0], [0.0, 1.0]], [[(0.0, 0.5), (0.5, 0.0)], [(0.5, 1.0), (1.0, 0.5)]]),
        ([[0.0, 1.0], [1.0, 0.0]], [[(0.0, 0.5), (0.5, 1.0)], [(0.5, 0.0), (1.0, 0.5)]]),
    ],
)
def test_saddle_cells_emit_two_separate_chains(grid: list[list[float]], expected: list[list[tuple[float, float]]]) -> None:
    polylines = extract_contours_from_grid(np.array(grid), 0.5, 0.0, 0.0, 1.0)

    assert len(polylines) == 2
    assert sorted(sorted(chain) for chain in polylines) == expected


def test_connect_segments_uses_every_segment_once() -> None:
    square = [
        ((0.0, 0.0), (1.0, 0.0)),
        ((1.0, 1.0), (1.0, 0.0)),
        ((1.0, 1.0), (0.0, 1.0)),
        ((0.0, 1.0), (0.0, 0.0)),
    ]
    branch = [((5.0, 0.0), (6.0, 0.0)), ((6.0, 0.0), (7.0, 0.0)), ((6.0, 0.0), (6.0, 1.0))]

    loops = connect_segments(square)
    assert len(loops) == 1
    assert len(loops[0]) == 5
    assert loops[0][0] == loops[0][-1]

    chains = connect_segments(branch)
    assert sum(len(chain) - 1 for chain in chains) == len(branch)


def test_contour_segments_are_all_chained() -> None:
    rng = np.random.default_rng(11)
    grid = rng.random((12, 12))
    polylines = extract_contours_from_grid(grid, 0.5, 0.0, 0.0, 1.0)

    above = grid >= 0.5
    corners = above[:-1, :-1] + above[:-1, 1:] * 2 + above[1:, 1:] * 4 + above[1:, :-1] * 8
    expected = int(np.isin(corners, (5, 10)).sum()) + int(((corners != 0) & (corners != 15)).sum())
    assert sum(len(chain) - 1 for chain in polylines) == expected


def test_simplify_is_idempotent() -> None:
    rng = np.random.default_rng(5)
    for _ in range(50):
        walk = np.cumsum(rng.normal(size=(40, 2)), axis=0)
        line = [(float(x), float(z)) for x, z in walk]
        once = simplify_polyline(line, 0.75)
        assert simplify_polyline(once, 0.75) == once
