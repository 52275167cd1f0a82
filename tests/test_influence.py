from __future__ import annotations

import numpy as np
import pytest

from hydroterrain.geometry import Bounds
from hydroterrain.influence import (
    SHORELINE_VALUE,
    bake_coastline_influence,
    bake_influence_field,
    build_segment_grid,
    coastline_texel,
    query_min_distance,
    texel_centers,
)
from hydroterrain.polyline_index import IndexedPolyline, create_polyline_index, query_nearby_segments

HORIZONTAL = [(-1.0, 0.0), (1.0, 0.0)]
SQUARE_LOOP = [(-0.5, -0.5), (0.5, -0.5), (0.5, 0.5), (-0.5, 0.5), (-0.5, -0.5)]


def test_segment_grid_min_distance() -> None:
    grid = build_segment_grid([HORIZONTAL], Bounds(), 0.25)

    assert query_min_distance(grid, 0.3, 0.1) == pytest.approx(0.1)
    assert query_min_distance(grid, 0.3, 0.9) == np.inf


def test_influence_field_saturates_on_line_and_fades_out() -> None:
    texture = bake_influence_field([HORIZONTAL], resolution=64, inner_radius=0.05, outer_radius=0.2)

    assert texture.dtype == np.uint8
    assert texture.shape == (64, 64)
    assert texture[31, 10] == 255
    assert texture[32, 10] == 255
    assert texture[0, 10] == 0
    column = texture[32:, 10].astype(int)
    assert np.all(np.diff(column) <= 0)


def test_influence_field_is_full_inside_inner_radius_and_empty_past_outer() -> None:
    texture = bake_influence_field([HORIZONTAL], resolution=200, inner_radius=0.05, outer_radius=0.2)
    _, zs = texel_centers(Bounds(), 200)
    dist = np.abs(zs)

    assert np.all(texture[dist < 0.05] == 255)
    assert np.all(texture[dist >= 0.2] == 0)
    assert texture[(dist > 0.1) & (dist < 0.15)].min() > 0


def test_influence_field_without_polylines_is_zero() -> None:
    assert not bake_influence_field([], resolution=8, inner_radius=0.1, outer_radius=0.2).any()
    assert not bake_influence_field([HORIZONTAL], resolution=8, inner_radius=0.0, outer_radius=0.0).any()


def test_coastline_influence_encodes_signed_distance() -> None:
    texture = bake_coastline_influence([SQUARE_LOOP], resolution=64, beach_width=0.02, transition_width=0.05)

    assert texture[32, 32] == 255
    assert texture[0, 0] == 0
    shore = int(texture[32, 15])
    assert 64 < shore < SHORELINE_VALUE
    assert coastline_texel(SHORELINE_VALUE) == pytest.approx(1.0)
    assert coastline_texel(0) == pytest.approx(0.0)


def test_coastline_influence_is_shoreline_value_on_the_edge() -> None:
    # Texel centres of a 64 texture sit at -1 + (c + 0.5) / 32; columns 16 and 47 lie on these edges.
    edge = 0.484375
    square = [(-edge, -edge), (edge, -edge), (edge, edge), (-edge, edge), (-edge, -edge)]
    texture = bake_coastline_influence([square], resolution=64)

    assert texture[32, 16] == SHORELINE_VALUE
    assert texture[32, 47] == SHORELINE_VALUE
    assert texture[16, 32] == SHORELINE_VALUE
    assert texture[32, 15] < SHORELINE_VALUE < texture[32, 17]


def test_polyline_index_returns_hits_nearest_first() -> None:
    lines = [
        IndexedPolyline("near", ((-1.0, 0.1), (1.0, 0.1)), ({"width": 1.0}, {"width": 3.0})),
        IndexedPolyline("far", ((-1.0, 0.3), (1.0, 0.3))),
    ]
    index = create_polyline_index(lines)

    assert index.cell_size == pytest.approx(0.1)
    hits = query_nearby_segments(index, 0.0, 0.0, 0.5)
    assert [h.segment.polyline_id for h in hits] == ["near", "far"]
    assert hits[0].distance == pytest.approx(0.1)
    assert hits[0].t == pytest.approx(0.5)
    assert hits[0].segment.attr_start == {"width": 1.0}
    assert hits[0].segment.attr_end == {"width": 3.0}
    assert query_nearby_segments(index, 0.0, -0.9, 0.2) == []
