from __future__ import annotations

import math

import numpy as np
import pytest

from hydroterrain.carving import (
    compute_carve_profile,
    compute_river_carving_field,
    get_river_info_at,
    is_in_river,
    sample_river_carving,
)
from hydroterrain.geometry import Bounds
from hydroterrain.rivers import COAST, River, RiverVertex

ROW_Z = 0.0625


def _river(z: float = ROW_Z) -> River:
    return River(
        id="river_0",
        vertices=tuple(
            RiverVertex(x, z, 0.4 - i * 0.1, float(i + 1), 0.02, carve_depth=0.04)
            for i, x in enumerate((-0.5, 0.0, 0.5))
        ),
        termination=COAST,
    )


def test_carve_profile_is_gaussian_within_reach() -> None:
    assert compute_carve_profile(0.0, 0.02, 0.04) == pytest.approx(0.04)
    assert compute_carve_profile(0.02, 0.02, 0.04) == pytest.approx(0.04 * math.exp(-0.75))
    assert compute_carve_profile(0.04, 0.02, 0.04) == 0.0


def test_sample_river_carving_is_non_positive() -> None:
    rivers = [_river()]

    assert sample_river_carving(rivers, 0.0, ROW_Z) == pytest.approx(-0.04)
    assert sample_river_carving(rivers, 0.0, 0.5) == 0.0
    assert sample_river_carving(rivers, 0.0, ROW_Z, carve_enabled=False) == 0.0
    assert sample_river_carving([], 0.0, 0.0) == 0.0


def test_carving_field_matches_point_sampling() -> None:
    rivers = [_river()]
    field = compute_river_carving_field(rivers, Bounds(), 0.125)

    assert field.shape == (16, 16)
    assert field[8, 8] == pytest.approx(0.04)
    assert field[0, 0] == 0.0
    assert field.max() == pytest.approx(0.04)
    x = -1.0 + 4.5 * 0.125
    assert field[8, 4] == pytest.approx(-sample_river_carving(rivers, x, ROW_Z))
    assert not compute_river_carving_field(rivers, Bounds(), 0.125, carve_enabled=False).any()


def test_carving_field_rejects_bad_resolution() -> None:
    with pytest.raises(ValueError):
        compute_river_carving_field([], Bounds(), 0.0)


def test_is_in_river_uses_channel_width() -> None:
    rivers = [_river()]

    assert is_in_river(rivers, 0.1, ROW_Z + 0.01)
    assert not is_in_river(rivers, 0.1, ROW_Z + 0.03)
    assert not is_in_river([], 0.0, 0.0)


def test_river_info_reports_nearest_channel() -> None:
    near = _river()
    far = River("river_1", tuple(RiverVertex(v.x, -0.5, v.elevation, v.flow, v.width) for v in near.vertices), COAST)

    info = get_river_info_at([far, near], 0.25, ROW_Z + 0.03)
    assert info is not None
    assert info.river.id == "river_0"
    assert info.distance == pytest.approx(0.03)
    assert info.width == pytest.approx(0.02)
    assert info.flow == pytest.approx(2.0)
    assert info.carve_depth == pytest.approx(0.04)

    assert get_river_info_at([near], 0.25, ROW_Z + 0.05) is None
    assert get_river_info_at([], 0.0, 0.0) is None


def test_carving_field_takes_deepest_river() -> None:
    shallow = River(
        "shallow",
        tuple(RiverVertex(v.x, v.z, v.elevation, v.flow, v.width, carve_depth=0.01) for v in _river().vertices),
        COAST,
    )
    field = compute_river_carving_field([shallow, _river()], Bounds(), 0.125)
    assert np.isclose(field[8, 8], 0.04)
