from __future__ import annotations

import numpy as np
import pytest

from hydroterrain.derive import distance_preview_u8, float_preview_u8, hillshade, land_mask_u8, water_overlay_u8


def _dome(size: int = 32) -> np.ndarray:
    xs = np.linspace(-1.0, 1.0, size)
    gx, gz = np.meshgrid(xs, xs)
    return np.clip(0.8 - np.hypot(gx, gz), 0.0, None)


def test_hillshade_vertical_exaggeration_changes_output() -> None:
    elevation = _dome()

    shade_1x = hillshade(elevation, cell_size=2.0 / 32, vertical_exaggeration=1.0)
    shade_6x = hillshade(elevation, cell_size=2.0 / 32, vertical_exaggeration=6.0)

    assert shade_1x.dtype == np.uint8
    assert not np.array_equal(shade_1x, shade_6x)
    mad = float(np.mean(np.abs(shade_6x.astype(np.float32) - shade_1x.astype(np.float32))))
    assert mad > 1.5


def test_hillshade_flat_ground_is_uniform() -> None:
    shade = hillshade(np.zeros((8, 8)), cell_size=0.1, altitude_deg=45.0)
    assert np.all(shade == shade[0, 0])
    assert int(shade[0, 0]) == round(np.sin(np.deg2rad(45.0)) * 255.0)

    with pytest.raises(ValueError):
        hillshade(np.zeros(8), cell_size=0.1)
    with pytest.raises(ValueError):
        hillshade(np.zeros((8, 8)), cell_size=0.0)


def test_float_preview_handles_non_finite_values() -> None:
    values = np.array([[0.0, 0.5], [1.0, np.inf]])
    preview = float_preview_u8(values, robust_percentiles=(0.0, 100.0))

    assert preview.tolist() == [[0, 128], [255, 255]]
    assert not float_preview_u8(np.full((2, 2), np.nan)).any()


def test_distance_and_water_previews() -> None:
    sdf = np.array([[0.0, 0.05], [0.1, -0.2]])
    assert distance_preview_u8(sdf, max_distance=0.1).tolist() == [[255, 128], [0, 255]]
    with pytest.raises(ValueError):
        distance_preview_u8(sdf, max_distance=0.0)

    shade = np.full((2, 2), 200, dtype=np.uint8)
    lake = np.array([[1.0, 1.0], [1.0, -0.1]])
    overlay = water_overlay_u8(shade, sdf, lake, cell_size=0.02)
    assert overlay.tolist() == [[0, 200], [200, 0]]
    assert shade[0, 0] == 200
    assert land_mask_u8(np.array([[True, False]])).tolist() == [[255, 0]]
