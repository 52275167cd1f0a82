"""Derived preview rasters from elevation and hydrology outputs."""

from __future__ import annotations

import numpy as np


def hillshade(
    elevation: np.ndarray,
    *,
    cell_size: float,
    azimuth_deg: float = 315.0,
    altitude_deg: float = 45.0,
    vertical_exaggeration: float = 1.0,
) -> np.ndarray:
    """Compute an 8-bit grayscale hillshade from an elevation grid."""

    if elevation.ndim != 2:
        raise ValueError("elevation must be a 2D array")
    if cell_size <= 0:
        raise ValueError("cell_size must be positive")

    dz_dy, dz_dx = np.gradient(elevation.astype(np.float32), cell_size, cell_size)
    dz_dx = dz_dx * float(vertical_exaggeration)
    dz_dy = dz_dy * float(vertical_exaggeration)

    slope = np.pi / 2.0 - np.arctan(np.hypot(dz_dx, dz_dy))
    aspect = np.arctan2(-dz_dx, dz_dy)
    azimuth = np.deg2rad(azimuth_deg)
    altitude = np.deg2rad(altitude_deg)

    shaded = np.sin(altitude) * np.sin(slope) + np.cos(altitude) * np.cos(slope) * np.cos(azimuth - aspect)
    return np.round(np.clip(shaded, 0.0, 1.0) * 255.0).astype(np.uint8)


def float_preview_u8(values: np.ndarray, *, robust_percentiles: tuple[float, float] = (1.0, 99.0)) -> np.ndarray:
    """Map float values to 8-bit grayscale between two percentiles."""

    finite = np.isfinite(values)
    if not np.any(finite):
        return np.zeros(values.shape, dtype=np.uint8)
    lo, hi = np.percentile(values[finite], robust_percentiles)
    scale = max(hi - lo, 1e-6)
    norm = np.clip((np.where(finite, values, hi) - lo) / scale, 0.0, 1.0)
    return np.round(norm * 255.0).astype(np.uint8)


def land_mask_u8(mask: np.ndarray) -> np.ndarray:
    return np.where(mask, 255, 0).astype(np.uint8)


def distance_preview_u8(sdf: np.ndarray, *, max_distance: float) -> np.ndarray:
    """Bright on the feature, fading to black at ``max_distance``; negative values saturate."""

    if max_distance <= 0:
        raise ValueError("max_distance must be positive")
    norm = 1.0 - np.clip(sdf / max_distance, 0.0, 1.0)
    return np.round(norm * 255.0).astype(np.uint8)


def water_overlay_u8(shade: np.ndarray, river_sdf: np.ndarray, lake_sdf: np.ndarray, *, cell_size: float) -> np.ndarray:
    """Hillshade with river channels and lake interiors painted black."""

    out = shade.copy()
    out[river_sdf <= cell_size * 0.5] = 0
    out[lake_sdf <= 0.0] = 0
    return out
