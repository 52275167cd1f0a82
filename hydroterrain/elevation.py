"""Elevation grid synthesis from spines, island falloff and fBm noise."""

from __future__ import annotations

import numpy as np
import structlog

from hydroterrain.config import GeneratorConfig
from hydroterrain.field import ElevationField
from hydroterrain.noise import fbm_noise, unipolar
from hydroterrain.rng import RngStream
from hydroterrain.spines import Spines

logger = structlog.get_logger(__name__)

_TERRACE_SHELVES = (
    (0.15, 0.05, 0.65),
    (0.25, 0.05, 0.50),
    (0.38, 0.04, 0.35),
)


def _smoothstep(edge0: float, edge1: float, x: np.ndarray) -> np.ndarray:
    t = np.clip((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def island_falloff(
    xs: np.ndarray,
    zs: np.ndarray,
    *,
    center: tuple[float, float],
    radius: float,
    start: float = 0.3,
    end: float = 1.15,
) -> tuple[np.ndarray, np.ndarray]:
    """Return (plateau falloff, deep-ocean falloff) on the xs-by-zs lattice."""

    dist = np.hypot(xs[None, :] - center[0], zs[:, None] - center[1])
    nd = dist / radius
    falloff = 1.0 - _smoothstep(start, end, nd)
    deep = np.where(nd > end, np.maximum(0.0, 1.0 - (nd - end) * 2.0), 1.0)
    return falloff, deep


def spine_bias(
    xs: np.ndarray,
    zs: np.ndarray,
    spines: Spines,
    *,
    foothill_elevation: float,
    foothill_radius: float,
) -> np.ndarray:
    """Max over segments of a quartic ridge profile plus wider foothill shoulders."""

    px = np.broadcast_to(xs[None, :], (zs.size, xs.size))
    pz = np.broadcast_to(zs[:, None], (zs.size, xs.size))
    bias = np.zeros((zs.size, xs.size), dtype=np.float64)

    for va, vb in spines.segment_endpoints():
        dx = vb.x - va.x
        dz = vb.z - va.z
        len_sq = dx * dx + dz * dz
        if len_sq == 0.0:
            t = np.zeros_like(bias)
        else:
            t = np.clip(((px - va.x) * dx + (pz - va.z) * dz) / len_sq, 0.0, 1.0)
        dist = np.hypot(px - (va.x + t * dx), pz - (va.z + t * dz))
        seg_elev = va.elevation + (vb.elevation - va.elevation) * t
        seg_infl = va.influence + (vb.influence - va.influence) * t

        u = dist / seg_infl
        ridge = np.where(dist < seg_infl, seg_elev * (1.0 - u * u) ** 2, 0.0)
        np.maximum(bias, ridge, out=bias)

        if foothill_radius > 0:
            f_radius = seg_infl * foothill_radius
            fu = dist / f_radius
            foothill = np.where(dist < f_radius, foothill_elevation * (1.0 - fu * fu) ** 2, 0.0)
            np.maximum(bias, foothill, out=bias)
    return bias


def apply_terraces(elevation: np.ndarray, sea_level: float, strength: float) -> np.ndarray:
    if strength <= 0:
        return elevation
    out = elevation.copy()
    for center, width, shelf_strength in _TERRACE_SHELVES:
        dist = np.abs(out - center)
        hit = (out > sea_level) & (dist < width)
        t = 1.0 - dist / width
        flatness = t * t * shelf_strength * strength
        out = np.where(hit, out + (center - out) * flatness, out)
    return out


def generate_elevation(spines: Spines | None, rng: RngStream, config: GeneratorConfig) -> ElevationField:
    """Generate the island elevation field on the configured grid."""

    cfg = config.elevation
    bounds = config.bounds
    res = config.resolution
    sea = config.sea_level

    elev_stream = rng.fork("elevation")
    terrain = fbm_noise(
        elev_stream.fork("terrain"),
        octaves=cfg.noise_octaves,
        persistence=cfg.noise_persistence,
        lacunarity=cfg.noise_lacunarity,
        frequency=cfg.noise_frequency,
    )

    xs = bounds.min_x + (np.arange(res, dtype=np.float64) + 0.5) * (bounds.span_x / res)
    zs = bounds.min_z + (np.arange(res, dtype=np.float64) + 0.5) * (bounds.span_z / res)

    falloff, deep = island_falloff(
        xs,
        zs,
        center=(cfg.center_x, cfg.center_z),
        radius=cfg.island_radius,
        start=cfg.falloff_start,
        end=cfg.falloff_end,
    )
    bias = spine_bias(
        xs,
        zs,
        spines or Spines(),
        foothill_elevation=sea + cfg.foothill_height,
        foothill_radius=cfg.foothill_radius,
    )
    noise_val = unipolar(terrain.grid(xs, zs)) * cfg.noise_amplitude
    elevation = (bias + noise_val) * falloff * deep

    below = elevation < sea
    if np.any(below):
        ocean = unipolar(terrain.grid(xs * cfg.ocean_noise_scale, zs * cfg.ocean_noise_scale))
        ocean = ocean * cfg.ocean_noise_amplitude * (1.0 - falloff) * 0.5
        elevation = np.where(below, elevation + ocean, elevation)

    elevation = apply_terraces(elevation, sea, cfg.terrace_strength)
    field = ElevationField(res, res, bounds, elevation)

    logger.info(
        "elevation.generated",
        resolution=res,
        min=float(elevation.min()),
        max=float(elevation.max()),
        land_fraction=float((elevation > sea).mean()),
    )
    return field
