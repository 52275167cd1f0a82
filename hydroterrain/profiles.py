"""Terrain profile functions turning feature queries into elevation deltas."""

from __future__ import annotations

from dataclasses import dataclass

from hydroterrain.config import DEFAULT_SEA_LEVEL
from hydroterrain.geometry import clamp, lerp, smoothstep
from hydroterrain.queries import CoastlineQuery, RiverQuery, RoadQuery

OCEAN = "ocean"
BEACH = "beach"
ROCK = "rock"
WATER = "water"
MUD = "mud"
PAVED = "paved"
GRAVEL = "gravel"
DIRT = "dirt"
SURFACE_TYPES = (OCEAN, BEACH, ROCK, WATER, MUD, PAVED, GRAVEL, DIRT)

SHELF_WIDTH = 0.05
SHELF_DEPTH = 0.03
BEACH_WIDTH = 0.015
BEACH_DEPRESSION = 0.005
BEACH_NOISE_THRESHOLD = -0.3
ROCK_TRANSITION = 0.005

FLOODPLAIN_MULTIPLIER = 3.0
VALLEY_MULTIPLIER = 6.0

ROAD_SHOULDER_MULTIPLIER = {"highway": 2.0, "road": 1.5, "trail": 1.2, "path": 1.0}
ROAD_SURFACE = {"highway": PAVED, "road": GRAVEL, "trail": DIRT, "path": DIRT}

_MIN_INFLUENCE = 0.01


@dataclass(frozen=True)
class ProfileResult:
    elevation_delta: float
    surface_type: str | None
    blend_weight: float


NO_EFFECT = ProfileResult(0.0, None, 0.0)


def _floor_delta(delta: float, base_elevation: float, floor: float) -> float:
    """Limit a carve so base + delta never drops below floor."""

    if delta >= 0.0:
        return delta
    return max(delta, min(0.0, floor - base_elevation))


def coastline_profile(
    query: CoastlineQuery,
    local_noise: float,
    *,
    base_elevation: float | None = None,
    sea_level: float = DEFAULT_SEA_LEVEL,
) -> ProfileResult:
    """Submarine shelf offshore; beach or rocky shore inland, picked by local noise.

    When ``base_elevation`` is given the beach depression stops at sea level.
    """

    if query.influence < _MIN_INFLUENCE:
        return NO_EFFECT

    dist = query.distance_to_shore
    if dist < 0:
        shelf_t = smoothstep(-SHELF_WIDTH, 0.0, dist)
        return ProfileResult(-SHELF_DEPTH * (1.0 - shelf_t), OCEAN, clamp(query.influence * shelf_t))

    if local_noise > BEACH_NOISE_THRESHOLD:
        beach_t = smoothstep(0.0, BEACH_WIDTH, dist)
        if beach_t >= 1.0:
            return NO_EFFECT
        falloff = 1.0 - beach_t
        delta = -BEACH_DEPRESSION * falloff
        if base_elevation is not None:
            delta = _floor_delta(delta, base_elevation, sea_level)
        return ProfileResult(delta, BEACH, clamp(query.influence * falloff))

    rock_t = smoothstep(0.0, ROCK_TRANSITION, dist)
    if rock_t >= 1.0:
        return NO_EFFECT
    return ProfileResult(0.0, ROCK, clamp(query.influence * (1.0 - rock_t)))


def river_profile(
    query: RiverQuery,
    base_elevation: float,
    *,
    sea_level: float = DEFAULT_SEA_LEVEL,
    floodplain_multiplier: float = FLOODPLAIN_MULTIPLIER,
    valley_multiplier: float = VALLEY_MULTIPLIER,
) -> ProfileResult:
    """Channel, floodplain and valley-wall zones around the river centreline.

    Wide rivers get U-shaped beds, narrow ones V-shaped. Nothing is carved
    below the water surface or sea level.
    """

    width = query.width
    if query.influence < _MIN_INFLUENCE or width <= 0:
        return NO_EFFECT

    dist = query.distance_to_center
    floodplain = width * floodplain_multiplier
    valley = width * valley_multiplier
    if dist >= valley:
        return NO_EFFECT

    max_carve = max(0.0, base_elevation - max(query.elevation, sea_level))

    if dist < width:
        t = dist / width
        flatness = smoothstep(0.003, 0.015, width)
        v_shape = 1.0 - t * t
        s = smoothstep(0.0, 1.0, t)
        u_shape = 1.0 - s * s
        profile = lerp(v_shape, u_shape, flatness)
        return ProfileResult(-max_carve * profile, WATER, clamp(query.influence * profile))

    if dist < floodplain:
        t = (dist - width) / (floodplain - width)
        falloff = 1.0 - smoothstep(0.0, 1.0, t)
        return ProfileResult(-max_carve * 0.4 * falloff, MUD, clamp(query.influence * falloff))

    t = (dist - floodplain) / (valley - floodplain)
    falloff = 1.0 - smoothstep(0.0, 1.0, t)
    return ProfileResult(-max_carve * 0.15 * falloff, None, clamp(query.influence * falloff * 0.5))


def road_profile(
    query: RoadQuery,
    base_elevation: float,
    *,
    sea_level: float = DEFAULT_SEA_LEVEL,
) -> ProfileResult:
    """Flattened, slightly crowned road bed blending out across the shoulder."""

    if query.influence < _MIN_INFLUENCE or not query.road_type or query.width <= 0:
        return NO_EFFECT

    half = query.width * 0.5
    shoulder = half * ROAD_SHOULDER_MULTIPLIER.get(query.road_type, 1.5)
    surface = ROAD_SURFACE.get(query.road_type, DIRT)
    target = query.surface_elevation - base_elevation
    dist = query.distance_to_center
    if dist >= shoulder:
        return NO_EFFECT

    if dist < half:
        t = dist / half
        delta = _floor_delta(target * (1.0 - t * t * 0.1), base_elevation, sea_level)
        return ProfileResult(delta, surface, clamp(query.influence))

    t = (dist - half) / (shoulder - half)
    falloff = 1.0 - smoothstep(0.0, 1.0, t)
    delta = _floor_delta(target * falloff, base_elevation, sea_level)
    return ProfileResult(delta, surface if t < 0.5 else None, clamp(query.influence * falloff))
