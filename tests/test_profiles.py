from __future__ import annotations

import pytest

from hydroterrain.profiles import (
    BEACH,
    MUD,
    NO_EFFECT,
    OCEAN,
    PAVED,
    ROCK,
    WATER,
    coastline_profile,
    river_profile,
    road_profile,
)
from hydroterrain.queries import CoastlineQuery, RiverQuery, RoadQuery


def _coast(distance: float, influence: float = 0.8) -> CoastlineQuery:
    return CoastlineQuery(influence, distance, (0.0, 1.0), 0.1)


def _river(distance: float, influence: float = 1.0) -> RiverQuery:
    return RiverQuery(influence, distance, 0.02, (1.0, 0.0), 0.2, None)


def _highway(distance: float, surface: float = 0.4) -> RoadQuery:
    return RoadQuery(1.0, distance, 0.02, "highway", 0.0, surface)


def test_coastline_profile_shelf_beach_and_rock() -> None:
    shelf = coastline_profile(_coast(-0.025), 0.0)
    assert shelf.surface_type == OCEAN
    assert shelf.elevation_delta == pytest.approx(-0.015)
    assert shelf.blend_weight == pytest.approx(0.4)

    beach = coastline_profile(_coast(0.0), 0.0)
    assert beach.surface_type == BEACH
    assert beach.elevation_delta == pytest.approx(-0.005)

    rock = coastline_profile(_coast(0.0), -0.5)
    assert rock.surface_type == ROCK
    assert rock.elevation_delta == 0.0
    assert rock.blend_weight == pytest.approx(0.8)

    assert coastline_profile(_coast(0.05), 0.0) == NO_EFFECT
    assert coastline_profile(_coast(0.0, influence=0.0), 0.0) == NO_EFFECT


def test_beach_depression_stops_at_sea_level() -> None:
    result = coastline_profile(_coast(0.0), 0.0, base_elevation=0.102, sea_level=0.1)
    assert result.elevation_delta == pytest.approx(-0.002)


def test_river_profile_zones() -> None:
    channel = river_profile(_river(0.0), 0.5, sea_level=0.1)
    assert channel.surface_type == WATER
    assert channel.elevation_delta == pytest.approx(-0.3)
    assert channel.blend_weight == pytest.approx(1.0)

    floodplain = river_profile(_river(0.03), 0.5, sea_level=0.1)
    assert floodplain.surface_type == MUD
    assert floodplain.elevation_delta == pytest.approx(-0.3 * 0.4 * 0.84375)

    valley = river_profile(_river(0.1), 0.5, sea_level=0.1)
    assert valley.surface_type is None
    assert -0.3 * 0.15 < valley.elevation_delta < 0.0

    assert river_profile(_river(0.13), 0.5) == NO_EFFECT


def test_river_profile_never_carves_below_water_surface() -> None:
    result = river_profile(_river(0.0), 0.15, sea_level=0.1)
    assert result.elevation_delta == pytest.approx(0.0)
    assert result.surface_type == WATER


def test_road_profile_flattens_bed_and_blends_shoulder() -> None:
    bed = road_profile(_highway(0.0), 0.3)
    assert bed.surface_type == PAVED
    assert bed.elevation_delta == pytest.approx(0.1)

    inner_shoulder = road_profile(_highway(0.012), 0.3)
    assert inner_shoulder.surface_type == PAVED
    outer_shoulder = road_profile(_highway(0.016), 0.3)
    assert outer_shoulder.surface_type is None
    assert outer_shoulder.elevation_delta == pytest.approx(0.1 * (1.0 - 0.648))

    assert road_profile(_highway(0.025), 0.3) == NO_EFFECT
    assert road_profile(RoadQuery(1.0, 0.0, 0.02, None, 0.0, 0.4), 0.3) == NO_EFFECT


def test_road_cut_is_floored_at_sea_level() -> None:
    result = road_profile(_highway(0.0, surface=0.05), 0.105, sea_level=0.1)
    assert result.elevation_delta == pytest.approx(-0.005)


def test_river_profile_zone_multipliers_are_tunable() -> None:
    narrow_floodplain = river_profile(_river(0.03), 0.5, sea_level=0.1, floodplain_multiplier=1.2)
    assert narrow_floodplain.surface_type is None
    assert narrow_floodplain.elevation_delta < 0.0

    assert river_profile(_river(0.03), 0.5, sea_level=0.1, floodplain_multiplier=1.2, valley_multiplier=1.4) == NO_EFFECT
