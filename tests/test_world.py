from __future__ import annotations

from dataclasses import replace
import hashlib

import numpy as np
import pytest

from hydroterrain import GeneratorConfig, World, generate_world
from hydroterrain.config import InfluenceConfig
from hydroterrain.sdf import FAR_DISTANCE
from hydroterrain.spines import straight_ridge

SPINES = straight_ridge((-0.35, -0.1), (0.35, 0.15), elevations=(0.7, 0.85, 0.6))
CONFIG = GeneratorConfig(resolution=64, influence=InfluenceConfig(texture_resolution=64))


def _hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def test_generate_world_stops_at_requested_stage() -> None:
    world = generate_world(7, SPINES, CONFIG, up_to_stage="elevation")

    assert isinstance(world, World)
    assert world.completed_stages == ["elevation"]
    assert world.hydrology is None
    assert world.rivers == ()
    assert world.metadata is None
    assert world.field.data.shape == (64, 64)
    with pytest.raises(ValueError):
        world.replace_rivers([])


def test_generate_world_rejects_unknown_stage() -> None:
    with pytest.raises(ValueError, match="Unknown stage"):
        generate_world(7, SPINES, CONFIG, up_to_stage="roads")


def test_full_pipeline_populates_every_stage() -> None:
    world = generate_world(7, SPINES, CONFIG)

    assert world.completed_stages == ["elevation", "hydrology", "coastline", "metadata"]
    assert set(world.stage_seconds) == set(world.completed_stages)
    assert world.hydrology is not None
    assert world.metadata is not None
    assert world.metadata.coastline_influence.shape == (64, 64)
    assert world.river_sdf.shape == (64, 64)
    assert world.carving.shape == (64, 64)
    assert not world.dirty
    summary = world.summary()
    assert summary["stages"] == world.completed_stages
    assert summary["rivers"] == len(world.rivers)


def test_hydrology_stage_reuses_its_sdfs_as_cached_rasters() -> None:
    world = generate_world(7, SPINES, CONFIG, up_to_stage="hydrology")

    assert world.hydrology is not None
    assert not world.dirty
    assert world.river_sdf is world.hydrology.river_sdf
    assert world.lake_sdf is world.hydrology.lake_sdf
    assert world.carving.shape == (64, 64)


def test_replacing_rivers_invalidates_cached_rasters() -> None:
    world = generate_world(7, SPINES, CONFIG, up_to_stage="hydrology")
    _ = world.river_sdf

    world.replace_rivers([])
    assert world.dirty
    assert np.all(world.river_sdf == FAR_DISTANCE)
    assert not world.carving.any()
    assert not world.dirty
    assert world.hydrology is not None
    assert np.all(world.hydrology.river_sdf == FAR_DISTANCE)

    world.replace_lakes([])
    assert np.all(world.lake_sdf == FAR_DISTANCE)


def test_world_is_deterministic_per_seed() -> None:
    a = generate_world(11, SPINES, CONFIG, up_to_stage="hydrology")
    b = generate_world(11, SPINES, CONFIG, up_to_stage="hydrology")
    c = generate_world(12, SPINES, CONFIG, up_to_stage="elevation")

    assert _hash_bytes(a.field.data.tobytes()) == _hash_bytes(b.field.data.tobytes())
    assert _hash_bytes(a.river_sdf.tobytes()) == _hash_bytes(b.river_sdf.tobytes())
    assert [r.id for r in a.rivers] == [r.id for r in b.rivers]
    assert _hash_bytes(a.field.data.tobytes()) != _hash_bytes(c.field.data.tobytes())


def test_world_point_queries() -> None:
    world = generate_world(7, SPINES, replace(CONFIG, sea_level=-1.0), up_to_stage="elevation")

    assert world.is_land(0.0, 0.0)
    assert world.elevation_at(0.0, 0.0) == pytest.approx(world.field.sample_bilinear(0.0, 0.0))
