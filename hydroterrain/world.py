"""World context and the staged generation pipeline."""

from __future__ import annotations

from dataclasses import replace
import time
from typing import Any, Sequence

import numpy as np
import structlog

from hydroterrain.carving import compute_river_carving_field
from hydroterrain.coastline import extract_refined_coastline
from hydroterrain.config import STAGES, GeneratorConfig, validate_stage
from hydroterrain.elevation import generate_elevation
from hydroterrain.field import ElevationField
from hydroterrain.hydrology import HydrologyResult, generate_hydrology
from hydroterrain.lakes import Lake
from hydroterrain.metadata import ContinentMetadata, Road, create_continent_metadata
from hydroterrain.rivers import River
from hydroterrain.rng import RngStream
from hydroterrain.sdf import compute_lake_sdf, compute_river_sdf
from hydroterrain.spines import Spines

logger = structlog.get_logger(__name__)

Point = tuple[float, float]


class World:
    """Generated state for one seed plus derived rasters cached until invalidated.

    River and lake edits go through ``replace_rivers``/``replace_lakes`` so the
    SDF and carving caches are rebuilt on next access.
    """

    def __init__(
        self,
        seed: int,
        field: ElevationField,
        spines: Spines | None = None,
        config: GeneratorConfig | None = None,
    ) -> None:
        self.seed = int(seed)
        self.field = field
        self.spines = spines
        self.config = config or GeneratorConfig()
        self.hydrology: HydrologyResult | None = None
        self.coastline: list[list[Point]] = []
        self.metadata: ContinentMetadata | None = None
        self.completed_stages: list[str] = []
        self.stage_seconds: dict[str, float] = {}
        self.dirty = True
        self._river_sdf: np.ndarray | None = None
        self._lake_sdf: np.ndarray | None = None
        self._carving: np.ndarray | None = None

    @property
    def rivers(self) -> tuple[River, ...]:
        return self.hydrology.rivers if self.hydrology is not None else ()

    @property
    def lakes(self) -> tuple[Lake, ...]:
        return self.hydrology.lakes if self.hydrology is not None else ()

    def invalidate(self) -> None:
        self.dirty = True

    def replace_rivers(self, rivers: Sequence[River]) -> None:
        if self.hydrology is None:
            raise ValueError("hydrology stage has not run")
        self.hydrology = replace(self.hydrology, rivers=tuple(rivers))
        self.invalidate()

    def replace_lakes(self, lakes: Sequence[Lake]) -> None:
        if self.hydrology is None:
            raise ValueError("hydrology stage has not run")
        self.hydrology = replace(self.hydrology, lakes=tuple(lakes))
        self.invalidate()

    def _carving_field(self) -> np.ndarray:
        return compute_river_carving_field(
            self.rivers,
            self.field.bounds,
            self.field.cell_w,
            carve_enabled=self.config.hydrology.carve_enabled,
        )

    def adopt_hydrology(self, hydrology: HydrologyResult) -> None:
        """Install a fresh hydrology result, reusing its SDFs as the cached rasters."""

        self.hydrology = hydrology
        self._river_sdf = hydrology.river_sdf
        self._lake_sdf = hydrology.lake_sdf
        self._carving = self._carving_field()
        self.dirty = False

    def _rebuild_caches(self) -> None:
        sea = self.config.sea_level
        self._river_sdf = compute_river_sdf(self.rivers, self.field)
        self._lake_sdf = compute_lake_sdf(self.lakes, self.field, sea)
        self._carving = self._carving_field()
        if self.hydrology is not None:
            self.hydrology = replace(self.hydrology, river_sdf=self._river_sdf, lake_sdf=self._lake_sdf)
        self.dirty = False
        logger.debug("world.cache_rebuilt", rivers=len(self.rivers), lakes=len(self.lakes))

    @property
    def river_sdf(self) -> np.ndarray:
        if self.dirty or self._river_sdf is None:
            self._rebuild_caches()
        assert self._river_sdf is not None
        return self._river_sdf

    @property
    def lake_sdf(self) -> np.ndarray:
        if self.dirty or self._lake_sdf is None:
            self._rebuild_caches()
        assert self._lake_sdf is not None
        return self._lake_sdf

    @property
    def carving(self) -> np.ndarray:
        """Positive carve depth per elevation cell."""

        if self.dirty or self._carving is None:
            self._rebuild_caches()
        assert self._carving is not None
        return self._carving

    def elevation_at(self, x: float, z: float) -> float:
        return self.field.sample_bilinear(x, z)

    def is_land(self, x: float, z: float) -> bool:
        return self.field.sample_nearest(x, z) > self.config.sea_level

    def summary(self) -> dict[str, Any]:
        return {
            "seed": self.seed,
            "width": self.field.width,
            "height": self.field.height,
            "stages": list(self.completed_stages),
            "rivers": len(self.rivers),
            "lakes": len(self.lakes),
            "coastlines": len(self.coastline),
        }


def _timed(world: World, stage: str, start: float) -> None:
    elapsed = time.perf_counter() - start
    world.completed_stages.append(stage)
    world.stage_seconds[stage] = elapsed
    logger.info("world.stage", stage=stage, seconds=round(elapsed, 4))


def generate_world(
    seed: int,
    spines: Spines | None,
    config: GeneratorConfig | None = None,
    up_to_stage: str = "metadata",
    *,
    roads: Sequence[Road] = (),
) -> World:
    """Run stages in order through ``up_to_stage`` and return the populated World."""

    validate_stage(up_to_stage)
    config = (config or GeneratorConfig()).validate()
    last = STAGES.index(up_to_stage)
    rng = RngStream(seed)

    start = time.perf_counter()
    field = generate_elevation(spines, rng, config)
    world = World(seed, field, spines, config)
    _timed(world, "elevation", start)

    if last >= STAGES.index("hydrology"):
        start = time.perf_counter()
        world.adopt_hydrology(generate_hydrology(field, spines, rng, config))
        _timed(world, "hydrology", start)

    if last >= STAGES.index("coastline"):
        start = time.perf_counter()
        world.coastline = extract_refined_coastline(
            field,
            rng.fork("coastline"),
            sea_level=config.sea_level,
            bounds=config.bounds,
            config=config.coastline,
        )
        _timed(world, "coastline", start)

    if last >= STAGES.index("metadata"):
        start = time.perf_counter()
        world.metadata = create_continent_metadata(
            coastline_polylines=world.coastline,
            rivers=world.rivers,
            roads=roads,
            sea_level=config.sea_level,
            bounds=config.bounds,
            influence=config.influence,
        )
        _timed(world, "metadata", start)

    return world
