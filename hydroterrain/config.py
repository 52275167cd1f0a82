"""Configuration models for island hydrology generation."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from hydroterrain.geometry import Bounds


DEFAULT_RESOLUTION = 512
DEFAULT_SEA_LEVEL = 0.1

STAGES = ("elevation", "hydrology", "coastline", "metadata")
FLOW_MODES = ("descent", "d8")


@dataclass(frozen=True)
class ElevationConfig:
    """Controls island falloff, spine relief and terrain noise."""

    center_x: float = 0.0
    center_z: float = 0.0
    island_radius: float = 0.75
    falloff_start: float = 0.3
    falloff_end: float = 1.15
    noise_octaves: int = 2
    noise_persistence: float = 0.45
    noise_lacunarity: float = 2.0
    noise_frequency: float = 4.75
    noise_amplitude: float = 0.20
    ocean_noise_scale: float = 0.5
    ocean_noise_amplitude: float = 0.06
    foothill_radius: float = 2.5
    foothill_height: float = 0.0
    terrace_strength: float = 0.0


@dataclass(frozen=True)
class HydrologyConfig:
    """Controls river sources, tracing, depressions, lakes and river shaping."""

    flow_mode: str = "descent"
    base_river_width: float = 0.006
    meander_amplitude: float = 0.006
    meander_frequency: float = 15.0
    meander_start_step: int = 3
    min_lake_cells: int = 20
    min_lake_depth: float = 0.005
    max_fill_cells: int = 5000
    max_steps: int = 8000
    source_min_elevation: float = 0.18
    source_offsets: tuple[int, ...] = (6, 12, 18)
    source_max_drop_ratio: float = 0.9
    source_top_candidates: int = 4
    source_min_spacing: int = 25
    midpoint_offsets: tuple[int, ...] = (12, 20)
    min_segment_length: float = 0.01
    width_growth_steps: float = 300.0
    simplify_cells: float = 0.6
    monotonic_ramp_start: float = 0.7
    lake_contour_cells: float = 2.0
    lake_padding_cells: int = 5
    # D8 accumulation and carving
    river_threshold: float = 50.0
    carve_enabled: bool = True
    carve_factor: float = 0.02
    # Width variation along the channel
    width_noise_frequency: float = 25.0
    width_noise_amplitude: float = 0.2
    meander_erosion_strength: float = 0.3
    meander_widening_strength: float = 0.15
    # Explicit lake placement
    explicit_lakes: bool = True
    max_placed_lakes: int = 6
    lake_candidates: int = 80
    lake_margin_cells: int = 40
    lake_min_elevation_above_sea: float = 0.05
    lake_max_elevation: float = 0.38
    lake_flatness_radius: int = 5
    lake_max_variance: float = 0.001
    lake_min_spine_distance: float = 0.06
    lake_min_spacing: float = 0.08
    lake_boundary_points: int = 36
    dedupe_lakes: bool = True


@dataclass(frozen=True)
class InfluenceConfig:
    """Controls baked influence textures used by the query layer."""

    texture_resolution: int = 512
    beach_width: float = 0.02
    transition_width: float = 0.05
    river_outer_multiplier: float = 6.0
    road_outer_multiplier: float = 3.0
    query_threshold: int = 2


@dataclass(frozen=True)
class CoastlineConfig:
    """Controls coastline extraction and cleanup."""

    sample_resolution: float = 0.015
    simplify_epsilon: float = 0.003
    displace: bool = False
    displacement_amplitude: float = 0.01
    displacement_frequency: float = 20.0
    displacement_octaves: int = 2
    min_island_area: float = 0.0
    min_island_vertices: int = 0


@dataclass(frozen=True)
class RenderConfig:
    """Derived raster rendering configuration."""

    hillshade_azimuth_deg: float = 315.0
    hillshade_altitude_deg: float = 45.0
    hillshade_vertical_exaggeration: float = 6.0


@dataclass(frozen=True)
class GeneratorConfig:
    """Primary generation configuration."""

    resolution: int = DEFAULT_RESOLUTION
    sea_level: float = DEFAULT_SEA_LEVEL
    bounds: Bounds = field(default_factory=Bounds)
    elevation: ElevationConfig = field(default_factory=ElevationConfig)
    hydrology: HydrologyConfig = field(default_factory=HydrologyConfig)
    influence: InfluenceConfig = field(default_factory=InfluenceConfig)
    coastline: CoastlineConfig = field(default_factory=CoastlineConfig)
    render: RenderConfig = field(default_factory=RenderConfig)

    def validate(self) -> "GeneratorConfig":
        """Raise ValueError on the first invalid setting; return self otherwise."""

        if self.resolution < 2:
            raise ValueError(f"resolution must be >= 2, got {self.resolution}")
        self.bounds.validate()
        if self.elevation.island_radius <= 0:
            raise ValueError("elevation.island_radius must be positive")
        if self.elevation.noise_octaves < 1:
            raise ValueError("elevation.noise_octaves must be >= 1")

        hydro = self.hydrology
        if hydro.flow_mode not in FLOW_MODES:
            raise ValueError(f"hydrology.flow_mode must be one of {FLOW_MODES}, got {hydro.flow_mode!r}")
        for name in ("base_river_width", "max_fill_cells", "max_steps", "river_threshold", "width_growth_steps"):
            if getattr(hydro, name) <= 0:
                raise ValueError(f"hydrology.{name} must be positive")
        if not hydro.source_offsets or any(o <= 0 for o in hydro.source_offsets):
            raise ValueError("hydrology.source_offsets must be positive cell counts")
        if not 0.0 < hydro.monotonic_ramp_start < 1.0:
            raise ValueError("hydrology.monotonic_ramp_start must lie in (0, 1)")
        if hydro.lake_boundary_points < 3:
            raise ValueError("hydrology.lake_boundary_points must be >= 3")

        if self.influence.texture_resolution <= 0:
            raise ValueError("influence.texture_resolution must be positive")
        if self.influence.beach_width < 0 or self.influence.transition_width < 0:
            raise ValueError("influence beach and transition widths must be non-negative")
        if self.coastline.sample_resolution <= 0:
            raise ValueError("coastline.sample_resolution must be positive")
        return self

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def validate_stage(stage: str) -> str:
    if stage not in STAGES:
        raise ValueError(f"Unknown stage {stage!r}; expected one of {', '.join(STAGES)}")
    return stage
