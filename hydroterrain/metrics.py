"""Land connectivity and hydrology summary metrics."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

import numpy as np
from scipy import ndimage

from hydroterrain.hydrology import HydrologyResult
from hydroterrain.rivers import BASIN, COAST, EDGE

_EIGHT_CONNECTED = np.ones((3, 3), dtype=bool)


@dataclass(frozen=True)
class LandMetrics:
    """Connected component and coverage summary for a boolean land mask."""

    island_count: int
    largest_island_area: int
    total_land_cells: int
    largest_land_ratio: float
    land_fraction: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HydrologyMetrics:
    source_count: int
    river_count: int
    coast_rivers: int
    basin_rivers: int
    edge_rivers: int
    lake_count: int
    endorheic_lakes: int
    total_river_length: float
    max_river_width: float
    depression_count: int
    max_depression_cells: int
    max_depression_depth: float
    river_cell_fraction: float
    lake_cell_fraction: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def land_metrics(mask: np.ndarray, *, connectivity: int = 8) -> LandMetrics:
    """Label land components with scipy and summarize their sizes."""

    if mask.ndim != 2:
        raise ValueError("mask must be 2D")
    if connectivity not in (4, 8):
        raise ValueError("connectivity must be 4 or 8")

    mask_bool = mask.astype(bool, copy=False)
    total_land = int(mask_bool.sum())
    if total_land == 0:
        return LandMetrics(0, 0, 0, 0.0, 0.0)

    structure = _EIGHT_CONNECTED if connectivity == 8 else None
    labels, count = ndimage.label(mask_bool, structure=structure)
    sizes = np.bincount(labels.ravel())[1:]
    largest = int(sizes.max())
    return LandMetrics(
        island_count=int(count),
        largest_island_area=largest,
        total_land_cells=total_land,
        largest_land_ratio=float(largest / total_land),
        land_fraction=float(total_land / mask_bool.size),
    )


def hydrology_metrics(result: HydrologyResult, *, cell_size: float) -> HydrologyMetrics:
    rivers = result.rivers
    stats = result.depression_stats
    cells = max(result.width * result.height, 1)
    return HydrologyMetrics(
        source_count=result.source_count,
        river_count=len(rivers),
        coast_rivers=sum(1 for r in rivers if r.termination == COAST),
        basin_rivers=sum(1 for r in rivers if r.termination == BASIN),
        edge_rivers=sum(1 for r in rivers if r.termination == EDGE),
        lake_count=len(result.lakes),
        endorheic_lakes=sum(1 for lake in result.lakes if lake.endorheic),
        total_river_length=float(sum(r.length() for r in rivers)),
        max_river_width=float(max((r.max_width for r in rivers), default=0.0)),
        depression_count=stats.count,
        max_depression_cells=stats.max_cells,
        max_depression_depth=float(stats.max_depth),
        river_cell_fraction=float(np.count_nonzero(result.river_sdf <= cell_size * 0.5) / cells),
        lake_cell_fraction=float(np.count_nonzero(result.lake_sdf <= 0.0) / cells),
    )
