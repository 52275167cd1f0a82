"""River tracing by gradient descent with priority-flood depression hopping."""

from __future__ import annotations

from dataclasses import dataclass, replace
import heapq
import math
from typing import Callable

import numpy as np
import structlog

from hydroterrain.config import GeneratorConfig, HydrologyConfig
from hydroterrain.field import ElevationField
from hydroterrain.flowgrid import D8_OFFSETS, FlowGrid, compute_flow_grid
from hydroterrain.lakes import (
    Lake,
    build_lake,
    dedupe_placed_lakes,
    link_terminal_lakes,
    merge_duplicate_lakes,
    place_explicit_lakes,
)
from hydroterrain.noise import simplex_noise
from hydroterrain.rivers import (
    BASIN,
    COAST,
    EDGE,
    River,
    RiverVertex,
    apply_carve_depths,
    apply_width_noise,
    compute_river_curvatures,
    enforce_monotonic,
    merge_river_confluences,
    simplify_river_path,
)
from hydroterrain.rng import RngStream
from hydroterrain.sdf import compute_lake_sdf, compute_river_sdf
from hydroterrain.spines import Spines

logger = structlog.get_logger(__name__)

_MEANDER_Z_OFFSET = 97.0


@dataclass(frozen=True)
class SpillResult:
    spill_row: int
    spill_col: int
    bowl_elevation: float
    water_level: float
    filled_count: int
    filled_cells: np.ndarray

    @property
    def depth(self) -> float:
        return self.water_level - self.bowl_elevation


@dataclass(frozen=True)
class DepressionStats:
    count: int = 0
    max_cells: int = 0
    max_depth: float = 0.0

    def record(self, spill: SpillResult) -> "DepressionStats":
        return DepressionStats(
            count=self.count + 1,
            max_cells=max(self.max_cells, spill.filled_count),
            max_depth=max(self.max_depth, spill.depth),
        )

    def merge(self, other: "DepressionStats") -> "DepressionStats":
        return DepressionStats(
            count=self.count + other.count,
            max_cells=max(self.max_cells, other.max_cells),
            max_depth=max(self.max_depth, other.max_depth),
        )


@dataclass(frozen=True)
class RiverSource:
    row: int
    col: int
    elevation: float


@dataclass(frozen=True)
class TraceResult:
    river: River | None
    lakes: tuple[Lake, ...]
    stats: DepressionStats
    steps: int


@dataclass(frozen=True)
class HydrologyResult:
    rivers: tuple[River, ...]
    lakes: tuple[Lake, ...]
    river_sdf: np.ndarray
    lake_sdf: np.ndarray
    width: int
    height: int
    source_count: int
    depression_stats: DepressionStats
    flow_grid: FlowGrid | None = None


def find_spill_point(
    data: np.ndarray,
    bowl_row: int,
    bowl_col: int,
    sea_level: float,
    visited: np.ndarray,
    *,
    max_fill_cells: int = 5000,
) -> SpillResult | None:
    """Priority-flood a depression outward until water finds a lower escape.

    ``visited`` is a flat boolean mask of cells already claimed by the
    current trace; they are never flooded or used as an escape.
    """

    h, w = data.shape
    elev_flat = data.ravel()
    bowl_idx = bowl_row * w + bowl_col
    bowl_elev = float(elev_flat[bowl_idx])

    filled = {bowl_idx}
    order = [bowl_idx]
    boundary: set[int] = set()
    heap: list[tuple[float, int]] = []
    for dr, dc in D8_OFFSETS:
        nr = bowl_row + dr
        nc = bowl_col + dc
        if nr < 0 or nr >= h or nc < 0 or nc >= w:
            continue
        ni = nr * w + nc
        if not visited[ni]:
            heapq.heappush(heap, (float(elev_flat[ni]), ni))
            boundary.add(ni)

    water = bowl_elev
    spill = -1
    while heap and len(filled) < max_fill_cells:
        cell_elev, idx = heapq.heappop(heap)
        if cell_elev <= sea_level:
            spill = idx
            break

        filled.add(idx)
        order.append(idx)
        water = max(water, cell_elev)

        r, c = divmod(idx, w)
        for dr, dc in D8_OFFSETS:
            nr = r + dr
            nc = c + dc
            if nr < 0 or nr >= h or nc < 0 or nc >= w:
                continue
            ni = nr * w + nc
            if ni in filled or ni in boundary or visited[ni]:
                continue
            ne = float(elev_flat[ni])
            if ne < water:
                spill = ni
                break
            heapq.heappush(heap, (ne, ni))
            boundary.add(ni)
        if spill >= 0:
            break

    if spill < 0:
        if len(filled) >= max_fill_cells:
            logger.debug("hydrology.spill_exhausted", row=bowl_row, col=bowl_col, filled=len(filled))
        return None

    spill_row, spill_col = divmod(spill, w)
    return SpillResult(
        spill_row=int(spill_row),
        spill_col=int(spill_col),
        bowl_elevation=bowl_elev,
        water_level=float(water),
        filled_count=len(filled),
        filled_cells=np.asarray(order, dtype=np.int64),
    )


def pick_spine_sources(
    field: ElevationField,
    spines: Spines | None,
    sea_level: float,
    rng: np.random.Generator,
    config: HydrologyConfig,
) -> list[RiverSource]:
    """Sources offset downhill from high spine vertices and beside segment midpoints."""

    if spines is None or not spines.vertices:
        return []

    data = field.data
    w, h = field.width, field.height
    min_spacing_sq = config.source_min_spacing * config.source_min_spacing
    sources: list[RiverSource] = []

    def interior(row: int, col: int) -> bool:
        return 1 <= col < w - 1 and 1 <= row < h - 1

    def try_add(row: int, col: int) -> None:
        if not interior(row, col):
            return
        elev = float(data[row, col])
        if elev <= sea_level:
            return
        for s in sources:
            if (row - s.row) ** 2 + (col - s.col) ** 2 < min_spacing_sq:
                return
        sources.append(RiverSource(row, col, elev))

    for v in spines.vertices:
        if v.elevation < config.source_min_elevation:
            continue
        vr, vc = field.world_to_cell(v.x, v.z)
        candidates: list[tuple[float, int, int]] = []
        for off in config.source_offsets:
            for dr, dc in D8_OFFSETS:
                orow = vr + dr * off
                ocol = vc + dc * off
                if not interior(orow, ocol):
                    continue
                elev = float(data[orow, ocol])
                if sea_level < elev < v.elevation * config.source_max_drop_ratio:
                    candidates.append((v.elevation - elev, orow, ocol))
        if not candidates:
            continue
        candidates.sort(key=lambda cand: cand[0], reverse=True)
        pick = candidates[int(math.floor(rng.random() * min(len(candidates), config.source_top_candidates)))]
        try_add(pick[1], pick[2])

    for va, vb in spines.segment_endpoints():
        if (va.elevation + vb.elevation) / 2.0 < config.source_min_elevation:
            continue
        dx = vb.x - va.x
        dz = vb.z - va.z
        length = math.hypot(dx, dz)
        if length < config.min_segment_length:
            continue
        px = -dz / length
        pz = dx / length
        mx = (va.x + vb.x) / 2.0
        mz = (va.z + vb.z) / 2.0
        sides = (1, -1) if rng.random() < 0.5 else (-1, 1)
        for side in sides:
            for dist in config.midpoint_offsets:
                row, col = field.world_to_cell(
                    mx + px * side * field.cell_w * dist,
                    mz + pz * side * field.cell_h * dist,
                )
                try_add(row, col)

    return sources


def _river_width(step: int, config: HydrologyConfig) -> float:
    t = min(step / config.width_growth_steps, 1.0)
    return config.base_river_width * (0.3 + math.sqrt(t) * 1.7)


def _flow_widths(vertices: list[RiverVertex], config: HydrologyConfig) -> list[RiverVertex]:
    out = []
    running = 0.0
    for v in vertices:
        running = max(running, config.base_river_width * math.sqrt(v.flow / config.river_threshold))
        out.append(replace(v, width=running))
    return out


def trace_river(
    field: ElevationField,
    source_row: int,
    source_col: int,
    sea_level: float,
    meander: Callable[[float, float], float],
    river_id: str,
    config: HydrologyConfig,
    *,
    width_noise: Callable[[float, float], float] | None = None,
    flow_grid: FlowGrid | None = None,
) -> TraceResult:
    """Follow steepest descent from a source, hopping depressions via spill points."""

    data = field.data
    w, h = field.width, field.height
    visited = np.zeros(w * h, dtype=bool)
    raw: list[RiverVertex] = []
    lakes: list[Lake] = []
    stats = DepressionStats()
    termination = EDGE
    row, col = source_row, source_col
    freq = config.meander_frequency
    amp = config.meander_amplitude

    step = 0
    while step < config.max_steps:
        if not field.in_grid(row, col):
            termination = EDGE
            break
        idx = row * w + col
        if visited[idx]:
            break
        visited[idx] = True
        elev = float(data[row, col])

        wx, wz = field.cell_center(row, col)
        mx, mz = wx, wz
        if step > config.meander_start_step:
            mx += meander(wx * freq, wz * freq) * amp
            mz += meander(wx * freq + _MEANDER_Z_OFFSET, wz * freq + _MEANDER_Z_OFFSET) * amp

        flow = float(flow_grid.accumulation[row, col]) if flow_grid is not None else float(step)
        raw.append(RiverVertex(mx, mz, elev, flow, _river_width(step, config)))

        if elev <= sea_level:
            termination = COAST
            break

        best_elev = elev
        best = None
        for dr, dc in D8_OFFSETS:
            nr = row + dr
            nc = col + dc
            if nr < 0 or nr >= h or nc < 0 or nc >= w or visited[nr * w + nc]:
                continue
            ne = float(data[nr, nc])
            if ne < best_elev:
                best_elev = ne
                best = (nr, nc)
        if best is not None:
            row, col = best
            step += 1
            continue

        spill = find_spill_point(data, row, col, sea_level, visited, max_fill_cells=config.max_fill_cells)
        if spill is None:
            termination = BASIN
            break

        visited[spill.filled_cells] = True
        stats = stats.record(spill)
        if spill.filled_count >= config.min_lake_cells and spill.depth >= config.min_lake_depth:
            lake = build_lake(field, spill, config)
            lakes.append(replace(lake, inflow_river_ids=(river_id,), outflow_river_id=river_id))

        row, col = spill.spill_row, spill.spill_col
        step += 1
    else:
        logger.debug("hydrology.trace_exhausted", river_id=river_id, steps=step)

    if len(raw) < 3:
        return TraceResult(None, tuple(lakes), stats, step)

    vertices = enforce_monotonic(raw, sea_level, ramp_start=config.monotonic_ramp_start)
    vertices = simplify_river_path(vertices, field.cell_w * config.simplify_cells)
    vertices = compute_river_curvatures(vertices)
    if flow_grid is not None:
        vertices = _flow_widths(vertices, config)
    vertices = apply_carve_depths(vertices, config, sea_level)
    if width_noise is not None:
        vertices = apply_width_noise(vertices, width_noise, config)

    river = River(id=river_id, vertices=tuple(vertices), termination=termination)
    return TraceResult(river, tuple(lakes), stats, step)


def generate_hydrology(
    field: ElevationField,
    spines: Spines | None,
    rng: RngStream,
    config: GeneratorConfig,
) -> HydrologyResult:
    """Trace rivers from spine sources, collect lakes and bake river/lake SDFs."""

    cfg = config.hydrology
    sea = config.sea_level
    hydro = rng.fork("hydrology")
    meander = simplex_noise(hydro.fork("meander"))
    width_noise = simplex_noise(hydro.fork("width"))
    flow_grid = compute_flow_grid(field) if cfg.flow_mode == "d8" else None

    sources = pick_spine_sources(field, spines, sea, hydro.fork("sources").generator(), cfg)
    logger.info("hydrology.sources", count=len(sources), flow_mode=cfg.flow_mode)

    rivers: list[River] = []
    river_lakes: list[Lake] = []
    stats = DepressionStats()
    for i, source in enumerate(sources):
        result = trace_river(
            field,
            source.row,
            source.col,
            sea,
            meander,
            f"river_{i}",
            cfg,
            width_noise=width_noise,
            flow_grid=flow_grid,
        )
        if result.river is not None and len(result.river.vertices) >= 2:
            rivers.append(result.river)
        river_lakes.extend(result.lakes)
        stats = stats.merge(result.stats)

    river_lakes = merge_duplicate_lakes(river_lakes)
    rivers = merge_river_confluences(rivers, field.world_to_cell)
    logger.info(
        "hydrology.rivers",
        sources=len(sources),
        rivers=len(rivers),
        coast=sum(1 for r in rivers if r.termination == COAST),
        river_lakes=len(river_lakes),
        depressions=stats.count,
    )

    placed = place_explicit_lakes(field, spines, sea, hydro.fork("lakes").generator(), meander, cfg)
    if cfg.dedupe_lakes:
        placed = dedupe_placed_lakes(placed, river_lakes)
    lakes = river_lakes + placed
    logger.info("hydrology.placed_lakes", placed=len(placed), total=len(lakes))

    rivers, lakes = link_terminal_lakes(rivers, lakes)

    return HydrologyResult(
        rivers=tuple(rivers),
        lakes=tuple(lakes),
        river_sdf=compute_river_sdf(rivers, field),
        lake_sdf=compute_lake_sdf(lakes, field, sea),
        width=field.width,
        height=field.height,
        source_count=len(sources),
        depression_stats=stats,
        flow_grid=flow_grid,
    )
