"""Output serialization for generated island artifacts."""

from __future__ import annotations

import json
from pathlib import Path
import shutil
from typing import Any

import numpy as np
from PIL import Image

from hydroterrain.hydrology import HydrologyResult
from hydroterrain.lakes import Lake
from hydroterrain.rivers import River
from hydroterrain.spines import Spines


def resolve_output_dir(
    out_root: str | Path,
    canonical_seed: str,
    width: int,
    height: int,
    *,
    overwrite: bool,
) -> Path:
    """Create and return the output directory for one generation run."""

    target = Path(out_root) / canonical_seed / f"{width}x{height}"
    if target.exists() and any(target.iterdir()) and not overwrite:
        raise FileExistsError(
            f"Output directory already exists and is not empty: {target}. Use --overwrite to replace files."
        )
    target.mkdir(parents=True, exist_ok=True)
    return target


def safe_clean_output_dir(target: Path, *, out_root: Path, project_root: Path) -> None:
    """Delete all children of target, refusing paths outside out_root or project_root."""

    out_root_r = out_root.resolve()
    target_r = target.resolve()
    target_r.relative_to(out_root_r)
    out_root_r.relative_to(project_root.resolve())

    if not target_r.exists():
        target_r.mkdir(parents=True, exist_ok=True)
        return
    for child in target_r.iterdir():
        if child.is_symlink() or child.is_file():
            child.unlink()
        elif child.is_dir():
            shutil.rmtree(child)


def move_tree_contents(src_dir: Path, dst_dir: Path) -> None:
    for child in src_dir.iterdir():
        shutil.move(str(child), str(dst_dir / child.name))


def write_npy(path: str | Path, values: np.ndarray) -> None:
    np.save(Path(path), values.astype(np.float32), allow_pickle=False)


def write_png_u8(path: str | Path, raster_u8: np.ndarray) -> None:
    Image.fromarray(raster_u8.astype(np.uint8), mode="L").save(Path(path))


def write_json(path: str | Path, payload: dict[str, Any]) -> None:
    text = json.dumps(payload, indent=2, sort_keys=True)
    Path(path).write_text(text + "\n", encoding="utf-8")


def read_spines(path: str | Path) -> Spines:
    """Load a spine graph from ``{"vertices": [...], "segments": [{"from", "to"}]}`` JSON."""

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"spine file {path} must contain a JSON object")
    return Spines.from_dict(payload)


def river_to_dict(river: River) -> dict[str, Any]:
    return {
        "id": river.id,
        "termination": river.termination,
        "terminating_lake_id": river.terminating_lake_id,
        "tributary_ids": list(river.tributary_ids),
        "vertices": [
            {
                "x": v.x,
                "z": v.z,
                "elevation": v.elevation,
                "flow": v.flow,
                "width": v.width,
                "carve_depth": v.carve_depth,
                "curvature": v.curvature,
            }
            for v in river.vertices
        ],
    }


def lake_to_dict(lake: Lake) -> dict[str, Any]:
    return {
        "id": lake.id,
        "center": list(lake.center),
        "water_level": lake.water_level,
        "spill_elevation": lake.spill_elevation,
        "spill_point": list(lake.spill_point) if lake.spill_point is not None else None,
        "area": lake.area,
        "endorheic": lake.endorheic,
        "inflow_river_ids": list(lake.inflow_river_ids),
        "outflow_river_id": lake.outflow_river_id,
        "boundary": [list(p) for p in lake.boundary],
    }


def hydrology_to_dict(result: HydrologyResult) -> dict[str, Any]:
    stats = result.depression_stats
    return {
        "width": result.width,
        "height": result.height,
        "source_count": result.source_count,
        "depressions": {
            "count": stats.count,
            "max_cells": stats.max_cells,
            "max_depth": stats.max_depth,
        },
        "rivers": [river_to_dict(r) for r in result.rivers],
        "lakes": [lake_to_dict(lake) for lake in result.lakes],
    }
