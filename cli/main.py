"""CLI entry point for island hydrology generation."""

from __future__ import annotations

import argparse
from dataclasses import replace
from datetime import datetime, timezone
import logging
from pathlib import Path
import platform
import shutil
import sys
import tempfile
import time

import numpy as np
import structlog

from hydroterrain.coastline import coastline_stats
from hydroterrain.config import DEFAULT_RESOLUTION, DEFAULT_SEA_LEVEL, FLOW_MODES, GeneratorConfig
from hydroterrain.derive import (
    distance_preview_u8,
    float_preview_u8,
    hillshade,
    land_mask_u8,
    water_overlay_u8,
)
from hydroterrain.io import (
    hydrology_to_dict,
    move_tree_contents,
    read_spines,
    resolve_output_dir,
    safe_clean_output_dir,
    write_json,
    write_npy,
    write_png_u8,
)
from hydroterrain.metrics import hydrology_metrics, land_metrics
from hydroterrain.seed import SeedParseError, parse_seed
from hydroterrain.spines import Spines, straight_ridge
from hydroterrain.world import generate_world


def configure_logging(level: str = "WARNING", *, json_logs: bool = False) -> None:
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level.upper(), force=True)
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def default_spines() -> Spines:
    return straight_ridge((-0.35, -0.1), (0.35, 0.15), elevations=(0.7, 0.85, 0.6))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deterministic island elevation and river/lake hydrology generator")
    parser.add_argument("--seed", required=True, help="Integer seed or word seed (e.g. 42, misty-harbor)")
    parser.add_argument("--out", default="out", help="Output root directory")
    parser.add_argument("--resolution", type=int, default=DEFAULT_RESOLUTION, help="Grid cells per side")
    parser.add_argument("--sea-level", type=float, default=DEFAULT_SEA_LEVEL, help="Normalized sea level")
    parser.add_argument("--spines", type=Path, default=None, help="JSON file with the mountain spine graph")
    parser.add_argument("--flow-mode", choices=FLOW_MODES, default="descent", help="River flow attribution mode")
    parser.add_argument("--overwrite", action="store_true", help="Overwrite files in existing output directory")
    parser.add_argument(
        "--json",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Write hydrology and metadata JSON files",
    )
    parser.add_argument("--log-level", default="WARNING", help="Log level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--log-json", action="store_true", help="Emit structured logs as JSON lines")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, json_logs=args.log_json)

    try:
        parsed_seed = parse_seed(args.seed)
    except SeedParseError as exc:
        parser.error(str(exc))

    try:
        spines = read_spines(args.spines) if args.spines is not None else default_spines()
    except (OSError, ValueError) as exc:
        parser.error(f"could not load spines: {exc}")

    base = GeneratorConfig()
    try:
        config = replace(
            base,
            resolution=args.resolution,
            sea_level=args.sea_level,
            hydrology=replace(base.hydrology, flow_mode=args.flow_mode),
        ).validate()
    except ValueError as exc:
        parser.error(str(exc))

    generation_start = time.perf_counter()
    world = generate_world(parsed_seed.value, spines, config)
    generation_seconds = time.perf_counter() - generation_start

    field = world.field
    hydrology = world.hydrology
    assert hydrology is not None
    cell = field.cell_w
    render = config.render

    shade = hillshade(
        field.data,
        cell_size=cell,
        azimuth_deg=render.hillshade_azimuth_deg,
        altitude_deg=render.hillshade_altitude_deg,
        vertical_exaggeration=render.hillshade_vertical_exaggeration,
    )
    land = field.land_mask(config.sea_level)
    river_sdf = world.river_sdf
    lake_sdf = world.lake_sdf
    land_stats = land_metrics(land)
    hydro_stats = hydrology_metrics(hydrology, cell_size=cell)
    coast_stats = coastline_stats(world.coastline)

    png_u8_outputs: dict[str, np.ndarray] = {
        "elevation.png": float_preview_u8(field.data, robust_percentiles=(0.0, 100.0)),
        "hillshade.png": shade,
        "land_mask.png": land_mask_u8(land),
        "water.png": water_overlay_u8(shade, river_sdf, lake_sdf, cell_size=cell),
        "debug_river_sdf.png": distance_preview_u8(river_sdf, max_distance=cell * 20.0),
        "debug_lake_sdf.png": distance_preview_u8(lake_sdf, max_distance=cell * 20.0),
        "debug_carving.png": float_preview_u8(world.carving, robust_percentiles=(0.0, 100.0)),
    }
    if world.metadata is not None:
        png_u8_outputs["debug_coastline_influence.png"] = world.metadata.coastline_influence
        png_u8_outputs["debug_river_influence.png"] = world.metadata.river_influence

    out_dir = resolve_output_dir(
        args.out,
        parsed_seed.canonical,
        field.width,
        field.height,
        overwrite=args.overwrite,
    )
    stage_dir = Path(tempfile.mkdtemp(prefix=".staging-", dir=str(out_dir.parent)))
    try:
        write_npy(stage_dir / "elevation.npy", field.data)
        write_npy(stage_dir / "river_sdf.npy", river_sdf)
        write_npy(stage_dir / "lake_sdf.npy", lake_sdf)
        for name, raster in png_u8_outputs.items():
            write_png_u8(stage_dir / name, raster)
        if args.json:
            write_json(stage_dir / "hydrology.json", hydrology_to_dict(hydrology))
            deterministic_meta = {
                "canonical_seed": parsed_seed.canonical,
                "seed_value": parsed_seed.value,
                "width": field.width,
                "height": field.height,
                "config": config.to_dict(),
                "spines": spines.to_dict(),
                "land": land_stats.to_dict(),
                "hydrology": hydro_stats.to_dict(),
                "coastline": coast_stats.to_dict(),
            }
            meta = {
                **deterministic_meta,
                "generated_at_utc": datetime.now(timezone.utc).isoformat(),
                "original_seed": parsed_seed.original,
                "generation_seconds": generation_seconds,
                "stage_seconds": dict(world.stage_seconds),
                "python_version": platform.python_version(),
                "numpy_version": np.__version__,
            }
            write_json(stage_dir / "deterministic_meta.json", deterministic_meta)
            write_json(stage_dir / "meta.json", meta)

        safe_clean_output_dir(
            out_dir,
            out_root=Path(args.out),
            project_root=Path.cwd(),
        )
        move_tree_contents(stage_dir, out_dir)
    finally:
        shutil.rmtree(stage_dir, ignore_errors=True)

    print(f"Generated island: {out_dir}")
    print(
        f"Land fraction {land_stats.land_fraction:.3f}; "
        f"islands={land_stats.island_count}, dominant ratio {land_stats.largest_land_ratio:.3f}"
    )
    print(
        "Hydrology: "
        f"sources={hydro_stats.source_count}, rivers={hydro_stats.river_count} "
        f"(coast={hydro_stats.coast_rivers}, basin={hydro_stats.basin_rivers}, edge={hydro_stats.edge_rivers}), "
        f"lakes={hydro_stats.lake_count}, depressions={hydro_stats.depression_count}"
    )
    print(f"Coastline: polylines={coast_stats.polyline_count}, closed={coast_stats.closed_loops}")
    print(f"Generation time: {generation_seconds:.3f} s ({field.width}x{field.height})")
    file_count = sum(1 for child in out_dir.iterdir() if child.is_file())
    print(f"Output files: {file_count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
