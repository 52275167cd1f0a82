from __future__ import annotations

import json

import numpy as np
import pytest

from cli.main import main


def _args(out_dir, seed: str = "Misty_Harbor") -> list[str]:
    return [
        "--seed",
        seed,
        "--out",
        str(out_dir),
        "--resolution",
        "48",
        "--overwrite",
    ]


def test_runtime_fields_only_in_meta_json(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    out_dir = tmp_path / "out"
    assert main(_args(out_dir)) == 0

    base = out_dir / "misty-harbor" / "48x48"
    meta = json.loads((base / "meta.json").read_text(encoding="utf-8"))
    deterministic_meta = json.loads((base / "deterministic_meta.json").read_text(encoding="utf-8"))

    for key in ("generated_at_utc", "generation_seconds", "stage_seconds", "original_seed"):
        assert key in meta
        assert key not in deterministic_meta
    assert meta["generation_seconds"] >= 0.0
    assert meta["original_seed"] == "Misty_Harbor"
    assert deterministic_meta["canonical_seed"] == "misty-harbor"
    assert deterministic_meta["width"] == 48

    hydro = deterministic_meta["hydrology"]
    for key in ("source_count", "river_count", "coast_rivers", "lake_count", "depression_count"):
        assert key in hydro
    assert "land_fraction" in deterministic_meta["land"]
    assert "closed_loops" in deterministic_meta["coastline"]
    assert deterministic_meta["config"]["resolution"] == 48

    hydrology = json.loads((base / "hydrology.json").read_text(encoding="utf-8"))
    assert len(hydrology["rivers"]) == hydro["river_count"]

    for name in (
        "elevation.npy",
        "river_sdf.npy",
        "lake_sdf.npy",
        "elevation.png",
        "hillshade.png",
        "land_mask.png",
        "water.png",
        "debug_river_sdf.png",
        "debug_lake_sdf.png",
        "debug_carving.png",
        "debug_coastline_influence.png",
        "debug_river_influence.png",
    ):
        assert (base / name).exists(), name
    assert np.load(base / "elevation.npy").shape == (48, 48)
    assert not list((out_dir / "misty-harbor").glob(".staging-*"))


def test_deterministic_meta_is_stable_across_runs(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    out_dir = tmp_path / "out"
    base = out_dir / "42" / "48x48"

    assert main(_args(out_dir, "42")) == 0
    first = (base / "deterministic_meta.json").read_bytes()
    assert main(_args(out_dir, "42")) == 0
    assert (base / "deterministic_meta.json").read_bytes() == first


def test_overwrite_cleans_stale_outputs(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    out_dir = tmp_path / "out"
    base = out_dir / "42" / "48x48"

    assert main(_args(out_dir, "42")) == 0
    (base / "stale.txt").write_text("old", encoding="utf-8")
    assert main(_args(out_dir, "42") + ["--no-json"]) == 0

    assert not (base / "stale.txt").exists()
    assert not (base / "meta.json").exists()
    assert (base / "elevation.npy").exists()


def test_existing_output_requires_overwrite(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    out_dir = tmp_path / "out"
    args = _args(out_dir, "42")

    assert main(args) == 0
    with pytest.raises(FileExistsError):
        main(args[:-1])


def test_invalid_seed_is_a_usage_error(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)

    with pytest.raises(SystemExit) as exc:
        main(_args(tmp_path / "out", "misty harbor"))

    assert exc.value.code == 2
    assert "Examples:" in capsys.readouterr().err
