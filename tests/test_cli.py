from __future__ import annotations

import json
from pathlib import Path

import pytest

from skincare_catalog.cli.main import main
from skincare_catalog.store import BundleSeed, FileDataStore


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch) -> Path:
    (tmp_path / "README.md").write_text("test marker", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_refresh_writes_bundle_to_data_dir(workdir: Path) -> None:
    data_dir = workdir / "docs"

    assert main(["refresh", "--data-dir", str(data_dir)]) == 0

    stored = FileDataStore(str(data_dir)).load_products()
    assert [p.id for p in stored] == [p.id for p in BundleSeed().load()]


def test_refresh_with_corrupt_seed_fails(workdir: Path) -> None:
    seed = workdir / "seed.json"
    seed.write_text("{broken", encoding="utf-8")

    assert main(["refresh", "--data-dir", str(workdir / "docs"), "--seed", str(seed)]) == 1


def test_offline_favorite_toggle_round_trip(workdir: Path, capsys) -> None:
    data_dir = str(workdir / "docs")
    retinol = next(p for p in BundleSeed().load() if p.name.startswith("Retinol"))

    assert main(["favorite", retinol.id, "--data-dir", data_dir]) == 0
    assert json.loads(capsys.readouterr().out) == {"id": retinol.id, "favorite": True}
    assert FileDataStore(data_dir).load_favorite_ids() == [retinol.id]

    assert main(["favorites", "--data-dir", data_dir]) == 0
    listed = json.loads(capsys.readouterr().out)
    assert [p["name"] for p in listed] == ["Retinol 0.5% in Squalane"]
    assert listed[0]["favorite"] is True

    assert main(["favorite", retinol.id, "--data-dir", data_dir]) == 0
    assert json.loads(capsys.readouterr().out)["favorite"] is False
    assert FileDataStore(data_dir).load_favorite_ids() == []
