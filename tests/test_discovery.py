"""Tests for sibling artifact discovery."""

from __future__ import annotations

import os
import types
import pathlib
from typing import Dict

import pytest

from psa_crypto_sys import discovery
from psa_crypto_sys.config import INCLUDE_DIR_ENV, LIB_DIR_ENV, STATIC_ENV
from psa_crypto_sys.errors import ArtifactDiscoveryHalted, EmptyArtifactCandidateList

TARGET = "x86_64-unknown-linux-gnu"


@pytest.fixture
def siblings(out_dir: pathlib.Path, monkeypatch) -> Dict[str, pathlib.Path]:
    """Sibling package build directories with fixed creation times."""
    root = out_dir.parent.parent
    created = {
        "minerva-mbedtls-old": 100.0,
        "minerva-mbedtls-new": 300.0,
        "minerva-mbedtls-mid": 200.0,
    }
    dirs = {}
    for name in created:
        dirs[name] = root / name
        discovery.backend_dir(root / name, TARGET).mkdir(parents=True)
    # Other target, other package
    discovery.backend_dir(root / "minerva-mbedtls-arm", "thumbv7em-none-eabihf").mkdir(parents=True)
    discovery.backend_dir(root / "other-crate-1234", TARGET).mkdir(parents=True)
    out_dir.mkdir(parents=True)

    monkeypatch.setattr(discovery, "_created_at", lambda path: created.get(path.parent.parent.name, 0.0))
    return dirs


def test_candidates_newest_first(out_dir: pathlib.Path, siblings: Dict[str, pathlib.Path]) -> None:
    candidates = discovery.find_candidates(out_dir, TARGET)
    assert [c.name for c in candidates] == [
        "minerva-mbedtls-new",
        "minerva-mbedtls-mid",
        "minerva-mbedtls-old",
    ]


def test_select_backend_dir(out_dir: pathlib.Path, siblings: Dict[str, pathlib.Path]) -> None:
    selected = discovery.select_backend_dir(out_dir, TARGET)
    assert selected == siblings["minerva-mbedtls-new"] / "out" / f"mbedtls-v3-{TARGET}"


def test_no_candidates(out_dir: pathlib.Path) -> None:
    out_dir.mkdir(parents=True)
    with pytest.raises(EmptyArtifactCandidateList):
        discovery.find_candidates(out_dir, TARGET)


def test_discovery_halts_without_publishing(out_dir: pathlib.Path, siblings: Dict[str, pathlib.Path],
                                            monkeypatch) -> None:
    for name in (LIB_DIR_ENV, INCLUDE_DIR_ENV, STATIC_ENV):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(ArtifactDiscoveryHalted) as excinfo:
        discovery.discover_backend(out_dir, TARGET)

    assert "minerva-mbedtls-new" in excinfo.value.message
    for name in (LIB_DIR_ENV, INCLUDE_DIR_ENV, STATIC_ENV):
        assert name not in os.environ


def test_publish_backend_env(tmp_path: pathlib.Path) -> None:
    environ: Dict[str, str] = {}
    discovery.publish_backend_env(tmp_path, environ)
    assert environ == {
        LIB_DIR_ENV: str(tmp_path / "library"),
        INCLUDE_DIR_ENV: str(tmp_path / "include"),
        STATIC_ENV: "1",
    }


def test_created_at_prefers_birth_time(tmp_path: pathlib.Path, monkeypatch) -> None:
    stat = types.SimpleNamespace(st_birthtime=1.0, st_ctime=5.0)
    monkeypatch.setattr(pathlib.Path, "stat", lambda self, **kwargs: stat)
    assert discovery._created_at(tmp_path) == 1.0


def test_created_at_falls_back_to_change_time(tmp_path: pathlib.Path, monkeypatch) -> None:
    stat = types.SimpleNamespace(st_ctime=5.0)
    monkeypatch.setattr(pathlib.Path, "stat", lambda self, **kwargs: stat)
    assert discovery._created_at(tmp_path) == 5.0
