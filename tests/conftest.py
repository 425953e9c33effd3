"""Shared pytest fixtures for xlfsync tests."""

from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest

from xlfsync.config import Settings
from xlfsync.models import XliffDocument
from xlfsync.xlf_io import parse_xlf

FIXTURES_DIR = Path(__file__).parent / "fixtures"
AL_DIR = FIXTURES_DIR / "al"


@pytest.fixture
def settings() -> Settings:
    """Built-in defaults, no user or workspace overrides."""
    return Settings()


@pytest.fixture
def master_path() -> Path:
    return FIXTURES_DIR / "master.g.xlf"


@pytest.fixture
def lang_path() -> Path:
    return FIXTURES_DIR / "lang.sv-SE.xlf"


@pytest.fixture
def malformed_xlf_path() -> Path:
    return FIXTURES_DIR / "malformed.xlf"


@pytest.fixture
def master_doc(master_path: Path) -> XliffDocument:
    return parse_xlf(master_path)


@pytest.fixture
def lang_doc(lang_path: Path) -> XliffDocument:
    return parse_xlf(lang_path)


@pytest.fixture
def al_text():
    def read(name: str) -> str:
        return (AL_DIR / name).read_text(encoding="utf-8")
    return read


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """An AL project with sources, an empty g.xlf and an empty sv-SE file."""
    (tmp_path / "app.json").write_text(json.dumps({"name": "Test App"}), encoding="utf-8")
    shutil.copytree(AL_DIR, tmp_path / "src")
    translations = tmp_path / "Translations"
    translations.mkdir()
    shutil.copy(FIXTURES_DIR / "empty.g.xlf", translations / "Test App.g.xlf")
    shutil.copy(FIXTURES_DIR / "empty.sv-SE.xlf", translations / "Test App.sv-SE.xlf")
    return tmp_path
