#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from __future__ import annotations

import json
import sys
from pathlib import Path
from textwrap import dedent

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from cb_source import SourceUnit


BASE_JS = """\
/**
 * @fileoverview Bootstrap for the Closure Library.
 * @provideGoog
 */
var goog = goog || {};
"""


@pytest.fixture
def temp_project(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def write_js_file(temp_project: Path):
    """Write a JS file under the temp project; returns its resolved path."""

    def _write(rel_path: str, content: str) -> Path:
        file_path = temp_project / rel_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(dedent(content), encoding="utf-8")
        return file_path.resolve()

    return _write


@pytest.fixture
def write_base_js(write_js_file):
    """Write Closure's base.js (the bootstrap unit) under the temp project."""

    def _write(rel_path: str = "closure/goog/base.js") -> Path:
        return write_js_file(rel_path, BASE_JS)

    return _write


@pytest.fixture
def write_config(temp_project: Path):
    """Write a module config JSON file under the temp project."""

    def _write(config: dict, rel_path: str = "modules.json") -> Path:
        file_path = temp_project / rel_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(json.dumps(config), encoding="utf-8")
        return file_path

    return _write


@pytest.fixture
def make_unit():
    """Build an in-memory SourceUnit; paths are plain labels."""

    def _make(path: str, provides=(), requires=(), is_module: bool = False) -> SourceUnit:
        return SourceUnit.create(path, list(provides), list(requires), is_module=is_module)

    return _make


@pytest.fixture
def make_base_unit(make_unit):
    def _make(path: str = "/closure/goog/base.js") -> SourceUnit:
        return make_unit(path, ["goog"])

    return _make
