"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/tests/conftest.py

Small on-disk inputs shared by the tests.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import matplotlib
import pytest

matplotlib.use("Agg")


def write_emissions(path: Path, header: list[str], rows: list[list]) -> Path:
    lines = ["\t".join(header)]
    lines += ["\t".join(str(v) for v in row) for row in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def write_species(path: Path, records: dict) -> Path:
    path.write_text(json.dumps(records, indent=2), encoding="utf-8")
    return path


@pytest.fixture()
def two_genome_emissions(tmp_path: Path) -> Path:
    # columns deliberately out of display order
    return write_emissions(
        tmp_path / "emissions.tsv",
        ["state", "B_matched", "A_aligned", "B_aligned", "A_matched"],
        [
            ["s1", 0.3, 0.4, 0.6, 0.5],
            ["s2", 0.1, 0.9, 0.2, 0.8],
        ],
    )


@pytest.fixture()
def two_genome_species(tmp_path: Path) -> Path:
    return write_species(
        tmp_path / "species.json",
        {
            "A": {"commonName": "Alpha", "group": "primate", "distanceToHuman": 0},
            "B": {"commonName": "Beta", "group": "rodent", "distanceToHuman": 1},
        },
    )


@pytest.fixture()
def six_state_emissions(tmp_path: Path) -> Path:
    header = ["state", "human_aligned", "mouse_aligned", "dog_aligned", "human_matched", "mouse_matched", "dog_matched"]
    rows = [
        ["E1", 0.95, 0.90, 0.92, 0.97, 0.91, 0.93],
        ["E2", 0.93, 0.88, 0.90, 0.96, 0.89, 0.92],
        ["E3", 0.10, 0.05, 0.08, 0.20, 0.15, 0.10],
        ["E4", 0.12, 0.07, 0.06, 0.18, 0.12, 0.11],
        ["E5", 0.55, 0.50, 0.45, 0.60, 0.52, 0.50],
        ["E6", 0.52, 0.48, 0.47, 0.58, 0.50, 0.49],
    ]
    return write_emissions(tmp_path / "six.tsv", header, rows)


@pytest.fixture()
def six_state_species(tmp_path: Path) -> Path:
    return write_species(
        tmp_path / "six_species.json",
        {
            "human": {"commonName": "Human", "group": "primate", "distanceToHuman": 0},
            "dog": {"commonName": "Dog", "group": "laurasiatheria", "distanceToHuman": 7},
            "mouse": {"commonName": "Mouse", "group": "glires", "distanceToHuman": 3},
            "chicken": {"commonName": "Chicken", "group": "bird", "distanceToHuman": 12},
        },
    )


@pytest.fixture()
def make_emissions(tmp_path: Path):
    def _make(header: list[str], rows: list[list], name: str = "emissions.tsv") -> Path:
        return write_emissions(tmp_path / name, header, rows)

    return _make


@pytest.fixture()
def make_species(tmp_path: Path):
    def _make(records: dict, name: str = "species.json") -> Path:
        return write_species(tmp_path / name, records)

    return _make


@pytest.fixture(autouse=True)
def _restore_root_logging():
    # the CLI installs a RichHandler bound to the runner's stderr
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
