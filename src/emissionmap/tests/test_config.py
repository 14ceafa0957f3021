"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/tests/test_config.py

--------------------------------------------------------------------------------
"""

from __future__ import annotations

from pathlib import Path

import pytest

from emissionmap.core.config import build_job, load_job, merge_overrides
from emissionmap.core.errors import ConfigError


def _write(p: Path, text: str) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")
    return p


def test_paths_resolve_against_job_dir(tmp_path):
    job = _write(
        tmp_path / "jobs" / "render.yaml",
        "inputs:\n  emissions: data/em.tsv\n  species: data/sp.json\n"
        "outputs:\n  figure: out/heat.png\n"
        "clustering:\n  n_clusters: 4\n",
    )
    cfg = load_job(job)
    assert cfg.inputs.emissions == (tmp_path / "jobs" / "data" / "em.tsv").resolve()
    assert cfg.outputs.figure == (tmp_path / "jobs" / "out" / "heat.png").resolve()
    assert cfg.outputs.html is None
    assert cfg.clustering.n_clusters == 4
    assert cfg.clustering.method == "average"
    assert cfg.heatmap.center == 0.5


def test_overrides_win_and_none_is_ignored(tmp_path):
    job = _write(
        tmp_path / "render.yaml",
        "inputs: {emissions: a.tsv, species: b.json}\noutputs: {figure: f.png}\nclustering: {n_clusters: 2}\n",
    )
    cfg = load_job(job, {"clustering": {"n_clusters": 5, "metric": None}, "heatmap": {"annotate": False}})
    assert cfg.clustering.n_clusters == 5
    assert cfg.clustering.metric == "euclidean"
    assert cfg.heatmap.annotate is False


def test_duplicate_yaml_key(tmp_path):
    job = _write(tmp_path / "dup.yaml", "inputs: {emissions: a.tsv, species: b.json}\ninputs: {}\n")
    with pytest.raises(ConfigError, match="Duplicate key"):
        load_job(job)


def test_unknown_key_rejected():
    raw = {
        "inputs": {"emissions": "a.tsv", "species": "b.json"},
        "outputs": {"figure": "f.png"},
        "clustering": {"numClusters": 3},
    }
    with pytest.raises(ConfigError, match="clustering.numClusters"):
        build_job(raw, Path("/tmp"))


@pytest.mark.parametrize(
    "block",
    [
        {"clustering": {"n_clusters": -1}},
        {"clustering": {"metric": "hamming-ish"}},
        {"heatmap": {"center": 1.0}},
        {"heatmap": {"fmt": "%%%"}},
    ],
)
def test_invalid_values(block):
    raw = {"inputs": {"emissions": "a.tsv", "species": "b.json"}, "outputs": {"figure": "f.png"}, **block}
    with pytest.raises(ConfigError):
        build_job(raw, Path("/tmp"))


def test_missing_job_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_job(tmp_path / "nope.yaml")


def test_merge_overrides_does_not_mutate():
    raw = {"clustering": {"n_clusters": 1}}
    merged = merge_overrides(raw, {"clustering": {"n_clusters": 3}})
    assert raw["clustering"]["n_clusters"] == 1
    assert merged["clustering"]["n_clusters"] == 3


@pytest.mark.parametrize("figure", ["heat.xyz", "heat"])
def test_unsupported_figure_format(figure):
    raw = {"inputs": {"emissions": "a.tsv", "species": "b.json"}, "outputs": {"figure": figure}}
    with pytest.raises(ConfigError, match="Unsupported figure format"):
        build_job(raw, Path("/tmp"))
