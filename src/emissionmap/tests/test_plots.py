"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/tests/test_plots.py

Smoke tests for both renderers on a small corrected and reordered table.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import matplotlib.pyplot as plt
import pytest

from emissionmap.algo.hierarchy import cluster_rows
from emissionmap.core.config import HeatmapBlock
from emissionmap.core.errors import ConfigError, EmissionMapError
from emissionmap.io.columns import columns_frame
from emissionmap.io.read import read_emissions, read_species
from emissionmap.plots.heatmap import group_palette, plot_emission_heatmap
from emissionmap.plots.interactive import long_form, write_interactive_heatmap
from emissionmap.transforms.correct import correct_matched
from emissionmap.transforms.reorder import annotate_columns, order_columns


@pytest.fixture()
def prepared(six_state_emissions, six_state_species):
    frame, cols = read_emissions(six_state_emissions)
    annotated = annotate_columns(columns_frame(cols), read_species(six_state_species))
    ordered, layout = order_columns(correct_matched(frame, cols), annotated)
    return ordered, layout


@pytest.mark.parametrize("k", [0, 3])
def test_png_written(tmp_path, prepared, k):
    ordered, layout = prepared
    clustering = cluster_rows(ordered.to_numpy(), n_clusters=k)
    out = plot_emission_heatmap(ordered, layout, clustering, tmp_path / "fig" / "heat.png")
    assert out.exists() and out.stat().st_size > 0
    assert out.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"


def test_no_annotations_and_custom_title(tmp_path, prepared):
    ordered, layout = prepared
    clustering = cluster_rows(ordered.to_numpy(), n_clusters=2)
    style = HeatmapBlock(annotate=False, title="States", label_rotation=90, dpi=72)
    out = plot_emission_heatmap(ordered, layout, clustering, tmp_path / "heat.pdf", style)
    assert out.read_bytes()[:4] == b"%PDF"


def test_unknown_colormap(tmp_path, prepared):
    ordered, layout = prepared
    clustering = cluster_rows(ordered.to_numpy())
    with pytest.raises(ConfigError, match="colormap"):
        plot_emission_heatmap(ordered, layout, clustering, tmp_path / "x.png", HeatmapBlock(cmap="nope_cmap"))


def test_layout_must_match_frame(tmp_path, prepared):
    ordered, layout = prepared
    clustering = cluster_rows(ordered.to_numpy())
    with pytest.raises(EmissionMapError):
        plot_emission_heatmap(ordered.iloc[:, ::-1], layout, clustering, tmp_path / "x.png")
    assert not (tmp_path / "x.png").exists()


def test_group_palette_first_appearance():
    pal = group_palette(["b", "a", "b", "c"])
    assert list(pal) == ["b", "a", "c"]


def test_long_form_and_html(tmp_path, prepared):
    ordered, layout = prepared
    clustering = cluster_rows(ordered.to_numpy(), n_clusters=3)
    tidy = long_form(ordered, layout, clustering)
    assert len(tidy) == ordered.size
    assert set(tidy["cluster"]) == {1, 2, 3}
    assert tidy["row_position"].between(0, len(ordered) - 1).all()

    out = write_interactive_heatmap(ordered, layout, clustering, tmp_path / "heat.html")
    html = out.read_text(encoding="utf-8")
    assert "vega" in html.lower()
    assert "Human" in html


def test_failed_save_closes_figure(tmp_path, prepared):
    ordered, layout = prepared
    clustering = cluster_rows(ordered.to_numpy())
    before = plt.get_fignums()
    with pytest.raises(EmissionMapError, match="Could not save"):
        plot_emission_heatmap(ordered, layout, clustering, tmp_path / "heat.xyz")
    assert plt.get_fignums() == before
