"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/tests/test_cli.py

--------------------------------------------------------------------------------
"""

from __future__ import annotations

from typer.testing import CliRunner

from emissionmap.cli.app import app


def test_cli_help_smoke() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "render" in result.output


def test_render_from_flags(tmp_path, two_genome_emissions, two_genome_species):
    out = tmp_path / "fig.png"
    html = tmp_path / "fig.html"
    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "render",
            "--emissions",
            str(two_genome_emissions),
            "--species",
            str(two_genome_species),
            "--out",
            str(out),
            "--html",
            str(html),
            "--clusters",
            "2",
            "--no-annotate",
        ],
    )
    assert result.exit_code == 0, result.output
    assert out.exists() and html.exists()
    assert "Render summary" in result.output


def test_render_from_job_with_override(tmp_path, six_state_emissions, six_state_species):
    job = tmp_path / "job.yaml"
    job.write_text(
        f"inputs:\n  emissions: {six_state_emissions.name}\n  species: {six_state_species.name}\n"
        "outputs:\n  figure: plots/heat.png\n"
        "clustering:\n  n_clusters: 2\n",
        encoding="utf-8",
    )
    runner = CliRunner()
    result = runner.invoke(app, ["-v", "render", "--job", str(job), "--clusters", "3"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "plots" / "heat.png").exists()


def test_missing_annotation_exit_code(tmp_path, make_emissions, make_species):
    em = make_emissions(["state", "chimp_aligned", "chimp_matched"], [["E1", 0.5, 0.5]])
    sp = make_species({"human": {"commonName": "Human", "group": "primate", "distanceToHuman": 0}})
    out = tmp_path / "never.png"
    runner = CliRunner()
    result = runner.invoke(
        app, ["render", "--emissions", str(em), "--species", str(sp), "--out", str(out)]
    )
    assert result.exit_code == 2
    assert "chimp" in result.output
    assert not out.exists()


def test_render_requires_inputs_without_job(tmp_path):
    runner = CliRunner()
    result = runner.invoke(app, ["render", "--out", str(tmp_path / "x.png")])
    assert result.exit_code == 2
    assert "--emissions" in result.output


def test_validate_prints_columns(two_genome_emissions, two_genome_species):
    runner = CliRunner()
    result = runner.invoke(
        app, ["validate", "--emissions", str(two_genome_emissions), "--species", str(two_genome_species)]
    )
    assert result.exit_code == 0, result.output
    assert "Alpha" in result.output and "OK" in result.output


def test_unsupported_figure_format_exit_code(tmp_path, two_genome_emissions, two_genome_species):
    out = tmp_path / "x.xyz"
    runner = CliRunner()
    result = runner.invoke(
        app,
        ["render", "-e", str(two_genome_emissions), "-s", str(two_genome_species), "-o", str(out)],
    )
    assert result.exit_code == 2
    assert "Unsupported figure format" in result.output
    assert not out.exists()
