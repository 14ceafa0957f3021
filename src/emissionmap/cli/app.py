"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/cli/app.py

Command line: `emissionmap render` and `emissionmap validate`.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.traceback import install as rich_tb

from .. import pipeline
from ..core.config import RenderJob, build_job, load_job
from ..core.errors import ConfigError, EmissionMapError
from ..core.logging_setup import configure_logging
from ..util import warnings as warn_cfg

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help=(
        "Emission-probability heatmaps for HMM states across genomes.\n\n"
        "\b\nTypical workflow:\n"
        "  • emissionmap validate - check the emissions table against the species annotation\n"
        "  • emissionmap render   - correct, reorder, cluster and draw the heatmap\n\n"
        "\b\nNotes:\n"
        "  • --job reads a YAML job; flags given on the command line override it.\n"
        "  • Relative paths in a job resolve against the job file's directory."
    ),
)
console = Console()


@app.callback()
def _root(
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="More logs (repeatable)."),
    debug: bool = typer.Option(False, "--debug", help="Rich tracebacks with locals."),
):
    """
    Global flags: -v for more logs (repeatable), --debug for full tracebacks.
    """
    rich_tb(show_locals=debug)
    configure_logging(verbose)
    warn_cfg.configure(verbose=verbose > 1)


def _overrides(
    *,
    emissions: Optional[Path],
    species: Optional[Path],
    out: Optional[Path],
    html: Optional[Path] = None,
    table_out: Optional[Path] = None,
    clusters: Optional[int] = None,
    metric: Optional[str] = None,
    method: Optional[str] = None,
    annotate: Optional[bool] = None,
) -> Dict[str, Dict[str, Any]]:
    return {
        "inputs": {"emissions": emissions, "species": species},
        "outputs": {"figure": out, "html": html, "table": table_out},
        "clustering": {"n_clusters": clusters, "metric": metric, "method": method},
        "heatmap": {"annotate": annotate},
    }


def _job(job: Optional[Path], overrides: Dict[str, Dict[str, Any]]) -> RenderJob:
    if job is not None:
        return load_job(job, overrides)
    raw = {k: {kk: vv for kk, vv in v.items() if vv is not None} for k, v in overrides.items()}
    missing = [
        flag
        for flag, (block, key) in {
            "--emissions": ("inputs", "emissions"),
            "--species": ("inputs", "species"),
            "--out": ("outputs", "figure"),
        }.items()
        if key not in raw[block]
    ]
    if missing:
        raise ConfigError("Without --job, these options are required: " + ", ".join(missing))
    return build_job({k: v for k, v in raw.items() if v}, base_dir=Path.cwd())


def _columns_table(report: pipeline.ValidationReport) -> Table:
    tbl = Table(
        title=f"Emission columns ({report.n_states} states)",
        header_style="bold cyan",
    )
    for col in ("Column", "Genome", "Type", "Common name", "Group", "distanceToHuman"):
        tbl.add_column(col, justify="right" if col == "distanceToHuman" else "left")
    for rec in report.annotated.itertuples(index=False):
        tbl.add_row(
            rec.name,
            rec.genome,
            rec.emission_type,
            rec.common_name,
            rec.group,
            str(rec.distance_to_human),
        )
    return tbl


@app.command("validate", help="Check inputs (column names, annotation coverage, ranks, pairs).")
def validate(
    job: Optional[Path] = typer.Option(None, "--job", "-j", help="Render job YAML."),
    emissions: Optional[Path] = typer.Option(None, "--emissions", "-e", help="Emissions TSV."),
    species: Optional[Path] = typer.Option(None, "--species", "-s", help="Species annotation (JSON/YAML)."),
):
    try:
        if job is None:
            if emissions is None or species is None:
                raise ConfigError("Without --job, --emissions and --species are required.")
            # validate never writes, so the figure path is a placeholder
            render_job = build_job(
                {
                    "inputs": {"emissions": emissions, "species": species},
                    "outputs": {"figure": "emissionmap.png"},
                },
                base_dir=Path.cwd(),
            )
        else:
            render_job = load_job(job, _overrides(emissions=emissions, species=species, out=None))
        report = pipeline.validate(render_job)
    except EmissionMapError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=2)

    console.print(_columns_table(report))
    if report.unused_species:
        console.print(
            f"[yellow]Note:[/yellow] {len(report.unused_species)} annotated genome(s) not in the table: "
            + ", ".join(report.unused_species[:8])
            + (" …" if len(report.unused_species) > 8 else "")
        )
    console.print("[green]OK[/green]: inputs are consistent.")


@app.command("render", help="Correct, reorder and cluster the emissions table, then draw the heatmap.")
def render(
    job: Optional[Path] = typer.Option(None, "--job", "-j", help="Render job YAML."),
    emissions: Optional[Path] = typer.Option(None, "--emissions", "-e", help="Emissions TSV."),
    species: Optional[Path] = typer.Option(None, "--species", "-s", help="Species annotation (JSON/YAML)."),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Figure path (.png/.pdf/.svg)."),
    clusters: Optional[int] = typer.Option(
        None, "--clusters", "-k", help="Cut the row tree into K clusters (0 = no cut)."
    ),
    html: Optional[Path] = typer.Option(None, "--html", help="Also write an interactive HTML heatmap."),
    table_out: Optional[Path] = typer.Option(None, "--table-out", help="Also write the processed TSV."),
    metric: Optional[str] = typer.Option(None, "--metric", help="Row distance metric (default euclidean)."),
    method: Optional[str] = typer.Option(None, "--method", help="Linkage method (default average)."),
    annotate: Optional[bool] = typer.Option(
        None, "--annotate/--no-annotate", help="Print probabilities inside the cells."
    ),
):
    overrides = _overrides(
        emissions=emissions,
        species=species,
        out=out,
        html=html,
        table_out=table_out,
        clusters=clusters,
        metric=metric,
        method=method,
        annotate=annotate,
    )
    try:
        render_job = _job(job, overrides)
        result = pipeline.run(render_job)
    except EmissionMapError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=2)

    n_rows, n_cols = result.table.shape
    tbl = Table(title="Render summary", header_style="bold cyan", show_header=False)
    tbl.add_column("key", style="bold")
    tbl.add_column("value")
    tbl.add_row("states", str(n_rows))
    tbl.add_row("columns", f"{n_cols} (aligned | matched)")
    tbl.add_row("linkage", f"{result.clustering.method} / {result.clustering.metric}")
    tbl.add_row("clusters", str(result.clustering.n_clusters or "uncut"))
    tbl.add_row("adjacent distance", f"{result.clustering.cost:.4g}")
    for p in result.outputs:
        tbl.add_row("wrote", str(p))
    console.print(tbl)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
