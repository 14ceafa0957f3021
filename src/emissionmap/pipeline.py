"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/pipeline.py

Straight-line batch run: read → validate → correct → reorder → cluster →
render. Every check happens before the first output is written, so a failing
run leaves nothing behind.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import pandas as pd

from .algo.hierarchy import RowClustering, cluster_boundaries, cluster_rows
from .core.config import RenderJob
from .core.errors import ConfigError, EmissionMapError, IncompletePairError
from .io.columns import EmissionColumn, columns_frame
from .io.read import read_emissions, read_species
from .transforms.correct import correct_matched, find_incomplete_pairs
from .transforms.reorder import annotate_columns, order_columns

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    emissions: pd.DataFrame
    columns: List[EmissionColumn]
    annotated: pd.DataFrame
    species: pd.DataFrame

    @property
    def n_states(self) -> int:
        return int(self.emissions.shape[0])

    @property
    def genomes(self) -> List[str]:
        return list(dict.fromkeys(c.genome for c in self.columns))

    @property
    def unused_species(self) -> List[str]:
        used = set(self.genomes)
        return [g for g in self.species.index if g not in used]


@dataclass
class RenderResult:
    table: pd.DataFrame  # corrected, columns in display order, rows in display order
    layout: pd.DataFrame
    clustering: RowClustering
    outputs: List[Path] = field(default_factory=list)

    @property
    def boundaries(self) -> List[int]:
        return cluster_boundaries(self.clustering.labels_in_order())


def validate(job: RenderJob) -> ValidationReport:
    """Ingest both inputs and run every structural check without transforming anything."""
    emissions, columns = read_emissions(job.inputs.emissions)
    species = read_species(job.inputs.species)
    annotated = annotate_columns(columns_frame(columns), species)
    incomplete = find_incomplete_pairs(columns)
    if incomplete:
        raise IncompletePairError(incomplete)
    return ValidationReport(emissions=emissions, columns=columns, annotated=annotated, species=species)


def transform(report: ValidationReport, job: RenderJob) -> RenderResult:
    corrected = correct_matched(report.emissions, report.columns)
    ordered, layout = order_columns(corrected, report.annotated)
    c = job.clustering
    clustering = cluster_rows(
        ordered.to_numpy(),
        metric=c.metric,
        method=c.method,
        n_clusters=c.n_clusters,
        optimal_ordering=c.optimal_ordering,
    )
    return RenderResult(table=ordered, layout=layout, clustering=clustering)


def write_table(
    frame: pd.DataFrame, layout: pd.DataFrame, clustering: RowClustering, out: Path
) -> Path:
    """Processed table as TSV: rows in display order, a cluster column, then emission columns."""
    if list(layout["name"]) != list(frame.columns):
        raise EmissionMapError("Column layout does not match the table's column order.")
    table = frame.iloc[clustering.order].copy()
    labels = clustering.labels_in_order()
    table.insert(0, "cluster", labels if labels is not None else 0)
    out = Path(out)
    out.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(out, sep="\t", float_format="%.6g")
    logger.info("Saved processed table to %s", out)
    return out


def check_output_paths(job: RenderJob) -> None:
    """Fail before rendering if any output location is unusable; creates nothing."""
    for what, p in job.outputs.model_dump().items():
        if p is None:
            continue
        p = Path(p)
        if p.is_dir():
            raise ConfigError(f"Output {what} path is a directory: {p}")
        parent = p.parent
        while not parent.exists() and parent != parent.parent:
            parent = parent.parent
        if not parent.is_dir():
            raise ConfigError(f"Cannot create output {what} under {p.parent}: {parent} is not a directory.")


def run(job: RenderJob, report: Optional[ValidationReport] = None) -> RenderResult:
    # plotting stacks load lazily so `validate` stays light
    from .plots.heatmap import plot_emission_heatmap

    report = report or validate(job)
    check_output_paths(job)
    result = transform(report, job)

    result.outputs.append(
        plot_emission_heatmap(
            result.table, result.layout, result.clustering, job.outputs.figure, job.heatmap
        )
    )
    if job.outputs.html is not None:
        from .plots.interactive import write_interactive_heatmap

        result.outputs.append(
            write_interactive_heatmap(
                result.table, result.layout, result.clustering, job.outputs.html, job.heatmap
            )
        )
    if job.outputs.table is not None:
        result.outputs.append(write_table(result.table, result.layout, result.clustering, job.outputs.table))
    return result
