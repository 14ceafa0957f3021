"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/core/config.py

Render job schema and YAML loader. A job can come from a file, from CLI flags,
or from a file with CLI overrides on top.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from matplotlib.backend_bases import FigureCanvasBase
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

Metric = Literal[
    "euclidean",
    "sqeuclidean",
    "cityblock",
    "chebyshev",
    "cosine",
    "correlation",
    "braycurtis",
]
LinkageMethod = Literal["single", "complete", "average", "weighted", "ward"]


# ---- Strict YAML loader (duplicate keys fail fast) ----
class StrictLoader(yaml.SafeLoader):
    pass


def _construct_mapping(loader, node, deep: bool = False):
    mapping: Dict[Any, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise KeyError(f"Duplicate key in YAML: {key!r}")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


StrictLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_mapping
)


# ---- path helpers ----
def _expand(p: str | os.PathLike) -> Path:
    return Path(os.path.expanduser(os.path.expandvars(str(p))))


def resolve_path_like(base_dir: Path, value: str | os.PathLike) -> Path:
    p = _expand(value)
    return p if p.is_absolute() else (base_dir / p).resolve()


# ---- schema ----
class InputsBlock(BaseModel):
    model_config = ConfigDict(extra="forbid")
    emissions: Path
    species: Path


class ClusteringBlock(BaseModel):
    model_config = ConfigDict(extra="forbid")
    # 0 disables the flat cut
    n_clusters: int = Field(default=0, ge=0)
    metric: Metric = "euclidean"
    method: LinkageMethod = "average"
    optimal_ordering: bool = True


class HeatmapBlock(BaseModel):
    model_config = ConfigDict(extra="forbid")
    title: Optional[str] = None
    cmap: str = "vlag"
    center: float = Field(default=0.5, gt=0.0, lt=1.0)
    annotate: bool = True
    fmt: str = ".2f"
    label_rotation: float = Field(default=45.0, ge=0.0, le=90.0)
    # inches per heatmap cell
    cell_width: float = Field(default=0.45, gt=0.0, le=4.0)
    cell_height: float = Field(default=0.32, gt=0.0, le=4.0)
    # gap size in cell units between aligned|matched blocks and between row clusters
    block_gap: float = Field(default=0.6, ge=0.0, le=5.0)
    dendrogram_width: float = Field(default=1.6, ge=0.0, le=10.0)
    font_scale: float = Field(default=1.0, ge=0.5, le=3.0)
    dpi: int = Field(default=200, ge=50, le=1200)

    @field_validator("fmt")
    @classmethod
    def _valid_fmt(cls, v: str):
        try:
            format(0.5, v)
        except ValueError as e:
            raise ValueError(f"Invalid number format {v!r}: {e}") from e
        return v


class OutputsBlock(BaseModel):
    model_config = ConfigDict(extra="forbid")
    figure: Path
    html: Optional[Path] = None
    table: Optional[Path] = None

    @field_validator("figure")
    @classmethod
    def _supported_figure_format(cls, v: Path):
        suffix = v.suffix.lower().lstrip(".")
        supported = FigureCanvasBase.get_supported_filetypes()
        if suffix not in supported:
            raise ValueError(
                f"Unsupported figure format {v.suffix or '(none)'!r}; use one of: "
                + ", ".join(sorted(supported))
            )
        return v


class RenderJob(BaseModel):
    model_config = ConfigDict(extra="forbid")
    inputs: InputsBlock
    outputs: OutputsBlock
    clustering: ClusteringBlock = Field(default_factory=ClusteringBlock)
    heatmap: HeatmapBlock = Field(default_factory=HeatmapBlock)

    def resolved(self, base_dir: Path) -> "RenderJob":
        """Return a copy with every path anchored at `base_dir`."""
        inputs = self.inputs.model_copy(
            update={
                "emissions": resolve_path_like(base_dir, self.inputs.emissions),
                "species": resolve_path_like(base_dir, self.inputs.species),
            }
        )
        outputs = self.outputs.model_copy(
            update={
                k: resolve_path_like(base_dir, v)
                for k, v in self.outputs.model_dump().items()
                if v is not None
            }
        )
        return self.model_copy(update={"inputs": inputs, "outputs": outputs})


def _format_validation_error(e: ValidationError) -> str:
    lines = []
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()))
        lines.append(f"  • {loc or '<root>'}: {err.get('msg')}")
    return "\n".join(lines)


def build_job(raw: Dict[str, Any], base_dir: Path | None = None) -> RenderJob:
    try:
        job = RenderJob.model_validate(raw)
    except ValidationError as e:
        raise ConfigError("Invalid render job:\n" + _format_validation_error(e)) from e
    return job.resolved(base_dir or Path.cwd())


def load_job(path: Path, overrides: Dict[str, Dict[str, Any]] | None = None) -> RenderJob:
    """
    Load a job YAML. `overrides` is a {block: {key: value}} mapping (CLI flags);
    None values are ignored so unset flags never clobber the file.
    """
    path = _expand(path)
    if not path.exists():
        raise ConfigError(f"Job file not found: {path}")
    try:
        raw = yaml.load(path.read_text(encoding="utf-8"), Loader=StrictLoader) or {}
    except KeyError as e:
        raise ConfigError(f"{e.args[0]} in {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse job YAML {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Job file must contain a mapping at the top level: {path}")
    merged = merge_overrides(raw, overrides or {})
    return build_job(merged, base_dir=path.resolve().parent)


def merge_overrides(
    raw: Dict[str, Any], overrides: Dict[str, Dict[str, Any]]
) -> Dict[str, Any]:
    out = {k: (dict(v) if isinstance(v, dict) else v) for k, v in raw.items()}
    for block, values in overrides.items():
        kept = {k: v for k, v in values.items() if v is not None}
        if not kept:
            continue
        current = out.get(block) or {}
        if not isinstance(current, dict):
            raise ConfigError(f"Job block '{block}' must be a mapping.")
        out[block] = {**current, **kept}
    return out
