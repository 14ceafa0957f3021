"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/io/read.py

Readers for the two inputs: the emissions TSV and the species annotation
mapping (JSON or YAML). Both are validated on the way in.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Tuple

import numpy as np
import pandas as pd
import yaml
from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

from ..core.config import StrictLoader
from ..core.errors import MalformedInputError
from .columns import EmissionColumn, parse_columns

logger = logging.getLogger(__name__)

SPECIES_FIELDS = ["common_name", "group", "distance_to_human"]


def _require_file(path: Path, what: str) -> Path:
    p = Path(path)
    if not p.is_file():
        raise MalformedInputError(f"{what} file not found: {p}")
    return p


def read_emissions(path: Path) -> Tuple[pd.DataFrame, List[EmissionColumn]]:
    """
    Load the emissions matrix. The first column is the state id and becomes the
    index; every other column must be `<genome>_aligned|matched` holding
    probabilities in [0, 1].
    """
    p = _require_file(path, "Emissions")
    # Read the raw header first: pandas would silently mangle duplicates to 'x.1'.
    try:
        header = pd.read_csv(
            p, sep="\t", header=None, nrows=1, dtype=str, na_filter=False
        ).iloc[0]
    except (pd.errors.EmptyDataError, IndexError) as e:
        raise MalformedInputError(f"Emissions file is empty: {p}") from e
    header = [str(h).strip() for h in header.tolist()]
    if len(header) < 2:
        raise MalformedInputError(
            f"Emissions file must have a state column and at least one emission column "
            f"(tab-separated); header has {len(header)} field(s): {p}"
        )
    columns = parse_columns(header[1:])

    try:
        df = pd.read_csv(p, sep="\t", header=0, dtype=str)
    except pd.errors.ParserError as e:
        raise MalformedInputError(f"Emissions file is not a consistent TSV table: {p}: {e}") from e
    df.columns = header
    state_col = header[0]
    df = df.set_index(state_col)
    df.index = df.index.astype(str).str.strip()
    if df.empty:
        raise MalformedInputError(f"Emissions table has no states: {p}")
    if df.index.duplicated().any():
        dupes = df.index[df.index.duplicated()].unique().tolist()[:5]
        raise MalformedInputError(f"Duplicated state id(s) in '{state_col}': {dupes}")

    values = df.apply(pd.to_numeric, errors="coerce")
    bad_mask = values.isna().to_numpy() | ~np.isfinite(values.to_numpy(dtype="float64"))
    if bad_mask.any():
        rows, cols = np.nonzero(bad_mask)
        sample = [
            {"state": str(df.index[r]), "column": str(df.columns[c]), "value": df.iat[r, c]}
            for r, c in list(zip(rows, cols))[:5]
        ]
        raise MalformedInputError(
            f"Emissions table has {int(bad_mask.sum())} non-numeric or non-finite value(s). "
            f"First offenders: {sample}"
        )
    values = values.astype("float64")
    arr = values.to_numpy()
    out_of_range = (arr < 0.0) | (arr > 1.0)
    if out_of_range.any():
        rows, cols = np.nonzero(out_of_range)
        sample = [
            {"state": str(values.index[r]), "column": str(values.columns[c]), "value": float(arr[r, c])}
            for r, c in list(zip(rows, cols))[:5]
        ]
        raise MalformedInputError(
            f"Emission probabilities must lie in [0, 1]; {int(out_of_range.sum())} value(s) do not. "
            f"First offenders: {sample}"
        )
    values.index.name = state_col
    logger.info(
        "Loaded emissions: %d state(s) × %d column(s) from %s",
        values.shape[0],
        values.shape[1],
        p,
    )
    return values, columns


class SpeciesRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)
    common_name: str = Field(alias="commonName", min_length=1)
    group: str = Field(min_length=1)
    distance_to_human: StrictInt = Field(alias="distanceToHuman", ge=0)


def _no_duplicate_keys(pairs):
    out = {}
    for key, value in pairs:
        if key in out:
            raise KeyError(f"Duplicate key in JSON: {key!r}")
        out[key] = value
    return out


def _load_mapping(p: Path) -> dict:
    suffix = p.suffix.lower()
    text = p.read_text(encoding="utf-8")
    try:
        if suffix == ".json":
            raw = json.loads(text, object_pairs_hook=_no_duplicate_keys)
        elif suffix in (".yaml", ".yml"):
            raw = yaml.load(text, Loader=StrictLoader)
        else:
            raise MalformedInputError(
                f"Unsupported species annotation format {suffix!r} (use .json, .yaml or .yml): {p}"
            )
    except KeyError as e:
        raise MalformedInputError(f"{e.args[0]} in species annotation {p}; each genome needs exactly one record.") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise MalformedInputError(f"Could not parse species annotation {p}: {e}") from e
    if not isinstance(raw, dict) or not raw:
        raise MalformedInputError(
            f"Species annotation must be a non-empty mapping keyed by genome name: {p}"
        )
    return raw


def read_species(path: Path) -> pd.DataFrame:
    """Return a table indexed by genome with common_name, group, distance_to_human."""
    p = _require_file(path, "Species annotation")
    raw = _load_mapping(p)
    rows = {}
    for genome, record in raw.items():
        if not isinstance(record, dict):
            raise MalformedInputError(
                f"Species record for {genome!r} must be a mapping, got {type(record).__name__}."
            )
        try:
            rec = SpeciesRecord.model_validate(record)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise MalformedInputError(f"Invalid species record for {genome!r}: {problems}") from e
        rows[str(genome)] = rec.model_dump()
    species = pd.DataFrame.from_dict(rows, orient="index", columns=SPECIES_FIELDS)
    species.index.name = "genome"
    species["distance_to_human"] = species["distance_to_human"].astype("int64")
    logger.info("Loaded %d species annotation record(s) from %s", len(species), p)
    return species
