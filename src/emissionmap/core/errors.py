"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/core/errors.py

Every failure here aborts the run; nothing is recoverable mid-pipeline.
--------------------------------------------------------------------------------
"""

from __future__ import annotations


class EmissionMapError(RuntimeError):
    pass


class ConfigError(EmissionMapError):
    pass


class MalformedInputError(EmissionMapError):
    """An input file or emissions column name does not follow the expected format."""


class MissingAnnotationError(EmissionMapError):
    def __init__(self, genomes: list[str]):
        self.genomes = list(genomes)
        super().__init__(
            f"No species annotation for genome(s): {self.genomes}. "
            "Every genome named in the emissions header needs exactly one record "
            "in the species file."
        )


class DuplicateRankError(EmissionMapError):
    def __init__(self, collisions: dict[int, list[str]]):
        self.collisions = {int(k): list(v) for k, v in collisions.items()}
        shown = ", ".join(f"{rank}: {names}" for rank, names in sorted(self.collisions.items()))
        super().__init__(
            f"distanceToHuman must be unique per genome; shared ranks -> {shown}"
        )


class IncompletePairError(EmissionMapError):
    def __init__(self, genomes: list[str]):
        self.genomes = list(genomes)
        super().__init__(
            f"Genome(s) {self.genomes} have a '_matched' column but no '_aligned' column; "
            "matched probabilities cannot be corrected."
        )
