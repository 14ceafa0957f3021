"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/__init__.py

emissionmap: annotated, clustered heatmaps of HMM emission probability tables.
--------------------------------------------------------------------------------
"""

__version__ = "0.1.0"

__all__ = ["cli", "core", "io", "transforms", "algo", "plots", "pipeline", "util"]
