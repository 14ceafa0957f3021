"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/util/warnings.py

Keep third-party warning noise contained.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import warnings


def configure(verbose: bool = False) -> None:
    if not verbose:
        # seaborn/pandas deprecation chatter on import and palette calls
        warnings.filterwarnings("ignore", category=FutureWarning, module=r"^seaborn")
        warnings.filterwarnings("ignore", category=FutureWarning, module=r"^pandas")
        # altair schema deprecations (vl-convert / schema wrapper)
        warnings.filterwarnings("ignore", category=DeprecationWarning, module=r"^altair")
