"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/core/logging_setup.py

Rich logging for the CLI. All logs go to stderr so stdout stays free for
the summary tables.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbose: int = 0) -> None:
    """
    Levels: WARNING (no -v), INFO (-v), DEBUG (-vv).
    """
    root = logging.getLogger()
    # Reset any prior basicConfig/handlers
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(logging.DEBUG)  # let the handler decide what to emit

    level = (
        logging.WARNING
        if verbose == 0
        else (logging.INFO if verbose == 1 else logging.DEBUG)
    )
    handler = RichHandler(
        console=Console(file=sys.stderr),
        show_time=False,
        show_level=verbose > 1,
        show_path=False,
        rich_tracebacks=True,
        markup=True,
    )
    handler.setLevel(level)
    root.addHandler(handler)

    # Quiet noisy third-party libs unless very verbose
    for name in ("matplotlib", "PIL", "altair", "fontTools"):
        logging.getLogger(name).setLevel(
            logging.WARNING if verbose < 2 else logging.INFO
        )
