"""
Logging setup for the desk shell. Library modules only ever call
`logging.getLogger(__name__)`.
"""

from __future__ import annotations

import logging

FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: int | str = logging.INFO) -> None:
    """Route circulation's records to stderr at `level`."""
    logging.basicConfig(level=level, format=FORMAT, force=True)
    # Statement echo is controlled by the engine, not by the root level.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


__all__ = ("configure_logging", "FORMAT")
