"""Package-wide defaults and logging setup."""

import logging
from dataclasses import dataclass


@dataclass(frozen=True)
class ClusteringDefaults:
    linkage: str = "average"
    # tolerances for the symmetry / zero-diagonal checks on input matrices
    symmetry_rtol: float = 1e-9
    symmetry_atol: float = 1e-12
    # relative gap under which two merge distances count as tied
    tie_rtol: float = 1e-9
    log_level: str = "WARNING"


DEFAULTS = ClusteringDefaults()


def configure_logging(level: str = DEFAULTS.log_level) -> None:
    """
    Configure root logging for scripts and examples.

    The library itself never attaches handlers; call this from an entry point.

    @param level: logging level name, e.g. 'DEBUG' or 'INFO'
    @return: None
    @raises ValueError: if the level name is unknown
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
