"""Logging configuration for sitecoord with finding/check verbosity levels."""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

# Custom levels between the standard ones
FINDINGS_LEVEL = 25  # Between INFO (20) and WARNING (30) - one line per finding
CHECKS_LEVEL = 15  # Between DEBUG (10) and INFO (20) - one line per comparison

logging.addLevelName(FINDINGS_LEVEL, "FINDINGS")
logging.addLevelName(CHECKS_LEVEL, "CHECKS")

VERBOSITY_QUIET = 0  # Warnings and errors only
VERBOSITY_FINDINGS = 1
VERBOSITY_CHECKS = 2
VERBOSITY_DEBUG = 3


class SitecoordLogger(logging.Logger):
    """Logger with semantic methods matching the CLI verbosity levels.

    - findings(): verbosity 1 - each overlap, conflict and candidate
    - checks(): verbosity 2 - each comparison the detectors make
    - debug(): verbosity 3 - everything else
    """

    def findings(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a detected finding (verbosity level 1)."""
        if self.isEnabledFor(FINDINGS_LEVEL):
            self._log(FINDINGS_LEVEL, msg, args, **kwargs)

    def checks(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a comparison (verbosity level 2)."""
        if self.isEnabledFor(CHECKS_LEVEL):
            self._log(CHECKS_LEVEL, msg, args, **kwargs)


def get_logger() -> SitecoordLogger:
    """Get the sitecoord logger instance (singleton).

    Use setup_logger() to configure it before first use.
    """
    logging.setLoggerClass(SitecoordLogger)
    logger = logging.getLogger("sitecoord")
    assert isinstance(logger, SitecoordLogger)
    return logger


def setup_logger(verbosity: int, stream: TextIO | None = None) -> None:
    """Configure the sitecoord logger with a verbosity level.

    Can be called multiple times to reconfigure the logger.

    Args:
        verbosity: 0=warnings only, 1=findings, 2=checks, 3=debug
        stream: Optional output stream (defaults to sys.stderr, useful for testing)
    """
    logger = get_logger()
    logger.handlers.clear()

    level_map = {
        VERBOSITY_QUIET: logging.WARNING,
        VERBOSITY_FINDINGS: FINDINGS_LEVEL,
        VERBOSITY_CHECKS: CHECKS_LEVEL,
        VERBOSITY_DEBUG: logging.DEBUG,
    }
    logger.setLevel(level_map.get(verbosity, logging.WARNING))

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def reset_logger() -> None:
    """Reset the logger to a clean state (used between tests)."""
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    logger.propagate = True

