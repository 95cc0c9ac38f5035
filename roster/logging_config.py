"""
Logging configuration for roster.

Quiet by default; --verbose (or ROSTER_VERBOSE=1) turns on debug output,
and every open store keeps a rotating operations log.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


def configure_quiet_mode(quiet: bool = True):
    """
    Keep library output down to warnings.

    Args:
        quiet: If True, drop roster info chatter. If False, leave
            the logging setup untouched.
    """
    if quiet:
        logging.getLogger("roster").setLevel(logging.WARNING)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    logging.getLogger("roster").setLevel(logging.DEBUG)


def configure_ops_log(store_path):
    """Configure a persistent operations log for a roster store.

    Writes to {store_path}/roster-ops.log using a rotating file handler
    (1MB max, 3 backups). Always active regardless of --verbose.
    Returns the handler so it can be removed on close().
    """
    path = Path(store_path)
    path.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        str(path / "roster-ops.log"),
        maxBytes=1_000_000,
        backupCount=3,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    roster_logger = logging.getLogger("roster")
    roster_logger.addHandler(handler)
    # Ensure roster logger allows INFO through even in quiet mode
    if roster_logger.level == logging.NOTSET or roster_logger.level > logging.INFO:
        roster_logger.setLevel(logging.INFO)

    return handler
