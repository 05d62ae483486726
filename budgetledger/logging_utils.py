"""Mini README: Application-wide logging helpers for budgetledger.

Structure:
    * get_logger - factory that configures structured logging for modules.
    * configure_root_logger - optional helper to adjust global logging level.

Usage:
    Modules import ``get_logger`` to create contextual loggers that include
    module names. Ledger commands log at INFO, derivations at DEBUG and
    swallowed secondary failures (for example a balance adjustment on a
    deleted account) at WARNING. Configuration is performed exactly once so
    reloading modules in development does not duplicate handlers.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

_LOGGER_INITIALISED = False


def configure_root_logger(level: Union[int, str] = logging.INFO) -> None:
    """Configure the root logger with a ledger-friendly formatter."""

    global _LOGGER_INITIALISED
    resolved = level.upper() if isinstance(level, str) else level
    if _LOGGER_INITIALISED:
        logging.getLogger().setLevel(resolved)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)
    root_logger.addHandler(handler)
    _LOGGER_INITIALISED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module-specific logger ensuring baseline configuration."""

    if not _LOGGER_INITIALISED:
        configure_root_logger()
    return logging.getLogger(name)
