"""Mini README: Core package initializer for the budgetledger engine.

This module exposes convenience imports so presentation layers can reach
the ledger and analytics services without knowing the exact module
structure. Heavy optional dependencies (FastAPI, uvicorn) are imported
only by the ``interface`` package.
"""

from .logging_utils import get_logger

__all__ = ["get_logger"]
