"""Mini README: Outer interfaces (JSON web service) for budgetledger.

Exports the FastAPI application factory. The Typer CLI in
``main_budget_service.py`` launches it through uvicorn.
"""

from .web_app import create_application

__all__ = ["create_application"]
