"""Mini README: Entry point CLI for the budgetledger service.

This script exposes a Typer CLI that starts the FastAPI JSON service with
configurable host, port and production flags, and runs the balance repair
sweep against the JSON record store. Settings are read from
``BUDGETLEDGER_`` environment variables when available.
"""

from __future__ import annotations

import typer
import uvicorn

from budgetledger.configuration import get_settings
from budgetledger.ledger import BalanceEngine, JsonFileLedgerStore
from budgetledger.logging_utils import configure_root_logger

cli = typer.Typer(help="Run and maintain the budgetledger service.")


@cli.command()
def run(
    host: str = typer.Option(None, help="Host interface to bind."),
    port: int = typer.Option(None, help="Port to listen on."),
    production: bool = typer.Option(
        False, help="Use production server settings (disable auto-reload)."
    ),
) -> None:
    """Start the FastAPI application using uvicorn."""

    settings = get_settings()
    effective_host = host or settings.interface_host
    effective_port = port or settings.interface_port
    configure_root_logger(settings.log_level)

    # Browsers cannot open the 0.0.0.0 sentinel; point them at localhost.
    browser_host = "127.0.0.1" if effective_host in {"0.0.0.0", "::"} else effective_host
    typer.echo(
        f"Starting budgetledger on {effective_host}:{effective_port}.\n"
        f"API docs at http://{browser_host}:{effective_port}/docs"
    )
    uvicorn.run(
        "budgetledger.interface.web_app:create_application",
        host=effective_host,
        port=effective_port,
        factory=True,
        reload=not production,
    )


@cli.command()
def recalculate(
    user_id: str = typer.Option(..., "--user-id", help="User whose balances are replayed."),
) -> None:
    """Replay every account balance of a user from the ledger."""

    settings = get_settings()
    configure_root_logger(settings.log_level)
    store = JsonFileLedgerStore(settings.store_path)
    accounts = BalanceEngine(store).recalculate_all(user_id)
    for account in accounts:
        typer.echo(f"{account.account_id}\t{account.name}\t{account.current_balance:.2f}")
    typer.echo(f"Recalculated {len(accounts)} accounts for {user_id}.")


if __name__ == "__main__":
    cli()
