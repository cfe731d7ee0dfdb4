"""CLI for SettleUp."""

import typer

from .balances.cli import app as balances_app
from .mcp_server import run_server

app = typer.Typer(
    name="settleup",
    help="Shared-expense balances: who owes whom, and how to settle up",
)

app.add_typer(balances_app, name="balances", help="Group balances and settle-ups")


@app.command()
def mcp():
    """Start the MCP server."""
    run_server()


if __name__ == "__main__":
    app()
