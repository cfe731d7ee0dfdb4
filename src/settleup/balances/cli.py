"""CLI commands for group balances, dashboards, export and archiving."""

import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ..config import load_settings
from ..db import Database
from ..exceptions import UnsettledBalancesError
from ..models import GroupBalances, LedgerFile, Money, SettlementKind
from .export import format_minor_units
from .service import BalanceService

app = typer.Typer(
    name="balances",
    help="Compute and settle group balances",
)

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def format_money(amount: Money, symbol: str, use_color: bool = True) -> str:
    """
    Format minor units in accounting style.

    Negative amounts use parentheses: (₹85.02)
    Positive amounts have spaces:      ₹85.02
    """
    formatted = format_minor_units(abs(amount), symbol, grouping=True)
    if amount < 0:
        return f"([red]{formatted}[/red])" if use_color else f"({formatted})"
    return f" [green]{formatted}[/green] " if use_color else f" {formatted} "


def _fail(error: Exception, verbose: bool):
    console.print(f"\n[bold red]Error:[/bold red] {error}")
    if verbose:
        raise error
    sys.exit(1)


def display_group_balances(
    report: GroupBalances, names: dict[str, str], symbol: str
):
    """Display net balances and debts of a group as tables."""
    console.print(f"\n[bold]{report.group.name}[/bold] [dim]({report.group.id})[/dim]")
    if report.group.is_archived:
        console.print("[yellow]This group is archived.[/yellow]")

    net_table = Table(title="Net Balances", show_header=True, header_style="bold magenta")
    net_table.add_column("User", style="cyan")
    net_table.add_column("Balance", justify="right", width=16)
    for user_id, amount in sorted(
        report.net_balances.items(), key=lambda item: item[1], reverse=True
    ):
        net_table.add_row(names.get(user_id, user_id), format_money(amount, symbol))
    console.print(net_table)

    mode = "Simplified Debts" if report.simplified else "Direct Debts"
    debt_table = Table(title=mode, show_header=True, header_style="bold magenta")
    debt_table.add_column("Owes", style="cyan")
    debt_table.add_column("To", style="cyan")
    debt_table.add_column("Amount", justify="right", width=16)
    for debt in report.debts:
        debt_table.add_row(
            names.get(debt.ower_id, debt.ower_id),
            names.get(debt.owee_id, debt.owee_id),
            format_money(debt.amount, symbol),
        )
    console.print(debt_table)

    if not report.debts:
        console.print("  [green]✓ Everyone is settled up[/green]")


@app.command()
def show(
    group_id: str = typer.Argument(..., help="Group to compute balances for"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Show who owes whom in a group.

    Groups with debt simplification enabled show the minimal set of
    settle-up payments; otherwise direct debts between members are shown.
    """
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = BalanceService(settings, db)

        report = service.group_balances(group_id)
        if report is None:
            console.print(f"[yellow]Group {group_id} not found.[/yellow]")
            return

        users = db.get_users(list(report.net_balances))
        names = {user_id: user.name for user_id, user in users.items()}
        display_group_balances(report, names, settings.currency_symbol)

        if settings.user_id is not None:
            own = service.group_user_balance(settings.user_id, group_id)
            if own is not None:
                console.print(
                    f"\n  Your balance: {format_money(own, settings.currency_symbol)}"
                )

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def dashboard(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show balances and spending across all of your groups."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = BalanceService(settings, db)
        symbol = settings.currency_symbol

        summary = service.dashboard(settings.user_id)
        if summary is None:
            console.print(
                "[yellow]No acting user configured. Set SETTLEUP_USER_ID.[/yellow]"
            )
            return

        console.print("\n[bold]Dashboard[/bold]")
        console.print(f"  Groups: {summary.group_count}")
        console.print(f"  You are owed: {format_money(summary.total_owed, symbol)}")
        console.print(f"  You owe:      {format_money(-summary.total_owe, symbol)}")
        console.print(f"  Net balance:  {format_money(summary.net_balance, symbol)}")
        console.print(
            f"  Spent in the last 30 days: "
            f"{format_minor_units(summary.monthly_spending, symbol, grouping=True)}"
        )

        for title, entries in (
            ("Owe You", summary.top_owed_by),
            ("You Owe", summary.top_owed_to),
        ):
            table = Table(title=title, show_header=True, header_style="bold magenta")
            table.add_column("User", style="cyan")
            table.add_column("Amount", justify="right", width=16)
            for entry in entries:
                table.add_row(entry.name, format_money(entry.amount, symbol))
            console.print(table)

        categories = Table(
            title="Spending by Category", show_header=True, header_style="bold magenta"
        )
        categories.add_column("Category", style="yellow")
        categories.add_column("Amount", justify="right", width=16)
        for item in summary.category_distribution:
            categories.add_row(item.category, format_money(item.amount, symbol))
        console.print(categories)

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def export(
    group_id: str = typer.Argument(..., help="Group to export"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write to this file instead of stdout"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Export a group's expenses, settlements and open balances."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = BalanceService(settings, db)

        text = service.export_group(settings.user_id, group_id)

        if output is None:
            typer.echo(text)
        else:
            output.write_text(text, encoding="utf-8")
            console.print(f"[green]✓ Exported group {group_id} to {output}[/green]")

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def archive(
    group_id: str = typer.Argument(..., help="Group to archive"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Archive a group. Only possible once every balance is settled."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = BalanceService(settings, db)

        group = service.archive_group(settings.user_id, group_id)
        console.print(f"[bold green]✓ Archived {group.name}[/bold green]")

    except UnsettledBalancesError as e:
        console.print(f"\n[yellow]⚠️  {e}[/yellow]")
        users = db.get_users(list(e.balances))
        for user_id, amount in e.balances.items():
            name = users[user_id].name if user_id in users else user_id
            console.print(
                f"  {name}: {format_money(amount, settings.currency_symbol)}"
            )
        sys.exit(1)
    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def unarchive(
    group_id: str = typer.Argument(..., help="Group to restore"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Restore an archived group."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = BalanceService(settings, db)

        group = service.unarchive_group(settings.user_id, group_id)
        console.print(f"[bold green]✓ Restored {group.name}[/bold green]")

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def settle(
    group_id: str = typer.Argument(..., help="Group the payment belongs to"),
    to: str = typer.Option(..., "--to", help="User receiving the payment"),
    amount: int = typer.Option(..., "--amount", help="Amount in minor units"),
    payer: str | None = typer.Option(
        None, "--from", help="Paying user (defaults to you)"
    ),
    adjustment: bool = typer.Option(
        False, "--adjustment", help="Record a balance adjustment instead of a payment"
    ),
    notes: str | None = typer.Option(None, "--notes", help="Optional note"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record a payment (or balance adjustment) between two members."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = BalanceService(settings, db)

        kind = SettlementKind.ADJUSTMENT if adjustment else SettlementKind.PAYMENT
        settlement = service.record_settlement(
            user_id=settings.user_id,
            group_id=group_id,
            payer_id=payer or settings.user_id or "",
            receiver_id=to,
            amount=amount,
            kind=kind,
            notes=notes,
        )
        console.print(
            f"[bold green]✓ Recorded {kind.label} of "
            f"{format_minor_units(amount, settings.currency_symbol, grouping=True)}"
            f"[/bold green] [dim]({settlement.id})[/dim]"
        )

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("import-ledger")
def import_ledger(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON ledger"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Load users, groups, expenses and settlements from a JSON file."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)

        ledger = LedgerFile.model_validate_json(path.read_text(encoding="utf-8"))
        counts = db.import_ledger(ledger, enforce_share_sum=settings.enforce_share_sum)

        summary = ", ".join(f"{count} {kind}" for kind, count in counts.items())
        console.print(f"[bold green]✓ Imported {summary}[/bold green]")

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()
