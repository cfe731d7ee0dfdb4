"""MCP server for SettleUp: exposes group balances and dashboards as tools."""

import logging
from dataclasses import dataclass

from mcp.server.fastmcp import FastMCP

from .balances.export import format_minor_units
from .balances.service import BalanceService
from .config import Settings, load_settings
from .db import Database
from .exceptions import SettleUpError, UnsettledBalancesError
from .models import Money

logger = logging.getLogger(__name__)

mcp_app = FastMCP("settleup")

# ---------------------------------------------------------------------------
# Session state: one MCP server process = one conversation
# ---------------------------------------------------------------------------

WORKFLOW_INSTRUCTIONS = """\
You are helping a user understand and settle shared expenses. Follow this workflow:

1. DISCOVER: Call list_groups to see the user's groups and pick the one they mean.

2. BALANCES: Call group_balances for that group. Explain who owes whom.
   Simplified groups show the fewest payments that settle everyone; other
   groups show direct debts between the people who actually shared expenses.

3. OVERVIEW: Call dashboard when the user asks about their overall position
   or spending across groups.

4. ARCHIVE: Only call archive_group when the user explicitly asks. If it is
   rejected because of unsettled balances, show who still owes what.

Amounts are shown in the configured currency. Positive = owed to the user, \
negative = the user owes.\
"""


@dataclass
class SessionState:
    """Holds the lazily created service between MCP tool calls."""

    service: BalanceService | None = None
    settings: Settings | None = None


_state = SessionState()


def _ensure_service() -> BalanceService:
    """Lazily initialize the BalanceService (loads .env config)."""
    if _state.service is None:
        _state.settings = load_settings()
        db = Database(_state.settings.database_path)
        _state.service = BalanceService(_state.settings, db)
    return _state.service


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _format_amount(amount: Money) -> str:
    """Format minor units as an accounting-style string."""
    symbol = _state.settings.currency_symbol if _state.settings else ""
    formatted = format_minor_units(abs(amount), symbol, grouping=True)
    return f"({formatted})" if amount < 0 else formatted


def _names(service: BalanceService, user_ids) -> dict[str, str]:
    users = service.db.get_users(list(dict.fromkeys(user_ids)))
    return {user_id: user.name for user_id, user in users.items()}


# ---------------------------------------------------------------------------
# MCP Tools
# ---------------------------------------------------------------------------


@mcp_app.tool()
def list_groups() -> str:
    """List the groups the configured user belongs to."""
    try:
        service = _ensure_service()
        assert _state.settings is not None

        groups = service.list_groups(_state.settings.user_id)
        if not groups:
            return "No groups found."

        lines = ["Groups:"]
        for group in groups:
            flags = []
            if not group.simplify_debts:
                flags.append("pairwise")
            if group.is_archived:
                flags.append("archived")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            lines.append(f"  - {group.id}: {group.name}{suffix}")
        return "\n".join(lines)
    except SettleUpError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to list groups: {e}"


@mcp_app.tool()
def group_balances(group_id: str) -> str:
    """Show net balances and who owes whom in a group.

    Args:
        group_id: ID of the group (see list_groups).
    """
    try:
        service = _ensure_service()
        report = service.group_balances(group_id)
        if report is None:
            return f"Group {group_id} not found."

        names = _names(service, report.net_balances)
        lines = [f"Balances for {report.group.name}:"]
        for user_id, amount in report.net_balances.items():
            lines.append(f"  {names.get(user_id, user_id)}: {_format_amount(amount)}")

        mode = "Simplified payments" if report.simplified else "Direct debts"
        lines.append("")
        lines.append(f"{mode}:")
        if not report.debts:
            lines.append("  Everyone is settled up.")
        for debt in report.debts:
            lines.append(
                f"  {names.get(debt.ower_id, debt.ower_id)} owes "
                f"{names.get(debt.owee_id, debt.owee_id)} {_format_amount(debt.amount)}"
            )
        return "\n".join(lines)
    except SettleUpError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to compute balances: {e}"


@mcp_app.tool()
def my_balance(group_id: str) -> str:
    """Show the configured user's own net balance in a group.

    Args:
        group_id: ID of the group.
    """
    try:
        service = _ensure_service()
        assert _state.settings is not None

        balance = service.group_user_balance(_state.settings.user_id, group_id)
        if balance is None:
            return "No balance available (no configured user or unknown group)."
        return f"Your balance in {group_id}: {_format_amount(balance)}"
    except SettleUpError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to compute balance: {e}"


@mcp_app.tool()
def dashboard() -> str:
    """Summarize balances and spending across all of the user's groups."""
    try:
        service = _ensure_service()
        assert _state.settings is not None

        summary = service.dashboard(_state.settings.user_id)
        if summary is None:
            return "No dashboard available: SETTLEUP_USER_ID is not configured."

        lines = [
            "Dashboard:",
            f"  Groups: {summary.group_count}",
            f"  Owed to you: {_format_amount(summary.total_owed)}",
            f"  You owe: {_format_amount(summary.total_owe)}",
            f"  Net: {_format_amount(summary.net_balance)}",
            f"  Spent in the last 30 days: {_format_amount(summary.monthly_spending)}",
            "",
            "Owe you:",
        ]
        lines.extend(
            f"  - {entry.name}: {_format_amount(entry.amount)}"
            for entry in summary.top_owed_by
        )
        lines.append("You owe:")
        lines.extend(
            f"  - {entry.name}: {_format_amount(entry.amount)}"
            for entry in summary.top_owed_to
        )
        lines.append("Spending by category:")
        lines.extend(
            f"  - {item.category}: {_format_amount(item.amount)}"
            for item in summary.category_distribution
        )
        return "\n".join(lines)
    except SettleUpError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to build dashboard: {e}"


@mcp_app.tool()
def export_group(group_id: str) -> str:
    """Export a group's expenses, settlements and open balances as CSV text.

    Args:
        group_id: ID of the group.
    """
    try:
        service = _ensure_service()
        assert _state.settings is not None
        return service.export_group(_state.settings.user_id, group_id)
    except SettleUpError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to export group: {e}"


@mcp_app.tool()
def archive_group(group_id: str) -> str:
    """Archive a group. Rejected while anyone still has an unsettled balance.

    Args:
        group_id: ID of the group.
    """
    try:
        service = _ensure_service()
        assert _state.settings is not None

        group = service.archive_group(_state.settings.user_id, group_id)
        return f"Archived {group.name}."
    except UnsettledBalancesError as e:
        names = _names(service, e.balances)
        lines = [f"Error: {e}"]
        for user_id, amount in e.balances.items():
            lines.append(f"  {names.get(user_id, user_id)}: {_format_amount(amount)}")
        return "\n".join(lines)
    except SettleUpError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to archive group: {e}"


# ---------------------------------------------------------------------------
# MCP Prompt
# ---------------------------------------------------------------------------


@mcp_app.prompt()
def balances_workflow() -> str:
    """Instructions for walking a user through their balances."""
    return WORKFLOW_INSTRUCTIONS


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_server():
    """Start the MCP server (stdio transport)."""
    mcp_app.run(transport="stdio")
