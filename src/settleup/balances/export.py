"""Text export of a group's expenses, settlements and open balances."""

import csv
import io
import logging
from collections.abc import Mapping, Sequence

from ..models import Expense, Money, Settlement, User
from .pairwise import resolve_pairwise

logger = logging.getLogger(__name__)

# Direct debts up to 50 minor units are left out of the export.
EXPORT_DUST_THRESHOLD: Money = 50


def format_minor_units(amount: Money, symbol: str = "", grouping: bool = False) -> str:
    """
    Render minor units as a decimal string without going through floats.

    Example:
        format_minor_units(123456, "₹", grouping=True) -> "₹1,234.56"
    """
    sign = "-" if amount < 0 else ""
    whole, cents = divmod(abs(amount), 100)
    whole_str = f"{whole:,}" if grouping else str(whole)
    return f"{sign}{symbol}{whole_str}.{cents:02d}"


def _quote(name: str) -> str:
    """Quote a name the way the csv writer does, doubling embedded quotes."""
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


def export_group_csv(
    expenses: Sequence[Expense],
    settlements: Sequence[Settlement],
    users: Mapping[str, User],
    currency_symbol: str = "₹",
) -> str:
    """
    Render a group's history as CSV-style text.

    Three sections are produced: expenses (newest first), settlements (newest
    first), and the direct debts between members that are still open.
    """

    def name_of(user_id: str | None) -> str:
        user = users.get(user_id) if user_id else None
        return user.name if user else "Unknown"

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    writer.writerow(["--- EXPENSES ---"])
    writer.writerow(
        ["Date", "Description", "Amount", "Category", "Paid By", "Split Details", "Notes"]
    )
    for expense in sorted(expenses, key=lambda e: e.date, reverse=True):
        split_details = "; ".join(
            f"{name_of(share.user_id)}: {format_minor_units(share.amount)}"
            for share in expense.shares
        )
        writer.writerow(
            [
                expense.date.date().isoformat(),
                expense.description,
                format_minor_units(expense.amount),
                expense.category.value,
                name_of(expense.payer_id),
                split_details,
                expense.notes or "",
            ]
        )

    writer.writerow([])
    writer.writerow(["--- SETTLEMENTS ---"])
    writer.writerow(["Date", "From", "To", "Amount", "Type"])
    for settlement in sorted(settlements, key=lambda s: s.created_at, reverse=True):
        writer.writerow(
            [
                settlement.created_at.date().isoformat(),
                name_of(settlement.payer_id),
                name_of(settlement.receiver_id),
                format_minor_units(settlement.amount),
                settlement.kind.value,
            ]
        )

    writer.writerow([])
    writer.writerow(["--- CURRENT BALANCES ---"])
    balances = resolve_pairwise(expenses, settlements, threshold=EXPORT_DUST_THRESHOLD)
    lines = [buffer.getvalue()]
    for balance in balances:
        amount = format_minor_units(balance.amount, currency_symbol)
        ower = _quote(name_of(balance.ower_id))
        owee = _quote(name_of(balance.owee_id))
        lines.append(f"{ower} owes {owee} {amount}\n")

    logger.debug(
        f"Exported {len(expenses)} expenses, {len(settlements)} settlements, "
        f"{len(balances)} open balances"
    )
    return "".join(lines)
