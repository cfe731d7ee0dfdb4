"""Cross-group dashboard rollup for a single user."""

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime, timedelta

from ..models import (
    CategorySpending,
    CounterpartyBalance,
    Dashboard,
    Expense,
    Money,
    Settlement,
    User,
)

logger = logging.getLogger(__name__)

DASHBOARD_WINDOW_DAYS = 30
DASHBOARD_TOP_N = 5

UNKNOWN_NAME = "Unknown"


class _CounterpartyLedger:
    """Running balance between the dashboard user and everyone they share with."""

    def __init__(self, users: Mapping[str, User]):
        self.users = users
        self.amounts: dict[str, Money] = {}

    def add(self, counterparty_id: str, amount: Money) -> None:
        self.amounts[counterparty_id] = self.amounts.get(counterparty_id, 0) + amount

    def name_of(self, user_id: str) -> str:
        user = self.users.get(user_id)
        return user.name if user else UNKNOWN_NAME


def _as_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with ``now``."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def build_dashboard(
    user_id: str | None,
    group_ids: Sequence[str],
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
    users: Mapping[str, User],
    now: datetime | None = None,
) -> Dashboard | None:
    """
    Aggregate balances and spending across every group a user belongs to.

    Balances are tracked per counterparty rather than per group: an expense
    the user paid makes each other share user owe them their share, and an
    expense someone else paid makes the user owe that payer their own share.
    Settlements between the user and a counterparty adjust that pair.

    Monthly spending is the user's own share of every expense dated in the
    trailing window, whoever paid. Category totals are global (full expense
    amounts, not the user's share).

    Args:
        user_id: Requesting user; None yields None rather than an error
        group_ids: Groups the user is a member of
        expenses: Expenses of all those groups, each with its shares
        settlements: Settlements of all those groups
        users: User records for counterparty display names
        now: Reference time for the spending window (defaults to current time)

    Returns:
        The dashboard, or None for an anonymous caller
    """
    if user_id is None:
        return None

    now = _as_aware(now or datetime.now(UTC))
    window_start = now - timedelta(days=DASHBOARD_WINDOW_DAYS)

    ledger = _CounterpartyLedger(users)
    category_totals: dict[str, Money] = {}
    monthly_spending: Money = 0

    for expense in expenses:
        category = expense.category.value
        category_totals[category] = category_totals.get(category, 0) + expense.amount

        own_share = expense.share_for(user_id)
        if own_share is not None and expense.date >= window_start:
            monthly_spending += own_share.amount

        if expense.payer_id == user_id:
            for share in expense.shares:
                if share.user_id != user_id:
                    ledger.add(share.user_id, share.amount)
        elif expense.payer_id is not None and own_share is not None:
            ledger.add(expense.payer_id, -own_share.amount)

    for settlement in settlements:
        if settlement.payer_id == user_id:
            ledger.add(settlement.receiver_id, settlement.amount)
        elif settlement.receiver_id == user_id:
            ledger.add(settlement.payer_id, -settlement.amount)

    total_owed: Money = 0
    total_owe: Money = 0
    owed_by: list[CounterpartyBalance] = []
    owed_to: list[CounterpartyBalance] = []

    for counterparty_id, amount in ledger.amounts.items():
        if amount > 0:
            total_owed += amount
            owed_by.append(
                CounterpartyBalance(
                    user_id=counterparty_id,
                    name=ledger.name_of(counterparty_id),
                    amount=amount,
                )
            )
        elif amount < 0:
            total_owe += abs(amount)
            owed_to.append(
                CounterpartyBalance(
                    user_id=counterparty_id,
                    name=ledger.name_of(counterparty_id),
                    amount=abs(amount),
                )
            )

    owed_by.sort(key=lambda entry: entry.amount, reverse=True)
    owed_to.sort(key=lambda entry: entry.amount, reverse=True)

    distribution = [
        CategorySpending(category=category, amount=amount)
        for category, amount in category_totals.items()
    ]
    distribution.sort(key=lambda entry: entry.amount, reverse=True)

    logger.debug(
        f"Dashboard for {user_id}: {len(ledger.amounts)} counterparties "
        f"across {len(group_ids)} groups"
    )

    return Dashboard(
        total_owed=total_owed,
        total_owe=total_owe,
        net_balance=total_owed - total_owe,
        group_count=len(group_ids),
        monthly_spending=monthly_spending,
        category_distribution=distribution,
        top_owed_by=owed_by[:DASHBOARD_TOP_N],
        top_owed_to=owed_to[:DASHBOARD_TOP_N],
    )
