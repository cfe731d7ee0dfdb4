"""Ledger aggregation: folding expenses and settlements into net balances."""

import logging
from collections.abc import Iterable

from ..models import Expense, Money, NetBalance, Settlement

logger = logging.getLogger(__name__)

# Balances within this many minor units of zero count as settled when
# computing who pays whom.
SETTLED_DUST_THRESHOLD: Money = 1


def compute_net_balances(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
) -> NetBalance:
    """
    Compute each user's net balance within one group.

    The payer of an expense is credited the full amount and every share user
    is debited their share (including the payer's own share, which cancels
    out). Settlements credit the payer and debit the receiver, whatever their
    kind. Expenses without a payer are skipped entirely.

    If an expense's shares don't add up to its amount, the payer absorbs the
    difference, so every credit is matched by equal debits and the values
    always sum to zero.

    Args:
        expenses: Expenses of the group, each with its shares
        settlements: Settlements of the group

    Returns:
        Mapping of user ID to balance (positive = owed to them)
    """
    balances: NetBalance = {}

    def add(user_id: str, amount: Money) -> None:
        balances[user_id] = balances.get(user_id, 0) + amount

    expense_count = 0
    for expense in expenses:
        expense_count += 1
        if expense.payer_id is None:
            continue
        add(expense.payer_id, expense.amount)
        for share in expense.shares:
            add(share.user_id, -share.amount)

        imbalance = expense.share_total() - expense.amount
        if imbalance:
            add(expense.payer_id, imbalance)

    settlement_count = 0
    for settlement in settlements:
        settlement_count += 1
        for user_id, delta in settlement.ledger_entries():
            add(user_id, delta)

    logger.debug(
        f"Folded {expense_count} expenses and {settlement_count} settlements "
        f"into {len(balances)} balances"
    )
    return balances


def user_balance(
    user_id: str,
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
) -> Money:
    """Get a single user's net balance in a group (0 if they never appear)."""
    return compute_net_balances(expenses, settlements).get(user_id, 0)
