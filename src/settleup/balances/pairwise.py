"""Direct (non-simplified) debts between the users who actually transacted."""

import logging
from collections.abc import Iterable

from ..models import Expense, Money, PairwiseBalance, Settlement
from .ledger import SETTLED_DUST_THRESHOLD

logger = logging.getLogger(__name__)

# owed[ower][owee] -> Money
DirectDebts = dict[str, dict[str, Money]]


def accumulate_direct_debts(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
) -> DirectDebts:
    """
    Build the directed "who owes whom" map from raw records.

    Every share of an expense makes its user owe the payer (the payer's own
    share is skipped). A settlement reduces what the payer owed the receiver,
    which in the directed map is recorded as the receiver owing the payer.
    """
    owed: DirectDebts = {}

    def add(ower: str, owee: str, amount: Money) -> None:
        row = owed.setdefault(ower, {})
        row[owee] = row.get(owee, 0) + amount

    for expense in expenses:
        if expense.payer_id is None:
            continue
        for share in expense.shares:
            if share.user_id != expense.payer_id:
                add(share.user_id, expense.payer_id, share.amount)

    for settlement in settlements:
        add(settlement.receiver_id, settlement.payer_id, settlement.amount)

    return owed


def net_direct_debts(
    owed: DirectDebts,
    threshold: Money = SETTLED_DUST_THRESHOLD,
) -> list[PairwiseBalance]:
    """
    Net each pair of users against each other, once per unordered pair.

    Pairs are visited in the order they were first recorded. A pair whose net
    amount is within ``threshold`` of zero produces nothing.
    """
    balances: list[PairwiseBalance] = []
    processed: set[frozenset[str]] = set()

    for ower, row in owed.items():
        for owee, amount in row.items():
            key = frozenset((ower, owee))
            if key in processed:
                continue
            processed.add(key)

            net = amount - owed.get(owee, {}).get(ower, 0)

            if net > threshold:
                balances.append(
                    PairwiseBalance(ower_id=ower, owee_id=owee, amount=round(net))
                )
            elif net < -threshold:
                balances.append(
                    PairwiseBalance(ower_id=owee, owee_id=ower, amount=round(abs(net)))
                )

    return balances


def resolve_pairwise(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
    threshold: Money = SETTLED_DUST_THRESHOLD,
) -> list[PairwiseBalance]:
    """
    Compute direct debts for a group that has simplification turned off.

    No debt is ever routed through a third party: each result reflects only
    the obligations between exactly those two users.

    Args:
        expenses: Expenses of the group, each with its shares
        settlements: Settlements of the group
        threshold: Net amounts within this distance of zero are dropped

    Returns:
        One balance per pair of users with an open debt
    """
    owed = accumulate_direct_debts(expenses, settlements)
    balances = net_direct_debts(owed, threshold=threshold)
    logger.debug(f"Resolved {len(balances)} pairwise balances")
    return balances
