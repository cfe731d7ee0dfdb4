"""Greedy debt simplification.

Turns a net-balance map into a short list of settle-up payments. Debtors
(most negative first) are matched against creditors (largest first) with two
pointers, which yields at most ``debtors + creditors - 1`` payments.
"""

import logging
from collections.abc import Mapping

from ..models import Money, Transaction
from .ledger import SETTLED_DUST_THRESHOLD

logger = logging.getLogger(__name__)


def simplify_debts(balances: Mapping[str, Money]) -> list[Transaction]:
    """
    Compute the settle-up transactions that zero every balance.

    Steps:
    1. Drop balances within the settled-dust threshold
    2. Sort debtors ascending and creditors descending (stable, so equal
       balances keep their input order)
    3. Pay min(|debtor|, creditor) from the current debtor to the current
       creditor
    4. Move past whichever side is now settled
    5. Stop when either side runs out

    Args:
        balances: Net balance per user (positive = owed to them)

    Returns:
        Transactions in the order they were matched
    """
    debtors = [
        [user_id, amount]
        for user_id, amount in balances.items()
        if amount < -SETTLED_DUST_THRESHOLD
    ]
    creditors = [
        [user_id, amount]
        for user_id, amount in balances.items()
        if amount > SETTLED_DUST_THRESHOLD
    ]

    debtors.sort(key=lambda entry: entry[1])
    creditors.sort(key=lambda entry: entry[1], reverse=True)

    transactions: list[Transaction] = []
    i = 0
    j = 0

    while i < len(debtors) and j < len(creditors):
        debtor = debtors[i]
        creditor = creditors[j]

        amount = round(min(abs(debtor[1]), creditor[1]))

        if amount > 0:
            transactions.append(
                Transaction(ower_id=debtor[0], owee_id=creditor[0], amount=amount)
            )

        debtor[1] += amount
        creditor[1] -= amount

        if abs(debtor[1]) < 1:
            i += 1
        if creditor[1] < 1:
            j += 1

    logger.debug(
        f"Simplified {len(debtors)} debtors and {len(creditors)} creditors "
        f"into {len(transactions)} transactions"
    )
    return transactions
