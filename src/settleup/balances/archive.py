"""Archive gate: a group can only be archived once everyone is settled up."""

import logging
from collections.abc import Iterable, Mapping

from ..exceptions import UnsettledBalancesError
from ..models import Expense, Money, NetBalance, Settlement
from .ledger import compute_net_balances

logger = logging.getLogger(__name__)

# Looser than the simplifier's dust: anything up to 100 minor units (e.g. ₹1)
# still counts as settled for archiving.
ARCHIVE_DUST_THRESHOLD: Money = 100


def has_unsettled_balances(
    balances: Mapping[str, Money],
    threshold: Money = ARCHIVE_DUST_THRESHOLD,
) -> bool:
    """Check whether any user's balance is further than ``threshold`` from zero."""
    return any(abs(amount) > threshold for amount in balances.values())


def ensure_archivable(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
) -> NetBalance:
    """
    Verify that a group's balances allow it to be archived.

    This is a pure check; it never changes the group.

    Returns:
        The group's net balances

    Raises:
        UnsettledBalancesError: If any balance exceeds the archive threshold
    """
    balances = compute_net_balances(expenses, settlements)

    if has_unsettled_balances(balances):
        open_balances = {
            user_id: amount
            for user_id, amount in balances.items()
            if abs(amount) > ARCHIVE_DUST_THRESHOLD
        }
        logger.warning(
            f"Archive rejected: {len(open_balances)} users have unsettled balances"
        )
        raise UnsettledBalancesError(open_balances)

    return balances
