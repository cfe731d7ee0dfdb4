"""Service layer that composes the ledger store and the balance engine.

Read paths soft-fail: an anonymous caller or a missing group yields ``None``
or an empty list. Privileged paths (export, archive) raise, and their errors
are meant to reach the caller unchanged.
"""

import logging
import uuid

from ..config import Settings
from ..db import Database
from ..exceptions import GroupNotFoundError, NotAuthenticatedError, NotAuthorizedError
from ..loaders import RequestLoaders
from ..models import (
    Dashboard,
    Expense,
    Group,
    GroupBalances,
    GroupMember,
    MemberRole,
    Money,
    Settlement,
    SettlementKind,
)
from .archive import ensure_archivable
from .dashboard import build_dashboard
from .export import export_group_csv
from .ledger import compute_net_balances, user_balance
from .pairwise import resolve_pairwise
from .simplifier import simplify_debts

logger = logging.getLogger(__name__)


class BalanceService:
    """Service for computing and acting on group balances."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the balance service."""
        self.settings = settings
        self.db = database

    # ------------------------------------------------------------------
    # Read paths
    # ------------------------------------------------------------------

    def list_groups(self, user_id: str | None) -> list[Group]:
        """List the groups a user belongs to (empty for an anonymous caller)."""
        if user_id is None:
            return []
        return self.db.list_groups_for_user(user_id)

    def group_balances(self, group_id: str) -> GroupBalances | None:
        """
        Compute who owes whom in a group.

        Groups with debt simplification on get the greedy minimal transaction
        list; the others get direct pairwise debts.

        Returns:
            The balances, or None if the group doesn't exist
        """
        snapshot = self.db.get_group_snapshot(group_id)
        if snapshot is None:
            return None

        net_balances = compute_net_balances(snapshot.expenses, snapshot.settlements)

        debts: list
        if snapshot.group.simplify_debts:
            debts = simplify_debts(net_balances)
        else:
            debts = resolve_pairwise(snapshot.expenses, snapshot.settlements)

        logger.info(
            f"Computed {len(debts)} "
            f"{'simplified' if snapshot.group.simplify_debts else 'pairwise'} "
            f"debts for group {group_id}"
        )

        return GroupBalances(
            group=snapshot.group,
            net_balances=net_balances,
            simplified=snapshot.group.simplify_debts,
            debts=debts,
        )

    def group_user_balance(self, user_id: str | None, group_id: str) -> Money | None:
        """Get a user's own net balance in a group (None if anonymous or no group)."""
        if user_id is None:
            return None
        snapshot = self.db.get_group_snapshot(group_id)
        if snapshot is None:
            return None
        return user_balance(user_id, snapshot.expenses, snapshot.settlements)

    def dashboard(self, user_id: str | None) -> Dashboard | None:
        """Build the cross-group dashboard for a user (None if anonymous)."""
        if user_id is None:
            return None

        group_ids = [group.id for group in self.db.list_groups_for_user(user_id)]
        snapshots = self.db.get_snapshots(group_ids)

        expenses = [expense for snap in snapshots for expense in snap.expenses]
        settlements = [settlement for snap in snapshots for settlement in snap.settlements]

        loaders = RequestLoaders(self.db)
        users = loaders.users_by_id(_referenced_user_ids(expenses, settlements))

        return build_dashboard(user_id, group_ids, expenses, settlements, users)

    # ------------------------------------------------------------------
    # Privileged paths
    # ------------------------------------------------------------------

    def _require_member(
        self,
        loaders: RequestLoaders,
        user_id: str | None,
        group_id: str,
        admin_action: str | None = None,
    ) -> GroupMember:
        """
        Check that the acting user may act on a group.

        Args:
            loaders: Request-scoped loaders
            user_id: Acting user
            group_id: Target group
            admin_action: If set, the action requires an admin and this text
                          names it in the error message

        Raises:
            NotAuthenticatedError: If there is no acting user
            GroupNotFoundError: If the group doesn't exist
            NotAuthorizedError: If the user isn't a member (or admin when needed)
        """
        if user_id is None:
            raise NotAuthenticatedError()

        if self.db.get_group(group_id) is None:
            raise GroupNotFoundError(group_id)

        member = next(
            (m for m in loaders.members_by_group_id(group_id) if m.user_id == user_id),
            None,
        )

        if admin_action is not None:
            if member is None or member.role != MemberRole.ADMIN:
                raise NotAuthorizedError(f"Only admins can {admin_action}")
        elif member is None:
            raise NotAuthorizedError("Not a member")

        return member

    def export_group(self, user_id: str | None, group_id: str) -> str:
        """Export a group's expenses, settlements and open debts as text."""
        loaders = RequestLoaders(self.db)
        self._require_member(loaders, user_id, group_id)

        snapshot = self.db.get_group_snapshot(group_id)
        if snapshot is None:
            raise GroupNotFoundError(group_id)

        users = loaders.users_by_id(
            _referenced_user_ids(snapshot.expenses, snapshot.settlements)
        )
        text = export_group_csv(
            snapshot.expenses,
            snapshot.settlements,
            users,
            currency_symbol=self.settings.currency_symbol,
        )
        logger.info(f"Exported group {group_id} for user {user_id}")
        return text

    def archive_group(self, user_id: str | None, group_id: str) -> Group:
        """
        Archive a group once every balance is settled.

        Raises:
            NotAuthenticatedError: If there is no acting user
            GroupNotFoundError: If the group doesn't exist
            NotAuthorizedError: If the user isn't an admin of the group
            UnsettledBalancesError: If any balance is still open
        """
        loaders = RequestLoaders(self.db)
        self._require_member(loaders, user_id, group_id, admin_action="archive the group")

        snapshot = self.db.get_group_snapshot(group_id)
        if snapshot is None:
            raise GroupNotFoundError(group_id)

        ensure_archivable(snapshot.expenses, snapshot.settlements)

        group = self.db.set_group_archived(group_id, archived=True)
        logger.info(f"Archived group {group_id} (by {user_id})")
        return group

    def unarchive_group(self, user_id: str | None, group_id: str) -> Group:
        """Restore an archived group. Admins only."""
        loaders = RequestLoaders(self.db)
        self._require_member(
            loaders, user_id, group_id, admin_action="unarchive the group"
        )

        group = self.db.set_group_archived(group_id, archived=False)
        logger.info(f"Unarchived group {group_id} (by {user_id})")
        return group

    def record_settlement(
        self,
        user_id: str | None,
        group_id: str,
        payer_id: str,
        receiver_id: str,
        amount: Money,
        kind: SettlementKind = SettlementKind.PAYMENT,
        notes: str | None = None,
    ) -> Settlement:
        """
        Record a payment or balance adjustment between two users.

        Raises:
            NotAuthenticatedError: If there is no acting user
            GroupNotFoundError: If the group doesn't exist
            NotAuthorizedError: If the acting user isn't a member
            ValueError: If the amount isn't positive or payer and receiver match
        """
        loaders = RequestLoaders(self.db)
        self._require_member(loaders, user_id, group_id)

        if amount <= 0:
            raise ValueError("Settlement amount must be positive")
        if payer_id == receiver_id:
            raise ValueError("Payer and receiver must be different users")

        settlement = Settlement(
            id=uuid.uuid4().hex,
            group_id=group_id,
            payer_id=payer_id,
            receiver_id=receiver_id,
            amount=amount,
            kind=kind,
            notes=notes,
        )
        self.db.add_settlement(settlement)

        logger.info(
            f"Recorded {kind.label} of {amount} from {payer_id} to {receiver_id} "
            f"in group {group_id}"
        )
        return settlement


def _referenced_user_ids(
    expenses: list[Expense], settlements: list[Settlement]
) -> list[str]:
    """Every user ID that appears in a set of ledger records."""
    user_ids: list[str] = []
    for expense in expenses:
        if expense.payer_id is not None:
            user_ids.append(expense.payer_id)
        user_ids.extend(share.user_id for share in expense.shares)
    for settlement in settlements:
        user_ids.extend((settlement.payer_id, settlement.receiver_id))
    return user_ids
