"""SQLite ledger store for SettleUp."""

import logging
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from .exceptions import GroupNotFoundError, ShareMismatchError
from .models import (
    Expense,
    ExpenseCategory,
    ExpenseShare,
    Group,
    GroupMember,
    LedgerFile,
    LedgerSnapshot,
    MemberRole,
    Settlement,
    SettlementKind,
    User,
)

logger = logging.getLogger(__name__)


def validate_expense_shares(expense: Expense) -> None:
    """Raise if an expense's shares don't add up to its amount."""
    share_total = expense.share_total()
    if share_total != expense.amount:
        raise ShareMismatchError(expense.id, expense.amount, share_total)


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Path | str):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT,
                is_pseudo INTEGER NOT NULL DEFAULT 0
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expense_groups (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                category TEXT NOT NULL DEFAULT 'OTHER',
                simplify_debts INTEGER NOT NULL DEFAULT 1,
                is_archived INTEGER NOT NULL DEFAULT 0,
                archived_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS group_members (
                group_id TEXT NOT NULL REFERENCES expense_groups(id) ON DELETE CASCADE,
                user_id TEXT NOT NULL,
                role TEXT NOT NULL DEFAULT 'MEMBER',
                PRIMARY KEY (group_id, user_id)
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id TEXT PRIMARY KEY,
                group_id TEXT NOT NULL REFERENCES expense_groups(id) ON DELETE CASCADE,
                payer_id TEXT,
                amount INTEGER NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                category TEXT NOT NULL DEFAULT 'OTHER',
                date TIMESTAMP NOT NULL,
                notes TEXT,
                currency TEXT NOT NULL DEFAULT 'INR'
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expense_shares (
                expense_id TEXT NOT NULL REFERENCES expenses(id) ON DELETE CASCADE,
                user_id TEXT NOT NULL,
                amount INTEGER NOT NULL,
                PRIMARY KEY (expense_id, user_id)
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS settlements (
                id TEXT PRIMARY KEY,
                group_id TEXT NOT NULL REFERENCES expense_groups(id) ON DELETE CASCADE,
                payer_id TEXT NOT NULL,
                receiver_id TEXT NOT NULL,
                amount INTEGER NOT NULL,
                kind TEXT NOT NULL DEFAULT 'PAYMENT',
                notes TEXT,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    @contextmanager
    def _read_transaction(self) -> Iterator[sqlite3.Cursor]:
        """Run several reads against one consistent view of the database."""
        cursor = self.conn.cursor()
        owns_transaction = not self.conn.in_transaction
        if owns_transaction:
            cursor.execute("BEGIN")
        try:
            yield cursor
        finally:
            if owns_transaction:
                self.conn.commit()

    # ========================================================================
    # User operations
    # ========================================================================

    def upsert_user(self, user: User, commit: bool = True):
        """Insert or update a user."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO users (id, name, email, is_pseudo)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                email = excluded.email,
                is_pseudo = excluded.is_pseudo
            """,
            (user.id, user.name, user.email, int(user.is_pseudo)),
        )
        if commit:
            self.conn.commit()

    def get_users(self, user_ids: Sequence[str]) -> dict[str, User]:
        """Get users by ID. Unknown IDs are left out of the result."""
        if not user_ids:
            return {}
        placeholders = ", ".join("?" for _ in user_ids)
        cursor = self.conn.cursor()
        cursor.execute(
            f"SELECT id, name, email, is_pseudo FROM users WHERE id IN ({placeholders})",
            tuple(user_ids),
        )
        return {
            row["id"]: User(
                id=row["id"],
                name=row["name"],
                email=row["email"],
                is_pseudo=bool(row["is_pseudo"]),
            )
            for row in cursor.fetchall()
        }

    # ========================================================================
    # Group operations
    # ========================================================================

    def create_group(
        self, group: Group, admin_id: str | None = None, commit: bool = True
    ):
        """Create a group, optionally making a user its first admin."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO expense_groups (
                id, name, category, simplify_debts, is_archived,
                archived_at, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                group.id,
                group.name,
                group.category,
                int(group.simplify_debts),
                int(group.is_archived),
                group.archived_at.isoformat() if group.archived_at else None,
                group.created_at.isoformat(),
            ),
        )
        if admin_id is not None:
            cursor.execute(
                "INSERT INTO group_members (group_id, user_id, role) VALUES (?, ?, ?)",
                (group.id, admin_id, MemberRole.ADMIN.value),
            )
        if commit:
            self.conn.commit()

    def get_group(self, group_id: str) -> Group | None:
        """Get a group by ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, name, category, simplify_debts, is_archived,
                   archived_at, created_at
            FROM expense_groups
            WHERE id = ?
            """,
            (group_id,),
        )
        row = cursor.fetchone()
        return _row_to_group(row) if row else None

    def list_groups_for_user(self, user_id: str) -> list[Group]:
        """Get all groups a user is a member of, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT g.id, g.name, g.category, g.simplify_debts, g.is_archived,
                   g.archived_at, g.created_at
            FROM expense_groups g
            JOIN group_members m ON m.group_id = g.id
            WHERE m.user_id = ?
            ORDER BY g.created_at DESC
            """,
            (user_id,),
        )
        return [_row_to_group(row) for row in cursor.fetchall()]

    def set_group_archived(self, group_id: str, archived: bool) -> Group:
        """Mark a group as archived (or not) and return the updated group."""
        archived_at = datetime.now(UTC).isoformat() if archived else None
        cursor = self.conn.cursor()
        cursor.execute(
            "UPDATE expense_groups SET is_archived = ?, archived_at = ? WHERE id = ?",
            (int(archived), archived_at, group_id),
        )
        self.conn.commit()
        if cursor.rowcount == 0:
            raise GroupNotFoundError(group_id)

        group = self.get_group(group_id)
        assert group is not None
        return group

    # ========================================================================
    # Membership operations
    # ========================================================================

    def add_member(self, member: GroupMember, commit: bool = True):
        """Add a user to a group (or change their role if already a member)."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO group_members (group_id, user_id, role)
            VALUES (?, ?, ?)
            ON CONFLICT(group_id, user_id) DO UPDATE SET role = excluded.role
            """,
            (member.group_id, member.user_id, member.role.value),
        )
        if commit:
            self.conn.commit()

    def get_member(self, group_id: str, user_id: str) -> GroupMember | None:
        """Get a single membership."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT group_id, user_id, role FROM group_members
            WHERE group_id = ? AND user_id = ?
            """,
            (group_id, user_id),
        )
        row = cursor.fetchone()
        if not row:
            return None
        return GroupMember(
            group_id=row["group_id"], user_id=row["user_id"], role=row["role"]
        )

    def get_members(self, group_ids: Sequence[str]) -> dict[str, list[GroupMember]]:
        """Get the members of several groups at once, keyed by group ID."""
        members: dict[str, list[GroupMember]] = {group_id: [] for group_id in group_ids}
        if not group_ids:
            return members
        placeholders = ", ".join("?" for _ in group_ids)
        cursor = self.conn.cursor()
        cursor.execute(
            f"""
            SELECT group_id, user_id, role FROM group_members
            WHERE group_id IN ({placeholders})
            ORDER BY rowid
            """,
            tuple(group_ids),
        )
        for row in cursor.fetchall():
            members[row["group_id"]].append(
                GroupMember(
                    group_id=row["group_id"], user_id=row["user_id"], role=row["role"]
                )
            )
        return members

    # ========================================================================
    # Ledger operations
    # ========================================================================

    def add_expense(
        self, expense: Expense, enforce_share_sum: bool = True, commit: bool = True
    ):
        """
        Save an expense together with its shares.

        Raises:
            ShareMismatchError: If enforce_share_sum is set and the shares don't
                                add up to the expense amount
        """
        if enforce_share_sum:
            validate_expense_shares(expense)

        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO expenses (
                id, group_id, payer_id, amount, description, category,
                date, notes, currency
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                expense.id,
                expense.group_id,
                expense.payer_id,
                expense.amount,
                expense.description,
                expense.category.value,
                expense.date.isoformat(),
                expense.notes,
                expense.currency,
            ),
        )
        cursor.executemany(
            "INSERT INTO expense_shares (expense_id, user_id, amount) VALUES (?, ?, ?)",
            [(expense.id, share.user_id, share.amount) for share in expense.shares],
        )
        if commit:
            self.conn.commit()

    def add_settlement(self, settlement: Settlement, commit: bool = True):
        """Save a settlement."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO settlements (
                id, group_id, payer_id, receiver_id, amount, kind,
                notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                settlement.id,
                settlement.group_id,
                settlement.payer_id,
                settlement.receiver_id,
                settlement.amount,
                settlement.kind.value,
                settlement.notes,
                settlement.created_at.isoformat(),
            ),
        )
        if commit:
            self.conn.commit()

    def get_group_snapshot(self, group_id: str) -> LedgerSnapshot | None:
        """
        Read a group's expenses and settlements as of a single point in time.

        Both reads run inside one transaction, so a concurrent write can't land
        between them.

        Returns:
            The snapshot, or None if the group doesn't exist
        """
        snapshots = self.get_snapshots([group_id])
        return snapshots[0] if snapshots else None

    def get_snapshots(self, group_ids: Sequence[str]) -> list[LedgerSnapshot]:
        """Read snapshots of several groups within one transaction."""
        if not group_ids:
            return []
        placeholders = ", ".join("?" for _ in group_ids)
        params = tuple(group_ids)

        with self._read_transaction() as cursor:
            cursor.execute(
                f"""
                SELECT id, name, category, simplify_debts, is_archived,
                       archived_at, created_at
                FROM expense_groups WHERE id IN ({placeholders})
                """,
                params,
            )
            groups = {row["id"]: _row_to_group(row) for row in cursor.fetchall()}

            cursor.execute(
                f"""
                SELECT s.expense_id, s.user_id, s.amount
                FROM expense_shares s
                JOIN expenses e ON e.id = s.expense_id
                WHERE e.group_id IN ({placeholders})
                ORDER BY s.rowid
                """,
                params,
            )
            shares: dict[str, list[ExpenseShare]] = {}
            for row in cursor.fetchall():
                shares.setdefault(row["expense_id"], []).append(
                    ExpenseShare(
                        expense_id=row["expense_id"],
                        user_id=row["user_id"],
                        amount=row["amount"],
                    )
                )

            cursor.execute(
                f"""
                SELECT id, group_id, payer_id, amount, description, category,
                       date, notes, currency
                FROM expenses WHERE group_id IN ({placeholders})
                ORDER BY date DESC, rowid
                """,
                params,
            )
            expenses = [
                Expense(
                    id=row["id"],
                    group_id=row["group_id"],
                    payer_id=row["payer_id"],
                    amount=row["amount"],
                    shares=shares.get(row["id"], []),
                    description=row["description"],
                    category=ExpenseCategory(row["category"]),
                    date=datetime.fromisoformat(row["date"]),
                    notes=row["notes"],
                    currency=row["currency"],
                )
                for row in cursor.fetchall()
            ]

            cursor.execute(
                f"""
                SELECT id, group_id, payer_id, receiver_id, amount, kind,
                       notes, created_at
                FROM settlements WHERE group_id IN ({placeholders})
                ORDER BY created_at DESC, rowid
                """,
                params,
            )
            settlements = [
                Settlement(
                    id=row["id"],
                    group_id=row["group_id"],
                    payer_id=row["payer_id"],
                    receiver_id=row["receiver_id"],
                    amount=row["amount"],
                    kind=SettlementKind(row["kind"]),
                    notes=row["notes"],
                    created_at=datetime.fromisoformat(row["created_at"]),
                )
                for row in cursor.fetchall()
            ]

        return [
            LedgerSnapshot(
                group=groups[group_id],
                expenses=[e for e in expenses if e.group_id == group_id],
                settlements=[s for s in settlements if s.group_id == group_id],
            )
            for group_id in group_ids
            if group_id in groups
        ]

    # ========================================================================
    # Import
    # ========================================================================

    def import_ledger(
        self, ledger: LedgerFile, enforce_share_sum: bool = True
    ) -> dict[str, int]:
        """
        Load a ledger document into the store.

        Expenses are validated before anything is written, and all records are
        written in one transaction, so a rejected document leaves the store
        untouched.

        Returns:
            Number of records imported per kind
        """
        if enforce_share_sum:
            for expense in ledger.expenses:
                validate_expense_shares(expense)

        try:
            for user in ledger.users:
                self.upsert_user(user, commit=False)
            for group in ledger.groups:
                self.create_group(group, commit=False)
            for member in ledger.members:
                self.add_member(member, commit=False)
            for expense in ledger.expenses:
                self.add_expense(expense, enforce_share_sum=False, commit=False)
            for settlement in ledger.settlements:
                self.add_settlement(settlement, commit=False)
        except Exception:
            self.conn.rollback()
            logger.warning("Ledger import failed, rolled back")
            raise
        self.conn.commit()

        counts = {
            "users": len(ledger.users),
            "groups": len(ledger.groups),
            "members": len(ledger.members),
            "expenses": len(ledger.expenses),
            "settlements": len(ledger.settlements),
        }
        logger.info(f"Imported ledger: {counts}")
        return counts


def _row_to_group(row: sqlite3.Row) -> Group:
    return Group(
        id=row["id"],
        name=row["name"],
        category=row["category"],
        simplify_debts=bool(row["simplify_debts"]),
        is_archived=bool(row["is_archived"]),
        archived_at=(
            datetime.fromisoformat(row["archived_at"]) if row["archived_at"] else None
        ),
        created_at=datetime.fromisoformat(row["created_at"]),
    )
