"""Tests for the SQLite ledger store."""

import sqlite3
from datetime import UTC, datetime

import pytest

from settleup.db import Database, validate_expense_shares
from settleup.exceptions import GroupNotFoundError, ShareMismatchError
from settleup.models import (
    Expense,
    ExpenseCategory,
    ExpenseShare,
    Group,
    GroupMember,
    LedgerFile,
    MemberRole,
    Settlement,
    SettlementKind,
    User,
)


@pytest.fixture
def db(tmp_path):
    """Create a temporary database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


def make_expense(
    id: str,
    payer: str | None,
    amount: int,
    shares: dict[str, int],
    group_id: str = "g1",
    date: datetime | None = None,
) -> Expense:
    return Expense(
        id=id,
        group_id=group_id,
        payer_id=payer,
        amount=amount,
        shares=[
            ExpenseShare(expense_id=id, user_id=user_id, amount=share)
            for user_id, share in shares.items()
        ],
        description=f"Expense {id}",
        category=ExpenseCategory.FOOD,
        date=date or datetime(2026, 3, 1, tzinfo=UTC),
    )


class TestUsers:
    def test_upsert_and_get(self, db):
        db.upsert_user(User(id="A", name="Alice", email="alice@example.com"))
        db.upsert_user(User(id="A", name="Alicia", email="alice@example.com"))
        db.upsert_user(User(id="P", name="Placeholder", is_pseudo=True))

        users = db.get_users(["A", "P", "missing"])

        assert set(users) == {"A", "P"}
        assert users["A"].name == "Alicia"
        assert users["P"].is_pseudo is True

    def test_get_no_users(self, db):
        assert db.get_users([]) == {}


class TestGroups:
    def test_create_with_admin(self, db):
        db.create_group(Group(id="g1", name="Trip"), admin_id="A")

        group = db.get_group("g1")
        member = db.get_member("g1", "A")

        assert group.name == "Trip"
        assert group.simplify_debts is True
        assert member.role == MemberRole.ADMIN

    def test_missing_group(self, db):
        assert db.get_group("nope") is None

    def test_list_groups_newest_first(self, db):
        db.create_group(
            Group(id="old", name="Old", created_at=datetime(2025, 1, 1, tzinfo=UTC)),
            admin_id="A",
        )
        db.create_group(
            Group(id="new", name="New", created_at=datetime(2026, 1, 1, tzinfo=UTC)),
            admin_id="A",
        )
        db.create_group(Group(id="other", name="Other"), admin_id="B")

        assert [g.id for g in db.list_groups_for_user("A")] == ["new", "old"]

    def test_set_archived(self, db):
        db.create_group(Group(id="g1", name="Trip"))

        archived = db.set_group_archived("g1", archived=True)
        assert archived.is_archived is True
        assert archived.archived_at is not None

        restored = db.set_group_archived("g1", archived=False)
        assert restored.is_archived is False
        assert restored.archived_at is None

    def test_set_archived_missing_group(self, db):
        with pytest.raises(GroupNotFoundError):
            db.set_group_archived("nope", archived=True)


class TestMembers:
    def test_add_member_updates_role(self, db):
        db.create_group(Group(id="g1", name="Trip"))
        db.add_member(GroupMember(group_id="g1", user_id="B"))
        db.add_member(GroupMember(group_id="g1", user_id="B", role=MemberRole.ADMIN))

        assert db.get_member("g1", "B").role == MemberRole.ADMIN

    def test_get_members_for_several_groups(self, db):
        db.create_group(Group(id="g1", name="Trip"), admin_id="A")
        db.create_group(Group(id="g2", name="Flat"), admin_id="B")
        db.add_member(GroupMember(group_id="g1", user_id="C"))

        members = db.get_members(["g1", "g2", "g3"])

        assert [m.user_id for m in members["g1"]] == ["A", "C"]
        assert [m.user_id for m in members["g2"]] == ["B"]
        assert members["g3"] == []


class TestLedger:
    @pytest.fixture(autouse=True)
    def group(self, db):
        db.create_group(Group(id="g1", name="Trip"), admin_id="A")
        db.create_group(Group(id="g2", name="Flat"), admin_id="A")

    def test_snapshot_round_trip(self, db):
        expense = make_expense("e1", "A", 900, {"A": 300, "B": 300, "C": 300})
        settlement = Settlement(
            id="s1",
            group_id="g1",
            payer_id="B",
            receiver_id="A",
            amount=300,
            kind=SettlementKind.ADJUSTMENT,
            notes="Cash",
            created_at=datetime(2026, 3, 2, tzinfo=UTC),
        )
        db.add_expense(expense)
        db.add_settlement(settlement)

        snapshot = db.get_group_snapshot("g1")

        assert snapshot.group.id == "g1"
        assert snapshot.expenses == [expense]
        assert snapshot.settlements == [settlement]

    def test_snapshot_of_missing_group(self, db):
        assert db.get_group_snapshot("nope") is None

    def test_snapshot_orders_newest_first(self, db):
        db.add_expense(
            make_expense("e1", "A", 100, {"B": 100}, date=datetime(2026, 1, 1, tzinfo=UTC))
        )
        db.add_expense(
            make_expense("e2", "A", 100, {"B": 100}, date=datetime(2026, 2, 1, tzinfo=UTC))
        )

        snapshot = db.get_group_snapshot("g1")

        assert [e.id for e in snapshot.expenses] == ["e2", "e1"]

    def test_payerless_expense_round_trips(self, db):
        db.add_expense(make_expense("e1", None, 100, {"B": 100}))

        assert db.get_group_snapshot("g1").expenses[0].payer_id is None

    def test_snapshots_are_split_by_group(self, db):
        db.add_expense(make_expense("e1", "A", 100, {"B": 100}, group_id="g1"))
        db.add_expense(make_expense("e2", "A", 200, {"C": 200}, group_id="g2"))

        snapshots = db.get_snapshots(["g2", "g1", "nope"])

        assert [s.group.id for s in snapshots] == ["g2", "g1"]
        assert [e.id for e in snapshots[0].expenses] == ["e2"]
        assert [e.id for e in snapshots[1].expenses] == ["e1"]

    def test_no_snapshots(self, db):
        assert db.get_snapshots([]) == []

    def test_share_mismatch_rejected(self, db):
        with pytest.raises(ShareMismatchError) as exc_info:
            db.add_expense(make_expense("e1", "A", 900, {"A": 300, "B": 300}))

        assert exc_info.value.share_total == 600
        assert db.get_group_snapshot("g1").expenses == []

    def test_share_mismatch_allowed_when_not_enforced(self, db):
        db.add_expense(
            make_expense("e1", "A", 900, {"A": 300, "B": 300}), enforce_share_sum=False
        )

        assert db.get_group_snapshot("g1").expenses[0].share_total() == 600


class TestValidateExpenseShares:
    def test_balanced(self):
        validate_expense_shares(make_expense("e1", "A", 300, {"A": 100, "B": 200}))

    def test_mismatch_message(self):
        with pytest.raises(ShareMismatchError, match="sum to 250, expected 300"):
            validate_expense_shares(make_expense("e1", "A", 300, {"A": 100, "B": 150}))


class TestImportLedger:
    def make_ledger(self, shares: dict[str, int]) -> LedgerFile:
        return LedgerFile(
            users=[User(id="A", name="Alice"), User(id="B", name="Bob")],
            groups=[Group(id="g1", name="Trip", simplify_debts=False)],
            members=[
                GroupMember(group_id="g1", user_id="A", role=MemberRole.ADMIN),
                GroupMember(group_id="g1", user_id="B"),
            ],
            expenses=[make_expense("e1", "A", 600, shares)],
            settlements=[
                Settlement(id="s1", group_id="g1", payer_id="B", receiver_id="A", amount=100)
            ],
        )

    def test_import(self, db):
        counts = db.import_ledger(self.make_ledger({"A": 300, "B": 300}))

        assert counts == {
            "users": 2,
            "groups": 1,
            "members": 2,
            "expenses": 1,
            "settlements": 1,
        }
        snapshot = db.get_group_snapshot("g1")
        assert snapshot.group.simplify_debts is False
        assert len(snapshot.expenses) == 1
        assert len(snapshot.settlements) == 1
        assert db.get_member("g1", "B").role == MemberRole.MEMBER

    def test_invalid_ledger_writes_nothing(self, db):
        with pytest.raises(ShareMismatchError):
            db.import_ledger(self.make_ledger({"A": 300, "B": 200}))

        assert db.get_users(["A", "B"]) == {}
        assert db.get_group("g1") is None

    def test_failed_import_rolls_back(self, db):
        """A duplicate group aborts the import and discards earlier records."""
        db.create_group(Group(id="g1", name="Existing"))

        with pytest.raises(sqlite3.IntegrityError):
            db.import_ledger(self.make_ledger({"A": 300, "B": 300}))

        assert db.get_users(["A", "B"]) == {}
        assert db.get_group("g1").name == "Existing"
        assert db.get_members(["g1"]) == {"g1": []}
