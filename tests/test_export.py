"""Tests for the CSV export."""

from datetime import UTC, datetime

import pytest

from settleup.balances.export import export_group_csv, format_minor_units
from settleup.models import (
    Expense,
    ExpenseCategory,
    ExpenseShare,
    Settlement,
    SettlementKind,
    User,
)


def make_expense(
    id: str,
    payer: str | None,
    amount: int,
    shares: dict[str, int],
    date: datetime,
    description: str = "",
    category: ExpenseCategory = ExpenseCategory.OTHER,
    notes: str | None = None,
) -> Expense:
    return Expense(
        id=id,
        group_id="g1",
        payer_id=payer,
        amount=amount,
        shares=[
            ExpenseShare(expense_id=id, user_id=user_id, amount=share)
            for user_id, share in shares.items()
        ],
        date=date,
        description=description,
        category=category,
        notes=notes,
    )


@pytest.fixture
def users():
    return {
        "A": User(id="A", name="Alice"),
        "B": User(id="B", name="Bob"),
        "C": User(id="C", name="Carol"),
    }


@pytest.fixture
def expenses():
    return [
        make_expense(
            "e1",
            "A",
            90000,
            {"A": 30000, "B": 30000, "C": 30000},
            date=datetime(2026, 3, 1, tzinfo=UTC),
            description="Dinner",
            category=ExpenseCategory.FOOD,
            notes="Birthday",
        ),
        make_expense(
            "e2",
            "B",
            30000,
            {"B": 15000, "C": 15000},
            date=datetime(2026, 3, 5, tzinfo=UTC),
            description="Cab",
            category=ExpenseCategory.TRANSPORT,
        ),
    ]


@pytest.fixture
def settlements():
    return [
        Settlement(
            id="s1",
            group_id="g1",
            payer_id="C",
            receiver_id="A",
            amount=30000,
            created_at=datetime(2026, 3, 10, tzinfo=UTC),
        ),
        Settlement(
            id="s2",
            group_id="g1",
            payer_id="B",
            receiver_id="A",
            amount=1000,
            kind=SettlementKind.ADJUSTMENT,
            created_at=datetime(2026, 3, 12, tzinfo=UTC),
        ),
    ]


class TestFormatMinorUnits:
    def test_plain(self):
        assert format_minor_units(12345) == "123.45"

    def test_symbol_and_grouping(self):
        assert format_minor_units(123456789, "₹", grouping=True) == "₹1,234,567.89"

    def test_small_and_zero(self):
        assert format_minor_units(5) == "0.05"
        assert format_minor_units(0) == "0.00"

    def test_negative(self):
        assert format_minor_units(-250, "$") == "-$2.50"


class TestExportGroupCsv:
    def test_sections_in_order(self, expenses, settlements, users):
        text = export_group_csv(expenses, settlements, users)

        expenses_at = text.index("--- EXPENSES ---")
        settlements_at = text.index("--- SETTLEMENTS ---")
        balances_at = text.index("--- CURRENT BALANCES ---")
        assert expenses_at < settlements_at < balances_at

    def test_expense_rows_newest_first(self, expenses, settlements, users):
        lines = export_group_csv(expenses, settlements, users).splitlines()

        assert lines[1] == "Date,Description,Amount,Category,Paid By,Split Details,Notes"
        assert lines[2] == "2026-03-05,Cab,300.00,TRANSPORT,Bob,Bob: 150.00; Carol: 150.00,"
        assert lines[3] == (
            "2026-03-01,Dinner,900.00,FOOD,Alice,"
            "Alice: 300.00; Bob: 300.00; Carol: 300.00,Birthday"
        )

    def test_settlement_rows_newest_first(self, expenses, settlements, users):
        lines = export_group_csv(expenses, settlements, users).splitlines()
        start = lines.index("--- SETTLEMENTS ---")

        assert lines[start + 1] == "Date,From,To,Amount,Type"
        assert lines[start + 2] == "2026-03-12,Bob,Alice,10.00,ADJUSTMENT"
        assert lines[start + 3] == "2026-03-10,Carol,Alice,300.00,PAYMENT"

    def test_current_balances(self, expenses, settlements, users):
        lines = export_group_csv(expenses, settlements, users).splitlines()
        start = lines.index("--- CURRENT BALANCES ---")

        # Carol settled with Alice; Bob paid 10 of his 300
        assert lines[start + 1 :] == [
            '"Bob" owes "Alice" ₹290.00',
            '"Carol" owes "Bob" ₹150.00',
        ]

    def test_currency_symbol(self, expenses, users):
        text = export_group_csv(expenses, [], users, currency_symbol="$")

        assert '"Bob" owes "Alice" $300.00' in text

    def test_small_balances_left_out(self, users):
        expenses = [
            make_expense(
                "e1", "A", 100, {"A": 50, "B": 50}, date=datetime(2026, 3, 1, tzinfo=UTC)
            ),
            make_expense(
                "e2", "A", 102, {"A": 51, "C": 51}, date=datetime(2026, 3, 1, tzinfo=UTC)
            ),
        ]

        lines = export_group_csv(expenses, [], users).splitlines()
        start = lines.index("--- CURRENT BALANCES ---")

        assert lines[start + 1 :] == ['"Carol" owes "Alice" ₹0.51']

    def test_unknown_users(self, users):
        expenses = [
            make_expense(
                "e1",
                "ghost",
                20000,
                {"A": 10000, "ghost": 10000},
                date=datetime(2026, 3, 1, tzinfo=UTC),
            )
        ]

        text = export_group_csv(expenses, [], users)

        assert ",Unknown," in text
        assert '"Alice" owes "Unknown" ₹100.00' in text

    def test_quotes_in_names_are_escaped(self):
        users = {
            "A": User(id="A", name='Alice "Al" Smith'),
            "B": User(id="B", name="Bob"),
        }
        expenses = [
            make_expense(
                "e1", "A", 20000, {"A": 10000, "B": 10000}, date=datetime(2026, 3, 1, tzinfo=UTC)
            )
        ]

        lines = export_group_csv(expenses, [], users).splitlines()
        start = lines.index("--- CURRENT BALANCES ---")

        assert lines[start + 1 :] == ['"Bob" owes "Alice ""Al"" Smith" ₹100.00']
        assert '"Alice ""Al"" Smith"' in lines[2]

    def test_empty_group(self, users):
        text = export_group_csv([], [], users)

        assert text.splitlines() == [
            "--- EXPENSES ---",
            "Date,Description,Amount,Category,Paid By,Split Details,Notes",
            "",
            "--- SETTLEMENTS ---",
            "Date,From,To,Amount,Type",
            "",
            "--- CURRENT BALANCES ---",
        ]
