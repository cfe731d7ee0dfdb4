"""Pydantic domain models for SettleUp.

All money is carried as ``Money`` (an ``int`` of minor currency units, e.g.
paise or cents). Nothing in the balance engine ever sees a float.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

Money = int

# user_id -> Money; positive = owed to the user, negative = the user owes
NetBalance = dict[str, Money]


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so records always compare with each other."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


# ============================================================================
# Enums
# ============================================================================


class ExpenseCategory(str, Enum):
    """Spending category of an expense."""

    FOOD = "FOOD"
    TRANSPORT = "TRANSPORT"
    ACCOMMODATION = "ACCOMMODATION"
    ENTERTAINMENT = "ENTERTAINMENT"
    SHOPPING = "SHOPPING"
    UTILITIES = "UTILITIES"
    GROCERIES = "GROCERIES"
    OTHER = "OTHER"


class SettlementKind(str, Enum):
    """How a settlement came about. Metadata only; the ledger effect is identical."""

    PAYMENT = "PAYMENT"
    ADJUSTMENT = "ADJUSTMENT"

    @property
    def label(self) -> str:
        return "payment" if self is SettlementKind.PAYMENT else "balance adjustment"


class MemberRole(str, Enum):
    """Role of a user within a group."""

    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


# ============================================================================
# Ledger records
# ============================================================================


class User(BaseModel):
    """A person who can pay for or share in expenses."""

    id: str
    name: str
    email: str | None = None
    is_pseudo: bool = False  # placeholder user without an account


class ExpenseShare(BaseModel):
    """Portion of an expense attributed to a user, independent of who paid."""

    expense_id: str
    user_id: str
    amount: Money


class Expense(BaseModel):
    """An expense paid by one user and split into shares.

    The shares are expected to sum to ``amount``, but nothing here enforces it.
    """

    id: str
    group_id: str
    payer_id: str | None = None
    amount: Money
    shares: list[ExpenseShare] = Field(default_factory=list)
    description: str = ""
    category: ExpenseCategory = ExpenseCategory.OTHER
    date: datetime = Field(default_factory=lambda: datetime.now(UTC))
    notes: str | None = None
    currency: str = "INR"

    @field_validator("date")
    @classmethod
    def date_as_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def share_for(self, user_id: str) -> ExpenseShare | None:
        """Get the share attributed to a user, if any."""
        for share in self.shares:
            if share.user_id == user_id:
                return share
        return None

    def share_total(self) -> Money:
        return sum(share.amount for share in self.shares)


class Settlement(BaseModel):
    """Money moved directly from one user to another inside a group."""

    id: str
    group_id: str
    payer_id: str
    receiver_id: str
    amount: Money
    kind: SettlementKind = SettlementKind.PAYMENT
    notes: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def ledger_entries(self) -> tuple[tuple[str, Money], tuple[str, Money]]:
        """Balance deltas of this settlement: the payer gains, the receiver loses.

        Shared by every settlement kind.
        """
        return (self.payer_id, self.amount), (self.receiver_id, -self.amount)

    @field_validator("created_at")
    @classmethod
    def created_at_as_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class Group(BaseModel):
    """A group of users sharing expenses."""

    id: str
    name: str
    category: str = "OTHER"
    simplify_debts: bool = True
    is_archived: bool = False
    archived_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class GroupMember(BaseModel):
    """Membership of a user in a group."""

    group_id: str
    user_id: str
    role: MemberRole = MemberRole.MEMBER


class LedgerSnapshot(BaseModel):
    """Expenses and settlements of one group, read at a single point in time."""

    group: Group
    expenses: list[Expense] = Field(default_factory=list)
    settlements: list[Settlement] = Field(default_factory=list)


# ============================================================================
# Engine outputs
# ============================================================================


class Transaction(BaseModel):
    """A settle-up payment proposed by the debt simplifier."""

    ower_id: str
    owee_id: str
    amount: Money


class PairwiseBalance(BaseModel):
    """A direct debt between two users, without netting through anyone else."""

    ower_id: str
    owee_id: str
    amount: Money


class GroupBalances(BaseModel):
    """Who owes whom in a group, in the mode the group is configured for."""

    group: Group
    net_balances: NetBalance
    simplified: bool
    debts: list[Transaction | PairwiseBalance] = Field(default_factory=list)


class CounterpartyBalance(BaseModel):
    """Amount between the dashboard user and one other user."""

    user_id: str
    name: str
    amount: Money


class CategorySpending(BaseModel):
    """Total spent in one expense category."""

    category: str
    amount: Money


class Dashboard(BaseModel):
    """Cross-group summary for a single user."""

    total_owed: Money  # owed to the user
    total_owe: Money  # owed by the user
    net_balance: Money
    group_count: int
    monthly_spending: Money
    category_distribution: list[CategorySpending] = Field(default_factory=list)
    top_owed_by: list[CounterpartyBalance] = Field(default_factory=list)  # they owe me
    top_owed_to: list[CounterpartyBalance] = Field(default_factory=list)  # I owe them


# ============================================================================
# Import format
# ============================================================================


class LedgerFile(BaseModel):
    """A JSON ledger document that can be loaded into the store."""

    users: list[User] = Field(default_factory=list)
    groups: list[Group] = Field(default_factory=list)
    members: list[GroupMember] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    settlements: list[Settlement] = Field(default_factory=list)
