"""SettleUp - Balance engine for shared-expense groups."""

__version__ = "0.1.0"

from .balances import (
    build_dashboard,
    compute_net_balances,
    ensure_archivable,
    resolve_pairwise,
    simplify_debts,
)
from .balances.service import BalanceService
from .config import Settings, load_settings
from .db import Database
from .models import (
    Dashboard,
    Expense,
    ExpenseShare,
    PairwiseBalance,
    Settlement,
    SettlementKind,
    Transaction,
)

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "Dashboard",
    "Expense",
    "ExpenseShare",
    "PairwiseBalance",
    "Settlement",
    "SettlementKind",
    "Transaction",
    "BalanceService",
    "build_dashboard",
    "compute_net_balances",
    "ensure_archivable",
    "resolve_pairwise",
    "simplify_debts",
]
