"""Balance engine: net balances, debt simplification, pairwise debts and rollups."""

from .archive import ARCHIVE_DUST_THRESHOLD, ensure_archivable, has_unsettled_balances
from .dashboard import build_dashboard
from .export import EXPORT_DUST_THRESHOLD, export_group_csv
from .ledger import SETTLED_DUST_THRESHOLD, compute_net_balances, user_balance
from .pairwise import resolve_pairwise
from .simplifier import simplify_debts

__all__ = [
    "ARCHIVE_DUST_THRESHOLD",
    "EXPORT_DUST_THRESHOLD",
    "SETTLED_DUST_THRESHOLD",
    "build_dashboard",
    "compute_net_balances",
    "ensure_archivable",
    "export_group_csv",
    "has_unsettled_balances",
    "resolve_pairwise",
    "simplify_debts",
    "user_balance",
]
