"""Custom exceptions for SettleUp."""


class SettleUpError(Exception):
    """Base exception for all SettleUp errors."""

    pass


class ConfigurationError(SettleUpError):
    """Raised when configuration is invalid or missing."""

    pass


class GroupNotFoundError(SettleUpError):
    """Raised when a privileged operation targets a group that does not exist."""

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(f"Group {group_id} not found")


class NotAuthenticatedError(SettleUpError):
    """Raised when a privileged operation is attempted without a user."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class NotAuthorizedError(SettleUpError):
    """Raised when a non-member or non-admin attempts a privileged action."""

    pass


class UnsettledBalancesError(SettleUpError):
    """Raised when a group cannot be archived because balances are still open."""

    def __init__(self, balances: dict[str, int], message: str | None = None):
        self.balances = balances
        super().__init__(
            message
            or "Cannot archive: There are unsettled balances. "
            "Please settle all debts first."
        )


class ShareMismatchError(SettleUpError):
    """Raised when an expense's shares don't add up to its amount."""

    def __init__(self, expense_id: str, amount: int, share_total: int):
        self.expense_id = expense_id
        self.amount = amount
        self.share_total = share_total
        super().__init__(
            f"Shares of expense {expense_id} sum to {share_total}, "
            f"expected {amount}"
        )
