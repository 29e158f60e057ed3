import sqlite3


class WalletTrackerError(Exception):
    """Base exception for wallet tracker errors."""

    pass


class ValidationError(WalletTrackerError):
    """Raised when user input is rejected before anything is changed."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class AllocationError(ValidationError):
    """Raised when buy allocations across profit targets do not add up to 100%."""

    def __init__(self, total: float):
        super().__init__(
            f"Allocations must add up to 100% (currently {total:.2f}%)", field="allocations"
        )
        self.total = total


class InsufficientSharesError(ValidationError):
    """Raised when a sell asks for more shares than the wallet holds."""

    def __init__(self, requested: float, remaining: float):
        super().__init__(
            f"Quantity cannot exceed remaining shares ({remaining:.5f}), requested {requested:.5f}",
            field="quantity",
        )
        self.requested = requested
        self.remaining = remaining


class IntegrityError(WalletTrackerError):
    """Raised when an operation would leave the ledger in an inconsistent state."""

    pass


class SplitDeletionError(IntegrityError):
    """Raised when a split is deleted while later transactions depend on it."""

    def __init__(self, split_date: str, later_count: int):
        super().__init__(
            f"Cannot delete split dated {split_date}: {later_count} subsequent transactions exist. "
            "Delete the later transactions first."
        )
        self.split_date = split_date
        self.later_count = later_count


class ProfitTargetInUseError(IntegrityError):
    """Raised when a profit target with open wallets is deleted."""

    def __init__(self, profit_target_id: str, remaining_shares: float):
        super().__init__(
            f"Cannot delete profit target {profit_target_id}: "
            f"its wallets still hold {remaining_shares:.5f} shares"
        )
        self.profit_target_id = profit_target_id
        self.remaining_shares = remaining_shares


class NotFoundError(WalletTrackerError):
    """Raised when an entity cannot be found by id."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class PaginationLimitError(WalletTrackerError):
    """Raised when a next-token loop runs past its iteration cap."""

    def __init__(self, what: str, max_iterations: int):
        super().__init__(
            f"Stopped loading {what} after {max_iterations} pages; the result set is larger than expected"
        )
        self.max_iterations = max_iterations


class PriceFeedError(WalletTrackerError):
    """Raised when prices cannot be fetched for a symbol."""

    pass


def describe_error(error: Exception) -> str:
    """Normalise an exception raised during a user action to a single display line."""
    if isinstance(error, WalletTrackerError):
        return str(error)
    if isinstance(error, sqlite3.Error):
        return f"Database error: {error}"
    message: str = str(error).strip().splitlines()[0] if str(error).strip() else ""
    return f"{type(error).__name__}: {message}" if message else type(error).__name__
