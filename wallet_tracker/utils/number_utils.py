from wallet_tracker.constants import CURRENCY_EPSILON, SHARE_EPSILON


def safe_percent(numerator: float, denominator: float) -> float | None:
    """
    Percentage of numerator over denominator that never divides by zero.

    A zero denominator gives 0.0 when the numerator is also zero, otherwise None
    (the percentage is undefined).
    """
    if abs(denominator) < CURRENCY_EPSILON:
        return 0.0 if abs(numerator) < CURRENCY_EPSILON else None
    return numerator / denominator * 100


def snap_shares(value: float) -> float:
    """Collapse float residue around zero so sold-out wallets read exactly 0."""
    return 0.0 if abs(value) < SHARE_EPSILON else value


def is_zero_shares(value: float) -> bool:
    return abs(value) < SHARE_EPSILON
