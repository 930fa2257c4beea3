"""
Money -- document-currency to base-currency conversion.

Responsibility:
    Converts amounts with an exchange rate using fixed-point Decimal
    arithmetic and round-half-up at a fixed scale.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - No floats.  Inputs that are not Decimal (or int) are rejected.
    - convert(amount, rate) == round_money(amount * rate, scale).
    - A rate that is missing, zero, negative, NaN or infinite raises
      InvalidRateError before any arithmetic happens.

Failure modes:
    - InvalidRateError for a bad rate.
    - ValueError for a negative amount or a float argument.
"""

from decimal import Decimal

from ledger_kernel.db.types import (
    AMOUNT_DECIMAL_PLACES,
    RATE_DECIMAL_PLACES,
    round_money,
)
from ledger_kernel.exceptions import InvalidRateError

ONE = Decimal("1")


def _as_decimal(value: Decimal | int, name: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (Decimal, int)):
        raise ValueError(f"{name} must be Decimal or int, got {type(value).__name__}")
    return Decimal(value)


def validate_rate(rate: Decimal | int | None) -> Decimal:
    """
    Return ``rate`` as a Decimal if it is finite and positive.

    Raises:
        InvalidRateError: If rate is None, non-numeric, non-finite or <= 0.
    """
    if rate is None or isinstance(rate, bool) or not isinstance(rate, (Decimal, int)):
        raise InvalidRateError(rate)
    rate = Decimal(rate)
    if not rate.is_finite() or rate <= 0:
        raise InvalidRateError(rate)
    return rate


def normalize_rate(rate: Decimal | int | None) -> Decimal:
    """Validate a rate and round it to the stored precision (6 dp)."""
    normalized = round_money(validate_rate(rate), RATE_DECIMAL_PLACES)
    if normalized <= 0:
        raise InvalidRateError(rate)
    return normalized


def convert(
    amount: Decimal | int,
    rate: Decimal | int | None,
    scale: int = AMOUNT_DECIMAL_PLACES,
) -> Decimal:
    """
    Convert ``amount`` with ``rate`` and round half-up to ``scale`` places.

    Preconditions:
        - amount >= 0.
        - rate > 0 and finite.

    Postconditions:
        - Returns round_money(amount * rate, scale).

    Raises:
        InvalidRateError: If the rate is invalid.
        ValueError: If amount is negative or a float.
    """
    rate = validate_rate(rate)
    amount = _as_decimal(amount, "amount")
    if amount < 0:
        raise ValueError(f"amount must be >= 0, got {amount}")
    return round_money(amount * rate, scale)


def inverse(rate: Decimal | int | None) -> Decimal:
    """Return 1 / rate without rounding."""
    return ONE / validate_rate(rate)


def points_to_currency(
    points: Decimal | int,
    redemption_rate: Decimal | int,
    scale: int = AMOUNT_DECIMAL_PLACES,
) -> Decimal:
    """
    Currency value of loyalty points: points / redemption_rate.

    A redemption rate of 100 means 100 points are worth one currency unit,
    so 3500 points are worth 35.00.

    Raises:
        InvalidRateError: If redemption_rate is not a finite positive number.
        ValueError: If points is negative.
    """
    redemption_rate = validate_rate(redemption_rate)
    points = _as_decimal(points, "points")
    if points < 0:
        raise ValueError(f"points must be >= 0, got {points}")
    return round_money(points / redemption_rate, scale)
