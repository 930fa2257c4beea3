"""
Module: ledger_kernel.db.types
Responsibility: Annotated column aliases and the canonical precision, rounding
    and currency-validation helpers for posted amounts.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Posted amounts and base-currency equivalents are stored with 2 decimal
      places; exchange rates with 6.
    - round_money() is the ONLY sanctioned rounding function.  Rounding is
      ROUND_HALF_UP, never banker's rounding.
    - No floats anywhere in the ledger.  All monetary values are Decimal.

Failure modes:
    - InvalidCurrencyError on invalid ISO 4217 code.
    - decimal.InvalidOperation on non-numeric string passed to money_from_str().
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated

from sqlalchemy import Numeric, String

from ledger_kernel.exceptions import InvalidCurrencyError

# Posted amount: 15 digits, 2 decimal places
Amount = Annotated[Decimal, Numeric(15, 2)]

# Exchange rate: 15 digits, 6 decimal places
RateColumn = Annotated[Decimal, Numeric(15, 6)]

# ISO 4217 currency code
Currency = Annotated[str, String(3)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]


AMOUNT_DECIMAL_PLACES = 2
RATE_DECIMAL_PLACES = 6
DEFAULT_ROUNDING = ROUND_HALF_UP

# Largest |debits - credits| still considered balanced
BALANCE_TOLERANCE = Decimal("0.01")

ZERO = Decimal("0")


def money_from_str(value: str) -> Decimal:
    """
    Create a monetary Decimal from a string, unrounded.

    Raises:
        decimal.InvalidOperation: If value is not numeric.
    """
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = AMOUNT_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the specified decimal places.

    This is the ONLY sanctioned rounding function for ledger values.  All
    other code MUST delegate rounding here so precision is applied
    uniformly.

    Preconditions: value is a finite Decimal.
    Postconditions: Returns value quantized to ``decimal_places`` using
        ``rounding`` (ROUND_HALF_UP by default).

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode.

    Returns:
        Rounded Decimal value.
    """
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)


# ISO 4217 Currency Codes
ISO_4217_CURRENCIES: frozenset[str] = frozenset({
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD",
    "AED", "AFN", "ALL", "AMD", "ANG", "AOA", "ARS", "AWG", "AZN",
    "BAM", "BBD", "BDT", "BGN", "BHD", "BIF", "BMD", "BND", "BOB", "BRL", "BSD", "BTN", "BWP", "BYN", "BZD",
    "CDF", "CLP", "CNY", "COP", "CRC", "CUP", "CVE", "CZK",
    "DJF", "DKK", "DOP", "DZD",
    "EGP", "ERN", "ETB",
    "FJD", "FKP",
    "GEL", "GHS", "GIP", "GMD", "GNF", "GTQ", "GYD",
    "HKD", "HNL", "HTG", "HUF",
    "IDR", "ILS", "INR", "IQD", "IRR", "ISK",
    "JMD", "JOD",
    "KES", "KGS", "KHR", "KMF", "KPW", "KRW", "KWD", "KYD", "KZT",
    "LAK", "LBP", "LKR", "LRD", "LSL", "LYD",
    "MAD", "MDL", "MGA", "MKD", "MMK", "MNT", "MOP", "MRU", "MUR", "MVR", "MWK", "MXN", "MYR", "MZN",
    "NAD", "NGN", "NIO", "NOK", "NPR",
    "OMR",
    "PAB", "PEN", "PGK", "PHP", "PKR", "PLN", "PYG",
    "QAR",
    "RON", "RSD", "RUB", "RWF",
    "SAR", "SBD", "SCR", "SDG", "SEK", "SGD", "SHP", "SLE", "SOS", "SRD", "SSP", "STN", "SYP", "SZL",
    "THB", "TJS", "TMT", "TND", "TOP", "TRY", "TTD", "TWD", "TZS",
    "UAH", "UGX", "UYU", "UZS",
    "VES", "VND", "VUV",
    "WST",
    "XAF", "XCD", "XOF", "XPF",
    "YER",
    "ZAR", "ZMW", "ZWL",
})


def validate_currency(currency: str) -> str:
    """
    Validate and normalize an ISO 4217 currency code.

    Returns:
        The uppercase, trimmed code.

    Raises:
        InvalidCurrencyError: If the code is not a known ISO 4217 code.
    """
    if not currency or not isinstance(currency, str):
        raise InvalidCurrencyError(str(currency))

    normalized = currency.upper().strip()
    if normalized not in ISO_4217_CURRENCIES:
        raise InvalidCurrencyError(currency)
    return normalized


def is_valid_currency(currency: str) -> bool:
    """Check if a currency code is a valid ISO 4217 code."""
    try:
        validate_currency(currency)
    except InvalidCurrencyError:
        return False
    return True
