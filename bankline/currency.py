"""
Currency Support Module

Handles ISO 4217 currency precision and the conversion between major units
(what callers send, e.g. dollars) and minor units (what the ledger stores,
e.g. cents). Balances are integers in minor units, NEVER floats.
"""

from decimal import Decimal, DecimalException, InvalidOperation, ROUND_DOWN
from enum import Enum
from typing import Union


Amount = Union[Decimal, int, float, str]

# Ledger balances and deltas are signed 64-bit integers
MAX_MINOR_UNITS = 2 ** 63 - 1


class AmountOutOfRangeError(ValueError):
    """Amount is a finite number but does not fit the ledger's integer range"""


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    USD = ("USD", 2)  # US Dollar, 2 decimal places
    EUR = ("EUR", 2)  # Euro, 2 decimal places
    GBP = ("GBP", 2)  # British Pound, 2 decimal places
    JPY = ("JPY", 0)  # Japanese Yen, 0 decimal places
    CAD = ("CAD", 2)  # Canadian Dollar, 2 decimal places
    CHF = ("CHF", 2)  # Swiss Franc, 2 decimal places

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @property
    def minor_factor(self) -> int:
        """Number of minor units in one major unit (100 for USD)"""
        return 10 ** self.precision


def to_decimal(amount: Amount) -> Decimal:
    """
    Convert a major-unit amount to Decimal without binary float drift.

    Floats go through their shortest repr, so 0.29 becomes Decimal('0.29')
    rather than 0.28999999999999998002...

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(amount, bool):
        raise ValueError(f"Cannot convert {amount!r} to an amount")

    if isinstance(amount, Decimal):
        value = amount
    elif isinstance(amount, int):
        value = Decimal(amount)
    else:
        try:
            value = Decimal(str(amount).strip())
        except InvalidOperation:
            raise ValueError(f"Cannot convert {amount!r} to an amount")

    if not value.is_finite():
        raise ValueError(f"Amount must be finite, got {amount!r}")

    return value


def to_minor_units(amount: Amount, currency: Currency = Currency.USD) -> int:
    """
    Convert a major-unit amount to integer minor units.

    Multiplies by the currency's minor factor and truncates toward zero,
    so 12.349 USD is 1234 cents and -12.349 USD is -1234 cents.

    Args:
        amount: Amount in major units
        currency: Currency defining precision

    Returns:
        Amount in minor units

    Raises:
        ValueError: If the value is not a finite number
        AmountOutOfRangeError: If the result exceeds MAX_MINOR_UNITS in magnitude
    """
    value = to_decimal(amount)
    try:
        scaled = value.scaleb(currency.precision).to_integral_value(rounding=ROUND_DOWN)
    except DecimalException as e:
        raise AmountOutOfRangeError(f"Amount {amount!r} is out of range") from e

    if abs(scaled) > MAX_MINOR_UNITS:
        raise AmountOutOfRangeError(f"Amount {amount!r} is out of range")
    return int(scaled)


def from_minor_units(minor: int, currency: Currency = Currency.USD) -> Decimal:
    """Convert integer minor units back to a major-unit Decimal"""
    return Decimal(minor).scaleb(-currency.precision).quantize(
        Decimal(1).scaleb(-currency.precision)
    )


def format_minor_units(minor: int, currency: Currency = Currency.USD) -> str:
    """Format minor units for display, e.g. 'USD 1,250.00'"""
    amount = from_minor_units(minor, currency)
    return f"{currency.code} {amount:,.{currency.precision}f}"
