"""Money conversion between stored major units and provider minor units.

Amounts are stored in major units (dollars, naira). Conversion to minor
units (cents, kobo) happens once on the way out to a provider; conversion
back happens once when reading a provider's webhook payload.
"""

from decimal import ROUND_HALF_UP, Decimal

MINOR_UNITS_PER_MAJOR = 100
CENTS = Decimal("0.01")


def quantize_money(amount: Decimal) -> Decimal:
    """Round to two decimal places (half up).

    Example: Decimal("22500.005") -> Decimal("22500.01")
    """
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal | int | str) -> int:
    """Convert a major-unit amount to integer minor units.

    Example: 25000.50 NGN -> 2500050 kobo
    """
    value = Decimal(str(amount)) * MINOR_UNITS_PER_MAJOR
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_major_units(amount_minor: int | str) -> Decimal:
    """Convert integer minor units from a provider payload to major units.

    Example: 500000 kobo -> Decimal("5000.00")
    """
    return quantize_money(Decimal(int(amount_minor)) / MINOR_UNITS_PER_MAJOR)


def net_of_fee(price: Decimal, fee_rate: Decimal) -> Decimal:
    """Amount a counselor earns from a session after the platform fee.

    Example: net_of_fee(Decimal("100"), Decimal("0.10")) -> Decimal("90.00")
    """
    return quantize_money(price * (Decimal("1") - fee_rate))
