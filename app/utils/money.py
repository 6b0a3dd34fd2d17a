"""Money helpers. All amounts are Decimals with two fractional digits."""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value) -> Decimal:
    """Coerce a value (Decimal, int, str, None) to a two-digit Decimal."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def host_earnings(price: Decimal, commission_rate: Decimal) -> Decimal:
    """Host's share of a booking price after the platform commission.

    Args:
        price: Booking price
        commission_rate: Commission percent (10.00 means 10 %)

    Returns:
        Decimal: price × (1 − rate / 100), rounded half-up to cents
    """
    share = Decimal(price) * (HUNDRED - Decimal(commission_rate)) / HUNDRED
    return share.quantize(CENT, rounding=ROUND_HALF_UP)


def half_of(amount: Decimal) -> Decimal:
    """Half of an amount, rounded down so it never exceeds the true half."""
    return (Decimal(amount) / 2).quantize(CENT, rounding=ROUND_DOWN)
