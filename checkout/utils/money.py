# checkout/utils/money.py
from decimal import Decimal, ROUND_HALF_UP

Money = Decimal

CENT = Decimal("0.01")


def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))


def round_money(x) -> Money:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(x) -> int:
    """Major units to the provider's integer minor units (cedis -> pesewas)."""
    return int((round_money(x) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(n) -> Money:
    return round_money(D(n) / 100)
