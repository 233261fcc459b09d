from decimal import Decimal, ROUND_HALF_UP

Money = Decimal

ZERO = Decimal("0")
CENT = Decimal("0.01")


def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))


def round_money(x) -> Money:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)


def clamp_money(x, upper=None) -> Money:
    """Round and keep the amount inside [0, upper]."""
    amount = max(round_money(x), ZERO)
    if upper is not None:
        amount = min(amount, round_money(upper))
    return amount


def percent_of(total, percent) -> Money:
    return round_money(D(total) * D(percent) / 100)
