from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP


MONEY_QUANT = Decimal("0.01")
PCT_QUANT = Decimal("0.000001")
ZERO = Decimal("0")


def as_decimal(value: Decimal | int | float | str | None) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: Decimal | int | float | str) -> Decimal:
    return as_decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def pct(value: Decimal | int | float | str) -> Decimal:
    return as_decimal(value).quantize(PCT_QUANT, rounding=ROUND_HALF_UP)


def whole(value: Decimal | int | float | str) -> Decimal:
    """Round to a whole unit, halves toward positive infinity (-2.5 -> -2)."""
    return (as_decimal(value) + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR)
