"""金額換算與進位。四捨五入與無條件捨去分開命名，不可互換。"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, ROUND_FLOOR
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(v: Any) -> Decimal:
    """空值或無法轉換者視為 0"""
    if v is None or v == "":
        return ZERO
    if isinstance(v, Decimal):
        return v if v.is_finite() else ZERO
    if isinstance(v, bool):
        return Decimal(int(v))
    try:
        d = Decimal(str(v).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    return d if d.is_finite() else ZERO


def round_half_up_2(d: Decimal) -> Decimal:
    """四捨五入到小數兩位（參考單價用）"""
    return to_decimal(d).quantize(CENT, rounding=ROUND_HALF_UP)


def floor_2(d: Decimal) -> Decimal:
    """無條件捨去到小數兩位（往負無限大）"""
    return to_decimal(d).quantize(CENT, rounding=ROUND_FLOOR)


def month_of(d) -> str:
    """日期 -> YYYY-MM"""
    return f"{d.year:04d}-{d.month:02d}"
