"""
訂單計價：設計針數（正算 / 反推）、雙面加價、片數換算、參考單價、針數單價、總金額。
除參考單價（calculated_rate）四捨五入外，其餘金額一律無條件捨去到小數兩位。
"""
import math
from decimal import Decimal
from typing import Any, Iterable, Optional

from embroideryos.rules.stitch_formula import evaluate, default_rules
from embroideryos.schemas import OrderPricingResult
from embroideryos.services.money import ZERO, to_decimal, floor_2, round_half_up_2

DOZEN = Decimal("12")
APQ_MAX = 30


def normalize_apq(value: Any) -> Optional[int]:
    """空值回傳 None；其餘取整數（往下）並夾在 0~30"""
    if value is None or value == "":
        return None
    d = to_decimal(value)
    return max(0, min(APQ_MAX, math.floor(d)))


def normalize_apq_chr(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return max(ZERO, to_decimal(value))


def compute_design_stitches(actual_stitches: Any, rules: Optional[Iterable[Any]] = None) -> Decimal:
    """正算：實際針數經級距換算；未提供級距時用預設曲線"""
    return evaluate(rules if rules else default_rules(), actual_stitches)


def compute_design_stitches_from_rate(rate_for_design: Any, base_rate: Any, apq_chr: Any = None) -> Decimal:
    """反推：floor_2((rate - apq_chr) / base_rate * 1000)；單價或基本單價 <= 0 回傳 0"""
    r = to_decimal(rate_for_design)
    br = to_decimal(base_rate)
    if r <= 0 or br <= 0:
        return ZERO
    return floor_2((r - to_decimal(apq_chr)) / br * Decimal("1000"))


def compute_qt_pcs(quantity: Any, unit: str) -> Decimal:
    q = to_decimal(quantity)
    return q * DOZEN if unit == "Dzn" else q


def compute_calculated_rate(base_rate: Any, design_stitches: Any, apq_chr: Any = None) -> Decimal:
    ds = to_decimal(design_stitches)
    if ds <= 0:
        return ZERO
    return round_half_up_2(to_decimal(base_rate) * ds / Decimal("1000") + to_decimal(apq_chr))


def compute_stitch_rate(rate: Any, design_stitches: Any, apq: Optional[int], apq_chr: Any = None) -> Decimal:
    ds = to_decimal(design_stitches)
    r = to_decimal(rate)
    if ds <= 0 or r <= 0:
        return ZERO
    base = r - to_decimal(apq_chr) if (apq or 0) > 0 else r
    return floor_2(base / ds * Decimal("1000"))


def compute_total_amount(rate: Any, qt_pcs: Any) -> Decimal:
    return floor_2(to_decimal(rate) * to_decimal(qt_pcs))


def compute_order_pricing(
    base_rate: Any,
    actual_stitches: Any,
    apq: Any = None,
    apq_chr: Any = None,
    reverse_mode: bool = False,
    two_side: bool = False,
    rate_input: Any = None,
    unit: str = "Dzn",
    quantity: Any = 0,
    rules: Optional[Iterable[Any]] = None,
) -> OrderPricingResult:
    """
    依序計算：
    1. 單價：非反推且雙面時 floor_2(rate_input * 2)，否則 rate_input
    2. 設計針數：正算走級距；反推以 (rate_for_design - apq_chr) / base_rate * 1000
    3. 片數：Dzn × 12
    4. 參考單價（四捨五入）
    5. 針數單價（捨去）
    6. 總金額 floor_2(rate × 片數)
    """
    base = to_decimal(base_rate)
    apq_value = normalize_apq(apq)
    apq_chr_value = normalize_apq_chr(apq_chr)
    rate_in = max(ZERO, to_decimal(rate_input))

    if not reverse_mode and two_side:
        rate = floor_2(rate_in * 2)
    else:
        rate = rate_in

    if reverse_mode:
        rate_for_design = rate_in / 2 if two_side else rate_in
        design = compute_design_stitches_from_rate(rate_for_design, base, apq_chr_value)
    else:
        design = compute_design_stitches(actual_stitches, rules)

    qt_pcs = compute_qt_pcs(quantity, unit)
    return OrderPricingResult(
        customer_base_rate=base,
        apq=apq_value,
        apq_chr=apq_chr_value,
        rate_input=rate_in,
        rate=rate,
        design_stitches=design,
        qt_pcs=qt_pcs,
        calculated_rate=compute_calculated_rate(base, design, apq_chr_value),
        stitch_rate=compute_stitch_rate(rate, design, apq_value, apq_chr_value),
        total_amount=compute_total_amount(rate, qt_pcs),
    )
