"""
訂單計價 單元測試。
參考單價四捨五入，其餘（單價加倍、設計針數反推、針數單價、總金額）無條件捨去。
"""
from decimal import Decimal

from embroideryos.services.money import floor_2, round_half_up_2, to_decimal
from embroideryos.services.order_pricing import (
    compute_order_pricing, compute_qt_pcs, compute_stitch_rate, normalize_apq,
)


def test_forward_pricing_dozen():
    """基本單價 10、實際 4000 針（套 5000）、單價 50、2 打 -> 24 片，總額 1200"""
    r = compute_order_pricing(base_rate=10, actual_stitches=4000, rate_input=50, unit="Dzn", quantity=2)
    assert r.design_stitches == Decimal("5000")
    assert r.qt_pcs == Decimal("24")
    assert r.calculated_rate == Decimal("50.00")
    assert r.stitch_rate == Decimal("10.00")
    assert r.total_amount == Decimal("1200.00")


def test_reverse_pricing_derives_design_stitches():
    """反推：單價 60 / 基本單價 10 * 1000 = 6000 針"""
    r = compute_order_pricing(base_rate=10, actual_stitches=0, reverse_mode=True, rate_input=60, unit="Pcs", quantity=5)
    assert r.design_stitches == Decimal("6000.00")
    assert r.rate == Decimal("60")
    assert r.stitch_rate == Decimal("10.00")
    assert r.calculated_rate == Decimal("60.00")
    assert r.total_amount == Decimal("300.00")


def test_reverse_pricing_zero_base_rate():
    r = compute_order_pricing(base_rate=0, actual_stitches=0, reverse_mode=True, rate_input=60, unit="Pcs", quantity=1)
    assert r.design_stitches == Decimal("0")
    assert r.calculated_rate == Decimal("0")
    assert r.stitch_rate == Decimal("0")


def test_two_side_doubles_rate_forward():
    r = compute_order_pricing(base_rate=10, actual_stitches=4000, two_side=True, rate_input="25.50", unit="Pcs", quantity=10)
    assert r.rate == Decimal("51.00")
    assert r.total_amount == Decimal("510.00")


def test_two_side_reverse_halves_rate_for_design():
    """反推雙面：單價不加倍，設計針數以一半單價反推"""
    r = compute_order_pricing(base_rate=10, actual_stitches=0, reverse_mode=True, two_side=True, rate_input=60, unit="Pcs", quantity=1)
    assert r.rate == Decimal("60")
    assert r.design_stitches == Decimal("3000.00")


def test_apq_clamped():
    assert normalize_apq(None) is None
    assert normalize_apq("") is None
    assert normalize_apq(45) == 30
    assert normalize_apq(-3) == 0
    assert normalize_apq("7.9") == 7


def test_stitch_rate_subtracts_apq_chr_only_when_apq_positive():
    assert compute_stitch_rate(60, 5000, 2, 10) == Decimal("10.00")
    assert compute_stitch_rate(60, 5000, 0, 10) == Decimal("12.00")
    assert compute_stitch_rate(60, 5000, None, 10) == Decimal("12.00")


def test_calculated_rate_rounds_half_up_total_floors():
    """3.333 * 5000 / 1000 = 16.665 -> 16.67；總額 3.333 * 1 -> 3.33"""
    r = compute_order_pricing(base_rate="3.333", actual_stitches=4000, rate_input="3.339", unit="Pcs", quantity=1)
    assert r.calculated_rate == Decimal("16.67")
    assert r.total_amount == Decimal("3.33")


def test_qt_pcs():
    assert compute_qt_pcs(3, "Dzn") == Decimal("36")
    assert compute_qt_pcs(3, "Pcs") == Decimal("3")


def test_custom_rules_override_default_curve():
    rules = [{"upper_bound": None, "mode": "identity", "value": 0}]
    r = compute_order_pricing(base_rate=10, actual_stitches=4000, rate_input=40, unit="Pcs", quantity=1, rules=rules)
    assert r.design_stitches == Decimal("4000")


def test_money_helpers():
    assert floor_2(Decimal("1.239")) == Decimal("1.23")
    assert floor_2(Decimal("-1.231")) == Decimal("-1.24")
    assert round_half_up_2(Decimal("1.235")) == Decimal("1.24")
    assert to_decimal("abc") == Decimal("0")
    assert to_decimal("NaN") == Decimal("0")
    assert to_decimal(None) == Decimal("0")


def test_reverse_pricing_non_divisible_rate_round_trips():
    """單價無法整除基本單價：反推針數捨去到兩位，再正算回參考單價仍得原單價"""
    r = compute_order_pricing(base_rate=9, actual_stitches=0, reverse_mode=True, rate_input="47.33", unit="Pcs", quantity=3)
    assert r.design_stitches == Decimal("5258.88")
    # 針數捨去最多 0.01，回推單價誤差不超過 基本單價 × 0.01 / 1000
    assert abs(Decimal("9") * r.design_stitches / Decimal("1000") - Decimal("47.33")) <= Decimal("9") * Decimal("0.01") / Decimal("1000")
    assert r.calculated_rate == Decimal("47.33")
    assert r.stitch_rate == Decimal("9.00")
    assert compute_stitch_rate(Decimal("47.33"), r.design_stitches, None) == Decimal("9.00")
    assert r.total_amount == Decimal("141.99")


def test_reverse_pricing_non_divisible_with_applique_charge():
    r = compute_order_pricing(
        base_rate=9, actual_stitches=0, apq=2, apq_chr="1.5", reverse_mode=True, rate_input="47.33", unit="Pcs", quantity=1,
    )
    assert r.design_stitches == Decimal("5092.22")
    assert r.calculated_rate == Decimal("47.33")
    assert r.stitch_rate == Decimal("9.00")
