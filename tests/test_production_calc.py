"""
員工每日計薪 單元測試（純函式，不需 DB）。
覆蓋：針數下限、單列計算、出勤底薪表（含 Half 升級 Day）、獎金、定額。
"""
from datetime import date
from decimal import Decimal
import pytest

from embroideryos.schemas import PayRuleConfig, ProductionRowInput
from embroideryos.services.production_calc import (
    build_staff_record, calc_row, cap_design_stitch, resolve_base_amount, sum_totals,
)


def _config(**overrides) -> PayRuleConfig:
    data = dict(
        id=1,
        effective_date=date(2024, 1, 1),
        stitch_rate="1",
        applique_rate="1",
        on_target_pct="1",
        after_target_pct="2",
        pcs_per_round="12",
        target_amount="1000",
        off_amount="300",
    )
    data.update(overrides)
    return PayRuleConfig(**data)


def _build(attendance, rows=None, salary=None, bonus_qty=0, bonus_rate=None, fix_amount=None, config=None):
    return build_staff_record(
        staff_id=1,
        record_date=date(2024, 3, 15),
        attendance=attendance,
        production_rows=rows or [],
        bonus_qty=bonus_qty,
        bonus_rate_override=bonus_rate,
        fix_amount=fix_amount,
        salary=salary,
        config=config or _config(),
    )


def test_cap_design_stitch():
    assert cap_design_stitch(Decimal("1")) == Decimal("5000")
    assert cap_design_stitch(Decimal("5000")) == Decimal("5000")
    assert cap_design_stitch(Decimal("5001")) == Decimal("5001")
    assert cap_design_stitch(Decimal("0")) == Decimal("0")


def test_calc_row_uses_capped_stitch_for_amount_but_raw_for_total_stitch():
    """3000 針以 5000 計價；total_stitch 仍用原值 × 回數"""
    r = calc_row({"design_stitch": 3000, "applique": 0, "piece_count": 10, "round_count": 1}, _config())
    assert r.total_stitch == Decimal("3000")
    assert r.on_target_amount == Decimal("500")
    assert r.after_target_amount == Decimal("1000")


def test_calc_row_applique():
    r = calc_row(ProductionRowInput(design_stitch=6000, applique=2, piece_count=10, round_count=1), _config(applique_rate="50"))
    # 6000*1*10/100 + 50*2*10/100 = 600 + 10
    assert r.on_target_amount == Decimal("610")


def test_piece_count_derived_from_round_count():
    r = calc_row({"design_stitch": 6000, "round_count": 2}, _config())
    assert r.piece_count == Decimal("24")


def test_sum_totals_empty_is_none():
    assert sum_totals([]) is None


def test_half_upgrades_to_day_when_target_reached():
    """on=1200 >= target=1000：Half 升級為 Day，取達標金額"""
    snap = _build("Half", [{"design_stitch": 6000, "piece_count": 20, "round_count": 1}])
    assert snap.totals.on_target_amount == Decimal("1200")
    assert snap.attendance == "Day"
    assert snap.base_amount == Decimal("2400")
    assert snap.final_amount == Decimal("2400")


def test_half_below_target_stays_half():
    snap = _build("Half", [{"design_stitch": 5000, "piece_count": 10, "round_count": 1}])
    assert snap.attendance == "Half"
    assert snap.base_amount == Decimal("500")


def test_day_below_target_takes_on_target_amount():
    snap = _build("Day", [{"design_stitch": 5000, "piece_count": 10, "round_count": 1}])
    assert snap.attendance == "Day"
    assert snap.base_amount == Decimal("500")


def test_off_piece_rate_gets_off_amount_and_ignores_production():
    snap = _build("Off", [{"design_stitch": 6000, "piece_count": 20}], bonus_qty=3)
    assert snap.production == []
    assert snap.totals is None
    assert snap.base_amount == Decimal("300")
    assert snap.bonus_amount == Decimal("0")
    assert snap.final_amount == Decimal("300")


@pytest.mark.parametrize("attendance,expected", [
    ("Day", Decimal("100")),
    ("Night", Decimal("100")),
    ("Half", Decimal("50")),
    ("Sunday", Decimal("100")),
    ("Off", Decimal("100")),
    ("Absent", Decimal("0")),
    ("Close", Decimal("0")),
])
def test_salaried_attendance_table(attendance, expected):
    """月薪 3000：日薪 100、半日 50"""
    _, base = resolve_base_amount(attendance, Decimal("3000"), None, _config())
    assert base == expected


def test_piece_rate_sunday_and_absent_zero():
    assert resolve_base_amount("Sunday", None, None, _config()) == ("Sunday", Decimal("0"))
    assert resolve_base_amount("Absent", 0, None, _config()) == ("Absent", Decimal("0"))


def test_invalid_attendance_raises():
    with pytest.raises(ValueError):
        resolve_base_amount("Holiday", None, None, _config())


def test_bonus_rate_default_then_config_then_override():
    rows = [{"design_stitch": 5000, "piece_count": 10}]
    assert _build("Day", rows, bonus_qty=2).bonus_amount == Decimal("400")
    snap = _build("Day", rows, bonus_qty=2, config=_config(bonus_rate="150"))
    assert snap.bonus_rate == Decimal("150")
    assert snap.bonus_amount == Decimal("300")
    snap = _build("Day", rows, bonus_qty=2, bonus_rate=100, config=_config(bonus_rate="150"))
    assert snap.bonus_amount == Decimal("200")
    assert snap.final_amount == Decimal("700")


def test_fix_amount_zero_overrides_final():
    snap = _build("Day", [{"design_stitch": 5000, "piece_count": 10}], bonus_qty=1, fix_amount=0)
    assert snap.base_amount == Decimal("500")
    assert snap.final_amount == Decimal("0")
    assert snap.fix_amount == Decimal("0")


def test_snapshot_freezes_config_values():
    snap = _build("Day")
    assert snap.month == "2024-03"
    assert snap.config_snapshot["config_id"] == 1
    assert snap.config_snapshot["effective_date"] == "2024-01-01"
    assert snap.config_snapshot["target_amount"] == "1000"
    assert snap.config_snapshot["bonus_rate"] is None


def test_pay_rule_config_is_immutable():
    cfg = _config()
    with pytest.raises(Exception):
        cfg.target_amount = Decimal("1")
