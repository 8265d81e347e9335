"""
員工每日計薪（純函式，不碰資料庫）。
生產明細 -> 合計 -> 出勤底薪（含 Half 升級 Day）-> 獎金 -> 定額 -> 設定快照。
生產設定一律以 PayRuleConfig 參數傳入。
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from embroideryos.schemas import (
    PayRuleConfig,
    ProductionRowInput,
    ProductionRowResult,
    ProductionTotals,
    StaffRecordSnapshot,
)
from embroideryos.models import ATTENDANCE_STATES
from embroideryos.services.money import ZERO, to_decimal, month_of

# 這些出勤狀態不得有生產，也不給獎金
NO_PRODUCTION_ATTENDANCE = frozenset({"Absent", "Off", "Close", "Sunday"})
MIN_DESIGN_STITCH = Decimal("5000")
DEFAULT_BONUS_RATE = Decimal("200")
HUNDRED = Decimal("100")

SNAPSHOT_FIELDS = (
    "stitch_rate",
    "applique_rate",
    "on_target_pct",
    "after_target_pct",
    "pcs_per_round",
    "target_amount",
    "off_amount",
    "bonus_rate",
    "allowance",
)


def cap_design_stitch(design_stitch: Decimal) -> Decimal:
    """0 < 針數 <= 5000 一律以 5000 計；其餘原值"""
    if ZERO < design_stitch <= MIN_DESIGN_STITCH:
        return MIN_DESIGN_STITCH
    return design_stitch


def _row_input(row: Any) -> ProductionRowInput:
    if isinstance(row, ProductionRowInput):
        return row
    return ProductionRowInput.model_validate(row)


def calc_row(row: Any, config: PayRuleConfig) -> ProductionRowResult:
    r = _row_input(row)
    design = to_decimal(r.design_stitch)
    applique = to_decimal(r.applique)
    rounds = to_decimal(r.round_count)
    pieces = to_decimal(r.piece_count) if r.piece_count is not None else rounds * config.pcs_per_round

    stitch_base = cap_design_stitch(design) * config.stitch_rate * pieces / HUNDRED
    applique_base = config.applique_rate * applique * pieces / HUNDRED
    combined = stitch_base + applique_base
    return ProductionRowResult(
        design_stitch=design,
        applique=applique,
        piece_count=pieces,
        round_count=rounds,
        total_stitch=design * rounds,
        on_target_amount=combined * config.on_target_pct,
        after_target_amount=combined * config.after_target_pct,
    )


def sum_totals(rows: Iterable[ProductionRowResult]) -> Optional[ProductionTotals]:
    """逐欄加總；無明細回傳 None"""
    rows = list(rows)
    if not rows:
        return None
    totals = ProductionTotals()
    for r in rows:
        totals = ProductionTotals(
            piece_count=totals.piece_count + r.piece_count,
            round_count=totals.round_count + r.round_count,
            total_stitch=totals.total_stitch + r.total_stitch,
            on_target_amount=totals.on_target_amount + r.on_target_amount,
            after_target_amount=totals.after_target_amount + r.after_target_amount,
        )
    return totals


def resolve_base_amount(
    attendance: str,
    salary: Any,
    totals: Optional[ProductionTotals],
    config: PayRuleConfig,
) -> Tuple[str, Decimal]:
    """
    回傳 (resolved_attendance, base_amount)，不修改任何輸入。
    salary > 0 視為月薪制：日薪 salary/30、半日 salary/60。
    計件制：on_target < target_amount 取 on_target，否則取 after_target；
    Half 達標時升級為 Day，這是唯一會改寫出勤的情況。
    """
    if attendance not in ATTENDANCE_STATES:
        raise ValueError(f"出勤狀態錯誤：{attendance}")
    pay = to_decimal(salary)
    salaried = pay > 0
    per_day = pay / Decimal("30") if salaried else ZERO
    per_half = pay / Decimal("60") if salaried else ZERO
    on = totals.on_target_amount if totals else ZERO
    after = totals.after_target_amount if totals else ZERO

    if attendance in ("Absent", "Close"):
        return attendance, ZERO
    if attendance == "Sunday":
        return attendance, per_day if salaried else ZERO
    if attendance == "Off":
        return attendance, per_day if salaried else config.off_amount
    if salaried:
        return attendance, per_half if attendance == "Half" else per_day
    if on < config.target_amount:
        return attendance, on
    if attendance == "Half":
        return "Day", after
    return attendance, after


def resolve_bonus(
    attendance: str,
    bonus_qty: Any,
    bonus_rate_override: Any,
    config: PayRuleConfig,
) -> Tuple[Decimal, Decimal]:
    """回傳 (使用的獎金單價, 獎金金額)；不給獎金的出勤狀態金額為 0"""
    if bonus_rate_override is not None:
        rate = to_decimal(bonus_rate_override)
    elif config.bonus_rate is not None:
        rate = config.bonus_rate
    else:
        rate = DEFAULT_BONUS_RATE
    if attendance in NO_PRODUCTION_ATTENDANCE:
        return rate, ZERO
    return rate, to_decimal(bonus_qty) * rate


def config_snapshot(config: PayRuleConfig) -> Dict[str, Any]:
    """凍結計算所用設定；數值存字串以免 JSON 浮點誤差"""
    snap: Dict[str, Any] = {
        "config_id": config.id,
        "effective_date": config.effective_date.isoformat() if config.effective_date else None,
    }
    for name in SNAPSHOT_FIELDS:
        value = getattr(config, name)
        snap[name] = None if value is None else str(value)
    return snap


def build_staff_record(
    staff_id: int,
    record_date: date,
    attendance: str,
    production_rows: Optional[Iterable[Any]],
    bonus_qty: Any,
    bonus_rate_override: Any,
    fix_amount: Any,
    salary: Any,
    config: PayRuleConfig,
) -> StaffRecordSnapshot:
    rows: List[ProductionRowResult] = []
    if attendance not in NO_PRODUCTION_ATTENDANCE:
        rows = [calc_row(r, config) for r in (production_rows or [])]
    totals = sum_totals(rows)
    resolved, base = resolve_base_amount(attendance, salary, totals, config)
    rate, bonus = resolve_bonus(resolved, bonus_qty, bonus_rate_override, config)
    fix = None if fix_amount is None else to_decimal(fix_amount)
    final = fix if fix is not None else base + bonus
    return StaffRecordSnapshot(
        staff_id=staff_id,
        date=record_date,
        month=month_of(record_date),
        attendance=resolved,
        production=rows,
        totals=totals,
        base_amount=base,
        bonus_qty=to_decimal(bonus_qty),
        bonus_rate=rate,
        bonus_amount=bonus,
        fix_amount=fix,
        final_amount=final,
        config_snapshot=config_snapshot(config),
    )
