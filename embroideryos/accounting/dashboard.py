"""
儀表板：今日 / 指定月份之筆數與金額、啟用中主檔數、最近單據、逐日趨勢。
與 ledger 相同，每次查詢即時以 COUNT / SUM 彙總，不做快取；日期區間含頭尾。
付出（payment_out）= 供應商付款 + 員工收付（含調整），與帳務餘額的借貸方向無關。
"""
import calendar
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.models import (
    Order, Invoice, Expense,
    CustomerPayment, SupplierPayment, StaffPayment,
    StaffRecord, CrpStaffRecord,
    Customer, Supplier, Staff,
)
from embroideryos.schemas import MONTH_PATTERN, OrderRead, InvoiceRead, ExpenseRead
from embroideryos.services.money import to_decimal

logger = logging.getLogger(__name__)

# 彙總來源：(模型, 日期欄, 金額欄)
SOURCES = {
    "orders": (Order, Order.date, Order.total_amount),
    "invoices": (Invoice, Invoice.invoice_date, Invoice.total_amount),
    "expenses": (Expense, Expense.date, Expense.amount),
    "payment_in": (CustomerPayment, CustomerPayment.date, CustomerPayment.amount),
    "supplier_out": (SupplierPayment, SupplierPayment.date, SupplierPayment.amount),
    "staff_out": (StaffPayment, StaffPayment.date, StaffPayment.amount),
    "staff_records": (StaffRecord, StaffRecord.date, StaffRecord.final_amount),
    "crp_records": (CrpStaffRecord, CrpStaffRecord.order_date, CrpStaffRecord.total_amount),
}

# 趨勢區間：往回推的天數（含今日共 N+1 天）
TREND_RANGES = {"7d": 6, "1m": 29, "3m": 89, "6m": 179}
DEFAULT_TREND_RANGE = "7d"
MAX_CUSTOM_TREND_DAYS = 366
RECENT_LIMIT = 5
WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


class DashboardRangeError(ValueError):
    """趨勢區間無效"""
    pass


def month_range(month: str) -> Tuple[date, date]:
    """YYYY-MM -> (當月 1 日, 當月最後一日)"""
    year, mon = (int(p) for p in month.split("-"))
    return date(year, mon, 1), date(year, mon, calendar.monthrange(year, mon)[1])


def previous_month(month: str) -> str:
    year, mon = (int(p) for p in month.split("-"))
    if mon == 1:
        return f"{year - 1}-12"
    return f"{year}-{mon - 1:02d}"


def sanitize_month(raw: Optional[str], today: date) -> str:
    """格式不符（含未填）一律改用今天所在月份，不報錯"""
    value = raw.strip() if isinstance(raw, str) else ""
    if MONTH_PATTERN.match(value):
        return value
    return today.strftime("%Y-%m")


def resolve_trend_range(
    range_key: Optional[str],
    date_from: Optional[date],
    date_to: Optional[date],
    today: date,
) -> Tuple[str, date, date]:
    """
    7d / 1m / 3m / 6m 以今天為迄日往回推；未知值視為 7d。
    custom 須同時提供起訖日、起日不晚於迄日，且不超過 MAX_CUSTOM_TREND_DAYS 天。
    """
    key = (range_key or DEFAULT_TREND_RANGE).strip().lower()
    if key == "custom":
        if date_from is None or date_to is None:
            raise DashboardRangeError("自訂區間須提供起日與迄日")
        if date_from > date_to:
            raise DashboardRangeError("起日不可晚於迄日")
        if (date_to - date_from).days + 1 > MAX_CUSTOM_TREND_DAYS:
            raise DashboardRangeError(f"自訂區間最多 {MAX_CUSTOM_TREND_DAYS} 天")
        return key, date_from, date_to
    if key not in TREND_RANGES:
        key = DEFAULT_TREND_RANGE
    return key, today - timedelta(days=TREND_RANGES[key]), today


def build_trend_buckets(
    date_from: date,
    date_to: date,
    by_day: Dict[str, Dict[date, Any]],
    weekday_label: bool = True,
) -> List[Dict[str, Any]]:
    """
    區間內每日一桶，無資料的日子補 0。
    by_day 鍵為 SOURCES 名稱，值為 {日期: 數值}；orders / invoices 為筆數，其餘為金額。
    """
    buckets = []
    d = date_from
    while d <= date_to:
        key = d.isoformat()
        buckets.append({
            "key": key,
            "day": WEEKDAYS[d.weekday()] if weekday_label else key,
            "orders": int(by_day.get("orders", {}).get(d, 0)),
            "invoices": int(by_day.get("invoices", {}).get(d, 0)),
            "expenses": to_decimal(by_day.get("expenses", {}).get(d)),
            "payments_in": to_decimal(by_day.get("payment_in", {}).get(d)),
            "payments_out": to_decimal(by_day.get("supplier_out", {}).get(d))
            + to_decimal(by_day.get("staff_out", {}).get(d)),
        })
        d += timedelta(days=1)
    return buckets


def _payment_out(supplier: Dict[str, Any], staff: Dict[str, Any], detail: bool) -> Dict[str, Any]:
    out = {
        "count": supplier["count"] + staff["count"],
        "amount": supplier["amount"] + staff["amount"],
    }
    if detail:
        out["supplier"] = supplier
        out["staff"] = staff
    return out


class DashboardAggregator:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ---------- 彙總查詢 ----------
    async def _count_amount(self, source: str, business_id: int, date_from: date, date_to: date) -> Dict[str, Any]:
        model, date_col, amount_col = SOURCES[source]
        q = select(func.count(model.id), func.coalesce(func.sum(amount_col), 0)).where(
            model.business_id == business_id, date_col >= date_from, date_col <= date_to
        )
        count, amount = (await self.db.execute(q)).one()
        return {"count": int(count or 0), "amount": to_decimal(amount)}

    async def _by_day(self, source: str, business_id: int, date_from: date, date_to: date, as_count: bool = False) -> Dict[date, Any]:
        model, date_col, amount_col = SOURCES[source]
        value = func.count(model.id) if as_count else func.coalesce(func.sum(amount_col), 0)
        q = (
            select(date_col, value)
            .where(model.business_id == business_id, date_col >= date_from, date_col <= date_to)
            .group_by(date_col)
        )
        r = await self.db.execute(q)
        return {d: v for d, v in r.all()}

    async def _active_count(self, model, business_id: int) -> int:
        q = select(func.count(model.id)).where(model.business_id == business_id, model.is_active.is_(True))
        return int((await self.db.execute(q)).scalar_one() or 0)

    async def _recent(self, model, date_col, business_id: int) -> list:
        q = (
            select(model)
            .where(model.business_id == business_id)
            .order_by(date_col.desc(), model.created_at.desc(), model.id.desc())
            .limit(RECENT_LIMIT)
        )
        return list((await self.db.execute(q)).scalars().all())

    async def _trend(self, business_id: int, date_from: date, date_to: date, sources, weekday_label: bool) -> List[Dict[str, Any]]:
        by_day = {}
        for source in sources:
            by_day[source] = await self._by_day(
                source, business_id, date_from, date_to, as_count=source in ("orders", "invoices")
            )
        return build_trend_buckets(date_from, date_to, by_day, weekday_label=weekday_label)

    # ---------- 對外 ----------
    async def summary(
        self,
        business_id: int,
        month: Optional[str] = None,
        trend_mode: str = "current",
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        today：今天的筆數與金額；month：指定月份（格式錯誤改用本月）。
        trend_7_day：trend_mode=current 時迄日為 min(今天, 該月底)，last 時為上個月月底，往回共 7 天。
        """
        today = today or date.today()
        selected = sanitize_month(month, today)
        mode = "last" if trend_mode == "last" else "current"
        month_from, month_to = month_range(selected)
        trend_month = previous_month(selected) if mode == "last" else selected
        trend_month_end = month_range(trend_month)[1]
        trend_to = min(today, trend_month_end) if mode == "current" else trend_month_end
        trend_from = trend_to - timedelta(days=6)

        day_keys = ("orders", "invoices", "expenses", "payment_in", "supplier_out", "staff_out")
        month_keys = day_keys + ("staff_records", "crp_records")
        t = {k: await self._count_amount(k, business_id, today, today) for k in day_keys}
        m = {k: await self._count_amount(k, business_id, month_from, month_to) for k in month_keys}

        recent_orders = await self._recent(Order, Order.date, business_id)
        recent_invoices = await self._recent(Invoice, Invoice.invoice_date, business_id)
        recent_expenses = await self._recent(Expense, Expense.date, business_id)

        logger.debug(
            "dashboard summary business=%s month=%s trend=%s..%s", business_id, selected, trend_from, trend_to
        )
        return {
            "selected_month": selected,
            "trend_mode": mode,
            "trend_month": trend_month,
            "trend_from": trend_from,
            "trend_to": trend_to,
            "today": {
                "orders": t["orders"],
                "invoices": t["invoices"],
                "expenses": t["expenses"],
                "payment_in": t["payment_in"],
                "payment_out": _payment_out(t["supplier_out"], t["staff_out"], detail=False),
            },
            "month": {
                "orders": m["orders"],
                "invoices": m["invoices"],
                "expenses": m["expenses"],
                "staff_records": m["staff_records"],
                "crp_records": m["crp_records"],
                "payment_in": m["payment_in"],
                "payment_out": _payment_out(m["supplier_out"], m["staff_out"], detail=True),
            },
            "active": {
                "customers": await self._active_count(Customer, business_id),
                "suppliers": await self._active_count(Supplier, business_id),
                "staff": await self._active_count(Staff, business_id),
            },
            "recent": {
                "orders": [OrderRead.model_validate(o) for o in recent_orders],
                "invoices": [InvoiceRead.model_validate(i) for i in recent_invoices],
                "expenses": [ExpenseRead.model_validate(e) for e in recent_expenses],
            },
            "trend_7_day": await self._trend(
                business_id, trend_from, trend_to, day_keys, weekday_label=True
            ),
        }

    async def trend(
        self,
        business_id: int,
        range_key: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """逐日：訂單筆數、支出、收款、付出；day 欄位為日期本身。區間無效時 DashboardRangeError"""
        today = today or date.today()
        key, start, end = resolve_trend_range(range_key, date_from, date_to, today)
        sources = ("orders", "expenses", "payment_in", "supplier_out", "staff_out")
        return {
            "range": key,
            "date_from": start,
            "date_to": end,
            "trend": await self._trend(business_id, start, end, sources, weekday_label=False),
        }
