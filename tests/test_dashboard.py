"""
儀表板測試。
覆蓋：月份區間與上月換算、今日 / 當月彙總、付出明細、啟用數、最近單據排序、
7 日趨勢（本月 / 上月模式）、趨勢區間（預設 / 自訂 / 無效）、公司隔離。
"""
from datetime import date, timedelta
from decimal import Decimal
import pytest
from fastapi import HTTPException

from embroideryos import crud
from embroideryos.accounting.dashboard import (
    DashboardAggregator,
    DashboardRangeError,
    month_range,
    previous_month,
    resolve_trend_range,
    sanitize_month,
)
from embroideryos.models import StaffRecord
from embroideryos.routers import dashboard as dashboard_router
from embroideryos.schemas import (
    BusinessCreate, CustomerCreate, CustomerPaymentCreate, ExpenseCreate, InvoiceCreate, OrderCreate,
    StaffCreate, StaffPaymentCreate, SupplierCreate, SupplierPaymentCreate,
)

TODAY = date(2024, 3, 12)


def test_month_helpers():
    assert month_range("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_range("2023-12") == (date(2023, 12, 1), date(2023, 12, 31))
    assert previous_month("2024-01") == "2023-12"
    assert previous_month("2024-10") == "2024-09"
    assert sanitize_month(" 2024-02 ", TODAY) == "2024-02"
    assert sanitize_month("2024-13", TODAY) == "2024-03"
    assert sanitize_month(None, TODAY) == "2024-03"


def test_trend_ranges():
    assert resolve_trend_range(None, None, None, TODAY) == ("7d", date(2024, 3, 6), TODAY)
    assert resolve_trend_range("1M", None, None, TODAY) == ("1m", TODAY - timedelta(days=29), TODAY)
    assert resolve_trend_range("6m", None, None, TODAY)[1] == TODAY - timedelta(days=179)
    # 未知區間視為 7d
    assert resolve_trend_range("2w", None, None, TODAY) == ("7d", date(2024, 3, 6), TODAY)
    assert resolve_trend_range("custom", date(2024, 1, 1), date(2024, 1, 1), TODAY) == (
        "custom", date(2024, 1, 1), date(2024, 1, 1),
    )
    with pytest.raises(DashboardRangeError):
        resolve_trend_range("custom", date(2024, 2, 1), date(2024, 1, 1), TODAY)
    with pytest.raises(DashboardRangeError):
        resolve_trend_range("custom", None, date(2024, 1, 1), TODAY)
    with pytest.raises(DashboardRangeError):
        resolve_trend_range("custom", date(2022, 1, 1), date(2024, 1, 1), TODAY)


async def _order(db, biz_id, customer_id, d, quantity=1):
    # 4000 針套 5000、單價 50、每打 12 片 -> 每打 600
    return await crud.create_order(db, OrderCreate(
        business_id=biz_id, customer_id=customer_id, date=d, machine_no="M1",
        actual_stitches=Decimal("4000"), rate_input=Decimal("50"), unit="Dzn", quantity=Decimal(quantity),
    ))


async def _seed(db):
    biz = await crud.create_business(db, BusinessCreate(name="繡花廠", person="老闆"))
    customer = await crud.create_customer(db, CustomerCreate(business_id=biz.id, name="客戶甲", person="陳先生", rate=Decimal("10")))
    supplier = await crud.create_supplier(db, SupplierCreate(business_id=biz.id, name="線材行"))
    staff = await crud.create_staff(db, StaffCreate(business_id=biz.id, name="阿明", joining_date=date(2023, 1, 1)))
    idle = await crud.create_staff(db, StaffCreate(business_id=biz.id, name="阿福", joining_date=date(2023, 1, 1)))
    await crud.toggle_staff(db, idle)

    await _order(db, biz.id, customer.id, date(2024, 2, 28))
    o1 = await _order(db, biz.id, customer.id, date(2024, 3, 10), quantity=2)
    await _order(db, biz.id, customer.id, TODAY)
    await crud.create_invoice(db, InvoiceCreate(business_id=biz.id, order_ids=[o1.id], invoice_date=TODAY))
    await crud.create_customer_payment(db, CustomerPaymentCreate(
        business_id=biz.id, customer_id=customer.id, date=TODAY, month="2024-03", method="cash", amount=Decimal("500"),
    ))
    await crud.create_expense(db, ExpenseCreate(
        business_id=biz.id, expense_type="cash", item_name="便當", amount=Decimal("90"), date=date(2024, 3, 11),
    ))
    await crud.create_expense(db, ExpenseCreate(
        business_id=biz.id, expense_type="supplier", supplier_id=supplier.id,
        item_name="繡線", amount=Decimal("400"), date=TODAY,
    ))
    await crud.create_supplier_payment(db, SupplierPaymentCreate(
        business_id=biz.id, supplier_id=supplier.id, date=TODAY, method="cash", amount=Decimal("150"),
    ))
    await crud.create_staff_payment(db, StaffPaymentCreate(
        business_id=biz.id, staff_id=staff.id, date=TODAY, month="2024-03", type="advance", amount=Decimal("200"),
    ))
    db.add(StaffRecord(
        business_id=biz.id, staff_id=staff.id, date=date(2024, 3, 5), month="2024-03",
        attendance="Day", production=[], final_amount=Decimal("1000"),
    ))

    other = await crud.create_business(db, BusinessCreate(name="另一廠", person="別人"))
    other_customer = await crud.create_customer(db, CustomerCreate(business_id=other.id, name="客戶乙", person="林小姐", rate=Decimal("10")))
    await _order(db, other.id, other_customer.id, TODAY, quantity=5)
    await db.commit()
    return biz


@pytest.mark.asyncio
async def test_summary_today_and_month(async_engine_and_session):
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz = await _seed(db)
        data = await DashboardAggregator(db).summary(biz.id, month="2024-03", today=TODAY)

        assert data["selected_month"] == "2024-03"
        today = data["today"]
        assert today["orders"] == {"count": 1, "amount": Decimal("600")}
        assert today["invoices"] == {"count": 1, "amount": Decimal("1200")}
        assert today["expenses"] == {"count": 1, "amount": Decimal("400")}
        assert today["payment_in"] == {"count": 1, "amount": Decimal("500")}
        assert today["payment_out"] == {"count": 2, "amount": Decimal("350")}

        month = data["month"]
        assert month["orders"] == {"count": 2, "amount": Decimal("1800")}
        assert month["expenses"] == {"count": 2, "amount": Decimal("490")}
        assert month["staff_records"] == {"count": 1, "amount": Decimal("1000")}
        assert month["crp_records"] == {"count": 0, "amount": Decimal("0")}
        assert month["payment_out"]["amount"] == Decimal("350")
        assert month["payment_out"]["supplier"] == {"count": 1, "amount": Decimal("150")}
        assert month["payment_out"]["staff"] == {"count": 1, "amount": Decimal("200")}

        assert data["active"] == {"customers": 1, "suppliers": 1, "staff": 1}
        assert [o.date for o in data["recent"]["orders"]] == [TODAY, date(2024, 3, 10), date(2024, 2, 28)]
        assert [e.item_name for e in data["recent"]["expenses"]] == ["繡線", "便當"]
        assert len(data["recent"]["invoices"]) == 1


@pytest.mark.asyncio
async def test_summary_trend_current_and_last_month(async_engine_and_session):
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz = await _seed(db)
        aggregator = DashboardAggregator(db)

        data = await aggregator.summary(biz.id, month="2024-03", today=TODAY)
        assert data["trend_mode"] == "current"
        assert (data["trend_from"], data["trend_to"]) == (date(2024, 3, 6), TODAY)
        buckets = {b["key"]: b for b in data["trend_7_day"]}
        assert len(buckets) == 7
        last = buckets["2024-03-12"]
        assert last["day"] == "Tue"
        assert (last["orders"], last["invoices"]) == (1, 1)
        assert last["expenses"] == Decimal("400")
        assert last["payments_in"] == Decimal("500")
        assert last["payments_out"] == Decimal("350")
        assert buckets["2024-03-10"]["orders"] == 1
        assert buckets["2024-03-07"]["orders"] == 0
        assert buckets["2024-03-07"]["expenses"] == Decimal("0")

        data = await aggregator.summary(biz.id, month="2024-03", trend_mode="last", today=TODAY)
        assert data["trend_month"] == "2024-02"
        assert (data["trend_from"], data["trend_to"]) == (date(2024, 2, 23), date(2024, 2, 29))
        assert {b["key"]: b["orders"] for b in data["trend_7_day"]}["2024-02-28"] == 1

        # 選過去月份時，本月模式迄日為該月月底
        data = await aggregator.summary(biz.id, month="2024-02", today=TODAY)
        assert data["trend_to"] == date(2024, 2, 29)
        assert data["month"]["orders"] == {"count": 1, "amount": Decimal("600")}

        data = await aggregator.summary(biz.id, month="bad", today=TODAY)
        assert data["selected_month"] == "2024-03"


@pytest.mark.asyncio
async def test_trend_buckets_use_dates_as_labels(async_engine_and_session):
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz = await _seed(db)
        data = await DashboardAggregator(db).trend(
            biz.id, range_key="custom", date_from=date(2024, 3, 10), date_to=TODAY, today=TODAY,
        )
        assert data["range"] == "custom"
        assert [b["key"] for b in data["trend"]] == ["2024-03-10", "2024-03-11", "2024-03-12"]
        assert all(b["day"] == b["key"] for b in data["trend"])
        assert [b["orders"] for b in data["trend"]] == [1, 0, 1]
        assert [b["expenses"] for b in data["trend"]] == [Decimal("0"), Decimal("90"), Decimal("400")]
        # 趨勢不統計發票
        assert all(b["invoices"] == 0 for b in data["trend"])

        data = await DashboardAggregator(db).trend(biz.id, range_key="1m", today=TODAY)
        assert len(data["trend"]) == 30


@pytest.mark.asyncio
async def test_dashboard_routes(async_engine_and_session):
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz = await crud.create_business(db, BusinessCreate(name="繡花廠", person="老闆"))
        customer = await crud.create_customer(db, CustomerCreate(business_id=biz.id, name="客戶甲", person="陳先生", rate=Decimal("10")))
        await _order(db, biz.id, customer.id, date.today())
        await db.commit()

        summary = await dashboard_router.dashboard_summary(business_id=biz.id, month=None, trend_mode="current", db=db)
        assert summary.today.orders.count == 1
        assert summary.today.payment_out.supplier is None
        assert summary.recent.orders[0].customer_name == "客戶甲"
        assert len(summary.trend_7_day) == 7

        trend = await dashboard_router.dashboard_trend(
            business_id=biz.id, range_key="7d", date_from=None, date_to=None, db=db,
        )
        assert trend.trend[-1].orders == 1

        with pytest.raises(HTTPException) as exc:
            await dashboard_router.dashboard_trend(
                business_id=biz.id, range_key="custom", date_from=date(2024, 2, 1), date_to=date(2024, 1, 1), db=db,
            )
        assert exc.value.status_code == 400
