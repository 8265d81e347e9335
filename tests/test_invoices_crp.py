"""
發票與 CRP 計件 DB 測試。
覆蓋：開票標記訂單、重複開票、跨客戶、已開票訂單不可修改、發票訂單數上限、CRP 計件金額與唯一性。
"""
from datetime import date
from decimal import Decimal
import pytest
from pydantic import ValidationError

from embroideryos import crud
from embroideryos.config import settings
from embroideryos.crud import CrpConflictError, InvoiceOrdersError, OrderInvoicedError, StaffCategoryError
from embroideryos.schemas import (
    BusinessCreate, CrpRateConfigCreate, CrpStaffRecordCreate, CustomerCreate, InvoiceCreate,
    OrderCreate, OrderUpdate, StaffCreate,
)


async def _setup(db):
    biz = await crud.create_business(db, BusinessCreate(name="繡花廠", person="老闆"))
    c1 = await crud.create_customer(db, CustomerCreate(business_id=biz.id, name="客戶甲", person="陳先生", rate=Decimal("10")))
    c2 = await crud.create_customer(db, CustomerCreate(business_id=biz.id, name="客戶乙", person="林小姐", rate=Decimal("10")))
    return biz, c1, c2


async def _order(db, biz, customer, unit="Dzn", quantity=2):
    return await crud.create_order(db, OrderCreate(
        business_id=biz.id, customer_id=customer.id, date=date(2024, 4, 2), machine_no="M1",
        description="胸前 logo", actual_stitches=Decimal("4000"), rate_input=Decimal("50"),
        unit=unit, quantity=Decimal(quantity),
    ))


@pytest.mark.asyncio
async def test_order_uses_customer_rate(async_engine_and_session):
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz, c1, _ = await _setup(db)
        o = await _order(db, biz, c1)
        assert o.customer_name == "客戶甲"
        assert Decimal(str(o.customer_base_rate)) == Decimal("10")
        assert Decimal(str(o.design_stitches)) == Decimal("5000")
        assert Decimal(str(o.total_amount)) == Decimal("1200")

        o = await crud.update_order(db, o, OrderUpdate(quantity=Decimal("3")))
        assert Decimal(str(o.qt_pcs)) == Decimal("36")
        assert Decimal(str(o.total_amount)) == Decimal("1800")


@pytest.mark.asyncio
async def test_create_invoice_marks_orders(async_engine_and_session):
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz, c1, c2 = await _setup(db)
        o1 = await _order(db, biz, c1)
        o2 = await _order(db, biz, c1, quantity=1)
        o3 = await _order(db, biz, c2)
        await db.commit()

        groups = await crud.list_uninvoiced_order_groups(db, biz.id)
        assert {g["customer_name"]: g["order_count"] for g in groups} == {"客戶甲": 2, "客戶乙": 1}

        inv = await crud.create_invoice(db, InvoiceCreate(business_id=biz.id, order_ids=[o1.id, o2.id], invoice_date=date(2024, 4, 30)))
        await db.commit()
        assert inv.customer_id == c1.id
        assert inv.order_count == 2
        assert Decimal(str(inv.total_amount)) == Decimal("1800")
        for o in (o1, o2):
            await db.refresh(o)
            assert o.invoice_id == inv.id
            assert o.invoiced_at == date(2024, 4, 30)

        with pytest.raises(InvoiceOrdersError):
            await crud.create_invoice(db, InvoiceCreate(business_id=biz.id, order_ids=[o2.id]))
        with pytest.raises(InvoiceOrdersError):
            await crud.create_invoice(db, InvoiceCreate(business_id=biz.id, order_ids=[o3.id, 9999]))
        with pytest.raises(OrderInvoicedError):
            await crud.update_order(db, o1, OrderUpdate(quantity=Decimal("5")))

        groups = await crud.list_uninvoiced_order_groups(db, biz.id)
        assert [g["customer_id"] for g in groups] == [c2.id]


@pytest.mark.asyncio
async def test_invoice_rejects_mixed_customers(async_engine_and_session):
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz, c1, c2 = await _setup(db)
        o1 = await _order(db, biz, c1)
        o3 = await _order(db, biz, c2)
        with pytest.raises(InvoiceOrdersError):
            await crud.create_invoice(db, InvoiceCreate(business_id=biz.id, order_ids=[o1.id, o3.id]))
        await db.refresh(o1)
        assert o1.invoice_id is None


def test_invoice_create_validation():
    with pytest.raises(ValidationError):
        InvoiceCreate(business_id=1, order_ids=[])
    with pytest.raises(ValidationError):
        InvoiceCreate(business_id=1, order_ids=[1, 1])
    with pytest.raises(ValidationError):
        InvoiceCreate(business_id=1, order_ids=list(range(1, settings.max_invoice_orders + 2)))
    assert InvoiceCreate(business_id=1, order_ids=list(range(1, settings.max_invoice_orders + 1))).order_ids[-1] == settings.max_invoice_orders


@pytest.mark.asyncio
async def test_crp_record_amount_and_uniqueness(async_engine_and_session):
    """Pcs 24 片 = 2 打，費率 5 -> 10；同訂單第二筆衝突"""
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz, c1, _ = await _setup(db)
        order = await _order(db, biz, c1, unit="Pcs", quantity=24)
        cropper = await crud.create_staff(db, StaffCreate(
            business_id=biz.id, name="小剪", joining_date=date(2023, 1, 1), category="Cropping",
        ))
        embroiderer = await crud.create_staff(db, StaffCreate(business_id=biz.id, name="阿明", joining_date=date(2023, 1, 1)))
        await crud.create_crp_rate_config(db, CrpRateConfigCreate(
            business_id=biz.id, category="Press", type_name="Basic", rate=Decimal("5"),
        ))
        await db.commit()

        with pytest.raises(CrpConflictError):
            await crud.create_crp_rate_config(db, CrpRateConfigCreate(
                business_id=biz.id, category="Press", type_name="Basic", rate=Decimal("6"),
            ))
        with pytest.raises(StaffCategoryError):
            await crud.create_crp_staff_record(db, CrpStaffRecordCreate(
                business_id=biz.id, order_id=order.id, staff_id=embroiderer.id, category="Press", type_name="Basic",
            ))

        rec = await crud.create_crp_staff_record(db, CrpStaffRecordCreate(
            business_id=biz.id, order_id=order.id, staff_id=cropper.id, category="Press", type_name="Basic",
        ))
        await db.commit()
        assert Decimal(str(rec.quantity_dzn)) == Decimal("2")
        assert Decimal(str(rec.total_amount)) == Decimal("10")
        assert rec.month == "2024-04"
        assert rec.order_description == "胸前 logo"

        with pytest.raises(CrpConflictError):
            await crud.create_crp_staff_record(db, CrpStaffRecordCreate(
                business_id=biz.id, order_id=order.id, staff_id=cropper.id, category="Press", type_name="Basic",
            ))
        assert len(await crud.list_crp_staff_records(db, biz.id, month="2024-04")) == 1
