"""CRUD 操作 - 公司、員工、生產設定、收付款、客戶、訂單、發票、供應商、支出與常用支出項目、CRP"""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional, List, Dict, Any
from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.models import (
    Business, Staff, ProductionConfig, StaffRecord, StaffPayment,
    Customer, CustomerPayment, Order, Invoice,
    Supplier, SupplierPayment, Expense, ExpenseItem,
    CrpRateConfig, CrpStaffRecord,
    STAFF_PAYMENT_TYPES, CUSTOMER_PAYMENT_METHODS,
)
from embroideryos.schemas import (
    BusinessCreate, StaffCreate, StaffUpdate,
    ProductionConfigCreate, ProductionConfigUpdate, PayRuleConfig,
    StaffPaymentCreate, CustomerCreate, CustomerUpdate,
    CustomerPaymentCreate, CustomerPaymentUpdate, validate_customer_payment_method,
    OrderCreate, OrderUpdate, OrderPreviewRequest, OrderPricingResult,
    InvoiceCreate, SupplierCreate, SupplierUpdate, SupplierPaymentCreate, ExpenseCreate,
    ExpenseItemCreate, ExpenseItemUpdate,
    CrpRateConfigCreate, CrpRateConfigUpdate, CrpStaffRecordCreate,
)
from embroideryos.rules.stitch_formula import rules_to_json
from embroideryos.services.money import ZERO, to_decimal, month_of
from embroideryos.services.order_pricing import compute_order_pricing

logger = logging.getLogger(__name__)


class EntityNotFoundError(ValueError):
    """資料不存在或不屬於該公司"""
    pass


class StaffNotFoundError(EntityNotFoundError):
    """員工不存在或不屬於該公司"""
    pass


class StaffCategoryError(ValueError):
    """員工類別不適用此計薪方式"""
    pass


class ProductionConfigConflictError(ValueError):
    """同公司同生效日已有生產設定"""
    pass


class OrderInvoicedError(ValueError):
    """訂單已開立發票，不可修改計價欄位"""
    pass


class InvoiceOrdersError(ValueError):
    """發票訂單不符規則（不存在 / 客戶不同 / 已開票）"""
    pass


class CrpConflictError(ValueError):
    """CRP 費率或紀錄重複"""
    pass


# ---------- 公司 ----------
async def create_business(db: AsyncSession, data: BusinessCreate) -> Business:
    b = Business(name=data.name.strip(), person=data.person.strip())
    db.add(b)
    await db.flush()
    await db.refresh(b)
    return b


async def get_business(db: AsyncSession, business_id: int) -> Optional[Business]:
    r = await db.execute(select(Business).where(Business.id == business_id))
    return r.scalar_one_or_none()


async def list_businesses(db: AsyncSession) -> List[Business]:
    r = await db.execute(select(Business).order_by(Business.id))
    return list(r.scalars().all())


# ---------- 員工 ----------
async def get_staff(db: AsyncSession, staff_id: int, business_id: Optional[int] = None) -> Optional[Staff]:
    q = select(Staff).where(Staff.id == staff_id)
    if business_id is not None:
        q = q.where(Staff.business_id == business_id)
    r = await db.execute(q)
    return r.scalar_one_or_none()


async def require_staff(db: AsyncSession, staff_id: int, business_id: int) -> Staff:
    staff = await get_staff(db, staff_id, business_id)
    if not staff:
        raise StaffNotFoundError("員工不存在")
    return staff


async def list_staff(
    db: AsyncSession,
    business_id: int,
    is_active: Optional[bool] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Staff]:
    q = select(Staff).where(Staff.business_id == business_id)
    if is_active is not None:
        q = q.where(Staff.is_active == is_active)
    if category:
        q = q.where(Staff.category == category)
    if search and search.strip():
        q = q.where(Staff.name.ilike(f"%{search.strip()}%"))
    q = q.order_by(Staff.name, Staff.id).offset(skip).limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())


async def create_staff(db: AsyncSession, data: StaffCreate) -> Staff:
    s = Staff(
        business_id=data.business_id,
        name=data.name.strip(),
        joining_date=data.joining_date,
        salary=data.salary,
        opening_balance=data.opening_balance,
        category=data.category,
    )
    db.add(s)
    await db.flush()
    await db.refresh(s)
    return s


async def update_staff(db: AsyncSession, staff: Staff, data: StaffUpdate) -> Staff:
    update_data = data.model_dump(exclude_unset=True)
    for k, v in update_data.items():
        if k == "name" and v is not None:
            v = v.strip()
        setattr(staff, k, v)
    await db.flush()
    await db.refresh(staff)
    return staff


async def toggle_staff(db: AsyncSession, staff: Staff) -> Staff:
    staff.is_active = not staff.is_active
    await db.flush()
    await db.refresh(staff)
    return staff


# ---------- 生產設定 ----------
async def get_production_config(db: AsyncSession, config_id: int, business_id: Optional[int] = None) -> Optional[ProductionConfig]:
    q = select(ProductionConfig).where(ProductionConfig.id == config_id)
    if business_id is not None:
        q = q.where(ProductionConfig.business_id == business_id)
    r = await db.execute(q)
    return r.scalar_one_or_none()


async def list_production_configs(db: AsyncSession, business_id: int) -> List[ProductionConfig]:
    q = (
        select(ProductionConfig)
        .where(ProductionConfig.business_id == business_id)
        .order_by(ProductionConfig.effective_date.desc(), ProductionConfig.created_at.desc(), ProductionConfig.id.desc())
    )
    r = await db.execute(q)
    return list(r.scalars().all())


async def _config_exists_on(db: AsyncSession, business_id: int, effective_date: date, exclude_id: Optional[int] = None) -> bool:
    q = select(ProductionConfig.id).where(
        ProductionConfig.business_id == business_id,
        ProductionConfig.effective_date == effective_date,
    )
    if exclude_id is not None:
        q = q.where(ProductionConfig.id != exclude_id)
    r = await db.execute(q.limit(1))
    return r.scalar_one_or_none() is not None


async def create_production_config(db: AsyncSession, data: ProductionConfigCreate) -> ProductionConfig:
    if await _config_exists_on(db, data.business_id, data.effective_date):
        logger.warning(
            "production config conflict business=%s effective_date=%s", data.business_id, data.effective_date
        )
        raise ProductionConfigConflictError(f"{data.effective_date} 已有生產設定，請改用編輯")
    raw = data.model_dump(exclude={"stitch_formula_rules"})
    cfg = ProductionConfig(**raw, stitch_formula_rules=rules_to_json(data.stitch_formula_rules))
    db.add(cfg)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise ProductionConfigConflictError(f"{data.effective_date} 已有生產設定，請改用編輯") from e
    await db.refresh(cfg)
    logger.info("production config created id=%s business=%s effective_date=%s", cfg.id, cfg.business_id, cfg.effective_date)
    return cfg


async def update_production_config(db: AsyncSession, cfg: ProductionConfig, data: ProductionConfigUpdate) -> ProductionConfig:
    """修改設定不影響已存檔之日報（日報保有自己的 config_snapshot）"""
    update_data = data.model_dump(exclude_unset=True)
    new_date = update_data.get("effective_date")
    if new_date is None:
        update_data.pop("effective_date", None)
    elif new_date != cfg.effective_date and await _config_exists_on(db, cfg.business_id, new_date, exclude_id=cfg.id):
        logger.warning("production config conflict business=%s effective_date=%s", cfg.business_id, new_date)
        raise ProductionConfigConflictError(f"{new_date} 已有生產設定")
    if "stitch_formula_rules" in update_data:
        update_data["stitch_formula_rules"] = rules_to_json(data.stitch_formula_rules or [])
    for k, v in update_data.items():
        setattr(cfg, k, v)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise ProductionConfigConflictError("同一生效日已有生產設定") from e
    await db.refresh(cfg)
    logger.info("production config updated id=%s business=%s", cfg.id, cfg.business_id)
    return cfg


async def get_effective_production_config(db: AsyncSession, business_id: int, as_of: date) -> Optional[ProductionConfig]:
    """
    取得 as_of 當日適用之生產設定：生效日 <= as_of 中最新者（同日依建立時間、id 由新到舊）。
    全部設定都在 as_of 之後時，退回該公司最早的一筆；完全沒有設定回傳 None。
    """
    q = (
        select(ProductionConfig)
        .where(ProductionConfig.business_id == business_id)
        .where(ProductionConfig.effective_date <= as_of)
        .order_by(ProductionConfig.effective_date.desc(), ProductionConfig.created_at.desc(), ProductionConfig.id.desc())
        .limit(1)
    )
    r = await db.execute(q)
    cfg = r.scalar_one_or_none()
    if cfg is not None:
        return cfg
    q = (
        select(ProductionConfig)
        .where(ProductionConfig.business_id == business_id)
        .order_by(ProductionConfig.effective_date.asc(), ProductionConfig.created_at.asc(), ProductionConfig.id.asc())
        .limit(1)
    )
    r = await db.execute(q)
    cfg = r.scalar_one_or_none()
    if cfg is not None:
        logger.warning(
            "no production config effective on %s for business=%s; falling back to earliest (%s)",
            as_of, business_id, cfg.effective_date,
        )
    return cfg


async def _pricing_rules_for(db: AsyncSession, business_id: int, as_of: date) -> Optional[list]:
    """該公司啟用自訂級距且有內容時回傳級距；否則 None（使用預設曲線）"""
    cfg = await get_effective_production_config(db, business_id, as_of)
    if cfg is None:
        return None
    pay_rule = PayRuleConfig.from_model(cfg)
    if pay_rule.stitch_formula_enabled and pay_rule.stitch_formula_rules:
        return list(pay_rule.stitch_formula_rules)
    return None


# ---------- 員工日報（寫入見 accounting.staff_record_service）----------
async def get_staff_record(db: AsyncSession, record_id: int, business_id: Optional[int] = None) -> Optional[StaffRecord]:
    q = select(StaffRecord).where(StaffRecord.id == record_id)
    if business_id is not None:
        q = q.where(StaffRecord.business_id == business_id)
    r = await db.execute(q)
    return r.scalar_one_or_none()


async def get_staff_record_by_staff_date(db: AsyncSession, staff_id: int, record_date: date) -> Optional[StaffRecord]:
    r = await db.execute(
        select(StaffRecord).where(StaffRecord.staff_id == staff_id, StaffRecord.date == record_date)
    )
    return r.scalar_one_or_none()


async def list_staff_records(
    db: AsyncSession,
    business_id: int,
    staff_id: Optional[int] = None,
    month: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[StaffRecord]:
    q = select(StaffRecord).where(StaffRecord.business_id == business_id)
    if staff_id is not None:
        q = q.where(StaffRecord.staff_id == staff_id)
    if month:
        q = q.where(StaffRecord.month == month)
    if date_from:
        q = q.where(StaffRecord.date >= date_from)
    if date_to:
        q = q.where(StaffRecord.date <= date_to)
    q = q.order_by(StaffRecord.date.desc(), StaffRecord.id.desc()).offset(skip)
    if limit:
        q = q.limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())


# ---------- 員工收付 ----------
async def create_staff_payment(db: AsyncSession, data: StaffPaymentCreate) -> StaffPayment:
    await require_staff(db, data.staff_id, data.business_id)
    p = StaffPayment(
        business_id=data.business_id,
        staff_id=data.staff_id,
        date=data.date,
        month=data.month,
        type=data.type,
        amount=data.amount,
        remarks=(data.remarks or "").strip() or None,
    )
    db.add(p)
    await db.flush()
    await db.refresh(p)
    return p


def _staff_payment_filters(q, business_id: int, staff_id: Optional[int], month: Optional[str], payment_type: Optional[str]):
    q = q.where(StaffPayment.business_id == business_id)
    if staff_id is not None:
        q = q.where(StaffPayment.staff_id == staff_id)
    if month:
        q = q.where(StaffPayment.month == month)
    if payment_type:
        q = q.where(StaffPayment.type == payment_type)
    return q


async def list_staff_payments(
    db: AsyncSession,
    business_id: int,
    staff_id: Optional[int] = None,
    month: Optional[str] = None,
    payment_type: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[StaffPayment]:
    q = _staff_payment_filters(select(StaffPayment), business_id, staff_id, month, payment_type)
    q = q.order_by(StaffPayment.date.desc(), StaffPayment.created_at.desc(), StaffPayment.id.desc()).offset(skip).limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())


async def staff_payment_stats(
    db: AsyncSession,
    business_id: int,
    staff_id: Optional[int] = None,
    month: Optional[str] = None,
) -> Dict[str, Any]:
    q = select(StaffPayment.type, func.count(StaffPayment.id), func.coalesce(func.sum(StaffPayment.amount), 0))
    q = _staff_payment_filters(q, business_id, staff_id, month, None).group_by(StaffPayment.type)
    r = await db.execute(q)
    by_type = {t: {"count": 0, "amount": ZERO} for t in STAFF_PAYMENT_TYPES}
    for ptype, count, amount in r.all():
        by_type[ptype] = {"count": int(count), "amount": to_decimal(amount)}
    return {
        "total_count": sum(v["count"] for v in by_type.values()),
        "total_amount": sum((v["amount"] for v in by_type.values()), ZERO),
        "by_type": by_type,
    }


async def list_staff_payment_months(db: AsyncSession, business_id: int, staff_id: Optional[int] = None) -> List[str]:
    q = select(StaffPayment.month).distinct()
    q = _staff_payment_filters(q, business_id, staff_id, None, None).order_by(StaffPayment.month.desc())
    r = await db.execute(q)
    return [m for m in r.scalars().all() if m]


# ---------- 客戶 ----------
async def get_customer(db: AsyncSession, customer_id: int, business_id: Optional[int] = None) -> Optional[Customer]:
    q = select(Customer).where(Customer.id == customer_id)
    if business_id is not None:
        q = q.where(Customer.business_id == business_id)
    r = await db.execute(q)
    return r.scalar_one_or_none()


async def require_customer(db: AsyncSession, customer_id: int, business_id: int) -> Customer:
    c = await get_customer(db, customer_id, business_id)
    if not c:
        raise EntityNotFoundError("客戶不存在")
    return c


async def list_customers(
    db: AsyncSession,
    business_id: int,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Customer]:
    q = select(Customer).where(Customer.business_id == business_id)
    if is_active is not None:
        q = q.where(Customer.is_active == is_active)
    if search and search.strip():
        q = q.where(Customer.name.ilike(f"%{search.strip()}%"))
    q = q.order_by(Customer.name, Customer.id).offset(skip).limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())


async def create_customer(db: AsyncSession, data: CustomerCreate) -> Customer:
    c = Customer(
        business_id=data.business_id,
        name=data.name.strip(),
        person=data.person.strip(),
        rate=data.rate,
        opening_balance=data.opening_balance,
    )
    db.add(c)
    await db.flush()
    await db.refresh(c)
    return c


async def update_customer(db: AsyncSession, customer: Customer, data: CustomerUpdate) -> Customer:
    for k, v in data.model_dump(exclude_unset=True).items():
        setattr(customer, k, v)
    await db.flush()
    await db.refresh(customer)
    return customer


# ---------- 客戶收款 ----------
async def create_customer_payment(db: AsyncSession, data: CustomerPaymentCreate) -> CustomerPayment:
    customer = await require_customer(db, data.customer_id, data.business_id)
    p = CustomerPayment(
        business_id=data.business_id,
        customer_id=customer.id,
        customer_name=customer.name,
        **data.model_dump(exclude={"business_id", "customer_id"}),
    )
    db.add(p)
    await db.flush()
    await db.refresh(p)
    return p


async def get_customer_payment(db: AsyncSession, payment_id: int, business_id: Optional[int] = None) -> Optional[CustomerPayment]:
    q = select(CustomerPayment).where(CustomerPayment.id == payment_id)
    if business_id is not None:
        q = q.where(CustomerPayment.business_id == business_id)
    r = await db.execute(q)
    return r.scalar_one_or_none()


async def update_customer_payment(db: AsyncSession, payment: CustomerPayment, data: CustomerPaymentUpdate) -> CustomerPayment:
    """合併後依收款方式重新檢查必填欄位"""
    update_data = data.model_dump(exclude_unset=True)
    for k in ("date", "month", "method", "amount"):
        if k in update_data and update_data[k] is None:
            update_data.pop(k)
    for k in ("reference_no", "bank_name", "party_name", "remarks"):
        if k in update_data:
            update_data[k] = (update_data[k] or "").strip()
    merged = {
        k: update_data.get(k, getattr(payment, k))
        for k in ("method", "reference_no", "bank_name", "party_name", "cheque_date", "clear_date")
    }
    validate_customer_payment_method(**merged)
    for k, v in update_data.items():
        setattr(payment, k, v)
    await db.flush()
    await db.refresh(payment)
    return payment


def _customer_payment_filters(q, business_id: int, customer_id: Optional[int], month: Optional[str], method: Optional[str]):
    q = q.where(CustomerPayment.business_id == business_id)
    if customer_id is not None:
        q = q.where(CustomerPayment.customer_id == customer_id)
    if month:
        q = q.where(CustomerPayment.month == month)
    if method:
        q = q.where(CustomerPayment.method == method)
    return q


async def list_customer_payments(
    db: AsyncSession,
    business_id: int,
    customer_id: Optional[int] = None,
    month: Optional[str] = None,
    method: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[CustomerPayment]:
    q = _customer_payment_filters(select(CustomerPayment), business_id, customer_id, month, method)
    q = q.order_by(CustomerPayment.date.desc(), CustomerPayment.created_at.desc(), CustomerPayment.id.desc()).offset(skip).limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())


async def customer_payment_stats(
    db: AsyncSession,
    business_id: int,
    customer_id: Optional[int] = None,
    month: Optional[str] = None,
) -> Dict[str, Any]:
    q = select(CustomerPayment.method, func.count(CustomerPayment.id), func.coalesce(func.sum(CustomerPayment.amount), 0))
    q = _customer_payment_filters(q, business_id, customer_id, month, None).group_by(CustomerPayment.method)
    r = await db.execute(q)
    by_method = {m: {"count": 0, "amount": ZERO} for m in CUSTOMER_PAYMENT_METHODS}
    for method, count, amount in r.all():
        by_method[method] = {"count": int(count), "amount": to_decimal(amount)}
    return {
        "total_count": sum(v["count"] for v in by_method.values()),
        "total_amount": sum((v["amount"] for v in by_method.values()), ZERO),
        "by_method": by_method,
    }


async def list_customer_payment_months(db: AsyncSession, business_id: int, customer_id: Optional[int] = None) -> List[str]:
    q = select(CustomerPayment.month).distinct()
    q = _customer_payment_filters(q, business_id, customer_id, None, None).order_by(CustomerPayment.month.desc())
    r = await db.execute(q)
    return [m for m in r.scalars().all() if m]


# ---------- 訂單 ----------
def _base_rate_for(customer: Optional[Customer], supplied: Any) -> Decimal:
    """以客戶資料之單價為準；客戶未設單價時用送來的 customer_base_rate"""
    if customer is not None and to_decimal(customer.rate) > 0:
        return to_decimal(customer.rate)
    return to_decimal(supplied)


async def preview_order_pricing(db: AsyncSession, data: OrderPreviewRequest) -> OrderPricingResult:
    """試算，不寫入"""
    customer = None
    if data.customer_id is not None:
        customer = await require_customer(db, data.customer_id, data.business_id)
    as_of = data.date or date.today()
    rules = await _pricing_rules_for(db, data.business_id, as_of)
    return compute_order_pricing(
        base_rate=_base_rate_for(customer, data.customer_base_rate),
        actual_stitches=data.actual_stitches,
        apq=data.apq,
        apq_chr=data.apq_chr,
        reverse_mode=data.reverse_mode,
        two_side=data.two_side,
        rate_input=data.rate_input if data.rate_input is not None else data.rate,
        unit=data.unit,
        quantity=data.quantity,
        rules=rules,
    )


def _apply_pricing(order: Order, pricing: OrderPricingResult) -> None:
    for k, v in pricing.model_dump().items():
        setattr(order, k, v)


async def create_order(db: AsyncSession, data: OrderCreate) -> Order:
    customer = await require_customer(db, data.customer_id, data.business_id)
    rules = await _pricing_rules_for(db, data.business_id, data.date)
    pricing = compute_order_pricing(
        base_rate=_base_rate_for(customer, data.customer_base_rate),
        actual_stitches=data.actual_stitches,
        apq=data.apq,
        apq_chr=data.apq_chr,
        reverse_mode=data.reverse_mode,
        two_side=data.two_side,
        rate_input=data.rate_input if data.rate_input is not None else data.rate,
        unit=data.unit,
        quantity=data.quantity,
        rules=rules,
    )
    o = Order(
        business_id=data.business_id,
        customer_id=customer.id,
        customer_name=customer.name,
        description=(data.description or "").strip(),
        date=data.date,
        machine_no=data.machine_no.strip(),
        lot_no=(data.lot_no or "").strip(),
        unit=data.unit,
        quantity=to_decimal(data.quantity),
        actual_stitches=to_decimal(data.actual_stitches),
        reverse_mode=data.reverse_mode,
        two_side=data.two_side,
    )
    _apply_pricing(o, pricing)
    db.add(o)
    await db.flush()
    await db.refresh(o)
    return o


async def update_order(db: AsyncSession, order: Order, data: OrderUpdate) -> Order:
    """合併既有欄位後整筆重算；已開票訂單不可修改"""
    if order.invoice_id is not None:
        raise OrderInvoicedError("訂單已開立發票，不可修改")
    update_data = data.model_dump(exclude_unset=True)
    customer = None
    if update_data.get("customer_id") is not None and update_data["customer_id"] != order.customer_id:
        customer = await require_customer(db, update_data["customer_id"], order.business_id)
        order.customer_id = customer.id
        order.customer_name = customer.name
    else:
        customer = await get_customer(db, order.customer_id, order.business_id)
    for k in ("description", "lot_no", "machine_no"):
        if update_data.get(k) is not None:
            setattr(order, k, update_data[k].strip())
    for k in ("date", "unit", "quantity", "actual_stitches", "reverse_mode", "two_side", "is_active"):
        if update_data.get(k) is not None:
            setattr(order, k, update_data[k])

    def pick(name: str, current: Any) -> Any:
        return update_data[name] if name in update_data else current

    rules = await _pricing_rules_for(db, order.business_id, order.date)
    pricing = compute_order_pricing(
        base_rate=_base_rate_for(customer, pick("customer_base_rate", order.customer_base_rate)),
        actual_stitches=order.actual_stitches,
        apq=pick("apq", order.apq),
        apq_chr=pick("apq_chr", order.apq_chr),
        reverse_mode=order.reverse_mode,
        two_side=order.two_side,
        rate_input=pick("rate_input", order.rate_input),
        unit=order.unit,
        quantity=order.quantity,
        rules=rules,
    )
    _apply_pricing(order, pricing)
    await db.flush()
    await db.refresh(order)
    return order


async def get_order(db: AsyncSession, order_id: int, business_id: Optional[int] = None) -> Optional[Order]:
    q = select(Order).where(Order.id == order_id)
    if business_id is not None:
        q = q.where(Order.business_id == business_id)
    r = await db.execute(q)
    return r.scalar_one_or_none()


def _order_filters(q, business_id: int, customer_id: Optional[int], date_from: Optional[date], date_to: Optional[date], invoiced: Optional[bool]):
    q = q.where(Order.business_id == business_id)
    if customer_id is not None:
        q = q.where(Order.customer_id == customer_id)
    if date_from:
        q = q.where(Order.date >= date_from)
    if date_to:
        q = q.where(Order.date <= date_to)
    if invoiced is True:
        q = q.where(Order.invoice_id.is_not(None))
    elif invoiced is False:
        q = q.where(Order.invoice_id.is_(None))
    return q


async def list_orders(
    db: AsyncSession,
    business_id: int,
    customer_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    invoiced: Optional[bool] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Order]:
    q = _order_filters(select(Order), business_id, customer_id, date_from, date_to, invoiced)
    q = q.order_by(Order.date.desc(), Order.created_at.desc(), Order.id.desc()).offset(skip).limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())


async def order_stats(
    db: AsyncSession,
    business_id: int,
    customer_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Dict[str, Any]:
    q = select(func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
    q = _order_filters(q, business_id, customer_id, date_from, date_to, None)
    r = await db.execute(q)
    count, total = r.one()
    return {"count": int(count or 0), "total_amount": to_decimal(total)}


# ---------- 發票 ----------
async def list_uninvoiced_order_groups(db: AsyncSession, business_id: int) -> List[Dict[str, Any]]:
    """未開票訂單依客戶分組，供開票選單使用"""
    q = (
        select(Order)
        .where(Order.business_id == business_id, Order.invoice_id.is_(None), Order.is_active.is_(True))
        .order_by(Order.customer_name, Order.date, Order.id)
    )
    r = await db.execute(q)
    groups: Dict[int, Dict[str, Any]] = {}
    for o in r.scalars().all():
        g = groups.setdefault(o.customer_id, {
            "customer_id": o.customer_id,
            "customer_name": o.customer_name,
            "order_count": 0,
            "total_amount": ZERO,
            "orders": [],
        })
        g["order_count"] += 1
        g["total_amount"] += to_decimal(o.total_amount)
        g["orders"].append(o)
    return list(groups.values())


async def create_invoice(db: AsyncSession, data: InvoiceCreate) -> Invoice:
    """
    訂單須全部存在、同一客戶、尚未開票。
    標記訂單時以 invoice_id IS NULL 為條件更新，併發開票時後到者失敗而不覆蓋。
    """
    order_ids = list(data.order_ids)
    r = await db.execute(select(Order).where(Order.business_id == data.business_id, Order.id.in_(order_ids)))
    orders = list(r.scalars().all())
    if len(orders) != len(order_ids):
        raise InvoiceOrdersError("部分訂單不存在")
    customer_ids = {o.customer_id for o in orders}
    if len(customer_ids) != 1:
        raise InvoiceOrdersError("發票內訂單必須屬於同一客戶")
    if any(o.invoice_id is not None for o in orders):
        raise InvoiceOrdersError("部分訂單已開立發票")
    customer = await require_customer(db, customer_ids.pop(), data.business_id)
    invoice_date = data.invoice_date or date.today()
    total = sum((to_decimal(o.total_amount) for o in orders), ZERO)
    inv = Invoice(
        business_id=data.business_id,
        customer_id=customer.id,
        customer_name=customer.name,
        customer_person=customer.person or "",
        order_ids=order_ids,
        order_count=len(order_ids),
        total_amount=total,
        invoice_date=invoice_date,
        note=(data.note or "").strip(),
    )
    db.add(inv)
    await db.flush()
    res = await db.execute(
        update(Order)
        .where(Order.id.in_(order_ids), Order.invoice_id.is_(None))
        .values(invoice_id=inv.id, invoiced_at=invoice_date)
    )
    if res.rowcount != len(order_ids):
        raise InvoiceOrdersError("部分訂單已開立發票")
    await db.refresh(inv)
    logger.info("invoice created id=%s customer=%s orders=%s", inv.id, customer.id, order_ids)
    return inv


async def get_invoice(db: AsyncSession, invoice_id: int, business_id: Optional[int] = None) -> Optional[Invoice]:
    q = select(Invoice).where(Invoice.id == invoice_id)
    if business_id is not None:
        q = q.where(Invoice.business_id == business_id)
    r = await db.execute(q)
    return r.scalar_one_or_none()


async def list_invoice_orders(db: AsyncSession, invoice: Invoice) -> List[Order]:
    r = await db.execute(select(Order).where(Order.id.in_(invoice.order_ids or [])).order_by(Order.date, Order.id))
    return list(r.scalars().all())


async def list_invoices(
    db: AsyncSession,
    business_id: int,
    customer_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Invoice]:
    q = select(Invoice).where(Invoice.business_id == business_id)
    if customer_id is not None:
        q = q.where(Invoice.customer_id == customer_id)
    q = q.order_by(Invoice.invoice_date.desc(), Invoice.created_at.desc(), Invoice.id.desc()).offset(skip).limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())


# ---------- 供應商 ----------
async def get_supplier(db: AsyncSession, supplier_id: int, business_id: Optional[int] = None) -> Optional[Supplier]:
    q = select(Supplier).where(Supplier.id == supplier_id)
    if business_id is not None:
        q = q.where(Supplier.business_id == business_id)
    r = await db.execute(q)
    return r.scalar_one_or_none()


async def require_supplier(db: AsyncSession, supplier_id: int, business_id: int) -> Supplier:
    s = await get_supplier(db, supplier_id, business_id)
    if not s:
        raise EntityNotFoundError("供應商不存在")
    return s


async def list_suppliers(
    db: AsyncSession,
    business_id: int,
    is_active: Optional[bool] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Supplier]:
    q = select(Supplier).where(Supplier.business_id == business_id)
    if is_active is not None:
        q = q.where(Supplier.is_active == is_active)
    q = q.order_by(Supplier.name, Supplier.id).offset(skip).limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())


async def create_supplier(db: AsyncSession, data: SupplierCreate) -> Supplier:
    s = Supplier(business_id=data.business_id, name=data.name.strip(), opening_balance=data.opening_balance)
    db.add(s)
    await db.flush()
    await db.refresh(s)
    return s


async def update_supplier(db: AsyncSession, supplier: Supplier, data: SupplierUpdate) -> Supplier:
    for k, v in data.model_dump(exclude_unset=True).items():
        setattr(supplier, k, v)
    await db.flush()
    await db.refresh(supplier)
    return supplier


async def create_supplier_payment(db: AsyncSession, data: SupplierPaymentCreate) -> SupplierPayment:
    supplier = await require_supplier(db, data.supplier_id, data.business_id)
    p = SupplierPayment(
        business_id=data.business_id,
        supplier_id=supplier.id,
        supplier_name=supplier.name,
        date=data.date,
        month=month_of(data.date),
        method=data.method,
        amount=data.amount,
        reference_no=(data.reference_no or "").strip(),
        remarks=(data.remarks or "").strip(),
    )
    db.add(p)
    await db.flush()
    await db.refresh(p)
    return p


async def list_supplier_payments(
    db: AsyncSession,
    business_id: int,
    supplier_id: Optional[int] = None,
    month: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[SupplierPayment]:
    q = select(SupplierPayment).where(SupplierPayment.business_id == business_id)
    if supplier_id is not None:
        q = q.where(SupplierPayment.supplier_id == supplier_id)
    if month:
        q = q.where(SupplierPayment.month == month)
    q = q.order_by(SupplierPayment.date.desc(), SupplierPayment.created_at.desc(), SupplierPayment.id.desc()).offset(skip).limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())


# ---------- 支出 ----------
async def create_expense(db: AsyncSession, data: ExpenseCreate) -> Expense:
    supplier_id, supplier_name = None, ""
    if data.expense_type == "supplier":
        supplier = await require_supplier(db, data.supplier_id, data.business_id)
        supplier_id, supplier_name = supplier.id, supplier.name
    e = Expense(
        business_id=data.business_id,
        expense_type=data.expense_type,
        item_name=data.item_name.strip(),
        amount=data.amount,
        date=data.date,
        month=data.month or month_of(data.date),
        reference_no=(data.reference_no or "").strip(),
        remarks=(data.remarks or "").strip(),
        supplier_id=supplier_id,
        supplier_name=supplier_name,
    )
    db.add(e)
    await db.flush()
    await db.refresh(e)
    return e


async def list_expenses(
    db: AsyncSession,
    business_id: int,
    expense_type: Optional[str] = None,
    supplier_id: Optional[int] = None,
    month: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Expense]:
    q = select(Expense).where(Expense.business_id == business_id)
    if expense_type:
        q = q.where(Expense.expense_type == expense_type)
    if supplier_id is not None:
        q = q.where(Expense.supplier_id == supplier_id)
    if month:
        q = q.where(Expense.month == month)
    q = q.order_by(Expense.date.desc(), Expense.created_at.desc(), Expense.id.desc()).offset(skip).limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())


# ---------- 常用支出項目 ----------
async def create_expense_item(db: AsyncSession, data: ExpenseItemCreate) -> ExpenseItem:
    item = ExpenseItem(
        business_id=data.business_id,
        name=data.name,
        expense_type=data.expense_type,
        default_amount=data.default_amount,
    )
    db.add(item)
    await db.flush()
    await db.refresh(item)
    logger.info("expense item created id=%s business=%s type=%s", item.id, item.business_id, item.expense_type)
    return item


async def get_expense_item(db: AsyncSession, item_id: int, business_id: Optional[int] = None) -> Optional[ExpenseItem]:
    q = select(ExpenseItem).where(ExpenseItem.id == item_id)
    if business_id is not None:
        q = q.where(ExpenseItem.business_id == business_id)
    r = await db.execute(q)
    return r.scalar_one_or_none()


async def list_expense_items(
    db: AsyncSession,
    business_id: int,
    expense_type: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
) -> List[ExpenseItem]:
    """依類型、名稱排序；search 為名稱部分比對（不分大小寫）"""
    q = select(ExpenseItem).where(ExpenseItem.business_id == business_id)
    if expense_type:
        q = q.where(ExpenseItem.expense_type == expense_type)
    if is_active is not None:
        q = q.where(ExpenseItem.is_active == is_active)
    if search and search.strip():
        q = q.where(ExpenseItem.name.ilike(f"%{search.strip()}%"))
    q = q.order_by(ExpenseItem.expense_type, ExpenseItem.name, ExpenseItem.id)
    r = await db.execute(q)
    return list(r.scalars().all())


async def update_expense_item(db: AsyncSession, item: ExpenseItem, data: ExpenseItemUpdate) -> ExpenseItem:
    for k, v in data.model_dump(exclude_unset=True).items():
        if v is None:
            continue
        setattr(item, k, v)
    await db.flush()
    await db.refresh(item)
    return item


async def toggle_expense_item(db: AsyncSession, item: ExpenseItem) -> ExpenseItem:
    item.is_active = not item.is_active
    await db.flush()
    await db.refresh(item)
    return item


# ---------- CRP 費率 / 計件 ----------
async def create_crp_rate_config(db: AsyncSession, data: CrpRateConfigCreate) -> CrpRateConfig:
    r = await db.execute(
        select(CrpRateConfig.id).where(
            CrpRateConfig.business_id == data.business_id,
            CrpRateConfig.category == data.category,
            CrpRateConfig.type_name == data.type_name,
        )
    )
    if r.scalar_one_or_none() is not None:
        raise CrpConflictError(f"{data.category} / {data.type_name} 費率已存在")
    c = CrpRateConfig(**data.model_dump())
    db.add(c)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise CrpConflictError(f"{data.category} / {data.type_name} 費率已存在") from e
    await db.refresh(c)
    return c


async def get_crp_rate_config(db: AsyncSession, config_id: int, business_id: Optional[int] = None) -> Optional[CrpRateConfig]:
    q = select(CrpRateConfig).where(CrpRateConfig.id == config_id)
    if business_id is not None:
        q = q.where(CrpRateConfig.business_id == business_id)
    r = await db.execute(q)
    return r.scalar_one_or_none()


async def update_crp_rate_config(db: AsyncSession, cfg: CrpRateConfig, data: CrpRateConfigUpdate) -> CrpRateConfig:
    for k, v in data.model_dump(exclude_unset=True).items():
        if v is not None:
            setattr(cfg, k, v)
    await db.flush()
    await db.refresh(cfg)
    return cfg


async def list_crp_rate_configs(
    db: AsyncSession,
    business_id: int,
    category: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> List[CrpRateConfig]:
    q = select(CrpRateConfig).where(CrpRateConfig.business_id == business_id)
    if category:
        q = q.where(CrpRateConfig.category == category)
    if is_active is not None:
        q = q.where(CrpRateConfig.is_active == is_active)
    r = await db.execute(q.order_by(CrpRateConfig.category, CrpRateConfig.type_name))
    return list(r.scalars().all())


async def create_crp_staff_record(db: AsyncSession, data: CrpStaffRecordCreate) -> CrpStaffRecord:
    """打數預設取訂單數量（Pcs 換算為打）；單價預設取費率表；金額 = 打數 × 單價"""
    order = await get_order(db, data.order_id, data.business_id)
    if not order:
        raise EntityNotFoundError("訂單不存在")
    staff = await require_staff(db, data.staff_id, data.business_id)
    if staff.category != "Cropping":
        raise StaffCategoryError("只有 Cropping 類別員工可登錄 CRP 計件")
    r = await db.execute(
        select(CrpRateConfig).where(
            CrpRateConfig.business_id == data.business_id,
            CrpRateConfig.category == data.category,
            CrpRateConfig.type_name == data.type_name.strip(),
            CrpRateConfig.is_active.is_(True),
        )
    )
    rate_cfg = r.scalar_one_or_none()
    if not rate_cfg:
        raise EntityNotFoundError("找不到啟用中的 CRP 費率")
    r = await db.execute(
        select(CrpStaffRecord.id).where(CrpStaffRecord.business_id == data.business_id, CrpStaffRecord.order_id == order.id)
    )
    if r.scalar_one_or_none() is not None:
        raise CrpConflictError("此訂單已有 CRP 紀錄")

    if data.quantity_dzn is not None:
        qty = to_decimal(data.quantity_dzn)
    elif order.unit == "Pcs":
        qty = to_decimal(order.quantity) / Decimal("12")
    else:
        qty = to_decimal(order.quantity)
    if qty <= 0:
        raise ValueError("打數必須大於 0")
    rate = to_decimal(data.rate) if data.rate else to_decimal(rate_cfg.rate)
    if rate <= 0:
        raise ValueError("單價必須大於 0")

    rec = CrpStaffRecord(
        business_id=data.business_id,
        order_id=order.id,
        order_date=order.date,
        order_description=order.description or "",
        quantity_dzn=qty,
        staff_id=staff.id,
        staff_name=staff.name,
        category=data.category,
        type_name=rate_cfg.type_name,
        rate=rate,
        total_amount=qty * rate,
        month=month_of(order.date),
    )
    db.add(rec)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise CrpConflictError("此訂單已有 CRP 紀錄") from e
    await db.refresh(rec)
    return rec


async def list_crp_staff_records(
    db: AsyncSession,
    business_id: int,
    staff_id: Optional[int] = None,
    month: Optional[str] = None,
    category: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[CrpStaffRecord]:
    q = select(CrpStaffRecord).where(CrpStaffRecord.business_id == business_id)
    if staff_id is not None:
        q = q.where(CrpStaffRecord.staff_id == staff_id)
    if month:
        q = q.where(CrpStaffRecord.month == month)
    if category:
        q = q.where(CrpStaffRecord.category == category)
    q = q.order_by(CrpStaffRecord.order_date.desc(), CrpStaffRecord.id.desc()).offset(skip).limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())
