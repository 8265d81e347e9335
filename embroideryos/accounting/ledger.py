"""
餘額與對帳單：每次查詢即時以 SUM ... GROUP BY 計算，不做快取。
- 員工：期初 + 日報實發 + 調整 - 預支 - 付款
- 客戶：期初 + 發票 - 收款
- 供應商：期初 + 供應商支出 - 付款
同一請求內的多個彙總查詢各自讀取當下已提交資料，彼此不保證同一時間點。
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.models import (
    Staff, StaffRecord, StaffPayment,
    Customer, CustomerPayment, Invoice,
    Supplier, SupplierPayment, Expense,
)
from embroideryos.services.money import ZERO, to_decimal

# 員工收付：adjustment 為借方（增加應付），其餘為貸方
STAFF_DEBIT_PAYMENT_TYPES = ("adjustment",)
STAFF_CREDIT_PAYMENT_TYPES = ("advance", "payment")


def build_statement(
    entity_id: int,
    name: str,
    opening_balance: Any,
    entries: Iterable[Dict[str, Any]],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Dict[str, Any]:
    """
    entries 每筆：kind, ref_id, date, created_at, description, debit, credit。
    date_from 之前的分錄併入期初；區間內依 (date, created_at, ref_id) 遞增排序並逐筆累計餘額。
    """
    opening = to_decimal(opening_balance)
    window: List[Dict[str, Any]] = []
    for e in entries:
        d = e["date"]
        if date_to and d > date_to:
            continue
        if date_from and d < date_from:
            opening += to_decimal(e.get("debit")) - to_decimal(e.get("credit"))
            continue
        window.append(e)
    window.sort(key=lambda e: (e["date"], e.get("created_at") or datetime.min, e["ref_id"]))

    running = opening
    total_debit = ZERO
    total_credit = ZERO
    rows = []
    for e in window:
        debit = to_decimal(e.get("debit"))
        credit = to_decimal(e.get("credit"))
        total_debit += debit
        total_credit += credit
        running = running + debit - credit
        rows.append({
            "kind": e["kind"],
            "ref_id": e["ref_id"],
            "date": e["date"],
            "description": e.get("description") or "",
            "debit": debit,
            "credit": credit,
            "balance": running,
        })
    return {
        "entity_id": entity_id,
        "name": name,
        "date_from": date_from,
        "date_to": date_to,
        "opening_balance": opening,
        "total_debit": total_debit,
        "total_credit": total_credit,
        "closing_balance": opening + total_debit - total_credit,
        "rows": rows,
    }


def _balance_row(entity_id: int, name: str, opening: Any, debit: Any, credit: Any) -> Dict[str, Any]:
    opening = to_decimal(opening)
    return {
        "entity_id": entity_id,
        "name": name,
        "opening_balance": opening,
        "balance": opening + to_decimal(debit) - to_decimal(credit),
    }


class LedgerAggregator:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ---------- 彙總查詢 ----------
    async def _sum_by(self, column, amount, *where) -> Dict[int, Decimal]:
        q = select(column, func.coalesce(func.sum(amount), 0)).where(*where).group_by(column)
        r = await self.db.execute(q)
        return {k: to_decimal(v) for k, v in r.all()}

    async def _staff_sums(self, business_id: int, staff_id: Optional[int] = None):
        rec_where = [StaffRecord.business_id == business_id]
        pay_where = [StaffPayment.business_id == business_id]
        if staff_id is not None:
            rec_where.append(StaffRecord.staff_id == staff_id)
            pay_where.append(StaffPayment.staff_id == staff_id)
        records = await self._sum_by(StaffRecord.staff_id, StaffRecord.final_amount, *rec_where)
        q = (
            select(StaffPayment.staff_id, StaffPayment.type, func.coalesce(func.sum(StaffPayment.amount), 0))
            .where(*pay_where)
            .group_by(StaffPayment.staff_id, StaffPayment.type)
        )
        r = await self.db.execute(q)
        debit: Dict[int, Decimal] = dict(records)
        credit: Dict[int, Decimal] = {}
        for sid, ptype, amount in r.all():
            if ptype in STAFF_DEBIT_PAYMENT_TYPES:
                debit[sid] = debit.get(sid, ZERO) + to_decimal(amount)
            elif ptype in STAFF_CREDIT_PAYMENT_TYPES:
                credit[sid] = credit.get(sid, ZERO) + to_decimal(amount)
        return debit, credit

    async def _customer_sums(self, business_id: int, customer_id: Optional[int] = None):
        inv_where = [Invoice.business_id == business_id]
        pay_where = [CustomerPayment.business_id == business_id]
        if customer_id is not None:
            inv_where.append(Invoice.customer_id == customer_id)
            pay_where.append(CustomerPayment.customer_id == customer_id)
        debit = await self._sum_by(Invoice.customer_id, Invoice.total_amount, *inv_where)
        credit = await self._sum_by(CustomerPayment.customer_id, CustomerPayment.amount, *pay_where)
        return debit, credit

    async def _supplier_sums(self, business_id: int, supplier_id: Optional[int] = None):
        exp_where = [Expense.business_id == business_id, Expense.supplier_id.is_not(None)]
        pay_where = [SupplierPayment.business_id == business_id]
        if supplier_id is not None:
            exp_where.append(Expense.supplier_id == supplier_id)
            pay_where.append(SupplierPayment.supplier_id == supplier_id)
        debit = await self._sum_by(Expense.supplier_id, Expense.amount, *exp_where)
        credit = await self._sum_by(SupplierPayment.supplier_id, SupplierPayment.amount, *pay_where)
        return debit, credit

    # ---------- 單筆 / 全部餘額 ----------
    async def staff_balance(self, staff: Staff) -> Dict[str, Any]:
        debit, credit = await self._staff_sums(staff.business_id, staff.id)
        return _balance_row(staff.id, staff.name, staff.opening_balance, debit.get(staff.id), credit.get(staff.id))

    async def staff_balances(self, business_id: int) -> List[Dict[str, Any]]:
        r = await self.db.execute(select(Staff).where(Staff.business_id == business_id).order_by(Staff.name, Staff.id))
        debit, credit = await self._staff_sums(business_id)
        return [_balance_row(s.id, s.name, s.opening_balance, debit.get(s.id), credit.get(s.id)) for s in r.scalars().all()]

    async def customer_balance(self, customer: Customer) -> Dict[str, Any]:
        debit, credit = await self._customer_sums(customer.business_id, customer.id)
        return _balance_row(customer.id, customer.name, customer.opening_balance, debit.get(customer.id), credit.get(customer.id))

    async def customer_balances(self, business_id: int) -> List[Dict[str, Any]]:
        r = await self.db.execute(select(Customer).where(Customer.business_id == business_id).order_by(Customer.name, Customer.id))
        debit, credit = await self._customer_sums(business_id)
        return [_balance_row(c.id, c.name, c.opening_balance, debit.get(c.id), credit.get(c.id)) for c in r.scalars().all()]

    async def supplier_balance(self, supplier: Supplier) -> Dict[str, Any]:
        debit, credit = await self._supplier_sums(supplier.business_id, supplier.id)
        return _balance_row(supplier.id, supplier.name, supplier.opening_balance, debit.get(supplier.id), credit.get(supplier.id))

    async def supplier_balances(self, business_id: int) -> List[Dict[str, Any]]:
        r = await self.db.execute(select(Supplier).where(Supplier.business_id == business_id).order_by(Supplier.name, Supplier.id))
        debit, credit = await self._supplier_sums(business_id)
        return [_balance_row(s.id, s.name, s.opening_balance, debit.get(s.id), credit.get(s.id)) for s in r.scalars().all()]

    # ---------- 對帳單 ----------
    async def staff_statement(self, staff: Staff, date_from: Optional[date] = None, date_to: Optional[date] = None) -> Dict[str, Any]:
        entries: List[Dict[str, Any]] = []
        q = select(StaffRecord).where(StaffRecord.business_id == staff.business_id, StaffRecord.staff_id == staff.id)
        if date_to:
            q = q.where(StaffRecord.date <= date_to)
        for rec in (await self.db.execute(q)).scalars().all():
            entries.append({
                "kind": "record", "ref_id": rec.id, "date": rec.date, "created_at": rec.created_at,
                "description": rec.attendance, "debit": rec.final_amount, "credit": ZERO,
            })
        q = select(StaffPayment).where(StaffPayment.business_id == staff.business_id, StaffPayment.staff_id == staff.id)
        if date_to:
            q = q.where(StaffPayment.date <= date_to)
        for p in (await self.db.execute(q)).scalars().all():
            is_debit = p.type in STAFF_DEBIT_PAYMENT_TYPES
            entries.append({
                "kind": p.type, "ref_id": p.id, "date": p.date, "created_at": p.created_at,
                "description": p.remarks or "",
                "debit": p.amount if is_debit else ZERO,
                "credit": ZERO if is_debit else p.amount,
            })
        return build_statement(staff.id, staff.name, staff.opening_balance, entries, date_from, date_to)

    async def customer_statement(self, customer: Customer, date_from: Optional[date] = None, date_to: Optional[date] = None) -> Dict[str, Any]:
        entries: List[Dict[str, Any]] = []
        q = select(Invoice).where(Invoice.business_id == customer.business_id, Invoice.customer_id == customer.id)
        if date_to:
            q = q.where(Invoice.invoice_date <= date_to)
        for inv in (await self.db.execute(q)).scalars().all():
            entries.append({
                "kind": "invoice", "ref_id": inv.id, "date": inv.invoice_date, "created_at": inv.created_at,
                "description": inv.note or "", "debit": inv.total_amount, "credit": ZERO,
            })
        q = select(CustomerPayment).where(CustomerPayment.business_id == customer.business_id, CustomerPayment.customer_id == customer.id)
        if date_to:
            q = q.where(CustomerPayment.date <= date_to)
        for p in (await self.db.execute(q)).scalars().all():
            entries.append({
                "kind": "payment", "ref_id": p.id, "date": p.date, "created_at": p.created_at,
                "description": p.method, "debit": ZERO, "credit": p.amount,
            })
        return build_statement(customer.id, customer.name, customer.opening_balance, entries, date_from, date_to)

    async def supplier_statement(self, supplier: Supplier, date_from: Optional[date] = None, date_to: Optional[date] = None) -> Dict[str, Any]:
        entries: List[Dict[str, Any]] = []
        q = select(Expense).where(Expense.business_id == supplier.business_id, Expense.supplier_id == supplier.id)
        if date_to:
            q = q.where(Expense.date <= date_to)
        for e in (await self.db.execute(q)).scalars().all():
            entries.append({
                "kind": "expense", "ref_id": e.id, "date": e.date, "created_at": e.created_at,
                "description": e.item_name, "debit": e.amount, "credit": ZERO,
            })
        q = select(SupplierPayment).where(SupplierPayment.business_id == supplier.business_id, SupplierPayment.supplier_id == supplier.id)
        if date_to:
            q = q.where(SupplierPayment.date <= date_to)
        for p in (await self.db.execute(q)).scalars().all():
            entries.append({
                "kind": "payment", "ref_id": p.id, "date": p.date, "created_at": p.created_at,
                "description": p.method, "debit": ZERO, "credit": p.amount,
            })
        return build_statement(supplier.id, supplier.name, supplier.opening_balance, entries, date_from, date_to)

    # ---------- 發票當下餘額 ----------
    async def invoice_balance_context(self, invoice: Invoice) -> Dict[str, Any]:
        """開票當下：期初、先前收款、先前未結（期初 + 先前發票 - 先前收款）、開票後餘額。先後以 (日期, 建立時間, id) 判斷。"""
        r = await self.db.execute(select(Customer.opening_balance).where(Customer.id == invoice.customer_id))
        opening = to_decimal(r.scalar_one_or_none())

        prior_invoice = or_(
            Invoice.invoice_date < invoice.invoice_date,
            and_(Invoice.invoice_date == invoice.invoice_date, Invoice.created_at < invoice.created_at),
            and_(Invoice.invoice_date == invoice.invoice_date, Invoice.created_at == invoice.created_at, Invoice.id < invoice.id),
        )
        r = await self.db.execute(
            select(func.coalesce(func.sum(Invoice.total_amount), 0)).where(
                Invoice.business_id == invoice.business_id,
                Invoice.customer_id == invoice.customer_id,
                prior_invoice,
            )
        )
        prior_invoiced = to_decimal(r.scalar_one())

        prior_payment = or_(
            CustomerPayment.date < invoice.invoice_date,
            and_(CustomerPayment.date == invoice.invoice_date, CustomerPayment.created_at < invoice.created_at),
            and_(CustomerPayment.date == invoice.invoice_date, CustomerPayment.created_at == invoice.created_at, CustomerPayment.id < invoice.id),
        )
        r = await self.db.execute(
            select(func.coalesce(func.sum(CustomerPayment.amount), 0)).where(
                CustomerPayment.business_id == invoice.business_id,
                CustomerPayment.customer_id == invoice.customer_id,
                prior_payment,
            )
        )
        paid_before = to_decimal(r.scalar_one())

        outstanding = opening + prior_invoiced - paid_before
        return {
            "opening_balance": opening,
            "paid_before_invoice": paid_before,
            "outstanding_balance": outstanding,
            "new_balance": outstanding + to_decimal(invoice.total_amount),
        }
