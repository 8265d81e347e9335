"""發票：未開票訂單分組、開立、列表、明細（含開票當下餘額）。"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import crud, schemas
from embroideryos.crud import EntityNotFoundError, InvoiceOrdersError
from embroideryos.accounting.ledger import LedgerAggregator

router = APIRouter(prefix="/api/invoices", tags=["invoices"])


@router.get("/order-groups", response_model=List[schemas.InvoiceOrderGroup], summary="未開票訂單（依客戶分組）")
async def invoice_order_groups(business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    groups = await crud.list_uninvoiced_order_groups(db, business_id)
    return [
        schemas.InvoiceOrderGroup(
            customer_id=g["customer_id"],
            customer_name=g["customer_name"],
            order_count=g["order_count"],
            total_amount=g["total_amount"],
            orders=[schemas.OrderRead.model_validate(o) for o in g["orders"]],
        )
        for g in groups
    ]


@router.post("", response_model=schemas.InvoiceRead, status_code=201, summary="開立發票")
async def create_invoice(data: schemas.InvoiceCreate, db: AsyncSession = Depends(get_db)):
    try:
        inv = await crud.create_invoice(db, data)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvoiceOrdersError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return schemas.InvoiceRead.model_validate(inv)


@router.get("", response_model=List[schemas.InvoiceRead], summary="發票列表")
async def list_invoices(
    business_id: int = Query(...),
    customer_id: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    items = await crud.list_invoices(db, business_id, customer_id=customer_id, skip=skip, limit=limit)
    return [schemas.InvoiceRead.model_validate(i) for i in items]


@router.get("/{invoice_id}", response_model=schemas.InvoiceDetail, summary="發票明細（含開票當下餘額）")
async def get_invoice(invoice_id: int, business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    inv = await crud.get_invoice(db, invoice_id, business_id)
    if not inv:
        raise HTTPException(status_code=404, detail="發票不存在")
    orders = await crud.list_invoice_orders(db, inv)
    balance = await LedgerAggregator(db).invoice_balance_context(inv)
    return schemas.InvoiceDetail(
        invoice=schemas.InvoiceRead.model_validate(inv),
        orders=[schemas.OrderRead.model_validate(o) for o in orders],
        balance=schemas.InvoiceBalanceContext(**balance),
    )
