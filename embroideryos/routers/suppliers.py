"""供應商：CRUD、應付餘額、對帳單。"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import crud, schemas
from embroideryos.accounting.ledger import LedgerAggregator

router = APIRouter(prefix="/api/suppliers", tags=["suppliers"])


async def _get_supplier_or_404(db: AsyncSession, supplier_id: int, business_id: int):
    s = await crud.get_supplier(db, supplier_id, business_id)
    if not s:
        raise HTTPException(status_code=404, detail="供應商不存在")
    return s


@router.get("", response_model=List[schemas.SupplierRead], summary="供應商列表")
async def list_suppliers(
    business_id: int = Query(...),
    is_active: Optional[bool] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    items = await crud.list_suppliers(db, business_id, is_active=is_active, skip=skip, limit=limit)
    return [schemas.SupplierRead.model_validate(s) for s in items]


@router.post("", response_model=schemas.SupplierRead, status_code=201, summary="新增供應商")
async def create_supplier(data: schemas.SupplierCreate, db: AsyncSession = Depends(get_db)):
    s = await crud.create_supplier(db, data)
    return schemas.SupplierRead.model_validate(s)


@router.get("/balances", response_model=List[schemas.BalanceRead], summary="全部供應商應付餘額")
async def supplier_balances(business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    rows = await LedgerAggregator(db).supplier_balances(business_id)
    return [schemas.BalanceRead(**r) for r in rows]


@router.get("/{supplier_id}", response_model=schemas.SupplierRead, summary="取得單一供應商")
async def get_supplier(supplier_id: int, business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    s = await _get_supplier_or_404(db, supplier_id, business_id)
    return schemas.SupplierRead.model_validate(s)


@router.patch("/{supplier_id}", response_model=schemas.SupplierRead, summary="更新供應商")
async def update_supplier(
    supplier_id: int,
    data: schemas.SupplierUpdate,
    business_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    s = await _get_supplier_or_404(db, supplier_id, business_id)
    s = await crud.update_supplier(db, s, data)
    return schemas.SupplierRead.model_validate(s)


@router.get("/{supplier_id}/balance", response_model=schemas.BalanceRead, summary="供應商應付餘額")
async def supplier_balance(supplier_id: int, business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    s = await _get_supplier_or_404(db, supplier_id, business_id)
    return schemas.BalanceRead(**await LedgerAggregator(db).supplier_balance(s))


@router.get("/{supplier_id}/statement", response_model=schemas.Statement, summary="供應商對帳單（支出借、付款貸）")
async def supplier_statement(
    supplier_id: int,
    business_id: int = Query(...),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=400, detail="起日不可晚於迄日")
    s = await _get_supplier_or_404(db, supplier_id, business_id)
    return schemas.Statement(**await LedgerAggregator(db).supplier_statement(s, date_from, date_to))
