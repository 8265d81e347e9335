"""客戶：CRUD、餘額（單筆 / 全部）、對帳單。"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import crud, schemas
from embroideryos.accounting.ledger import LedgerAggregator

router = APIRouter(prefix="/api/customers", tags=["customers"])


async def _get_customer_or_404(db: AsyncSession, customer_id: int, business_id: int):
    c = await crud.get_customer(db, customer_id, business_id)
    if not c:
        raise HTTPException(status_code=404, detail="客戶不存在")
    return c


@router.get("", response_model=List[schemas.CustomerRead], summary="客戶列表")
async def list_customers(
    business_id: int = Query(...),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    items = await crud.list_customers(db, business_id, is_active=is_active, search=search, skip=skip, limit=limit)
    return [schemas.CustomerRead.model_validate(c) for c in items]


@router.post("", response_model=schemas.CustomerRead, status_code=201, summary="新增客戶")
async def create_customer(data: schemas.CustomerCreate, db: AsyncSession = Depends(get_db)):
    c = await crud.create_customer(db, data)
    return schemas.CustomerRead.model_validate(c)


@router.get("/balances", response_model=List[schemas.BalanceRead], summary="全部客戶應收餘額")
async def customer_balances(business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    rows = await LedgerAggregator(db).customer_balances(business_id)
    return [schemas.BalanceRead(**r) for r in rows]


@router.get("/{customer_id}", response_model=schemas.CustomerRead, summary="取得單一客戶")
async def get_customer(customer_id: int, business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    c = await _get_customer_or_404(db, customer_id, business_id)
    return schemas.CustomerRead.model_validate(c)


@router.patch("/{customer_id}", response_model=schemas.CustomerRead, summary="更新客戶")
async def update_customer(
    customer_id: int,
    data: schemas.CustomerUpdate,
    business_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    c = await _get_customer_or_404(db, customer_id, business_id)
    c = await crud.update_customer(db, c, data)
    return schemas.CustomerRead.model_validate(c)


@router.get("/{customer_id}/balance", response_model=schemas.BalanceRead, summary="客戶應收餘額")
async def customer_balance(customer_id: int, business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    c = await _get_customer_or_404(db, customer_id, business_id)
    return schemas.BalanceRead(**await LedgerAggregator(db).customer_balance(c))


@router.get("/{customer_id}/statement", response_model=schemas.Statement, summary="客戶對帳單（發票借、收款貸）")
async def customer_statement(
    customer_id: int,
    business_id: int = Query(...),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=400, detail="起日不可晚於迄日")
    c = await _get_customer_or_404(db, customer_id, business_id)
    return schemas.Statement(**await LedgerAggregator(db).customer_statement(c, date_from, date_to))
