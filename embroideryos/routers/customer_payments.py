"""客戶收款：新增、更新（依收款方式重驗）、列表、統計、月份清單。"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import crud, schemas
from embroideryos.crud import EntityNotFoundError

router = APIRouter(prefix="/api/customer-payments", tags=["customer-payments"])


def _check_month(month: Optional[str]) -> Optional[str]:
    try:
        return schemas.validate_month(month) if month else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("", response_model=schemas.CustomerPaymentRead, status_code=201, summary="新增客戶收款")
async def create_customer_payment(data: schemas.CustomerPaymentCreate, db: AsyncSession = Depends(get_db)):
    try:
        p = await crud.create_customer_payment(db, data)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return schemas.CustomerPaymentRead.model_validate(p)


@router.get("", response_model=List[schemas.CustomerPaymentRead], summary="客戶收款列表")
async def list_customer_payments(
    business_id: int = Query(...),
    customer_id: Optional[int] = Query(None),
    month: Optional[str] = Query(None),
    method: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    items = await crud.list_customer_payments(
        db, business_id, customer_id=customer_id, month=_check_month(month), method=method, skip=skip, limit=limit
    )
    return [schemas.CustomerPaymentRead.model_validate(p) for p in items]


@router.get("/stats", response_model=schemas.CustomerPaymentStats, summary="依收款方式統計")
async def customer_payment_stats(
    business_id: int = Query(...),
    customer_id: Optional[int] = Query(None),
    month: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return schemas.CustomerPaymentStats(
        **await crud.customer_payment_stats(db, business_id, customer_id=customer_id, month=_check_month(month))
    )


@router.get("/months", response_model=List[str], summary="有收款紀錄之月份（新到舊）")
async def customer_payment_months(
    business_id: int = Query(...),
    customer_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_customer_payment_months(db, business_id, customer_id=customer_id)


@router.patch("/{payment_id}", response_model=schemas.CustomerPaymentRead, summary="更新客戶收款")
async def update_customer_payment(
    payment_id: int,
    data: schemas.CustomerPaymentUpdate,
    business_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    p = await crud.get_customer_payment(db, payment_id, business_id)
    if not p:
        raise HTTPException(status_code=404, detail="收款紀錄不存在")
    try:
        p = await crud.update_customer_payment(db, p, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return schemas.CustomerPaymentRead.model_validate(p)
