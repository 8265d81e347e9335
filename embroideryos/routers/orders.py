"""訂單：新增 / 更新（伺服器重算計價）、查詢、統計、試算。"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import crud, schemas
from embroideryos.crud import EntityNotFoundError, OrderInvoicedError

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("/preview", response_model=schemas.OrderPricingResult, summary="計價試算（不寫入）")
async def preview_order(data: schemas.OrderPreviewRequest, db: AsyncSession = Depends(get_db)):
    try:
        return await crud.preview_order_pricing(db, data)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("", response_model=schemas.OrderRead, status_code=201, summary="新增訂單")
async def create_order(data: schemas.OrderCreate, db: AsyncSession = Depends(get_db)):
    try:
        o = await crud.create_order(db, data)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return schemas.OrderRead.model_validate(o)


@router.get("", response_model=List[schemas.OrderRead], summary="訂單列表（日期新到舊）")
async def list_orders(
    business_id: int = Query(...),
    customer_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    invoiced: Optional[bool] = Query(None, description="true 已開票 / false 未開票"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    items = await crud.list_orders(
        db, business_id, customer_id=customer_id, date_from=date_from, date_to=date_to,
        invoiced=invoiced, skip=skip, limit=limit,
    )
    return [schemas.OrderRead.model_validate(o) for o in items]


@router.get("/stats", response_model=schemas.OrderStats, summary="訂單筆數與總金額")
async def order_stats(
    business_id: int = Query(...),
    customer_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return schemas.OrderStats(**await crud.order_stats(db, business_id, customer_id=customer_id, date_from=date_from, date_to=date_to))


@router.get("/{order_id}", response_model=schemas.OrderRead, summary="取得單一訂單")
async def get_order(order_id: int, business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    o = await crud.get_order(db, order_id, business_id)
    if not o:
        raise HTTPException(status_code=404, detail="訂單不存在")
    return schemas.OrderRead.model_validate(o)


@router.patch("/{order_id}", response_model=schemas.OrderRead, summary="更新訂單（合併後重算）")
async def update_order(
    order_id: int,
    data: schemas.OrderUpdate,
    business_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    o = await crud.get_order(db, order_id, business_id)
    if not o:
        raise HTTPException(status_code=404, detail="訂單不存在")
    try:
        o = await crud.update_order(db, o, data)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OrderInvoicedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return schemas.OrderRead.model_validate(o)
