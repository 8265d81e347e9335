"""供應商付款：新增、列表。月份由付款日推得。"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import crud, schemas
from embroideryos.crud import EntityNotFoundError

router = APIRouter(prefix="/api/supplier-payments", tags=["supplier-payments"])


@router.post("", response_model=schemas.SupplierPaymentRead, status_code=201, summary="新增供應商付款")
async def create_supplier_payment(data: schemas.SupplierPaymentCreate, db: AsyncSession = Depends(get_db)):
    try:
        p = await crud.create_supplier_payment(db, data)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return schemas.SupplierPaymentRead.model_validate(p)


@router.get("", response_model=List[schemas.SupplierPaymentRead], summary="供應商付款列表")
async def list_supplier_payments(
    business_id: int = Query(...),
    supplier_id: Optional[int] = Query(None),
    month: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    try:
        month = schemas.validate_month(month) if month else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    items = await crud.list_supplier_payments(db, business_id, supplier_id=supplier_id, month=month, skip=skip, limit=limit)
    return [schemas.SupplierPaymentRead.model_validate(p) for p in items]
