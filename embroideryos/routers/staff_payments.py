"""員工收付（預支 / 付款 / 調整）：新增、列表、統計、月份清單。"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import crud, schemas
from embroideryos.crud import StaffNotFoundError

router = APIRouter(prefix="/api/staff-payments", tags=["staff-payments"])


def _check_month(month: Optional[str]) -> Optional[str]:
    try:
        return schemas.validate_month(month) if month else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("", response_model=schemas.StaffPaymentRead, status_code=201, summary="新增員工收付")
async def create_staff_payment(data: schemas.StaffPaymentCreate, db: AsyncSession = Depends(get_db)):
    try:
        p = await crud.create_staff_payment(db, data)
    except StaffNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return schemas.StaffPaymentRead.model_validate(p)


@router.get("", response_model=List[schemas.StaffPaymentRead], summary="員工收付列表")
async def list_staff_payments(
    business_id: int = Query(...),
    staff_id: Optional[int] = Query(None),
    month: Optional[str] = Query(None, description="YYYY-MM"),
    type: Optional[str] = Query(None, description="advance / payment / adjustment"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    items = await crud.list_staff_payments(
        db, business_id, staff_id=staff_id, month=_check_month(month), payment_type=type, skip=skip, limit=limit
    )
    staff_names = {s.id: s.name for s in await crud.list_staff(db, business_id, limit=10000)}
    out = []
    for p in items:
        row = schemas.StaffPaymentRead.model_validate(p)
        row.staff_name = staff_names.get(p.staff_id)
        out.append(row)
    return out


@router.get("/stats", response_model=schemas.StaffPaymentStats, summary="依類型統計筆數與金額")
async def staff_payment_stats(
    business_id: int = Query(...),
    staff_id: Optional[int] = Query(None),
    month: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return schemas.StaffPaymentStats(**await crud.staff_payment_stats(db, business_id, staff_id=staff_id, month=_check_month(month)))


@router.get("/months", response_model=List[str], summary="有收付紀錄之月份（新到舊）")
async def staff_payment_months(
    business_id: int = Query(...),
    staff_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_staff_payment_months(db, business_id, staff_id=staff_id)
