"""員工：CRUD、啟用切換、餘額（單筆 / 全部）、對帳單。"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import crud, schemas
from embroideryos.accounting.ledger import LedgerAggregator

router = APIRouter(prefix="/api/staff", tags=["staff"])

RESPONSE_404 = {
    404: {
        "description": "資源不存在",
        "content": {"application/json": {"example": {"detail": "員工不存在"}}},
    }
}


async def _get_staff_or_404(db: AsyncSession, staff_id: int, business_id: int):
    s = await crud.get_staff(db, staff_id, business_id)
    if not s:
        raise HTTPException(status_code=404, detail="員工不存在")
    return s


@router.get("", response_model=List[schemas.StaffRead], summary="員工列表")
async def list_staff(
    business_id: int = Query(..., description="公司 ID"),
    is_active: Optional[bool] = Query(None),
    category: Optional[str] = Query(None, description="Embroidery / Cropping"),
    search: Optional[str] = Query(None, description="姓名關鍵字"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    items = await crud.list_staff(
        db, business_id, is_active=is_active, category=schemas.normalize_staff_category(category) if category else None,
        search=search, skip=skip, limit=limit,
    )
    return [schemas.StaffRead.model_validate(s) for s in items]


@router.post("", response_model=schemas.StaffRead, status_code=201, summary="新增員工")
async def create_staff(data: schemas.StaffCreate, db: AsyncSession = Depends(get_db)):
    s = await crud.create_staff(db, data)
    return schemas.StaffRead.model_validate(s)


@router.get("/balances", response_model=List[schemas.BalanceRead], summary="全部員工餘額")
async def staff_balances(business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    rows = await LedgerAggregator(db).staff_balances(business_id)
    return [schemas.BalanceRead(**r) for r in rows]


@router.get("/{staff_id}", response_model=schemas.StaffRead, summary="取得單一員工", responses=RESPONSE_404)
async def get_staff(staff_id: int, business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    s = await _get_staff_or_404(db, staff_id, business_id)
    return schemas.StaffRead.model_validate(s)


@router.patch("/{staff_id}", response_model=schemas.StaffRead, summary="更新員工", responses=RESPONSE_404)
async def update_staff(
    staff_id: int,
    data: schemas.StaffUpdate,
    business_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    s = await _get_staff_or_404(db, staff_id, business_id)
    s = await crud.update_staff(db, s, data)
    return schemas.StaffRead.model_validate(s)


@router.patch("/{staff_id}/toggle", response_model=schemas.StaffRead, summary="切換啟用狀態", responses=RESPONSE_404)
async def toggle_staff(staff_id: int, business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    s = await _get_staff_or_404(db, staff_id, business_id)
    s = await crud.toggle_staff(db, s)
    return schemas.StaffRead.model_validate(s)


@router.get("/{staff_id}/balance", response_model=schemas.BalanceRead, summary="員工餘額", responses=RESPONSE_404)
async def staff_balance(staff_id: int, business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    s = await _get_staff_or_404(db, staff_id, business_id)
    return schemas.BalanceRead(**await LedgerAggregator(db).staff_balance(s))


@router.get("/{staff_id}/statement", response_model=schemas.Statement, summary="員工對帳單", responses=RESPONSE_404)
async def staff_statement(
    staff_id: int,
    business_id: int = Query(...),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=400, detail="起日不可晚於迄日")
    s = await _get_staff_or_404(db, staff_id, business_id)
    return schemas.Statement(**await LedgerAggregator(db).staff_statement(s, date_from, date_to))
