"""CRP（Cropping 員工）：費率表維護、計件紀錄新增與查詢。"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import crud, schemas
from embroideryos.crud import CrpConflictError, EntityNotFoundError

router = APIRouter(prefix="/api/crp", tags=["crp"])


@router.get("/rate-configs", response_model=List[schemas.CrpRateConfigRead], summary="CRP 費率列表")
async def list_crp_rate_configs(
    business_id: int = Query(...),
    category: Optional[str] = Query(None, description="Press / Cropping / Other"),
    is_active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    try:
        category = schemas.normalize_crp_category(category) if category else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    items = await crud.list_crp_rate_configs(db, business_id, category=category, is_active=is_active)
    return [schemas.CrpRateConfigRead.model_validate(c) for c in items]


@router.post("/rate-configs", response_model=schemas.CrpRateConfigRead, status_code=201, summary="新增 CRP 費率")
async def create_crp_rate_config(data: schemas.CrpRateConfigCreate, db: AsyncSession = Depends(get_db)):
    try:
        c = await crud.create_crp_rate_config(db, data)
    except CrpConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return schemas.CrpRateConfigRead.model_validate(c)


@router.patch("/rate-configs/{config_id}", response_model=schemas.CrpRateConfigRead, summary="更新 CRP 費率")
async def update_crp_rate_config(
    config_id: int,
    data: schemas.CrpRateConfigUpdate,
    business_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    c = await crud.get_crp_rate_config(db, config_id, business_id)
    if not c:
        raise HTTPException(status_code=404, detail="CRP 費率不存在")
    c = await crud.update_crp_rate_config(db, c, data)
    return schemas.CrpRateConfigRead.model_validate(c)


@router.post("/records", response_model=schemas.CrpStaffRecordRead, status_code=201, summary="新增 CRP 計件紀錄")
async def create_crp_staff_record(data: schemas.CrpStaffRecordCreate, db: AsyncSession = Depends(get_db)):
    try:
        r = await crud.create_crp_staff_record(db, data)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CrpConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return schemas.CrpStaffRecordRead.model_validate(r)


@router.get("/records", response_model=List[schemas.CrpStaffRecordRead], summary="CRP 計件紀錄列表")
async def list_crp_staff_records(
    business_id: int = Query(...),
    staff_id: Optional[int] = Query(None),
    month: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    try:
        month = schemas.validate_month(month) if month else None
        category = schemas.normalize_crp_category(category) if category else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    items = await crud.list_crp_staff_records(db, business_id, staff_id=staff_id, month=month, category=category, skip=skip, limit=limit)
    return [schemas.CrpStaffRecordRead.model_validate(r) for r in items]
