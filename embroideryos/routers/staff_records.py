"""員工日報：新增 / 更新（伺服器重算）、查詢、月結 Excel 匯出。"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
import io

from embroideryos.database import get_db
from embroideryos import crud, schemas
from embroideryos.crud import StaffNotFoundError
from embroideryos.accounting.staff_record_service import (
    StaffRecordService,
    StaffRecordConflictError,
)
from embroideryos.accounting.payroll_export import build_staff_records_excel, record_to_row
from embroideryos.utils.http_headers import build_content_disposition

router = APIRouter(prefix="/api/staff-records", tags=["staff-records"])

RESPONSE_404 = {
    404: {
        "description": "資源不存在",
        "content": {"application/json": {"example": {"detail": "員工不存在"}}},
    }
}

RESPONSE_409 = {
    409: {
        "description": "同員工同日已有日報",
        "content": {"application/json": {"example": {"detail": "王小明 於 2024-03-15 已有日報，請改用編輯"}}},
    }
}


def _to_http(e: ValueError) -> HTTPException:
    """員工不存在 404、重複 409；其餘（未建設定、類別不符、改員工或日期）400"""
    if isinstance(e, StaffNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, StaffRecordConflictError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=List[schemas.StaffRecordRead], summary="員工日報列表")
async def list_staff_records(
    business_id: int = Query(...),
    staff_id: Optional[int] = Query(None),
    month: Optional[str] = Query(None, description="YYYY-MM"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    try:
        month = schemas.validate_month(month) if month else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    items = await crud.list_staff_records(
        db, business_id, staff_id=staff_id, month=month, date_from=date_from, date_to=date_to, skip=skip, limit=limit
    )
    return [schemas.StaffRecordRead.model_validate(r) for r in items]


@router.get("/export", summary="員工日報月結匯出 Excel")
async def export_staff_records(
    business_id: int = Query(...),
    month: str = Query(..., description="YYYY-MM"),
    staff_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    try:
        month = schemas.validate_month(month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    records = await crud.list_staff_records(db, business_id, staff_id=staff_id, month=month, limit=0)
    staff_names = {s.id: s.name for s in await crud.list_staff(db, business_id, limit=10000)}
    rows = [record_to_row(r, staff_names.get(r.staff_id, "")) for r in sorted(records, key=lambda r: (staff_names.get(r.staff_id, ""), r.date))]
    content = build_staff_records_excel(rows, sheet_name=f"員工日報 {month}")
    suffix = month.replace("-", "_")
    return StreamingResponse(
        io.BytesIO(content),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": build_content_disposition(f"staff_records_{suffix}.xlsx", f"員工日報_{suffix}.xlsx")},
    )


@router.get("/{record_id}", response_model=schemas.StaffRecordRead, summary="取得單一日報", responses=RESPONSE_404)
async def get_staff_record(record_id: int, business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    r = await crud.get_staff_record(db, record_id, business_id)
    if not r:
        raise HTTPException(status_code=404, detail="日報不存在")
    return schemas.StaffRecordRead.model_validate(r)


@router.post("", response_model=schemas.StaffRecordRead, status_code=201, summary="新增日報（伺服器重算金額）", responses={**RESPONSE_404, **RESPONSE_409})
async def create_staff_record(data: schemas.StaffRecordCreate, db: AsyncSession = Depends(get_db)):
    try:
        r = await StaffRecordService(db).create_record(data)
    except ValueError as e:
        raise _to_http(e)
    return schemas.StaffRecordRead.model_validate(r)


@router.patch("/{record_id}", response_model=schemas.StaffRecordRead, summary="更新日報（以紀錄日期之設定重算）", responses=RESPONSE_404)
async def update_staff_record(
    record_id: int,
    data: schemas.StaffRecordUpdate,
    business_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    r = await crud.get_staff_record(db, record_id, business_id)
    if not r:
        raise HTTPException(status_code=404, detail="日報不存在")
    try:
        r = await StaffRecordService(db).update_record(r, data)
    except ValueError as e:
        raise _to_http(e)
    return schemas.StaffRecordRead.model_validate(r)
