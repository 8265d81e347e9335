"""常用支出項目：列表（類型 / 狀態 / 名稱篩選）、新增、修改、啟用切換。"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import crud, schemas
from embroideryos.models import EXPENSE_TYPES

router = APIRouter(prefix="/api/expense-items", tags=["expense-items"])

RESPONSE_404 = {
    404: {
        "description": "資源不存在",
        "content": {"application/json": {"example": {"detail": "支出項目不存在"}}},
    }
}


async def _get_item_or_404(db: AsyncSession, item_id: int, business_id: int):
    item = await crud.get_expense_item(db, item_id, business_id)
    if not item:
        raise HTTPException(status_code=404, detail="支出項目不存在")
    return item


@router.get("", response_model=List[schemas.ExpenseItemRead], summary="支出項目列表")
async def list_expense_items(
    business_id: int = Query(..., description="公司 ID"),
    expense_type: Optional[str] = Query(None, description="cash / supplier / fixed"),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="名稱關鍵字"),
    db: AsyncSession = Depends(get_db),
):
    try:
        expense_type = schemas.validate_choice("支出類型", expense_type.strip().lower(), EXPENSE_TYPES) if expense_type else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    items = await crud.list_expense_items(db, business_id, expense_type=expense_type, is_active=is_active, search=search)
    return [schemas.ExpenseItemRead.model_validate(i) for i in items]


@router.post("", response_model=schemas.ExpenseItemRead, status_code=201, summary="新增支出項目")
async def create_expense_item(data: schemas.ExpenseItemCreate, db: AsyncSession = Depends(get_db)):
    item = await crud.create_expense_item(db, data)
    return schemas.ExpenseItemRead.model_validate(item)


@router.patch("/{item_id}", response_model=schemas.ExpenseItemRead, summary="修改支出項目", responses=RESPONSE_404)
async def update_expense_item(
    item_id: int,
    data: schemas.ExpenseItemUpdate,
    business_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    item = await _get_item_or_404(db, item_id, business_id)
    item = await crud.update_expense_item(db, item, data)
    return schemas.ExpenseItemRead.model_validate(item)


@router.patch("/{item_id}/toggle", response_model=schemas.ExpenseItemRead, summary="切換啟用狀態", responses=RESPONSE_404)
async def toggle_expense_item(item_id: int, business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    item = await _get_item_or_404(db, item_id, business_id)
    item = await crud.toggle_expense_item(db, item)
    return schemas.ExpenseItemRead.model_validate(item)
