"""支出：新增、列表。供應商支出計入該供應商應付。"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import crud, schemas
from embroideryos.crud import EntityNotFoundError

router = APIRouter(prefix="/api/expenses", tags=["expenses"])


@router.post("", response_model=schemas.ExpenseRead, status_code=201, summary="新增支出")
async def create_expense(data: schemas.ExpenseCreate, db: AsyncSession = Depends(get_db)):
    try:
        e = await crud.create_expense(db, data)
    except EntityNotFoundError as err:
        raise HTTPException(status_code=404, detail=str(err))
    return schemas.ExpenseRead.model_validate(e)


@router.get("", response_model=List[schemas.ExpenseRead], summary="支出列表")
async def list_expenses(
    business_id: int = Query(...),
    expense_type: Optional[str] = Query(None, description="cash / supplier / fixed"),
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
    items = await crud.list_expenses(
        db, business_id, expense_type=expense_type, supplier_id=supplier_id, month=month, skip=skip, limit=limit
    )
    return [schemas.ExpenseRead.model_validate(e) for e in items]
