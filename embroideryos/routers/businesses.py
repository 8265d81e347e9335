"""公司（租戶）：新增 / 列表 / 取得。"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import crud, schemas

router = APIRouter(prefix="/api/businesses", tags=["businesses"])


@router.get("", response_model=List[schemas.BusinessRead], summary="公司列表")
async def list_businesses(db: AsyncSession = Depends(get_db)):
    items = await crud.list_businesses(db)
    return [schemas.BusinessRead.model_validate(b) for b in items]


@router.post("", response_model=schemas.BusinessRead, status_code=201, summary="新增公司")
async def create_business(data: schemas.BusinessCreate, db: AsyncSession = Depends(get_db)):
    b = await crud.create_business(db, data)
    return schemas.BusinessRead.model_validate(b)


@router.get("/{business_id}", response_model=schemas.BusinessRead, summary="取得單一公司")
async def get_business(business_id: int, db: AsyncSession = Depends(get_db)):
    b = await crud.get_business(db, business_id)
    if not b:
        raise HTTPException(status_code=404, detail="公司不存在")
    return schemas.BusinessRead.model_validate(b)
