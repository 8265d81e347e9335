"""生產計薪設定：列表、某日適用設定、新增、更新。"""
from datetime import date
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import crud, schemas
from embroideryos.crud import ProductionConfigConflictError

router = APIRouter(prefix="/api/production-configs", tags=["production-configs"])

RESPONSE_409 = {
    409: {
        "description": "同公司同生效日已有設定",
        "content": {"application/json": {"example": {"detail": "2024-01-01 已有生產設定，請改用編輯"}}},
    }
}


@router.get("", response_model=List[schemas.ProductionConfigRead], summary="生產設定列表（生效日新到舊）")
async def list_production_configs(business_id: int = Query(...), db: AsyncSession = Depends(get_db)):
    items = await crud.list_production_configs(db, business_id)
    return [schemas.ProductionConfigRead.model_validate(c) for c in items]


@router.get(
    "/effective",
    response_model=Union[schemas.ProductionConfigRead, dict],
    summary="取得某日適用之生產設定；尚未建立任何設定時回傳 {}",
)
async def get_effective_production_config(
    business_id: int = Query(...),
    as_of: Optional[date] = Query(None, description="預設今天"),
    db: AsyncSession = Depends(get_db),
):
    cfg = await crud.get_effective_production_config(db, business_id, as_of or date.today())
    if cfg is None:
        return {}
    return schemas.ProductionConfigRead.model_validate(cfg)


@router.post("", response_model=schemas.ProductionConfigRead, status_code=201, summary="新增生產設定", responses=RESPONSE_409)
async def create_production_config(data: schemas.ProductionConfigCreate, db: AsyncSession = Depends(get_db)):
    try:
        cfg = await crud.create_production_config(db, data)
    except ProductionConfigConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return schemas.ProductionConfigRead.model_validate(cfg)


@router.patch("/{config_id}", response_model=schemas.ProductionConfigRead, summary="更新生產設定（不影響既有日報）", responses=RESPONSE_409)
async def update_production_config(
    config_id: int,
    data: schemas.ProductionConfigUpdate,
    business_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    cfg = await crud.get_production_config(db, config_id, business_id)
    if not cfg:
        raise HTTPException(status_code=404, detail="生產設定不存在")
    try:
        cfg = await crud.update_production_config(db, cfg, data)
    except ProductionConfigConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return schemas.ProductionConfigRead.model_validate(cfg)
