"""儀表板：今日 / 月份彙總與最近單據、逐日趨勢。"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.database import get_db
from embroideryos import schemas
from embroideryos.accounting.dashboard import DashboardAggregator, DashboardRangeError

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=schemas.DashboardSummary, summary="儀表板彙總")
async def dashboard_summary(
    business_id: int = Query(..., description="公司 ID"),
    month: Optional[str] = Query(None, description="YYYY-MM；格式不符改用本月"),
    trend_mode: str = Query("current", description="current：本月至今天；last：上個月月底往回 7 天"),
    db: AsyncSession = Depends(get_db),
):
    data = await DashboardAggregator(db).summary(business_id, month=month, trend_mode=trend_mode)
    return schemas.DashboardSummary(**data)


@router.get("/trend", response_model=schemas.DashboardTrend, summary="逐日趨勢")
async def dashboard_trend(
    business_id: int = Query(..., description="公司 ID"),
    range_key: str = Query("7d", alias="range", description="7d / 1m / 3m / 6m / custom"),
    date_from: Optional[date] = Query(None, description="custom 起日"),
    date_to: Optional[date] = Query(None, description="custom 迄日"),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = await DashboardAggregator(db).trend(business_id, range_key=range_key, date_from=date_from, date_to=date_to)
    except DashboardRangeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return schemas.DashboardTrend(**data)
