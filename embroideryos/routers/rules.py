"""規則模組 API：設計針數預設級距（來自 config/stitch_formula_rules.yaml）"""
from typing import List

from fastapi import APIRouter

from embroideryos import schemas
from embroideryos.rules.stitch_formula import default_rules

router = APIRouter(prefix="/api/rules", tags=["rules"])


@router.get("/stitch-formula", response_model=List[schemas.StitchFormulaRule])
async def list_default_stitch_formula() -> List[schemas.StitchFormulaRule]:
    """未啟用自訂級距時套用的預設曲線（已依上限排序，無上限置末）"""
    return [schemas.StitchFormulaRule(**r) for r in default_rules()]
