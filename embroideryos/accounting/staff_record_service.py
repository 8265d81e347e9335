"""
員工日報寫入：查員工 -> 取該日適用之生產設定 -> 純函式重算 -> 寫入（含設定快照）。
每人每日一筆；先查重，再由唯一鍵擋下併發重複寫入，後到者失敗不覆蓋。
更新時以紀錄自己的日期重新取設定，而非今天。
"""
import logging
from datetime import date
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from embroideryos.crud import (
    StaffCategoryError,
    StaffNotFoundError,
    get_effective_production_config,
    get_staff,
    get_staff_record_by_staff_date,
)
from embroideryos.models import Staff, StaffRecord
from embroideryos.schemas import PayRuleConfig, StaffRecordCreate, StaffRecordSnapshot, StaffRecordUpdate
from embroideryos.services.production_calc import build_staff_record

logger = logging.getLogger(__name__)

# 走 CRP 費率表，不進生產計薪
CRP_ONLY_CATEGORY = "Cropping"


class ProductionConfigMissingError(ValueError):
    """公司尚未建立任何生產設定"""
    pass


class StaffRecordConflictError(ValueError):
    """同員工同日已有日報"""
    pass


class StaffRecordImmutableFieldError(ValueError):
    """更新時不可變更員工或日期"""
    pass


def _snapshot_to_columns(snapshot: StaffRecordSnapshot) -> Dict[str, Any]:
    data = snapshot.model_dump(mode="json", include={"production", "totals", "config_snapshot"})
    return {
        "month": snapshot.month,
        "attendance": snapshot.attendance,
        "production": data["production"],
        "totals": data["totals"],
        "base_amount": snapshot.base_amount,
        "bonus_qty": snapshot.bonus_qty,
        "bonus_rate": snapshot.bonus_rate,
        "bonus_amount": snapshot.bonus_amount,
        "fix_amount": snapshot.fix_amount,
        "final_amount": snapshot.final_amount,
        "config_snapshot": data["config_snapshot"],
    }


class StaffRecordService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _eligible_staff(self, staff_id: int, business_id: int) -> Staff:
        staff = await get_staff(self.db, staff_id, business_id)
        if not staff:
            raise StaffNotFoundError("員工不存在")
        if (staff.category or "") == CRP_ONLY_CATEGORY:
            raise StaffCategoryError("Cropping 類別員工請改用 CRP 計件，不適用生產日報")
        return staff

    async def _pay_rule(self, business_id: int, as_of: date) -> PayRuleConfig:
        cfg = await get_effective_production_config(self.db, business_id, as_of)
        if cfg is None:
            raise ProductionConfigMissingError("請先建立生產設定")
        return PayRuleConfig.from_model(cfg)

    async def create_record(self, data: StaffRecordCreate) -> StaffRecord:
        staff = await self._eligible_staff(data.staff_id, data.business_id)
        config = await self._pay_rule(data.business_id, data.date)
        if await get_staff_record_by_staff_date(self.db, staff.id, data.date):
            logger.warning("staff record conflict staff=%s date=%s", staff.id, data.date)
            raise StaffRecordConflictError(f"{staff.name} 於 {data.date} 已有日報，請改用編輯")

        snapshot = build_staff_record(
            staff_id=staff.id,
            record_date=data.date,
            attendance=data.attendance,
            production_rows=data.production,
            bonus_qty=data.bonus_qty,
            bonus_rate_override=data.bonus_rate,
            fix_amount=data.fix_amount,
            salary=staff.salary,
            config=config,
        )
        record = StaffRecord(
            business_id=data.business_id,
            staff_id=staff.id,
            date=data.date,
            **_snapshot_to_columns(snapshot),
        )
        # rollback 會使 session 內物件失效，先取出錯誤訊息要用的值
        staff_id, staff_name = staff.id, staff.name
        self.db.add(record)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("staff record conflict (constraint) staff=%s date=%s", staff_id, data.date)
            raise StaffRecordConflictError(f"{staff_name} 於 {data.date} 已有日報，請改用編輯") from e
        await self.db.refresh(record)
        logger.info(
            "staff record created id=%s staff=%s date=%s attendance=%s final=%s config=%s",
            record.id, staff.id, record.date, record.attendance, record.final_amount, config.id,
        )
        return record

    async def update_record(self, record: StaffRecord, data: StaffRecordUpdate) -> StaffRecord:
        """未送出欄位沿用原值；fix_amount 明確送 null 即清除定額"""
        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("staff_id") is not None and update_data["staff_id"] != record.staff_id:
            raise StaffRecordImmutableFieldError("日報不可變更員工")
        if update_data.get("date") is not None and update_data["date"] != record.date:
            raise StaffRecordImmutableFieldError("日報不可變更日期")

        staff = await self._eligible_staff(record.staff_id, record.business_id)
        config = await self._pay_rule(record.business_id, record.date)

        attendance = update_data.get("attendance") or record.attendance
        production = data.production if update_data.get("production") is not None else (record.production or [])
        bonus_qty = update_data["bonus_qty"] if update_data.get("bonus_qty") is not None else record.bonus_qty
        bonus_rate = update_data["bonus_rate"] if "bonus_rate" in update_data else record.bonus_rate
        fix_amount = update_data["fix_amount"] if "fix_amount" in update_data else record.fix_amount

        snapshot = build_staff_record(
            staff_id=staff.id,
            record_date=record.date,
            attendance=attendance,
            production_rows=production,
            bonus_qty=bonus_qty,
            bonus_rate_override=bonus_rate,
            fix_amount=fix_amount,
            salary=staff.salary,
            config=config,
        )
        for k, v in _snapshot_to_columns(snapshot).items():
            setattr(record, k, v)
        await self.db.flush()
        await self.db.refresh(record)
        logger.info(
            "staff record updated id=%s staff=%s date=%s attendance=%s final=%s config=%s",
            record.id, staff.id, record.date, record.attendance, record.final_amount, config.id,
        )
        return record
