"""
生產設定與員工日報 DB 測試。
覆蓋：生效設定查詢（含退回最早一筆）、同日重複設定、日報建立 / 衝突 / 缺設定 / 類別限制、
更新沿用紀錄自身日期之設定、定額清除。
"""
from datetime import date
from decimal import Decimal
import pytest

from embroideryos import crud
from embroideryos.accounting.staff_record_service import (
    ProductionConfigMissingError,
    StaffRecordConflictError,
    StaffRecordImmutableFieldError,
    StaffRecordService,
)
from embroideryos.crud import ProductionConfigConflictError, StaffCategoryError, StaffNotFoundError
from embroideryos.schemas import (
    BusinessCreate, ProductionConfigCreate, ProductionConfigUpdate, StaffCreate,
    StaffRecordCreate, StaffRecordUpdate,
)

ROWS = [{"design_stitch": 6000, "piece_count": 20, "round_count": 1}]


async def _business(db, name="繡花廠"):
    return await crud.create_business(db, BusinessCreate(name=name, person="老闆"))


async def _staff(db, business_id, name="阿明", category="Embroidery", salary=None):
    return await crud.create_staff(db, StaffCreate(
        business_id=business_id, name=name, joining_date=date(2023, 1, 1), salary=salary, category=category,
    ))


async def _config(db, business_id, effective_date, after_target_pct="2"):
    return await crud.create_production_config(db, ProductionConfigCreate(
        business_id=business_id,
        effective_date=effective_date,
        stitch_rate=Decimal("1"),
        applique_rate=Decimal("1"),
        on_target_pct=Decimal("1"),
        after_target_pct=Decimal(after_target_pct),
        pcs_per_round=Decimal("12"),
        target_amount=Decimal("1000"),
        off_amount=Decimal("300"),
    ))


@pytest.mark.asyncio
async def test_effective_config_resolution(async_engine_and_session):
    """取生效日 <= 目標日之最新；全部在目標日之後則退回最早；無設定回傳 None"""
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz = await _business(db)
        other = await _business(db, "另一廠")
        jan = await _config(db, biz.id, date(2024, 1, 1))
        jun = await _config(db, biz.id, date(2024, 6, 1), after_target_pct="3")
        await db.commit()

        assert (await crud.get_effective_production_config(db, biz.id, date(2024, 3, 15))).id == jan.id
        assert (await crud.get_effective_production_config(db, biz.id, date(2024, 6, 1))).id == jun.id
        assert (await crud.get_effective_production_config(db, biz.id, date(2025, 1, 1))).id == jun.id
        assert (await crud.get_effective_production_config(db, biz.id, date(2023, 12, 1))).id == jan.id
        assert await crud.get_effective_production_config(db, other.id, date(2024, 3, 15)) is None


@pytest.mark.asyncio
async def test_duplicate_effective_date_conflict(async_engine_and_session):
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz = await _business(db)
        await _config(db, biz.id, date(2024, 1, 1))
        jun = await _config(db, biz.id, date(2024, 6, 1))
        await db.commit()
        with pytest.raises(ProductionConfigConflictError):
            await _config(db, biz.id, date(2024, 1, 1))
        with pytest.raises(ProductionConfigConflictError):
            await crud.update_production_config(db, jun, ProductionConfigUpdate(effective_date=date(2024, 1, 1)))
        assert len(await crud.list_production_configs(db, biz.id)) == 2


@pytest.mark.asyncio
async def test_create_record_and_conflict_keeps_first(async_engine_and_session):
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz = await _business(db)
        staff = await _staff(db, biz.id)
        cfg = await _config(db, biz.id, date(2024, 1, 1))
        await db.commit()

        service = StaffRecordService(db)
        rec = await service.create_record(StaffRecordCreate(
            business_id=biz.id, staff_id=staff.id, date=date(2024, 3, 15), attendance="Half", production=ROWS,
        ))
        await db.commit()
        assert rec.attendance == "Day"
        assert rec.month == "2024-03"
        assert Decimal(str(rec.final_amount)) == Decimal("2400")
        assert rec.config_snapshot["config_id"] == cfg.id

        with pytest.raises(StaffRecordConflictError):
            await service.create_record(StaffRecordCreate(
                business_id=biz.id, staff_id=staff.id, date=date(2024, 3, 15), attendance="Absent",
            ))
        records = await crud.list_staff_records(db, biz.id)
        assert len(records) == 1
        assert records[0].attendance == "Day"
        assert Decimal(str(records[0].final_amount)) == Decimal("2400")


@pytest.mark.asyncio
async def test_create_record_without_config(async_engine_and_session):
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz = await _business(db)
        staff = await _staff(db, biz.id)
        await db.commit()
        with pytest.raises(ProductionConfigMissingError):
            await StaffRecordService(db).create_record(StaffRecordCreate(
                business_id=biz.id, staff_id=staff.id, date=date(2024, 3, 15), attendance="Day",
            ))


@pytest.mark.asyncio
async def test_cropping_staff_and_missing_staff_rejected(async_engine_and_session):
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz = await _business(db)
        cropper = await _staff(db, biz.id, name="小剪", category="Packing")
        await _config(db, biz.id, date(2024, 1, 1))
        await db.commit()
        assert cropper.category == "Cropping"
        service = StaffRecordService(db)
        with pytest.raises(StaffCategoryError):
            await service.create_record(StaffRecordCreate(
                business_id=biz.id, staff_id=cropper.id, date=date(2024, 3, 15), attendance="Day",
            ))
        with pytest.raises(StaffNotFoundError):
            await service.create_record(StaffRecordCreate(
                business_id=biz.id, staff_id=9999, date=date(2024, 3, 15), attendance="Day",
            ))


@pytest.mark.asyncio
async def test_update_uses_record_date_config_and_fix_amount(async_engine_and_session):
    """3 月的日報在 6 月設定存在後更新，仍套 1 月設定；fix_amount 明確送 null 才清除"""
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz = await _business(db)
        staff = await _staff(db, biz.id)
        jan = await _config(db, biz.id, date(2024, 1, 1))
        await db.commit()
        service = StaffRecordService(db)
        rec = await service.create_record(StaffRecordCreate(
            business_id=biz.id, staff_id=staff.id, date=date(2024, 3, 15), attendance="Day",
            production=ROWS, fix_amount=Decimal("500"),
        ))
        await db.commit()
        assert Decimal(str(rec.final_amount)) == Decimal("500")

        await _config(db, biz.id, date(2024, 6, 1), after_target_pct="3")
        await db.commit()

        rec = await service.update_record(rec, StaffRecordUpdate(bonus_qty=Decimal("1")))
        assert Decimal(str(rec.fix_amount)) == Decimal("500")
        assert Decimal(str(rec.final_amount)) == Decimal("500")
        assert rec.config_snapshot["config_id"] == jan.id

        rec = await service.update_record(rec, StaffRecordUpdate(fix_amount=None))
        assert rec.fix_amount is None
        # 2400 + 獎金 1 × 200
        assert Decimal(str(rec.final_amount)) == Decimal("2600")
        assert rec.config_snapshot["config_id"] == jan.id

        with pytest.raises(StaffRecordImmutableFieldError):
            await service.update_record(rec, StaffRecordUpdate(date=date(2024, 3, 16)))
        with pytest.raises(StaffRecordImmutableFieldError):
            await service.update_record(rec, StaffRecordUpdate(staff_id=staff.id + 1))


@pytest.mark.asyncio
async def test_concurrent_duplicate_hits_unique_constraint(async_engine_and_session, monkeypatch):
    """查重時另一筆尚未寫入（併發），由唯一鍵擋下：回報衝突並保留先寫入的那筆"""
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz = await _business(db)
        staff = await _staff(db, biz.id, name="阿華")
        await _config(db, biz.id, date(2024, 1, 1))
        await db.commit()
        biz_id, staff_id = biz.id, staff.id

        service = StaffRecordService(db)
        await service.create_record(StaffRecordCreate(
            business_id=biz_id, staff_id=staff_id, date=date(2024, 3, 15), attendance="Day", production=ROWS,
        ))
        await db.commit()

        async def _not_found_yet(*args, **kwargs):
            return None

        monkeypatch.setattr(
            "embroideryos.accounting.staff_record_service.get_staff_record_by_staff_date", _not_found_yet
        )
        with pytest.raises(StaffRecordConflictError) as exc:
            await service.create_record(StaffRecordCreate(
                business_id=biz_id, staff_id=staff_id, date=date(2024, 3, 15), attendance="Absent",
            ))
        assert str(exc.value) == "阿華 於 2024-03-15 已有日報，請改用編輯"

        records = await crud.list_staff_records(db, biz_id)
        assert len(records) == 1
        assert records[0].attendance == "Day"
        assert Decimal(str(records[0].final_amount)) == Decimal("2400")
