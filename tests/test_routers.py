"""
路由函式直接呼叫（不經 HTTP）：確認領域錯誤對應的狀態碼與回應結構。
"""
from datetime import date
from decimal import Decimal
import pytest
from fastapi import HTTPException, Request

from embroideryos import crud
from embroideryos.main import unhandled_exception_handler
from embroideryos.routers import production_configs as config_router
from embroideryos.routers import staff_records as record_router
from embroideryos.schemas import BusinessCreate, ProductionConfigCreate, StaffCreate, StaffRecordCreate


async def _seed(db):
    biz = await crud.create_business(db, BusinessCreate(name="繡花廠", person="老闆"))
    staff = await crud.create_staff(db, StaffCreate(business_id=biz.id, name="阿明", joining_date=date(2023, 1, 1)))
    return biz, staff


def _config_payload(business_id, effective_date):
    return ProductionConfigCreate(
        business_id=business_id, effective_date=effective_date,
        stitch_rate=Decimal("1"), on_target_pct=Decimal("1"), after_target_pct=Decimal("2"),
        pcs_per_round=Decimal("12"), target_amount=Decimal("1000"), off_amount=Decimal("300"),
    )


@pytest.mark.asyncio
async def test_effective_config_empty_dict_then_read(async_engine_and_session):
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz, _ = await _seed(db)
        assert await config_router.get_effective_production_config(business_id=biz.id, as_of=date(2024, 3, 1), db=db) == {}
        created = await config_router.create_production_config(_config_payload(biz.id, date(2024, 1, 1)), db=db)
        assert created.allowance == Decimal("1500")
        got = await config_router.get_effective_production_config(business_id=biz.id, as_of=date(2024, 3, 1), db=db)
        assert got.id == created.id

        with pytest.raises(HTTPException) as exc:
            await config_router.create_production_config(_config_payload(biz.id, date(2024, 1, 1)), db=db)
        assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_staff_record_status_codes(async_engine_and_session):
    """未建設定 400、員工不存在 404、重複 409"""
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz, staff = await _seed(db)
        payload = StaffRecordCreate(business_id=biz.id, staff_id=staff.id, date=date(2024, 3, 15), attendance="Off")

        with pytest.raises(HTTPException) as exc:
            await record_router.create_staff_record(payload, db=db)
        assert exc.value.status_code == 400

        await config_router.create_production_config(_config_payload(biz.id, date(2024, 1, 1)), db=db)
        created = await record_router.create_staff_record(payload, db=db)
        assert created.attendance == "Off"
        assert created.final_amount == Decimal("300")
        assert created.totals is None

        with pytest.raises(HTTPException) as exc:
            await record_router.create_staff_record(payload, db=db)
        assert exc.value.status_code == 409

        missing = StaffRecordCreate(business_id=biz.id, staff_id=9999, date=date(2024, 3, 15), attendance="Day")
        with pytest.raises(HTTPException) as exc:
            await record_router.create_staff_record(missing, db=db)
        assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_export_sets_download_headers(async_engine_and_session):
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz, staff = await _seed(db)
        await config_router.create_production_config(_config_payload(biz.id, date(2024, 1, 1)), db=db)
        await record_router.create_staff_record(
            StaffRecordCreate(business_id=biz.id, staff_id=staff.id, date=date(2024, 3, 15), attendance="Off"), db=db,
        )
        resp = await record_router.export_staff_records(business_id=biz.id, month="2024-03", staff_id=None, db=db)
        assert resp.media_type.endswith("spreadsheetml.sheet")
        assert 'filename="staff_records_2024_03.xlsx"' in resp.headers["content-disposition"]

        with pytest.raises(HTTPException) as exc:
            await record_router.export_staff_records(business_id=biz.id, month="2024-13", staff_id=None, db=db)
        assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_staff_record_constraint_conflict_is_409(async_engine_and_session, monkeypatch):
    """查重未攔到、由唯一鍵擋下的重複日報仍回 409"""
    _, async_session = async_engine_and_session
    async with async_session() as db:
        biz, staff = await _seed(db)
        await config_router.create_production_config(_config_payload(biz.id, date(2024, 1, 1)), db=db)
        payload = StaffRecordCreate(business_id=biz.id, staff_id=staff.id, date=date(2024, 3, 15), attendance="Off")
        await record_router.create_staff_record(payload, db=db)
        await db.commit()

        async def _not_found_yet(*args, **kwargs):
            return None

        monkeypatch.setattr(
            "embroideryos.accounting.staff_record_service.get_staff_record_by_staff_date", _not_found_yet
        )
        with pytest.raises(HTTPException) as exc:
            await record_router.create_staff_record(payload, db=db)
        assert exc.value.status_code == 409
        assert exc.value.detail == "阿明 於 2024-03-15 已有日報，請改用編輯"


@pytest.mark.asyncio
async def test_unhandled_error_hides_internal_detail():
    """未預期錯誤回 500 與固定訊息，不外洩例外內容"""
    request = Request({"type": "http", "method": "GET", "path": "/api/orders", "headers": [], "query_string": b""})
    resp = await unhandled_exception_handler(request, RuntimeError("SELECT * FROM orders WHERE secret_column = 1"))
    assert resp.status_code == 500
    body = resp.body.decode("utf-8")
    assert "secret_column" not in body
    assert "伺服器內部錯誤" in body
