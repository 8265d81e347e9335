"""日報匯出 Excel 與下載檔名 header 測試"""
from datetime import date
from decimal import Decimal
from io import BytesIO
from types import SimpleNamespace

from openpyxl import load_workbook

from embroideryos.accounting.payroll_export import EXCEL_HEADERS, build_staff_records_excel, record_to_row
from embroideryos.utils.http_headers import build_content_disposition


def _record(d, attendance, final, totals=None, fix=None):
    return SimpleNamespace(
        date=d, attendance=attendance, totals=totals,
        base_amount=final, bonus_qty=Decimal("0"), bonus_rate=Decimal("200"), bonus_amount=Decimal("0"),
        fix_amount=fix, final_amount=final,
    )


def test_excel_rows_and_totals():
    rows = [
        record_to_row(_record(date(2024, 3, 1), "Day", Decimal("2400"), {"piece_count": "20", "round_count": "1", "total_stitch": "6000", "on_target_amount": "1200", "after_target_amount": "2400"}), "阿明"),
        record_to_row(_record(date(2024, 3, 2), "Off", Decimal("300")), "阿明"),
    ]
    content = build_staff_records_excel(rows, sheet_name="員工日報_2024-03")
    ws = load_workbook(BytesIO(content)).active
    assert ws.title == "員工日報_2024-03"
    assert [c.value for c in ws[1]] == EXCEL_HEADERS
    assert ws.cell(row=2, column=1).value == "阿明"
    assert ws.cell(row=2, column=2).value == "2024-03-01"
    assert ws.cell(row=3, column=4).value == 0
    assert ws.cell(row=3, column=13).value is None
    assert ws.cell(row=4, column=1).value == "合計"
    assert ws.cell(row=4, column=14).value == 2700
    assert ws.cell(row=4, column=6).value == 6000


def test_content_disposition_ascii_and_utf8():
    header = build_content_disposition("staff_records_2024_03.xlsx", "員工日報_2024_03.xlsx")
    assert header.startswith('attachment; filename="staff_records_2024_03.xlsx"; ')
    assert "filename*=UTF-8''%E5%93%A1%E5%B7%A5" in header
    assert build_content_disposition('a"b.xlsx', "x").startswith('attachment; filename="a_b.xlsx"')
