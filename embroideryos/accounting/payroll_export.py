"""員工日報月結匯出 Excel：每筆日報一列，最後一列為合計。"""
import io
from decimal import Decimal
from typing import Any, Dict, List

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, Border, Side


EXCEL_HEADERS = [
    "員工", "日期", "出勤", "片數", "回數", "總針數", "未達標金額", "達標金額",
    "底薪", "獎金數量", "獎金單價", "獎金", "定額", "實發",
]

# 合計列需加總之欄位（欄位序號, 資料鍵）
SUM_COLUMNS = [
    (4, "piece_count"), (5, "round_count"), (6, "total_stitch"),
    (7, "on_target_amount"), (8, "after_target_amount"),
    (9, "base_amount"), (12, "bonus_amount"), (14, "final_amount"),
]


def _num(v: Any) -> float:
    """openpyxl 不吃 Decimal 字串，統一轉成 float 並取兩位"""
    if v is None or v == "":
        return 0.0
    return round(float(Decimal(str(v))), 2)


def _write_headers(ws, row_idx: int) -> None:
    thin = Side(style="thin")
    header_font = Font(bold=True)
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for col, h in enumerate(EXCEL_HEADERS, start=1):
        cell = ws.cell(row=row_idx, column=col, value=h)
        cell.font = header_font
        cell.alignment = header_alignment
        cell.border = Border(top=thin, bottom=thin, left=thin, right=thin)


def record_to_row(record: Any, staff_name: str) -> Dict[str, Any]:
    """StaffRecord -> 匯出用 dict；無生產時合計欄位為 0"""
    totals = record.totals or {}
    return {
        "staff": staff_name,
        "date": record.date,
        "attendance": record.attendance,
        "piece_count": totals.get("piece_count"),
        "round_count": totals.get("round_count"),
        "total_stitch": totals.get("total_stitch"),
        "on_target_amount": totals.get("on_target_amount"),
        "after_target_amount": totals.get("after_target_amount"),
        "base_amount": record.base_amount,
        "bonus_qty": record.bonus_qty,
        "bonus_rate": record.bonus_rate,
        "bonus_amount": record.bonus_amount,
        "fix_amount": record.fix_amount,
        "final_amount": record.final_amount,
    }


def _write_data_row(ws, row_idx: int, row: Dict[str, Any]) -> None:
    ws.cell(row=row_idx, column=1, value=row.get("staff") or "")
    d = row.get("date")
    ws.cell(row=row_idx, column=2, value=d.isoformat() if d else "")
    ws.cell(row=row_idx, column=3, value=row.get("attendance") or "")
    ws.cell(row=row_idx, column=4, value=_num(row.get("piece_count")))
    ws.cell(row=row_idx, column=5, value=_num(row.get("round_count")))
    ws.cell(row=row_idx, column=6, value=_num(row.get("total_stitch")))
    ws.cell(row=row_idx, column=7, value=_num(row.get("on_target_amount")))
    ws.cell(row=row_idx, column=8, value=_num(row.get("after_target_amount")))
    ws.cell(row=row_idx, column=9, value=_num(row.get("base_amount")))
    ws.cell(row=row_idx, column=10, value=_num(row.get("bonus_qty")))
    ws.cell(row=row_idx, column=11, value=_num(row.get("bonus_rate")))
    ws.cell(row=row_idx, column=12, value=_num(row.get("bonus_amount")))
    fix = row.get("fix_amount")
    ws.cell(row=row_idx, column=13, value=None if fix is None else _num(fix))
    ws.cell(row=row_idx, column=14, value=_num(row.get("final_amount")))


def _write_totals_row(ws, row_idx: int, rows: List[Dict[str, Any]]) -> None:
    label = ws.cell(row=row_idx, column=1, value="合計")
    label.font = Font(bold=True)
    for col, key in SUM_COLUMNS:
        total = sum((Decimal(str(r.get(key) or 0)) for r in rows), Decimal("0"))
        cell = ws.cell(row=row_idx, column=col, value=round(float(total), 2))
        cell.font = Font(bold=True)


def _apply_default_width(ws) -> None:
    for col in range(1, len(EXCEL_HEADERS) + 1):
        ws.column_dimensions[ws.cell(row=1, column=col).column_letter].width = 12


def build_staff_records_excel(rows: List[Dict[str, Any]], sheet_name: str = "員工日報") -> bytes:
    """依 rows（record_to_row 之結構）產生 Excel 二進位內容"""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name[:31]  # Excel 表單名稱長度限制

    _write_headers(ws, 1)
    for row_idx, row in enumerate(rows, start=2):
        _write_data_row(ws, row_idx, row)
    _write_totals_row(ws, len(rows) + 2, rows)
    _apply_default_width(ws)

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf.getvalue()
