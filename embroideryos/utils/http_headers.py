"""
下載檔名：header 僅支援 latin-1，中文檔名改走 RFC 5987 的 filename*=UTF-8''...，
同時保留 ASCII 的 filename 給不支援的瀏覽器。
"""
from urllib.parse import quote


def build_content_disposition(ascii_filename: str, unicode_filename: str) -> str:
    """例：build_content_disposition("staff_records_2024_03.xlsx", "員工日報_2024_03.xlsx")"""
    safe_ascii = ascii_filename.replace("\\", "_").replace('"', "_")
    encoded = quote(unicode_filename, safe="")
    return f"attachment; filename=\"{safe_ascii}\"; filename*=UTF-8''{encoded}"
