"""
設計針數級距：依 config/stitch_formula_rules.yaml（或業者自訂級距）將實際針數換算為計價用設計針數。
規則依 upper_bound 遞增排序，無上限（null）置末；取第一個 upper_bound 為 null 或 >= 輸入值者。
反推（reverse mode）不經過此表，由 order_pricing 代數反解。
"""
from pathlib import Path
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
import logging
import yaml

from embroideryos.config import settings

logger = logging.getLogger(__name__)

RULE_MODES = ("fixed", "percent", "identity")


def _rules_path() -> Path:
    if settings.stitch_formula_rules_path:
        return Path(settings.stitch_formula_rules_path)
    # 從 embroideryos/rules 往上兩層到專案根目錄，取 config
    return Path(__file__).resolve().parents[2] / "config" / "stitch_formula_rules.yaml"


def _load_rules() -> list:
    path = _rules_path()
    if not path.exists():
        return _default_rules()
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return data.get("rules") or _default_rules()


def _default_rules() -> list:
    """內建預設（與 YAML 同），無檔案時使用"""
    return [
        {"upper_bound": 4237, "mode": "fixed", "value": 5000},
        {"upper_bound": 10000, "mode": "percent", "value": 18},
        {"upper_bound": 50000, "mode": "percent", "value": 10},
        {"upper_bound": None, "mode": "percent", "value": 5},
    ]


def _dec(v: Any) -> Decimal:
    if v is None or v == "":
        return Decimal("0")
    if isinstance(v, Decimal):
        return v
    return Decimal(str(v))


def normalize_rule(rule: Any) -> Dict[str, Any]:
    """接受 dict 或具屬性之物件（如 StitchFormulaRule），統一為 {upper_bound, mode, value}"""
    if isinstance(rule, dict):
        upper, mode, value = rule.get("upper_bound"), rule.get("mode"), rule.get("value")
    else:
        upper, mode, value = getattr(rule, "upper_bound", None), getattr(rule, "mode", None), getattr(rule, "value", None)
    mode = (mode or "identity").strip().lower()
    if mode not in RULE_MODES:
        raise ValueError(f"不支援的級距模式：{mode}")
    return {
        "upper_bound": None if upper is None or upper == "" else _dec(upper),
        "mode": mode,
        "value": _dec(value),
    }


def sort_rules(rules: Optional[Iterable[Any]]) -> List[Dict[str, Any]]:
    """依上限遞增排序，無上限置末；同上限保持原順序"""
    normalized = [normalize_rule(r) for r in (rules or [])]
    return sorted(
        normalized,
        key=lambda r: (r["upper_bound"] is None, r["upper_bound"] if r["upper_bound"] is not None else Decimal("0")),
    )


def default_rules() -> List[Dict[str, Any]]:
    """目前載入之預設級距（已排序）"""
    return sort_rules(_load_rules())


def rules_to_json(rules: Optional[Iterable[Any]]) -> List[Dict[str, Any]]:
    """排序後轉為可存入 JSON 欄位之格式（數值以字串保存避免浮點誤差）"""
    out = []
    for r in sort_rules(rules):
        out.append({
            "upper_bound": None if r["upper_bound"] is None else str(r["upper_bound"]),
            "mode": r["mode"],
            "value": str(r["value"]),
        })
    return out


def evaluate(rules: Optional[Iterable[Any]], value: Any) -> Decimal:
    """
    輸入 <= 0 直接回傳 0，不看規則。
    fixed 回傳 value；percent 回傳 輸入 + 輸入 * value / 100；identity 回傳輸入。
    結果不低於 0。
    全部級距上限都小於輸入時，原值回傳。
    """
    x = _dec(value)
    if x <= 0:
        return Decimal("0")
    for rule in sort_rules(rules):
        upper = rule["upper_bound"]
        if upper is not None and upper < x:
            continue
        if rule["mode"] == "fixed":
            return max(rule["value"], Decimal("0"))
        if rule["mode"] == "percent":
            return max(x + x * rule["value"] / Decimal("100"), Decimal("0"))
        return x
    logger.debug("no stitch formula bracket covers %s; using input as-is", x)
    return x
