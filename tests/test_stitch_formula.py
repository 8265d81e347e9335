"""
設計針數級距 單元測試。
級距上限為「含」；輸入 <= 0 一律 0；無級距涵蓋時原值回傳。
"""
from datetime import date
from decimal import Decimal
import pytest
from pydantic import ValidationError

from embroideryos.rules.stitch_formula import (
    default_rules, evaluate, normalize_rule, rules_to_json, sort_rules,
)
from embroideryos.schemas import ProductionConfigCreate, StitchFormulaRule


def test_default_rules_loaded_from_yaml_sorted():
    """預設級距：4237 / 10000 / 50000 / 無上限，無上限置末"""
    rules = default_rules()
    assert [r["upper_bound"] for r in rules] == [Decimal("4237"), Decimal("10000"), Decimal("50000"), None]
    assert rules[0]["mode"] == "fixed"


def test_fixed_bracket_inclusive_upper_bound():
    rules = default_rules()
    assert evaluate(rules, 1) == Decimal("5000")
    assert evaluate(rules, 4237) == Decimal("5000")


def test_percent_brackets():
    """4238 起加 18%，10001 起加 10%，50001 起加 5%"""
    rules = default_rules()
    assert evaluate(rules, 4238) == Decimal("5000.84")
    assert evaluate(rules, 10000) == Decimal("11800")
    assert evaluate(rules, 10001) == Decimal("11001.1")
    assert evaluate(rules, 50000) == Decimal("55000")
    assert evaluate(rules, 50001) == Decimal("52501.05")


def test_non_positive_input_returns_zero():
    rules = default_rules()
    assert evaluate(rules, 0) == Decimal("0")
    assert evaluate(rules, -5) == Decimal("0")
    assert evaluate(rules, None) == Decimal("0")


def test_no_bracket_covers_input_returns_input():
    rules = [{"upper_bound": 100, "mode": "fixed", "value": 5}]
    assert evaluate(rules, 200) == Decimal("200")
    assert evaluate([], 300) == Decimal("300")


def test_identity_mode():
    rules = [{"upper_bound": None, "mode": "identity", "value": 0}]
    assert evaluate(rules, 1234) == Decimal("1234")


def test_sort_rules_unbounded_last_regardless_of_input_order():
    rules = [
        {"upper_bound": None, "mode": "percent", "value": 5},
        {"upper_bound": 500, "mode": "fixed", "value": 1000},
        {"upper_bound": 100, "mode": "fixed", "value": 800},
    ]
    assert [r["upper_bound"] for r in sort_rules(rules)] == [Decimal("100"), Decimal("500"), None]
    # 排序後取第一個涵蓋者
    assert evaluate(rules, 50) == Decimal("800")
    assert evaluate(rules, 300) == Decimal("1000")


def test_normalize_rule_rejects_unknown_mode():
    with pytest.raises(ValueError):
        normalize_rule({"upper_bound": 1, "mode": "double", "value": 2})


def test_rules_to_json_stores_strings():
    out = rules_to_json([{"upper_bound": 4237, "mode": "Fixed", "value": 5000}, {"upper_bound": None, "mode": "percent", "value": 5}])
    assert out == [
        {"upper_bound": "4237", "mode": "fixed", "value": "5000"},
        {"upper_bound": None, "mode": "percent", "value": "5"},
    ]


def test_rule_values_that_would_go_negative_are_rejected():
    """percent 低於 -100 或 fixed 為負會算出負針數，建立時即擋下"""
    with pytest.raises(ValidationError):
        StitchFormulaRule(upper_bound=None, mode="percent", value=Decimal("-150"))
    with pytest.raises(ValidationError):
        StitchFormulaRule(upper_bound=1000, mode="fixed", value=Decimal("-1"))
    assert StitchFormulaRule(mode="percent", value=Decimal("-100")).value == Decimal("-100")
    with pytest.raises(ValidationError):
        ProductionConfigCreate(
            business_id=1, effective_date=date(2024, 1, 1),
            stitch_formula_rules=[{"upper_bound": None, "mode": "percent", "value": "-150"}],
        )


def test_evaluate_never_returns_negative_for_unvalidated_rules():
    """直接傳入 dict 的級距不經驗證，結果仍以 0 為下限"""
    assert evaluate([{"upper_bound": None, "mode": "percent", "value": -150}], 1000) == Decimal("0")
    assert evaluate([{"upper_bound": None, "mode": "fixed", "value": -20}], 1000) == Decimal("0")
    assert evaluate([{"upper_bound": None, "mode": "percent", "value": -100}], 1000) == Decimal("0")
    assert evaluate([{"upper_bound": None, "mode": "percent", "value": -50}], 1000) == Decimal("500")
