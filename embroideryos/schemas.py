"""API 請求/回應結構 - Pydantic（客戶 / 供應商 / 員工 / 訂單 / 發票 / 收付款 / 生產設定與日報）"""
from datetime import date, datetime
from decimal import Decimal

# 別名：欄位名 date 與型別 date 會觸發 Pydantic 的 field name clashing，改用 DateType 註解
DateType = date
from typing import Optional, List, Dict, Any, Tuple, Literal
import re
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from embroideryos.config import settings
from embroideryos.models import (
    ATTENDANCE_STATES,
    STAFF_PAYMENT_TYPES,
    STAFF_CATEGORIES,
    ORDER_UNITS,
    CUSTOMER_PAYMENT_METHODS,
    SUPPLIER_PAYMENT_METHODS,
    EXPENSE_TYPES,
    CRP_CATEGORIES,
)


MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def validate_month(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not MONTH_PATTERN.match(v):
        raise ValueError("月份格式須為 YYYY-MM")
    return v


def validate_choice(label: str, v: Optional[str], choices: Tuple[str, ...]) -> Optional[str]:
    if v is None:
        return v
    if v not in choices:
        raise ValueError(f"{label}須為 {' / '.join(choices)}")
    return v


def normalize_staff_category(v: Optional[str]) -> Optional[str]:
    """舊資料之 Packing 一律視為 Cropping"""
    if v is None:
        return v
    v = v.strip()
    if v.lower() == "packing":
        return "Cropping"
    return validate_choice("員工類別", v, STAFF_CATEGORIES)


def normalize_crp_category(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if v.lower() == "packing":
        return "Cropping"
    return validate_choice("CRP 類別", v, CRP_CATEGORIES)


# ---------- 公司 ----------
class BusinessCreate(BaseModel):
    name: str = Field(..., min_length=1, description="公司名稱")
    person: str = Field(..., min_length=1, description="負責人")


class BusinessRead(BusinessCreate):
    id: int
    is_active: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ---------- 設計針數級距 / 生產設定 ----------
class StitchFormulaRule(BaseModel):
    upper_bound: Optional[Decimal] = Field(None, ge=0, description="含上限；空為無上限")
    mode: Literal["fixed", "percent", "identity"] = "identity"
    value: Decimal = Decimal("0")
    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def value_keeps_stitches_non_negative(self):
        if self.mode == "fixed" and self.value < 0:
            raise ValueError("固定值級距不可為負數")
        if self.mode == "percent" and self.value < -100:
            raise ValueError("百分比級距不可低於 -100")
        return self


def _sorted_rules(rules) -> List[StitchFormulaRule]:
    items = [r if isinstance(r, StitchFormulaRule) else StitchFormulaRule.model_validate(r) for r in (rules or [])]
    return sorted(items, key=lambda r: (r.upper_bound is None, r.upper_bound or Decimal("0")))


class PayRuleConfig(BaseModel):
    """
    計算用生產設定（不可變）。所有計算函式皆明確傳入此物件，不從全域查詢。
    數值欄位預設 0、allowance 預設 1500、bonus_rate 預設空、級距預設空。
    """
    id: Optional[int] = None
    effective_date: Optional[DateType] = None
    stitch_rate: Decimal = Decimal("0")
    applique_rate: Decimal = Decimal("0")
    on_target_pct: Decimal = Decimal("0")
    after_target_pct: Decimal = Decimal("0")
    pcs_per_round: Decimal = Decimal("0")
    target_amount: Decimal = Decimal("0")
    off_amount: Decimal = Decimal("0")
    bonus_rate: Optional[Decimal] = None
    allowance: Decimal = Decimal("1500")
    stitch_formula_enabled: bool = False
    stitch_formula_rules: Tuple[StitchFormulaRule, ...] = ()
    model_config = ConfigDict(frozen=True)

    @field_validator("stitch_formula_rules", mode="before")
    @classmethod
    def sort_rules(cls, v):
        return tuple(_sorted_rules(v))

    @classmethod
    def from_model(cls, row: Any) -> "PayRuleConfig":
        """由 ProductionConfig 資料列建立；空欄位套預設值"""
        data: Dict[str, Any] = {
            "id": getattr(row, "id", None),
            "effective_date": getattr(row, "effective_date", None),
            "stitch_formula_enabled": bool(getattr(row, "stitch_formula_enabled", False)),
            "stitch_formula_rules": getattr(row, "stitch_formula_rules", None) or [],
            "bonus_rate": getattr(row, "bonus_rate", None),
        }
        for name in ("stitch_rate", "applique_rate", "on_target_pct", "after_target_pct",
                     "pcs_per_round", "target_amount", "off_amount", "allowance"):
            value = getattr(row, name, None)
            if value is not None:
                data[name] = value
        return cls(**data)


class ProductionConfigBase(BaseModel):
    stitch_rate: Optional[Decimal] = Field(None, ge=0)
    applique_rate: Optional[Decimal] = Field(None, ge=0)
    on_target_pct: Optional[Decimal] = Field(None, ge=0, description="直接相乘，不除 100")
    after_target_pct: Optional[Decimal] = Field(None, ge=0, description="直接相乘，不除 100")
    pcs_per_round: Optional[Decimal] = Field(None, ge=0)
    target_amount: Optional[Decimal] = Field(None, ge=0)
    off_amount: Optional[Decimal] = Field(None, ge=0)
    bonus_rate: Optional[Decimal] = Field(None, ge=0)
    allowance: Optional[Decimal] = Field(Decimal("1500"), ge=0)
    stitch_formula_enabled: bool = False
    stitch_formula_rules: List[StitchFormulaRule] = Field(default_factory=list)

    @field_validator("stitch_formula_rules", mode="after")
    @classmethod
    def sort_rules(cls, v):
        return _sorted_rules(v)


class ProductionConfigCreate(ProductionConfigBase):
    business_id: int
    effective_date: DateType = Field(..., description="生效日")


class ProductionConfigUpdate(BaseModel):
    stitch_rate: Optional[Decimal] = Field(None, ge=0)
    applique_rate: Optional[Decimal] = Field(None, ge=0)
    on_target_pct: Optional[Decimal] = Field(None, ge=0)
    after_target_pct: Optional[Decimal] = Field(None, ge=0)
    pcs_per_round: Optional[Decimal] = Field(None, ge=0)
    target_amount: Optional[Decimal] = Field(None, ge=0)
    off_amount: Optional[Decimal] = Field(None, ge=0)
    bonus_rate: Optional[Decimal] = Field(None, ge=0)
    allowance: Optional[Decimal] = Field(None, ge=0)
    stitch_formula_enabled: Optional[bool] = None
    stitch_formula_rules: Optional[List[StitchFormulaRule]] = None
    effective_date: Optional[DateType] = None

    @field_validator("stitch_formula_rules", mode="after")
    @classmethod
    def sort_rules(cls, v):
        return None if v is None else _sorted_rules(v)


class ProductionConfigRead(ProductionConfigBase):
    id: int
    business_id: int
    effective_date: DateType
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)

    @field_validator("stitch_formula_rules", mode="before")
    @classmethod
    def none_rules(cls, v):
        return v or []


# ---------- 生產明細 / 日報 ----------
class ProductionRowInput(BaseModel):
    """輸入欄位；呼叫端送來的衍生欄位（total_stitch 等）一律忽略"""
    design_stitch: Decimal = Field(Decimal("0"), ge=0)
    applique: Decimal = Field(Decimal("0"), ge=0)
    piece_count: Optional[Decimal] = Field(None, ge=0, description="空值時以 round_count × pcs_per_round 推算")
    round_count: Decimal = Field(Decimal("0"), ge=0)
    model_config = ConfigDict(extra="ignore")


class ProductionRowResult(BaseModel):
    design_stitch: Decimal
    applique: Decimal
    piece_count: Decimal
    round_count: Decimal
    total_stitch: Decimal
    on_target_amount: Decimal
    after_target_amount: Decimal


class ProductionTotals(BaseModel):
    piece_count: Decimal = Decimal("0")
    round_count: Decimal = Decimal("0")
    total_stitch: Decimal = Decimal("0")
    on_target_amount: Decimal = Decimal("0")
    after_target_amount: Decimal = Decimal("0")


class StaffRecordSnapshot(BaseModel):
    """單日計薪結果：完整產出或整筆失敗，不會只算一半"""
    staff_id: int
    date: DateType
    month: str
    attendance: str
    production: List[ProductionRowResult] = Field(default_factory=list)
    totals: Optional[ProductionTotals] = None
    base_amount: Decimal
    bonus_qty: Decimal
    bonus_rate: Decimal
    bonus_amount: Decimal
    fix_amount: Optional[Decimal] = None
    final_amount: Decimal
    config_snapshot: Dict[str, Any]


class StaffRecordBase(BaseModel):
    attendance: str = Field(..., description="Day/Night/Half/Absent/Off/Close/Sunday")
    production: List[ProductionRowInput] = Field(default_factory=list)
    bonus_qty: Decimal = Field(Decimal("0"), ge=0)
    bonus_rate: Optional[Decimal] = Field(None, ge=0, description="空值時取設定 bonus_rate，再無則 200")
    fix_amount: Optional[Decimal] = Field(None, description="手動定額；有值（含 0）即為實發")

    @field_validator("attendance")
    @classmethod
    def check_attendance(cls, v: str) -> str:
        return validate_choice("出勤", v, ATTENDANCE_STATES)


class StaffRecordCreate(StaffRecordBase):
    business_id: int
    staff_id: int
    date: DateType


class StaffRecordUpdate(BaseModel):
    """未送出之欄位沿用原紀錄；fix_amount 明確送 null 代表清除定額"""
    staff_id: Optional[int] = Field(None, description="不可變更，僅供比對")
    date: Optional[DateType] = Field(None, description="不可變更，僅供比對")
    attendance: Optional[str] = None
    production: Optional[List[ProductionRowInput]] = None
    bonus_qty: Optional[Decimal] = Field(None, ge=0)
    bonus_rate: Optional[Decimal] = Field(None, ge=0)
    fix_amount: Optional[Decimal] = None

    @field_validator("attendance")
    @classmethod
    def check_attendance(cls, v: Optional[str]) -> Optional[str]:
        return validate_choice("出勤", v, ATTENDANCE_STATES)


class StaffRecordRead(BaseModel):
    id: int
    business_id: int
    staff_id: int
    date: DateType
    month: str
    attendance: str
    production: List[ProductionRowResult] = Field(default_factory=list)
    totals: Optional[ProductionTotals] = None
    base_amount: Decimal
    bonus_qty: Decimal
    bonus_rate: Decimal
    bonus_amount: Decimal
    fix_amount: Optional[Decimal] = None
    final_amount: Decimal
    config_snapshot: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ---------- 員工 ----------
class StaffBase(BaseModel):
    name: str = Field(..., min_length=1, description="姓名")
    joining_date: DateType = Field(..., description="到職日")
    salary: Optional[Decimal] = Field(None, ge=0, description="固定月薪；空或 0 為計件")
    opening_balance: Decimal = Decimal("0")
    category: str = "Embroidery"

    @field_validator("category")
    @classmethod
    def check_category(cls, v: str) -> str:
        return normalize_staff_category(v)


class StaffCreate(StaffBase):
    business_id: int


class StaffUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    joining_date: Optional[DateType] = None
    salary: Optional[Decimal] = Field(None, ge=0)
    opening_balance: Optional[Decimal] = None
    category: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("category")
    @classmethod
    def check_category(cls, v: Optional[str]) -> Optional[str]:
        return normalize_staff_category(v)


class StaffRead(StaffBase):
    id: int
    business_id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)

    @field_validator("category", mode="before")
    @classmethod
    def legacy_category(cls, v):
        return normalize_staff_category(v) if v else "Embroidery"


class StaffPaymentCreate(BaseModel):
    business_id: int
    staff_id: int
    date: DateType
    month: str = Field(..., description="YYYY-MM")
    type: str = Field(..., description="advance / payment / adjustment")
    amount: Decimal = Field(..., gt=0)
    remarks: Optional[str] = None

    @field_validator("month")
    @classmethod
    def check_month(cls, v: str) -> str:
        return validate_month(v)

    @field_validator("type")
    @classmethod
    def check_type(cls, v: str) -> str:
        return validate_choice("收付類型", v, STAFF_PAYMENT_TYPES)


class StaffPaymentRead(StaffPaymentCreate):
    id: int
    staff_name: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class PaymentTypeStat(BaseModel):
    count: int = 0
    amount: Decimal = Decimal("0")


class StaffPaymentStats(BaseModel):
    total_count: int = 0
    total_amount: Decimal = Decimal("0")
    by_type: Dict[str, PaymentTypeStat] = Field(default_factory=dict)


# ---------- 客戶 ----------
class CustomerBase(BaseModel):
    name: str = Field(..., min_length=1)
    person: str = Field(..., min_length=1, description="聯絡人")
    rate: Decimal = Field(Decimal("0"), ge=0, description="基本單價（每千針）")
    opening_balance: Decimal = Decimal("0")


class CustomerCreate(CustomerBase):
    business_id: int


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    person: Optional[str] = Field(None, min_length=1)
    rate: Optional[Decimal] = Field(None, ge=0)
    opening_balance: Optional[Decimal] = None
    is_active: Optional[bool] = None


class CustomerRead(CustomerBase):
    id: int
    business_id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class CustomerPaymentBase(BaseModel):
    date: DateType
    month: str = Field(..., description="YYYY-MM")
    method: str = Field(..., description="cash / cheque / slip / online / adjustment")
    amount: Decimal = Field(..., gt=0)
    reference_no: str = ""
    bank_name: str = ""
    party_name: str = ""
    cheque_date: Optional[DateType] = Field(None, description="支票日 / 匯款單日")
    clear_date: Optional[DateType] = None
    remarks: str = ""

    @field_validator("month")
    @classmethod
    def check_month(cls, v: str) -> str:
        return validate_month(v)

    @field_validator("method")
    @classmethod
    def check_method(cls, v: str) -> str:
        return validate_choice("收款方式", (v or "").strip().lower(), CUSTOMER_PAYMENT_METHODS)

    @field_validator("reference_no", "bank_name", "party_name", "remarks", mode="before")
    @classmethod
    def strip_text(cls, v):
        return (v or "").strip()

    @model_validator(mode="after")
    def validate_by_method(self) -> "CustomerPaymentBase":
        validate_customer_payment_method(
            self.method, self.reference_no, self.bank_name, self.party_name, self.cheque_date, self.clear_date
        )
        return self


def validate_customer_payment_method(method, reference_no, bank_name, party_name, cheque_date, clear_date) -> None:
    """依收款方式檢查必填欄位；更新時以合併後之值再檢查一次"""
    if method == "online":
        if not reference_no or not bank_name:
            raise ValueError("線上轉帳須填寫參考號碼與銀行名稱")
    elif method == "cheque":
        if not reference_no or not bank_name or not cheque_date or not clear_date:
            raise ValueError("支票須填寫支票號碼、銀行、支票日與兌現日")
        if clear_date < cheque_date:
            raise ValueError("兌現日不可早於支票日")
    elif method == "slip":
        if not reference_no or not party_name or not cheque_date or not clear_date:
            raise ValueError("匯款單須填寫單號、對方名稱、匯款單日與兌現日")
        if clear_date < cheque_date:
            raise ValueError("兌現日不可早於匯款單日")


class CustomerPaymentCreate(CustomerPaymentBase):
    business_id: int
    customer_id: int


class CustomerPaymentUpdate(BaseModel):
    date: Optional[DateType] = None
    month: Optional[str] = None
    method: Optional[str] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    reference_no: Optional[str] = None
    bank_name: Optional[str] = None
    party_name: Optional[str] = None
    cheque_date: Optional[DateType] = None
    clear_date: Optional[DateType] = None
    remarks: Optional[str] = None

    @field_validator("month")
    @classmethod
    def check_month(cls, v: Optional[str]) -> Optional[str]:
        return validate_month(v)

    @field_validator("method")
    @classmethod
    def check_method(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else validate_choice("收款方式", v.strip().lower(), CUSTOMER_PAYMENT_METHODS)


class CustomerPaymentRead(CustomerPaymentBase):
    id: int
    business_id: int
    customer_id: int
    customer_name: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def validate_by_method(self) -> "CustomerPaymentRead":
        # 讀取時不重驗
        return self


class CustomerPaymentStats(BaseModel):
    total_count: int = 0
    total_amount: Decimal = Decimal("0")
    by_method: Dict[str, PaymentTypeStat] = Field(default_factory=dict)


# ---------- 訂單 ----------
class OrderPricingInput(BaseModel):
    customer_base_rate: Decimal = Field(Decimal("0"), ge=0, description="客戶無單價時使用")
    unit: str = "Dzn"
    quantity: Decimal = Field(Decimal("0"), ge=0)
    actual_stitches: Decimal = Field(Decimal("0"), ge=0)
    apq: Optional[Decimal] = Field(None, description="0~30，超出範圍會被夾住")
    apq_chr: Optional[Decimal] = None
    reverse_mode: bool = False
    two_side: bool = False
    rate_input: Optional[Decimal] = None
    rate: Optional[Decimal] = Field(None, description="舊欄位；rate_input 未送時沿用")

    @field_validator("unit")
    @classmethod
    def check_unit(cls, v: str) -> str:
        return validate_choice("單位", v, ORDER_UNITS)


class OrderPricingResult(BaseModel):
    customer_base_rate: Decimal
    apq: Optional[int] = None
    apq_chr: Optional[Decimal] = None
    rate_input: Decimal
    rate: Decimal
    design_stitches: Decimal
    qt_pcs: Decimal
    calculated_rate: Decimal
    stitch_rate: Decimal
    total_amount: Decimal


class OrderPreviewRequest(OrderPricingInput):
    business_id: int
    customer_id: Optional[int] = None
    date: Optional[DateType] = Field(None, description="決定適用之設計針數級距；預設今天")


class OrderCreate(OrderPricingInput):
    business_id: int
    customer_id: int
    description: str = ""
    date: DateType
    machine_no: str = Field(..., min_length=1)
    lot_no: str = ""


class OrderUpdate(BaseModel):
    customer_id: Optional[int] = None
    description: Optional[str] = None
    date: Optional[DateType] = None
    machine_no: Optional[str] = Field(None, min_length=1)
    lot_no: Optional[str] = None
    customer_base_rate: Optional[Decimal] = Field(None, ge=0)
    unit: Optional[str] = None
    quantity: Optional[Decimal] = Field(None, ge=0)
    actual_stitches: Optional[Decimal] = Field(None, ge=0)
    apq: Optional[Decimal] = None
    apq_chr: Optional[Decimal] = None
    reverse_mode: Optional[bool] = None
    two_side: Optional[bool] = None
    rate_input: Optional[Decimal] = None
    is_active: Optional[bool] = None

    @field_validator("unit")
    @classmethod
    def check_unit(cls, v: Optional[str]) -> Optional[str]:
        return validate_choice("單位", v, ORDER_UNITS)


class OrderRead(BaseModel):
    id: int
    business_id: int
    customer_id: int
    customer_name: str
    customer_base_rate: Decimal
    description: str
    date: DateType
    machine_no: str
    lot_no: str
    unit: str
    quantity: Decimal
    qt_pcs: Decimal
    actual_stitches: Decimal
    design_stitches: Decimal
    apq: Optional[int] = None
    apq_chr: Optional[Decimal] = None
    reverse_mode: bool
    two_side: bool
    rate_input: Decimal
    rate: Decimal
    calculated_rate: Decimal
    stitch_rate: Decimal
    total_amount: Decimal
    invoice_id: Optional[int] = None
    invoiced_at: Optional[DateType] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class OrderStats(BaseModel):
    count: int = 0
    total_amount: Decimal = Decimal("0")


# ---------- 發票 ----------
class InvoiceCreate(BaseModel):
    business_id: int
    order_ids: List[int] = Field(..., min_length=1)
    invoice_date: Optional[DateType] = None
    note: str = ""

    @field_validator("order_ids")
    @classmethod
    def check_order_ids(cls, v: List[int]) -> List[int]:
        unique = list(dict.fromkeys(v))
        if len(unique) != len(v):
            raise ValueError("訂單不可重複")
        if len(unique) > settings.max_invoice_orders:
            raise ValueError(f"一張發票最多 {settings.max_invoice_orders} 筆訂單")
        return unique


class InvoiceRead(BaseModel):
    id: int
    business_id: int
    customer_id: int
    customer_name: str
    customer_person: str
    order_ids: List[int]
    order_count: int
    total_amount: Decimal
    invoice_date: DateType
    note: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class InvoiceBalanceContext(BaseModel):
    opening_balance: Decimal
    paid_before_invoice: Decimal
    outstanding_balance: Decimal
    new_balance: Decimal


class InvoiceDetail(BaseModel):
    invoice: InvoiceRead
    orders: List[OrderRead]
    balance: InvoiceBalanceContext


class InvoiceOrderGroup(BaseModel):
    customer_id: int
    customer_name: str
    order_count: int
    total_amount: Decimal
    orders: List[OrderRead]


# ---------- 供應商 / 支出 ----------
class SupplierBase(BaseModel):
    name: str = Field(..., min_length=1)
    opening_balance: Decimal = Decimal("0")


class SupplierCreate(SupplierBase):
    business_id: int


class SupplierUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    opening_balance: Optional[Decimal] = None
    is_active: Optional[bool] = None


class SupplierRead(SupplierBase):
    id: int
    business_id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class SupplierPaymentCreate(BaseModel):
    business_id: int
    supplier_id: int
    date: DateType
    method: str = Field(..., description="cash / cheque / online")
    amount: Decimal = Field(..., gt=0)
    reference_no: str = ""
    remarks: str = ""

    @field_validator("method")
    @classmethod
    def check_method(cls, v: str) -> str:
        return validate_choice("付款方式", (v or "").strip().lower(), SUPPLIER_PAYMENT_METHODS)


class SupplierPaymentRead(SupplierPaymentCreate):
    id: int
    supplier_name: str
    month: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ExpenseCreate(BaseModel):
    business_id: int
    expense_type: str = "cash"
    item_name: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    date: DateType
    month: Optional[str] = Field(None, description="YYYY-MM；未填取自 date")
    reference_no: str = ""
    remarks: str = ""
    supplier_id: Optional[int] = None

    @field_validator("expense_type")
    @classmethod
    def check_type(cls, v: str) -> str:
        return validate_choice("支出類型", (v or "").strip().lower(), EXPENSE_TYPES)

    @field_validator("month")
    @classmethod
    def check_month(cls, v: Optional[str]) -> Optional[str]:
        return validate_month(v) if v else None

    @model_validator(mode="after")
    def supplier_required(self) -> "ExpenseCreate":
        if self.expense_type == "supplier" and not self.supplier_id:
            raise ValueError("供應商支出須指定供應商")
        return self


class ExpenseRead(BaseModel):
    id: int
    business_id: int
    expense_type: str
    item_name: str
    amount: Decimal
    date: DateType
    month: str
    reference_no: str
    remarks: str
    supplier_id: Optional[int] = None
    supplier_name: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ExpenseItemCreate(BaseModel):
    business_id: int
    name: str = Field(..., min_length=1, max_length=120)
    expense_type: str = "cash"
    default_amount: Decimal = Field(Decimal("0"), ge=0)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("項目名稱不可為空")
        return v

    @field_validator("expense_type")
    @classmethod
    def check_type(cls, v: str) -> str:
        return validate_choice("支出類型", (v or "").strip().lower(), EXPENSE_TYPES)


class ExpenseItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    expense_type: Optional[str] = None
    default_amount: Optional[Decimal] = Field(None, ge=0)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("項目名稱不可為空")
        return v

    @field_validator("expense_type")
    @classmethod
    def check_type(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return validate_choice("支出類型", v.strip().lower(), EXPENSE_TYPES)


class ExpenseItemRead(BaseModel):
    id: int
    business_id: int
    name: str
    expense_type: str
    default_amount: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ---------- 餘額 / 對帳單 ----------
class BalanceRead(BaseModel):
    entity_id: int
    name: str
    opening_balance: Decimal
    balance: Decimal


class StatementRow(BaseModel):
    kind: str = Field(..., description="invoice / payment / expense / record / advance / adjustment")
    ref_id: int
    date: DateType
    description: str = ""
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")


class Statement(BaseModel):
    entity_id: int
    name: str
    date_from: Optional[DateType] = None
    date_to: Optional[DateType] = None
    opening_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal
    rows: List[StatementRow] = Field(default_factory=list)


# ---------- 儀表板 ----------
class CountAmount(BaseModel):
    count: int = 0
    amount: Decimal = Decimal("0")


class PaymentOutSummary(CountAmount):
    """付出 = 供應商付款 + 員工收付；月報才附明細"""
    supplier: Optional[CountAmount] = None
    staff: Optional[CountAmount] = None


class DashboardToday(BaseModel):
    orders: CountAmount
    invoices: CountAmount
    expenses: CountAmount
    payment_in: CountAmount
    payment_out: PaymentOutSummary


class DashboardMonth(DashboardToday):
    staff_records: CountAmount
    crp_records: CountAmount


class DashboardActive(BaseModel):
    customers: int = 0
    suppliers: int = 0
    staff: int = 0


class DashboardRecent(BaseModel):
    orders: List[OrderRead] = Field(default_factory=list)
    invoices: List[InvoiceRead] = Field(default_factory=list)
    expenses: List[ExpenseRead] = Field(default_factory=list)


class TrendBucket(BaseModel):
    key: str = Field(..., description="YYYY-MM-DD")
    day: str = Field(..., description="星期縮寫（summary）或日期（trend）")
    orders: int = 0
    invoices: int = 0
    expenses: Decimal = Decimal("0")
    payments_in: Decimal = Decimal("0")
    payments_out: Decimal = Decimal("0")


class DashboardSummary(BaseModel):
    selected_month: str
    trend_mode: Literal["current", "last"]
    trend_month: str
    trend_from: DateType
    trend_to: DateType
    today: DashboardToday
    month: DashboardMonth
    active: DashboardActive
    recent: DashboardRecent
    trend_7_day: List[TrendBucket]


class DashboardTrend(BaseModel):
    range: str
    date_from: DateType
    date_to: DateType
    trend: List[TrendBucket]


# ---------- CRP（剪線/燙壓）----------
class CrpRateConfigCreate(BaseModel):
    business_id: int
    category: str
    type_name: str = Field(..., min_length=1)
    rate: Decimal = Field(..., gt=0)
    is_active: bool = True

    @field_validator("category")
    @classmethod
    def check_category(cls, v: str) -> str:
        return normalize_crp_category(v)

    @field_validator("type_name")
    @classmethod
    def strip_type(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("類型名稱為必填")
        return v


class CrpRateConfigUpdate(BaseModel):
    rate: Optional[Decimal] = Field(None, gt=0)
    is_active: Optional[bool] = None


class CrpRateConfigRead(BaseModel):
    id: int
    business_id: int
    category: str
    type_name: str
    rate: Decimal
    is_active: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class CrpStaffRecordCreate(BaseModel):
    business_id: int
    order_id: int
    staff_id: int
    category: str
    type_name: str = Field(..., min_length=1)
    quantity_dzn: Optional[Decimal] = Field(None, description="未填時取訂單數量（Pcs 換算為打）")
    rate: Optional[Decimal] = Field(None, description="未填時取費率表")

    @field_validator("category")
    @classmethod
    def check_category(cls, v: str) -> str:
        return normalize_crp_category(v)


class CrpStaffRecordRead(BaseModel):
    id: int
    business_id: int
    order_id: int
    order_date: DateType
    order_description: str
    quantity_dzn: Decimal
    staff_id: int
    staff_name: str
    category: str
    type_name: str
    rate: Decimal
    total_amount: Decimal
    month: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
