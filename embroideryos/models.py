"""資料庫模型 - 刺繡廠後台（客戶 / 供應商 / 員工 / 訂單 / 發票 / 收付款 / 生產設定與日報）。
所有業務資料皆帶 business_id；租戶範圍由上游驗證，此層不再檢查。
生產日報（staff_records）保存計算當下的設定快照 config_snapshot，之後改設定不影響歷史薪資。"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from sqlalchemy import String, Date, Text, Numeric, ForeignKey, DateTime, Boolean, Integer, UniqueConstraint, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from embroideryos.database import Base


ATTENDANCE_STATES = ("Day", "Night", "Half", "Absent", "Off", "Close", "Sunday")
STAFF_PAYMENT_TYPES = ("advance", "payment", "adjustment")
STAFF_CATEGORIES = ("Embroidery", "Cropping")
ORDER_UNITS = ("Dzn", "Pcs")
CUSTOMER_PAYMENT_METHODS = ("cash", "cheque", "slip", "online", "adjustment")
SUPPLIER_PAYMENT_METHODS = ("cash", "cheque", "online")
EXPENSE_TYPES = ("cash", "supplier", "fixed")
CRP_CATEGORIES = ("Press", "Cropping", "Other")


class Business(Base):
    """租戶（工廠）"""
    __tablename__ = "businesses"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), comment="公司名稱")
    person: Mapped[str] = mapped_column(String(120), comment="負責人")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Staff(Base):
    """員工。salary 有值（>0）視為固定月薪制，否則依生產計件。category=Cropping 走 CRP 費率表，不進生產計薪。"""
    __tablename__ = "staff"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(120), comment="姓名")
    joining_date: Mapped[date] = mapped_column(Date, comment="到職日")
    salary: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), comment="固定月薪（可空）")
    opening_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, comment="期初餘額")
    category: Mapped[str] = mapped_column(String(30), default="Embroidery", comment="Embroidery / Cropping")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    records: Mapped[List["StaffRecord"]] = relationship("StaffRecord", back_populates="staff", cascade="all, delete-orphan")
    payments: Mapped[List["StaffPayment"]] = relationship("StaffPayment", back_populates="staff", cascade="all, delete-orphan")


class ProductionConfig(Base):
    """生產計薪設定：每個 business 每個生效日一個版本；查詢時取生效日 <= 目標日之最新版本"""
    __tablename__ = "production_configs"
    __table_args__ = (
        UniqueConstraint("business_id", "effective_date", name="uq_production_config_business_effective"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    stitch_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 4), comment="針數單價係數")
    applique_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 4), comment="貼布單價係數")
    on_target_pct: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4), comment="未達標分成（直接相乘，不除 100）")
    after_target_pct: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4), comment="達標後分成（直接相乘，不除 100）")
    pcs_per_round: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), comment="每回片數")
    target_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), comment="每日目標金額")
    off_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), comment="計件員工休假日給付")
    bonus_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), comment="獎金單價（空則 200）")
    allowance: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), default=1500, comment="津貼")
    stitch_formula_enabled: Mapped[bool] = mapped_column(Boolean, default=False, comment="是否套用自訂設計針數級距")
    stitch_formula_rules: Mapped[Optional[list]] = mapped_column(JSON, comment="[{upper_bound, mode, value}]，依上限遞增、無上限置末")
    effective_date: Mapped[date] = mapped_column(Date, index=True, comment="生效日（含）")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class StaffRecord(Base):
    """員工每日出勤與生產紀錄。每人每日一筆（唯一鍵），衍生欄位一律由伺服器重算。"""
    __tablename__ = "staff_records"
    __table_args__ = (
        UniqueConstraint("staff_id", "date", name="uq_staff_record_staff_date"),
        Index("ix_staff_records_business_date", "business_id", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    staff_id: Mapped[int] = mapped_column(ForeignKey("staff.id", ondelete="CASCADE"), index=True)
    date: Mapped[date] = mapped_column(Date, comment="紀錄日期")
    month: Mapped[str] = mapped_column(String(7), index=True, comment="YYYY-MM")
    attendance: Mapped[str] = mapped_column(String(10), comment="Day/Night/Half/Absent/Off/Close/Sunday（Half 可能被升級為 Day）")
    production: Mapped[list] = mapped_column(JSON, default=list, comment="生產明細（含重算後衍生欄位）")
    totals: Mapped[Optional[dict]] = mapped_column(JSON, comment="生產合計；無生產時為空")
    base_amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), default=0, comment="底薪（未含獎金）")
    bonus_qty: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    bonus_rate: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    bonus_amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), default=0)
    fix_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 6), comment="手動定額；有值（含 0）即為實發")
    final_amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), default=0)
    config_snapshot: Mapped[Optional[dict]] = mapped_column(JSON, comment="計算當下使用的設定快照")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    staff: Mapped["Staff"] = relationship("Staff", back_populates="records")


class StaffPayment(Base):
    """員工收付：advance/payment 減少應付餘額，adjustment 增加"""
    __tablename__ = "staff_payments"
    __table_args__ = (Index("ix_staff_payments_business_date", "business_id", "date"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    staff_id: Mapped[int] = mapped_column(ForeignKey("staff.id", ondelete="CASCADE"), index=True)
    date: Mapped[date] = mapped_column(Date)
    month: Mapped[str] = mapped_column(String(7), index=True, comment="YYYY-MM")
    type: Mapped[str] = mapped_column(String(20), comment="advance / payment / adjustment")
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    remarks: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    staff: Mapped["Staff"] = relationship("Staff", back_populates="payments")


class Customer(Base):
    """客戶；rate 為訂單計價的基本單價（每千針）"""
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    person: Mapped[str] = mapped_column(String(120))
    rate: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=0, comment="基本單價")
    opening_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Order(Base):
    """生產訂單：原始輸入 + 伺服器重算之衍生欄位（design_stitches / qt_pcs / rate / calculated_rate / stitch_rate / total_amount）"""
    __tablename__ = "orders"
    __table_args__ = (Index("ix_orders_business_date", "business_id", "date"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id", ondelete="RESTRICT"), index=True)
    customer_name: Mapped[str] = mapped_column(String(120))
    customer_base_rate: Mapped[Decimal] = mapped_column(Numeric(14, 4), default=0)
    description: Mapped[str] = mapped_column(String(500), default="")
    date: Mapped[date] = mapped_column(Date)
    machine_no: Mapped[str] = mapped_column(String(30))
    lot_no: Mapped[str] = mapped_column(String(60), default="")
    unit: Mapped[str] = mapped_column(String(5), default="Dzn", comment="Dzn / Pcs")
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    qt_pcs: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    actual_stitches: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    design_stitches: Mapped[Decimal] = mapped_column(Numeric(16, 4), default=0)
    apq: Mapped[Optional[int]] = mapped_column(Integer, comment="0~30")
    apq_chr: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    reverse_mode: Mapped[bool] = mapped_column(Boolean, default=False)
    two_side: Mapped[bool] = mapped_column(Boolean, default=False)
    rate_input: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    rate: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    calculated_rate: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    stitch_rate: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=0)
    invoice_id: Mapped[Optional[int]] = mapped_column(ForeignKey("invoices.id", ondelete="SET NULL"), index=True)
    invoiced_at: Mapped[Optional[date]] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Invoice(Base):
    """發票：彙總同一客戶未開票訂單之 total_amount"""
    __tablename__ = "invoices"
    __table_args__ = (Index("ix_invoices_business_date", "business_id", "invoice_date"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id", ondelete="RESTRICT"), index=True)
    customer_name: Mapped[str] = mapped_column(String(120))
    customer_person: Mapped[str] = mapped_column(String(120), default="")
    order_ids: Mapped[list] = mapped_column(JSON, default=list)
    order_count: Mapped[int] = mapped_column(Integer, default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=0)
    invoice_date: Mapped[date] = mapped_column(Date)
    note: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CustomerPayment(Base):
    """客戶收款"""
    __tablename__ = "customer_payments"
    __table_args__ = (Index("ix_customer_payments_business_date", "business_id", "date"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id", ondelete="RESTRICT"), index=True)
    customer_name: Mapped[str] = mapped_column(String(120))
    date: Mapped[date] = mapped_column(Date)
    month: Mapped[str] = mapped_column(String(7), comment="YYYY-MM")
    method: Mapped[str] = mapped_column(String(20), index=True, comment="cash / cheque / slip / online / adjustment")
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    reference_no: Mapped[str] = mapped_column(String(60), default="")
    bank_name: Mapped[str] = mapped_column(String(120), default="")
    party_name: Mapped[str] = mapped_column(String(120), default="")
    cheque_date: Mapped[Optional[date]] = mapped_column(Date)
    clear_date: Mapped[Optional[date]] = mapped_column(Date)
    remarks: Mapped[str] = mapped_column(String(500), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Supplier(Base):
    """供應商"""
    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    opening_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Expense(Base):
    """支出；expense_type=supplier 時記入該供應商應付"""
    __tablename__ = "expenses"
    __table_args__ = (Index("ix_expenses_business_date", "business_id", "date"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    expense_type: Mapped[str] = mapped_column(String(20), default="cash", index=True, comment="cash / supplier / fixed")
    item_name: Mapped[str] = mapped_column(String(120))
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    date: Mapped[date] = mapped_column(Date)
    month: Mapped[str] = mapped_column(String(7), comment="YYYY-MM")
    reference_no: Mapped[str] = mapped_column(String(60), default="")
    remarks: Mapped[str] = mapped_column(String(500), default="")
    supplier_id: Mapped[Optional[int]] = mapped_column(ForeignKey("suppliers.id", ondelete="SET NULL"), index=True)
    supplier_name: Mapped[str] = mapped_column(String(120), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ExpenseItem(Base):
    """常用支出項目（選單用），新增支出時帶入名稱、類型與預設金額"""
    __tablename__ = "expense_items"
    __table_args__ = (Index("ix_expense_items_business_type_name", "business_id", "expense_type", "name"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    expense_type: Mapped[str] = mapped_column(String(20), default="cash", index=True, comment="cash / supplier / fixed")
    default_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SupplierPayment(Base):
    """付款給供應商"""
    __tablename__ = "supplier_payments"
    __table_args__ = (Index("ix_supplier_payments_business_date", "business_id", "date"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id", ondelete="RESTRICT"), index=True)
    supplier_name: Mapped[str] = mapped_column(String(120))
    date: Mapped[date] = mapped_column(Date)
    month: Mapped[str] = mapped_column(String(7), comment="YYYY-MM，由 date 推得")
    method: Mapped[str] = mapped_column(String(20), comment="cash / cheque / online")
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    reference_no: Mapped[str] = mapped_column(String(60), default="")
    remarks: Mapped[str] = mapped_column(String(500), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CrpRateConfig(Base):
    """CRP（剪線/燙壓）費率表：每 business + category + type_name 一筆"""
    __tablename__ = "crp_rate_configs"
    __table_args__ = (
        UniqueConstraint("business_id", "category", "type_name", name="uq_crp_rate_business_category_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    category: Mapped[str] = mapped_column(String(20), index=True, comment="Press / Cropping / Other")
    type_name: Mapped[str] = mapped_column(String(60))
    rate: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CrpStaffRecord(Base):
    """CRP 計件紀錄：一張訂單一筆，金額 = 打數 × 單價"""
    __tablename__ = "crp_staff_records"
    __table_args__ = (
        UniqueConstraint("business_id", "order_id", name="uq_crp_record_business_order"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="CASCADE"), index=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    order_date: Mapped[date] = mapped_column(Date, index=True)
    order_description: Mapped[str] = mapped_column(String(500), default="")
    quantity_dzn: Mapped[Decimal] = mapped_column(Numeric(14, 4))
    staff_id: Mapped[int] = mapped_column(ForeignKey("staff.id", ondelete="CASCADE"), index=True)
    staff_name: Mapped[str] = mapped_column(String(120))
    category: Mapped[str] = mapped_column(String(20), index=True)
    type_name: Mapped[str] = mapped_column(String(60))
    rate: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(16, 4))
    month: Mapped[str] = mapped_column(String(7), index=True, comment="YYYY-MM，取自訂單日期")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
