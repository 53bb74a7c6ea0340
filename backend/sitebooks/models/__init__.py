"""
SQLAlchemy Models for SiteBooks
"""
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Date, Numeric,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
import enum

from sitebooks.core.database import Base


ZERO = Decimal("0.00")


# ==================== ENUMS ====================

class UserRole(enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    SITE_MANAGER = "site_manager"


class ProjectStatus(enum.Enum):
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"


class PaymentMethod(enum.Enum):
    CASH = "Cash"
    BANK = "Bank"
    ONLINE = "Online"


class TransactionType(enum.Enum):
    INFLOW = "inflow"
    OUTFLOW = "outflow"


class MachineOwnership(enum.Enum):
    COMPANY_OWNED = "Company Owned"
    RENTED = "Rented"


class EmployeeType(enum.Enum):
    FIXED = "Fixed"
    DAILY = "Daily"


class EmployeePaymentType(enum.Enum):
    ADVANCE = "Advance"
    SALARY = "Salary"
    WAGE = "Wage"


class NonConsumableEvent(enum.Enum):
    PURCHASE = "Purchase"
    ASSIGN_TO_PROJECT = "AssignToProject"
    RETURN_TO_COMPANY = "ReturnToCompany"
    REPAIR = "Repair"
    RETURN_FROM_REPAIR = "ReturnFromRepair"
    MARK_LOST = "MarkLost"


# ==================== USERS & PROJECTS ====================

class User(Base):
    """User account"""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(30), nullable=False, default=UserRole.SITE_MANAGER.value)
    assigned_project_id = Column(Integer, ForeignKey('projects.id', ondelete='SET NULL'), nullable=True)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    assigned_project = relationship("Project", foreign_keys=[assigned_project_id])


class Project(Base):
    """Construction project"""
    __tablename__ = 'projects'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    allocated_budget = Column(Numeric(14, 2), nullable=False, default=ZERO)
    status = Column(String(20), nullable=False, default=ProjectStatus.ACTIVE.value)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    balance = Column(Numeric(14, 2), nullable=False, default=ZERO)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    contractors = relationship("Contractor", back_populates="project", cascade="all, delete-orphan")
    machines = relationship("Machine", back_populates="project", cascade="all, delete-orphan")
    vendors = relationship("Vendor", back_populates="project", cascade="all, delete-orphan")
    employees = relationship("Employee", back_populates="project", cascade="all, delete-orphan")
    expenses = relationship("Expense", back_populates="project", cascade="all, delete-orphan")
    consumable_items = relationship("ConsumableItem", back_populates="project", cascade="all, delete-orphan")
    stock_consumptions = relationship("StockConsumption", back_populates="project", cascade="all, delete-orphan")
    balance_adjustments = relationship(
        "ProjectBalanceAdjustment", back_populates="project", cascade="all, delete-orphan"
    )


class ProjectBalanceAdjustment(Base):
    """Manual correction to a project's running balance"""
    __tablename__ = 'project_balance_adjustments'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="balance_adjustments")

    __table_args__ = (
        Index('ix_balance_adjustments_project_date', 'project_id', 'date'),
    )


# ==================== BANKING ====================

class BankAccount(Base):
    """Company bank account with running totals"""
    __tablename__ = 'bank_accounts'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    account_number = Column(String(100), nullable=True)
    opening_balance = Column(Numeric(14, 2), nullable=False, default=ZERO)
    current_balance = Column(Numeric(14, 2), nullable=False, default=ZERO)
    total_inflow = Column(Numeric(14, 2), nullable=False, default=ZERO)
    total_outflow = Column(Numeric(14, 2), nullable=False, default=ZERO)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    transactions = relationship("BankTransaction", back_populates="account")


class BankTransaction(Base):
    """Money moving in or out of a bank account"""
    __tablename__ = 'bank_transactions'

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey('bank_accounts.id'), nullable=False)
    date = Column(Date, nullable=False)
    type = Column(String(10), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    source = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    project_id = Column(Integer, ForeignKey('projects.id', ondelete='SET NULL'), nullable=True)
    mode = Column(String(10), nullable=False, default=PaymentMethod.BANK.value)
    reference_id = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    account = relationship("BankAccount", back_populates="transactions")
    project = relationship("Project")

    __table_args__ = (
        Index('ix_bank_transactions_account_date', 'account_id', 'date'),
        Index('ix_bank_transactions_project_date', 'project_id', 'date'),
    )


# ==================== CONTRACTORS ====================

class Contractor(Base):
    """Labour contractor working on a project"""
    __tablename__ = 'contractors'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="contractors")
    entries = relationship("ContractorEntry", back_populates="contractor", cascade="all, delete-orphan")
    payments = relationship("ContractorPayment", back_populates="contractor", cascade="all, delete-orphan")
    allocations = relationship(
        "ContractorPaymentAllocation", back_populates="contractor", cascade="all, delete-orphan"
    )


class ContractorEntry(Base):
    """Work value owed to a contractor on a date"""
    __tablename__ = 'contractor_entries'

    id = Column(Integer, primary_key=True)
    contractor_id = Column(Integer, ForeignKey('contractors.id', ondelete='CASCADE'), nullable=False)
    project_id = Column(Integer, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    contractor = relationship("Contractor", back_populates="entries")

    __table_args__ = (
        Index('ix_contractor_entries_contractor_date', 'contractor_id', 'date'),
        Index('ix_contractor_entries_project_date', 'project_id', 'date'),
    )


class ContractorPayment(Base):
    """Cash paid to a contractor"""
    __tablename__ = 'contractor_payments'

    id = Column(Integer, primary_key=True)
    contractor_id = Column(Integer, ForeignKey('contractors.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    payment_method = Column(String(10), nullable=False, default=PaymentMethod.CASH.value)
    reference_id = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    contractor = relationship("Contractor", back_populates="payments")

    __table_args__ = (
        Index('ix_contractor_payments_contractor_date', 'contractor_id', 'date'),
    )


class ContractorPaymentAllocation(Base):
    """Portion of a contractor payment settled against one entry"""
    __tablename__ = 'contractor_payment_allocations'

    id = Column(Integer, primary_key=True)
    contractor_id = Column(Integer, ForeignKey('contractors.id', ondelete='CASCADE'), nullable=False)
    entry_id = Column(Integer, ForeignKey('contractor_entries.id', ondelete='CASCADE'), nullable=False)
    payment_id = Column(Integer, ForeignKey('contractor_payments.id', ondelete='CASCADE'), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)

    contractor = relationship("Contractor", back_populates="allocations")

    __table_args__ = (
        Index('ix_contractor_allocations_entry', 'entry_id'),
        Index('ix_contractor_allocations_payment', 'payment_id'),
    )


# ==================== MACHINERY ====================

class Machine(Base):
    """Machine used on a project, billed by the hour"""
    __tablename__ = 'machines'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(255), nullable=False)
    ownership = Column(String(20), nullable=False, default=MachineOwnership.RENTED.value)
    hourly_rate = Column(Numeric(14, 2), nullable=False, default=ZERO)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="machines")
    entries = relationship("MachineEntry", back_populates="machine", cascade="all, delete-orphan")
    payments = relationship("MachinePayment", back_populates="machine", cascade="all, delete-orphan")
    allocations = relationship(
        "MachinePaymentAllocation", back_populates="machine", cascade="all, delete-orphan"
    )


class MachineEntry(Base):
    """Hours a machine worked on a date"""
    __tablename__ = 'machine_entries'

    id = Column(Integer, primary_key=True)
    machine_id = Column(Integer, ForeignKey('machines.id', ondelete='CASCADE'), nullable=False)
    project_id = Column(Integer, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    hours_worked = Column(Numeric(10, 2), nullable=False)
    used_by = Column(String(255), nullable=True)
    total_cost = Column(Numeric(14, 2), nullable=False)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    machine = relationship("Machine", back_populates="entries")

    # Allocation code treats entries uniformly by `amount`
    @property
    def amount(self) -> Decimal:
        return self.total_cost

    __table_args__ = (
        Index('ix_machine_entries_machine_date', 'machine_id', 'date'),
        Index('ix_machine_entries_project_date', 'project_id', 'date'),
    )


class MachinePayment(Base):
    """Cash paid for machine usage"""
    __tablename__ = 'machine_payments'

    id = Column(Integer, primary_key=True)
    machine_id = Column(Integer, ForeignKey('machines.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    payment_method = Column(String(10), nullable=True)
    reference_id = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    machine = relationship("Machine", back_populates="payments")

    __table_args__ = (
        Index('ix_machine_payments_machine_date', 'machine_id', 'date'),
    )


class MachinePaymentAllocation(Base):
    """Portion of a machine payment settled against one entry"""
    __tablename__ = 'machine_payment_allocations'

    id = Column(Integer, primary_key=True)
    machine_id = Column(Integer, ForeignKey('machines.id', ondelete='CASCADE'), nullable=False)
    entry_id = Column(Integer, ForeignKey('machine_entries.id', ondelete='CASCADE'), nullable=False)
    payment_id = Column(Integer, ForeignKey('machine_payments.id', ondelete='CASCADE'), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)

    machine = relationship("Machine", back_populates="allocations")

    __table_args__ = (
        Index('ix_machine_allocations_entry', 'entry_id'),
        Index('ix_machine_allocations_payment', 'payment_id'),
    )


# ==================== VENDORS & CONSUMABLES ====================

class Vendor(Base):
    """Material supplier with denormalized running totals"""
    __tablename__ = 'vendors'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    total_billed = Column(Numeric(14, 2), nullable=False, default=ZERO)
    total_paid = Column(Numeric(14, 2), nullable=False, default=ZERO)
    remaining = Column(Numeric(14, 2), nullable=False, default=ZERO)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="vendors")
    payments = relationship("VendorPayment", back_populates="vendor", cascade="all, delete-orphan")
    purchases = relationship("ItemLedgerEntry", back_populates="vendor")


class VendorPayment(Base):
    """Cash paid to a vendor outside of a purchase"""
    __tablename__ = 'vendor_payments'

    id = Column(Integer, primary_key=True)
    vendor_id = Column(Integer, ForeignKey('vendors.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    payment_method = Column(String(10), nullable=False, default=PaymentMethod.CASH.value)
    reference_id = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    vendor = relationship("Vendor", back_populates="payments")

    __table_args__ = (
        Index('ix_vendor_payments_vendor_date', 'vendor_id', 'date'),
    )


class ConsumableItem(Base):
    """Stocked material consumed on a project (cement, steel, ...)"""
    __tablename__ = 'consumable_items'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(255), nullable=False)
    # casefolded name; uniqueness is enforced on this, not on name
    name_key = Column(String(255), nullable=False)
    unit = Column(String(50), nullable=False)
    current_stock = Column(Integer, nullable=False, default=0)
    total_purchased = Column(Integer, nullable=False, default=0)
    total_amount = Column(Numeric(14, 2), nullable=False, default=ZERO)
    total_paid = Column(Numeric(14, 2), nullable=False, default=ZERO)
    total_pending = Column(Numeric(14, 2), nullable=False, default=ZERO)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="consumable_items")
    purchases = relationship("ItemLedgerEntry", back_populates="item")

    __table_args__ = (
        UniqueConstraint('project_id', 'name_key', name='uq_consumable_item_project_name'),
    )


class ItemLedgerEntry(Base):
    """Purchase of a consumable item from a vendor"""
    __tablename__ = 'item_ledger_entries'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    item_id = Column(Integer, ForeignKey('consumable_items.id', ondelete='CASCADE'), nullable=False)
    vendor_id = Column(Integer, ForeignKey('vendors.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    total_price = Column(Numeric(14, 2), nullable=False)
    paid_amount = Column(Numeric(14, 2), nullable=False, default=ZERO)
    remaining = Column(Numeric(14, 2), nullable=False, default=ZERO)
    bilty_number = Column(String(100), nullable=True)
    vehicle_number = Column(String(100), nullable=True)
    payment_method = Column(String(10), nullable=False, default=PaymentMethod.CASH.value)
    reference_id = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    item = relationship("ConsumableItem", back_populates="purchases")
    vendor = relationship("Vendor", back_populates="purchases")

    __table_args__ = (
        Index('ix_item_ledger_item_date', 'item_id', 'date'),
        Index('ix_item_ledger_vendor_date', 'vendor_id', 'date'),
        Index('ix_item_ledger_project_date', 'project_id', 'date'),
    )


class StockConsumption(Base):
    """Stock drawn from consumable items on a date"""
    __tablename__ = 'stock_consumptions'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="stock_consumptions")
    lines = relationship("StockConsumptionLine", back_populates="consumption", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_stock_consumptions_project_date', 'project_id', 'date'),
    )


class StockConsumptionLine(Base):
    __tablename__ = 'stock_consumption_lines'

    id = Column(Integer, primary_key=True)
    consumption_id = Column(Integer, ForeignKey('stock_consumptions.id', ondelete='CASCADE'), nullable=False)
    item_id = Column(Integer, ForeignKey('consumable_items.id'), nullable=False)
    quantity_used = Column(Integer, nullable=False)

    consumption = relationship("StockConsumption", back_populates="lines")
    item = relationship("ConsumableItem")


# ==================== EXPENSES ====================

class Expense(Base):
    """Dated cash-out record tied to a project"""
    __tablename__ = 'expenses'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    description = Column(String(500), nullable=False)
    category = Column(String(100), nullable=False)
    payment_mode = Column(String(10), nullable=False, default=PaymentMethod.CASH.value)
    amount = Column(Numeric(14, 2), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="expenses")

    __table_args__ = (
        Index('ix_expenses_project_date', 'project_id', 'date'),
    )


# ==================== EMPLOYEES ====================

class Employee(Base):
    """Site employee paid monthly (Fixed) or per day (Daily)"""
    __tablename__ = 'employees'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(100), nullable=False)
    type = Column(String(10), nullable=False, default=EmployeeType.FIXED.value)
    monthly_salary = Column(Numeric(14, 2), nullable=True)
    daily_rate = Column(Numeric(14, 2), nullable=True)
    phone = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="employees")
    payments = relationship("EmployeePayment", back_populates="employee", cascade="all, delete-orphan")
    attendance = relationship("EmployeeAttendance", back_populates="employee", cascade="all, delete-orphan")


class EmployeeAttendance(Base):
    """One employee's attendance sheet for one month"""
    __tablename__ = 'employee_attendance'

    id = Column(Integer, primary_key=True)
    employee_id = Column(Integer, ForeignKey('employees.id', ondelete='CASCADE'), nullable=False)
    month = Column(String(7), nullable=False)  # YYYY-MM

    employee = relationship("Employee", back_populates="attendance")
    days = relationship("AttendanceDay", back_populates="attendance", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('employee_id', 'month', name='uq_employee_attendance_month'),
    )


class AttendanceDay(Base):
    __tablename__ = 'attendance_days'

    id = Column(Integer, primary_key=True)
    attendance_id = Column(Integer, ForeignKey('employee_attendance.id', ondelete='CASCADE'), nullable=False)
    entry_type = Column(String(10), nullable=False)  # fixed, daily
    day = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False)
    hours_worked = Column(Numeric(5, 2), nullable=False, default=ZERO)
    overtime_hours = Column(Numeric(5, 2), nullable=False, default=ZERO)
    notes = Column(String(255), nullable=True)

    attendance = relationship("EmployeeAttendance", back_populates="days")


class EmployeePayment(Base):
    """Salary, wage or advance paid to an employee for a month"""
    __tablename__ = 'employee_payments'

    id = Column(Integer, primary_key=True)
    employee_id = Column(Integer, ForeignKey('employees.id'), nullable=False)
    month = Column(String(7), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    type = Column(String(10), nullable=False)
    payment_method = Column(String(10), nullable=False, default=PaymentMethod.CASH.value)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    employee = relationship("Employee", back_populates="payments")

    __table_args__ = (
        Index('ix_employee_payments_employee_month', 'employee_id', 'month'),
        Index('ix_employee_payments_employee_date', 'employee_id', 'date'),
    )


# ==================== NON-CONSUMABLE INVENTORY ====================

class NonConsumableCategory(Base):
    __tablename__ = 'non_consumable_categories'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    name_key = Column(String(100), nullable=False, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class NonConsumableItem(Base):
    """Reusable company asset (scaffolding, tools) tracked by location"""
    __tablename__ = 'non_consumable_items'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    name_key = Column(String(255), nullable=False, unique=True)
    category = Column(String(100), nullable=False)
    unit = Column(String(50), nullable=False, default="piece")
    total_quantity = Column(Integer, nullable=False, default=0)
    company_store = Column(Integer, nullable=False, default=0)
    in_use = Column(Integer, nullable=False, default=0)
    under_repair = Column(Integer, nullable=False, default=0)
    lost = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    ledger_entries = relationship(
        "NonConsumableLedgerEntry", back_populates="item", cascade="all, delete-orphan"
    )


class NonConsumableLedgerEntry(Base):
    """Movement of non-consumable units between store, projects, repair and loss"""
    __tablename__ = 'non_consumable_ledger_entries'

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey('non_consumable_items.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    event_type = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)
    total_cost = Column(Numeric(14, 2), nullable=True)
    project_to_id = Column(Integer, ForeignKey('projects.id'), nullable=True)
    project_from_id = Column(Integer, ForeignKey('projects.id'), nullable=True)
    remarks = Column(Text, nullable=True)
    created_by_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    item = relationship("NonConsumableItem", back_populates="ledger_entries")
    project_to = relationship("Project", foreign_keys=[project_to_id])
    project_from = relationship("Project", foreign_keys=[project_from_id])

    __table_args__ = (
        Index('ix_non_consumable_ledger_item_date', 'item_id', 'date'),
    )


# ==================== AUDIT ====================

class AuditLog(Base):
    """Audit trail for every mutation"""
    __tablename__ = 'audit_logs'

    id = Column(Integer, primary_key=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Who performed the action; name/email kept in case the user is deleted
    user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    user_name = Column(String(255), nullable=True)
    user_email = Column(String(255), nullable=True)
    role = Column(String(30), nullable=True)

    action = Column(String(10), nullable=False)  # create, update, delete
    module = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=True)

    description = Column(Text, nullable=True)
    old_values = Column(Text, nullable=True)  # JSON
    new_values = Column(Text, nullable=True)  # JSON

    __table_args__ = (
        Index('ix_audit_logs_timestamp', 'timestamp'),
        Index('ix_audit_logs_module_action', 'module', 'action'),
    )
