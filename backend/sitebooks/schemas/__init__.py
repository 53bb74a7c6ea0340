"""
Pydantic Schemas for API Validation
"""
from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
import datetime
from decimal import Decimal
from enum import Enum


MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


# ==================== ENUMS ====================

class ProjectStatusEnum(str, Enum):
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"


class PaymentMethodEnum(str, Enum):
    CASH = "Cash"
    BANK = "Bank"
    ONLINE = "Online"


class TransactionTypeEnum(str, Enum):
    INFLOW = "inflow"
    OUTFLOW = "outflow"


class MachineOwnershipEnum(str, Enum):
    COMPANY_OWNED = "Company Owned"
    RENTED = "Rented"


class EmployeeTypeEnum(str, Enum):
    FIXED = "Fixed"
    DAILY = "Daily"


class EmployeePaymentTypeEnum(str, Enum):
    ADVANCE = "Advance"
    SALARY = "Salary"
    WAGE = "Wage"


class FixedAttendanceStatusEnum(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    PAID_LEAVE = "paid_leave"
    UNPAID_LEAVE = "unpaid_leave"


class DailyAttendanceStatusEnum(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"


class NonConsumableEventEnum(str, Enum):
    PURCHASE = "Purchase"
    ASSIGN_TO_PROJECT = "AssignToProject"
    RETURN_TO_COMPANY = "ReturnToCompany"
    REPAIR = "Repair"
    RETURN_FROM_REPAIR = "ReturnFromRepair"
    MARK_LOST = "MarkLost"


# ==================== AUTH & USERS ====================

class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: str = Field(..., min_length=1)
    assigned_project_id: Optional[int] = None


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[str] = None
    assigned_project_id: Optional[int] = None
    is_active: Optional[bool] = None


# ==================== PROJECTS ====================

class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    allocated_budget: Decimal = Field(..., gt=0, decimal_places=2)
    status: ProjectStatusEnum = ProjectStatusEnum.ACTIVE
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    allocated_budget: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    status: Optional[ProjectStatusEnum] = None
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None


class BalanceAdjustmentCreate(BaseModel):
    date: datetime.date
    amount: Decimal = Field(..., decimal_places=2)
    remarks: Optional[str] = None


class BalanceAdjustmentUpdate(BaseModel):
    date: Optional[datetime.date] = None
    amount: Optional[Decimal] = Field(None, decimal_places=2)
    remarks: Optional[str] = None


# ==================== BANKING ====================

class BankAccountCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    account_number: Optional[str] = None
    opening_balance: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)


class BankAccountUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    account_number: Optional[str] = None
    opening_balance: Optional[Decimal] = Field(None, ge=0, decimal_places=2)


class BankTransactionCreate(BaseModel):
    account_id: int
    date: datetime.date
    type: TransactionTypeEnum
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    source: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    project_id: Optional[int] = None
    mode: PaymentMethodEnum = PaymentMethodEnum.BANK
    reference_id: Optional[str] = None
    remarks: Optional[str] = None


class BankTransactionUpdate(BaseModel):
    date: Optional[datetime.date] = None
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    source: Optional[str] = Field(None, min_length=1)
    destination: Optional[str] = Field(None, min_length=1)
    project_id: Optional[int] = None
    mode: Optional[PaymentMethodEnum] = None
    reference_id: Optional[str] = None
    remarks: Optional[str] = None


# ==================== CONTRACTORS, MACHINES, VENDORS ====================

class ContractorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = None
    description: Optional[str] = None
    project_id: Optional[int] = None


class ContractorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = None
    description: Optional[str] = None


class ContractorEntryCreate(BaseModel):
    contractor_id: int
    project_id: Optional[int] = None
    date: datetime.date
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    remarks: Optional[str] = None


class PaymentCreate(BaseModel):
    """Payment against a contractor, machine or vendor"""
    date: datetime.date
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: Optional[PaymentMethodEnum] = None
    reference_id: Optional[str] = None
    remarks: Optional[str] = None


class MachineCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    ownership: MachineOwnershipEnum = MachineOwnershipEnum.RENTED
    hourly_rate: Decimal = Field(..., ge=0, decimal_places=2)
    project_id: Optional[int] = None


class MachineUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    hourly_rate: Optional[Decimal] = Field(None, ge=0, decimal_places=2)


class MachineEntryCreate(BaseModel):
    date: datetime.date
    hours_worked: Decimal = Field(..., gt=0)
    used_by: Optional[str] = None
    remarks: Optional[str] = None


class VendorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = None
    description: Optional[str] = None
    project_id: Optional[int] = None


class VendorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = None
    description: Optional[str] = None


# ==================== EXPENSES ====================

class ExpenseCreate(BaseModel):
    project_id: Optional[int] = None
    date: datetime.date
    description: str = Field(..., min_length=1, max_length=500)
    category: str = Field(..., min_length=1, max_length=100)
    payment_mode: PaymentMethodEnum = PaymentMethodEnum.CASH
    amount: Decimal = Field(..., ge=0, decimal_places=2)


class ExpenseUpdate(BaseModel):
    date: Optional[datetime.date] = None
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    payment_mode: Optional[PaymentMethodEnum] = None
    amount: Optional[Decimal] = Field(None, ge=0, decimal_places=2)


# ==================== EMPLOYEES ====================

class EmployeeCreate(BaseModel):
    project_id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=255)
    role: str = Field(..., min_length=1, max_length=100)
    type: EmployeeTypeEnum
    monthly_salary: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    daily_rate: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    phone: Optional[str] = None


class EmployeeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[EmployeeTypeEnum] = None
    monthly_salary: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    daily_rate: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    phone: Optional[str] = None


class FixedAttendanceDay(BaseModel):
    day: int = Field(..., ge=1, le=31)
    status: FixedAttendanceStatusEnum


class DailyAttendanceDay(BaseModel):
    day: int = Field(..., ge=1, le=31)
    status: DailyAttendanceStatusEnum = DailyAttendanceStatusEnum.PRESENT
    hours_worked: Decimal = Field(Decimal("0"), ge=0, le=24)
    overtime_hours: Decimal = Field(Decimal("0"), ge=0, le=24)
    notes: Optional[str] = None


class AttendanceUpdate(BaseModel):
    month: str = Field(..., pattern=MONTH_PATTERN)
    fixed_entries: Optional[List[FixedAttendanceDay]] = None
    daily_entries: Optional[List[DailyAttendanceDay]] = None


class EmployeePaymentCreate(BaseModel):
    month: str = Field(..., pattern=MONTH_PATTERN)
    date: datetime.date
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    type: EmployeePaymentTypeEnum
    payment_method: PaymentMethodEnum = PaymentMethodEnum.CASH
    remarks: Optional[str] = None


class EmployeePaymentUpdate(BaseModel):
    month: Optional[str] = Field(None, pattern=MONTH_PATTERN)
    date: Optional[datetime.date] = None
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    type: Optional[EmployeePaymentTypeEnum] = None
    payment_method: Optional[PaymentMethodEnum] = None
    remarks: Optional[str] = None


# ==================== CONSUMABLE INVENTORY ====================

class ConsumableItemCreate(BaseModel):
    project_id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=255)
    unit: str = Field(..., min_length=1, max_length=50)


class ConsumableItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    unit: Optional[str] = Field(None, min_length=1, max_length=50)


class ItemLedgerCreate(BaseModel):
    vendor_id: int
    date: datetime.date
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=0, decimal_places=2)
    paid_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    bilty_number: Optional[str] = None
    vehicle_number: Optional[str] = None
    payment_method: PaymentMethodEnum = PaymentMethodEnum.CASH
    reference_id: Optional[str] = None
    remarks: Optional[str] = None


class ItemLedgerUpdate(BaseModel):
    vendor_id: Optional[int] = None
    date: Optional[datetime.date] = None
    quantity: Optional[int] = Field(None, ge=1)
    unit_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    paid_amount: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    bilty_number: Optional[str] = None
    vehicle_number: Optional[str] = None
    payment_method: Optional[PaymentMethodEnum] = None
    reference_id: Optional[str] = None
    remarks: Optional[str] = None


class ConsumptionLine(BaseModel):
    item_id: int
    quantity_used: int


class StockConsumptionCreate(BaseModel):
    project_id: Optional[int] = None
    date: datetime.date
    remarks: Optional[str] = None
    items: List[ConsumptionLine]


class StockConsumptionUpdate(BaseModel):
    date: Optional[datetime.date] = None
    remarks: Optional[str] = None
    items: Optional[List[ConsumptionLine]] = None


# ==================== NON-CONSUMABLE INVENTORY ====================

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class NonConsumableItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=100)
    unit: str = Field("piece", min_length=1, max_length=50)


class NonConsumableItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    unit: Optional[str] = Field(None, min_length=1, max_length=50)


class NonConsumableLedgerCreate(BaseModel):
    date: datetime.date
    event_type: NonConsumableEventEnum
    quantity: int = Field(..., ge=1)
    total_cost: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    project_to_id: Optional[int] = None
    project_from_id: Optional[int] = None
    remarks: Optional[str] = None


class NonConsumableLedgerUpdate(BaseModel):
    date: Optional[datetime.date] = None
    event_type: Optional[NonConsumableEventEnum] = None
    quantity: Optional[int] = Field(None, ge=1)
    total_cost: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    project_to_id: Optional[int] = None
    project_from_id: Optional[int] = None
    remarks: Optional[str] = None
