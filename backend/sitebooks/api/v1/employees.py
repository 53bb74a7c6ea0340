"""
Employee API Routes - employees, monthly attendance and salary payments
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from sitebooks.core.database import get_db
from sitebooks.core.security import get_current_active_user, PolicyChecker
from sitebooks.core import policy
from sitebooks.schemas import (
    EmployeeCreate, EmployeeUpdate, AttendanceUpdate,
    EmployeePaymentCreate, EmployeePaymentUpdate, MONTH_PATTERN
)
from sitebooks.services.employee_service import (
    EmployeeService, EmployeeLedgerService, employee_to_dict, employee_payment_to_dict
)

router = APIRouter(prefix="/employees", tags=["Employees"])


# ==================== PAYMENTS ====================

@router.patch("/payments/{payment_id}", dependencies=[Depends(PolicyChecker("employees", policy.EDIT))])
async def update_employee_payment(
    payment_id: int,
    payment_data: EmployeePaymentUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    payment = EmployeeLedgerService(db).update_payment(current_user, payment_id, payment_data)
    db.commit()
    return employee_payment_to_dict(payment)


@router.delete("/payments/{payment_id}", dependencies=[Depends(PolicyChecker("employees", policy.DELETE))])
async def delete_employee_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    EmployeeLedgerService(db).delete_payment(current_user, payment_id)
    db.commit()
    return {"message": "Payment deleted successfully"}


# ==================== EMPLOYEES ====================

@router.get("", dependencies=[Depends(PolicyChecker("employees", policy.VIEW))])
async def list_employees(
    project_id: Optional[int] = Query(None),
    month: Optional[str] = Query(None, pattern=MONTH_PATTERN),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    """Employees with total paid, plus a payable snapshot when a month is given"""
    return EmployeeService(db).list(current_user, project_id, month)


@router.post("", dependencies=[Depends(PolicyChecker("employees", policy.CREATE))])
async def create_employee(
    employee_data: EmployeeCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    employee = EmployeeService(db).create(current_user, employee_data)
    db.commit()
    return employee_to_dict(employee)


@router.get("/{employee_id}", dependencies=[Depends(PolicyChecker("employees", policy.VIEW))])
async def get_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    employee = EmployeeService(db).get(current_user, employee_id)
    result = employee_to_dict(employee)
    result.update(EmployeeLedgerService(db).totals(employee))
    return result


@router.patch("/{employee_id}", dependencies=[Depends(PolicyChecker("employees", policy.EDIT))])
async def update_employee(
    employee_id: int,
    employee_data: EmployeeUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    employee = EmployeeService(db).update(current_user, employee_id, employee_data)
    db.commit()
    return employee_to_dict(employee)


@router.delete("/{employee_id}", dependencies=[Depends(PolicyChecker("employees", policy.DELETE))])
async def delete_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    EmployeeService(db).delete(current_user, employee_id)
    db.commit()
    return {"message": "Employee deleted successfully"}


@router.get("/{employee_id}/ledger", dependencies=[Depends(PolicyChecker("employees", policy.VIEW))])
async def get_employee_ledger(
    employee_id: int,
    month: Optional[str] = Query(None, pattern=MONTH_PATTERN),
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return EmployeeLedgerService(db).get_ledger(
        current_user, employee_id, month=month, page=page, page_size=page_size
    )


@router.get("/{employee_id}/attendance", dependencies=[Depends(PolicyChecker("employees", policy.VIEW))])
async def get_employee_attendance(
    employee_id: int,
    month: str = Query(..., pattern=MONTH_PATTERN),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return EmployeeLedgerService(db).get_attendance(current_user, employee_id, month)


@router.put("/{employee_id}/attendance", dependencies=[Depends(PolicyChecker("employees", policy.EDIT))])
async def put_employee_attendance(
    employee_id: int,
    attendance_data: AttendanceUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    attendance = EmployeeLedgerService(db).put_attendance(current_user, employee_id, attendance_data)
    db.commit()
    return attendance


@router.post("/{employee_id}/payments", dependencies=[Depends(PolicyChecker("employees", policy.CREATE))])
async def create_employee_payment(
    employee_id: int,
    payment_data: EmployeePaymentCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    payment = EmployeeLedgerService(db).create_payment(current_user, employee_id, payment_data)
    db.commit()
    return employee_payment_to_dict(payment)
