"""
Employee Service - site staff, monthly attendance and salary payments.

Payable for a month is derived from attendance:
  Fixed: monthly salary less a whole-unit deduction for unpaid leave days.
  Daily: whole-unit wage for worked days (hours capped at 8 per day, as a
         fraction of 8) plus whole-unit overtime at daily_rate / 8 per hour.
Nothing is payable for months before the employee was created.
"""
from typing import Optional, List, Dict
from datetime import date
from decimal import Decimal
from sqlalchemy.orm import Session
from sqlalchemy import func
import logging

from sitebooks.models import (
    Employee, EmployeeAttendance, AttendanceDay, EmployeePayment, EmployeePaymentType,
    EmployeeType, Project, ZERO
)
from sitebooks.core.errors import NotFoundError, AccessDeniedError, ValidationError
from sitebooks.core import policy
from sitebooks.services.audit_service import AuditService, AuditAction
from sitebooks.services.helpers import (
    money, round_whole, to_float, iso, clean, page_bounds, month_range, days_in_month, month_of
)

logger = logging.getLogger(__name__)

FIXED = EmployeeType.FIXED.value
DAILY = EmployeeType.DAILY.value
FULL_DAY_HOURS = Decimal("8")


def fixed_payable(salary, month: str, fixed_entries) -> Decimal:
    salary = money(salary)
    unpaid_days = len({e.day for e in fixed_entries if e.status == "unpaid_leave"})
    deduction = round_whole(salary / days_in_month(month) * unpaid_days)
    return max(salary - deduction, ZERO)


def daily_payable(rate, daily_entries) -> Decimal:
    rate = money(rate)
    present = [e for e in daily_entries if e.status == "present"]
    worked_days = sum(
        (min(max(Decimal(str(e.hours_worked or 0)), ZERO), FULL_DAY_HOURS) / FULL_DAY_HOURS for e in present),
        ZERO,
    )
    overtime = sum((max(Decimal(str(e.overtime_hours or 0)), ZERO) for e in present), ZERO)
    return round_whole(worked_days * rate) + round_whole(overtime * rate / FULL_DAY_HOURS)


def payment_status(payable: Decimal, paid: Decimal, remaining: Decimal,
                   settled_on: Optional[date], month_end: date) -> str:
    if payable <= 0:
        return "Paid"
    if remaining <= 0:
        if settled_on and settled_on > month_end:
            return "Late"
        return "Paid"
    if paid > 0:
        return "Partial"
    return "Due"


class EmployeeService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, employee_id: int, lock: bool = False) -> Optional[Employee]:
        query = self.db.query(Employee).filter(Employee.id == employee_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get(self, actor, employee_id: int, lock: bool = False) -> Employee:
        employee = self.get_by_id(employee_id, lock=lock)
        if not employee:
            raise NotFoundError("Employee not found")
        policy.ensure_project_access(actor, employee.project_id, "Employee not found")
        return employee

    def list(self, actor, project_id: Optional[int] = None, month: Optional[str] = None) -> List[Dict]:
        """Employees with total paid; with a month, each carries that month's snapshot"""
        project_id = policy.scoped_project_id(actor, project_id)
        if policy.is_site_manager(actor) and not project_id:
            return []
        query = self.db.query(Employee)
        if project_id:
            query = query.filter(Employee.project_id == project_id)
        employees = query.order_by(Employee.name).all()

        paid = dict(self.db.query(EmployeePayment.employee_id, func.sum(EmployeePayment.amount)).filter(
            EmployeePayment.employee_id.in_([e.id for e in employees])
        ).group_by(EmployeePayment.employee_id).all()) if employees else {}

        ledger = EmployeeLedgerService(self.db)
        result = []
        for employee in employees:
            data = employee_to_dict(employee)
            data["total_paid"] = to_float(paid.get(employee.id))
            if month:
                snapshot = ledger.snapshot(employee, month)
                if snapshot:
                    data["snapshot"] = snapshot
            result.append(data)
        return result

    @staticmethod
    def _rates(employee: Employee, monthly_salary, daily_rate):
        if employee.type == FIXED and monthly_salary is not None:
            employee.monthly_salary = money(monthly_salary)
        if employee.type == DAILY and daily_rate is not None:
            employee.daily_rate = money(daily_rate)

    def create(self, actor, data) -> Employee:
        name = clean(data.name)
        if not name:
            raise ValidationError("Employee name is required")
        role = clean(data.role)
        if not role:
            raise ValidationError("Employee role is required")
        project_id = policy.project_for_create(actor, data.project_id, "employees")
        if not self.db.query(Project.id).filter(Project.id == project_id).first():
            raise NotFoundError("Project not found")

        employee = Employee(
            project_id=project_id,
            name=name,
            role=role,
            type=data.type.value,
            phone=clean(data.phone),
        )
        self._rates(employee, data.monthly_salary, data.daily_rate)
        self.db.add(employee)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "employees", employee.id,
            description=f"Created employee {employee.name}",
            new_values=employee_to_dict(employee),
        )
        return employee

    def update(self, actor, employee_id: int, data) -> Employee:
        employee = self.get(actor, employee_id)
        old_values = employee_to_dict(employee)
        update = data.model_dump(exclude_unset=True)

        if update.get("name") is not None:
            employee.name = clean(update["name"]) or employee.name
        if update.get("role") is not None:
            employee.role = clean(update["role"]) or employee.role
        if update.get("type") is not None:
            employee.type = data.type.value
        if "phone" in update:
            employee.phone = clean(update["phone"])
        self._rates(employee, update.get("monthly_salary"), update.get("daily_rate"))

        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "employees", employee.id,
            description=f"Updated employee {employee.name}",
            old_values=old_values,
            new_values=employee_to_dict(employee),
        )
        return employee

    def delete(self, actor, employee_id: int):
        employee = self.get(actor, employee_id)
        payments = self.db.query(EmployeePayment).filter(EmployeePayment.employee_id == employee_id).count()
        if payments:
            raise ValidationError(
                f'Cannot delete employee "{employee.name}": {payments} payment record(s) exist. '
                f'Remove or reassign payments first.'
            )

        old_values = employee_to_dict(employee)
        self.db.delete(employee)
        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.DELETE, "employees", employee_id,
            description=f"Deleted employee {old_values['name']}",
            old_values=old_values,
        )


class EmployeeLedgerService:
    def __init__(self, db: Session):
        self.db = db
        self.employees = EmployeeService(db)

    # ==================== PAYABLE ====================

    def _attendance(self, employee_id: int, month: str) -> Optional[EmployeeAttendance]:
        return self.db.query(EmployeeAttendance).filter(
            EmployeeAttendance.employee_id == employee_id,
            EmployeeAttendance.month == month,
        ).first()

    @staticmethod
    def _first_month(employee: Employee) -> Optional[str]:
        return month_of(employee.created_at) if employee.created_at else None

    def payable(self, employee: Employee, month: str, fixed_entries=None, daily_entries=None) -> Decimal:
        """Payable for a month; entries default to the stored attendance"""
        first_month = self._first_month(employee)
        if first_month and month < first_month:
            return ZERO
        if fixed_entries is None or daily_entries is None:
            attendance = self._attendance(employee.id, month)
            days = attendance.days if attendance else []
            if fixed_entries is None:
                fixed_entries = [d for d in days if d.entry_type == "fixed"]
            if daily_entries is None:
                daily_entries = [d for d in days if d.entry_type == "daily"]
        if employee.type == FIXED:
            return fixed_payable(employee.monthly_salary, month, fixed_entries)
        return daily_payable(employee.daily_rate, daily_entries)

    def month_paid(self, employee_id: int, month: str, exclude_id: Optional[int] = None) -> Decimal:
        query = self.db.query(func.sum(EmployeePayment.amount)).filter(
            EmployeePayment.employee_id == employee_id,
            EmployeePayment.month == month,
        )
        if exclude_id:
            query = query.filter(EmployeePayment.id != exclude_id)
        return money(query.scalar())

    def attendance_summary(self, employee: Employee, month: str) -> Dict:
        attendance = self._attendance(employee.id, month)
        days = attendance.days if attendance else []
        if employee.type == FIXED:
            statuses = {d.day: d.status for d in days if d.entry_type == "fixed"}
            counts = {"present": 0, "absent": 0, "paid_leave": 0, "unpaid_leave": 0}
            for day in range(1, days_in_month(month) + 1):
                counts[statuses.get(day, "present")] += 1
            return {"type": FIXED, **counts}

        present = [d for d in days if d.entry_type == "daily" and d.status == "present"]
        worked_days = sum(
            (min(max(money(d.hours_worked), ZERO), FULL_DAY_HOURS) / FULL_DAY_HOURS for d in present), ZERO
        )
        overtime = sum((money(d.overtime_hours) for d in present), ZERO)
        return {"type": DAILY, "worked_days": to_float(worked_days), "overtime_hours": to_float(overtime)}

    def snapshot(self, employee: Employee, month: str, with_attendance: bool = True) -> Optional[Dict]:
        """Payable, paid, remaining and status for a month; None before the employee existed"""
        first_month = self._first_month(employee)
        if first_month and month < first_month:
            return None
        payable = self.payable(employee, month)
        paid = self.month_paid(employee.id, month)
        remaining = max(ZERO, payable - paid)
        settled_on = self.db.query(func.max(EmployeePayment.date)).filter(
            EmployeePayment.employee_id == employee.id,
            EmployeePayment.month == month,
            EmployeePayment.type != EmployeePaymentType.ADVANCE.value,
        ).scalar()
        snapshot = {
            "payable": to_float(payable),
            "paid": to_float(paid),
            "remaining": to_float(remaining),
            "payment_status": payment_status(payable, paid, remaining, settled_on, month_range(month)[1]),
        }
        if with_attendance:
            snapshot["attendance"] = self.attendance_summary(employee, month)
        return snapshot

    def totals(self, employee: Employee, today: Optional[date] = None) -> Dict[str, float]:
        """All-time paid, and dues summed over every month up to the current one"""
        current_month = month_of(today or date.today())
        first_month = self._first_month(employee) or current_month
        total_paid = money(self.db.query(func.sum(EmployeePayment.amount)).filter(
            EmployeePayment.employee_id == employee.id
        ).scalar())

        months = set(_months_between(first_month, current_month))
        months.update(m for (m,) in self.db.query(EmployeePayment.month).filter(
            EmployeePayment.employee_id == employee.id).distinct())
        months.update(m for (m,) in self.db.query(EmployeeAttendance.month).filter(
            EmployeeAttendance.employee_id == employee.id).distinct())

        total_due = ZERO
        for month in sorted(m for m in months if first_month <= m <= current_month):
            total_due += max(ZERO, self.payable(employee, month) - self.month_paid(employee.id, month))
        return {"total_paid": to_float(total_paid), "total_due": to_float(total_due)}

    # ==================== LEDGER ====================

    def get_ledger(self, actor, employee_id: int, month: Optional[str] = None,
                   page: Optional[int] = None, page_size: Optional[int] = None) -> Dict:
        employee = self.employees.get(actor, employee_id)
        query = self.db.query(EmployeePayment).filter(EmployeePayment.employee_id == employee_id)

        total = query.count()
        page, page_size = page_bounds(page, page_size)
        payments = query.order_by(
            EmployeePayment.date.desc(), EmployeePayment.month.desc(), EmployeePayment.id.desc()
        ).offset((page - 1) * page_size).limit(page_size).all()

        result = {
            "employee": employee_to_dict(employee),
            "payments": [employee_payment_to_dict(p) for p in payments],
            "total": total,
            "page": page,
            "page_size": page_size,
        }
        result.update(self.totals(employee))
        if month:
            month_range(month)
            result["snapshot"] = self.snapshot(employee, month, with_attendance=False)
        return result

    # ==================== ATTENDANCE ====================

    def get_attendance(self, actor, employee_id: int, month: str) -> Dict:
        self.employees.get(actor, employee_id)
        month_range(month)
        return attendance_to_dict(month, self._attendance(employee_id, month))

    def put_attendance(self, actor, employee_id: int, data) -> Dict:
        employee = self.employees.get(actor, employee_id, lock=True)
        month = data.month
        attendance = self._attendance(employee_id, month)
        stored = attendance.days if attendance else []

        fixed = data.fixed_entries if data.fixed_entries is not None \
            else [d for d in stored if d.entry_type == "fixed"]
        daily = data.daily_entries if data.daily_entries is not None \
            else [d for d in stored if d.entry_type == "daily"]
        for entries in (data.fixed_entries, data.daily_entries):
            if entries and len({e.day for e in entries}) != len(entries):
                raise ValidationError("Each day may appear only once in an attendance sheet")
            if entries and max(e.day for e in entries) > days_in_month(month):
                raise ValidationError(f"Day is out of range for {month}")

        new_payable = self.payable(employee, month, fixed_entries=fixed, daily_entries=daily)
        paid = self.month_paid(employee_id, month)
        if paid > new_payable:
            raise ValidationError(
                f"Cannot save attendance: salary for {month} has already been paid ({paid:,.2f}). "
                f"This change would reduce Total Payable to {new_payable:,.2f}, which would be less than Paid. "
                f"Please record an adjustment (e.g. refund or correction) before changing attendance."
            )

        if not attendance:
            attendance = EmployeeAttendance(employee_id=employee_id, month=month)
            self.db.add(attendance)
        old_values = attendance_to_dict(month, attendance) if attendance.id else None

        replaced = set()
        if data.fixed_entries is not None:
            replaced.add("fixed")
        if data.daily_entries is not None:
            replaced.add("daily")
        days = [d for d in attendance.days if d.entry_type not in replaced]
        for entry in data.fixed_entries or []:
            days.append(AttendanceDay(entry_type="fixed", day=entry.day, status=entry.status.value))
        for entry in data.daily_entries or []:
            days.append(AttendanceDay(
                entry_type="daily",
                day=entry.day,
                status=entry.status.value,
                hours_worked=money(entry.hours_worked),
                overtime_hours=money(entry.overtime_hours),
                notes=clean(entry.notes),
            ))
        attendance.days = days
        self.db.flush()

        result = attendance_to_dict(month, attendance)
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "employee_attendance", attendance.id,
            description=f"Saved attendance for {employee.name} ({month})",
            old_values=old_values,
            new_values=result,
        )
        return result

    # ==================== PAYMENTS ====================

    def _check_payment(self, employee: Employee, month: str, amount: Decimal, exclude_id: Optional[int] = None,
                       label: str = "this month"):
        payable = self.payable(employee, month)
        if payable <= 0:
            raise ValidationError(
                "No dues for this month. The employee did not exist or has no payable amount for the selected month."
            )
        paid = self.month_paid(employee.id, month, exclude_id=exclude_id)
        if paid + amount > payable:
            max_allowed = max(ZERO, payable - paid)
            raise ValidationError(
                f"Total paid for {label} would exceed payable ({payable:,.2f}). Maximum allowed: {max_allowed:,.2f}."
            )

    def create_payment(self, actor, employee_id: int, data) -> EmployeePayment:
        employee = self.employees.get(actor, employee_id, lock=True)
        amount = money(data.amount)
        self._check_payment(employee, data.month, amount)

        payment = EmployeePayment(
            employee_id=employee.id,
            month=data.month,
            date=data.date,
            amount=amount,
            type=data.type.value,
            payment_method=data.payment_method.value,
            remarks=clean(data.remarks),
        )
        self.db.add(payment)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "employee_payments", payment.id,
            description=f"Payment recorded: {employee.name} - {payment.type} {amount} ({payment.month})",
            new_values=employee_payment_to_dict(payment),
        )
        return payment

    def _get_payment(self, actor, payment_id: int):
        payment = self.db.query(EmployeePayment).filter(EmployeePayment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Payment not found")
        employee = self.employees.get_by_id(payment.employee_id, lock=True)
        if not policy.can_access_project(actor, employee.project_id):
            raise AccessDeniedError("Payment not found")
        return payment, employee

    def update_payment(self, actor, payment_id: int, data) -> EmployeePayment:
        payment, employee = self._get_payment(actor, payment_id)
        old_values = employee_payment_to_dict(payment)
        update = data.model_dump(exclude_unset=True)

        amount = money(update["amount"]) if update.get("amount") is not None else money(payment.amount)
        month = update.get("month") or payment.month
        if month == payment.month:
            self._check_payment(employee, month, amount, exclude_id=payment.id)
        else:
            self._check_payment(employee, month, amount, exclude_id=payment.id, label="the new month")

        payment.amount = amount
        payment.month = month
        if update.get("date") is not None:
            payment.date = update["date"]
        if update.get("type") is not None:
            payment.type = data.type.value
        if update.get("payment_method") is not None:
            payment.payment_method = data.payment_method.value
        if "remarks" in update:
            payment.remarks = clean(update["remarks"])

        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "employee_payments", payment.id,
            description=f"Updated payment: {employee.name} {payment.amount} ({payment.month})",
            old_values=old_values,
            new_values=employee_payment_to_dict(payment),
        )
        return payment

    def delete_payment(self, actor, payment_id: int):
        payment, employee = self._get_payment(actor, payment_id)
        old_values = employee_payment_to_dict(payment)
        self.db.delete(payment)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.DELETE, "employee_payments", payment_id,
            description=f"Deleted payment: {employee.name} {old_values['amount']} ({old_values['month']})",
            old_values=old_values,
        )


def _months_between(first: str, last: str) -> List[str]:
    months = []
    year, month = int(first[:4]), int(first[5:7])
    while f"{year:04d}-{month:02d}" <= last:
        months.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            month, year = 1, year + 1
    return months


def employee_to_dict(employee: Employee) -> Dict:
    return {
        "id": employee.id,
        "project_id": employee.project_id,
        "project_name": employee.project.name if employee.project else None,
        "name": employee.name,
        "role": employee.role,
        "type": employee.type,
        "monthly_salary": to_float(employee.monthly_salary) if employee.monthly_salary is not None else None,
        "daily_rate": to_float(employee.daily_rate) if employee.daily_rate is not None else None,
        "phone": employee.phone,
        "created_at": iso(employee.created_at),
    }


def employee_payment_to_dict(payment: EmployeePayment) -> Dict:
    return {
        "id": payment.id,
        "employee_id": payment.employee_id,
        "month": payment.month,
        "date": iso(payment.date),
        "amount": to_float(payment.amount),
        "type": payment.type,
        "payment_method": payment.payment_method,
        "remarks": payment.remarks,
    }


def attendance_to_dict(month: str, attendance: Optional[EmployeeAttendance]) -> Dict:
    days = sorted(attendance.days, key=lambda d: d.day) if attendance else []
    return {
        "month": month,
        "fixed_entries": [
            {"day": d.day, "status": d.status} for d in days if d.entry_type == "fixed"
        ],
        "daily_entries": [
            {
                "day": d.day,
                "status": d.status,
                "hours_worked": to_float(d.hours_worked),
                "overtime_hours": to_float(d.overtime_hours),
                "notes": d.notes,
            }
            for d in days if d.entry_type == "daily"
        ],
    }
