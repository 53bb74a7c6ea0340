"""
Machine Service - machines billed by the hour, with FIFO-allocated payments
"""
from typing import Optional, Dict
from decimal import Decimal
from sqlalchemy.orm import Session
from sqlalchemy import func
import logging

from sitebooks.models import (
    Machine, MachineEntry, MachinePayment, MachinePaymentAllocation, Project
)
from sitebooks.core.errors import NotFoundError, AccessDeniedError, ValidationError
from sitebooks.core import policy
from sitebooks.services.allocation import rebuild_allocations, allocated_by_entry
from sitebooks.services.audit_service import AuditService, AuditAction
from sitebooks.services.helpers import money, to_float, iso, clean, paginate, month_range

logger = logging.getLogger(__name__)


class MachineService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, machine_id: int, lock: bool = False) -> Optional[Machine]:
        query = self.db.query(Machine).filter(Machine.id == machine_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get(self, actor, machine_id: int, lock: bool = False) -> Machine:
        machine = self.get_by_id(machine_id, lock=lock)
        if not machine:
            raise NotFoundError("Machine not found")
        policy.ensure_project_access(actor, machine.project_id, "Machine not found or access denied")
        return machine

    def totals(self, machine_id: int) -> Dict[str, Decimal]:
        hours, cost = self.db.query(
            func.sum(MachineEntry.hours_worked), func.sum(MachineEntry.total_cost)
        ).filter(MachineEntry.machine_id == machine_id).one()
        paid = self.db.query(func.sum(MachinePayment.amount)).filter(
            MachinePayment.machine_id == machine_id
        ).scalar()
        cost, paid = money(cost), money(paid)
        return {
            "total_hours": money(hours),
            "total_cost": cost,
            "total_paid": paid,
            "remaining": cost - paid,
        }

    def list(self, actor, project_id: Optional[int] = None, page: Optional[int] = None,
             page_size: Optional[int] = None) -> Dict:
        project_id = policy.scoped_project_id(actor, project_id)
        if policy.is_site_manager(actor) and not project_id:
            return {"items": [], "total": 0}
        query = self.db.query(Machine)
        if project_id:
            query = query.filter(Machine.project_id == project_id)

        machines, total, page, page_size = paginate(query.order_by(Machine.name).all(), page, page_size)
        return {
            "items": [machine_to_dict(m, self.totals(m.id)) for m in machines],
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    def create(self, actor, data) -> Machine:
        name = clean(data.name)
        if not name:
            raise ValidationError("Machine name is required")
        if data.hourly_rate is None or data.hourly_rate < 0:
            raise ValidationError("Hourly rate must be a non-negative number")
        project_id = policy.project_for_create(actor, data.project_id, "machines")
        if not self.db.query(Project.id).filter(Project.id == project_id).first():
            raise ValidationError("Valid project is required")

        machine = Machine(
            project_id=project_id,
            name=name,
            ownership=data.ownership.value,
            hourly_rate=money(data.hourly_rate),
        )
        self.db.add(machine)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "machinery", machine.id,
            description=f"Created machine {machine.name}",
            new_values=machine_to_dict(machine),
        )
        return machine

    def update(self, actor, machine_id: int, data) -> Machine:
        """Only name and hourly rate change; existing entries keep their cost"""
        machine = self.get(actor, machine_id)
        old_values = machine_to_dict(machine)
        update = data.model_dump(exclude_unset=True)

        if "name" in update:
            name = clean(update["name"])
            if not name:
                raise ValidationError("Machine name cannot be empty")
            machine.name = name
        if update.get("hourly_rate") is not None:
            machine.hourly_rate = money(update["hourly_rate"])

        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "machinery", machine.id,
            description=f"Updated machine {machine.name}",
            old_values=old_values,
            new_values=machine_to_dict(machine),
        )
        return machine

    def delete(self, actor, machine_id: int):
        machine = self.get(actor, machine_id, lock=True)
        remaining = self.totals(machine_id)["remaining"]
        if remaining > 0:
            raise ValidationError(
                f'Cannot delete machine "{machine.name}": remaining dues of {remaining:,.2f}. Clear the dues first.'
            )

        old_values = machine_to_dict(machine)
        self.db.delete(machine)
        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.DELETE, "machinery", machine_id,
            description=f"Deleted machine {old_values['name']}",
            old_values=old_values,
        )


class MachineLedgerService:
    def __init__(self, db: Session):
        self.db = db
        self.machines = MachineService(db)

    def _rebuild(self, machine_id: int):
        rebuild_allocations(
            self.db, MachinePaymentAllocation, "machine_id", machine_id,
            MachineEntry, MachinePayment,
        )

    def get_ledger(self, actor, machine_id: int, month: Optional[str] = None,
                   page: Optional[int] = None, page_size: Optional[int] = None) -> Dict:
        machine = self.machines.get(actor, machine_id)

        entry_query = self.db.query(MachineEntry).filter(MachineEntry.machine_id == machine_id)
        payment_query = self.db.query(MachinePayment).filter(MachinePayment.machine_id == machine_id)
        if month:
            start, end = month_range(month)
            entry_query = entry_query.filter(MachineEntry.date >= start, MachineEntry.date <= end)
            payment_query = payment_query.filter(MachinePayment.date >= start, MachinePayment.date <= end)
        entries = entry_query.all()
        payments = payment_query.all()

        paid_by_entry = allocated_by_entry(self.db, MachinePaymentAllocation, [e.id for e in entries])

        rows = []
        for entry in entries:
            paid = paid_by_entry.get(entry.id, Decimal("0.00"))
            rows.append({
                "type": "entry",
                "id": entry.id,
                "machine_id": entry.machine_id,
                "date": entry.date,
                "hours_worked": to_float(entry.hours_worked),
                "used_by": entry.used_by,
                "total_cost": to_float(entry.total_cost),
                "paid_amount": to_float(paid),
                "remaining": to_float(money(entry.total_cost) - paid),
                "remarks": entry.remarks,
            })
        for payment in payments:
            rows.append({
                "type": "payment",
                "id": payment.id,
                "machine_id": payment.machine_id,
                "date": payment.date,
                "amount": to_float(payment.amount),
                "payment_method": payment.payment_method,
                "reference_id": payment.reference_id,
                "remarks": payment.remarks,
            })

        # Newest first; entries before payments on the same date
        rows.sort(key=lambda r: r["id"], reverse=True)
        rows.sort(key=lambda r: r["type"] != "entry")
        rows.sort(key=lambda r: r["date"], reverse=True)

        if month:
            total_cost = sum((money(e.total_cost) for e in entries), Decimal("0.00"))
            total_paid = sum(paid_by_entry.values(), Decimal("0.00"))
            totals = {
                "total_hours": sum((money(e.hours_worked) for e in entries), Decimal("0.00")),
                "total_cost": total_cost,
                "total_paid": total_paid,
                "remaining": total_cost - total_paid,
            }
        else:
            totals = self.machines.totals(machine_id)

        page_rows, total, page, page_size = paginate(rows, page, page_size)
        for row in page_rows:
            row["date"] = iso(row["date"])

        return {
            "machine": machine_to_dict(machine),
            "rows": page_rows,
            "total": total,
            "page": page,
            "page_size": page_size,
            **{key: to_float(value) for key, value in totals.items()},
        }

    def create_entry(self, actor, machine_id: int, data) -> MachineEntry:
        machine = self.machines.get_by_id(machine_id, lock=True)
        if not machine:
            raise NotFoundError("Machine not found")
        if not policy.can_access_project(actor, machine.project_id):
            raise AccessDeniedError("You can only add entries for machines in your assigned project")
        hours = Decimal(str(data.hours_worked))
        if hours <= 0:
            raise ValidationError("Hours worked must be a positive number")

        entry = MachineEntry(
            machine_id=machine.id,
            project_id=machine.project_id,
            date=data.date,
            hours_worked=hours,
            used_by=clean(data.used_by),
            total_cost=money(hours * money(machine.hourly_rate)),
            remarks=clean(data.remarks),
        )
        self.db.add(entry)
        self.db.flush()
        self._rebuild(machine.id)

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "machinery_ledger", entry.id,
            description=f"Machine ledger entry: {machine.name} {hours} hrs",
            new_values=machine_entry_to_dict(entry),
        )
        return entry

    def create_payment(self, actor, machine_id: int, data) -> MachinePayment:
        machine = self.machines.get_by_id(machine_id, lock=True)
        if not machine:
            raise NotFoundError("Machine not found")
        if not policy.can_access_project(actor, machine.project_id):
            raise AccessDeniedError("You can only record payments for machines in your assigned project")

        amount = money(data.amount)
        remaining = self.machines.totals(machine.id)["remaining"]
        if amount > remaining:
            raise ValidationError(
                f"This payment would overpay the machine. Remaining balance is {remaining:,.2f}"
            )

        payment = MachinePayment(
            machine_id=machine.id,
            date=data.date,
            amount=amount,
            payment_method=data.payment_method.value if data.payment_method else None,
            reference_id=clean(data.reference_id),
            remarks=clean(data.remarks),
        )
        self.db.add(payment)
        self.db.flush()
        self._rebuild(machine.id)

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "machinery_payments", payment.id,
            description=f"Machine payment: {machine.name} {amount}",
            new_values=machine_payment_to_dict(payment),
        )
        return payment

    def delete_entry(self, actor, entry_id: int):
        entry = self.db.query(MachineEntry).filter(MachineEntry.id == entry_id).first()
        if not entry:
            raise NotFoundError("Entry not found")
        machine = self.machines.get(actor, entry.machine_id, lock=True)

        remaining = self.machines.totals(machine.id)["remaining"]
        if remaining < money(entry.total_cost):
            raise ValidationError(
                f"This update would overpay the machine. Cannot delete this entry; remaining balance "
                f"({remaining:,.2f}) is less than entry cost ({money(entry.total_cost):,.2f})."
            )

        old_values = machine_entry_to_dict(entry)
        self.db.delete(entry)
        self.db.flush()
        self._rebuild(machine.id)

        AuditService(self.db).log(
            actor, AuditAction.DELETE, "machinery_ledger", entry_id,
            description=f"Deleted machine entry: {machine.name}",
            old_values=old_values,
        )

    def delete_payment(self, actor, payment_id: int):
        payment = self.db.query(MachinePayment).filter(MachinePayment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Payment not found")
        machine = self.machines.get(actor, payment.machine_id, lock=True)

        old_values = machine_payment_to_dict(payment)
        self.db.query(MachinePaymentAllocation).filter(
            MachinePaymentAllocation.payment_id == payment_id
        ).delete(synchronize_session=False)
        self.db.delete(payment)
        self.db.flush()
        self._rebuild(machine.id)

        AuditService(self.db).log(
            actor, AuditAction.DELETE, "machinery_payments", payment_id,
            description=f"Deleted machine payment: {machine.name} {old_values['amount']}",
            old_values=old_values,
        )


def machine_to_dict(machine: Machine, totals: Optional[Dict] = None) -> Dict:
    data = {
        "id": machine.id,
        "project_id": machine.project_id,
        "name": machine.name,
        "ownership": machine.ownership,
        "hourly_rate": to_float(machine.hourly_rate),
        "created_at": iso(machine.created_at),
    }
    if totals is not None:
        data.update({key: to_float(value) for key, value in totals.items()})
    return data


def machine_entry_to_dict(entry: MachineEntry) -> Dict:
    return {
        "id": entry.id,
        "machine_id": entry.machine_id,
        "project_id": entry.project_id,
        "date": iso(entry.date),
        "hours_worked": to_float(entry.hours_worked),
        "used_by": entry.used_by,
        "total_cost": to_float(entry.total_cost),
        "remarks": entry.remarks,
    }


def machine_payment_to_dict(payment: MachinePayment) -> Dict:
    return {
        "id": payment.id,
        "machine_id": payment.machine_id,
        "date": iso(payment.date),
        "amount": to_float(payment.amount),
        "payment_method": payment.payment_method,
        "reference_id": payment.reference_id,
        "remarks": payment.remarks,
    }
