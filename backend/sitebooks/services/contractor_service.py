"""
Contractor Service - contractors, work entries and FIFO-allocated payments
"""
from typing import Optional, List, Dict, Tuple
from decimal import Decimal
from sqlalchemy.orm import Session
from sqlalchemy import func
import logging

from sitebooks.models import (
    Contractor, ContractorEntry, ContractorPayment, ContractorPaymentAllocation,
    Project, PaymentMethod
)
from sitebooks.core.errors import NotFoundError, AccessDeniedError, ValidationError
from sitebooks.core import policy
from sitebooks.services.allocation import rebuild_allocations, allocated_by_entry
from sitebooks.services.audit_service import AuditService, AuditAction
from sitebooks.services.helpers import money, to_float, iso, clean, paginate, month_range

logger = logging.getLogger(__name__)


class ContractorService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, contractor_id: int, lock: bool = False) -> Optional[Contractor]:
        query = self.db.query(Contractor).filter(Contractor.id == contractor_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get(self, actor, contractor_id: int, lock: bool = False) -> Contractor:
        contractor = self.get_by_id(contractor_id, lock=lock)
        if not contractor:
            raise NotFoundError("Contractor not found")
        policy.ensure_project_access(actor, contractor.project_id, "Contractor not found or access denied")
        return contractor

    def totals(self, contractor_id: int) -> Tuple[Decimal, Decimal, Decimal]:
        """(total_amount, total_paid, remaining) over all time"""
        total_amount = self.db.query(func.sum(ContractorEntry.amount)).filter(
            ContractorEntry.contractor_id == contractor_id
        ).scalar()
        total_paid = self.db.query(func.sum(ContractorPayment.amount)).filter(
            ContractorPayment.contractor_id == contractor_id
        ).scalar()
        total_amount, total_paid = money(total_amount), money(total_paid)
        return total_amount, total_paid, total_amount - total_paid

    def list(self, actor, project_id: Optional[int] = None) -> List[Dict]:
        project_id = policy.scoped_project_id(actor, project_id)
        if policy.is_site_manager(actor) and not project_id:
            return []
        query = self.db.query(Contractor)
        if project_id:
            query = query.filter(Contractor.project_id == project_id)

        result = []
        for contractor in query.order_by(Contractor.name).all():
            result.append(contractor_to_dict(contractor, self.totals(contractor.id)))
        return result

    def create(self, actor, data) -> Contractor:
        name = clean(data.name)
        if not name:
            raise ValidationError("Contractor name is required")
        project_id = policy.project_for_create(actor, data.project_id, "contractors")
        if not self.db.query(Project.id).filter(Project.id == project_id).first():
            raise NotFoundError("Project not found")

        contractor = Contractor(
            project_id=project_id,
            name=name,
            phone=clean(data.phone),
            description=clean(data.description),
        )
        self.db.add(contractor)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "contractors", contractor.id,
            description=f"Created contractor {contractor.name}",
            new_values=contractor_to_dict(contractor),
        )
        return contractor

    def update(self, actor, contractor_id: int, data) -> Contractor:
        contractor = self.get(actor, contractor_id)
        old_values = contractor_to_dict(contractor)
        update = data.model_dump(exclude_unset=True)

        if "name" in update:
            name = clean(update["name"])
            if not name:
                raise ValidationError("Contractor name is required")
            contractor.name = name
        if "phone" in update:
            contractor.phone = clean(update["phone"])
        if "description" in update:
            contractor.description = clean(update["description"])

        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "contractors", contractor.id,
            description=f"Updated contractor {contractor.name}",
            old_values=old_values,
            new_values=contractor_to_dict(contractor),
        )
        return contractor

    def delete(self, actor, contractor_id: int):
        contractor = self.get(actor, contractor_id, lock=True)
        _, _, remaining = self.totals(contractor_id)
        if remaining > 0:
            raise ValidationError(
                f'Cannot delete contractor "{contractor.name}" because they have remaining amount of '
                f'{remaining:,.2f}. Clear the outstanding balance first.'
            )

        old_values = contractor_to_dict(contractor)
        self.db.delete(contractor)
        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.DELETE, "contractors", contractor_id,
            description=f"Deleted contractor {old_values['name']}",
            old_values=old_values,
        )


class ContractorLedgerService:
    """Entries, payments and the FIFO allocations between them"""

    def __init__(self, db: Session):
        self.db = db
        self.contractors = ContractorService(db)

    def _rebuild(self, contractor_id: int):
        rebuild_allocations(
            self.db, ContractorPaymentAllocation, "contractor_id", contractor_id,
            ContractorEntry, ContractorPayment,
        )

    def get_ledger(
        self,
        actor,
        project_id: Optional[int] = None,
        month: Optional[str] = None,
        contractor_id: Optional[int] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> Dict:
        """
        Ledger rows for a project and month, optionally for one contractor.

        Without a month the ledger covers all time, which needs a contractor.
        """
        if not month and not contractor_id:
            raise ValidationError("project_id and month are required")
        if not project_id:
            if not contractor_id:
                raise ValidationError("project_id and month are required")
            contractor = self.contractors.get_by_id(contractor_id)
            if not contractor:
                raise NotFoundError("Contractor not found")
            project_id = contractor.project_id

        empty = {
            "rows": [], "total": 0, "total_amount": 0.0, "total_paid": 0.0, "remaining": 0.0,
            "project_id": project_id, "month": month,
        }
        if not policy.can_access_project(actor, project_id):
            return empty

        names = dict(self.db.query(Contractor.id, Contractor.name).filter(Contractor.project_id == project_id).all())

        entry_query = self.db.query(ContractorEntry).filter(ContractorEntry.project_id == project_id)
        payment_query = self.db.query(ContractorPayment)
        if contractor_id:
            entry_query = entry_query.filter(ContractorEntry.contractor_id == contractor_id)
            payment_query = payment_query.filter(ContractorPayment.contractor_id == contractor_id)
        else:
            payment_query = payment_query.filter(ContractorPayment.contractor_id.in_(list(names)))
        if month:
            start, end = month_range(month)
            entry_query = entry_query.filter(ContractorEntry.date >= start, ContractorEntry.date <= end)
            payment_query = payment_query.filter(ContractorPayment.date >= start, ContractorPayment.date <= end)

        entries = entry_query.all()
        payments = payment_query.all()
        paid_by_entry = allocated_by_entry(self.db, ContractorPaymentAllocation, [e.id for e in entries])

        rows = []
        for entry in entries:
            paid = paid_by_entry.get(entry.id, Decimal("0.00"))
            rows.append({
                "type": "entry",
                "id": entry.id,
                "contractor_id": entry.contractor_id,
                "contractor_name": names.get(entry.contractor_id),
                "date": entry.date,
                "amount": to_float(entry.amount),
                "paid_amount": to_float(paid),
                "remaining": to_float(money(entry.amount) - paid),
                "remarks": entry.remarks,
            })
        for payment in payments:
            rows.append({
                "type": "payment",
                "id": payment.id,
                "contractor_id": payment.contractor_id,
                "contractor_name": names.get(payment.contractor_id),
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

        total_amount = sum((money(e.amount) for e in entries), Decimal("0.00"))
        total_paid = sum(paid_by_entry.values(), Decimal("0.00"))

        page_rows, total, page, page_size = paginate(rows, page, page_size)
        for row in page_rows:
            row["date"] = iso(row["date"])

        return {
            "rows": page_rows,
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_amount": to_float(total_amount),
            "total_paid": to_float(total_paid),
            "remaining": to_float(total_amount - total_paid),
            "project_id": project_id,
            "month": month,
        }

    def create_entry(self, actor, data) -> ContractorEntry:
        contractor = self.contractors.get_by_id(data.contractor_id, lock=True)
        if not contractor:
            raise NotFoundError("Contractor not found")
        if data.project_id and data.project_id != contractor.project_id:
            raise ValidationError("Contractor does not belong to this project")
        if not policy.can_access_project(actor, contractor.project_id):
            raise AccessDeniedError("You can only add entries for your assigned project")

        entry = ContractorEntry(
            contractor_id=contractor.id,
            project_id=contractor.project_id,
            date=data.date,
            amount=money(data.amount),
            remarks=clean(data.remarks),
        )
        self.db.add(entry)
        self.db.flush()
        self._rebuild(contractor.id)

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "contractor_entries", entry.id,
            description=f"Contractor entry: {contractor.name} {entry.amount}",
            new_values=contractor_entry_to_dict(entry),
        )
        return entry

    def create_payment(self, actor, contractor_id: int, data) -> ContractorPayment:
        contractor = self.contractors.get_by_id(contractor_id, lock=True)
        if not contractor:
            raise NotFoundError("Contractor not found")
        if not policy.can_access_project(actor, contractor.project_id):
            raise AccessDeniedError("You can only record payments for contractors in your assigned project")

        amount = money(data.amount)
        _, _, remaining = self.contractors.totals(contractor.id)
        if amount > remaining:
            raise ValidationError(
                f"This payment would overpay the contractor. Remaining balance is {remaining:,.2f}"
            )

        payment = ContractorPayment(
            contractor_id=contractor.id,
            date=data.date,
            amount=amount,
            payment_method=(data.payment_method.value if data.payment_method else PaymentMethod.CASH.value),
            reference_id=clean(data.reference_id),
            remarks=clean(data.remarks),
        )
        self.db.add(payment)
        self.db.flush()
        self._rebuild(contractor.id)

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "contractor_payments", payment.id,
            description=f"Contractor payment: {contractor.name} {amount}",
            new_values=contractor_payment_to_dict(payment),
        )
        return payment

    def delete_entry(self, actor, entry_id: int):
        entry = self.db.query(ContractorEntry).filter(ContractorEntry.id == entry_id).first()
        if not entry:
            raise NotFoundError("Entry not found")
        contractor = self.contractors.get(actor, entry.contractor_id, lock=True)

        _, _, remaining = self.contractors.totals(contractor.id)
        if remaining < money(entry.amount):
            raise ValidationError(
                f"This update would overpay the contractor. Cannot delete this entry; remaining balance "
                f"({remaining:,.2f}) is less than entry amount ({money(entry.amount):,.2f})."
            )

        old_values = contractor_entry_to_dict(entry)
        self.db.delete(entry)
        self.db.flush()
        self._rebuild(contractor.id)

        AuditService(self.db).log(
            actor, AuditAction.DELETE, "contractor_entries", entry_id,
            description=f"Deleted contractor entry: {contractor.name} {old_values['amount']}",
            old_values=old_values,
        )

    def delete_payment(self, actor, payment_id: int):
        payment = self.db.query(ContractorPayment).filter(ContractorPayment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Payment not found")
        contractor = self.contractors.get(actor, payment.contractor_id, lock=True)

        old_values = contractor_payment_to_dict(payment)
        self.db.query(ContractorPaymentAllocation).filter(
            ContractorPaymentAllocation.payment_id == payment_id
        ).delete(synchronize_session=False)
        self.db.delete(payment)
        self.db.flush()
        self._rebuild(contractor.id)

        AuditService(self.db).log(
            actor, AuditAction.DELETE, "contractor_payments", payment_id,
            description=f"Deleted contractor payment: {contractor.name} {old_values['amount']}",
            old_values=old_values,
        )


def contractor_to_dict(contractor: Contractor, totals: Optional[Tuple] = None) -> Dict:
    data = {
        "id": contractor.id,
        "project_id": contractor.project_id,
        "name": contractor.name,
        "phone": contractor.phone,
        "description": contractor.description,
        "created_at": iso(contractor.created_at),
    }
    if totals is not None:
        total_amount, total_paid, remaining = totals
        data.update({
            "total_amount": to_float(total_amount),
            "total_paid": to_float(total_paid),
            "remaining": to_float(remaining),
        })
    return data


def contractor_entry_to_dict(entry: ContractorEntry) -> Dict:
    return {
        "id": entry.id,
        "contractor_id": entry.contractor_id,
        "project_id": entry.project_id,
        "date": iso(entry.date),
        "amount": to_float(entry.amount),
        "remarks": entry.remarks,
    }


def contractor_payment_to_dict(payment: ContractorPayment) -> Dict:
    return {
        "id": payment.id,
        "contractor_id": payment.contractor_id,
        "date": iso(payment.date),
        "amount": to_float(payment.amount),
        "payment_method": payment.payment_method,
        "reference_id": payment.reference_id,
        "remarks": payment.remarks,
    }
