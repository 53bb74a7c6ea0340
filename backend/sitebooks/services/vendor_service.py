"""
Vendor Service - suppliers, their purchases and payments
"""
from typing import Optional, List, Dict
from decimal import Decimal
from sqlalchemy.orm import Session, joinedload
import logging

from sitebooks.models import Vendor, VendorPayment, ItemLedgerEntry, Project, PaymentMethod, ZERO
from sitebooks.core.errors import NotFoundError, AccessDeniedError, ValidationError
from sitebooks.core import policy
from sitebooks.services.allocation import pool_fifo
from sitebooks.services.audit_service import AuditService, AuditAction
from sitebooks.services.helpers import money, to_float, iso, clean, paginate

logger = logging.getLogger(__name__)


class VendorService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, vendor_id: int, lock: bool = False) -> Optional[Vendor]:
        query = self.db.query(Vendor).filter(Vendor.id == vendor_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get(self, actor, vendor_id: int, lock: bool = False) -> Vendor:
        vendor = self.get_by_id(vendor_id, lock=lock)
        if not vendor:
            raise NotFoundError("Vendor not found")
        policy.ensure_project_access(actor, vendor.project_id, "Vendor not found or access denied")
        return vendor

    def list(self, actor, project_id: Optional[int] = None) -> List[Vendor]:
        project_id = policy.scoped_project_id(actor, project_id)
        if policy.is_site_manager(actor) and not project_id:
            return []
        query = self.db.query(Vendor)
        if project_id:
            query = query.filter(Vendor.project_id == project_id)
        return query.order_by(Vendor.name).all()

    def create(self, actor, data) -> Vendor:
        name = clean(data.name)
        if not name:
            raise ValidationError("Vendor name is required")
        project_id = policy.project_for_create(actor, data.project_id, "vendors")
        if not self.db.query(Project.id).filter(Project.id == project_id).first():
            raise NotFoundError("Project not found")

        vendor = Vendor(
            project_id=project_id,
            name=name,
            phone=clean(data.phone),
            description=clean(data.description),
            total_billed=ZERO,
            total_paid=ZERO,
            remaining=ZERO,
        )
        self.db.add(vendor)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "vendors", vendor.id,
            description=f"Created vendor {vendor.name}",
            new_values=vendor_to_dict(vendor),
        )
        return vendor

    def update(self, actor, vendor_id: int, data) -> Vendor:
        vendor = self.get(actor, vendor_id)
        old_values = vendor_to_dict(vendor)
        update = data.model_dump(exclude_unset=True)

        if "name" in update:
            name = clean(update["name"])
            if not name:
                raise ValidationError("Vendor name is required")
            vendor.name = name
        if "phone" in update:
            vendor.phone = clean(update["phone"])
        if "description" in update:
            vendor.description = clean(update["description"])

        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "vendors", vendor.id,
            description=f"Updated vendor {vendor.name}",
            old_values=old_values,
            new_values=vendor_to_dict(vendor),
        )
        return vendor

    def delete(self, actor, vendor_id: int):
        vendor = self.get(actor, vendor_id, lock=True)
        if money(vendor.remaining) > 0:
            raise ValidationError(
                f'Cannot delete vendor "{vendor.name}" because they have remaining amount of '
                f'{money(vendor.remaining):,.2f}. Clear the outstanding balance first.'
            )
        purchases = self.db.query(ItemLedgerEntry).filter(ItemLedgerEntry.vendor_id == vendor_id).count()
        if purchases:
            raise ValidationError(
                f'Cannot delete vendor "{vendor.name}": referenced in {purchases} purchase entr'
                f'{"y" if purchases == 1 else "ies"}. Remove them first.'
            )

        old_values = vendor_to_dict(vendor)
        self.db.delete(vendor)
        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.DELETE, "vendors", vendor_id,
            description=f"Deleted vendor {old_values['name']}",
            old_values=old_values,
        )


class VendorLedgerService:
    """
    Purchases (item ledger rows) and direct payments for one vendor.

    Direct payments are not allocated to purchases in storage. The ledger
    pools them and spreads the pool over purchases oldest first.
    """

    def __init__(self, db: Session):
        self.db = db
        self.vendors = VendorService(db)

    def _load(self, vendor_id: int):
        purchases = self.db.query(ItemLedgerEntry).options(
            joinedload(ItemLedgerEntry.item)
        ).filter(ItemLedgerEntry.vendor_id == vendor_id).all()
        payments = self.db.query(VendorPayment).filter(VendorPayment.vendor_id == vendor_id).all()
        return purchases, payments

    def summary(self, vendor_id: int) -> Dict[str, Decimal]:
        purchases, payments = self._load(vendor_id)
        return self._summarize(purchases, payments)

    @staticmethod
    def _summarize(purchases, payments) -> Dict[str, Decimal]:
        total_billed = sum((money(p.total_price) for p in purchases), ZERO)
        paid_on_purchase = sum((money(p.paid_amount) for p in purchases), ZERO)
        paid_direct = sum((money(p.amount) for p in payments), ZERO)
        total_paid = paid_on_purchase + paid_direct
        return {
            "total_billed": total_billed,
            "total_paid": total_paid,
            "remaining": total_billed - total_paid,
            "paid_direct": paid_direct,
        }

    def get_ledger(self, actor, vendor_id: int, page: Optional[int] = None,
                   page_size: Optional[int] = None) -> Dict:
        vendor = self.vendors.get(actor, vendor_id)
        purchases, payments = self._load(vendor_id)
        summary = self._summarize(purchases, payments)
        allocation = pool_fifo(purchases, summary["paid_direct"])

        rows = []
        for purchase in purchases:
            paid, remaining = allocation[purchase.id]
            rows.append({
                "type": "purchase",
                "id": purchase.id,
                "date": purchase.date,
                "item_id": purchase.item_id,
                "item_name": purchase.item.name if purchase.item else None,
                "quantity": purchase.quantity,
                "unit_price": to_float(purchase.unit_price),
                "total_price": to_float(purchase.total_price),
                "paid_amount": to_float(paid),
                "remaining": to_float(remaining),
                "bilty_number": purchase.bilty_number,
                "vehicle_number": purchase.vehicle_number,
                "remarks": purchase.remarks,
            })
        for payment in payments:
            rows.append({
                "type": "payment",
                "id": payment.id,
                "date": payment.date,
                "amount": to_float(payment.amount),
                "payment_method": payment.payment_method,
                "reference_id": payment.reference_id,
                "remarks": payment.remarks,
            })

        rows.sort(key=lambda r: r["id"], reverse=True)
        rows.sort(key=lambda r: r["date"], reverse=True)

        page_rows, total, page, page_size = paginate(rows, page, page_size)
        for row in page_rows:
            row["date"] = iso(row["date"])

        return {
            "vendor": vendor_to_dict(vendor),
            "rows": page_rows,
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_billed": to_float(summary["total_billed"]),
            "total_paid": to_float(summary["total_paid"]),
            "remaining": to_float(summary["remaining"]),
        }

    def create_payment(self, actor, vendor_id: int, data) -> VendorPayment:
        vendor = self.vendors.get_by_id(vendor_id, lock=True)
        if not vendor:
            raise NotFoundError("Vendor not found")
        if not policy.can_access_project(actor, vendor.project_id):
            raise AccessDeniedError("You can only record payments for vendors in your assigned project")

        amount = money(data.amount)
        remaining = self.summary(vendor.id)["remaining"]
        if amount > remaining:
            raise ValidationError(
                f"Payment amount {amount:,.2f} exceeds vendor remaining balance of {remaining:,.2f}"
            )

        payment = VendorPayment(
            vendor_id=vendor.id,
            date=data.date,
            amount=amount,
            payment_method=(data.payment_method.value if data.payment_method else PaymentMethod.CASH.value),
            reference_id=clean(data.reference_id),
            remarks=clean(data.remarks),
        )
        self.db.add(payment)
        vendor.total_paid = money(vendor.total_paid) + amount
        vendor.remaining = money(vendor.remaining) - amount
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "vendor_payments", payment.id,
            description=f"Vendor payment: {vendor.name} {amount}",
            new_values=vendor_payment_to_dict(payment),
        )
        return payment

    def delete_payment(self, actor, payment_id: int):
        payment = self.db.query(VendorPayment).filter(VendorPayment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Payment not found")
        vendor = self.vendors.get(actor, payment.vendor_id, lock=True)

        old_values = vendor_payment_to_dict(payment)
        amount = money(payment.amount)
        vendor.total_paid = money(vendor.total_paid) - amount
        vendor.remaining = money(vendor.remaining) + amount
        self.db.delete(payment)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.DELETE, "vendor_payments", payment_id,
            description=f"Deleted vendor payment: {vendor.name} {amount}",
            old_values=old_values,
        )


def vendor_to_dict(vendor: Vendor) -> Dict:
    return {
        "id": vendor.id,
        "project_id": vendor.project_id,
        "name": vendor.name,
        "phone": vendor.phone,
        "description": vendor.description,
        "total_billed": to_float(vendor.total_billed),
        "total_paid": to_float(vendor.total_paid),
        "remaining": to_float(vendor.remaining),
        "created_at": iso(vendor.created_at),
    }


def vendor_payment_to_dict(payment: VendorPayment) -> Dict:
    return {
        "id": payment.id,
        "vendor_id": payment.vendor_id,
        "date": iso(payment.date),
        "amount": to_float(payment.amount),
        "payment_method": payment.payment_method,
        "reference_id": payment.reference_id,
        "remarks": payment.remarks,
    }
