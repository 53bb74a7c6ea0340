"""
Inventory Service - consumable items, purchases (item ledger) and stock consumption
"""
from typing import Optional, List, Dict
from decimal import Decimal
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func
import logging

from sitebooks.models import (
    ConsumableItem, ItemLedgerEntry, StockConsumption, StockConsumptionLine,
    Vendor, VendorPayment, Project, ZERO
)
from sitebooks.core.errors import NotFoundError, AccessDeniedError, ValidationError
from sitebooks.core import policy
from sitebooks.services.allocation import pool_fifo
from sitebooks.services.audit_service import AuditService, AuditAction
from sitebooks.services.helpers import money, to_float, iso, clean, name_key, page_bounds

logger = logging.getLogger(__name__)


class ConsumableItemService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, item_id: int, lock: bool = False) -> Optional[ConsumableItem]:
        query = self.db.query(ConsumableItem).filter(ConsumableItem.id == item_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get(self, actor, item_id: int, lock: bool = False) -> ConsumableItem:
        item = self.get_by_id(item_id, lock=lock)
        if not item:
            raise NotFoundError("Item not found")
        policy.ensure_project_access(actor, item.project_id, "Item not found or access denied")
        return item

    def _name_taken(self, project_id: int, name: str, exclude_id: Optional[int] = None) -> bool:
        query = self.db.query(ConsumableItem.id).filter(
            ConsumableItem.project_id == project_id,
            ConsumableItem.name_key == name_key(name),
        )
        if exclude_id:
            query = query.filter(ConsumableItem.id != exclude_id)
        return query.first() is not None

    def list(self, actor, project_id: Optional[int] = None) -> List[Dict]:
        """Items with paid/pending re-derived from each vendor's payment pool"""
        project_id = policy.scoped_project_id(actor, project_id)
        if policy.is_site_manager(actor) and not project_id:
            return []
        query = self.db.query(ConsumableItem)
        if project_id:
            query = query.filter(ConsumableItem.project_id == project_id)
        items = query.order_by(ConsumableItem.name).all()
        if not items:
            return []

        item_ids = [item.id for item in items]
        purchases = self.db.query(ItemLedgerEntry).filter(ItemLedgerEntry.item_id.in_(item_ids)).all()
        vendor_ids = {p.vendor_id for p in purchases}

        allocation = {}
        if vendor_ids:
            pools = dict(self.db.query(VendorPayment.vendor_id, func.sum(VendorPayment.amount)).filter(
                VendorPayment.vendor_id.in_(vendor_ids)
            ).group_by(VendorPayment.vendor_id).all())
            vendor_purchases = self.db.query(ItemLedgerEntry).filter(
                ItemLedgerEntry.vendor_id.in_(vendor_ids)
            ).all()
            for vendor_id in vendor_ids:
                allocation.update(pool_fifo(
                    [p for p in vendor_purchases if p.vendor_id == vendor_id],
                    pools.get(vendor_id, ZERO),
                ))

        paid = {item_id: ZERO for item_id in item_ids}
        pending = {item_id: ZERO for item_id in item_ids}
        for purchase in purchases:
            purchase_paid, purchase_pending = allocation[purchase.id]
            paid[purchase.item_id] += purchase_paid
            pending[purchase.item_id] += purchase_pending

        result = []
        for item in items:
            data = consumable_item_to_dict(item)
            data["total_paid"] = to_float(paid[item.id])
            data["total_pending"] = to_float(pending[item.id])
            result.append(data)
        return result

    def create(self, actor, data) -> ConsumableItem:
        name = clean(data.name)
        if not name:
            raise ValidationError("Item name is required")
        unit = clean(data.unit)
        if not unit:
            raise ValidationError("Unit is required")
        project_id = policy.project_for_create(actor, data.project_id, "items")
        if not self.db.query(Project.id).filter(Project.id == project_id).first():
            raise NotFoundError("Project not found")
        if self._name_taken(project_id, name):
            raise ValidationError(f'An item named "{name}" already exists in this project')

        item = ConsumableItem(
            project_id=project_id,
            name=name,
            name_key=name_key(name),
            unit=unit,
            current_stock=0,
            total_purchased=0,
            total_amount=ZERO,
            total_paid=ZERO,
            total_pending=ZERO,
        )
        self.db.add(item)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "consumable_items", item.id,
            description=f"Created consumable item {item.name}",
            new_values=consumable_item_to_dict(item),
        )
        return item

    def update(self, actor, item_id: int, data) -> ConsumableItem:
        item = self.get(actor, item_id)
        old_values = consumable_item_to_dict(item)
        update = data.model_dump(exclude_unset=True)

        if "name" in update:
            name = clean(update["name"])
            if not name:
                raise ValidationError("Item name cannot be empty")
            if self._name_taken(item.project_id, name, exclude_id=item.id):
                raise ValidationError(f'An item named "{name}" already exists in this project')
            item.name = name
            item.name_key = name_key(name)
        if "unit" in update:
            unit = clean(update["unit"])
            if not unit:
                raise ValidationError("Unit cannot be empty")
            item.unit = unit

        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "consumable_items", item.id,
            description=f"Updated consumable item {item.name}",
            old_values=old_values,
            new_values=consumable_item_to_dict(item),
        )
        return item

    def delete(self, actor, item_id: int):
        item = self.get(actor, item_id)
        ledger_count = self.db.query(ItemLedgerEntry).filter(ItemLedgerEntry.item_id == item_id).count()
        consumption_count = self.db.query(StockConsumptionLine.consumption_id).filter(
            StockConsumptionLine.item_id == item_id
        ).distinct().count()
        if ledger_count or consumption_count:
            parts = []
            if ledger_count:
                parts.append(f"{ledger_count} ledger entr{'y' if ledger_count == 1 else 'ies'}")
            if consumption_count:
                parts.append(f"{consumption_count} consumption entr{'y' if consumption_count == 1 else 'ies'}")
            raise ValidationError(f'Cannot delete "{item.name}": referenced in {" and ".join(parts)}')

        old_values = consumable_item_to_dict(item)
        self.db.delete(item)
        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.DELETE, "consumable_items", item_id,
            description=f"Deleted consumable item {old_values['name']}",
            old_values=old_values,
        )


class ItemLedgerService:
    """
    Purchases of a consumable item from a vendor.

    Every create, update and delete moves the item's stock and money totals
    and the vendor's billed/paid totals by the same deltas, in the same
    transaction as the ledger row.
    """

    def __init__(self, db: Session):
        self.db = db
        self.items = ConsumableItemService(db)

    @staticmethod
    def _apply(item: ConsumableItem, vendor: Vendor, quantity: int, total_price: Decimal,
               paid_amount: Decimal, sign: int):
        remaining = total_price - paid_amount
        item.current_stock = (item.current_stock or 0) + quantity * sign
        item.total_purchased = (item.total_purchased or 0) + quantity * sign
        item.total_amount = money(item.total_amount) + total_price * sign
        item.total_paid = money(item.total_paid) + paid_amount * sign
        item.total_pending = money(item.total_pending) + remaining * sign
        vendor.total_billed = money(vendor.total_billed) + total_price * sign
        vendor.total_paid = money(vendor.total_paid) + paid_amount * sign
        vendor.remaining = money(vendor.remaining) + remaining * sign

    def _project_vendor(self, vendor_id: int, project_id: int) -> Vendor:
        vendor = self.db.query(Vendor).filter(
            Vendor.id == vendor_id, Vendor.project_id == project_id
        ).with_for_update().first()
        if not vendor:
            raise ValidationError("Vendor not found or does not belong to this project")
        return vendor

    def list(self, actor, item_id: int, page: Optional[int] = None, page_size: Optional[int] = None) -> Dict:
        item = self.items.get(actor, item_id)
        query = self.db.query(ItemLedgerEntry).options(
            joinedload(ItemLedgerEntry.vendor)
        ).filter(ItemLedgerEntry.item_id == item_id)

        total = query.count()
        page, page_size = page_bounds(page, page_size)
        entries = query.order_by(ItemLedgerEntry.date.desc(), ItemLedgerEntry.id.desc()) \
            .offset((page - 1) * page_size).limit(page_size).all()

        return {
            "item": consumable_item_to_dict(item),
            "rows": [item_ledger_to_dict(entry) for entry in entries],
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    def create(self, actor, item_id: int, data) -> ItemLedgerEntry:
        item = self.items.get_by_id(item_id, lock=True)
        if not item:
            raise NotFoundError("Item not found")
        if not policy.can_access_project(actor, item.project_id):
            raise AccessDeniedError("Item not found or access denied")

        quantity = data.quantity
        unit_price = money(data.unit_price)
        total_price = money(unit_price * quantity)
        paid_amount = money(data.paid_amount)
        if paid_amount > total_price:
            raise ValidationError("Paid amount cannot exceed total price")
        vendor = self._project_vendor(data.vendor_id, item.project_id)

        entry = ItemLedgerEntry(
            project_id=item.project_id,
            item_id=item.id,
            vendor_id=vendor.id,
            date=data.date,
            quantity=quantity,
            unit_price=unit_price,
            total_price=total_price,
            paid_amount=paid_amount,
            remaining=total_price - paid_amount,
            bilty_number=clean(data.bilty_number),
            vehicle_number=clean(data.vehicle_number),
            payment_method=data.payment_method.value,
            reference_id=clean(data.reference_id),
            remarks=clean(data.remarks),
        )
        self.db.add(entry)
        self._apply(item, vendor, quantity, total_price, paid_amount, 1)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "consumable_ledger", entry.id,
            description=f"Purchase of {quantity} {item.unit} {item.name} from {vendor.name}",
            new_values=item_ledger_to_dict(entry),
        )
        return entry

    def update(self, actor, entry_id: int, data) -> ItemLedgerEntry:
        entry = self.db.query(ItemLedgerEntry).filter(ItemLedgerEntry.id == entry_id).first()
        if not entry:
            raise NotFoundError("Ledger entry not found")
        item = self.items.get(actor, entry.item_id, lock=True)
        old_values = item_ledger_to_dict(entry)
        update = data.model_dump(exclude_unset=True)

        quantity = update.get("quantity") or entry.quantity
        unit_price = money(update["unit_price"]) if update.get("unit_price") is not None else money(entry.unit_price)
        total_price = money(unit_price * quantity)
        paid_amount = money(update["paid_amount"]) if update.get("paid_amount") is not None \
            else money(entry.paid_amount)
        if paid_amount > total_price:
            raise ValidationError("Paid amount cannot exceed total price")

        old_vendor = self._project_vendor(entry.vendor_id, item.project_id)
        new_vendor_id = update.get("vendor_id") or entry.vendor_id
        new_vendor = old_vendor if new_vendor_id == old_vendor.id \
            else self._project_vendor(new_vendor_id, item.project_id)

        old_paid = money(entry.paid_amount)
        if paid_amount > old_paid:
            from sitebooks.services.vendor_service import VendorLedgerService
            vendor_remaining = VendorLedgerService(self.db).summary(old_vendor.id)["remaining"]
            max_allowed = old_paid + vendor_remaining
            if paid_amount > max_allowed:
                raise ValidationError(
                    f"Paid amount cannot exceed total price and must not overpay the vendor. "
                    f"Maximum allowed for this entry is {max_allowed:,.2f} "
                    f"(current paid {old_paid:,.2f} + vendor remaining {vendor_remaining:,.2f})"
                )

        if item.current_stock - entry.quantity + quantity < 0:
            raise ValidationError(
                f'Cannot reduce quantity: it would make stock negative. Current stock for "{item.name}" '
                f'is {item.current_stock} {item.unit}.'
            )

        self._apply(item, old_vendor, entry.quantity, money(entry.total_price), old_paid, -1)
        self._apply(item, new_vendor, quantity, total_price, paid_amount, 1)

        entry.vendor_id = new_vendor.id
        entry.quantity = quantity
        entry.unit_price = unit_price
        entry.total_price = total_price
        entry.paid_amount = paid_amount
        entry.remaining = total_price - paid_amount
        if update.get("date") is not None:
            entry.date = update["date"]
        if update.get("payment_method") is not None:
            entry.payment_method = data.payment_method.value
        for field in ("bilty_number", "vehicle_number", "reference_id", "remarks"):
            if field in update:
                setattr(entry, field, clean(update[field]))

        self.db.flush()
        self.db.expire(entry, ["vendor"])
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "consumable_ledger", entry.id,
            description=f"Updated purchase of {item.name}",
            old_values=old_values,
            new_values=item_ledger_to_dict(entry),
        )
        return entry

    def delete(self, actor, entry_id: int):
        entry = self.db.query(ItemLedgerEntry).filter(ItemLedgerEntry.id == entry_id).first()
        if not entry:
            raise NotFoundError("Ledger entry not found")
        item = self.items.get(actor, entry.item_id, lock=True)
        if item.current_stock - entry.quantity < 0:
            raise ValidationError(
                f'Cannot delete this ledger entry: it would make stock negative. Current stock for '
                f'"{item.name}" is {item.current_stock} {item.unit}; this entry adds {entry.quantity}. '
                f'Delete or reduce stock consumption first.'
            )
        vendor = self._project_vendor(entry.vendor_id, item.project_id)

        old_values = item_ledger_to_dict(entry)
        self._apply(item, vendor, entry.quantity, money(entry.total_price), money(entry.paid_amount), -1)
        self.db.delete(entry)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.DELETE, "consumable_ledger", entry_id,
            description=f"Deleted purchase of {item.name}",
            old_values=old_values,
        )


class StockConsumptionService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, actor, consumption_id: int) -> StockConsumption:
        consumption = self.db.query(StockConsumption).filter(StockConsumption.id == consumption_id).first()
        if not consumption:
            raise NotFoundError("Consumption entry not found")
        policy.ensure_project_access(actor, consumption.project_id, "Consumption entry not found or access denied")
        return consumption

    def list(self, actor, project_id: Optional[int] = None, page: Optional[int] = None,
             page_size: Optional[int] = None) -> Dict:
        project_id = policy.scoped_project_id(actor, project_id)
        if policy.is_site_manager(actor) and not project_id:
            return {"rows": [], "total": 0}
        query = self.db.query(StockConsumption).options(
            joinedload(StockConsumption.lines).joinedload(StockConsumptionLine.item)
        )
        count_query = self.db.query(StockConsumption)
        if project_id:
            query = query.filter(StockConsumption.project_id == project_id)
            count_query = count_query.filter(StockConsumption.project_id == project_id)

        total = count_query.count()
        page, page_size = page_bounds(page, page_size)
        rows = query.order_by(StockConsumption.date.desc(), StockConsumption.id.desc()) \
            .offset((page - 1) * page_size).limit(page_size).all()
        return {
            "rows": [stock_consumption_to_dict(c) for c in rows],
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    @staticmethod
    def _check_lines(lines):
        if not lines:
            raise ValidationError("At least one item is required")
        seen = set()
        for line in lines:
            if line.item_id in seen:
                raise ValidationError(
                    "Duplicate item in this consumption entry. Update the existing line instead of adding another."
                )
            seen.add(line.item_id)
            if not isinstance(line.quantity_used, int) or line.quantity_used < 1:
                raise ValidationError("Quantity must be a positive integer")

    def _consume(self, project_id: int, lines) -> List[StockConsumptionLine]:
        """Draw stock for each line; every item is locked and checked first"""
        items = []
        for line in lines:
            item = self.db.query(ConsumableItem).filter(
                ConsumableItem.id == line.item_id,
                ConsumableItem.project_id == project_id,
            ).with_for_update().first()
            if not item:
                raise ValidationError(f"Item not found or does not belong to this project: {line.item_id}")
            if item.current_stock < line.quantity_used:
                raise ValidationError(
                    f'Insufficient stock for "{item.name}": available {item.current_stock} {item.unit}, '
                    f'requested {line.quantity_used}'
                )
            items.append((item, line.quantity_used))

        consumed = []
        for item, quantity in items:
            item.current_stock -= quantity
            consumed.append(StockConsumptionLine(item_id=item.id, quantity_used=quantity))
        return consumed

    def _restore(self, consumption: StockConsumption):
        for line in consumption.lines:
            item = self.db.query(ConsumableItem).filter(
                ConsumableItem.id == line.item_id
            ).with_for_update().first()
            if item:
                item.current_stock += line.quantity_used

    def create(self, actor, data) -> StockConsumption:
        self._check_lines(data.items)
        project_id = policy.project_for_create(actor, data.project_id, "consumption entries")
        if not self.db.query(Project.id).filter(Project.id == project_id).first():
            raise NotFoundError("Project not found")

        consumption = StockConsumption(
            project_id=project_id,
            date=data.date,
            remarks=clean(data.remarks),
        )
        consumption.lines = self._consume(project_id, data.items)
        self.db.add(consumption)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "stock_consumption", consumption.id,
            description=f"Stock consumption of {len(consumption.lines)} item(s)",
            new_values=stock_consumption_to_dict(consumption),
        )
        return consumption

    def update(self, actor, consumption_id: int, data) -> StockConsumption:
        consumption = self.get(actor, consumption_id)
        old_values = stock_consumption_to_dict(consumption)
        update = data.model_dump(exclude_unset=True)

        if update.get("items") is not None:
            self._check_lines(data.items)
            self._restore(consumption)
            self.db.flush()
            consumption.lines = self._consume(consumption.project_id, data.items)
        if update.get("date") is not None:
            consumption.date = update["date"]
        if "remarks" in update:
            consumption.remarks = clean(update["remarks"])

        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "stock_consumption", consumption.id,
            description="Updated stock consumption",
            old_values=old_values,
            new_values=stock_consumption_to_dict(consumption),
        )
        return consumption

    def delete(self, actor, consumption_id: int):
        consumption = self.get(actor, consumption_id)
        old_values = stock_consumption_to_dict(consumption)
        self._restore(consumption)
        self.db.delete(consumption)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.DELETE, "stock_consumption", consumption_id,
            description="Deleted stock consumption",
            old_values=old_values,
        )


def consumable_item_to_dict(item: ConsumableItem) -> Dict:
    return {
        "id": item.id,
        "project_id": item.project_id,
        "name": item.name,
        "unit": item.unit,
        "current_stock": item.current_stock,
        "total_purchased": item.total_purchased,
        "total_amount": to_float(item.total_amount),
        "total_paid": to_float(item.total_paid),
        "total_pending": to_float(item.total_pending),
        "created_at": iso(item.created_at),
    }


def item_ledger_to_dict(entry: ItemLedgerEntry) -> Dict:
    return {
        "id": entry.id,
        "project_id": entry.project_id,
        "item_id": entry.item_id,
        "vendor_id": entry.vendor_id,
        "vendor_name": entry.vendor.name if entry.vendor else None,
        "date": iso(entry.date),
        "quantity": entry.quantity,
        "unit_price": to_float(entry.unit_price),
        "total_price": to_float(entry.total_price),
        "paid_amount": to_float(entry.paid_amount),
        "remaining": to_float(entry.remaining),
        "bilty_number": entry.bilty_number,
        "vehicle_number": entry.vehicle_number,
        "payment_method": entry.payment_method,
        "reference_id": entry.reference_id,
        "remarks": entry.remarks,
    }


def stock_consumption_to_dict(consumption: StockConsumption) -> Dict:
    return {
        "id": consumption.id,
        "project_id": consumption.project_id,
        "date": iso(consumption.date),
        "remarks": consumption.remarks,
        "items": [
            {
                "item_id": line.item_id,
                "item_name": line.item.name if line.item else None,
                "unit": line.item.unit if line.item else None,
                "quantity_used": line.quantity_used,
            }
            for line in consumption.lines
        ],
        "created_at": iso(consumption.created_at),
    }
