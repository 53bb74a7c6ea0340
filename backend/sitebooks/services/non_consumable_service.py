"""
Non-consumable inventory - categories, company assets and their movement ledger.

An asset's quantities are never edited directly. They are re-derived by
replaying its ledger in (date, id) order after every ledger change, and the
replay rejects any event that moves more units than its source holds at
that point in time.
"""
from typing import Optional, List, Dict
from collections import defaultdict
from sqlalchemy.orm import Session
import logging

from sitebooks.models import (
    NonConsumableCategory, NonConsumableItem, NonConsumableLedgerEntry,
    NonConsumableEvent, Project
)
from sitebooks.core.errors import NotFoundError, ValidationError
from sitebooks.core import policy
from sitebooks.services.audit_service import AuditService, AuditAction
from sitebooks.services.helpers import money, to_float, iso, clean, name_key, page_bounds

logger = logging.getLogger(__name__)

PURCHASE = NonConsumableEvent.PURCHASE.value
ASSIGN = NonConsumableEvent.ASSIGN_TO_PROJECT.value
RETURN = NonConsumableEvent.RETURN_TO_COMPANY.value
REPAIR = NonConsumableEvent.REPAIR.value
RETURN_FROM_REPAIR = NonConsumableEvent.RETURN_FROM_REPAIR.value
MARK_LOST = NonConsumableEvent.MARK_LOST.value

# Events that take units out of a project
FROM_PROJECT = (RETURN, REPAIR, MARK_LOST)
# Events that carry a cost
COSTED = (PURCHASE, REPAIR)


class Balances:
    """Running quantities of one asset while its ledger is replayed"""

    def __init__(self):
        self.company_store = 0
        self.in_use_by_project = defaultdict(int)
        self.under_repair = 0
        self.lost = 0

    @property
    def in_use(self) -> int:
        return sum(self.in_use_by_project.values())

    @property
    def total(self) -> int:
        return self.company_store + self.in_use + self.under_repair + self.lost

    def apply(self, entry):
        qty = entry.quantity
        event = entry.event_type
        if event == PURCHASE:
            self.company_store += qty
        elif event == ASSIGN:
            if qty > self.company_store:
                raise ValidationError(
                    f"Quantity exceeds available in Company Store ({self.company_store} available)"
                )
            self.company_store -= qty
            self.in_use_by_project[entry.project_to_id] += qty
        elif event in FROM_PROJECT:
            available = self.in_use_by_project.get(entry.project_from_id, 0)
            if qty > available:
                raise ValidationError(
                    f"Quantity exceeds in-use quantity for this project ({available} available)"
                )
            self.in_use_by_project[entry.project_from_id] -= qty
            if event == RETURN:
                self.company_store += qty
            elif event == REPAIR:
                self.under_repair += qty
            else:
                self.lost += qty
        elif event == RETURN_FROM_REPAIR:
            if qty > self.under_repair:
                raise ValidationError(
                    f"Quantity exceeds available Under Repair ({self.under_repair} available)"
                )
            self.under_repair -= qty
            self.company_store += qty


def replay(entries) -> Balances:
    balances = Balances()
    for entry in sorted(entries, key=lambda e: (e.date, e.id)):
        balances.apply(entry)
    return balances


class CategoryService:
    def __init__(self, db: Session):
        self.db = db

    def list(self) -> List[NonConsumableCategory]:
        return self.db.query(NonConsumableCategory).order_by(NonConsumableCategory.name).all()

    def create(self, actor, data) -> NonConsumableCategory:
        name = clean(data.name)
        if not name:
            raise ValidationError("Category name is required")
        existing = self.db.query(NonConsumableCategory.id).filter(
            NonConsumableCategory.name_key == name_key(name)
        ).first()
        if existing:
            raise ValidationError(f'Category "{name}" already exists')

        category = NonConsumableCategory(name=name, name_key=name_key(name))
        self.db.add(category)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "non_consumable_categories", category.id,
            description=f"Added category {name}",
            new_values={"name": name},
        )
        return category


class NonConsumableItemService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, item_id: int, lock: bool = False) -> Optional[NonConsumableItem]:
        query = self.db.query(NonConsumableItem).filter(NonConsumableItem.id == item_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get(self, item_id: int, lock: bool = False) -> NonConsumableItem:
        item = self.get_by_id(item_id, lock=lock)
        if not item:
            raise NotFoundError("Item not found")
        return item

    def _name_taken(self, name: str, exclude_id: Optional[int] = None) -> bool:
        query = self.db.query(NonConsumableItem.id).filter(
            NonConsumableItem.name_key == name_key(name)
        )
        if exclude_id:
            query = query.filter(NonConsumableItem.id != exclude_id)
        return query.first() is not None

    def list(self) -> List[NonConsumableItem]:
        return self.db.query(NonConsumableItem).order_by(NonConsumableItem.name).all()

    def in_use_by_project(self, item_id: int) -> List[Dict]:
        entries = self.db.query(NonConsumableLedgerEntry).filter(
            NonConsumableLedgerEntry.item_id == item_id
        ).all()
        balances = replay(entries)
        held = {pid: qty for pid, qty in balances.in_use_by_project.items() if qty > 0}
        if not held:
            return []
        names = dict(self.db.query(Project.id, Project.name).filter(Project.id.in_(list(held))).all())
        return [
            {"project_id": pid, "project_name": names.get(pid, "Unknown"), "quantity": qty}
            for pid, qty in held.items()
        ]

    def create(self, actor, data) -> NonConsumableItem:
        name = clean(data.name)
        if not name:
            raise ValidationError("Item name is required")
        category = clean(data.category)
        if not category:
            raise ValidationError("Category is required")
        if self._name_taken(name):
            raise ValidationError(f'Item "{name}" already exists')

        item = NonConsumableItem(
            name=name,
            name_key=name_key(name),
            category=category,
            unit=clean(data.unit) or "piece",
            total_quantity=0,
            company_store=0,
            in_use=0,
            under_repair=0,
            lost=0,
        )
        self.db.add(item)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "non_consumable_items", item.id,
            description=f"Added non-consumable asset {name} ({category})",
            new_values=non_consumable_item_to_dict(item),
        )
        return item

    def update(self, actor, item_id: int, data) -> NonConsumableItem:
        item = self.get(item_id)
        old_values = non_consumable_item_to_dict(item)
        update = data.model_dump(exclude_unset=True)

        if "name" in update:
            name = clean(update["name"])
            if not name:
                raise ValidationError("Item name cannot be empty")
            if self._name_taken(name, exclude_id=item.id):
                raise ValidationError(f'Item "{name}" already exists')
            item.name = name
            item.name_key = name_key(name)
        if "category" in update:
            category = clean(update["category"])
            if not category:
                raise ValidationError("Category cannot be empty")
            item.category = category
        if "unit" in update:
            item.unit = clean(update["unit"]) or "piece"

        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "non_consumable_items", item.id,
            description=f"Updated non-consumable asset {item.name}",
            old_values=old_values,
            new_values=non_consumable_item_to_dict(item),
        )
        return item

    def delete(self, actor, item_id: int):
        item = self.get(item_id, lock=True)
        if item.company_store or item.in_use or item.under_repair or item.lost:
            raise ValidationError(
                f"Cannot delete: item has non-zero balances (Company Store: {item.company_store}, "
                f"In Use: {item.in_use}, Under Repair: {item.under_repair}, Lost: {item.lost}). "
                f"Return all items to zero before deleting."
            )

        old_values = non_consumable_item_to_dict(item)
        self.db.delete(item)
        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.DELETE, "non_consumable_items", item_id,
            description=f"Deleted non-consumable asset {old_values['name']}",
            old_values=old_values,
        )


class NonConsumableLedgerService:
    def __init__(self, db: Session):
        self.db = db
        self.items = NonConsumableItemService(db)

    def sync(self, item: NonConsumableItem) -> Balances:
        """Replay the item's ledger and store the resulting quantities"""
        self.db.flush()
        entries = self.db.query(NonConsumableLedgerEntry).filter(
            NonConsumableLedgerEntry.item_id == item.id
        ).all()
        balances = replay(entries)
        item.company_store = balances.company_store
        item.in_use = balances.in_use
        item.under_repair = balances.under_repair
        item.lost = balances.lost
        item.total_quantity = balances.total
        self.db.flush()
        return balances

    def list(self, item_id: int, page: Optional[int] = None, page_size: Optional[int] = None) -> Dict:
        item = self.items.get(item_id)
        query = self.db.query(NonConsumableLedgerEntry).filter(NonConsumableLedgerEntry.item_id == item_id)

        total = query.count()
        page, page_size = page_bounds(page, page_size)
        entries = query.order_by(
            NonConsumableLedgerEntry.date.desc(), NonConsumableLedgerEntry.id.desc()
        ).offset((page - 1) * page_size).limit(page_size).all()

        return {
            "item": non_consumable_item_to_dict(item),
            "entries": [non_consumable_ledger_to_dict(entry) for entry in entries],
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    def _check_projects(self, actor, event_type: str, project_to_id: Optional[int],
                        project_from_id: Optional[int]):
        if event_type == ASSIGN:
            if not project_to_id:
                raise ValidationError("Project is required for Assign to Project")
            self._check_project(actor, project_to_id)
        if event_type in FROM_PROJECT:
            if not project_from_id:
                raise ValidationError("Project is required for this event type")
            self._check_project(actor, project_from_id)

    def _check_project(self, actor, project_id: int):
        if not self.db.query(Project.id).filter(Project.id == project_id).first():
            raise NotFoundError("Project not found")
        policy.ensure_project_access(actor, project_id)

    @staticmethod
    def _cost(event_type: str, total_cost) -> Optional[object]:
        if event_type not in COSTED:
            return None
        cost = money(total_cost)
        if cost < 0:
            raise ValidationError("Total cost cannot be negative")
        return cost

    def create(self, actor, item_id: int, data) -> NonConsumableLedgerEntry:
        item = self.items.get(item_id, lock=True)
        event_type = data.event_type.value
        self._check_projects(actor, event_type, data.project_to_id, data.project_from_id)

        entry = NonConsumableLedgerEntry(
            item_id=item.id,
            date=data.date,
            event_type=event_type,
            quantity=data.quantity,
            total_cost=self._cost(event_type, data.total_cost),
            project_to_id=data.project_to_id if event_type == ASSIGN else None,
            project_from_id=data.project_from_id if event_type in FROM_PROJECT else None,
            remarks=clean(data.remarks),
            created_by_id=actor.id,
        )
        self.db.add(entry)
        self.sync(item)

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "non_consumable_ledger", entry.id,
            description=f"Added ledger entry: {event_type} - {item.name} x {entry.quantity}",
            new_values=non_consumable_ledger_to_dict(entry),
        )
        return entry

    def get_entry(self, entry_id: int) -> NonConsumableLedgerEntry:
        entry = self.db.query(NonConsumableLedgerEntry).filter(NonConsumableLedgerEntry.id == entry_id).first()
        if not entry:
            raise NotFoundError("Ledger entry not found")
        return entry

    def update(self, actor, entry_id: int, data) -> NonConsumableLedgerEntry:
        entry = self.get_entry(entry_id)
        item = self.items.get(entry.item_id, lock=True)
        old_values = non_consumable_ledger_to_dict(entry)
        update = data.model_dump(exclude_unset=True)

        event_type = data.event_type.value if update.get("event_type") else entry.event_type
        project_to_id = update["project_to_id"] if "project_to_id" in update else entry.project_to_id
        project_from_id = update["project_from_id"] if "project_from_id" in update else entry.project_from_id
        total_cost = update["total_cost"] if "total_cost" in update else entry.total_cost
        self._check_projects(actor, event_type, project_to_id, project_from_id)

        entry.event_type = event_type
        entry.total_cost = self._cost(event_type, total_cost)
        entry.project_to_id = project_to_id if event_type == ASSIGN else None
        entry.project_from_id = project_from_id if event_type in FROM_PROJECT else None
        if update.get("date") is not None:
            entry.date = update["date"]
        if update.get("quantity") is not None:
            entry.quantity = update["quantity"]
        if "remarks" in update:
            entry.remarks = clean(update["remarks"])
        self.sync(item)
        self.db.expire(entry, ["project_to", "project_from"])

        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "non_consumable_ledger", entry.id,
            description=f"Updated ledger entry: {item.name}",
            old_values=old_values,
            new_values=non_consumable_ledger_to_dict(entry),
        )
        return entry

    def delete(self, actor, entry_id: int):
        entry = self.get_entry(entry_id)
        item = self.items.get(entry.item_id, lock=True)
        if entry.project_to_id or entry.project_from_id:
            policy.ensure_project_access(actor, entry.project_to_id or entry.project_from_id)

        old_values = non_consumable_ledger_to_dict(entry)
        self.db.delete(entry)
        try:
            self.sync(item)
        except ValidationError as exc:
            raise ValidationError(
                f"Cannot delete {old_values['event_type']} entry: later movements depend on it. "
                f"{exc.message}. Delete downstream entries first."
            ) from exc

        AuditService(self.db).log(
            actor, AuditAction.DELETE, "non_consumable_ledger", entry_id,
            description=f"Deleted ledger entry: {item.name} - {old_values['event_type']} x {old_values['quantity']}",
            old_values=old_values,
        )


def category_to_dict(category: NonConsumableCategory) -> Dict:
    return {"id": category.id, "name": category.name}


def non_consumable_item_to_dict(item: NonConsumableItem, in_use_by_project: Optional[List[Dict]] = None) -> Dict:
    data = {
        "id": item.id,
        "name": item.name,
        "category": item.category,
        "unit": item.unit,
        "total_quantity": item.total_quantity,
        "company_store": item.company_store,
        "in_use": item.in_use,
        "under_repair": item.under_repair,
        "lost": item.lost,
    }
    if in_use_by_project is not None:
        data["in_use_by_project"] = in_use_by_project
    return data


def non_consumable_ledger_to_dict(entry: NonConsumableLedgerEntry) -> Dict:
    return {
        "id": entry.id,
        "item_id": entry.item_id,
        "date": iso(entry.date),
        "event_type": entry.event_type,
        "quantity": entry.quantity,
        "total_cost": to_float(entry.total_cost) if entry.total_cost is not None else None,
        "project_to_id": entry.project_to_id,
        "project_to_name": entry.project_to.name if entry.project_to else None,
        "project_from_id": entry.project_from_id,
        "project_from_name": entry.project_from.name if entry.project_from else None,
        "remarks": entry.remarks,
        "created_by_id": entry.created_by_id,
    }
