"""
Non-Consumable Inventory API Routes - categories, items and movement ledger
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from sitebooks.core.database import get_db
from sitebooks.core.security import get_current_active_user, PolicyChecker
from sitebooks.core import policy
from sitebooks.schemas import (
    CategoryCreate, NonConsumableItemCreate, NonConsumableItemUpdate,
    NonConsumableLedgerCreate, NonConsumableLedgerUpdate
)
from sitebooks.services.non_consumable_service import (
    CategoryService, NonConsumableItemService, NonConsumableLedgerService,
    category_to_dict, non_consumable_item_to_dict, non_consumable_ledger_to_dict
)

router = APIRouter(tags=["Non-Consumables"])


# ==================== CATEGORIES ====================

@router.get("/non-consumable-categories",
            dependencies=[Depends(PolicyChecker("non_consumables", policy.VIEW))])
async def list_categories(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return [category_to_dict(c) for c in CategoryService(db).list()]


@router.post("/non-consumable-categories",
             dependencies=[Depends(PolicyChecker("non_consumables", policy.CREATE))])
async def create_category(
    category_data: CategoryCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    category = CategoryService(db).create(current_user, category_data)
    db.commit()
    return category_to_dict(category)


# ==================== LEDGER ENTRIES ====================

@router.patch("/non-consumable-items/ledger/{entry_id}",
              dependencies=[Depends(PolicyChecker("non_consumables", policy.EDIT))])
async def update_ledger_entry(
    entry_id: int,
    entry_data: NonConsumableLedgerUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    entry = NonConsumableLedgerService(db).update(current_user, entry_id, entry_data)
    db.commit()
    return non_consumable_ledger_to_dict(entry)


@router.delete("/non-consumable-items/ledger/{entry_id}",
               dependencies=[Depends(PolicyChecker("non_consumables", policy.DELETE))])
async def delete_ledger_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    NonConsumableLedgerService(db).delete(current_user, entry_id)
    db.commit()
    return {"message": "Ledger entry deleted successfully"}


# ==================== ITEMS ====================

@router.get("/non-consumable-items", dependencies=[Depends(PolicyChecker("non_consumables", policy.VIEW))])
async def list_items(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return [non_consumable_item_to_dict(item) for item in NonConsumableItemService(db).list()]


@router.post("/non-consumable-items", dependencies=[Depends(PolicyChecker("non_consumables", policy.CREATE))])
async def create_item(
    item_data: NonConsumableItemCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    item = NonConsumableItemService(db).create(current_user, item_data)
    db.commit()
    return non_consumable_item_to_dict(item)


@router.get("/non-consumable-items/{item_id}",
            dependencies=[Depends(PolicyChecker("non_consumables", policy.VIEW))])
async def get_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    service = NonConsumableItemService(db)
    item = service.get(item_id)
    return non_consumable_item_to_dict(item, service.in_use_by_project(item.id))


@router.patch("/non-consumable-items/{item_id}",
              dependencies=[Depends(PolicyChecker("non_consumables", policy.EDIT))])
async def update_item(
    item_id: int,
    item_data: NonConsumableItemUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    item = NonConsumableItemService(db).update(current_user, item_id, item_data)
    db.commit()
    return non_consumable_item_to_dict(item)


@router.delete("/non-consumable-items/{item_id}",
               dependencies=[Depends(PolicyChecker("non_consumables", policy.DELETE))])
async def delete_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    NonConsumableItemService(db).delete(current_user, item_id)
    db.commit()
    return {"message": "Item deleted successfully"}


@router.get("/non-consumable-items/{item_id}/ledger",
            dependencies=[Depends(PolicyChecker("non_consumables", policy.VIEW))])
async def get_item_ledger(
    item_id: int,
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return NonConsumableLedgerService(db).list(item_id, page=page, page_size=page_size)


@router.post("/non-consumable-items/{item_id}/ledger",
             dependencies=[Depends(PolicyChecker("non_consumables", policy.CREATE))])
async def create_ledger_entry(
    item_id: int,
    entry_data: NonConsumableLedgerCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    entry = NonConsumableLedgerService(db).create(current_user, item_id, entry_data)
    db.commit()
    return non_consumable_ledger_to_dict(entry)
