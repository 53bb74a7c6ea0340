"""
Consumable Inventory API Routes - items, purchase ledger and stock consumption
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from sitebooks.core.database import get_db
from sitebooks.core.security import get_current_active_user, PolicyChecker
from sitebooks.core import policy
from sitebooks.schemas import (
    ConsumableItemCreate, ConsumableItemUpdate, ItemLedgerCreate, ItemLedgerUpdate,
    StockConsumptionCreate, StockConsumptionUpdate
)
from sitebooks.services.inventory_service import (
    ConsumableItemService, ItemLedgerService, StockConsumptionService,
    consumable_item_to_dict, item_ledger_to_dict, stock_consumption_to_dict
)

router = APIRouter(tags=["Consumables"])


# ==================== ITEM LEDGER ====================

@router.patch("/consumable-items/ledger/{entry_id}",
              dependencies=[Depends(PolicyChecker("consumable_items", policy.EDIT))])
async def update_item_ledger_entry(
    entry_id: int,
    entry_data: ItemLedgerUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    entry = ItemLedgerService(db).update(current_user, entry_id, entry_data)
    db.commit()
    return item_ledger_to_dict(entry)


@router.delete("/consumable-items/ledger/{entry_id}",
               dependencies=[Depends(PolicyChecker("consumable_items", policy.DELETE))])
async def delete_item_ledger_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    ItemLedgerService(db).delete(current_user, entry_id)
    db.commit()
    return {"message": "Ledger entry deleted successfully"}


# ==================== ITEMS ====================

@router.get("/consumable-items", dependencies=[Depends(PolicyChecker("consumable_items", policy.VIEW))])
async def list_consumable_items(
    project_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return ConsumableItemService(db).list(current_user, project_id)


@router.post("/consumable-items", dependencies=[Depends(PolicyChecker("consumable_items", policy.CREATE))])
async def create_consumable_item(
    item_data: ConsumableItemCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    item = ConsumableItemService(db).create(current_user, item_data)
    db.commit()
    return consumable_item_to_dict(item)


@router.get("/consumable-items/{item_id}",
            dependencies=[Depends(PolicyChecker("consumable_items", policy.VIEW))])
async def get_consumable_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return consumable_item_to_dict(ConsumableItemService(db).get(current_user, item_id))


@router.patch("/consumable-items/{item_id}",
              dependencies=[Depends(PolicyChecker("consumable_items", policy.EDIT))])
async def update_consumable_item(
    item_id: int,
    item_data: ConsumableItemUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    item = ConsumableItemService(db).update(current_user, item_id, item_data)
    db.commit()
    return consumable_item_to_dict(item)


@router.delete("/consumable-items/{item_id}",
               dependencies=[Depends(PolicyChecker("consumable_items", policy.DELETE))])
async def delete_consumable_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    ConsumableItemService(db).delete(current_user, item_id)
    db.commit()
    return {"message": "Item deleted successfully"}


@router.get("/consumable-items/{item_id}/ledger",
            dependencies=[Depends(PolicyChecker("consumable_items", policy.VIEW))])
async def get_item_ledger(
    item_id: int,
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return ItemLedgerService(db).list(current_user, item_id, page=page, page_size=page_size)


@router.post("/consumable-items/{item_id}/ledger",
             dependencies=[Depends(PolicyChecker("consumable_items", policy.CREATE))])
async def create_item_ledger_entry(
    item_id: int,
    entry_data: ItemLedgerCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    entry = ItemLedgerService(db).create(current_user, item_id, entry_data)
    db.commit()
    return item_ledger_to_dict(entry)


# ==================== STOCK CONSUMPTION ====================

@router.get("/stock-consumption", dependencies=[Depends(PolicyChecker("stock_consumption", policy.VIEW))])
async def list_stock_consumption(
    project_id: Optional[int] = Query(None),
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return StockConsumptionService(db).list(current_user, project_id, page=page, page_size=page_size)


@router.post("/stock-consumption", dependencies=[Depends(PolicyChecker("stock_consumption", policy.CREATE))])
async def create_stock_consumption(
    consumption_data: StockConsumptionCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    consumption = StockConsumptionService(db).create(current_user, consumption_data)
    db.commit()
    return stock_consumption_to_dict(consumption)


@router.get("/stock-consumption/{consumption_id}",
            dependencies=[Depends(PolicyChecker("stock_consumption", policy.VIEW))])
async def get_stock_consumption(
    consumption_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return stock_consumption_to_dict(StockConsumptionService(db).get(current_user, consumption_id))


@router.patch("/stock-consumption/{consumption_id}",
              dependencies=[Depends(PolicyChecker("stock_consumption", policy.EDIT))])
async def update_stock_consumption(
    consumption_id: int,
    consumption_data: StockConsumptionUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    consumption = StockConsumptionService(db).update(current_user, consumption_id, consumption_data)
    db.commit()
    return stock_consumption_to_dict(consumption)


@router.delete("/stock-consumption/{consumption_id}",
               dependencies=[Depends(PolicyChecker("stock_consumption", policy.DELETE))])
async def delete_stock_consumption(
    consumption_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    StockConsumptionService(db).delete(current_user, consumption_id)
    db.commit()
    return {"message": "Consumption entry deleted successfully"}
