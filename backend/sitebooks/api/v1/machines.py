"""
Machinery API Routes - machines, usage entries, payments and ledger
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from sitebooks.core.database import get_db
from sitebooks.core.security import get_current_active_user, PolicyChecker
from sitebooks.core import policy
from sitebooks.schemas import MachineCreate, MachineUpdate, MachineEntryCreate, PaymentCreate, MONTH_PATTERN
from sitebooks.services.machine_service import (
    MachineService, MachineLedgerService,
    machine_to_dict, machine_entry_to_dict, machine_payment_to_dict
)

router = APIRouter(prefix="/machines", tags=["Machinery"])


@router.delete("/entries/{entry_id}", dependencies=[Depends(PolicyChecker("machines", policy.DELETE))])
async def delete_machine_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    MachineLedgerService(db).delete_entry(current_user, entry_id)
    db.commit()
    return {"message": "Entry deleted successfully"}


@router.delete("/payments/{payment_id}", dependencies=[Depends(PolicyChecker("machines", policy.DELETE))])
async def delete_machine_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    MachineLedgerService(db).delete_payment(current_user, payment_id)
    db.commit()
    return {"message": "Payment deleted successfully"}


@router.get("", dependencies=[Depends(PolicyChecker("machines", policy.VIEW))])
async def list_machines(
    project_id: Optional[int] = Query(None),
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return MachineService(db).list(current_user, project_id, page=page, page_size=page_size)


@router.post("", dependencies=[Depends(PolicyChecker("machines", policy.CREATE))])
async def create_machine(
    machine_data: MachineCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    machine = MachineService(db).create(current_user, machine_data)
    db.commit()
    return machine_to_dict(machine)


@router.get("/{machine_id}", dependencies=[Depends(PolicyChecker("machines", policy.VIEW))])
async def get_machine(
    machine_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    service = MachineService(db)
    machine = service.get(current_user, machine_id)
    return machine_to_dict(machine, service.totals(machine.id))


@router.patch("/{machine_id}", dependencies=[Depends(PolicyChecker("machines", policy.EDIT))])
async def update_machine(
    machine_id: int,
    machine_data: MachineUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    machine = MachineService(db).update(current_user, machine_id, machine_data)
    db.commit()
    return machine_to_dict(machine)


@router.delete("/{machine_id}", dependencies=[Depends(PolicyChecker("machines", policy.DELETE))])
async def delete_machine(
    machine_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    MachineService(db).delete(current_user, machine_id)
    db.commit()
    return {"message": "Machine deleted successfully"}


@router.get("/{machine_id}/ledger", dependencies=[Depends(PolicyChecker("machines", policy.VIEW))])
async def get_machine_ledger(
    machine_id: int,
    month: Optional[str] = Query(None, pattern=MONTH_PATTERN),
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return MachineLedgerService(db).get_ledger(
        current_user, machine_id, month=month, page=page, page_size=page_size
    )


@router.post("/{machine_id}/entries", dependencies=[Depends(PolicyChecker("machines", policy.CREATE))])
async def create_machine_entry(
    machine_id: int,
    entry_data: MachineEntryCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    entry = MachineLedgerService(db).create_entry(current_user, machine_id, entry_data)
    db.commit()
    return machine_entry_to_dict(entry)


@router.post("/{machine_id}/payments", dependencies=[Depends(PolicyChecker("machines", policy.CREATE))])
async def create_machine_payment(
    machine_id: int,
    payment_data: PaymentCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    payment = MachineLedgerService(db).create_payment(current_user, machine_id, payment_data)
    db.commit()
    return machine_payment_to_dict(payment)
