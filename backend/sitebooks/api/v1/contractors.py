"""
Contractor API Routes - contractors, work entries, payments and ledger
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from sitebooks.core.database import get_db
from sitebooks.core.security import get_current_active_user, PolicyChecker
from sitebooks.core import policy
from sitebooks.schemas import (
    ContractorCreate, ContractorUpdate, ContractorEntryCreate, PaymentCreate, MONTH_PATTERN
)
from sitebooks.services.contractor_service import (
    ContractorService, ContractorLedgerService,
    contractor_to_dict, contractor_entry_to_dict, contractor_payment_to_dict
)

router = APIRouter(prefix="/contractors", tags=["Contractors"])


# ==================== LEDGER ====================

@router.get("/ledger", dependencies=[Depends(PolicyChecker("contractors", policy.VIEW))])
async def get_contractor_ledger(
    project_id: Optional[int] = Query(None),
    month: Optional[str] = Query(None, pattern=MONTH_PATTERN),
    contractor_id: Optional[int] = Query(None),
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    """Entries and payments for a project month, optionally narrowed to one contractor"""
    return ContractorLedgerService(db).get_ledger(
        current_user,
        project_id=project_id,
        month=month,
        contractor_id=contractor_id,
        page=page,
        page_size=page_size,
    )


@router.post("/entries", dependencies=[Depends(PolicyChecker("contractors", policy.CREATE))])
async def create_contractor_entry(
    entry_data: ContractorEntryCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    entry = ContractorLedgerService(db).create_entry(current_user, entry_data)
    db.commit()
    return contractor_entry_to_dict(entry)


@router.delete("/entries/{entry_id}", dependencies=[Depends(PolicyChecker("contractors", policy.DELETE))])
async def delete_contractor_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    ContractorLedgerService(db).delete_entry(current_user, entry_id)
    db.commit()
    return {"message": "Entry deleted successfully"}


@router.delete("/payments/{payment_id}", dependencies=[Depends(PolicyChecker("contractors", policy.DELETE))])
async def delete_contractor_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    ContractorLedgerService(db).delete_payment(current_user, payment_id)
    db.commit()
    return {"message": "Payment deleted successfully"}


# ==================== CONTRACTORS ====================

@router.get("", dependencies=[Depends(PolicyChecker("contractors", policy.VIEW))])
async def list_contractors(
    project_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return ContractorService(db).list(current_user, project_id)


@router.post("", dependencies=[Depends(PolicyChecker("contractors", policy.CREATE))])
async def create_contractor(
    contractor_data: ContractorCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    contractor = ContractorService(db).create(current_user, contractor_data)
    db.commit()
    return contractor_to_dict(contractor)


@router.get("/{contractor_id}", dependencies=[Depends(PolicyChecker("contractors", policy.VIEW))])
async def get_contractor(
    contractor_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    service = ContractorService(db)
    contractor = service.get(current_user, contractor_id)
    return contractor_to_dict(contractor, service.totals(contractor.id))


@router.patch("/{contractor_id}", dependencies=[Depends(PolicyChecker("contractors", policy.EDIT))])
async def update_contractor(
    contractor_id: int,
    contractor_data: ContractorUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    contractor = ContractorService(db).update(current_user, contractor_id, contractor_data)
    db.commit()
    return contractor_to_dict(contractor)


@router.delete("/{contractor_id}", dependencies=[Depends(PolicyChecker("contractors", policy.DELETE))])
async def delete_contractor(
    contractor_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    ContractorService(db).delete(current_user, contractor_id)
    db.commit()
    return {"message": "Contractor deleted successfully"}


@router.post("/{contractor_id}/payments", dependencies=[Depends(PolicyChecker("contractors", policy.CREATE))])
async def create_contractor_payment(
    contractor_id: int,
    payment_data: PaymentCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    payment = ContractorLedgerService(db).create_payment(current_user, contractor_id, payment_data)
    db.commit()
    return contractor_payment_to_dict(payment)
