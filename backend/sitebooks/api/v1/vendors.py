"""
Vendor API Routes
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from sitebooks.core.database import get_db
from sitebooks.core.security import get_current_active_user, PolicyChecker
from sitebooks.core import policy
from sitebooks.schemas import VendorCreate, VendorUpdate, PaymentCreate
from sitebooks.services.vendor_service import (
    VendorService, VendorLedgerService, vendor_to_dict, vendor_payment_to_dict
)

router = APIRouter(prefix="/vendors", tags=["Vendors"])


@router.delete("/payments/{payment_id}", dependencies=[Depends(PolicyChecker("vendors", policy.DELETE))])
async def delete_vendor_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    VendorLedgerService(db).delete_payment(current_user, payment_id)
    db.commit()
    return {"message": "Payment deleted successfully"}


@router.get("", dependencies=[Depends(PolicyChecker("vendors", policy.VIEW))])
async def list_vendors(
    project_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return [vendor_to_dict(v) for v in VendorService(db).list(current_user, project_id)]


@router.post("", dependencies=[Depends(PolicyChecker("vendors", policy.CREATE))])
async def create_vendor(
    vendor_data: VendorCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    vendor = VendorService(db).create(current_user, vendor_data)
    db.commit()
    return vendor_to_dict(vendor)


@router.get("/{vendor_id}", dependencies=[Depends(PolicyChecker("vendors", policy.VIEW))])
async def get_vendor(
    vendor_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return vendor_to_dict(VendorService(db).get(current_user, vendor_id))


@router.patch("/{vendor_id}", dependencies=[Depends(PolicyChecker("vendors", policy.EDIT))])
async def update_vendor(
    vendor_id: int,
    vendor_data: VendorUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    vendor = VendorService(db).update(current_user, vendor_id, vendor_data)
    db.commit()
    return vendor_to_dict(vendor)


@router.delete("/{vendor_id}", dependencies=[Depends(PolicyChecker("vendors", policy.DELETE))])
async def delete_vendor(
    vendor_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    VendorService(db).delete(current_user, vendor_id)
    db.commit()
    return {"message": "Vendor deleted successfully"}


@router.get("/{vendor_id}/ledger", dependencies=[Depends(PolicyChecker("vendors", policy.VIEW))])
async def get_vendor_ledger(
    vendor_id: int,
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return VendorLedgerService(db).get_ledger(current_user, vendor_id, page=page, page_size=page_size)


@router.post("/{vendor_id}/payments", dependencies=[Depends(PolicyChecker("vendors", policy.CREATE))])
async def create_vendor_payment(
    vendor_id: int,
    payment_data: PaymentCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    payment = VendorLedgerService(db).create_payment(current_user, vendor_id, payment_data)
    db.commit()
    return vendor_payment_to_dict(payment)
