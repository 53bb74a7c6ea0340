"""
Banking API Routes - Bank Accounts and Transactions
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from sitebooks.core.database import get_db
from sitebooks.core.security import get_current_active_user, PolicyChecker
from sitebooks.core import policy
from sitebooks.schemas import (
    BankAccountCreate, BankAccountUpdate, BankTransactionCreate, BankTransactionUpdate,
    TransactionTypeEnum
)
from sitebooks.services.banking_service import (
    BankAccountService, BankTransactionService, bank_account_to_dict, bank_transaction_to_dict
)

router = APIRouter(tags=["Banking"])


# ==================== BANK ACCOUNTS ====================

@router.get("/bank-accounts", dependencies=[Depends(PolicyChecker("bank_accounts", policy.VIEW))])
async def list_bank_accounts(db: Session = Depends(get_db)):
    return [bank_account_to_dict(a) for a in BankAccountService(db).list()]


@router.post("/bank-accounts", dependencies=[Depends(PolicyChecker("bank_accounts", policy.CREATE))])
async def create_bank_account(
    account_data: BankAccountCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    account = BankAccountService(db).create(current_user, account_data)
    db.commit()
    return bank_account_to_dict(account)


@router.patch("/bank-accounts/{account_id}", dependencies=[Depends(PolicyChecker("bank_accounts", policy.EDIT))])
async def update_bank_account(
    account_id: int,
    account_data: BankAccountUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    account = BankAccountService(db).update(current_user, account_id, account_data)
    db.commit()
    return bank_account_to_dict(account)


@router.delete("/bank-accounts/{account_id}", dependencies=[Depends(PolicyChecker("bank_accounts", policy.DELETE))])
async def delete_bank_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    BankAccountService(db).delete(current_user, account_id)
    db.commit()
    return {"message": "Bank account deleted successfully"}


# ==================== TRANSACTIONS ====================

@router.get("/bank-transactions", dependencies=[Depends(PolicyChecker("bank_transactions", policy.VIEW))])
async def list_bank_transactions(
    search: Optional[str] = Query(None),
    account_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    type: Optional[TransactionTypeEnum] = Query(None),
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db)
):
    return BankTransactionService(db).list(
        search=search,
        account_id=account_id,
        start_date=start_date,
        end_date=end_date,
        type=type.value if type else None,
        page=page,
        page_size=page_size,
    )


@router.post("/bank-transactions", dependencies=[Depends(PolicyChecker("bank_transactions", policy.CREATE))])
async def create_bank_transaction(
    transaction_data: BankTransactionCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    transaction = BankTransactionService(db).create(current_user, transaction_data)
    db.commit()
    return bank_transaction_to_dict(transaction)


@router.patch(
    "/bank-transactions/{transaction_id}",
    dependencies=[Depends(PolicyChecker("bank_transactions", policy.EDIT))]
)
async def update_bank_transaction(
    transaction_id: int,
    transaction_data: BankTransactionUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    transaction = BankTransactionService(db).update(current_user, transaction_id, transaction_data)
    db.commit()
    return bank_transaction_to_dict(transaction)


@router.delete(
    "/bank-transactions/{transaction_id}",
    dependencies=[Depends(PolicyChecker("bank_transactions", policy.DELETE))]
)
async def delete_bank_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    BankTransactionService(db).delete(current_user, transaction_id)
    db.commit()
    return {"message": "Bank transaction deleted successfully"}
