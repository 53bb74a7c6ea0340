"""
Expense API Routes
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from sitebooks.core.database import get_db
from sitebooks.core.security import get_current_active_user, PolicyChecker
from sitebooks.core import policy
from sitebooks.schemas import ExpenseCreate, ExpenseUpdate
from sitebooks.services.expense_service import ExpenseService, expense_to_dict

router = APIRouter(prefix="/expenses", tags=["Expenses"])


@router.get("/categories", dependencies=[Depends(PolicyChecker("expenses", policy.VIEW))])
async def list_expense_categories(
    project_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return ExpenseService(db).categories(current_user, project_id)


@router.get("", dependencies=[Depends(PolicyChecker("expenses", policy.VIEW))])
async def list_expenses(
    project_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return ExpenseService(db).list(
        current_user,
        project_id=project_id,
        search=search,
        category=category,
        page=page,
        page_size=page_size,
    )


@router.post("", dependencies=[Depends(PolicyChecker("expenses", policy.CREATE))])
async def create_expense(
    expense_data: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    expense = ExpenseService(db).create(current_user, expense_data)
    db.commit()
    return expense_to_dict(expense)


@router.get("/{expense_id}", dependencies=[Depends(PolicyChecker("expenses", policy.VIEW))])
async def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return expense_to_dict(ExpenseService(db).get(current_user, expense_id))


@router.patch("/{expense_id}", dependencies=[Depends(PolicyChecker("expenses", policy.EDIT))])
async def update_expense(
    expense_id: int,
    expense_data: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    expense = ExpenseService(db).update(current_user, expense_id, expense_data)
    db.commit()
    return expense_to_dict(expense)


@router.delete("/{expense_id}", dependencies=[Depends(PolicyChecker("expenses", policy.DELETE))])
async def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    ExpenseService(db).delete(current_user, expense_id)
    db.commit()
    return {"message": "Expense deleted successfully"}
