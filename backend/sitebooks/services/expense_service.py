"""
Expense Service
"""
from typing import Optional, List, Dict
from sqlalchemy.orm import Session
from sqlalchemy import func
import logging

from sitebooks.models import Expense, Project
from sitebooks.core.errors import NotFoundError, ValidationError
from sitebooks.core import policy
from sitebooks.services.audit_service import AuditService, AuditAction
from sitebooks.services.helpers import money, to_float, iso, clean, page_bounds

logger = logging.getLogger(__name__)

MAX_EXPENSE_PAGE_SIZE = 500


class ExpenseService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, actor, expense_id: int) -> Expense:
        expense = self.db.query(Expense).filter(Expense.id == expense_id).first()
        if not expense:
            raise NotFoundError("Expense not found")
        policy.ensure_project_access(actor, expense.project_id, "Expense not found or access denied")
        return expense

    def list(
        self,
        actor,
        project_id: Optional[int] = None,
        search: Optional[str] = None,
        category: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> Dict:
        project_id = policy.scoped_project_id(actor, project_id)
        if policy.is_site_manager(actor) and not project_id:
            return {"expenses": [], "total": 0, "total_amount": 0.0}

        query = self.db.query(Expense)
        if project_id:
            query = query.filter(Expense.project_id == project_id)
        if category and category != "all":
            query = query.filter(Expense.category == category)
        if search and search.strip():
            query = query.filter(Expense.description.ilike(f"%{search.strip()}%"))

        total = query.count()
        total_amount = query.with_entities(func.sum(Expense.amount)).scalar()
        page, page_size = page_bounds(page, page_size, max_size=MAX_EXPENSE_PAGE_SIZE)
        expenses = query.order_by(Expense.date.desc(), Expense.id.desc()) \
            .offset((page - 1) * page_size).limit(page_size).all()

        return {
            "expenses": [expense_to_dict(e) for e in expenses],
            "total": total,
            "total_amount": to_float(total_amount),
            "page": page,
            "page_size": page_size,
        }

    def categories(self, actor, project_id: Optional[int] = None) -> List[str]:
        project_id = policy.scoped_project_id(actor, project_id)
        if policy.is_site_manager(actor) and not project_id:
            return []
        query = self.db.query(Expense.category).distinct()
        if project_id:
            query = query.filter(Expense.project_id == project_id)
        return sorted(category for (category,) in query.all())

    def create(self, actor, data) -> Expense:
        description = clean(data.description)
        if not description:
            raise ValidationError("Description is required")
        category = clean(data.category)
        if not category:
            raise ValidationError("Category is required")
        project_id = policy.project_for_create(actor, data.project_id, "expenses")
        if not self.db.query(Project.id).filter(Project.id == project_id).first():
            raise NotFoundError("Project not found")

        expense = Expense(
            project_id=project_id,
            date=data.date,
            description=description,
            category=category,
            payment_mode=data.payment_mode.value,
            amount=money(data.amount),
        )
        self.db.add(expense)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "expenses", expense.id,
            description=f"Created expense: {description} ({category}) {expense.amount}",
            new_values=expense_to_dict(expense),
        )
        return expense

    def update(self, actor, expense_id: int, data) -> Expense:
        expense = self.get(actor, expense_id)
        old_values = expense_to_dict(expense)
        update = data.model_dump(exclude_unset=True)

        if update.get("date") is not None:
            expense.date = update["date"]
        if update.get("description") is not None:
            description = clean(update["description"])
            if not description:
                raise ValidationError("Description is required")
            expense.description = description
        if update.get("category") is not None:
            category = clean(update["category"])
            if not category:
                raise ValidationError("Category is required")
            expense.category = category
        if update.get("payment_mode") is not None:
            expense.payment_mode = data.payment_mode.value
        if update.get("amount") is not None:
            expense.amount = money(update["amount"])

        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "expenses", expense.id,
            description=f"Updated expense: {expense.description}",
            old_values=old_values,
            new_values=expense_to_dict(expense),
        )
        return expense

    def delete(self, actor, expense_id: int):
        expense = self.get(actor, expense_id)
        old_values = expense_to_dict(expense)
        self.db.delete(expense)
        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.DELETE, "expenses", expense_id,
            description=f"Deleted expense: {old_values['description']}",
            old_values=old_values,
        )


def expense_to_dict(expense: Expense) -> Dict:
    return {
        "id": expense.id,
        "project_id": expense.project_id,
        "date": iso(expense.date),
        "description": expense.description,
        "category": expense.category,
        "payment_mode": expense.payment_mode,
        "amount": to_float(expense.amount),
    }
