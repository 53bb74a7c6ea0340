"""
Project Service - projects and their running cash balance
"""
from typing import Optional, List, Dict
from sqlalchemy.orm import Session
from sqlalchemy import or_
import logging

from sitebooks.models import (
    Project, ProjectBalanceAdjustment, User, BankTransaction, TransactionType,
    ItemLedgerEntry, NonConsumableLedgerEntry, ContractorEntry
)
from sitebooks.core.errors import NotFoundError, AccessDeniedError, ValidationError
from sitebooks.core import policy
from sitebooks.services.audit_service import AuditService, AuditAction
from sitebooks.services.helpers import money, to_float, iso, paginate, clean

logger = logging.getLogger(__name__)

STATUS_DISPLAY = {
    "active": "Active",
    "on_hold": "On Hold",
    "completed": "Completed",
}


class ProjectService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, project_id: int, lock: bool = False) -> Optional[Project]:
        query = self.db.query(Project).filter(Project.id == project_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get(self, actor, project_id: int) -> Project:
        project = self.get_by_id(project_id)
        if not project:
            raise NotFoundError("Project not found")
        policy.ensure_project_access(actor, project_id)
        return project

    def list(self, actor) -> List[Project]:
        query = self.db.query(Project)
        if policy.is_site_manager(actor):
            if not actor.assigned_project_id:
                return []
            query = query.filter(Project.id == actor.assigned_project_id)
        return query.order_by(Project.created_at.desc(), Project.id.desc()).all()

    def create(self, actor, data) -> Project:
        name = clean(data.name)
        if not name:
            raise ValidationError("Project name is required")

        project = Project(
            name=name,
            description=clean(data.description),
            allocated_budget=money(data.allocated_budget),
            status=data.status.value,
            start_date=data.start_date,
            end_date=data.end_date,
        )
        self.db.add(project)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "project", project.id,
            description=f"Created project {project.name}",
            new_values=project_to_dict(project),
        )
        return project

    def update(self, actor, project_id: int, data) -> Project:
        project = self.get(actor, project_id)
        old_values = project_to_dict(project)
        update = data.model_dump(exclude_unset=True)

        if "name" in update:
            name = clean(update["name"])
            if not name:
                raise ValidationError("Project name is required")
            project.name = name
        if "description" in update:
            project.description = clean(update["description"])
        if update.get("allocated_budget") is not None:
            project.allocated_budget = money(update["allocated_budget"])
        if update.get("status") is not None:
            project.status = data.status.value
        if "start_date" in update:
            project.start_date = update["start_date"]
        if "end_date" in update:
            project.end_date = update["end_date"]

        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "project", project.id,
            description=f"Updated project {project.name}",
            old_values=old_values,
            new_values=project_to_dict(project),
        )
        return project

    def delete(self, actor, project_id: int):
        project = self.get(actor, project_id)

        managers = self.db.query(User.name).filter(User.assigned_project_id == project_id).all()
        if managers:
            names = ", ".join(m.name for m in managers)
            plural = "s" if len(managers) > 1 else ""
            raise ValidationError(
                f"Cannot delete this project because it is assigned to Site Manager{plural}: {names}. "
                f"Reassign the manager first."
            )

        purchases = self.db.query(ItemLedgerEntry).filter(ItemLedgerEntry.project_id == project_id).count()
        if purchases:
            raise ValidationError(
                f"Cannot delete: project has consumable ledger entries ({purchases} entries). "
                f"Remove ledger entries first."
            )

        movements = self.db.query(NonConsumableLedgerEntry).filter(
            or_(
                NonConsumableLedgerEntry.project_to_id == project_id,
                NonConsumableLedgerEntry.project_from_id == project_id,
            )
        ).count()
        if movements:
            raise ValidationError(
                f"Cannot delete: project has non-consumable ledger entries ({movements} entries). "
                f"Remove ledger entries first."
            )

        entries = self.db.query(ContractorEntry).filter(ContractorEntry.project_id == project_id).count()
        if entries:
            raise ValidationError(
                f"Cannot delete: project has contractor ledger entries ({entries} entries). "
                f"Remove ledger entries first."
            )

        old_values = project_to_dict(project)
        self.db.query(BankTransaction).filter(BankTransaction.project_id == project_id) \
            .update({BankTransaction.project_id: None}, synchronize_session=False)
        self.db.delete(project)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.DELETE, "project", project_id,
            description=f"Deleted project {old_values['name']}",
            old_values=old_values,
        )


class ProjectLedgerService:
    """Bank outflows into a project plus manual balance adjustments"""

    def __init__(self, db: Session):
        self.db = db

    def get_ledger(self, actor, project_id: int, page: Optional[int] = None,
                   page_size: Optional[int] = None) -> Dict:
        project = self.db.query(Project).filter(Project.id == project_id).first()
        if not project:
            return {"rows": [], "total": 0, "balance": 0.0, "project_name": None}
        if not policy.can_access_project(actor, project_id):
            return {"rows": [], "total": 0, "balance": to_float(project.balance), "project_name": project.name}

        transactions = self.db.query(BankTransaction).filter(
            BankTransaction.project_id == project_id,
            BankTransaction.type == TransactionType.OUTFLOW.value,
        ).all()
        adjustments = self.db.query(ProjectBalanceAdjustment).filter(
            ProjectBalanceAdjustment.project_id == project_id
        ).all()

        rows = [
            {
                "type": "bank_outflow",
                "id": tx.id,
                "date": tx.date,
                "amount": to_float(tx.amount),
                "source": tx.account.name if tx.account else None,
                "destination": tx.destination,
                "reference_id": tx.reference_id,
                "remarks": tx.remarks,
                "_created": tx.created_at,
            }
            for tx in transactions
        ]
        rows += [
            {
                "type": "manual_adjustment",
                "id": adj.id,
                "date": adj.date,
                "amount": to_float(adj.amount),
                "remarks": adj.remarks,
                "_created": adj.created_at,
            }
            for adj in adjustments
        ]

        # Newest first; bank rows before adjustments on the same date
        rows.sort(key=lambda r: (r["_created"], r["id"]), reverse=True)
        rows.sort(key=lambda r: r["type"] != "bank_outflow")
        rows.sort(key=lambda r: r["date"], reverse=True)

        page_rows, total, page, page_size = paginate(rows, page, page_size)
        for row in page_rows:
            row.pop("_created")
            row["date"] = iso(row["date"])

        return {
            "rows": page_rows,
            "total": total,
            "page": page,
            "page_size": page_size,
            "balance": to_float(project.balance),
            "project_name": project.name,
        }

    def _locked_project(self, actor, project_id: int) -> Project:
        if not policy.can_access_project(actor, project_id):
            raise AccessDeniedError("Project not found or access denied")
        project = ProjectService(self.db).get_by_id(project_id, lock=True)
        if not project:
            raise NotFoundError("Project not found")
        return project

    def _get_adjustment(self, project_id: int, adjustment_id: int) -> ProjectBalanceAdjustment:
        adjustment = self.db.query(ProjectBalanceAdjustment).filter(
            ProjectBalanceAdjustment.id == adjustment_id,
            ProjectBalanceAdjustment.project_id == project_id,
        ).first()
        if not adjustment:
            raise NotFoundError("Adjustment not found")
        return adjustment

    def create_adjustment(self, actor, project_id: int, data) -> ProjectBalanceAdjustment:
        project = self._locked_project(actor, project_id)
        amount = money(data.amount)
        if amount == 0:
            raise ValidationError("Amount must be non-zero (positive to add, negative to subtract)")

        new_balance = money(project.balance) + amount
        if new_balance < 0:
            raise ValidationError(
                f"Cannot add adjustment: project balance would become negative. "
                f"Current balance: {to_float(project.balance):,.2f}"
            )

        adjustment = ProjectBalanceAdjustment(
            project_id=project_id,
            date=data.date,
            amount=amount,
            remarks=clean(data.remarks),
        )
        self.db.add(adjustment)
        project.balance = new_balance
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "project_balance_adjustment", adjustment.id,
            description=f"Balance adjustment of {amount} on project {project.name}",
            new_values=adjustment_to_dict(adjustment),
        )
        return adjustment

    def update_adjustment(self, actor, project_id: int, adjustment_id: int, data) -> ProjectBalanceAdjustment:
        project = self._locked_project(actor, project_id)
        adjustment = self._get_adjustment(project_id, adjustment_id)
        old_values = adjustment_to_dict(adjustment)
        update = data.model_dump(exclude_unset=True)

        old_amount = money(adjustment.amount)
        new_amount = old_amount
        if update.get("amount") is not None:
            new_amount = money(update["amount"])
            if new_amount == 0:
                raise ValidationError("Amount must be non-zero (positive to add, negative to subtract)")

        new_balance = money(project.balance) - old_amount + new_amount
        if new_balance < 0:
            raise ValidationError("Cannot update adjustment: project balance would become negative.")

        adjustment.amount = new_amount
        if update.get("date") is not None:
            adjustment.date = update["date"]
        if "remarks" in update:
            adjustment.remarks = clean(update["remarks"])
        project.balance = new_balance
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "project_balance_adjustment", adjustment.id,
            description=f"Updated balance adjustment on project {project.name}",
            old_values=old_values,
            new_values=adjustment_to_dict(adjustment),
        )
        return adjustment

    def delete_adjustment(self, actor, project_id: int, adjustment_id: int):
        project = self._locked_project(actor, project_id)
        adjustment = self._get_adjustment(project_id, adjustment_id)

        new_balance = money(project.balance) - money(adjustment.amount)
        if new_balance < 0:
            raise ValidationError("Cannot delete: reversing this adjustment would make project balance negative.")

        old_values = adjustment_to_dict(adjustment)
        project.balance = new_balance
        self.db.delete(adjustment)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.DELETE, "project_balance_adjustment", adjustment_id,
            description=f"Deleted balance adjustment on project {project.name}",
            old_values=old_values,
        )


def project_to_dict(project: Project, spent=None) -> Dict:
    """`spent` is derived by ProjectSummaryService; it is never stored"""
    data = {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "allocated_budget": to_float(project.allocated_budget),
        "status": project.status,
        "status_display": STATUS_DISPLAY.get(project.status, project.status),
        "start_date": iso(project.start_date),
        "end_date": iso(project.end_date),
        "balance": to_float(project.balance),
        "created_at": iso(project.created_at),
    }
    if spent is not None:
        data["spent"] = to_float(spent)
    return data


def adjustment_to_dict(adjustment: ProjectBalanceAdjustment) -> Dict:
    return {
        "id": adjustment.id,
        "project_id": adjustment.project_id,
        "date": iso(adjustment.date),
        "amount": to_float(adjustment.amount),
        "remarks": adjustment.remarks,
        "created_at": iso(adjustment.created_at),
    }
