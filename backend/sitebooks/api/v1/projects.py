"""
Project API Routes - projects, project ledger and balance adjustments
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from sitebooks.core.database import get_db
from sitebooks.core.security import get_current_active_user, PolicyChecker
from sitebooks.core import policy
from sitebooks.schemas import (
    ProjectCreate, ProjectUpdate, BalanceAdjustmentCreate, BalanceAdjustmentUpdate
)
from sitebooks.services.project_service import (
    ProjectService, ProjectLedgerService, project_to_dict, adjustment_to_dict
)
from sitebooks.services.report_service import ProjectSummaryService

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.get("", dependencies=[Depends(PolicyChecker("projects", policy.VIEW))])
async def list_projects(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    summary = ProjectSummaryService(db)
    return [project_to_dict(p, summary.spent(p.id)) for p in ProjectService(db).list(current_user)]


@router.post("", dependencies=[Depends(PolicyChecker("projects", policy.CREATE))])
async def create_project(
    project_data: ProjectCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    project = ProjectService(db).create(current_user, project_data)
    db.commit()
    return project_to_dict(project, ProjectSummaryService(db).spent(project.id))


@router.get("/{project_id}", dependencies=[Depends(PolicyChecker("projects", policy.VIEW))])
async def get_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    project = ProjectService(db).get(current_user, project_id)
    return project_to_dict(project, ProjectSummaryService(db).spent(project.id))


@router.patch("/{project_id}", dependencies=[Depends(PolicyChecker("projects", policy.EDIT))])
async def update_project(
    project_id: int,
    project_data: ProjectUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    project = ProjectService(db).update(current_user, project_id, project_data)
    db.commit()
    return project_to_dict(project, ProjectSummaryService(db).spent(project.id))


@router.delete("/{project_id}", dependencies=[Depends(PolicyChecker("projects", policy.DELETE))])
async def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    ProjectService(db).delete(current_user, project_id)
    db.commit()
    return {"message": "Project deleted successfully"}


@router.get("/{project_id}/summary", dependencies=[Depends(PolicyChecker("projects", policy.VIEW))])
async def get_project_summary(
    project_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    """Spent and liabilities across every ledger of the project"""
    return ProjectSummaryService(db).summary(current_user, project_id)


# ==================== LEDGER ====================

@router.get("/{project_id}/ledger", dependencies=[Depends(PolicyChecker("project_ledger", policy.VIEW))])
async def get_project_ledger(
    project_id: int,
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    return ProjectLedgerService(db).get_ledger(current_user, project_id, page=page, page_size=page_size)


@router.post(
    "/{project_id}/balance-adjustments",
    dependencies=[Depends(PolicyChecker("project_ledger", policy.CREATE))]
)
async def create_balance_adjustment(
    project_id: int,
    adjustment_data: BalanceAdjustmentCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    adjustment = ProjectLedgerService(db).create_adjustment(current_user, project_id, adjustment_data)
    db.commit()
    return adjustment_to_dict(adjustment)


@router.patch(
    "/{project_id}/balance-adjustments/{adjustment_id}",
    dependencies=[Depends(PolicyChecker("project_ledger", policy.EDIT))]
)
async def update_balance_adjustment(
    project_id: int,
    adjustment_id: int,
    adjustment_data: BalanceAdjustmentUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    adjustment = ProjectLedgerService(db).update_adjustment(
        current_user, project_id, adjustment_id, adjustment_data
    )
    db.commit()
    return adjustment_to_dict(adjustment)


@router.delete(
    "/{project_id}/balance-adjustments/{adjustment_id}",
    dependencies=[Depends(PolicyChecker("project_ledger", policy.DELETE))]
)
async def delete_balance_adjustment(
    project_id: int,
    adjustment_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    ProjectLedgerService(db).delete_adjustment(current_user, project_id, adjustment_id)
    db.commit()
    return {"message": "Balance adjustment deleted successfully"}
