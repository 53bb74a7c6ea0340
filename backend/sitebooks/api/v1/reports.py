"""
Report API Routes
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from sitebooks.core.database import get_db
from sitebooks.core.security import get_current_active_user, PolicyChecker
from sitebooks.core import policy
from sitebooks.services.report_service import CashExpensesReportService

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/cash-expenses/{project_id}", dependencies=[Depends(PolicyChecker("reports", policy.VIEW))])
async def get_cash_expenses_report(
    project_id: int,
    date: Optional[str] = Query(None, description="Report day (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_active_user)
):
    """Payments made for a project on one day, with opening and closing balances"""
    return CashExpensesReportService(db).get_report(current_user, project_id, date)
