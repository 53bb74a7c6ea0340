"""
Report Service - daily cash-expenses report and project spent/liabilities summary
"""
from typing import Optional, Dict, List
import datetime
from sqlalchemy.orm import Session
from sqlalchemy import func
import logging

from sitebooks.models import (
    Project, BankAccount, BankTransaction, TransactionType,
    ItemLedgerEntry, ConsumableItem, Vendor, VendorPayment, Contractor, ContractorPayment,
    Employee, EmployeePayment, Expense, Machine, MachinePayment,
    NonConsumableItem, NonConsumableLedgerEntry, NonConsumableEvent, ZERO
)
from sitebooks.core.errors import NotFoundError, ValidationError
from sitebooks.core import policy
from sitebooks.services.contractor_service import ContractorService
from sitebooks.services.machine_service import MachineService
from sitebooks.services.employee_service import EmployeeLedgerService
from sitebooks.services.helpers import money, to_float

logger = logging.getLogger(__name__)

SUMMARY_PARTS = ("vendor", "contractor", "employee", "machinery", "non_consumable", "expense")


def join_remarks(*parts: Optional[str]) -> str:
    return " - ".join(part for part in parts if part)


def parse_report_date(value: Optional[str]) -> datetime.date:
    if not value or not value.strip():
        raise ValidationError("Query parameter date is required (YYYY-MM-DD)")
    try:
        return datetime.date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError("Query parameter date is required (YYYY-MM-DD)")


class CashExpensesReportService:
    """
    Everything paid out for one project on one day, with the project ledger
    and bank balances at the start and end of that day.
    """

    def __init__(self, db: Session):
        self.db = db

    def _payments(self, project_id: int, day: datetime.date) -> List[Dict]:
        payments = []

        def add(name, entity_type, amount, remarks, source_id):
            payments.append({
                "entity_name": name,
                "entity_type": entity_type,
                "amount": money(amount),
                "remarks": remarks or "",
                "source_id": source_id,
            })

        purchases = self.db.query(ItemLedgerEntry, ConsumableItem.name).join(
            ConsumableItem, ItemLedgerEntry.item_id == ConsumableItem.id
        ).filter(
            ItemLedgerEntry.project_id == project_id,
            ItemLedgerEntry.date == day,
            ItemLedgerEntry.paid_amount > 0,
        ).all()
        for row, item_name in purchases:
            add(item_name or "Consumable", "Consumable", row.paid_amount,
                join_remarks(row.reference_id, row.remarks), row.id)

        vendor_rows = self.db.query(VendorPayment, Vendor.name).join(Vendor).filter(
            Vendor.project_id == project_id, VendorPayment.date == day
        ).all()
        for row, name in vendor_rows:
            add(name, "Vendor", row.amount, join_remarks(row.reference_id, row.remarks), row.id)

        contractor_rows = self.db.query(ContractorPayment, Contractor.name).join(Contractor).filter(
            Contractor.project_id == project_id, ContractorPayment.date == day
        ).all()
        for row, name in contractor_rows:
            add(name, "Contractor", row.amount, join_remarks(row.reference_id), row.id)

        employee_rows = self.db.query(EmployeePayment, Employee.name).join(Employee).filter(
            Employee.project_id == project_id, EmployeePayment.date == day
        ).all()
        for row, name in employee_rows:
            add(name, "Salary", row.amount, join_remarks(row.remarks), row.id)

        for row in self.db.query(Expense).filter(Expense.project_id == project_id, Expense.date == day).all():
            add(row.category or row.description, "Expense", row.amount, row.description, row.id)

        machine_rows = self.db.query(MachinePayment, Machine.name).join(Machine).filter(
            Machine.project_id == project_id, MachinePayment.date == day
        ).all()
        for row, name in machine_rows:
            add(name, "Machinery", row.amount, join_remarks(row.reference_id), row.id)

        repairs = self.db.query(NonConsumableLedgerEntry, NonConsumableItem.name).join(
            NonConsumableItem, NonConsumableLedgerEntry.item_id == NonConsumableItem.id
        ).filter(
            NonConsumableLedgerEntry.event_type == NonConsumableEvent.REPAIR.value,
            NonConsumableLedgerEntry.project_from_id == project_id,
            NonConsumableLedgerEntry.date == day,
            NonConsumableLedgerEntry.total_cost > 0,
        ).all()
        for row, name in repairs:
            add(name or "Non-Consumable", "NonConsumable", row.total_cost, join_remarks(row.remarks), row.id)

        payments.sort(key=lambda p: p["entity_name"].lower())
        return payments

    def get_report(self, actor, project_id: int, date: Optional[str]) -> Dict:
        if project_id is None or project_id < 1:
            raise ValidationError("Invalid project ID")
        day = parse_report_date(date)

        project = self.db.query(Project).filter(Project.id == project_id).first()
        if not project:
            raise NotFoundError("Project not found")
        policy.ensure_project_access(actor, project_id)

        payments = self._payments(project_id, day)
        total_payments = sum((p["amount"] for p in payments), ZERO)

        # Money reaching the project is a bank outflow tagged to it
        project_inflows = money(self.db.query(func.sum(BankTransaction.amount)).filter(
            BankTransaction.project_id == project_id,
            BankTransaction.type == TransactionType.OUTFLOW.value,
            BankTransaction.date == day,
        ).scalar())
        project_closing = money(project.balance)
        project_opening = project_closing - project_inflows + total_payments

        day_totals = {}
        rows = self.db.query(
            BankTransaction.account_id, BankTransaction.type, func.sum(BankTransaction.amount)
        ).filter(BankTransaction.date == day).group_by(BankTransaction.account_id, BankTransaction.type).all()
        for account_id, tx_type, amount in rows:
            day_totals[(account_id, tx_type)] = money(amount)

        bank_accounts = []
        bank_closing_total = ZERO
        for account in self.db.query(BankAccount).order_by(BankAccount.name).all():
            current = money(account.current_balance)
            inflow = day_totals.get((account.id, TransactionType.INFLOW.value), ZERO)
            outflow = day_totals.get((account.id, TransactionType.OUTFLOW.value), ZERO)
            bank_accounts.append({
                "id": account.id,
                "name": account.name,
                "opening_balance": to_float(current - inflow + outflow),
                "closing_balance": to_float(current),
            })
            bank_closing_total += current

        return {
            "date": day.isoformat(),
            "project_id": project.id,
            "project_name": project.name,
            "opening_balances": {
                "project_ledger": to_float(project_opening),
                "project_ledger_closing": to_float(project_closing),
                "bank_accounts": bank_accounts,
            },
            "payments": [dict(p, amount=to_float(p["amount"])) for p in payments],
            "total_payments": to_float(total_payments),
            "closing_balance": to_float(project_closing + bank_closing_total),
        }


class ProjectSummaryService:
    """Spent and liabilities for one project, broken down by ledger"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def zero_summary() -> Dict:
        return {
            "spent": 0.0,
            "liabilities": 0.0,
            "breakdown": {part: {"spent": 0.0, "liabilities": 0.0} for part in SUMMARY_PARTS},
        }

    def _vendor(self, project_id: int):
        paid, remaining = self.db.query(func.sum(Vendor.total_paid), func.sum(Vendor.remaining)).filter(
            Vendor.project_id == project_id
        ).one()
        return money(paid), money(remaining)

    def _contractor(self, project_id: int):
        service = ContractorService(self.db)
        spent = liabilities = ZERO
        for (contractor_id,) in self.db.query(Contractor.id).filter(Contractor.project_id == project_id):
            _, paid, remaining = service.totals(contractor_id)
            spent += paid
            liabilities += remaining
        return spent, liabilities

    def _employee(self, project_id: int):
        ledger = EmployeeLedgerService(self.db)
        spent = liabilities = ZERO
        for employee in self.db.query(Employee).filter(Employee.project_id == project_id):
            totals = ledger.totals(employee)
            spent += money(totals["total_paid"])
            liabilities += money(totals["total_due"])
        return spent, liabilities

    def _machinery(self, project_id: int):
        service = MachineService(self.db)
        spent = liabilities = ZERO
        for (machine_id,) in self.db.query(Machine.id).filter(Machine.project_id == project_id):
            totals = service.totals(machine_id)
            spent += totals["total_paid"]
            liabilities += totals["remaining"]
        return spent, liabilities

    def _non_consumable(self, project_id: int):
        cost = self.db.query(func.sum(NonConsumableLedgerEntry.total_cost)).filter(
            NonConsumableLedgerEntry.event_type == NonConsumableEvent.REPAIR.value,
            NonConsumableLedgerEntry.project_from_id == project_id,
        ).scalar()
        return money(cost), ZERO

    def _expense(self, project_id: int):
        total = self.db.query(func.sum(Expense.amount)).filter(Expense.project_id == project_id).scalar()
        return money(total), ZERO

    def _parts(self, project_id: int) -> Dict:
        return {
            "vendor": self._vendor(project_id),
            "contractor": self._contractor(project_id),
            "employee": self._employee(project_id),
            "machinery": self._machinery(project_id),
            "non_consumable": self._non_consumable(project_id),
            "expense": self._expense(project_id),
        }

    def spent(self, project_id: int):
        """Cash paid out against the project across every ledger"""
        return sum((paid for paid, _ in self._parts(project_id).values()), ZERO)

    def summary(self, actor, project_id: int) -> Dict:
        project = self.db.query(Project).filter(Project.id == project_id).first()
        if not project:
            raise NotFoundError("Project not found")
        if not policy.can_access_project(actor, project_id):
            return self.zero_summary()

        parts = self._parts(project_id)
        spent = sum((paid for paid, _ in parts.values()), ZERO)
        liabilities = sum((owed for _, owed in parts.values()), ZERO)
        return {
            "project_id": project.id,
            "project_name": project.name,
            "allocated_budget": to_float(project.allocated_budget),
            "balance": to_float(project.balance),
            "spent": to_float(spent),
            "liabilities": to_float(liabilities),
            "breakdown": {
                name: {"spent": to_float(paid), "liabilities": to_float(owed)}
                for name, (paid, owed) in parts.items()
            },
        }
