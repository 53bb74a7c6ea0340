"""
Banking Service - Bank Accounts and Transactions
"""
from typing import Optional, Dict
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_
from datetime import date
import logging

from sitebooks.models import BankAccount, BankTransaction, Project, TransactionType, ZERO
from sitebooks.core.errors import NotFoundError, ValidationError
from sitebooks.services.audit_service import AuditService, AuditAction
from sitebooks.services.helpers import money, to_float, iso, page_bounds, clean

logger = logging.getLogger(__name__)


class BankAccountService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, account_id: int, lock: bool = False) -> Optional[BankAccount]:
        query = self.db.query(BankAccount).filter(BankAccount.id == account_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get(self, account_id: int) -> BankAccount:
        account = self.get_by_id(account_id)
        if not account:
            raise NotFoundError("Account not found")
        return account

    def list(self):
        return self.db.query(BankAccount).order_by(BankAccount.name).all()

    def create(self, actor, data) -> BankAccount:
        name = clean(data.name)
        if not name:
            raise ValidationError("Account name is required")
        opening = money(data.opening_balance)

        account = BankAccount(
            name=name,
            account_number=clean(data.account_number),
            opening_balance=opening,
            current_balance=opening,
            total_inflow=ZERO,
            total_outflow=ZERO,
        )
        self.db.add(account)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "bank_account", account.id,
            description=f"Created bank account {account.name}",
            new_values=bank_account_to_dict(account),
        )
        return account

    def update(self, actor, account_id: int, data) -> BankAccount:
        account = self.get_by_id(account_id, lock=True)
        if not account:
            raise NotFoundError("Account not found")
        old_values = bank_account_to_dict(account)
        update = data.model_dump(exclude_unset=True)

        if "name" in update:
            name = clean(update["name"])
            if not name:
                raise ValidationError("Account name is required")
            account.name = name
        if "account_number" in update:
            account.account_number = clean(update["account_number"])
        if update.get("opening_balance") is not None:
            opening = money(update["opening_balance"])
            inflow, outflow = money(account.total_inflow), money(account.total_outflow)
            current = opening + inflow - outflow
            if current < 0:
                raise ValidationError(
                    f"Cannot set opening balance to {opening:,.2f}: resulting balance would be negative "
                    f"({current:,.2f}). Current inflow: {inflow:,.2f}, outflow: {outflow:,.2f}."
                )
            account.opening_balance = opening
            account.current_balance = current

        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "bank_account", account.id,
            description=f"Updated bank account {account.name}",
            old_values=old_values,
            new_values=bank_account_to_dict(account),
        )
        return account

    def delete(self, actor, account_id: int):
        account = self.get(account_id)
        count = self.db.query(BankTransaction).filter(BankTransaction.account_id == account_id).count()
        if count:
            raise ValidationError(
                f"Cannot delete: {count} transaction(s) linked to this account. Remove transactions first."
            )

        old_values = bank_account_to_dict(account)
        self.db.delete(account)
        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.DELETE, "bank_account", account_id,
            description=f"Deleted bank account {old_values['name']}",
            old_values=old_values,
        )


class BankTransactionService:
    """
    Inflows and outflows against bank accounts.

    An outflow may be tagged to a project; the money then lands in that
    project's balance. Account and project balances move in the same
    transaction as the row itself and may never go negative.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, transaction_id: int) -> Optional[BankTransaction]:
        return self.db.query(BankTransaction).filter(BankTransaction.id == transaction_id).first()

    def list(
        self,
        search: Optional[str] = None,
        account_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        type: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> Dict:
        query = self.db.query(BankTransaction).options(
            joinedload(BankTransaction.account),
            joinedload(BankTransaction.project),
        )
        if account_id:
            query = query.filter(BankTransaction.account_id == account_id)
        if type:
            query = query.filter(BankTransaction.type == type)
        if start_date:
            query = query.filter(BankTransaction.date >= start_date)
        if end_date:
            query = query.filter(BankTransaction.date <= end_date)
        search = clean(search)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                BankTransaction.source.ilike(pattern),
                BankTransaction.destination.ilike(pattern),
                BankTransaction.reference_id.ilike(pattern),
                BankTransaction.remarks.ilike(pattern),
            ))

        total = query.count()
        page, page_size = page_bounds(page, page_size)
        rows = query.order_by(BankTransaction.date.desc(), BankTransaction.id.desc()) \
            .offset((page - 1) * page_size).limit(page_size).all()

        return {
            "rows": [bank_transaction_to_dict(tx) for tx in rows],
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    def _locked_account(self, account_id: int) -> BankAccount:
        account = BankAccountService(self.db).get_by_id(account_id, lock=True)
        if not account:
            raise NotFoundError("Account not found")
        return account

    def _locked_project(self, project_id: Optional[int]) -> Optional[Project]:
        if not project_id:
            return None
        project = self.db.query(Project).filter(Project.id == project_id).with_for_update().first()
        if not project:
            raise NotFoundError("Project not found")
        return project

    @staticmethod
    def _apply(account: BankAccount, project: Optional[Project], tx_type: str, amount, sign: int):
        """Apply (sign=1) or reverse (sign=-1) a transaction's effect on balances"""
        delta = money(amount) * sign
        if tx_type == TransactionType.INFLOW.value:
            account.current_balance = money(account.current_balance) + delta
            account.total_inflow = money(account.total_inflow) + delta
        else:
            account.current_balance = money(account.current_balance) - delta
            account.total_outflow = money(account.total_outflow) + delta
            if project is not None:
                project.balance = money(project.balance) + delta

    def create(self, actor, data) -> BankTransaction:
        tx_type = data.type.value
        if data.project_id and tx_type != TransactionType.OUTFLOW.value:
            raise ValidationError("Project can only be set for outflow transactions")

        account = self._locked_account(data.account_id)
        project = self._locked_project(data.project_id)
        amount = money(data.amount)

        if tx_type == TransactionType.OUTFLOW.value and money(account.current_balance) < amount:
            raise ValidationError(
                "Insufficient bank balance. Cannot create outflow that would make balance negative."
            )

        tx = BankTransaction(
            account_id=account.id,
            date=data.date,
            type=tx_type,
            amount=amount,
            source=data.source.strip(),
            destination=data.destination.strip(),
            project_id=project.id if project else None,
            mode=data.mode.value,
            reference_id=clean(data.reference_id),
            remarks=clean(data.remarks),
        )
        self.db.add(tx)
        self._apply(account, project, tx_type, amount, 1)
        self.db.flush()

        AuditService(self.db).log(
            actor, AuditAction.CREATE, "bank_transaction", tx.id,
            description=f"Bank {tx_type} of {amount} on {account.name}",
            new_values=bank_transaction_to_dict(tx),
        )
        return tx

    def update(self, actor, transaction_id: int, data) -> BankTransaction:
        tx = self.get_by_id(transaction_id)
        if not tx:
            raise NotFoundError("Transaction not found")
        old_values = bank_transaction_to_dict(tx)
        update = data.model_dump(exclude_unset=True)

        new_project_id = update["project_id"] if "project_id" in update else tx.project_id
        if new_project_id and tx.type != TransactionType.OUTFLOW.value:
            raise ValidationError("Project can only be set for outflow transactions")

        account = self._locked_account(tx.account_id)
        old_project = self._locked_project(tx.project_id)
        self._apply(account, old_project, tx.type, tx.amount, -1)

        new_project = old_project if new_project_id == tx.project_id else self._locked_project(new_project_id)
        new_amount = money(update["amount"]) if update.get("amount") is not None else money(tx.amount)

        if tx.type == TransactionType.OUTFLOW.value and money(account.current_balance) < new_amount:
            raise ValidationError(
                "Insufficient bank balance. Cannot update outflow that would make balance negative."
            )
        self._apply(account, new_project, tx.type, new_amount, 1)
        if money(account.current_balance) < 0:
            raise ValidationError("Cannot update: bank balance would become negative.")
        if old_project is not None and money(old_project.balance) < 0:
            raise ValidationError("Cannot update: project balance would become negative.")

        tx.amount = new_amount
        tx.project_id = new_project.id if new_project else None
        if update.get("date") is not None:
            tx.date = update["date"]
        if update.get("source"):
            tx.source = update["source"].strip()
        if update.get("destination"):
            tx.destination = update["destination"].strip()
        if update.get("mode") is not None:
            tx.mode = data.mode.value
        if "reference_id" in update:
            tx.reference_id = clean(update["reference_id"])
        if "remarks" in update:
            tx.remarks = clean(update["remarks"])

        self.db.flush()
        self.db.expire(tx, ["project"])
        AuditService(self.db).log(
            actor, AuditAction.UPDATE, "bank_transaction", tx.id,
            description=f"Updated bank {tx.type} on {account.name}",
            old_values=old_values,
            new_values=bank_transaction_to_dict(tx),
        )
        return tx

    def delete(self, actor, transaction_id: int):
        tx = self.get_by_id(transaction_id)
        if not tx:
            raise NotFoundError("Transaction not found")

        account = self._locked_account(tx.account_id)
        project = self._locked_project(tx.project_id)
        self._apply(account, project, tx.type, tx.amount, -1)

        if money(account.current_balance) < 0:
            raise ValidationError("Cannot delete: reversing this inflow would make bank balance negative.")
        if project is not None and money(project.balance) < 0:
            raise ValidationError("Cannot delete: reversing this outflow would make project balance negative.")

        old_values = bank_transaction_to_dict(tx)
        self.db.delete(tx)
        self.db.flush()
        AuditService(self.db).log(
            actor, AuditAction.DELETE, "bank_transaction", transaction_id,
            description=f"Deleted bank {old_values['type']} of {old_values['amount']} on {account.name}",
            old_values=old_values,
        )


def bank_account_to_dict(account: BankAccount) -> Dict:
    return {
        "id": account.id,
        "name": account.name,
        "account_number": account.account_number,
        "opening_balance": to_float(account.opening_balance),
        "current_balance": to_float(account.current_balance),
        "total_inflow": to_float(account.total_inflow),
        "total_outflow": to_float(account.total_outflow),
        "created_at": iso(account.created_at),
    }


def bank_transaction_to_dict(tx: BankTransaction) -> Dict:
    return {
        "id": tx.id,
        "account_id": tx.account_id,
        "account_name": tx.account.name if tx.account else None,
        "date": iso(tx.date),
        "type": tx.type,
        "amount": to_float(tx.amount),
        "source": tx.source,
        "destination": tx.destination,
        "project_id": tx.project_id,
        "project_name": tx.project.name if tx.project else None,
        "mode": tx.mode,
        "reference_id": tx.reference_id,
        "remarks": tx.remarks,
    }
