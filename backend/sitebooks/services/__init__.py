# Services Package
from sitebooks.services.audit_service import AuditService, AuditAction
from sitebooks.services.user_service import UserService
from sitebooks.services.project_service import ProjectService, ProjectLedgerService
from sitebooks.services.banking_service import BankAccountService, BankTransactionService
from sitebooks.services.contractor_service import ContractorService, ContractorLedgerService
from sitebooks.services.machine_service import MachineService, MachineLedgerService
from sitebooks.services.vendor_service import VendorService, VendorLedgerService
from sitebooks.services.inventory_service import ConsumableItemService, ItemLedgerService, StockConsumptionService
from sitebooks.services.non_consumable_service import (
    CategoryService, NonConsumableItemService, NonConsumableLedgerService
)
from sitebooks.services.employee_service import EmployeeService, EmployeeLedgerService
from sitebooks.services.expense_service import ExpenseService
from sitebooks.services.report_service import CashExpensesReportService, ProjectSummaryService

__all__ = [
    'AuditService',
    'AuditAction',
    'UserService',
    'ProjectService',
    'ProjectLedgerService',
    'BankAccountService',
    'BankTransactionService',
    'ContractorService',
    'ContractorLedgerService',
    'MachineService',
    'MachineLedgerService',
    'VendorService',
    'VendorLedgerService',
    'ConsumableItemService',
    'ItemLedgerService',
    'StockConsumptionService',
    'CategoryService',
    'NonConsumableItemService',
    'NonConsumableLedgerService',
    'EmployeeService',
    'EmployeeLedgerService',
    'ExpenseService',
    'CashExpensesReportService',
    'ProjectSummaryService',
]
