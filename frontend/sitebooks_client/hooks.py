"""
Data hooks for dashboard screens.

Each hook returns a Resource that fetches on creation and holds ``data``,
``loading`` and ``error``. Calling ``refetch()`` loads again. A failed load
keeps the previous data unless the hook clears it on error.
"""
import logging
import math

from sitebooks_client import ApiError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 12
PAGE_SIZE_OPTIONS = [12, 24, 50, 100]
ALL_PROJECTS = "__all__"


class Resource:
    def __init__(self, fetch, default=None, error_message="Failed to load data", enabled=True,
                 clear_on_error=False):
        self._fetch = fetch
        self._default = default
        self._error_message = error_message
        self._enabled = enabled
        self._clear_on_error = clear_on_error
        self.data = default
        self.loading = True
        self.error = None
        self.refetch()

    def refetch(self):
        if not self._enabled:
            self.data = self._default
            self.loading = False
            self.error = None
            return self.data

        self.loading = True
        self.error = None
        try:
            self.data = self._fetch()
        except ApiError as exc:
            logger.info(f"{self._error_message}: {exc.message}")
            self.error = exc.message or self._error_message
            if self._clear_on_error:
                self.data = self._default
        finally:
            self.loading = False
        return self.data


def _project_filter(project_id):
    return project_id if project_id and project_id != ALL_PROJECTS else None


# ==================== PROJECTS & BANKING ====================

def use_projects(client):
    return Resource(lambda: client.get('/projects'), default=[], error_message="Failed to load projects")


def use_project_ledger(client, project_id, page=1, page_size=DEFAULT_PAGE_SIZE):
    return Resource(
        lambda: client.get(f'/projects/{project_id}/ledger', {'page': page, 'page_size': page_size}),
        enabled=bool(project_id),
        error_message="Failed to load project ledger",
    )


def use_bank_accounts(client):
    return Resource(lambda: client.get('/bank-accounts'), default=[], error_message="Failed to load bank accounts")


def use_bank_transactions(client, search=None, account_id=None, start_date=None, end_date=None, type=None,
                          page=1, page_size=DEFAULT_PAGE_SIZE):
    params = {
        'search': search or None,
        'account_id': account_id,
        'start_date': start_date,
        'end_date': end_date,
        'type': type,
        'page': page,
        'page_size': page_size,
    }
    return Resource(
        lambda: client.get('/bank-transactions', params),
        error_message="Failed to load bank transactions",
    )


def use_cash_expenses_report(client, project_id, date):
    return Resource(
        lambda: client.get(f'/reports/cash-expenses/{project_id}', {'date': date}),
        enabled=bool(project_id and date),
        clear_on_error=True,
        error_message="Failed to load cash & expenses report",
    )


# ==================== CONTRACTORS, MACHINES & VENDORS ====================

def use_contractors(client, project_id=None):
    return Resource(
        lambda: client.get('/contractors', {'project_id': _project_filter(project_id)}),
        default=[],
        error_message="Failed to load contractors",
    )


def use_contractor_ledger(client, project_id, month, contractor_id=None, page=1, page_size=DEFAULT_PAGE_SIZE):
    """Month view for a project, or all-time rows when a contractor is picked"""
    params = {'project_id': project_id, 'page': page, 'page_size': page_size}
    if contractor_id:
        params['contractor_id'] = contractor_id
    else:
        params['month'] = month
    resource = Resource(
        lambda: client.get('/contractors/ledger', params),
        enabled=bool(project_id),
        error_message="Failed to load contractor ledger",
    )
    resource.is_all_time_mode = bool(contractor_id)
    return resource


def use_machines(client, project_id=None, page=None, page_size=None):
    return Resource(
        lambda: client.get('/machines', {
            'project_id': _project_filter(project_id), 'page': page, 'page_size': page_size
        }),
        error_message="Failed to load machines",
    )


def use_machine_ledger(client, machine_id, month=None, page=1, page_size=DEFAULT_PAGE_SIZE):
    return Resource(
        lambda: client.get(f'/machines/{machine_id}/ledger', {'month': month, 'page': page, 'page_size': page_size}),
        enabled=bool(machine_id),
        error_message="Failed to load machine ledger",
    )


def use_vendors(client, project_id=None):
    return Resource(
        lambda: client.get('/vendors', {'project_id': _project_filter(project_id)}),
        default=[],
        error_message="Failed to load vendors",
    )


def use_vendor_ledger(client, vendor_id, page=1, page_size=DEFAULT_PAGE_SIZE):
    return Resource(
        lambda: client.get(f'/vendors/{vendor_id}/ledger', {'page': page, 'page_size': page_size}),
        enabled=bool(vendor_id),
        error_message="Failed to load vendor ledger",
    )


# ==================== EMPLOYEES & EXPENSES ====================

def use_employees(client, project_id=None, month=None):
    return Resource(
        lambda: client.get('/employees', {'project_id': _project_filter(project_id), 'month': month}),
        default=[],
        error_message="Failed to load employees",
    )


def use_employee_ledger(client, employee_id, month=None, page=1, page_size=DEFAULT_PAGE_SIZE):
    return Resource(
        lambda: client.get(f'/employees/{employee_id}/ledger', {'month': month, 'page': page, 'page_size': page_size}),
        enabled=bool(employee_id),
        error_message="Failed to load employee ledger",
    )


def use_expenses(client, project_id=None, search=None, category=None, page=1, page_size=DEFAULT_PAGE_SIZE):
    params = {
        'project_id': _project_filter(project_id),
        'search': search or None,
        'category': category if category and category != 'all' else None,
        'page': page,
        'page_size': page_size,
    }
    return Resource(lambda: client.get('/expenses', params), error_message="Failed to load expenses")


# ==================== INVENTORY ====================

def use_consumable_items(client, project_id=None):
    return Resource(
        lambda: client.get('/consumable-items', {'project_id': _project_filter(project_id)}),
        default=[],
        error_message="Failed to load items",
    )


def use_item_ledger(client, item_id, page=1, page_size=DEFAULT_PAGE_SIZE):
    return Resource(
        lambda: client.get(f'/consumable-items/{item_id}/ledger', {'page': page, 'page_size': page_size}),
        enabled=bool(item_id),
        error_message="Failed to load item ledger",
    )


def use_stock_consumption(client, project_id=None, page=1, page_size=DEFAULT_PAGE_SIZE):
    return Resource(
        lambda: client.get('/stock-consumption', {
            'project_id': _project_filter(project_id), 'page': page, 'page_size': page_size
        }),
        error_message="Failed to load stock consumption",
    )


def use_non_consumable_items(client):
    return Resource(
        lambda: client.get('/non-consumable-items'),
        default=[],
        error_message="Failed to load non-consumable items",
    )


def use_non_consumable_ledger(client, item_id, page=1, page_size=DEFAULT_PAGE_SIZE):
    return Resource(
        lambda: client.get(f'/non-consumable-items/{item_id}/ledger', {'page': page, 'page_size': page_size}),
        enabled=bool(item_id),
        error_message="Failed to load ledger",
    )


# ==================== PAGINATION ====================

class TablePagination:
    """Client-side paging over an already loaded list"""

    def __init__(self, items, default_page_size=DEFAULT_PAGE_SIZE, page_size_options=None):
        self.items = list(items)
        self.page_size_options = page_size_options or PAGE_SIZE_OPTIONS
        self.page_size = default_page_size
        self._page = 1

    @property
    def total_items(self):
        return len(self.items)

    @property
    def total_pages(self):
        return max(1, math.ceil(self.total_items / self.page_size))

    @property
    def page(self):
        return min(self._page, self.total_pages)

    def set_page(self, page):
        self._page = max(1, min(page, self.total_pages))

    def set_page_size(self, size):
        self.page_size = size
        self._page = 1

    @property
    def start_index(self):
        return (self.page - 1) * self.page_size

    @property
    def end_index(self):
        return min(self.start_index + self.page_size, self.total_items)

    @property
    def paginated_items(self):
        return self.items[self.start_index:self.end_index]

    @property
    def can_prev(self):
        return self.page > 1

    @property
    def can_next(self):
        return self.page < self.total_pages

    def go_prev(self):
        self.set_page(self.page - 1)

    def go_next(self):
        self.set_page(self.page + 1)
