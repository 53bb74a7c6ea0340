"""
Client data hooks, driven in-process against the app through TestClient
"""
import pytest

from sitebooks_client import ApiClient, ApiError
from sitebooks_client import hooks
from conftest import PASSWORD


@pytest.fixture
def api(client, users):
    api = ApiClient(base_url="http://testserver", session=client)
    api.login("office@acme-builders.com", PASSWORD)
    return api


class FlakySource:
    def __init__(self):
        self.fail = False
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.fail:
            raise ApiError("Backend connection error")
        return [self.calls]


def test_login_keeps_the_token(client, users):
    api = ApiClient(base_url="http://testserver", session=client)
    user = api.login("site@acme-builders.com", PASSWORD)
    assert user["name"] == "Sam Site"
    assert api.token

    api.logout()
    with pytest.raises(ApiError) as excinfo:
        api.get("/projects")
    assert excinfo.value.status_code == 401


def test_error_messages_come_from_the_envelope(api):
    with pytest.raises(ApiError) as excinfo:
        api.post("/projects", {"name": "Zero", "allocated_budget": 0})
    assert excinfo.value.status_code == 400
    assert "budget" in excinfo.value.message.lower()


def test_resource_keeps_previous_data_on_error():
    source = FlakySource()
    resource = hooks.Resource(source, default=[])
    assert resource.data == [1]
    assert resource.loading is False

    source.fail = True
    resource.refetch()
    assert resource.data == [1]
    assert resource.error == "Backend connection error"

    source.fail = False
    resource.refetch()
    assert resource.data == [3]
    assert resource.error is None


def test_resource_can_clear_on_error():
    source = FlakySource()
    resource = hooks.Resource(source, clear_on_error=True)
    source.fail = True
    resource.refetch()
    assert resource.data is None
    assert resource.error == "Backend connection error"


def test_disabled_resource_does_not_fetch():
    source = FlakySource()
    resource = hooks.Resource(source, default=[], enabled=False)
    assert source.calls == 0
    assert resource.data == []
    assert resource.loading is False
    assert resource.error is None


def test_use_projects(api, project, other_project):
    projects = hooks.use_projects(api)
    assert [p["name"] for p in projects.data] == ["Hillview Villas", "Riverside Towers"]


def test_all_projects_filter_is_dropped(api, project, other_project):
    api.post("/contractors", {"name": "Pervaiz Steel Fixers", "project_id": project.id})
    api.post("/contractors", {"name": "Rehman Shuttering", "project_id": other_project.id})

    assert len(hooks.use_contractors(api, hooks.ALL_PROJECTS).data) == 2
    assert [c["name"] for c in hooks.use_contractors(api, project.id).data] == ["Pervaiz Steel Fixers"]


def test_contractor_ledger_modes(api, project):
    contractor = api.post("/contractors", {"name": "Pervaiz Steel Fixers", "project_id": project.id})

    idle = hooks.use_contractor_ledger(api, None, "2024-05")
    assert idle.data is None
    assert idle.loading is False

    monthly = hooks.use_contractor_ledger(api, project.id, "2024-05")
    assert monthly.is_all_time_mode is False
    assert monthly.error is None

    all_time = hooks.use_contractor_ledger(api, project.id, None, contractor_id=contractor["id"])
    assert all_time.is_all_time_mode is True
    assert all_time.error is None


def test_cash_report_hook_needs_project_and_date(api, project):
    assert hooks.use_cash_expenses_report(api, project.id, None).data is None

    report = hooks.use_cash_expenses_report(api, project.id, "2024-05-01")
    assert report.data["payments"] == []

    failed = hooks.use_cash_expenses_report(api, 9999, "2024-05-01")
    assert failed.data is None
    assert failed.error == "Project not found"


def test_table_pagination():
    pager = hooks.TablePagination(range(30))
    assert pager.total_pages == 3
    assert pager.paginated_items == list(range(12))
    assert pager.can_prev is False

    pager.go_next()
    pager.go_next()
    pager.go_next()
    assert pager.page == 3
    assert pager.paginated_items == list(range(24, 30))
    assert pager.can_next is False

    pager.set_page_size(24)
    assert pager.page == 1
    assert pager.end_index == 24

    pager.set_page(99)
    assert pager.page == 2


def test_table_pagination_with_no_items():
    pager = hooks.TablePagination([])
    assert pager.total_pages == 1
    assert pager.page == 1
    assert pager.paginated_items == []
