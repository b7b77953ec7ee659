import pytest

from attendance_core.app import AttendanceApp
from attendance_core.config import ENTRIES_STORE_FILE
from attendance_core.entry_store import EntryStore
from attendance_core.models import AppSettings, EntryStatus
from attendance_core.storage import JsonFileStore

from conftest import FakeResponse, FakeSession, make_token


def _app(base_dir):
    return AttendanceApp(base_dir=base_dir, session=FakeSession(), probe=lambda: False)


@pytest.fixture()
def service(tmp_path):
    app = _app(tmp_path)
    app.settings_store.save(AppSettings(
        api_base_url="api.example.com", api_key="k", username="u", password="p",
        auth_route="auth", validate_route="validate", main_route="attendance",
        categories={"Main": "Main", "tasbeha": "Tasbeha"},
    ))
    app.token_cache.save(make_token())
    return app


def _stored(base_dir):
    return EntryStore(JsonFileStore(base_dir / ENTRIES_STORE_FILE)).load()


def test_service_submits_entries_added_by_cli(service, tmp_path):
    service.coordinator.add_manual_entry("Service")
    _app(tmp_path).coordinator.add_manual_entry("FromCli", "tasbeha")

    session = service.gateway.session
    session.reply("GET", FakeResponse(200, {"valid": True}))
    session.reply("POST", FakeResponse(200, []))
    assert service.coordinator.submit_pending().value == 2

    _, _, kwargs = session.calls_to("/attendance")[0]
    assert sorted(r["name"] for r in kwargs["json"]) == ["FromCli", "Service"]
    stored = {e.name: e.status for e in _stored(tmp_path)}
    assert stored == {"Service": EntryStatus.SUBMITTED, "FromCli": EntryStatus.SUBMITTED}


def test_service_writes_keep_cli_entries_and_deletions(service, tmp_path):
    service.coordinator.add_manual_entry("Old")
    cli = _app(tmp_path)
    cli.coordinator.add_manual_entry("FromCli", "tasbeha")
    cli.coordinator.set_selection([e.name for e in cli.coordinator.entries].index("Old"), True)
    assert cli.coordinator.delete_selected() == 1

    service.coordinator.add_manual_entry("Later", "tasbeha")

    assert sorted(e.name for e in _stored(tmp_path)) == ["FromCli", "Later"]
    assert sorted(e.name for e in service.coordinator.entries) == ["FromCli", "Later"]
