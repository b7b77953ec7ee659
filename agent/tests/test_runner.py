from dataclasses import replace

import pytest

from attendance_core.config import ENTRIES_STORE_FILE
from attendance_core.entry_store import EntryStore
from attendance_core.runner import main
from attendance_core.storage import JsonFileStore


@pytest.fixture()
def cli(tmp_path, capsys):
    def run(*argv):
        code = main(["--base-dir", str(tmp_path), *argv])
        return code, capsys.readouterr().out
    return run


def test_add_list_delete(cli):
    cli("category", "add", "tasbeha", "Tasbeha")
    assert cli("add", "Mina")[0] == 0
    assert cli("add", "Youssef", "--category", "tasbeha")[0] == 0

    code, out = cli("list")
    lines = out.splitlines()
    assert code == 0
    assert lines[0].split()[0] == "0" and "Youssef" in lines[0]
    assert lines[1].split()[0] == "1" and "Mina" in lines[1]
    assert "pending" in lines[1]

    # Filtered listing keeps positions from the full list
    _, out = cli("list", "--category", "Main")
    assert out.split()[0] == "1"

    _, out = cli("delete", "0")
    assert "Deleted 1 entries." in out
    _, out = cli("list")
    assert "Youssef" not in out and "Mina" in out

    cli("delete", "--all")
    assert cli("list")[1].strip() == "No entries."


def test_delete_by_index_ignores_stored_selection(cli, tmp_path):
    cli("add", "A")
    cli("add", "B")
    cli("add", "C")
    store = EntryStore(JsonFileStore(tmp_path / ENTRIES_STORE_FILE))
    store.save([replace(e, is_selected=e.name in ("C", "A")) for e in store.load()])

    _, out = cli("delete", "0")

    assert "Deleted 1 entries." in out
    assert [e.name for e in store.load()] == ["B", "A"]


def test_unknown_category_falls_back_to_main_on_next_start(cli):
    cli("add", "Youssef", "--category", "youth")
    _, out = cli("list", "--category", "Main")
    assert "Youssef" in out


def test_settings_set_and_show_masks_password(cli):
    cli("settings", "set", "api", "https://api.example.com")
    cli("settings", "set", "password", "hunter2")
    code, out = cli("settings", "show")
    assert code == 0
    assert "https://api.example.com" in out
    assert "hunter2" not in out
    assert "********" in out
    assert "Main=Main" in out


def test_categories_and_headers(cli):
    assert cli("category", "add", "tasbeha", "Tasbeha")[0] == 0
    assert cli("header", "set", "X-Tenant", "school-7")[0] == 0
    _, out = cli("settings", "show")
    assert "tasbeha=Tasbeha" in out
    assert "X-Tenant=school-7" in out

    code, out = cli("category", "add", "TASBEHA", "Dup")
    assert code == 2 and out.startswith("Error:")


def test_default_category_is_protected(cli):
    code, out = cli("category", "delete", "Main")
    assert code == 2
    assert "Error:" in out


def test_connection_test_requires_settings(cli):
    code, out = cli("test")
    assert code == 1
    assert "API base URL" in out


def test_submit_with_empty_queue(cli):
    code, out = cli("submit")
    assert code == 0
    assert "Submitted 0 entries." in out


def test_logout(cli):
    assert cli("logout") == (0, "Logged out.\n")
