import json
import os
import stat
import sys

import pytest

from attendance_core.auth_cache import AuthTokenCache
from attendance_core.constants import KEY_SCANNED_TAGS
from attendance_core.entry_store import EntryStore
from attendance_core.models import AppSettings, AttendanceEntry, EntryStatus
from attendance_core.settings_store import SettingsError, SettingsStore
from attendance_core.storage import JsonFileStore

from conftest import MemoryStore, make_token


# ─── JsonFileStore ───────────────────────────────────────────────

def test_file_store_put_get_delete(tmp_path):
    store = JsonFileStore(tmp_path / "s.json")
    assert store.get("a") is None
    store.put("a", "1")
    store.put("b", "2")
    store.delete("a")
    store.delete("missing")

    reopened = JsonFileStore(tmp_path / "s.json")
    assert reopened.get("a") is None
    assert reopened.get("b") == "2"
    assert not (tmp_path / "s.json.tmp").exists()


def test_file_store_survives_corrupt_file(tmp_path):
    path = tmp_path / "s.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonFileStore(path)
    assert store.get("a") is None
    store.put("a", "1")
    assert json.loads(path.read_text(encoding="utf-8")) == {"a": "1"}


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
def test_private_file_store_is_owner_only(tmp_path):
    store = JsonFileStore(tmp_path / "secure.json", private=True)
    store.put("k", "v")
    mode = stat.S_IMODE(os.stat(tmp_path / "secure.json").st_mode)
    assert mode == 0o600


# ─── AuthTokenCache ──────────────────────────────────────────────

def test_token_cache_round_trip_and_clear():
    cache = AuthTokenCache(MemoryStore())
    assert cache.load() is None
    token = make_token(role="Admin")
    cache.save(token)
    assert cache.load() == token
    assert cache.is_admin() and cache.can_edit_tags()
    cache.clear()
    assert cache.load() is None
    assert not cache.is_admin()


def test_token_cache_treats_expired_token_as_unusable():
    cache = AuthTokenCache(MemoryStore())
    cache.save(make_token(expires_at=1_000))
    assert cache.load() is not None
    assert cache.load_usable(now=1_000) is None
    assert cache.load_usable(now=999) is not None
    assert cache.is_token_expired(now=1_000)


def test_token_cache_ignores_garbage():
    store = MemoryStore()
    store.put("auth_token", "{}")
    assert AuthTokenCache(store).load() is None


# ─── SettingsStore ───────────────────────────────────────────────

def test_settings_default_when_missing():
    settings = SettingsStore(MemoryStore()).load()
    assert settings == AppSettings()
    assert settings.categories == {"Main": "Main"}


def test_settings_round_trip():
    store = SettingsStore(MemoryStore())
    settings = AppSettings(
        api_base_url="https://api", api_key="k", username="u", password="p",
        auth_route="auth", validate_route="v", main_route="m",
        extensions={"X-A": "1", "X-B": "2"}, categories={"Main": "Main", "t": "T"},
    )
    store.save(settings)
    assert store.load() == settings


def test_update_rejects_unknown_fields(settings_store):
    settings_store.update(username="  new-user ")
    assert settings_store.load().username == "new-user"
    with pytest.raises(SettingsError):
        settings_store.update(categories="nope")
    with pytest.raises(SettingsError):
        settings_store.update(colour="blue")


def test_add_category_is_case_insensitive_unique(settings_store):
    settings_store.add_category("Youth", "Youth Meeting")
    assert settings_store.load().categories["Youth"] == "Youth Meeting"
    with pytest.raises(SettingsError):
        settings_store.add_category("youth", "Dup")
    with pytest.raises(SettingsError):
        settings_store.add_category(" ", "Empty")


def test_default_category_cannot_be_deleted_or_renamed(settings_store):
    with pytest.raises(SettingsError):
        settings_store.delete_category("Main")
    with pytest.raises(SettingsError):
        settings_store.edit_category("Main", "Primary", "Primary")
    settings_store.edit_category("Main", "Main", "Main Hall")
    assert settings_store.load().categories["Main"] == "Main Hall"


def test_edit_category_rename_keeps_position(settings_store):
    settings_store.add_category("youth", "Youth")
    settings_store.edit_category("tasbeha", "Tasbeha", "Tasbeha Night")
    assert list(settings_store.load().categories) == ["Main", "Tasbeha", "youth"]
    with pytest.raises(SettingsError):
        settings_store.edit_category("Tasbeha", "YOUTH", "clash")


def test_delete_category_and_extensions(settings_store):
    settings_store.delete_category("tasbeha")
    assert "tasbeha" not in settings_store.load().categories

    settings_store.set_extension("X-Device", "tablet-3")
    assert settings_store.load().extensions == {"X-Tenant": "school-7", "X-Device": "tablet-3"}
    settings_store.delete_extension("X-Tenant")
    assert settings_store.load().extensions == {"X-Device": "tablet-3"}
    with pytest.raises(SettingsError):
        settings_store.set_extension("", "v")


# ─── EntryStore ──────────────────────────────────────────────────

def _entry(ts, category="Main", status=EntryStatus.PENDING):
    return AttendanceEntry(data={"name": f"n-{ts}"}, timestamp=ts, category=category, status=status)


def test_entry_store_round_trip():
    store = EntryStore(MemoryStore())
    entries = [_entry("t2", status=EntryStatus.FAILED), _entry("t1", "tasbeha")]
    store.save(entries)
    assert store.load() == entries


def test_entry_store_skips_malformed_items():
    backing = MemoryStore()
    backing.put(KEY_SCANNED_TAGS, json.dumps([{"data": {"name": "A"}, "timestamp": "t"}, "junk", 3]))
    assert [e.name for e in EntryStore(backing).load()] == ["A"]


def test_category_migration_rewrites_unknown_and_persists_once():
    backing = MemoryStore()
    store = EntryStore(backing)
    store.save([_entry("t2", "Old"), _entry("t1", "Main")])
    backing.puts.clear()

    migrated = store.load_migrated({"Main", "tasbeha"})
    assert [e.category for e in migrated] == ["Main", "Main"]
    assert backing.puts == [KEY_SCANNED_TAGS]
    assert [e.category for e in store.load()] == ["Main", "Main"]

    store.load_migrated({"Main", "tasbeha"})
    assert backing.puts == [KEY_SCANNED_TAGS]
