"""
AttendanceCoordinator: owns the entry queue and every status transition.

The in-memory list mirrors EntryStore and is guarded by a re-entrant lock,
because foreground adds and background reconciliation can interleave.
Network calls (via ApiGateway) always run with the lock released.

The store may be shared with another process (the CLI next to the running
service), so every mutation first re-reads it; the stored list is the base
and only the selection flags come from memory.
"""

import threading
from dataclasses import replace

from .config import log
from .constants import DEFAULT_CATEGORY, UNMATCHED_MARKER
from .models import AttendanceEntry, EntryStatus, SubmissionRecord, utc_timestamp
from .result import Success, not_authenticated


class AttendanceCoordinator:

    def __init__(self, gateway, entry_store, settings_store, token_cache, timestamp=utc_timestamp):
        self._gateway = gateway
        self._entry_store = entry_store
        self._settings = settings_store
        self._tokens = token_cache
        self._timestamp = timestamp
        self._lock = threading.RLock()
        self._entries = []
        self._entry_listeners = []
        self._auth_listeners = []

        token = token_cache.load()
        self._is_authenticated = token is not None and not token.is_expired()
        self.reload()

    # ─── Snapshots ───────────────────────────────────────────

    @property
    def entries(self):
        with self._lock:
            return list(self._entries)

    @property
    def is_authenticated(self):
        return self._is_authenticated

    def filter_by_category(self, category):
        with self._lock:
            return [e for e in self._entries if e.category == category]

    def get_pending_or_failed(self):
        with self._lock:
            self._sync()
            return [e for e in self._entries if e.is_candidate]

    # ─── Observers ───────────────────────────────────────────

    def subscribe_entries(self, listener):
        """listener(entries) after every change. Returns an unsubscribe callable."""
        return _register(self._entry_listeners, listener)

    def subscribe_auth(self, listener):
        """listener(is_authenticated) when the auth flag flips. Returns an unsubscribe callable."""
        return _register(self._auth_listeners, listener)

    def _notify_entries(self):
        snapshot = self.entries
        for listener in list(self._entry_listeners):
            _call_listener(listener, snapshot)

    def _set_authenticated(self, value):
        value = bool(value)
        if value == self._is_authenticated:
            return
        self._is_authenticated = value
        log.info("Auth status: %s", "authenticated" if value else "not authenticated")
        for listener in list(self._auth_listeners):
            _call_listener(listener, value)

    # ─── Queue mutation ──────────────────────────────────────

    def reload(self):
        """Reload entries from disk, moving unknown categories to the default one."""
        categories = self._settings.load().categories
        with self._lock:
            self._entries = self._entry_store.load_migrated(categories.keys())
        self._notify_entries()

    def add_entry(self, data, category=DEFAULT_CATEGORY):
        if not data:
            raise ValueError("Entry data must not be empty")
        entry = AttendanceEntry(
            data={str(k): str(v) for k, v in data.items()},
            timestamp=self._timestamp(),
            category=category or DEFAULT_CATEGORY,
            status=EntryStatus.PENDING,
        )
        with self._lock:
            self._sync()
            self._entries.insert(0, entry)
            self._save()
        log.info("Entry queued | name=%s | category=%s", entry.name or "-", entry.category)
        self._notify_entries()
        return entry

    def add_manual_entry(self, name, category=DEFAULT_CATEGORY):
        name = (name or "").strip()
        if not name:
            raise ValueError("Name is required")
        return self.add_entry({"name": name}, category)

    def add_tag_read(self, tag, category=DEFAULT_CATEGORY):
        return self.add_entry(tag.to_entry_data(), category)

    def delete_selected(self):
        with self._lock:
            self._sync()
            before = len(self._entries)
            self._entries = [e for e in self._entries if not e.is_selected]
            removed = before - len(self._entries)
            self._save()
        if removed:
            log.info("Deleted %d selected entries", removed)
        self._notify_entries()
        return removed

    def toggle_selection(self, index):
        with self._lock:
            if not 0 <= index < len(self._entries):
                return
            entry = self._entries[index]
            self._entries[index] = _selected(entry, not entry.is_selected)
        self._notify_entries()

    def set_selection(self, index, selected):
        with self._lock:
            if not 0 <= index < len(self._entries):
                return
            self._entries[index] = _selected(self._entries[index], selected)
        self._notify_entries()

    def select_all(self, selected):
        with self._lock:
            self._entries = [_selected(e, selected) for e in self._entries]
        self._notify_entries()

    def _save(self):
        self._entry_store.save(self._entries)

    def _sync(self):
        """Rebase the in-memory list on the stored one. Caller holds the lock."""
        selection = {e.key: e.is_selected for e in self._entries}
        self._entries = [
            _selected(e, selection[e.key]) if e.key in selection else e
            for e in self._entry_store.load()
        ]

    # ─── Authentication ──────────────────────────────────────

    def authenticate(self, settings=None):
        settings = settings or self._settings.load()
        result = self._gateway.authenticate(
            base_url=settings.api_base_url,
            api_key=settings.api_key,
            username=settings.username,
            password=settings.password,
            auth_route=settings.auth_route,
            extensions=settings.extensions,
        )
        self._set_authenticated(result.ok)
        return result

    def validate_token(self):
        settings = self._settings.load()
        result = self._gateway.validate_token(settings.api_base_url, settings.validate_route,
                                              settings.extensions)
        self._set_authenticated(result.ok and result.value)
        return result

    def ensure_authenticated(self):
        result = self._gateway.ensure_authenticated(self._settings.load())
        self._set_authenticated(result.ok)
        return result

    def has_usable_token(self):
        return self._tokens.load_usable() is not None

    def logout(self):
        self._tokens.clear()
        self._set_authenticated(False)
        log.info("Logged out")

    # ─── Submission ──────────────────────────────────────────

    def submit_pending(self):
        """
        Send every Pending/Failed entry. Returns Success(number attempted),
        which counts Unmatched entries too, or the failure.
        """
        candidates = self.get_pending_or_failed()
        if not candidates:
            return Success(0)

        auth = self.ensure_authenticated()
        if not auth.ok:
            log.warning("Submission skipped: %s", auth)
            return not_authenticated()

        settings = self._settings.load()
        user_id = auth.value.user_id
        records = [SubmissionRecord.from_entry(e, user_id) for e in candidates]

        result = self._gateway.submit_attendance(
            settings.api_base_url, settings.main_route, records, settings.extensions,
        )
        if result.ok:
            self.reconcile(candidates, result.value)
            return Success(len(candidates))

        self.mark_failed(candidates)
        log.warning("Submission of %d entries failed: %s", len(candidates), result)
        return result

    def reconcile(self, submitted, response_items):
        """
        Apply the server's answer to the submitted entries. An entry whose
        matching item is named UNMATCHED becomes Unmatched; every other entry,
        matched or not, becomes Submitted.
        """
        submitted_at = self._timestamp()
        counts = {EntryStatus.SUBMITTED: 0, EntryStatus.UNMATCHED: 0}
        with self._lock:
            self._sync()
            for entry in submitted:
                index = self._index_of(entry)
                if index is None:
                    continue
                item = next(
                    (i for i in response_items if i.phone == entry.phone or i.name == entry.name),
                    None,
                )
                status = EntryStatus.UNMATCHED if item and item.name == UNMATCHED_MARKER else EntryStatus.SUBMITTED
                self._entries[index] = self._entries[index].with_status(status, submitted_at)
                counts[status] += 1
            self._save()
        log.info("Reconciled | submitted=%d | unmatched=%d",
                 counts[EntryStatus.SUBMITTED], counts[EntryStatus.UNMATCHED])
        self._notify_entries()

    def mark_failed(self, entries):
        """Mark entries Failed. Entries already Submitted or Unmatched keep their status."""
        with self._lock:
            self._sync()
            for entry in entries:
                index = self._index_of(entry)
                if index is not None and self._entries[index].is_candidate:
                    self._entries[index] = self._entries[index].with_status(EntryStatus.FAILED)
            self._save()
        self._notify_entries()

    def _index_of(self, entry):
        """First position with the same (timestamp, category)."""
        for index, current in enumerate(self._entries):
            if current.key == entry.key:
                return index
        return None


def _selected(entry, flag):
    return replace(entry, is_selected=bool(flag))


def _register(listeners, listener):
    listeners.append(listener)

    def unsubscribe():
        if listener in listeners:
            listeners.remove(listener)
    return unsubscribe


def _call_listener(listener, payload):
    try:
        listener(payload)
    except Exception as e:
        log.error("Listener %r failed: %s", listener, e, exc_info=True)
