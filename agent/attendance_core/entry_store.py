"""
EntryStore: durable attendance queue in the plain (non-encrypted) store.

The whole list is serialised on every save; there are no partial writes.
Only AttendanceCoordinator talks to this class.
"""

import json
from dataclasses import replace

from .config import log
from .constants import DEFAULT_CATEGORY, KEY_SCANNED_TAGS
from .models import AttendanceEntry


class EntryStore:

    def __init__(self, store):
        self._store = store

    def load(self):
        raw = self._store.get(KEY_SCANNED_TAGS)
        if raw is None:
            return []
        try:
            items = json.loads(raw)
        except ValueError as e:
            log.warning("Stored entries unreadable, starting empty: %s", e)
            return []
        if not isinstance(items, list):
            return []

        entries = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                entries.append(AttendanceEntry.from_dict(item))
            except (TypeError, AttributeError, ValueError) as e:
                log.warning("Skipping malformed stored entry: %s", e)
        return entries

    def save(self, entries):
        self._store.put(KEY_SCANNED_TAGS, json.dumps([e.to_dict() for e in entries]))

    def clear(self):
        self._store.delete(KEY_SCANNED_TAGS)

    def load_migrated(self, valid_categories):
        """
        Load entries, moving any whose category is no longer configured to the
        default category. The rewritten list is persisted only when something changed.
        """
        valid = set(valid_categories)
        entries = self.load()
        migrated = []
        changed = 0
        for entry in entries:
            if entry.category not in valid:
                migrated.append(replace(entry, category=DEFAULT_CATEGORY))
                changed += 1
            else:
                migrated.append(entry)

        if changed:
            log.info("Migrated %d entries to category '%s'", changed, DEFAULT_CATEGORY)
            self.save(migrated)
        return migrated
