"""
SettingsStore: connection settings, kept as one JSON blob in the secure store.

Besides load/save it enforces the editing rules for categories and header
extensions: keys are non-empty, category keys are unique case-insensitively,
and the default category can be neither deleted nor renamed.
"""

import json

from .config import log
from .constants import DEFAULT_CATEGORY, KEY_SETTINGS
from .models import AppSettings


class SettingsError(ValueError):
    """A settings edit that would break an invariant."""


class SettingsStore:

    def __init__(self, store):
        self._store = store

    def load(self):
        raw = self._store.get(KEY_SETTINGS)
        if raw is None:
            return AppSettings()
        try:
            return AppSettings.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as e:
            log.warning("Stored settings unreadable, using defaults: %s", e)
            return AppSettings()

    def save(self, settings):
        settings.categories.setdefault(DEFAULT_CATEGORY, DEFAULT_CATEGORY)
        self._store.put(KEY_SETTINGS, json.dumps(settings.to_dict()))

    def update(self, **changes):
        """Overwrite plain string fields (api_base_url, username, ...)."""
        settings = self.load()
        for name, value in changes.items():
            if name in ("extensions", "categories") or not hasattr(settings, name):
                raise SettingsError(f"Unknown setting: {name}")
            setattr(settings, name, str(value).strip())
        self.save(settings)
        return settings

    # ─── Categories ──────────────────────────────────────────

    def add_category(self, key, label):
        key, label = _require(key, label)
        settings = self.load()
        if _has_key_ci(settings.categories, key):
            raise SettingsError("Category already exists")
        settings.categories[key] = label
        self.save(settings)
        return settings

    def edit_category(self, old_key, new_key, label):
        new_key, label = _require(new_key, label)
        if old_key == DEFAULT_CATEGORY and new_key != DEFAULT_CATEGORY:
            raise SettingsError("Cannot change the default category key")
        settings = self.load()
        if old_key not in settings.categories:
            raise SettingsError(f"No such category: {old_key}")
        others = {k: v for k, v in settings.categories.items() if k != old_key}
        if new_key != old_key and _has_key_ci(others, new_key):
            raise SettingsError("Category already exists")
        # Rebuild to keep the renamed entry in its original position
        settings.categories = {
            (new_key if k == old_key else k): (label if k == old_key else v)
            for k, v in settings.categories.items()
        }
        self.save(settings)
        return settings

    def delete_category(self, key):
        if key == DEFAULT_CATEGORY:
            raise SettingsError("Cannot delete default category")
        settings = self.load()
        settings.categories.pop(key, None)
        self.save(settings)
        return settings

    # ─── Header extensions ───────────────────────────────────

    def set_extension(self, key, value):
        key = (key or "").strip()
        if not key:
            raise SettingsError("Header name is required")
        settings = self.load()
        settings.extensions[key] = str(value)
        self.save(settings)
        return settings

    def delete_extension(self, key):
        settings = self.load()
        settings.extensions.pop(key, None)
        self.save(settings)
        return settings


def _require(key, label):
    key = (key or "").strip()
    label = (label or "").strip()
    if not key or not label:
        raise SettingsError("Both fields are required")
    return key, label


def _has_key_ci(mapping, key):
    return any(k.lower() == key.lower() for k in mapping)
