"""
Data model: queued attendance entries, auth token, connection settings,
and the wire records exchanged with the attendance API.

Everything here round-trips through plain dicts (to_dict / from_dict) so the
stores can keep JSON blobs.
"""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from .constants import DEFAULT_CATEGORY


def utc_timestamp(moment=None) -> str:
    """ISO-8601 UTC with millisecond precision and a 'Z' suffix."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_ms() -> int:
    return int(time.time() * 1000)


class EntryStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    FAILED = "failed"
    UNMATCHED = "unmatched"

    @classmethod
    def parse(cls, value):
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.PENDING


# ─── Queue item ──────────────────────────────────────────────────

@dataclass(frozen=True)
class AttendanceEntry:
    data: Dict[str, str]
    timestamp: str
    category: str = DEFAULT_CATEGORY
    is_selected: bool = False
    status: EntryStatus = EntryStatus.PENDING
    submitted_at: Optional[str] = None

    @property
    def name(self) -> str:
        return self.data.get("name") or ""

    @property
    def phone(self) -> Optional[str]:
        return self.data.get("phone")

    @property
    def key(self):
        """(timestamp, category): identity used for in-place status updates."""
        return self.timestamp, self.category

    @property
    def is_candidate(self) -> bool:
        return self.status in (EntryStatus.PENDING, EntryStatus.FAILED)

    def with_status(self, status, submitted_at=None):
        if submitted_at is None:
            return replace(self, status=status)
        return replace(self, status=status, submitted_at=submitted_at)

    def to_dict(self):
        return {
            "data": dict(self.data),
            "timestamp": self.timestamp,
            "category": self.category,
            "isSelected": self.is_selected,
            "status": self.status.value,
            "submittedAt": self.submitted_at,
        }

    @classmethod
    def from_dict(cls, raw):
        data = raw.get("data") or {}
        return cls(
            data={str(k): str(v) for k, v in data.items()},
            timestamp=str(raw.get("timestamp", "")),
            category=raw.get("category") or DEFAULT_CATEGORY,
            is_selected=bool(raw.get("isSelected", False)),
            status=EntryStatus.parse(raw.get("status", EntryStatus.PENDING.value)),
            submitted_at=raw.get("submittedAt"),
        )


# ─── Auth token ──────────────────────────────────────────────────

@dataclass(frozen=True)
class AuthToken:
    access_token: str
    expires_in: int
    expires_at: int                    # epoch milliseconds
    user_id: Optional[str] = None
    role: Optional[str] = None
    can_edit_tags: bool = False

    def is_expired(self, now=None) -> bool:
        """Expired when now >= expires_at (the boundary instant counts as expired)."""
        now = now_ms() if now is None else now
        return now >= self.expires_at

    def is_admin(self) -> bool:
        return (self.role or "").strip().lower() == "admin"

    def effective_can_edit_tags(self) -> bool:
        return self.is_admin() or self.can_edit_tags

    def to_dict(self):
        return {
            "accessToken": self.access_token,
            "expiresIn": self.expires_in,
            "expiresAt": self.expires_at,
            "userId": self.user_id,
            "role": self.role,
            "canEditTags": self.can_edit_tags,
        }

    @classmethod
    def from_dict(cls, raw):
        return cls(
            access_token=str(raw["accessToken"]),
            expires_in=int(raw["expiresIn"]),
            expires_at=int(raw["expiresAt"]),
            user_id=raw.get("userId"),
            role=raw.get("role"),
            can_edit_tags=bool(raw.get("canEditTags", False)),
        )


# ─── Connection settings ─────────────────────────────────────────

def default_categories():
    return {DEFAULT_CATEGORY: DEFAULT_CATEGORY}


@dataclass
class AppSettings:
    api_base_url: str = ""
    api_key: str = ""
    username: str = ""
    password: str = ""
    auth_route: str = ""
    validate_route: str = ""
    main_route: str = ""
    extensions: Dict[str, str] = field(default_factory=dict)
    categories: Dict[str, str] = field(default_factory=default_categories)

    # Persisted key names
    _FIELDS = (
        ("api_base_url", "api"),
        ("api_key", "key"),
        ("username", "username"),
        ("password", "password"),
        ("auth_route", "authRoute"),
        ("validate_route", "validateRoute"),
        ("main_route", "mainRoute"),
    )

    def has_credentials(self) -> bool:
        return all([
            self.api_base_url, self.api_key, self.username,
            self.password, self.auth_route,
        ])

    def to_dict(self):
        out = {wire: getattr(self, attr) for attr, wire in self._FIELDS}
        out["extensions"] = dict(self.extensions)
        out["categories"] = dict(self.categories)
        return out

    @classmethod
    def from_dict(cls, raw):
        kwargs = {attr: str(raw.get(wire) or "") for attr, wire in cls._FIELDS}
        extensions = raw.get("extensions") or {}
        categories = raw.get("categories") or default_categories()
        kwargs["extensions"] = {str(k): str(v) for k, v in extensions.items()}
        kwargs["categories"] = {str(k): str(v) for k, v in categories.items()}
        settings = cls(**kwargs)
        settings.categories.setdefault(DEFAULT_CATEGORY, DEFAULT_CATEGORY)
        return settings


# ─── Wire records ────────────────────────────────────────────────

@dataclass(frozen=True)
class SubmissionRecord:
    name: str
    ts: str
    category: str
    user_id: Optional[str] = None

    def to_dict(self):
        return {"name": self.name, "ts": self.ts, "category": self.category, "user_id": self.user_id}

    @classmethod
    def from_entry(cls, entry, user_id=None):
        return cls(name=entry.name, ts=entry.timestamp, category=entry.category, user_id=user_id)


@dataclass(frozen=True)
class ResponseItem:
    name: Optional[str] = None
    phone: Optional[str] = None


# ─── Tag reads (produced by the tag codec) ───────────────────────

@dataclass(frozen=True)
class TagRead:
    data: Dict[str, str]
    url: Optional[str] = None

    def to_entry_data(self):
        merged = dict(self.data)
        if self.url is not None:
            merged["url"] = self.url
        return merged
