import json
import time

import pytest

from attendance_core.api import ApiGateway
from attendance_core.auth_cache import AuthTokenCache
from attendance_core.coordinator import AttendanceCoordinator
from attendance_core.entry_store import EntryStore
from attendance_core.models import AppSettings, AuthToken
from attendance_core.settings_store import SettingsStore

NOW = time.time()               # frozen for the gateway; tokens are built relative to it
NOW_MS = int(NOW * 1000)


class MemoryStore:
    """In-memory stand-in for the secure / plain key-value stores."""

    def __init__(self):
        self.data = {}
        self.puts = []

    def get(self, key):
        return self.data.get(key)

    def put(self, key, value):
        self.puts.append(key)
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


class FakeResponse:
    def __init__(self, status_code=200, body=None, raw=None):
        self.status_code = status_code
        if raw is not None:
            self.content = raw.encode("utf-8")
        elif body is None:
            self.content = b""
        else:
            self.content = json.dumps(body).encode("utf-8")
        self.text = self.content.decode("utf-8")

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """Records requests; answers from per-method queues of FakeResponse or exceptions."""

    def __init__(self):
        self.calls = []
        self.replies = {"GET": [], "POST": []}

    def reply(self, method, response):
        self.replies[method].append(response)

    def _handle(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if not self.replies[method]:
            raise AssertionError(f"Unexpected {method} {url}")
        reply = self.replies[method].pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get(self, url, **kwargs):
        return self._handle("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._handle("POST", url, **kwargs)

    def close(self):
        pass

    def calls_to(self, suffix):
        return [c for c in self.calls if c[1].endswith(suffix)]


def make_token(expires_at=NOW_MS + 3_600_000, user_id="42", role=None, can_edit_tags=False):
    return AuthToken(
        access_token="tok",
        expires_in=3600,
        expires_at=expires_at,
        user_id=user_id,
        role=role,
        can_edit_tags=can_edit_tags,
    )


def auth_body(**extra):
    body = {"success": True, "accessToken": "fresh", "expiresIn": 3600}
    body.update(extra)
    return body


@pytest.fixture()
def secure_store():
    return MemoryStore()


@pytest.fixture()
def plain_store():
    return MemoryStore()


@pytest.fixture()
def session():
    return FakeSession()


@pytest.fixture()
def token_cache(secure_store):
    return AuthTokenCache(secure_store)


@pytest.fixture()
def settings_store(secure_store):
    store = SettingsStore(secure_store)
    store.save(AppSettings(
        api_base_url="api.example.com/",
        api_key="key-1",
        username="teacher",
        password="secret",
        auth_route="/auth/login",
        validate_route="auth/validate",
        main_route="attendance",
        extensions={"X-Tenant": "school-7"},
        categories={"Main": "Main", "tasbeha": "Tasbeha"},
    ))
    return store


@pytest.fixture()
def gateway(session, token_cache):
    return ApiGateway(session, token_cache, clock=lambda: NOW)


class Clock:
    """Deterministic timestamps: one millisecond apart per call."""

    def __init__(self):
        self.ticks = 0

    def __call__(self):
        self.ticks += 1
        return f"2024-05-01T08:00:00.{self.ticks:03d}Z"


@pytest.fixture()
def coordinator(gateway, plain_store, settings_store, token_cache):
    return AttendanceCoordinator(gateway, EntryStore(plain_store), settings_store, token_cache,
                                 timestamp=Clock())
