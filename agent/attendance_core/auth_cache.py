"""
AuthTokenCache: the current bearer token, persisted in the secure store.
"""

import json

from .config import log
from .constants import KEY_AUTH_TOKEN
from .models import AuthToken


class AuthTokenCache:

    def __init__(self, store):
        self._store = store

    def load(self):
        """Return the stored AuthToken, or None when absent or unreadable."""
        raw = self._store.get(KEY_AUTH_TOKEN)
        if raw is None:
            return None
        try:
            return AuthToken.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            log.warning("Stored auth token unreadable, ignoring: %s", e)
            return None

    def save(self, token):
        self._store.put(KEY_AUTH_TOKEN, json.dumps(token.to_dict()))

    def clear(self):
        self._store.delete(KEY_AUTH_TOKEN)

    def load_usable(self, now=None):
        """The stored token if present and not expired, else None."""
        token = self.load()
        if token is None or token.is_expired(now):
            return None
        return token

    def is_token_expired(self, now=None):
        return self.load_usable(now) is None

    def is_admin(self):
        token = self.load()
        return token is not None and token.is_admin()

    def can_edit_tags(self):
        token = self.load()
        return token is not None and token.effective_can_edit_tags()
