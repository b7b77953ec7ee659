"""
AttendanceApp: composition root.

Builds every component once, in dependency order, and hands references down
explicitly. Nothing in the package holds module-level mutable state; tests
and the CLI construct their own AttendanceApp (or the pieces they need).

    stores → AuthTokenCache / SettingsStore / EntryStore
           → ApiGateway (session + token cache)
           → AttendanceCoordinator
           → ConnectivityMonitor + SubmissionScheduler
"""

import threading
from pathlib import Path

from .api import ApiGateway
from .auth_cache import AuthTokenCache
from .config import BASE_DIR, ENTRIES_STORE_FILE, SECURE_STORE_FILE, log
from .constants import (
    AGENT_VERSION, API_TIMEOUT, CONNECTIVITY_CHECK_SEC,
    SUBMISSION_TIMEOUT_SEC, SUBMIT_INTERVAL_SEC,
)
from .coordinator import AttendanceCoordinator
from .entry_store import EntryStore
from .http_client import create_session
from .network import ConnectivityMonitor, is_online
from .scheduler import SubmissionScheduler
from .settings_store import SettingsStore
from .storage import JsonFileStore


class AttendanceApp:

    def __init__(self, config=None, base_dir=None, secure_store=None, plain_store=None,
                 session=None, probe=None):
        self._config = config or {}
        base = Path(base_dir or BASE_DIR)

        self.secure_store = secure_store or JsonFileStore(base / SECURE_STORE_FILE, private=True)
        self.plain_store = plain_store or JsonFileStore(base / ENTRIES_STORE_FILE)

        self.token_cache = AuthTokenCache(self.secure_store)
        self.settings_store = SettingsStore(self.secure_store)
        self.entry_store = EntryStore(self.plain_store)

        self.gateway = ApiGateway(
            session or create_session(),
            self.token_cache,
            timeout=self._config.get("requestTimeoutSec", API_TIMEOUT),
        )
        self.coordinator = AttendanceCoordinator(
            self.gateway, self.entry_store, self.settings_store, self.token_cache,
        )

        self.connectivity = ConnectivityMonitor(
            probe or self._probe_api_host,
            interval=self._config.get("connectivityCheckSec", CONNECTIVITY_CHECK_SEC),
        )
        self.scheduler = SubmissionScheduler(
            self.coordinator,
            self.connectivity,
            interval=self._config.get("submitIntervalSec", SUBMIT_INTERVAL_SEC),
            timeout=self._config.get("submissionTimeoutSec", SUBMISSION_TIMEOUT_SEC),
        )
        self.connectivity.add_listener(self.scheduler.on_connectivity_changed)
        self._stopped = threading.Event()

    def _probe_api_host(self):
        return is_online(self.settings_store.load().api_base_url)

    # ─── Lifecycle ───────────────────────────────────────────

    def start(self):
        """Start background threads without blocking."""
        self._stopped.clear()
        settings = self.settings_store.load()
        if settings.has_credentials() and not self.coordinator.has_usable_token():
            result = self.coordinator.authenticate(settings)
            if not result.ok:
                # Startup auth is best effort; the scheduler retries before each submit
                log.info("Startup authentication failed: %s", result)

        self.connectivity.start()
        self.scheduler.start()
        if self.connectivity.is_online:
            self.scheduler.trigger()

        log.info(
            "v%s started (entries=%d, pending=%d, online=%s)",
            AGENT_VERSION, len(self.coordinator.entries),
            len(self.coordinator.get_pending_or_failed()), self.connectivity.is_online,
        )

    def run(self):
        """Start and block until stop() or Ctrl+C."""
        self.start()
        try:
            while not self._stopped.wait(1):
                pass
        finally:
            self.shutdown()

    def stop(self):
        self._stopped.set()

    def shutdown(self):
        self.scheduler.stop()
        self.connectivity.stop()
        try:
            self.gateway.session.close()
        except Exception as e:
            log.debug("Session close failed: %s", e)
        log.info("AttendanceApp shut down.")

