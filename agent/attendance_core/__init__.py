"""
attendance_core: offline-first attendance agent
================================================
Entries are queued locally and flushed to the attendance API in the
background whenever connectivity and authentication allow.

  constants.py      → Version, intervals, timeouts, store keys
  config.py         → Paths, logging, agent config load/save
  storage.py        → JSON-file key-value store (secure + plain)
  models.py         → AttendanceEntry, AuthToken, AppSettings, wire records
  result.py         → Success / Error result type
  auth_cache.py     → AuthTokenCache (token in the secure store)
  settings_store.py → SettingsStore (connection settings + editing rules)
  entry_store.py    → EntryStore (durable queue + category migration)
  http_client.py    → HTTP session with retry/pooling + CA bundle
  api.py            → ApiGateway (authenticate, validate, submit)
  coordinator.py    → AttendanceCoordinator (queue owner, reconciliation)
  state.py          → SubmissionState (scheduler latch)
  network.py        → Connectivity check + monitor thread
  scheduler.py      → SubmissionScheduler (periodic + on-reconnect flush)
  app.py            → AttendanceApp (composition root)
  runner.py         → CLI main() + auto-restart wrapper
"""

from .app import AttendanceApp
from .constants import AGENT_VERSION

__all__ = ["AttendanceApp", "AGENT_VERSION"]
