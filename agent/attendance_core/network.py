"""
Connectivity monitoring.

Connectivity: socket-level check against the configured API host
(network-interface agnostic: WiFi, LAN, hotspot all look the same). Only
tests whether a TCP connection to the server can be established.

ConnectivityMonitor polls that check on a daemon thread and reports edge
transitions (offline → online, online → offline) to its listeners.
"""

import socket
import threading
from urllib.parse import urlsplit

from .api import normalize_base_url
from .config import log
from .constants import CONNECTIVITY_CHECK_SEC, PROBE_TIMEOUT


# ─── Connectivity check ──────────────────────────────────────────

def is_online(server_url, timeout=PROBE_TIMEOUT):
    """Quick reachability check via socket connect to the server's host."""
    if not (server_url or "").strip():
        return False
    try:
        parts = urlsplit(normalize_base_url(server_url))
        host = parts.hostname
        port = parts.port or (443 if parts.scheme == "https" else 80)
    except ValueError:
        return False
    if not host:
        return False
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
        sock.close()
        return True
    except OSError:
        return False


# ─── Monitor ─────────────────────────────────────────────────────

class ConnectivityMonitor:
    """
    Polls `probe()` every `interval` seconds. `is_online` is readable at any
    time; listeners get `listener(online)` on each edge only.
    """

    def __init__(self, probe, interval=CONNECTIVITY_CHECK_SEC):
        self._probe = probe
        self._interval = interval
        self._listeners = []
        self._online = False
        self._stop = threading.Event()
        self._thread = None

    @property
    def is_online(self):
        return self._online

    def add_listener(self, listener):
        self._listeners.append(listener)

    def _safe_probe(self):
        try:
            return bool(self._probe())
        except Exception as e:
            log.warning("Connectivity probe error: %s", e)
            return False

    def check(self):
        """Run one probe and emit an event on a transition. Returns the current state."""
        online_now = self._safe_probe()
        was_online = self._online
        self._online = online_now
        if online_now != was_online:
            log.info("Network %s", "ONLINE: reconnected" if online_now else "OFFLINE")
            for listener in list(self._listeners):
                try:
                    listener(online_now)
                except Exception as e:
                    log.error("Connectivity listener error: %s", e, exc_info=True)
        return online_now

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._online = self._safe_probe()       # Initial state, not an edge
        self._thread = threading.Thread(target=self._run, name="connectivity", daemon=True)
        self._thread.start()
        log.info("Connectivity monitor started (every %ds, online=%s)", self._interval, self._online)

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval + 1)
            self._thread = None

    def _run(self):
        while not self._stop.wait(self._interval):
            self.check()
