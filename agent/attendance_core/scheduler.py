"""
SubmissionScheduler: background flushing of the attendance queue.

Triggers:
  periodic tick       : every SUBMIT_INTERVAL_SEC, online or not
  connectivity edge   : network came back
  trigger()           : anything else (app start, explicit request)

Each trigger runs check_and_submit_if_needed() on a short-lived worker
thread, so a wedged HTTP call never blocks the ticking loop. At most one
submission runs at a time; a latch held longer than the timeout is treated
as wedged and force-released. The old call is not cancelled and may still
write its results later; reconciliation is safe to apply twice.

Nothing is raised from here. Failures end up as entry status (Failed) and
in the log.
"""

import threading
import time

from .config import log
from .constants import SUBMIT_INTERVAL_SEC, SUBMISSION_TIMEOUT_SEC
from .state import SubmissionState


class SubmissionScheduler:

    def __init__(self, coordinator, connectivity, interval=SUBMIT_INTERVAL_SEC,
                 timeout=SUBMISSION_TIMEOUT_SEC, clock=time.monotonic):
        self._coordinator = coordinator
        self._connectivity = connectivity
        self._interval = interval
        self._timeout = timeout
        self._clock = clock
        self.state = SubmissionState()
        self._stop = threading.Event()
        self._thread = None

    @property
    def is_submitting(self):
        return self.state.is_submitting

    # ─── Triggers ────────────────────────────────────────────

    def on_connectivity_changed(self, online):
        if online:
            log.info("Connectivity restored: checking queue")
            self.trigger()

    def trigger(self):
        """Dispatch one check onto a worker thread."""
        worker = threading.Thread(target=self._safe_check, name="submit", daemon=True)
        worker.start()
        return worker

    def _safe_check(self):
        try:
            self.check_and_submit_if_needed()
        except Exception as e:
            log.error("Submission check crashed: %s", e, exc_info=True)

    # ─── Core check ──────────────────────────────────────────

    def check_and_submit_if_needed(self):
        """
        Returns True when a submission was attempted, False when the check
        bailed out (busy, offline, nothing queued, or no auth).
        """
        now = self._clock()
        if self.state.is_submitting:
            if not self.state.reset_if_stuck(self._timeout, now):
                return False
            log.warning("Submission stuck for over %ds: releasing latch", self._timeout)

        if not self._connectivity.is_online:
            return False

        candidates = self._coordinator.get_pending_or_failed()
        if not candidates:
            return False

        if not self._coordinator.has_usable_token():
            auth = self._coordinator.ensure_authenticated()
            if not auth.ok:
                log.info("Pre-flight auth failed, %d entries wait: %s", len(candidates), auth)
                return False

        return self._submit()

    def _submit(self):
        generation = self.state.try_acquire(self._clock())
        if generation is None:
            return False

        try:
            result = self._coordinator.submit_pending()
            if result.ok:
                log.info("Background submission done: %d entries attempted", result.value)
            else:
                log.warning("Background submission failed: %s", result)
        except Exception as e:
            log.error("Background submission error: %s", e, exc_info=True)
        finally:
            self.state.release(generation)
        return True

    # ─── Ticking loop ────────────────────────────────────────

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="scheduler", daemon=True)
        self._thread.start()
        log.info("Submission scheduler started (interval=%ds, timeout=%ds)",
                 self._interval, self._timeout)

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        log.info("Submission scheduler stopped")

    def _run(self):
        while not self._stop.wait(self._interval):
            self.trigger()
