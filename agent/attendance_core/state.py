"""
SubmissionState: the scheduler's single latch (Idle / Submitting).

Mutated from several worker threads, so every transition takes the lock.
Each acquisition gets a generation number: an attempt that was force-reset
as wedged cannot release the latch of the attempt that replaced it.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class SubmissionState:
    is_submitting: bool = False
    submission_start_time: Optional[float] = None
    generation: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def elapsed(self, now=None) -> float:
        """Seconds since the current attempt started (0 when idle)."""
        if self.submission_start_time is None:
            return 0.0
        now = time.monotonic() if now is None else now
        return now - self.submission_start_time

    def reset_if_stuck(self, timeout, now=None) -> bool:
        """
        Returns True when the latch is free (or was just freed because the
        running attempt exceeded `timeout`), False while a live attempt holds it.
        """
        with self._lock:
            if not self.is_submitting:
                return True
            if self.elapsed(now) > timeout:
                self.is_submitting = False
                self.submission_start_time = None
                return True
            return False

    def try_acquire(self, now=None) -> Optional[int]:
        """Take the latch. Returns this attempt's generation, or None if already held."""
        with self._lock:
            if self.is_submitting:
                return None
            self.is_submitting = True
            self.submission_start_time = time.monotonic() if now is None else now
            self.generation += 1
            return self.generation

    def release(self, generation) -> bool:
        """Free the latch if `generation` still owns it."""
        with self._lock:
            if not self.is_submitting or generation != self.generation:
                return False
            self.is_submitting = False
            self.submission_start_time = None
            return True
