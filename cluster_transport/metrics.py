import statistics
import threading
import time
from collections import deque
from typing import Dict


class MetricsTracker:
    """Collects rolling statistics for the transport."""

    def __init__(self, window: int = 200):
        self._lock = threading.Lock()
        self._durations = deque(maxlen=window)
        self._attempts = 0
        self._completed = 0
        self._failures = 0
        self._retries = 0
        self._exhausted = 0
        self._start = time.monotonic()

    def record_attempt(self) -> None:
        with self._lock:
            self._attempts += 1

    def record_completion(self, duration_ms: float) -> None:
        with self._lock:
            self._completed += 1
            self._durations.append(duration_ms)

    def record_failure(self, will_retry: bool) -> None:
        with self._lock:
            self._failures += 1
            if will_retry:
                self._retries += 1

    def record_exhausted(self) -> None:
        with self._lock:
            self._exhausted += 1

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            avg = statistics.fmean(self._durations) if self._durations else 0.0
            uptime = time.monotonic() - self._start
            rate = (self._completed / uptime) if uptime else 0.0
            return {
                "avg_ms": avg,
                "attempts": self._attempts,
                "completed": self._completed,
                "failures": self._failures,
                "retries": self._retries,
                "exhausted": self._exhausted,
                "uptime": uptime,
                "throughput": rate,
            }
