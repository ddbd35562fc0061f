"""Background revival of dead connections."""

import threading
from typing import Dict, List, Optional

from .connection import Connection
from .log import NullLogger, TransportLogger
from .pools import StaticNoPingConnectionPool


class HealthChecker:
    """Periodically pings dead connections whose backoff has elapsed and revives them."""

    def __init__(
        self,
        pool: StaticNoPingConnectionPool,
        check_interval: float = 5.0,
        ping_timeout: float = 1.0,
        logger: Optional[TransportLogger] = None,
    ):
        self._pool = pool
        self._interval = check_interval
        self._ping_timeout = ping_timeout
        self._logger = logger or NullLogger()

        self._lock = threading.Lock()
        self._revived: Dict[str, int] = {}
        self._failed_probes: Dict[str, int] = {}

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start health checking thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._health_check_loop, name="HealthChecker", daemon=True
        )
        self._thread.start()
        self._logger.info(f"[HealthChecker] started (interval={self._interval}s)")

    def stop(self):
        """Stop health checking."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=2)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _health_check_loop(self):
        while not self._stop.is_set():
            try:
                self.check_once()
            except Exception as e:
                self._logger.error(f"[HealthChecker] Error in health check loop: {e}")
            self._stop.wait(self._interval)

    def check_once(self) -> List[Connection]:
        """Probe every revival-eligible dead connection once. Returns the revived ones."""
        revived = []
        for conn in self._pool.partition()["eligible"]:
            address = conn.host.address
            if conn.ping(timeout=self._ping_timeout):
                self._pool.mark_alive(conn)
                revived.append(conn)
                with self._lock:
                    self._revived[address] = self._revived.get(address, 0) + 1
                self._logger.info(f"[HealthChecker] detected recovery: {address}")
            else:
                # Restart the backoff so the next probe waits longer.
                self._pool.mark_dead(conn)
                with self._lock:
                    self._failed_probes[address] = self._failed_probes.get(address, 0) + 1
                self._logger.debug(f"[HealthChecker] {address} still down")
        return revived

    def snapshot(self) -> Dict:
        with self._lock:
            return {
                "running": self.running,
                "revived": dict(self._revived),
                "failed_probes": dict(self._failed_probes),
            }
