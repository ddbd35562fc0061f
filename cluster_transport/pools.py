"""Connection pools: node health bookkeeping and node selection."""

import threading
import time
import weakref
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, Optional

from .connection import Connection
from .errors import ImproperlyConfigured, NoConnectionsAvailable
from .hooks import HookEvents, HookManager
from .log import NullLogger, TransportLogger
from .resilience import ExponentialBackoff
from .selectors import ConnectionSelector, RoundRobinSelector

# connection -> weak reference to its owning pool; a connection may only belong to one live pool.
_owners: "weakref.WeakKeyDictionary[Connection, weakref.ref]" = weakref.WeakKeyDictionary()
_owners_lock = threading.Lock()


class ConnectionPool(ABC):
    """Owns a fixed, ordered set of connections and their health state."""

    def __init__(
        self,
        connections: Iterable[Connection],
        logger: Optional[TransportLogger] = None,
        hooks: Optional[HookManager] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._connections: List[Connection] = list(connections)
        self._logger = logger or NullLogger()
        self._hooks = hooks
        self._clock = clock
        self._lock = threading.Lock()
        self._claim(self._connections)

    def _claim(self, connections: List[Connection]) -> None:
        with _owners_lock:
            for conn in connections:
                ref = _owners.get(conn)
                owner = ref() if ref is not None else None
                if owner is not None and owner is not self:
                    raise ImproperlyConfigured(f"{conn!r} already belongs to another pool.")
            if len(set(map(id, connections))) != len(connections):
                raise ImproperlyConfigured("The same connection appears twice in the pool.")
            for conn in connections:
                _owners[conn] = weakref.ref(self)

    def _check_member(self, connection: Connection) -> None:
        if not any(c is connection for c in self._connections):
            raise ValueError(f"{connection!r} does not belong to this pool.")

    @abstractmethod
    def select(self) -> Connection:
        """Return the connection the next attempt should use."""
        pass

    def mark_alive(self, connection: Connection) -> None:
        with self._lock:
            self._check_member(connection)
            was_dead = not connection.is_alive()
            connection.mark_alive()

        if was_dead:
            self._logger.info(f"[Pool] {connection.host.address} marked alive")
            self._trigger(HookEvents.CONNECTION_REVIVED, host=connection.host.address)

    def mark_dead(self, connection: Connection) -> None:
        with self._lock:
            self._check_member(connection)
            connection.mark_dead(self._clock())
            failures = connection.failure_count

        self._logger.warning(
            f"[Pool] {connection.host.address} marked dead ({failures} consecutive failures)"
        )
        self._trigger(HookEvents.CONNECTION_DEAD, host=connection.host.address, failure_count=failures)

    def _trigger(self, event: str, **kwargs) -> None:
        if self._hooks is not None:
            self._hooks.trigger_hook(event, **kwargs)

    def connections(self) -> List[Connection]:
        with self._lock:
            return list(self._connections)

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def snapshot(self) -> List[Dict[str, object]]:
        with self._lock:
            return [
                {
                    "host": conn.host.address,
                    "alive": conn.is_alive(),
                    "failure_count": conn.failure_count,
                    "last_failure": conn.last_failure,
                }
                for conn in self._connections
            ]

    def close(self) -> None:
        """Close every connection and empty the pool."""
        with self._lock:
            connections, self._connections = self._connections, []
        with _owners_lock:
            for conn in connections:
                ref = _owners.get(conn)
                if ref is not None and ref() is self:
                    del _owners[conn]
        for conn in connections:
            conn.close()


class StaticNoPingConnectionPool(ConnectionPool):
    """
    Round-robin over a static node list, skipping dead nodes.

    While any node is alive, a dead node whose revival backoff has elapsed is
    probed in its round-robin turn. When every node is dead, the one that
    failed longest ago is handed out so a silently recovered cluster heals.
    """

    def __init__(
        self,
        connections: Iterable[Connection],
        backoff: Optional[ExponentialBackoff] = None,
        logger: Optional[TransportLogger] = None,
        hooks: Optional[HookManager] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(connections, logger=logger, hooks=hooks, clock=clock)
        self._backoff = backoff or ExponentialBackoff()
        self._cursor = 0

    @property
    def backoff(self) -> ExponentialBackoff:
        return self._backoff

    def select(self) -> Connection:
        note = None
        with self._lock:
            size = len(self._connections)
            if size == 0:
                raise NoConnectionsAvailable("Connection pool is empty.")

            if any(conn.is_alive() for conn in self._connections):
                now = self._clock()
                chosen_index = None
                for offset in range(size):
                    index = (self._cursor + offset) % size
                    conn = self._connections[index]
                    if conn.is_alive():
                        chosen_index = index
                        break
                    if self._backoff.is_eligible(conn.failure_count, conn.last_failure, now):
                        chosen_index = index
                        note = f"[Pool] {conn.host.address} revival backoff elapsed, probing"
                        break
            else:
                # min() keeps the first of equal keys, so ties go to pool order.
                chosen_index = min(
                    range(size),
                    key=lambda i: self._last_failure_key(self._connections[i]),
                )
                note = (
                    f"[Pool] all {size} connections dead, last-resort probe of "
                    f"{self._connections[chosen_index].host.address}"
                )

            self._cursor = (chosen_index + 1) % size
            chosen = self._connections[chosen_index]

        if note:
            self._logger.info(note)
        return chosen

    @staticmethod
    def _last_failure_key(conn: Connection) -> float:
        return conn.last_failure if conn.last_failure is not None else float("-inf")

    def is_revival_eligible(self, connection: Connection) -> bool:
        with self._lock:
            return not connection.is_alive() and self._backoff.is_eligible(
                connection.failure_count, connection.last_failure, self._clock()
            )

    def partition(self) -> Dict[str, List[Connection]]:
        """Split the pool into alive, dead-but-eligible and dead-not-yet-eligible."""
        with self._lock:
            now = self._clock()
            parts: Dict[str, List[Connection]] = {"alive": [], "eligible": [], "dead": []}
            for conn in self._connections:
                if conn.is_alive():
                    parts["alive"].append(conn)
                elif self._backoff.is_eligible(conn.failure_count, conn.last_failure, now):
                    parts["eligible"].append(conn)
                else:
                    parts["dead"].append(conn)
            return parts


class SimpleConnectionPool(ConnectionPool):
    """Hands every connection to a selector, ignoring health state."""

    def __init__(
        self,
        connections: Iterable[Connection],
        selector: Optional[ConnectionSelector] = None,
        logger: Optional[TransportLogger] = None,
        hooks: Optional[HookManager] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(connections, logger=logger, hooks=hooks, clock=clock)
        self._selector = selector or RoundRobinSelector()

    def select(self) -> Connection:
        connections = self.connections()
        if not connections:
            raise NoConnectionsAvailable("Connection pool is empty.")
        return self._selector.select(connections)

    def partition(self) -> Dict[str, List[Connection]]:
        with self._lock:
            return {
                "alive": [c for c in self._connections if c.is_alive()],
                "eligible": [c for c in self._connections if not c.is_alive()],
                "dead": [],
            }
