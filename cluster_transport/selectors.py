"""Connection selection strategies."""

import random
import threading
from abc import ABC, abstractmethod
from typing import List, Optional

from .connection import Connection
from .errors import ImproperlyConfigured, NoConnectionsAvailable


class ConnectionSelector(ABC):
    """Base class for selection strategies."""

    @abstractmethod
    def select(self, connections: List[Connection]) -> Connection:
        """Pick one connection out of a non-empty list."""
        pass


class RoundRobinSelector(ConnectionSelector):
    """Cycle through connections in order."""

    def __init__(self):
        self._cursor = 0
        self._lock = threading.Lock()

    def select(self, connections: List[Connection]) -> Connection:
        if not connections:
            raise NoConnectionsAvailable("No connections to select from.")
        with self._lock:
            chosen = connections[self._cursor % len(connections)]
            self._cursor = (self._cursor + 1) % len(connections)
        return chosen


class StickyRoundRobinSelector(ConnectionSelector):
    """Keep using the current connection while it is alive, then move to the next one."""

    def __init__(self):
        self._current = 0
        self._lock = threading.Lock()

    def select(self, connections: List[Connection]) -> Connection:
        if not connections:
            raise NoConnectionsAvailable("No connections to select from.")
        with self._lock:
            index = self._current % len(connections)
            if not connections[index].is_alive():
                index = (index + 1) % len(connections)
            self._current = index
            return connections[index]


class RandomSelector(ConnectionSelector):
    """Uniformly random choice."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def select(self, connections: List[Connection]) -> Connection:
        if not connections:
            raise NoConnectionsAvailable("No connections to select from.")
        return self._rng.choice(connections)


def create_selector(name: str) -> ConnectionSelector:
    """Create selector instance."""
    name = (name or "round_robin").lower()
    if name == "round_robin":
        return RoundRobinSelector()
    elif name == "sticky_round_robin":
        return StickyRoundRobinSelector()
    elif name == "random":
        return RandomSelector()
    raise ImproperlyConfigured(f"Unknown selector '{name}'.")
