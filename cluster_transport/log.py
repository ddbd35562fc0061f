"""Logging capability threaded through connections, pools and the transport."""

import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import List

_LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}


class TransportLogger(ABC):
    """Minimal logging interface consumed by the transport layer."""

    @abstractmethod
    def log(self, level: str, message: str) -> None:
        pass

    def debug(self, message: str) -> None:
        self.log("debug", message)

    def info(self, message: str) -> None:
        self.log("info", message)

    def warning(self, message: str) -> None:
        self.log("warning", message)

    def error(self, message: str) -> None:
        self.log("error", message)


class PrintLogger(TransportLogger):
    """
    Prints component-prefixed lines to stdout and keeps the most recent ones
    in a bounded buffer for diagnostics.
    """

    def __init__(self, level: str = "info", buffer_size: int = 50, echo: bool = True):
        self._threshold = _LEVELS[level]
        self._echo = echo
        self._buffer = deque(maxlen=buffer_size)
        self._lock = threading.Lock()

    def log(self, level: str, message: str) -> None:
        if _LEVELS.get(level, 0) < self._threshold:
            return
        with self._lock:
            self._buffer.append(message)
        if self._echo:
            print(message, flush=True)

    def recent(self, max_lines: int = 10) -> List[str]:
        """Get recent log lines from the buffer."""
        with self._lock:
            return list(self._buffer)[-max_lines:]


class StdlibLogger(TransportLogger):
    """Adapter for hosts that configure the standard ``logging`` module."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def log(self, level: str, message: str) -> None:
        self._logger.log(_LEVELS.get(level, logging.INFO), message)


class NullLogger(TransportLogger):
    def log(self, level: str, message: str) -> None:
        return None
