"""Request orchestration across the pool: select, execute, classify, retry."""

import threading
import time
from typing import Any, Dict, FrozenSet, Iterable, Optional, Union

from .config import DEFAULT_RETRY_ON_STATUS
from .connection import Connection
from .errors import (
    ConnectionError,
    ImproperlyConfigured,
    MaxRetriesException,
    RetryableResponseError,
)
from .hooks import HookEvents, HookManager
from .log import NullLogger, TransportLogger
from .metrics import MetricsTracker
from .models import Response
from .pools import ConnectionPool


class Transport:
    """
    Runs one logical request at a time per call path.

    Connection-level failures and statuses in ``retry_on_status`` mark the node
    dead and move on to another node until the retry budget is spent. Any
    other response marks the node alive and is handed back as-is.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        max_retries: Optional[int] = None,
        retry_on_status: Iterable[int] = DEFAULT_RETRY_ON_STATUS,
        logger: Optional[TransportLogger] = None,
        hooks: Optional[HookManager] = None,
        metrics: Optional[MetricsTracker] = None,
    ):
        if max_retries is not None and max_retries < 0:
            raise ImproperlyConfigured("max_retries must be >= 0.")
        self._pool = pool
        self._max_retries = max_retries
        self._retry_on_status: FrozenSet[int] = frozenset(retry_on_status)
        self._logger = logger or NullLogger()
        self._hooks = hooks
        self._metrics = metrics or MetricsTracker()

        self._last_lock = threading.Lock()
        self._last_connection: Optional[Connection] = None

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    @property
    def metrics(self) -> MetricsTracker:
        return self._metrics

    @property
    def retry_on_status(self) -> FrozenSet[int]:
        return self._retry_on_status

    def retry_budget(self) -> int:
        """Number of retries allowed after the first attempt."""
        if self._max_retries is not None:
            return self._max_retries
        return len(self._pool)

    def get_last_connection(self) -> Optional[Connection]:
        with self._last_lock:
            return self._last_connection

    def get_last_request_info(self) -> Optional[Dict[str, Any]]:
        connection = self.get_last_connection()
        return connection.get_last_request_info() if connection is not None else None

    def execute(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Union[bytes, str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Response:
        options = dict(options or {})
        retries = options.pop("max_retries", None)
        if retries is None:
            retries = self.retry_budget()
        raise_on_error = bool(options.pop("raise_on_error", False))
        method = method.upper()

        self._trigger(HookEvents.REQUEST_STARTED, method=method, path=path)
        start = time.monotonic()
        attempt = 0
        last_error: Optional[Exception] = None

        while True:
            # SELECTING: NoConnectionsAvailable propagates to the caller.
            connection = self._pool.select()
            attempt += 1

            # EXECUTING
            with self._last_lock:
                self._last_connection = connection
            self._metrics.record_attempt()
            self._logger.debug(
                f"[Transport] {method} {path} attempt {attempt}/{retries + 1} "
                f"on {connection.host.address}"
            )

            try:
                response = connection.perform_request(method, path, params, body, options)
            except ConnectionError as exc:
                last_error = exc
            else:
                if response.status not in self._retry_on_status:
                    self._pool.mark_alive(connection)
                    duration_ms = (time.monotonic() - start) * 1000
                    self._metrics.record_completion(duration_ms)
                    self._logger.info(
                        f"[Transport] {method} {path} -> {response.status} from "
                        f"{connection.host.address} ({duration_ms:.1f}ms, {attempt} attempt(s))"
                    )
                    self._trigger(
                        HookEvents.REQUEST_COMPLETED,
                        method=method,
                        path=path,
                        status=response.status,
                        host=connection.host.address,
                        attempts=attempt,
                        duration_ms=duration_ms,
                    )
                    if raise_on_error:
                        response.raise_for_status()
                    return response
                last_error = RetryableResponseError(
                    response.status, host=connection.host.address, response=response
                )

            # RETRYABLE_FAILURE
            will_retry = attempt <= retries
            self._logger.warning(
                f"[Transport] {method} {path} failed on {connection.host.address}: {last_error}"
                + (" - retrying" if will_retry else " - retry budget exhausted")
            )
            self._pool.mark_dead(connection)
            self._metrics.record_failure(will_retry)

            if not will_retry:
                break
            self._trigger(
                HookEvents.RETRY_SCHEDULED,
                method=method,
                path=path,
                host=connection.host.address,
                attempt=attempt,
                error=last_error,
            )

        # FATAL_FAILURE
        self._metrics.record_exhausted()
        self._logger.error(f"[Transport] {method} {path} gave up after {attempt} attempt(s)")
        self._trigger(
            HookEvents.REQUEST_FAILED,
            method=method,
            path=path,
            attempts=attempt,
            error=last_error,
        )
        raise MaxRetriesException(attempt, last_error=last_error) from last_error

    def get(self, path: str, params: Optional[Dict[str, Any]] = None, options: Optional[Dict[str, Any]] = None) -> Response:
        return self.execute("GET", path, params=params, options=options)

    def head(self, path: str, params: Optional[Dict[str, Any]] = None, options: Optional[Dict[str, Any]] = None) -> Response:
        return self.execute("HEAD", path, params=params, options=options)

    def post(self, path: str, body=None, params: Optional[Dict[str, Any]] = None, options: Optional[Dict[str, Any]] = None) -> Response:
        return self.execute("POST", path, params=params, body=body, options=options)

    def put(self, path: str, body=None, params: Optional[Dict[str, Any]] = None, options: Optional[Dict[str, Any]] = None) -> Response:
        return self.execute("PUT", path, params=params, body=body, options=options)

    def delete(self, path: str, params: Optional[Dict[str, Any]] = None, options: Optional[Dict[str, Any]] = None) -> Response:
        return self.execute("DELETE", path, params=params, options=options)

    def _trigger(self, event: str, **kwargs) -> None:
        if self._hooks is not None:
            self._hooks.trigger_hook(event, **kwargs)
