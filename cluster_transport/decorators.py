"""Wrapping connections that add behaviour around an inner connection."""

import time
from typing import Any, Dict, Optional, Union

from .config import HostSpec
from .connection import Connection
from .errors import ConnectionError
from .hooks import HookEvents, HookManager
from .models import Response


class ConnectionDecorator(Connection):
    """Delegates every call to the wrapped connection. Override what you need."""

    def __init__(self, inner: Connection):
        self._inner = inner

    @property
    def inner(self) -> Connection:
        return self._inner

    @property
    def host(self) -> HostSpec:
        return self._inner.host

    def perform_request(
        self,
        method: str,
        uri: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Union[bytes, str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Response:
        return self._inner.perform_request(method, uri, params, body, options)

    def ping(self, timeout: Optional[float] = None) -> bool:
        return self._inner.ping(timeout)

    def is_alive(self) -> bool:
        return self._inner.is_alive()

    def mark_alive(self) -> None:
        self._inner.mark_alive()

    def mark_dead(self, now: float) -> None:
        self._inner.mark_dead(now)

    @property
    def failure_count(self) -> int:
        return self._inner.failure_count

    @property
    def last_failure(self) -> Optional[float]:
        return self._inner.last_failure

    def get_last_request_info(self) -> Dict[str, Any]:
        return self._inner.get_last_request_info()

    def close(self) -> None:
        self._inner.close()


class HookedConnection(ConnectionDecorator):
    """Fires per-node hooks before and after each exchange on the inner connection."""

    def __init__(self, inner: Connection, hooks: HookManager):
        super().__init__(inner)
        self._hooks = hooks

    def perform_request(
        self,
        method: str,
        uri: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Union[bytes, str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Response:
        address = self.host.address
        self._hooks.trigger_hook(HookEvents.NODE_REQUEST_SENT, host=address, method=method, uri=uri)
        start = time.monotonic()
        try:
            response = self._inner.perform_request(method, uri, params, body, options)
        except ConnectionError as exc:
            self._hooks.trigger_hook(
                HookEvents.NODE_RESPONSE_RECEIVED,
                host=address,
                status=None,
                error=exc,
                duration_ms=(time.monotonic() - start) * 1000,
            )
            raise
        self._hooks.trigger_hook(
            HookEvents.NODE_RESPONSE_RECEIVED,
            host=address,
            status=response.status,
            error=None,
            duration_ms=(time.monotonic() - start) * 1000,
        )
        return response


class DefaultHeadersConnection(ConnectionDecorator):
    """Merges fixed headers into every request's ``headers`` option."""

    def __init__(self, inner: Connection, headers: Dict[str, str]):
        super().__init__(inner)
        self._headers = dict(headers)

    def perform_request(
        self,
        method: str,
        uri: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Union[bytes, str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Response:
        options = dict(options or {})
        headers = dict(self._headers)
        headers.update(options.get("headers") or {})
        options["headers"] = headers
        return self._inner.perform_request(method, uri, params, body, options)
