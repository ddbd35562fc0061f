"""Connections to single cluster nodes."""

import copy
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Union

import httpx

from .config import HostSpec
from .errors import ConnectionError, ConnectionTimeout, ImproperlyConfigured
from .log import NullLogger, TransportLogger
from .models import Response


class Connection(ABC):
    """
    Capability interface for a handle to one node.

    Health state is only ever changed through ``mark_alive``/``mark_dead``,
    which the owning pool calls. ``perform_request`` never decides retry policy.
    """

    @property
    @abstractmethod
    def host(self) -> HostSpec:
        pass

    @abstractmethod
    def perform_request(
        self,
        method: str,
        uri: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Union[bytes, str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Response:
        pass

    @abstractmethod
    def ping(self, timeout: Optional[float] = None) -> bool:
        pass

    @abstractmethod
    def is_alive(self) -> bool:
        pass

    @abstractmethod
    def mark_alive(self) -> None:
        pass

    @abstractmethod
    def mark_dead(self, now: float) -> None:
        pass

    @property
    @abstractmethod
    def failure_count(self) -> int:
        pass

    @property
    @abstractmethod
    def last_failure(self) -> Optional[float]:
        pass

    @abstractmethod
    def get_last_request_info(self) -> Dict[str, Any]:
        pass

    def close(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.host.base_url}>"


class BaseConnection(Connection):
    """Holds node identity, health flags and last-exchange diagnostics."""

    def __init__(
        self,
        host: HostSpec,
        logger: Optional[TransportLogger] = None,
        trace_logger: Optional[TransportLogger] = None,
    ):
        self._host = host
        self._logger = logger or NullLogger()
        self._trace = trace_logger or NullLogger()

        self._alive = True
        self._failure_count = 0
        self._last_failure: Optional[float] = None

        self._diag_lock = threading.Lock()
        self._last_request: Optional[Dict[str, Any]] = None
        self._last_response: Optional[Dict[str, Any]] = None
        self._last_error: Optional[str] = None

    @property
    def host(self) -> HostSpec:
        return self._host

    def is_alive(self) -> bool:
        return self._alive

    def mark_alive(self) -> None:
        self._alive = True
        self._failure_count = 0
        self._last_failure = None

    def mark_dead(self, now: float) -> None:
        self._alive = False
        self._failure_count += 1
        self._last_failure = now

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure(self) -> Optional[float]:
        return self._last_failure

    def _record_exchange(
        self,
        request: Dict[str, Any],
        response: Optional[Dict[str, Any]],
        error: Optional[str] = None,
    ) -> None:
        # Replace all three fields together so readers never see a mix of two calls.
        with self._diag_lock:
            self._last_request = request
            self._last_response = response
            self._last_error = error

    def get_last_request_info(self) -> Dict[str, Any]:
        with self._diag_lock:
            return copy.deepcopy(
                {
                    "request": self._last_request,
                    "response": self._last_response,
                    "error": self._last_error,
                }
            )


class HttpConnection(BaseConnection):
    """Executes exchanges with one node through an ``httpx.Client``."""

    def __init__(
        self,
        host: HostSpec,
        logger: Optional[TransportLogger] = None,
        trace_logger: Optional[TransportLogger] = None,
        timeout: Optional[float] = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(host, logger=logger, trace_logger=trace_logger)
        self._client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers=headers,
            follow_redirects=False,
        )

    def _build_url(self, uri: str) -> str:
        if not uri.startswith("/"):
            uri = "/" + uri
        return self._host.base_url + uri

    def perform_request(
        self,
        method: str,
        uri: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Union[bytes, str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Response:
        method = method.upper()
        options = dict(options or {})
        url = httpx.URL(self._build_url(uri), params=params or None)
        request_info = {
            "method": method,
            "uri": str(url),
            "body": body,
            "options": options,
        }

        timeout = options.get("timeout", httpx.USE_CLIENT_DEFAULT)
        start = time.monotonic()
        try:
            raw = self._client.request(
                method,
                url,
                content=body,
                headers=options.get("headers"),
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            self._fail(request_info, start, exc)
            raise ConnectionTimeout(f"Timed out: {exc}", host=self._host.address, cause=exc) from exc
        except httpx.RequestError as exc:
            self._fail(request_info, start, exc)
            raise ConnectionError(f"Transport failure: {exc}", host=self._host.address, cause=exc) from exc

        duration = time.monotonic() - start
        response = Response(
            status=raw.status_code,
            headers=dict(raw.headers),
            body=raw.content,
            duration=duration,
            host=self._host.address,
        )
        self._record_exchange(
            request_info,
            {
                "status": response.status,
                "headers": dict(response.headers),
                "body": response.body,
                "timing": {"duration": duration},
            },
        )
        self._logger.debug(
            f"[Connection] {self._host.address} {method} {url.raw_path.decode()} "
            f"-> {response.status} ({duration * 1000:.1f}ms)"
        )
        self._trace_exchange(method, str(url), body, response.status, response.text)
        return response

    def _fail(self, request_info: Dict[str, Any], start: float, exc: Exception) -> None:
        duration = time.monotonic() - start
        self._record_exchange(request_info, None, error=f"{exc.__class__.__name__}: {exc}")
        self._logger.warning(
            f"[Connection] {self._host.address} {request_info['method']} {request_info['uri']} "
            f"failed after {duration * 1000:.1f}ms: {exc.__class__.__name__}: {exc}"
        )
        self._trace_exchange(request_info["method"], request_info["uri"], request_info["body"], None, str(exc))

    def _trace_exchange(
        self,
        method: str,
        url: str,
        body: Optional[Union[bytes, str]],
        status: Optional[int],
        response_text: str,
    ) -> None:
        command = f"curl -X{method} '{url}'"
        if body:
            payload = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
            command += f" -d '{payload}'"
        self._trace.debug(command)
        self._trace.debug(f"# [{status if status is not None else 'N/A'}] {response_text}")

    def ping(self, timeout: Optional[float] = None) -> bool:
        try:
            raw = self._client.head(
                self._build_url("/"),
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.RequestError as exc:
            self._logger.debug(f"[Connection] ping {self._host.address} failed: {exc}")
            return False
        return raw.status_code < 500

    def close(self) -> None:
        self._client.close()


ConnectionFactory = Callable[..., Connection]

CONNECTION_FACTORIES: Dict[str, ConnectionFactory] = {
    "http": HttpConnection,
}


def resolve_connection_factory(factory: Union[str, ConnectionFactory]) -> ConnectionFactory:
    """Turn a configured factory name (or callable) into a callable."""
    if callable(factory):
        return factory
    try:
        return CONNECTION_FACTORIES[str(factory).lower()]
    except KeyError:
        raise ImproperlyConfigured(f"Unknown connection factory '{factory}'.") from None
