import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Union
from urllib.parse import urlsplit

from .errors import ImproperlyConfigured

DEFAULT_PORT = 9200
DEFAULT_SCHEME = "http"
DEFAULT_CONNECTION_FACTORY = "http"
DEFAULT_SELECTOR = "round_robin"
DEFAULT_RETRY_ON_STATUS = frozenset({502, 503, 504})

_SCHEMES = ("http", "https")


def _normalize_prefix(prefix: Optional[str]) -> str:
    prefix = (prefix or "").strip().strip("/")
    return f"/{prefix}" if prefix else ""


@dataclass(frozen=True)
class HostSpec:
    """Immutable description of one cluster node endpoint."""

    host: str
    port: int = DEFAULT_PORT
    scheme: str = DEFAULT_SCHEME
    path_prefix: str = ""

    def __post_init__(self):
        if not self.host:
            raise ImproperlyConfigured("Host must not be empty.")
        if self.scheme not in _SCHEMES:
            raise ImproperlyConfigured(f"Unsupported scheme '{self.scheme}' for host {self.host}.")
        if not 0 < int(self.port) < 65536:
            raise ImproperlyConfigured(f"Port {self.port} out of range for host {self.host}.")
        object.__setattr__(self, "port", int(self.port))
        object.__setattr__(self, "path_prefix", _normalize_prefix(self.path_prefix))

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}{self.path_prefix}"

    @classmethod
    def from_url(cls, url: str) -> "HostSpec":
        """Parse ``host``, ``host:port`` or a full URL such as ``https://node1:9243/search``."""
        url = (url or "").strip()
        if not url:
            raise ImproperlyConfigured("Host must not be empty.")
        if "://" not in url:
            url = f"{DEFAULT_SCHEME}://{url}"
        parts = urlsplit(url)
        try:
            port = parts.port
        except ValueError as exc:
            raise ImproperlyConfigured(f"Invalid port in host '{url}'.") from exc
        if port is None:
            port = 443 if parts.scheme == "https" else DEFAULT_PORT
        return cls(
            host=parts.hostname or "",
            port=port,
            scheme=parts.scheme,
            path_prefix=parts.path,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HostSpec":
        if "host" not in data:
            raise ImproperlyConfigured("Host entry missing required field 'host'.")
        return cls(
            host=data["host"],
            port=int(data.get("port", DEFAULT_PORT)),
            scheme=data.get("scheme", DEFAULT_SCHEME),
            path_prefix=data.get("path_prefix", ""),
        )

    @classmethod
    def coerce(cls, value: Union["HostSpec", str, Dict[str, Any]]) -> "HostSpec":
        if isinstance(value, HostSpec):
            return value
        if isinstance(value, dict):
            return cls.from_dict(value)
        return cls.from_url(str(value))


@dataclass(frozen=True)
class BackoffConfig:
    """Revival backoff for dead connections."""

    dead_timeout: float = 60.0
    max_dead_timeout: float = 3600.0
    backoff_factor: float = 2.0

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "BackoffConfig":
        if not data:
            return cls()
        return cls(
            dead_timeout=float(data.get("dead_timeout", 60.0)),
            max_dead_timeout=float(data.get("max_dead_timeout", 3600.0)),
            backoff_factor=float(data.get("backoff_factor", 2.0)),
        )


@dataclass(frozen=True)
class TransportConfig:
    """Everything the pool and transport consume, passed explicitly at construction."""

    hosts: List[HostSpec] = field(default_factory=list)
    connection_factory: Union[str, Callable] = DEFAULT_CONNECTION_FACTORY
    pool: str = "static_no_ping"
    selector: str = DEFAULT_SELECTOR
    retry_on_status: FrozenSet[int] = DEFAULT_RETRY_ON_STATUS
    max_retries: Optional[int] = None  # None means one retry per connection in the pool
    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    request_timeout: Optional[float] = 10.0
    health_check_interval: Optional[float] = None
    log_buffer_size: int = 50

    def __post_init__(self):
        object.__setattr__(self, "hosts", [HostSpec.coerce(h) for h in self.hosts])
        object.__setattr__(self, "retry_on_status", frozenset(int(s) for s in self.retry_on_status))
        if self.max_retries is not None and self.max_retries < 0:
            raise ImproperlyConfigured("max_retries must be >= 0.")
        if self.pool not in ("static_no_ping", "simple"):
            raise ImproperlyConfigured(f"Unknown pool type '{self.pool}'.")

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "TransportConfig":
        """Create a TransportConfig from a dictionary, using defaults for missing keys."""
        data = data or {}
        max_retries = data.get("max_retries")
        return cls(
            hosts=list(data.get("hosts", [])),
            connection_factory=data.get("connection_factory", DEFAULT_CONNECTION_FACTORY),
            pool=data.get("pool", "static_no_ping"),
            selector=data.get("selector", DEFAULT_SELECTOR),
            retry_on_status=frozenset(data.get("retry_on_status", DEFAULT_RETRY_ON_STATUS)),
            max_retries=int(max_retries) if max_retries is not None else None,
            backoff=BackoffConfig.from_dict(data.get("backoff")),
            request_timeout=data.get("request_timeout", 10.0),
            health_check_interval=data.get("health_check_interval"),
            log_buffer_size=int(data.get("log_buffer_size", 50)),
        )


class ClusterConfig:
    """Config facade that hides JSON parsing of a cluster description file."""

    def __init__(self, config_path: str):
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with path.open("r", encoding="utf-8") as stream:
            payload = json.load(stream)

        if not payload.get("hosts"):
            raise ImproperlyConfigured("Configuration must include at least one host.")

        self._transport = TransportConfig.from_dict(payload)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def transport(self) -> TransportConfig:
        return self._transport

    def hosts(self) -> List[HostSpec]:
        return list(self._transport.hosts)
