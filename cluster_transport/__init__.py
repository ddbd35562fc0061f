"""Client-side transport for a cluster of interchangeable HTTP nodes (pooling, failover, diagnostics)."""

from .config import BackoffConfig, ClusterConfig, HostSpec, TransportConfig
from .connection import BaseConnection, Connection, HttpConnection
from .decorators import ConnectionDecorator, DefaultHeadersConnection, HookedConnection
from .errors import (
    ClientResponseError,
    ConnectionError,
    ConnectionTimeout,
    ImproperlyConfigured,
    MaxRetriesException,
    NoConnectionsAvailable,
    RetryableResponseError,
    TransportError,
)
from .facade import ClusterClient
from .health_checker import HealthChecker
from .hooks import HookEvents, HookManager
from .log import NullLogger, PrintLogger, StdlibLogger, TransportLogger
from .metrics import MetricsTracker
from .models import Response
from .pools import ConnectionPool, SimpleConnectionPool, StaticNoPingConnectionPool
from .resilience import ExponentialBackoff
from .selectors import (
    ConnectionSelector,
    RandomSelector,
    RoundRobinSelector,
    StickyRoundRobinSelector,
)
from .transport import Transport

__all__ = [
    "BackoffConfig",
    "ClusterConfig",
    "HostSpec",
    "TransportConfig",
    "BaseConnection",
    "Connection",
    "HttpConnection",
    "ConnectionDecorator",
    "DefaultHeadersConnection",
    "HookedConnection",
    "ClientResponseError",
    "ConnectionError",
    "ConnectionTimeout",
    "ImproperlyConfigured",
    "MaxRetriesException",
    "NoConnectionsAvailable",
    "RetryableResponseError",
    "TransportError",
    "ClusterClient",
    "HealthChecker",
    "HookEvents",
    "HookManager",
    "NullLogger",
    "PrintLogger",
    "StdlibLogger",
    "TransportLogger",
    "MetricsTracker",
    "Response",
    "ConnectionPool",
    "SimpleConnectionPool",
    "StaticNoPingConnectionPool",
    "ExponentialBackoff",
    "ConnectionSelector",
    "RandomSelector",
    "RoundRobinSelector",
    "StickyRoundRobinSelector",
    "Transport",
]
