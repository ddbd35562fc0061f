from typing import Any, Callable, Dict, List, Optional, Union

from .config import TransportConfig
from .connection import Connection, resolve_connection_factory
from .errors import ImproperlyConfigured
from .health_checker import HealthChecker
from .hooks import HookEvents, HookManager
from .log import NullLogger, PrintLogger, TransportLogger
from .metrics import MetricsTracker
from .models import Response
from .pools import ConnectionPool, SimpleConnectionPool, StaticNoPingConnectionPool
from .resilience import ExponentialBackoff
from .selectors import create_selector
from .transport import Transport


class ClusterClient:
    """
    Builds the connection pool and transport from a TransportConfig and
    wires in hooks, metrics and the optional background health checker.
    """

    def __init__(
        self,
        config: TransportConfig,
        logger: Optional[TransportLogger] = None,
        trace_logger: Optional[TransportLogger] = None,
        connection_decorators: Optional[List[Callable[[Connection], Connection]]] = None,
        **connection_kwargs: Any,
    ):
        if not config.hosts:
            raise ImproperlyConfigured("At least one host is required.")

        self._config = config
        self._logger = logger or PrintLogger(buffer_size=config.log_buffer_size)
        self._trace = trace_logger or NullLogger()
        self._hooks = HookManager(name="ClusterHooks", logger=self._logger)
        self._metrics = MetricsTracker()

        connections: List[Connection] = []
        try:
            factory = resolve_connection_factory(config.connection_factory)
            for spec in config.hosts:
                conn = factory(
                    spec,
                    logger=self._logger,
                    trace_logger=self._trace,
                    timeout=config.request_timeout,
                    **connection_kwargs,
                )
                connections.append(conn)
                for decorate in connection_decorators or []:
                    conn = decorate(conn)
                connections[-1] = conn
            self._pool = self._create_pool(connections)
        except Exception:
            self._logger.error("[ClusterClient] initialization failed, releasing resources")
            for conn in connections:
                conn.close()
            self._hooks.shutdown(wait=False)
            raise

        self._transport = Transport(
            self._pool,
            max_retries=config.max_retries,
            retry_on_status=config.retry_on_status,
            logger=self._logger,
            hooks=self._hooks,
            metrics=self._metrics,
        )

        self._health_checker: Optional[HealthChecker] = None
        if config.health_check_interval and isinstance(self._pool, StaticNoPingConnectionPool):
            self._health_checker = HealthChecker(
                self._pool,
                check_interval=config.health_check_interval,
                logger=self._logger,
            )
            self._health_checker.start()

        self._hooks.register_hook(HookEvents.CONNECTION_DEAD, self._on_connection_dead, priority=10)
        self._hooks.register_hook(HookEvents.CONNECTION_REVIVED, self._on_connection_revived, priority=10)

        self._logger.info(
            f"[ClusterClient] initialized: {len(connections)} hosts, pool={config.pool}, "
            f"max_retries={self._transport.retry_budget()}, "
            f"health_checker={'active' if self._health_checker else 'off'}"
        )

    def _create_pool(self, connections: List[Connection]) -> ConnectionPool:
        if self._config.pool == "simple":
            return SimpleConnectionPool(
                connections,
                selector=create_selector(self._config.selector),
                logger=self._logger,
                hooks=self._hooks,
            )
        return StaticNoPingConnectionPool(
            connections,
            backoff=ExponentialBackoff.from_config(self._config.backoff),
            logger=self._logger,
            hooks=self._hooks,
        )

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    @property
    def hooks(self) -> HookManager:
        return self._hooks

    @property
    def logger(self) -> TransportLogger:
        return self._logger

    def execute(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Union[bytes, str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Response:
        return self._transport.execute(method, path, params=params, body=body, options=options)

    def get_last_connection(self) -> Optional[Connection]:
        return self._transport.get_last_connection()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "pool": self._pool.snapshot(),
            "metrics": self._metrics.snapshot(),
            "hooks": self._hooks.get_stats(),
            "health_checker": self._health_checker.snapshot() if self._health_checker else None,
        }

    def _on_connection_dead(self, host: str, failure_count: int, **kwargs):
        self._logger.debug(f"[ClusterClient] handling failure of {host} (failures={failure_count})")

    def _on_connection_revived(self, host: str, **kwargs):
        self._logger.debug(f"[ClusterClient] handling recovery of {host}")

    def close(self):
        """Stop background work and close every connection."""
        if self._health_checker:
            self._health_checker.stop()
        self._hooks.shutdown(wait=True)
        self._pool.close()

    def __enter__(self) -> "ClusterClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
