"""Hook system for reacting to transport events without coupling to the request path."""

import threading
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Tuple

from .log import NullLogger, TransportLogger


class HookManager:
    """
    Manages hooks for transport events.
    Callbacks run on a small thread pool so a slow listener never blocks a request.
    """

    def __init__(
        self,
        max_workers: int = 4,
        name: str = "HookManager",
        logger: Optional[TransportLogger] = None,
    ):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=name
        )
        self._logger = logger or NullLogger()
        self._hooks: Dict[str, List[Tuple[int, Callable]]] = defaultdict(list)
        self._lock = threading.Lock()
        self._hook_stats: Dict[str, Dict[str, int]] = defaultdict(
            lambda: {"triggered": 0, "errors": 0}
        )
        self._closed = False

    def register_hook(self, event: str, callback: Callable, priority: int = 0):
        """
        Register a callback for an event.

        Args:
            event: Event name (see ``HookEvents``)
            callback: Function called with the event's keyword arguments
            priority: Higher priority callbacks are submitted first (0 = default)
        """
        with self._lock:
            self._hooks[event].append((priority, callback))
            self._hooks[event].sort(key=lambda x: x[0], reverse=True)

    def unregister_hook(self, event: str, callback: Callable):
        """Unregister a callback from an event."""
        with self._lock:
            if event in self._hooks:
                self._hooks[event] = [
                    (p, cb) for p, cb in self._hooks[event] if cb != callback
                ]
                if not self._hooks[event]:
                    del self._hooks[event]

    def trigger_hook(self, event: str, **kwargs) -> List[Future]:
        """
        Trigger all callbacks for an event asynchronously.

        Returns:
            List of Future objects for the triggered callbacks
        """
        with self._lock:
            if self._closed:
                return []
            callbacks = [cb for _, cb in self._hooks.get(event, [])]
            self._hook_stats[event]["triggered"] += len(callbacks)

        futures = []
        for callback in callbacks:
            try:
                futures.append(self._executor.submit(self._safe_call, callback, event, **kwargs))
            except RuntimeError as e:
                # Executor shut down between the check above and submit().
                self._logger.warning(f"[HookManager] Error submitting hook '{event}': {e}")
                with self._lock:
                    self._hook_stats[event]["errors"] += 1
        return futures

    def _safe_call(self, callback: Callable, event: str, **kwargs):
        try:
            return callback(**kwargs)
        except Exception as e:
            self._logger.error(f"[HookManager] Hook '{event}' callback error: {e}")
            with self._lock:
                self._hook_stats[event]["errors"] += 1
            raise

    def wait_for_hooks(
        self, futures: List[Future], timeout: Optional[float] = None
    ) -> List[Any]:
        """Wait for hook futures and return their results (None for failed callbacks)."""
        results = []
        for future in futures:
            try:
                results.append(future.result(timeout=timeout))
            except Exception:
                results.append(None)
        return results

    def trigger_hook_sync(self, event: str, **kwargs) -> List[Any]:
        """Trigger hooks and wait for them to finish."""
        return self.wait_for_hooks(self.trigger_hook(event, **kwargs))

    def get_registered_events(self) -> List[str]:
        with self._lock:
            return list(self._hooks.keys())

    def get_hook_count(self, event: str) -> int:
        with self._lock:
            return len(self._hooks.get(event, []))

    def get_stats(self) -> Dict[str, Dict[str, int]]:
        with self._lock:
            return {event: dict(stats) for event, stats in self._hook_stats.items()}

    def shutdown(self, wait: bool = True):
        """Shutdown the hook manager and executor."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)


class HookEvents:
    """Standard hook event names."""
    REQUEST_STARTED = "request_started"
    REQUEST_COMPLETED = "request_completed"
    REQUEST_FAILED = "request_failed"
    RETRY_SCHEDULED = "retry_scheduled"
    CONNECTION_DEAD = "connection_dead"
    CONNECTION_REVIVED = "connection_revived"
    NODE_REQUEST_SENT = "node_request_sent"
    NODE_RESPONSE_RECEIVED = "node_response_received"
