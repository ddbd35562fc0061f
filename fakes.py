"""Scripted connections and a controllable clock shared by the test modules."""

from cluster_transport.config import HostSpec
from cluster_transport.connection import BaseConnection
from cluster_transport.models import Response


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


class ScriptedConnection(BaseConnection):
    """
    Plays back a list of outcomes: an int is returned as a response status,
    an exception instance is raised. Once the script runs out it answers 200.
    """

    def __init__(self, name: str, outcomes=None, ping_result: bool = True):
        super().__init__(HostSpec(host=name, port=9200))
        self.outcomes = list(outcomes or [])
        self.ping_result = ping_result
        self.calls = []
        self.pings = 0

    def perform_request(self, method, uri, params=None, body=None, options=None):
        self.calls.append({"method": method, "uri": uri, "params": params, "body": body, "options": options})
        outcome = self.outcomes.pop(0) if self.outcomes else 200
        request = {"method": method, "uri": uri, "body": body, "options": dict(options or {})}
        if isinstance(outcome, BaseException):
            self._record_exchange(request, None, error=str(outcome))
            raise outcome
        response = Response(status=outcome, body=f"{self.host.host}:{outcome}".encode(), host=self.host.address)
        self._record_exchange(
            request,
            {"status": outcome, "headers": {}, "body": response.body, "timing": {"duration": 0.0}},
        )
        return response

    def ping(self, timeout=None):
        self.pings += 1
        return self.ping_result
