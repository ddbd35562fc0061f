from dataclasses import dataclass, field
from typing import Dict, Optional

from .errors import ClientResponseError


@dataclass
class Response:
    """A completed HTTP exchange with one node, whatever its status."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    duration: float = 0.0
    host: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def raise_for_status(self) -> "Response":
        if self.status >= 400:
            raise ClientResponseError(self.status, response=self)
        return self
