from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Protocol


@dataclass(frozen=True)
class CallbackResponse:
    status_code: int
    body: str


class CallbackTransportError(Exception):
    """The callback endpoint could not be reached (connect, timeout or other transport failure)."""

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason


class CallbackClient(Protocol):
    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        json: Any | None = None,
    ) -> CallbackResponse:
        ...


class CallbackMock:
    """
    Deterministic callback client. Never calls the network and records every request.
    """

    def __init__(self, responses: Dict[str, CallbackResponse] | None = None):
        self._responses = dict(responses or {})
        self._failures: Dict[str, CallbackTransportError] = {}
        self.calls: List[Dict[str, Any]] = []

    def respond(self, url: str, status_code: int = 200, body: str = "OK") -> None:
        self._responses[url] = CallbackResponse(status_code=status_code, body=body)

    def fail(self, url: str, reason: str = "connect", message: str = "connection refused") -> None:
        self._failures[url] = CallbackTransportError(reason, message)

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        json: Any | None = None,
    ) -> CallbackResponse:
        self.calls.append({"method": method, "url": url, "headers": dict(headers), "json": json})
        if url in self._failures:
            raise self._failures[url]
        return self._responses.get(url, CallbackResponse(status_code=200, body="OK"))
