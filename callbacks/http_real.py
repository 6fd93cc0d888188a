from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

import httpx

from callbacks.http import CallbackResponse, CallbackTransportError


@dataclass
class HttpCallbackConfig:
    timeout_ms: int = 10000
    follow_redirects: bool = False
    verify_tls: bool = True
    max_body_chars: int = 65536


class HttpCallbackClient:
    """httpx-backed callback client. One request per call, bounded by the configured timeout."""

    def __init__(self, config: HttpCallbackConfig):
        self.config = config

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        json: Any | None = None,
    ) -> CallbackResponse:
        timeout = max(self.config.timeout_ms / 1000.0, 0.1)
        try:
            with httpx.Client(
                timeout=timeout,
                follow_redirects=self.config.follow_redirects,
                verify=self.config.verify_tls,
                trust_env=False,
            ) as client:
                if json is None:
                    response = client.request(method, url, headers=headers)
                else:
                    response = client.request(method, url, headers=headers, json=json)
        except httpx.TimeoutException as exc:
            raise CallbackTransportError("timeout", f"callback timed out after {timeout:.1f}s") from exc
        except httpx.ConnectError as exc:
            raise CallbackTransportError("connect", str(exc) or "connection failed") from exc
        except httpx.RequestError as exc:
            raise CallbackTransportError("transport", str(exc) or type(exc).__name__) from exc

        return CallbackResponse(
            status_code=int(response.status_code),
            body=response.text[: self.config.max_body_chars],
        )
