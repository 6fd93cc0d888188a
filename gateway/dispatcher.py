from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from approval_runtime.audit import AuditLogger
from approval_runtime.config import Settings
from approval_runtime.metrics import MetricsCollector, metrics as default_metrics
from callbacks.http import CallbackClient, CallbackTransportError
from gateway.results import ApprovalRequest, Direction, ErrorCode, LinkResult, ResolveResult
from gateway.signer import Signer
from gateway.validators import (
    append_query,
    extract_host,
    is_authorized_actor,
    is_dispatchable_uri,
    normalize_method,
)

logger = logging.getLogger(__name__)

USER_AGENT = "ApproveLinks callback dispatcher"


class ApprovalGateway:
    """
    Generates signed approval links and resolves approve/reject requests.

    resolve() is strictly sequential and stops at the first failure:
    signature -> authorized user -> callback URI -> dispatch -> classify.
    Nothing before the dispatch step touches the network.
    """

    def __init__(
        self,
        signer: Signer,
        client: CallbackClient,
        settings: Settings,
        audit: AuditLogger,
        metrics: MetricsCollector | None = None,
    ):
        self.signer = signer
        self.client = client
        self.settings = settings
        self.audit = audit
        self.metrics = metrics or default_metrics

    def generate_link(self, req: ApprovalRequest) -> LinkResult:
        t0 = time.perf_counter()
        signature = self.signer.sign(
            req.approve_callback_uri,
            req.reject_callback_uri,
            req.description,
            req.authorized_user_id,
        )
        params = {
            "approveCallbackUri": req.approve_callback_uri,
            "rejectCallbackUri": req.reject_callback_uri,
            "description": req.description,
            "signature": signature,
        }
        if req.authorized_user_id is not None:
            params["userId"] = req.authorized_user_id
        try:
            link = f"{self.settings.link_base()}?{urlencode(params)}"
        except UnicodeEncodeError:
            link = ""
            res = LinkResult.invalid_text("link fields must be valid unicode text")
        else:
            if len(link) > self.settings.max_link_length:
                res = LinkResult.too_long(len(link), self.settings.max_link_length)
            else:
                res = LinkResult.generated(link, signature)

        self.metrics.inc("approve_links_decisions_total", "link_" + res.status)
        self._audit(
            {
                "action": "generate_link",
                "decision": res.status,
                "error_code": res.error.code.value if res.error else None,
                "link_length": len(link),
                "authorized_user": req.authorized_user_id,
            },
            t0,
        )
        return res

    def check(
        self, req: ApprovalRequest, signature: str, actor_id: Optional[str]
    ) -> Optional[ResolveResult]:
        """Signature and identity gates only. Returns the failure, or None when both pass."""
        return self._gate(Direction.APPROVE, req, signature, actor_id)

    def approve(
        self,
        req: ApprovalRequest,
        signature: str,
        actor_id: Optional[str],
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
    ) -> ResolveResult:
        return self.resolve(Direction.APPROVE, req, signature, actor_id, params=params, method=method)

    def reject(
        self,
        req: ApprovalRequest,
        signature: str,
        actor_id: Optional[str],
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
    ) -> ResolveResult:
        return self.resolve(Direction.REJECT, req, signature, actor_id, params=params, method=method)

    def resolve(
        self,
        direction: Direction,
        req: ApprovalRequest,
        signature: str,
        actor_id: Optional[str],
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
    ) -> ResolveResult:
        t0 = time.perf_counter()
        target = req.target(direction)

        res = self._gate(direction, req, signature, actor_id)
        if res is None:
            res = self._dispatch(direction, target, params or {}, method)

        self.metrics.inc("approve_links_decisions_total", res.error.code.value if res.error else res.status)
        self._audit(
            {
                "action": "resolve",
                "direction": direction.value,
                "decision": res.status,
                "error_code": res.error.code.value if res.error else None,
                "status_code": res.error.status_code if res.error else None,
                "callback_host": extract_host(target),
                "actor": actor_id,
                "authorized_user": req.authorized_user_id,
            },
            t0,
        )
        return res

    def _gate(
        self,
        direction: Direction,
        req: ApprovalRequest,
        signature: str,
        actor_id: Optional[str],
    ) -> Optional[ResolveResult]:
        if not self.signer.verify(
            req.approve_callback_uri,
            req.reject_callback_uri,
            req.description,
            signature,
            req.authorized_user_id,
        ):
            return ResolveResult.failed(direction, ErrorCode.INVALID_SIGNATURE, "Invalid signature")

        if not is_authorized_actor(req.authorized_user_id, actor_id):
            return ResolveResult.failed(direction, ErrorCode.UNAUTHORIZED_USER, "Unauthorized user")

        return None

    def _dispatch(
        self, direction: Direction, target: str, params: Dict[str, Any], method: str
    ) -> ResolveResult:
        if not is_dispatchable_uri(target):
            return ResolveResult.failed(
                direction,
                ErrorCode.INVALID_CALLBACK_URI,
                f"{direction.value} callback URI is not an absolute http(s) URI",
            )

        verb = normalize_method(method)
        if verb is None:
            return ResolveResult.failed(direction, ErrorCode.BAD_HTTP_METHOD, "Bad HTTP method")

        url = target
        body: Any | None = None
        if params:
            if verb == "GET":
                url = append_query(target, params)
            else:
                body = params

        host = extract_host(target)
        self.metrics.inc("approve_links_callbacks_total", direction.value)
        t0 = time.perf_counter()
        try:
            response = self.client.request(verb, url, headers={"User-Agent": USER_AGENT}, json=body)
        except CallbackTransportError as exc:
            logger.warning(
                "approve-links %s callback to %s failed (%s): %s", direction.value, host, exc.reason, exc
            )
            return ResolveResult.failed(
                direction, ErrorCode.TRANSPORT_ERROR, str(exc), reason=exc.reason
            )
        finally:
            self.metrics.observe_latency(direction.value, (time.perf_counter() - t0) * 1000.0)

        if response.status_code >= 400:
            logger.warning(
                "approve-links %s callback to %s returned HTTP %d",
                direction.value,
                host,
                response.status_code,
            )
            return ResolveResult.failed(
                direction,
                ErrorCode.UPSTREAM_ERROR,
                f"Callback returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.body or None,
            )

        logger.info(
            "approve-links %s callback to %s returned HTTP %d",
            direction.value,
            host,
            response.status_code,
        )
        return ResolveResult.succeeded(direction, response.body)

    def _audit(self, event: Dict[str, Any], t0: float) -> None:
        event["latency_ms"] = (time.perf_counter() - t0) * 1000.0
        try:
            self.audit.emit(event)
        except OSError as exc:
            logger.warning("approve-links audit write failed for %s: %s", event.get("action"), exc)
