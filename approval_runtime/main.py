from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, Header, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from pydantic import BaseModel

from approval_runtime.audit import AuditLogger
from approval_runtime.config import Settings, settings
from approval_runtime.config_file import apply_admin_config, load_admin_config
from approval_runtime.identity import is_admin, resolve_actor
from approval_runtime.metrics import MetricsCollector, metrics
from approval_runtime.pages import render_approval_page, render_error_page
from approval_runtime.throttle import BruteForceThrottler
from callbacks.http import CallbackClient, CallbackMock
from callbacks.http_real import HttpCallbackClient, HttpCallbackConfig
from gateway.dispatcher import ApprovalGateway
from gateway.results import ApprovalRequest, Direction, ErrorCode, ResolveResult
from gateway.signer import Signer

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class LinkBody(BaseModel):
    approveCallbackUri: str
    rejectCallbackUri: str
    description: str
    userId: str | None = None

    def to_request(self) -> ApprovalRequest:
        return ApprovalRequest(
            approve_callback_uri=self.approveCallbackUri,
            reject_callback_uri=self.rejectCallbackUri,
            description=self.description,
            authorized_user_id=self.userId,
        )


class DecisionBody(LinkBody):
    signature: str


def _throttle_client(request: Request, cfg: Settings) -> str:
    """Throttle key: forwarded or peer address, plus the acting user from the proxy."""
    address = ""
    if cfg.throttle_client_header:
        address = request.headers.get(cfg.throttle_client_header, "").split(",")[0].strip()
    if not address:
        address = request.client.host if request.client else "unknown"
    actor = resolve_actor(request.headers, cfg.identity_header)
    return f"{address}|{actor or ''}"


def _build_client(cfg: Settings) -> CallbackClient:
    if cfg.callback_adapter.lower() == "mock":
        return CallbackMock()
    return HttpCallbackClient(
        HttpCallbackConfig(
            timeout_ms=cfg.callback_timeout_ms,
            follow_redirects=cfg.callback_follow_redirects,
            verify_tls=cfg.callback_verify_tls,
        )
    )


def _decision_response(res: ResolveResult) -> Dict[str, Any]:
    if res.error is None:
        return {"result": {"body": res.outcome.body if res.outcome else ""}}
    payload: Dict[str, Any] = {"error": res.error.code.value, "message": res.error.message}
    if res.error.status_code is not None:
        payload["status_code"] = res.error.status_code
    if res.error.body is not None:
        payload["body"] = res.error.body
    return payload


def create_app(
    cfg: Settings | None = None,
    client: CallbackClient | None = None,
    audit: AuditLogger | None = None,
    throttler: BruteForceThrottler | None = None,
    collector: MetricsCollector | None = None,
) -> FastAPI:
    cfg = cfg or settings
    if cfg.admin_config_path:
        cfg = apply_admin_config(cfg, load_admin_config(cfg.admin_config_path))
    logging.basicConfig(
        level=cfg.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not cfg.signing_secret:
        raise ValueError("APPROVE_LINKS_SECRET is not set")

    collector = collector or metrics
    throttler = throttler or BruteForceThrottler(cfg.throttle_max_attempts, cfg.throttle_window_sec)
    gateway = ApprovalGateway(
        signer=Signer(cfg.signing_secret),
        client=client or _build_client(cfg),
        settings=cfg,
        audit=audit or AuditLogger(cfg.audit_log_path),
        metrics=collector,
    )

    app = FastAPI(title="Approve Links")
    app.state.gateway = gateway
    app.state.throttler = throttler

    def _throttled(action: str, throttle_key: str) -> JSONResponse | None:
        if not throttler.is_blocked(action, throttle_key):
            return None
        collector.inc("approve_links_throttled_total", action)
        return JSONResponse({"error": "throttled", "message": "Too many failed attempts"}, status_code=429)

    def _decide(direction: Direction, body: DecisionBody, request: Request) -> JSONResponse:
        action = f"{direction.value}Link"
        throttle_key = _throttle_client(request, cfg)
        blocked = _throttled(action, throttle_key)
        if blocked is not None:
            return blocked

        actor = resolve_actor(request.headers, cfg.identity_header)
        res = gateway.resolve(direction, body.to_request(), body.signature, actor)
        status = res.error.code.http_status if res.error else 200
        if res.error is not None and res.error.code is ErrorCode.INVALID_SIGNATURE:
            throttler.register_attempt(action, throttle_key)
            logger.info("throttle hit for %s from %s: bad signature", action, throttle_key)
        return JSONResponse(_decision_response(res), status_code=status)

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post(f"{API_PREFIX}/link")
    def generate_link(body: LinkBody, authorization: str | None = Header(default=None)) -> JSONResponse:
        if not is_admin(authorization, cfg.admin_token):
            return JSONResponse(
                {"error": "unauthorized", "message": "admin token required"}, status_code=401
            )
        res = gateway.generate_link(body.to_request())
        if not res.ok:
            code = res.error.code.value if res.error else "failed"
            return JSONResponse({"error": code}, status_code=400)
        return JSONResponse(
            {"link": res.link},
            headers={"Cache-Control": "private, max-age=86400, immutable"},
        )

    @app.post(f"{API_PREFIX}/approve")
    def approve(body: DecisionBody, request: Request) -> JSONResponse:
        return _decide(Direction.APPROVE, body, request)

    @app.post(f"{API_PREFIX}/reject")
    def reject(body: DecisionBody, request: Request) -> JSONResponse:
        return _decide(Direction.REJECT, body, request)

    @app.get(cfg.link_path, response_class=HTMLResponse)
    def view_page(
        request: Request,
        approveCallbackUri: str,
        rejectCallbackUri: str,
        description: str,
        signature: str,
        userId: str | None = None,
    ) -> HTMLResponse:
        action = "approvePage"
        throttle_key = _throttle_client(request, cfg)
        if throttler.is_blocked(action, throttle_key):
            collector.inc("approve_links_throttled_total", action)
            return HTMLResponse(render_error_page("Too many failed attempts"), status_code=429)

        body = DecisionBody(
            approveCallbackUri=approveCallbackUri,
            rejectCallbackUri=rejectCallbackUri,
            description=description,
            signature=signature,
            userId=userId,
        )
        actor = resolve_actor(request.headers, cfg.identity_header)
        failure = gateway.check(body.to_request(), signature, actor)
        if failure is not None and failure.error is not None:
            reason = "Bad signature" if failure.error.code is ErrorCode.INVALID_SIGNATURE else "Unauthorized user"
            throttler.register_attempt(action, throttle_key)
            logger.info("throttle hit for %s from %s: %s", action, throttle_key, reason)
            return HTMLResponse(render_error_page(reason), status_code=401)

        return HTMLResponse(render_approval_page(body.model_dump(), description, API_PREFIX))

    @app.get(cfg.metrics_path, response_class=PlainTextResponse)
    def metrics_export() -> str:
        if not cfg.metrics_enabled:
            return ""
        return collector.render_prometheus()

    return app
