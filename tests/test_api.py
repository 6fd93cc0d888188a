from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict
from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi.testclient import TestClient

from approval_runtime.audit import AuditLogger
from approval_runtime.config import Settings
from approval_runtime.main import create_app
from approval_runtime.metrics import MetricsCollector
from approval_runtime.throttle import BruteForceThrottler
from callbacks.http import CallbackMock
from gateway.signer import Signer

SECRET = "api-test-secret"
APPROVE = "http://localhost/approve"
REJECT = "http://localhost/reject"


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "signing_secret": SECRET,
        "public_base_url": "https://cloud.example.org",
        "admin_token": "",
        "identity_header": "X-Remote-User",
        "metrics_enabled": True,
        "metrics_path": "/metrics",
        "link_path": "/link",
        "max_link_length": 2000,
        "admin_config_path": "",
        "log_level": "INFO",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def mock_client() -> CallbackMock:
    return CallbackMock()


@pytest.fixture
def throttler() -> BruteForceThrottler:
    return BruteForceThrottler(max_attempts=3, window_sec=300)


@pytest.fixture
def api(tmp_path: Path, mock_client: CallbackMock, throttler: BruteForceThrottler) -> TestClient:
    app = create_app(
        make_settings(),
        client=mock_client,
        audit=AuditLogger(str(tmp_path / "audit.jsonl")),
        throttler=throttler,
        collector=MetricsCollector(),
    )
    return TestClient(app)


def _payload(user: str | None = None, signature: str | None = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "approveCallbackUri": APPROVE,
        "rejectCallbackUri": REJECT,
        "description": "Deploy <b>1.2.3</b>",
    }
    if user is not None:
        body["userId"] = user
    body["signature"] = signature or Signer(SECRET).sign(APPROVE, REJECT, body["description"], user)
    return body


def test_health(api: TestClient) -> None:
    assert api.get("/health").json() == {"status": "ok"}


def test_generate_link(api: TestClient) -> None:
    r = api.post(
        "/api/v1/link",
        json={"approveCallbackUri": APPROVE, "rejectCallbackUri": REJECT, "description": "description"},
    )
    assert r.status_code == 200
    assert "max-age=86400" in r.headers["cache-control"]
    link = r.json()["link"]
    assert link.startswith("https://cloud.example.org/link?")
    query = parse_qs(urlsplit(link).query)
    assert query["signature"] == [Signer(SECRET).sign(APPROVE, REJECT, "description")]


def test_generate_link_too_long(api: TestClient) -> None:
    r = api.post(
        "/api/v1/link",
        json={"approveCallbackUri": APPROVE, "rejectCallbackUri": REJECT, "description": "d" * 2500},
    )
    assert r.status_code == 400
    assert r.json() == {"error": "link_too_long"}


def test_generate_link_requires_admin_token(tmp_path: Path, mock_client: CallbackMock) -> None:
    app = create_app(
        make_settings(admin_token="s3cret"),
        client=mock_client,
        audit=AuditLogger(str(tmp_path / "audit.jsonl")),
        collector=MetricsCollector(),
    )
    api = TestClient(app)
    body = {"approveCallbackUri": APPROVE, "rejectCallbackUri": REJECT, "description": "d"}

    assert api.post("/api/v1/link", json=body).status_code == 401
    assert api.post("/api/v1/link", json=body, headers={"Authorization": "Bearer nope"}).status_code == 401
    assert api.post("/api/v1/link", json=body, headers={"Authorization": "Bearer s3cret"}).status_code == 200


def test_approve(api: TestClient, mock_client: CallbackMock) -> None:
    mock_client.respond(APPROVE, 200, "deployed")
    r = api.post("/api/v1/approve", json=_payload())
    assert r.status_code == 200
    assert r.json() == {"result": {"body": "deployed"}}
    assert [c["url"] for c in mock_client.calls] == [APPROVE]


def test_reject(api: TestClient, mock_client: CallbackMock) -> None:
    r = api.post("/api/v1/reject", json=_payload())
    assert r.status_code == 200
    assert [c["url"] for c in mock_client.calls] == [REJECT]


def test_bad_signature_is_401(api: TestClient, mock_client: CallbackMock) -> None:
    r = api.post("/api/v1/approve", json=_payload(signature="f" * 64))
    assert r.status_code == 401
    assert r.json()["error"] == "signature"
    assert mock_client.calls == []


def test_wrong_user_is_400(api: TestClient, mock_client: CallbackMock) -> None:
    r = api.post("/api/v1/approve", json=_payload(user="alice"), headers={"X-Remote-User": "bob"})
    assert r.status_code == 400
    assert r.json()["error"] == "unauthorized_user"
    assert mock_client.calls == []


def test_bound_user_can_approve(api: TestClient, mock_client: CallbackMock) -> None:
    r = api.post("/api/v1/approve", json=_payload(user="alice"), headers={"X-Remote-User": "alice"})
    assert r.status_code == 200


def test_upstream_error_is_400_with_body(api: TestClient, mock_client: CallbackMock) -> None:
    mock_client.respond(REJECT, 500, "internal error")
    r = api.post("/api/v1/reject", json=_payload())
    assert r.status_code == 400
    data = r.json()
    assert data["error"] == "upstream_error"
    assert data["status_code"] == 500
    assert data["body"] == "internal error"


def test_transport_error_is_400(api: TestClient, mock_client: CallbackMock) -> None:
    mock_client.fail(APPROVE)
    r = api.post("/api/v1/approve", json=_payload())
    assert r.status_code == 400
    assert r.json()["error"] == "transport_error"


def test_repeated_bad_signatures_are_throttled(api: TestClient, mock_client: CallbackMock) -> None:
    for _ in range(3):
        assert api.post("/api/v1/approve", json=_payload(signature="0" * 64)).status_code == 401

    r = api.post("/api/v1/approve", json=_payload())
    assert r.status_code == 429
    assert r.json()["error"] == "throttled"
    assert mock_client.calls == []

    # throttling is per action
    assert api.post("/api/v1/reject", json=_payload()).status_code == 200


def test_view_page(api: TestClient) -> None:
    params = _payload()
    r = api.get("/link", params=params)
    assert r.status_code == 200
    assert "text/html" in r.headers["content-type"]
    assert "Deploy &lt;b&gt;1.2.3&lt;/b&gt;" in r.text
    assert "Approve" in r.text and "Reject" in r.text
    assert "/api/v1/" in r.text


def test_view_page_bad_signature(api: TestClient, mock_client: CallbackMock) -> None:
    r = api.get("/link", params=_payload(signature="a" * 64))
    assert r.status_code == 401
    assert "Bad signature" in r.text
    assert mock_client.calls == []


def test_view_page_wrong_user(api: TestClient) -> None:
    r = api.get("/link", params=_payload(user="alice"), headers={"X-Remote-User": "bob"})
    assert r.status_code == 401
    assert "Unauthorized user" in r.text


def test_view_page_throttled(api: TestClient) -> None:
    for _ in range(3):
        api.get("/link", params=_payload(signature="b" * 64))
    assert api.get("/link", params=_payload()).status_code == 429


def test_metrics_export(api: TestClient) -> None:
    api.post("/api/v1/approve", json=_payload())
    text = api.get("/metrics").text
    assert 'approve_links_decisions_total{decision="succeeded"} 1' in text
    assert 'approve_links_callbacks_total{direction="approve"} 1' in text


def test_missing_secret_refuses_to_start(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        create_app(make_settings(signing_secret=""), client=CallbackMock())


def test_admin_config_file_overrides_settings(tmp_path: Path, mock_client: CallbackMock) -> None:
    cfg_path = tmp_path / "admin.yaml"
    cfg_path.write_text("max_link_length: 100\n", encoding="utf-8")
    app = create_app(
        make_settings(admin_config_path=str(cfg_path)),
        client=mock_client,
        audit=AuditLogger(str(tmp_path / "audit.jsonl")),
        collector=MetricsCollector(),
    )
    r = TestClient(app).post(
        "/api/v1/link",
        json={"approveCallbackUri": APPROVE, "rejectCallbackUri": REJECT, "description": "description"},
    )
    assert r.status_code == 400
    assert r.json() == {"error": "link_too_long"}


def test_one_actors_failures_do_not_block_another(api: TestClient, mock_client: CallbackMock) -> None:
    for _ in range(3):
        r = api.post("/api/v1/approve", json=_payload(signature="0" * 64), headers={"X-Remote-User": "mallory"})
        assert r.status_code == 401

    r = api.post("/api/v1/approve", json=_payload(user="alice"), headers={"X-Remote-User": "alice"})
    assert r.status_code == 200
    assert len(mock_client.calls) == 1

    r = api.post("/api/v1/approve", json=_payload(), headers={"X-Remote-User": "mallory"})
    assert r.status_code == 429


def test_forwarded_client_header_separates_clients(tmp_path: Path, mock_client: CallbackMock) -> None:
    app = create_app(
        make_settings(throttle_client_header="X-Forwarded-For"),
        client=mock_client,
        audit=AuditLogger(str(tmp_path / "audit.jsonl")),
        throttler=BruteForceThrottler(max_attempts=2, window_sec=300),
        collector=MetricsCollector(),
    )
    api = TestClient(app)
    for _ in range(2):
        api.get("/link", params=_payload(signature="c" * 64), headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})

    assert api.get("/link", params=_payload(), headers={"X-Forwarded-For": "203.0.113.7"}).status_code == 429
    assert api.get("/link", params=_payload(), headers={"X-Forwarded-For": "198.51.100.2"}).status_code == 200


def test_unencodable_text_fails_as_bad_signature(api: TestClient, mock_client: CallbackMock) -> None:
    body = _payload(signature="0" * 64)
    body["description"] = "\ud800"
    raw = json.dumps(body)
    for _ in range(3):
        r = api.post("/api/v1/approve", content=raw, headers={"Content-Type": "application/json"})
        assert r.status_code == 401
        assert r.json()["error"] == "signature"

    r = api.post("/api/v1/reject", content=raw, headers={"Content-Type": "application/json"})
    assert r.status_code == 401
    assert api.post("/api/v1/approve", json=_payload()).status_code == 429
    assert mock_client.calls == []


def test_generate_link_with_unencodable_text(api: TestClient) -> None:
    raw = json.dumps({"approveCallbackUri": APPROVE, "rejectCallbackUri": REJECT, "description": "\ud800"})
    r = api.post("/api/v1/link", content=raw, headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json() == {"error": "invalid_text"}
