from __future__ import annotations

from typing import Any, Dict
from urllib.parse import urlencode, urlparse, urlsplit, urlunsplit

ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE")


def extract_host(url: str) -> str:
    try:
        parsed = urlparse(url)
        return parsed.hostname or ""
    except ValueError:
        return ""


def is_dispatchable_uri(url: str) -> bool:
    """Absolute http(s) URI with a host."""
    if not url or any(ch.isspace() for ch in url):
        return False
    try:
        parsed = urlparse(url)
        # .port raises on a malformed port
        parsed.port
    except ValueError:
        return False
    return parsed.scheme.lower() in ("http", "https") and bool(parsed.hostname)


def normalize_method(method: str) -> str | None:
    upper = (method or "").upper()
    return upper if upper in ALLOWED_METHODS else None


def is_authorized_actor(authorized_user_id: str | None, actor_id: str | None) -> bool:
    if authorized_user_id is None:
        return True
    return actor_id is not None and actor_id == authorized_user_id


def append_query(url: str, params: Dict[str, Any]) -> str:
    if not params:
        return url
    parts = urlsplit(url)
    extra = urlencode(params, doseq=True)
    query = f"{parts.query}&{extra}" if parts.query else extra
    return urlunsplit(parts._replace(query=query))
