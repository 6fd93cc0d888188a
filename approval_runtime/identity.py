from __future__ import annotations

import hmac
from typing import Mapping, Optional


def resolve_actor(headers: Mapping[str, str], identity_header: str) -> Optional[str]:
    """Acting user as asserted by the authenticating proxy in front of the service."""
    value = headers.get(identity_header)
    if value is None:
        return None
    value = value.strip()
    return value or None


def is_admin(authorization: Optional[str], admin_token: str) -> bool:
    if not admin_token:
        return True
    if not authorization or not authorization.startswith("Bearer "):
        return False
    token = authorization.split(" ", 1)[1].strip()
    return hmac.compare_digest(token.encode("utf-8"), admin_token.encode("utf-8"))
