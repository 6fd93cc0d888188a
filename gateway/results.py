from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel


class Direction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class ErrorCode(str, Enum):
    INVALID_SIGNATURE = "signature"
    UNAUTHORIZED_USER = "unauthorized_user"
    LINK_TOO_LONG = "link_too_long"
    INVALID_CALLBACK_URI = "invalid_callback_uri"
    BAD_HTTP_METHOD = "bad_http_method"
    UPSTREAM_ERROR = "upstream_error"
    TRANSPORT_ERROR = "transport_error"
    INVALID_TEXT = "invalid_text"

    @property
    def http_status(self) -> int:
        # unauthorized_user stays 400, only a forged link is a 401
        if self is ErrorCode.INVALID_SIGNATURE:
            return 401
        return 400


class ApprovalRequest(BaseModel):
    approve_callback_uri: str
    reject_callback_uri: str
    description: str
    authorized_user_id: str | None = None

    def target(self, direction: Direction) -> str:
        if direction is Direction.APPROVE:
            return self.approve_callback_uri
        return self.reject_callback_uri


class DispatchOutcome(BaseModel):
    success: bool
    body: str


class DispatchError(BaseModel):
    code: ErrorCode
    message: str
    status_code: int | None = None
    body: str | None = None
    reason: str | None = None


class ResolveResult(BaseModel):
    status: Literal["succeeded", "failed"]
    direction: Direction
    outcome: DispatchOutcome | None = None
    error: DispatchError | None = None

    @property
    def ok(self) -> bool:
        return self.status == "succeeded"

    @staticmethod
    def succeeded(direction: Direction, body: str) -> "ResolveResult":
        return ResolveResult(
            status="succeeded",
            direction=direction,
            outcome=DispatchOutcome(success=True, body=body),
        )

    @staticmethod
    def failed(
        direction: Direction,
        code: ErrorCode,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
        reason: str | None = None,
    ) -> "ResolveResult":
        return ResolveResult(
            status="failed",
            direction=direction,
            error=DispatchError(
                code=code, message=message, status_code=status_code, body=body, reason=reason
            ),
        )


class LinkResult(BaseModel):
    status: Literal["generated", "failed"]
    link: str | None = None
    signature: str | None = None
    error: DispatchError | None = None

    @property
    def ok(self) -> bool:
        return self.status == "generated"

    @staticmethod
    def generated(link: str, signature: str) -> "LinkResult":
        return LinkResult(status="generated", link=link, signature=signature)

    @staticmethod
    def too_long(length: int, limit: int) -> "LinkResult":
        return LinkResult(
            status="failed",
            error=DispatchError(
                code=ErrorCode.LINK_TOO_LONG,
                message=f"generated link is {length} characters, limit is {limit}",
            ),
        )

    @staticmethod
    def invalid_text(message: str) -> "LinkResult":
        return LinkResult(
            status="failed",
            error=DispatchError(code=ErrorCode.INVALID_TEXT, message=message),
        )
