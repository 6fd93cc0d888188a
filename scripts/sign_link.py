from __future__ import annotations

import argparse
import sys
import tempfile
from pathlib import Path
from typing import List

from approval_runtime.audit import AuditLogger
from approval_runtime.config import settings
from approval_runtime.metrics import MetricsCollector
from callbacks.http import CallbackMock
from gateway.dispatcher import ApprovalGateway
from gateway.results import ApprovalRequest
from gateway.signer import Signer


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Generate or verify an approval link offline.")
    ap.add_argument("--approve", required=True, help="approve callback URI")
    ap.add_argument("--reject", required=True, help="reject callback URI")
    ap.add_argument("--description", required=True)
    ap.add_argument("--user-id", default=None, help="bind the link to this user")
    ap.add_argument("--verify", default=None, metavar="SIGNATURE", help="check a signature instead of generating")
    ap.add_argument("--secret", default=None, help="defaults to APPROVE_LINKS_SECRET")
    ap.add_argument("--audit-log", default=None, help="defaults to a throwaway file")
    return ap


def main(argv: List[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    secret = args.secret or settings.signing_secret
    if not secret:
        print("no signing secret: pass --secret or set APPROVE_LINKS_SECRET", file=sys.stderr)
        return 2
    signer = Signer(secret)

    if args.verify is not None:
        ok = signer.verify(args.approve, args.reject, args.description, args.verify, args.user_id)
        print("valid" if ok else "invalid")
        return 0 if ok else 1

    audit_path = args.audit_log or str(Path(tempfile.gettempdir()) / "approve-links-cli-audit.jsonl")
    gateway = ApprovalGateway(
        signer=signer,
        client=CallbackMock(),
        settings=settings,
        audit=AuditLogger(audit_path),
        metrics=MetricsCollector(),
    )
    res = gateway.generate_link(
        ApprovalRequest(
            approve_callback_uri=args.approve,
            reject_callback_uri=args.reject,
            description=args.description,
            authorized_user_id=args.user_id,
        )
    )
    if not res.ok:
        print(res.error.message, file=sys.stderr)
        return 1
    print(res.link)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
