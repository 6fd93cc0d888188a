from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import Any, Dict, List

_REDACTED_KEYS = frozenset({"signature", "secret", "signing_secret"})


class AuditLogger:
    """
    Appends one JSON line per link generation or approve/reject decision.
    Signatures and secrets are stripped before writing.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def emit(self, event: Dict[str, Any]) -> None:
        event = {k: v for k, v in event.items() if k not in _REDACTED_KEYS}
        event.setdefault("ts", time.time())
        line = json.dumps(event, default=str) + "\n"
        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line)

    def read_events(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        lines = self.path.read_text(encoding="utf-8").splitlines()
        return [json.loads(line) for line in lines if line.strip()]
