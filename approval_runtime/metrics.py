from __future__ import annotations

import threading
from collections import Counter
from typing import Tuple


class MetricsCollector:
    """Small in-memory Prometheus-style metrics collector."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Counter[Tuple[str, str]] = Counter()
        self._latency_buckets: Counter[Tuple[str, str]] = Counter()
        self._bucket_edges = (10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000)

    def inc(self, name: str, label: str, n: int = 1) -> None:
        with self._lock:
            self._counters[(name, label)] += n

    def observe_latency(self, direction: str, latency_ms: float) -> None:
        bucket = self._bucket_for(latency_ms)
        with self._lock:
            self._latency_buckets[(direction, bucket)] += 1

    def _bucket_for(self, latency_ms: float) -> str:
        for edge in self._bucket_edges:
            if latency_ms <= edge:
                return str(edge)
        return "+Inf"

    def _render_counter(self, lines: list, name: str, label_name: str) -> None:
        lines.append(f"# TYPE {name} counter")
        for (counter, label), value in sorted(self._counters.items()):
            if counter != name:
                continue
            lines.append(f'{name}{{{label_name}="{label}"}} {value}')

    def render_prometheus(self) -> str:
        lines: list = []
        with self._lock:
            self._render_counter(lines, "approve_links_decisions_total", "decision")
            self._render_counter(lines, "approve_links_callbacks_total", "direction")
            self._render_counter(lines, "approve_links_throttled_total", "action")

            lines.append("# TYPE approve_links_callback_latency_ms_bucket counter")
            for (direction, bucket), value in sorted(self._latency_buckets.items()):
                lines.append(
                    f'approve_links_callback_latency_ms_bucket{{direction="{direction}",le="{bucket}"}} {value}'
                )

        return "\n".join(lines) + "\n"


metrics = MetricsCollector()
