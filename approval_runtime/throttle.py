from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Tuple


class BruteForceThrottler:
    """
    Sliding-window attempt counter keyed by (action, client).

    Routes call register_attempt() on every signature or authorization
    failure and is_blocked() before doing any verification work. Keys whose
    attempts have all expired are swept at most once per window.
    """

    def __init__(
        self,
        max_attempts: int,
        window_sec: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_sec = window_sec
        self._clock = clock
        self._lock = threading.Lock()
        self._attempts: Dict[Tuple[str, str], Deque[float]] = defaultdict(deque)
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)

    def _prune(self, key: Tuple[str, str], now: float) -> Deque[float]:
        attempts = self._attempts[key]
        while attempts and now - attempts[0] > self.window_sec:
            attempts.popleft()
        return attempts

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.window_sec:
            return
        self._last_sweep = now
        expired = [
            key
            for key, attempts in self._attempts.items()
            if not attempts or now - attempts[-1] > self.window_sec
        ]
        for key in expired:
            del self._attempts[key]

    def register_attempt(self, action: str, client: str) -> int:
        key = (action, client)
        with self._lock:
            now = self._clock()
            self._sweep(now)
            attempts = self._prune(key, now)
            attempts.append(now)
            return len(attempts)

    def is_blocked(self, action: str, client: str) -> bool:
        key = (action, client)
        with self._lock:
            attempts = self._prune(key, self._clock())
            if not attempts:
                del self._attempts[key]
                return False
            return len(attempts) >= self.max_attempts

    def reset(self) -> None:
        with self._lock:
            self._attempts.clear()
