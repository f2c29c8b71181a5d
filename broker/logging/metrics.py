# ==============================
# Metrics (In-Memory)
# ==============================
"""
Thread-safe in-memory counters and timers.

Goals:
- Basic counters (dispatch.total, dispatch.error, dispatch.error.<code>)
- Basic timing (dispatch.latency_ms.<operation>)
- Snapshot for the health route

Timers keep only the most recent samples per name so a long-running
process does not grow without bound. No exporters.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional


DEFAULT_MAX_SAMPLES = 1000


@dataclass
class Timer:
    name: str
    started: float


class Metrics:
    def __init__(self, *, max_samples: int = DEFAULT_MAX_SAMPLES) -> None:
        self._lock = threading.Lock()
        self._max_samples = max_samples
        self._counters: Dict[str, int] = {}
        self._timers_ms: Dict[str, Deque[int]] = {}

    def inc(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def start_timer(self, name: str) -> Timer:
        return Timer(name=name, started=time.perf_counter())

    def stop_timer(self, timer: Timer) -> int:
        elapsed_ms = int((time.perf_counter() - timer.started) * 1000)
        self.observe_ms(timer.name, elapsed_ms)
        return elapsed_ms

    def observe_ms(self, name: str, value_ms: int) -> None:
        with self._lock:
            samples = self._timers_ms.get(name)
            if samples is None:
                samples = deque(maxlen=self._max_samples)
                self._timers_ms[name] = samples
            samples.append(value_ms)

    def snapshot(self, *, timer_prefix: Optional[str] = None) -> Dict[str, object]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timers_ms": {
                    k: list(v)
                    for k, v in self._timers_ms.items()
                    if timer_prefix is None or k.startswith(timer_prefix)
                },
            }
