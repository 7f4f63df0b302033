"""
Session statistics for lodstream.

A small, dependency-free aggregator with:
- counters (monotonic totals such as fetches and bytes)
- gauges (latest throughput estimate and budget)
- histograms (rolling window of fetch and pass durations, in milliseconds)

`snapshot()` returns a JSON-ready dict; the CLI prints it at the end of a run.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Deque, Dict, List


FETCHES_TOTAL = "lodstream_fetches_total"
FETCH_FAILURES_TOTAL = "lodstream_fetch_failures_total"
BYTES_TOTAL = "lodstream_bytes_total"
TICKS_TOTAL = "lodstream_ticks_total"
TICKS_DROPPED_TOTAL = "lodstream_ticks_dropped_total"
BANDWIDTH = "lodstream_bandwidth"
DECODE_RATE = "lodstream_decode_rate"
BUDGET = "lodstream_budget"
FETCH_MS = "lodstream_fetch_ms"
PASS_MS = "lodstream_pass_ms"


class _Hist:
    """Rolling window of millisecond samples plus a lifetime count."""

    __slots__ = ("samples", "latest", "total")

    def __init__(self, window: int) -> None:
        self.samples: Deque[float] = deque(maxlen=window)
        self.latest = 0.0
        self.total = 0

    def observe(self, value_ms: float) -> None:
        self.latest = float(value_ms)
        self.samples.append(self.latest)
        self.total += 1

    def _rank(self, ordered: List[float], p: float) -> float:
        return ordered[min(len(ordered) - 1, max(0, int(round(p * (len(ordered) - 1)))))]

    def stats(self) -> Dict[str, float]:
        if not self.samples:
            return {"count": 0, "last_ms": 0.0, "mean_ms": 0.0, "p50_ms": 0.0, "p90_ms": 0.0, "max_ms": 0.0}
        ordered = sorted(self.samples)
        return {
            "count": self.total,
            "last_ms": self.latest,
            "mean_ms": sum(ordered) / len(ordered),
            "p50_ms": self._rank(ordered, 0.5),
            "p90_ms": self._rank(ordered, 0.9),
            "max_ms": ordered[-1],
        }


class SessionStats:
    """Counters, gauges and rolling histograms for one streaming session."""

    def __init__(self, window: int = 512) -> None:
        self._window = max(16, int(window))
        self._counters: Dict[str, float] = {}
        self._gauges: Dict[str, float] = {}
        self._hists: Dict[str, _Hist] = {}
        self._started = time.time()

    def inc(self, name: str, value: float = 1.0) -> None:
        self._counters[name] = self._counters.get(name, 0.0) + float(value)

    def set(self, name: str, value: float) -> None:
        self._gauges[name] = float(value)

    def observe_ms(self, name: str, value_ms: float) -> None:
        h = self._hists.get(name)
        if h is None:
            h = _Hist(window=self._window)
            self._hists[name] = h
        h.observe(value_ms)

    def counter(self, name: str) -> float:
        return self._counters.get(name, 0.0)

    def gauge(self, name: str) -> float:
        return self._gauges.get(name, 0.0)

    def snapshot(self) -> Dict[str, object]:
        now = time.time()
        elapsed = max(1e-3, now - self._started)
        counters = {k: int(v) if float(v).is_integer() else float(v) for k, v in self._counters.items()}
        return {
            "version": "v1",
            "ts": now,
            "gauges": dict(self._gauges),
            "counters": counters,
            "histograms": {k: v.stats() for k, v in self._hists.items()},
            "derived": {
                "fetches_per_s": self._counters.get(FETCHES_TOTAL, 0.0) / elapsed,
                "bytes_per_s": self._counters.get(BYTES_TOTAL, 0.0) / elapsed,
            },
        }


__all__ = [
    "BANDWIDTH",
    "BUDGET",
    "BYTES_TOTAL",
    "DECODE_RATE",
    "FETCHES_TOTAL",
    "FETCH_FAILURES_TOTAL",
    "FETCH_MS",
    "PASS_MS",
    "SessionStats",
    "TICKS_DROPPED_TOTAL",
    "TICKS_TOTAL",
]
