"""Rolling throughput estimate shared by every object of a session."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict


DEFAULT_WINDOW = 10
DEFAULT_RATE = 100.0


def harmonic_mean(a: float, b: float) -> float:
    if a <= 0.0 or b <= 0.0:
        return 0.0
    return 2.0 * a * b / (a + b)


@dataclass
class ThroughputEstimator:
    """Sliding-window averages of download bandwidth and decode speed.

    Rates are in size units per second, where the size unit is whatever the
    catalog metadata uses for level sizes. With an empty window the estimator
    answers ``default_rate`` so strategies have something to work with before
    the first fetch completes.
    """

    window: int = DEFAULT_WINDOW
    default_rate: float = DEFAULT_RATE
    bandwidth: Deque[float] = field(default_factory=deque)
    decode_rate: Deque[float] = field(default_factory=deque)

    def __post_init__(self) -> None:
        self.window = max(1, int(self.window))
        self.bandwidth = deque(self.bandwidth, maxlen=self.window)
        self.decode_rate = deque(self.decode_rate, maxlen=self.window)

    def record_bandwidth(self, sample: float) -> None:
        self.bandwidth.append(float(sample))

    def record_decode_rate(self, sample: float) -> None:
        self.decode_rate.append(float(sample))

    def _mean(self, dq: Deque[float]) -> float:
        if not dq:
            return float(self.default_rate)
        return float(sum(dq) / len(dq))

    def current_bandwidth(self) -> float:
        return self._mean(self.bandwidth)

    def current_decode_rate(self) -> float:
        return self._mean(self.decode_rate)

    def fetch_time(self, size: float) -> float:
        """Seconds to fetch then decode ``size`` units at the current rates."""
        return float(size) * (1.0 / self.current_bandwidth() + 1.0 / self.current_decode_rate())

    def budget(self, buffer_s: float) -> float:
        """Units that can be fetched and decoded within one buffer interval."""
        return harmonic_mean(self.current_bandwidth(), self.current_decode_rate()) * float(buffer_s)

    def samples(self) -> int:
        return min(len(self.bandwidth), len(self.decode_rate))

    def snapshot(self) -> Dict[str, float]:
        return {
            "bandwidth": self.current_bandwidth(),
            "decode_rate": self.current_decode_rate(),
            "bandwidth_samples": float(len(self.bandwidth)),
            "decode_samples": float(len(self.decode_rate)),
        }


__all__ = ["DEFAULT_RATE", "DEFAULT_WINDOW", "ThroughputEstimator", "harmonic_mean"]
