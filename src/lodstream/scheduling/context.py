"""Everything a strategy pass reads besides the catalog."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from lodstream.camera.predictor import ViewpointPredictor
from lodstream.config.logging_policy import DebugPolicy
from lodstream.config.models import StreamingConfig
from lodstream.runtime.stats import SessionStats
from lodstream.throughput import ThroughputEstimator
from lodstream.utility.metrics import MetricSelector


@dataclass
class SchedulingContext:
    predictor: ViewpointPredictor
    metrics: MetricSelector
    estimator: ThroughputEstimator
    cfg: StreamingConfig = field(default_factory=StreamingConfig)
    debug_policy: Optional[DebugPolicy] = None
    stats: Optional[SessionStats] = None
    now_fn: Callable[[], float] = time.perf_counter

    @property
    def log_strategy(self) -> bool:
        return bool(self.debug_policy and self.debug_policy.logging.log_strategy_eval)

    @property
    def log_throughput(self) -> bool:
        return bool(self.debug_policy and self.debug_policy.logging.log_throughput)

    def budget(self) -> float:
        return self.estimator.budget(self.cfg.buffer_s)


__all__ = ["SchedulingContext"]
