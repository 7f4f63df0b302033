"""Configuration dataclasses shared across the lodstream package."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from lodstream.config.logging_policy import DebugPolicy, load_debug_policy


@dataclass(frozen=True)
class StreamingConfig:
    """Scheduling knobs for the decision engine."""

    buffer_s: float = 2.0  # download buffer used for the byte budget
    horizon_s: float = 2.0  # look-ahead for Naive1/Greedy1/Proposed1
    riemann_steps: int = 4
    throughput_window: int = 10
    default_rate: float = 100.0
    strategy: str = "naive1"
    metric: str = "distance"
    frame_rate: float = 60.0


@dataclass(frozen=True)
class AssetConfig:
    """Where catalog descriptors and level files are read from."""

    root: Optional[str] = None
    base_url: Optional[str] = None
    timeout_s: float = 30.0
    descriptor: str = "positions.json"


@dataclass(frozen=True)
class SessionCtx:
    """Resolved runtime context shared across subsystems."""

    cfg: StreamingConfig = field(default_factory=StreamingConfig)
    assets: AssetConfig = field(default_factory=AssetConfig)
    debug_policy: DebugPolicy = field(default_factory=lambda: load_debug_policy({}))
    log_level: str = "INFO"
