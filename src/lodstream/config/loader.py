"""Environment loader for :class:`SessionCtx`.

Scalar ``LODSTREAM_*`` variables are read first; the JSON bundle in
``LODSTREAM_SCHEDULER_CONFIG`` is applied on top so a single variable can carry
a whole experiment setup.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Mapping, Optional

from lodstream.config.logging_policy import load_debug_policy
from lodstream.config.models import AssetConfig, SessionCtx, StreamingConfig


logger = logging.getLogger(__name__)


# ---- Helpers -----------------------------------------------------------------

def _env_str(env: Mapping[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
    v = env.get(name)
    if v is None:
        return default
    v = v.strip()
    return v if v != "" else default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    v = env.get(name)
    if v is None or v.strip() == "":
        return float(default)
    try:
        return float(v)
    except ValueError:
        logger.warning("%s=%r is not a number; using %s", name, v, default)
        return float(default)


def _cfg_float(value: object, default: float) -> float:
    if value is None or isinstance(value, bool):
        return float(default)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return float(default)
    return float(default)


def _cfg_int(value: object, default: int) -> int:
    if value is None or isinstance(value, bool):
        return int(default)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return int(default)
    return int(default)


def _cfg_str(value: object, default: str) -> str:
    if value is None:
        return default
    return str(value).strip() or default


def _positive(value: float, default: float, name: str) -> float:
    if value > 0.0:
        return value
    logger.warning("%s must be positive (got %s); using %s", name, value, default)
    return default


def _load_json_config(env: Mapping[str, str], name: str) -> dict[str, object]:
    raw = env.get(name)
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Failed to parse %s; ignoring", name, exc_info=True)
        return {}
    if isinstance(data, dict):
        return data
    logger.warning("%s must be a JSON object; ignoring", name)
    return {}


# ---- Loaders -----------------------------------------------------------------

def load_streaming_config(env: Optional[Mapping[str, str]] = None) -> StreamingConfig:
    """Resolve scheduling knobs from the environment (no side effects).

    Environment keys consulted:
    - LODSTREAM_BUFFER_S, LODSTREAM_HORIZON_S, LODSTREAM_FPS
    - LODSTREAM_STRATEGY, LODSTREAM_METRIC
    - LODSTREAM_SCHEDULER_CONFIG (JSON object; overrides the scalars)
    """

    env = os.environ if env is None else env
    defaults = StreamingConfig()

    buffer_s = _env_float(env, "LODSTREAM_BUFFER_S", defaults.buffer_s)
    horizon_s = _env_float(env, "LODSTREAM_HORIZON_S", defaults.horizon_s)
    frame_rate = _env_float(env, "LODSTREAM_FPS", defaults.frame_rate)
    strategy = _env_str(env, "LODSTREAM_STRATEGY", defaults.strategy) or defaults.strategy
    metric = _env_str(env, "LODSTREAM_METRIC", defaults.metric) or defaults.metric

    bundle = _load_json_config(env, "LODSTREAM_SCHEDULER_CONFIG")
    buffer_s = _cfg_float(bundle.get("buffer_s"), buffer_s)
    horizon_s = _cfg_float(bundle.get("horizon_s"), horizon_s)
    frame_rate = _cfg_float(bundle.get("frame_rate"), frame_rate)
    riemann_steps = _cfg_int(bundle.get("riemann_steps"), defaults.riemann_steps)
    window = _cfg_int(bundle.get("throughput_window"), defaults.throughput_window)
    default_rate = _cfg_float(bundle.get("default_rate"), defaults.default_rate)
    strategy = _cfg_str(bundle.get("strategy"), strategy)
    metric = _cfg_str(bundle.get("metric"), metric)

    return StreamingConfig(
        buffer_s=_positive(buffer_s, defaults.buffer_s, "buffer_s"),
        horizon_s=_positive(horizon_s, defaults.horizon_s, "horizon_s"),
        riemann_steps=max(1, riemann_steps),
        throughput_window=max(1, window),
        default_rate=_positive(default_rate, defaults.default_rate, "default_rate"),
        strategy=strategy.lower(),
        metric=metric.lower(),
        frame_rate=_positive(frame_rate, defaults.frame_rate, "frame_rate"),
    )


def load_asset_config(env: Optional[Mapping[str, str]] = None) -> AssetConfig:
    env = os.environ if env is None else env
    defaults = AssetConfig()
    return AssetConfig(
        root=_env_str(env, "LODSTREAM_ASSETS_ROOT"),
        base_url=_env_str(env, "LODSTREAM_ASSETS_URL"),
        timeout_s=_positive(
            _env_float(env, "LODSTREAM_ASSETS_TIMEOUT_S", defaults.timeout_s),
            defaults.timeout_s,
            "timeout_s",
        ),
        descriptor=_env_str(env, "LODSTREAM_DESCRIPTOR", defaults.descriptor) or defaults.descriptor,
    )


def load_session_ctx(env: Optional[Mapping[str, str]] = None) -> SessionCtx:
    """Build the full session context once at startup."""

    env = os.environ if env is None else env
    level = (_env_str(env, "LODSTREAM_LOG_LEVEL", "INFO") or "INFO").upper()
    return SessionCtx(
        cfg=load_streaming_config(env),
        assets=load_asset_config(env),
        debug_policy=load_debug_policy(env),
        log_level=level,
    )


__all__ = [
    "load_asset_config",
    "load_session_ctx",
    "load_streaming_config",
]
