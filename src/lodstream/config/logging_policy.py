from __future__ import annotations

"""Central debug/logging policy for the streaming controller.

Every verbose-logging toggle consumed by the scheduler, metrics, catalog and
asset layers is resolved here once, so the rest of the code reads a structured
policy instead of calling ``os.getenv`` on its own.
"""

import json
import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoggingToggles:
    log_strategy_eval: bool = False
    log_metric_scores: bool = False
    log_fetches: bool = False
    log_throughput: bool = False
    log_prediction: bool = False
    log_catalog: bool = False


@dataclass(frozen=True)
class DebugPolicy:
    enabled: bool
    logging: LoggingToggles


_LOG_FLAG_MAP: dict[str, Iterable[str]] = {
    "strategy": ("log_strategy_eval",),
    "metric": ("log_metric_scores",),
    "fetch": ("log_fetches",),
    "throughput": ("log_throughput",),
    "prediction": ("log_prediction",),
    "catalog": ("log_catalog",),
}

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off", ""})


def _as_bool(value: object, default: bool) -> bool:
    if isinstance(value, (bool, int, float)):
        return bool(value)
    text = str(value).strip().lower() if isinstance(value, str) else None
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    return default


def _flag_set(raw: object) -> set[str]:
    """Lower-cased tokens from a comma string or a JSON list."""
    if isinstance(raw, str):
        tokens: Iterable[object] = raw.split(",")
    elif isinstance(raw, Iterable):
        tokens = raw
    else:
        return set()
    return {str(tok).strip().lower() for tok in tokens if str(tok).strip()}


def _load_debug_config(env: Mapping[str, str]) -> tuple[bool, dict[str, object]]:
    raw = env.get("LODSTREAM_DEBUG")
    if raw is None:
        return False, {}
    raw_str = raw.strip()
    if raw_str.lower() in _FALSY:
        return False, {}
    if raw_str.lower() in _TRUTHY:
        # Bare "on" enables every toggle.
        return True, {"flags": list(_LOG_FLAG_MAP.keys())}
    try:
        parsed = json.loads(raw_str)
        if isinstance(parsed, dict):
            enabled = _as_bool(parsed.get("enabled", True), True)
            return enabled, parsed
        if isinstance(parsed, (list, tuple)):
            return True, {"flags": parsed}
    except ValueError:
        logger.debug("Failed to parse LODSTREAM_DEBUG JSON; treating as flag list", exc_info=True)
    return True, {"flags": raw_str}


def load_debug_policy(env: Optional[Mapping[str, str]] = None) -> DebugPolicy:
    env = os.environ if env is None else env
    enabled, cfg = _load_debug_config(env)

    flags = _flag_set(cfg.get("flags")) if enabled else set()
    if "all" in flags:
        flags.update(_LOG_FLAG_MAP.keys())

    log_kwargs = {name: False for name in LoggingToggles.__annotations__.keys()}
    for flag, attrs in _LOG_FLAG_MAP.items():
        if flag in flags:
            for attr in attrs:
                log_kwargs[attr] = True

    unknown = flags - set(_LOG_FLAG_MAP) - {"all"}
    if unknown:
        logger.warning("Ignoring unknown LODSTREAM_DEBUG flags: %s", ", ".join(sorted(unknown)))

    return DebugPolicy(enabled=enabled, logging=LoggingToggles(**log_kwargs))


__all__ = [
    "DebugPolicy",
    "LoggingToggles",
    "load_debug_policy",
]
