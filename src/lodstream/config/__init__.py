"""Shared configuration dataclasses for lodstream."""

from .loader import load_asset_config, load_session_ctx, load_streaming_config
from .logging_policy import DebugPolicy, LoggingToggles, load_debug_policy
from .models import AssetConfig, SessionCtx, StreamingConfig

__all__ = [
    "AssetConfig",
    "DebugPolicy",
    "LoggingToggles",
    "SessionCtx",
    "StreamingConfig",
    "load_asset_config",
    "load_debug_policy",
    "load_session_ctx",
    "load_streaming_config",
]
