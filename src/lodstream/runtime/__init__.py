"""Session driver and statistics.

``lodstream.runtime.session`` is imported explicitly; this package only
re-exports the stats aggregator so scene modules can depend on it.
"""

from .stats import SessionStats

__all__ = ["SessionStats"]
