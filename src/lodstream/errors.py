"""Exception taxonomy for the streaming controller.

Initialization and bounds errors are fatal and propagate to the caller.
Duplicate-request and transient I/O errors are recoverable: the scheduler logs
them and moves on to the next candidate.
"""

from __future__ import annotations


class LodStreamError(Exception):
    """Base class for every error raised by lodstream."""


# ---- Fatal -------------------------------------------------------------------


class ObjectNotInitializedError(LodStreamError, RuntimeError):
    """Raised when an object is used before its metadata was loaded."""


class CatalogNotLoadedError(LodStreamError, RuntimeError):
    """Raised when the catalog is queried before ``load`` completed."""


class CatalogFormatError(LodStreamError, ValueError):
    """Raised when a catalog descriptor or metadata record is malformed."""


class LevelIndexError(LodStreamError, IndexError):
    """Raised for a level index outside ``[0, nb_levels)``."""


class NoLevelLoadedError(LodStreamError, RuntimeError):
    """Raised when a query needs a displayed mesh and none was imported yet."""


# ---- Asset boundary ----------------------------------------------------------


class AssetFetchError(LodStreamError, OSError):
    """Raised by fetchers when a descriptor or level file cannot be read."""


class AssetDecodeError(LodStreamError, ValueError):
    """Raised by decoders when level bytes are not a readable mesh."""


# ---- Recoverable -------------------------------------------------------------


class DuplicateRequestError(LodStreamError, RuntimeError):
    """Raised when a level that was already requested is fetched again."""


class LevelTransferError(LodStreamError, RuntimeError):
    """Base for transient failures while bringing a level in."""

    def __init__(self, object_name: str, level: int, message: str) -> None:
        super().__init__(f"{object_name}[{level}]: {message}")
        self.object_name = object_name
        self.level = level


class LevelFetchError(LevelTransferError):
    """Network or filesystem failure while fetching a level's bytes."""


class LevelDecodeError(LevelTransferError):
    """Failure while decoding fetched bytes into geometry."""


RECOVERABLE_ERRORS = (DuplicateRequestError, LevelTransferError)


__all__ = [
    "AssetDecodeError",
    "AssetFetchError",
    "CatalogFormatError",
    "CatalogNotLoadedError",
    "DuplicateRequestError",
    "LevelDecodeError",
    "LevelFetchError",
    "LevelIndexError",
    "LevelTransferError",
    "LodStreamError",
    "NoLevelLoadedError",
    "ObjectNotInitializedError",
    "RECOVERABLE_ERRORS",
]
