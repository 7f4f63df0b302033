"""Per-object level-of-detail state machine.

Each object owns an ordered list of levels. A level moves from *absent* to
*requested* exactly once and, if the transfer succeeds, to *loaded*. The
displayed level (``current_level``) only ever moves up; lower levels that
finish late stay resident but disabled.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from lodstream.config.logging_policy import DebugPolicy
from lodstream.errors import (
    AssetDecodeError,
    AssetFetchError,
    CatalogFormatError,
    DuplicateRequestError,
    LevelDecodeError,
    LevelFetchError,
    LevelIndexError,
    NoLevelLoadedError,
    ObjectNotInitializedError,
)
from lodstream.scene.assets import AssetFetcher, MeshDecoder, file_type_for
from lodstream.scene.renderable import Renderable
from lodstream.throughput import ThroughputEstimator


logger = logging.getLogger(__name__)

# Smallest elapsed time used for rate samples, in seconds.
MIN_ELAPSED_S = 1e-6


@dataclass(frozen=True)
class LevelDescriptor:
    level: int
    filename: str
    size_bytes: float
    distortion: float

    @property
    def quality(self) -> float:
        return 1.0 - self.distortion


@dataclass(frozen=True)
class ObjectMetadata:
    """Static per-object record read from ``<name>/metadata.json``."""

    name: str
    area: float
    levels: Tuple[LevelDescriptor, ...]
    textures: Tuple[Mapping[str, Any], ...] = ()

    @property
    def nb_levels(self) -> int:
        return len(self.levels)

    @classmethod
    def from_json(cls, payload: Union[str, Mapping[str, Any]], *, source: str = "metadata.json") -> "ObjectMetadata":
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as exc:
                raise CatalogFormatError(f"{source}: invalid JSON ({exc})") from exc
        if not isinstance(payload, Mapping):
            raise CatalogFormatError(f"{source}: expected an object")
        try:
            name = str(payload["name"])
            nb_levels = int(payload["nb_levels"])
            area = float(payload.get("area", 0.0))
            levels = sorted(
                (
                    LevelDescriptor(
                        level=int(entry["level"]),
                        filename=str(entry["filename"]),
                        size_bytes=float(entry["size"]),
                        distortion=float(entry["hdrvdp2"]),
                    )
                    for entry in payload["Levels"]
                ),
                key=lambda d: d.level,
            )
            textures = tuple(dict(t) for t in payload.get("Textures", ()))
        except (KeyError, TypeError, ValueError) as exc:
            raise CatalogFormatError(f"{source}: malformed metadata ({exc!r})") from exc
        if nb_levels != len(levels):
            raise CatalogFormatError(
                f"{source}: nb_levels={nb_levels} but {len(levels)} level entries"
            )
        if nb_levels == 0:
            raise CatalogFormatError(f"{source}: object has no levels")
        return cls(name=name, area=area, levels=tuple(levels), textures=textures)


class StreamableObject:
    """One importable mesh with several levels of detail."""

    def __init__(
        self,
        name: str,
        *,
        fetcher: AssetFetcher,
        decoder: MeshDecoder,
        estimator: ThroughputEstimator,
        position: Sequence[float] = (0.0, 0.0, 0.0),
        rotation: Sequence[float] = (0.0, 0.0, 0.0),
        scale: float = 1.0,
        metadata: Optional[ObjectMetadata] = None,
        folder: Optional[str] = None,
        now_fn: Callable[[], float] = time.perf_counter,
        debug_policy: Optional[DebugPolicy] = None,
    ) -> None:
        self.name = name
        self.folder = folder if folder is not None else name
        self._fetcher = fetcher
        self._decoder = decoder
        self._estimator = estimator
        self._position = np.asarray(position, dtype=float).reshape(3)
        self._rotation = np.asarray(rotation, dtype=float).reshape(3)
        self._scale = float(scale)
        self._now = now_fn
        self._log_fetches = bool(debug_policy and debug_policy.logging.log_fetches)
        self._metadata: Optional[ObjectMetadata] = None
        self._levels: Optional[List[Optional[Renderable]]] = None
        self._requested: Optional[List[bool]] = None
        self.current_level = -1
        if metadata is not None:
            self._apply_metadata(metadata)

    def __repr__(self) -> str:
        return f"StreamableObject({self.name!r}, current_level={self.current_level})"

    # ---- initialization ------------------------------------------------------

    def _apply_metadata(self, metadata: ObjectMetadata) -> None:
        self._metadata = metadata
        self._levels = [None] * metadata.nb_levels
        self._requested = [False] * metadata.nb_levels

    @property
    def initialized(self) -> bool:
        return self._metadata is not None

    async def initialize(self) -> None:
        """Load ``metadata.json`` unless metadata was supplied up front."""
        if self._metadata is not None:
            return
        uri = f"{self.folder}/metadata.json"
        text = await self._fetcher.fetch_text(uri)
        self._apply_metadata(ObjectMetadata.from_json(text, source=uri))

    def _require_init(self) -> ObjectMetadata:
        if self._metadata is None or self._levels is None or self._requested is None:
            raise ObjectNotInitializedError(f"{self.name}: object not initialized")
        return self._metadata

    def _check_level(self, level: int) -> ObjectMetadata:
        meta = self._require_init()
        if not 0 <= level < meta.nb_levels:
            raise LevelIndexError(f"{self.name}: level {level} outside [0, {meta.nb_levels})")
        return meta

    # ---- metadata accessors ---------------------------------------------------

    @property
    def metadata(self) -> ObjectMetadata:
        return self._require_init()

    @property
    def num_levels(self) -> int:
        return self._require_init().nb_levels

    @property
    def area(self) -> float:
        return self._require_init().area

    @property
    def position(self) -> np.ndarray:
        return self._position.copy()

    @property
    def rotation(self) -> np.ndarray:
        return self._rotation.copy()

    @property
    def scale(self) -> float:
        return self._scale

    def level_size(self, level: int) -> float:
        return self._check_level(level).levels[level].size_bytes

    def level_quality(self, level: int) -> float:
        return self._check_level(level).levels[level].quality

    # ---- runtime state -------------------------------------------------------

    def is_loaded(self, level: int) -> bool:
        self._check_level(level)
        return self._levels[level] is not None  # type: ignore[index]

    def is_requested(self, level: int) -> bool:
        self._check_level(level)
        return self._requested[level]  # type: ignore[index]

    def mesh(self, level: int) -> Optional[Renderable]:
        self._check_level(level)
        return self._levels[level]  # type: ignore[index]

    def current_mesh(self) -> Renderable:
        self._require_init()
        if self.current_level < 0:
            raise NoLevelLoadedError(f"{self.name}: no level imported yet")
        return self._levels[self.current_level]  # type: ignore[index,return-value]

    def all_loaded(self) -> bool:
        meta = self._require_init()
        return self._levels[meta.nb_levels - 1] is not None  # type: ignore[index]

    def open_levels(self) -> List[int]:
        """Levels at or above the displayed one that were never requested."""
        meta = self._require_init()
        start = max(self.current_level, 0)
        return [i for i in range(start, meta.nb_levels) if not self._requested[i]]  # type: ignore[index]

    # ---- import --------------------------------------------------------------

    async def fetch_level(self, level: int) -> Renderable:
        """Fetch, decode and place ``level``; returns the new renderable.

        The level is marked requested before any I/O and stays requested
        when the transfer fails, so a failed level is never retried.
        """
        meta = self._check_level(level)
        if self._levels[level] is not None or self._requested[level]:  # type: ignore[index]
            raise DuplicateRequestError(f"{self.name}: level {level} already requested or imported")
        self._requested[level] = True  # type: ignore[index]

        desc = meta.levels[level]
        uri = f"{self.folder}/{desc.filename}"
        started = self._now()
        try:
            data = await self._fetcher.fetch_bytes(uri)
        except AssetFetchError as exc:
            raise LevelFetchError(self.name, level, str(exc)) from exc
        fetched = self._now()
        try:
            geometry = await self._decoder.decode(data, file_type=file_type_for(desc.filename))
        except AssetDecodeError as exc:
            raise LevelDecodeError(self.name, level, str(exc)) from exc

        renderable = Renderable(
            name=f"{meta.name}{level}",
            level=level,
            geometry=geometry,
            position=self._position.copy(),
            rotation=self._rotation.copy(),
            scale=self._scale,
        )
        self._levels[level] = renderable  # type: ignore[index]
        if level > self.current_level:
            if self.current_level >= 0:
                self._levels[self.current_level].set_enabled(False)  # type: ignore[index,union-attr]
            self.current_level = level
        else:
            renderable.set_enabled(False)
        done = self._now()

        fetch_s = max(fetched - started, MIN_ELAPSED_S)
        decode_s = max(done - fetched, MIN_ELAPSED_S)
        self._estimator.record_bandwidth(desc.size_bytes / fetch_s)
        self._estimator.record_decode_rate(desc.size_bytes / decode_s)
        if self._log_fetches:
            logger.info(
                "fetch %s[%d]: size=%.0f fetch=%.3fs decode=%.3fs displayed=%d",
                self.name,
                level,
                desc.size_bytes,
                fetch_s,
                decode_s,
                self.current_level,
            )
        return renderable


__all__ = ["LevelDescriptor", "MIN_ELAPSED_S", "ObjectMetadata", "StreamableObject"]
