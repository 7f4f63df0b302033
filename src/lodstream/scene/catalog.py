"""The set of streamable objects in a scene.

The catalog reads the scene descriptor, bootstraps every object with its
coarsest level, answers frustum partition queries and serializes scheduling
passes: at most one pass is in flight and ticks arriving meanwhile are
dropped.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from lodstream.camera.kinds import Camera
from lodstream.config.logging_policy import DebugPolicy
from lodstream.errors import CatalogFormatError, CatalogNotLoadedError
from lodstream.runtime.stats import PASS_MS, TICKS_DROPPED_TOTAL, TICKS_TOTAL, SessionStats
from lodstream.scene.assets import AssetFetcher, MeshDecoder
from lodstream.scene.renderable import Renderable
from lodstream.scene.streamable import ObjectMetadata, StreamableObject
from lodstream.throughput import ThroughputEstimator


logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    async def execute_strategy(self, catalog: "ObjectCatalog") -> List[Renderable]: ...


@dataclass(frozen=True)
class Placement:
    """One ``positions.json`` entry; rotation is stored in radians."""

    name: str
    position: Tuple[float, float, float]
    rotation: Tuple[float, float, float]
    scale: float

    @classmethod
    def from_entry(cls, entry: Mapping[str, Any]) -> "Placement":
        try:
            name = str(entry["name"])
            position = tuple(float(v) for v in entry["position"])
            rotation = tuple(math.radians(float(v)) for v in entry.get("rotation", (0.0, 0.0, 0.0)))
            raw_scale = entry.get("scale", 1.0)
            scale = float(raw_scale[0]) if isinstance(raw_scale, (list, tuple)) else float(raw_scale)
        except (KeyError, TypeError, ValueError) as exc:
            raise CatalogFormatError(f"invalid placement entry {entry!r}") from exc
        if len(position) != 3 or len(rotation) != 3:
            raise CatalogFormatError(f"{name}: position and rotation need three components")
        return cls(name=name, position=position, rotation=rotation, scale=scale)  # type: ignore[arg-type]


def parse_descriptor(text: str, *, source: str = "positions.json") -> List[Placement]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CatalogFormatError(f"{source}: invalid JSON ({exc})") from exc
    if not isinstance(payload, list):
        raise CatalogFormatError(f"{source}: expected a list of placements")
    placements = [Placement.from_entry(entry) for entry in payload]
    names = [p.name for p in placements]
    if len(set(names)) != len(names):
        raise CatalogFormatError(f"{source}: duplicate object names")
    return placements


class ObjectCatalog:
    """Owns the scene's streamable objects and the in-flight pass guard."""

    def __init__(
        self,
        objects: Optional[Iterable[StreamableObject]] = None,
        *,
        stats: Optional[SessionStats] = None,
        debug_policy: Optional[DebugPolicy] = None,
        on_imported: Optional[Callable[[Sequence[Renderable]], None]] = None,
        now_fn: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._objects: Optional[List[StreamableObject]] = list(objects) if objects is not None else None
        self.stats = stats
        self.on_imported = on_imported
        self.import_started = False
        self._now = now_fn
        self._log_catalog = bool(debug_policy and debug_policy.logging.log_catalog)

    @classmethod
    async def load(
        cls,
        fetcher: AssetFetcher,
        decoder: MeshDecoder,
        estimator: ThroughputEstimator,
        *,
        descriptor: str = "positions.json",
        stats: Optional[SessionStats] = None,
        debug_policy: Optional[DebugPolicy] = None,
        on_imported: Optional[Callable[[Sequence[Renderable]], None]] = None,
        now_fn: Callable[[], float] = time.perf_counter,
    ) -> "ObjectCatalog":
        """Read the descriptor, initialize every object and import level 0.

        Objects are bootstrapped concurrently. Any failure here is fatal: an
        object without a displayed level cannot take part in partitioning.
        """
        placements = parse_descriptor(await fetcher.fetch_text(descriptor), source=descriptor)
        objects = [
            StreamableObject(
                p.name,
                fetcher=fetcher,
                decoder=decoder,
                estimator=estimator,
                position=p.position,
                rotation=p.rotation,
                scale=p.scale,
                now_fn=now_fn,
                debug_policy=debug_policy,
            )
            for p in placements
        ]

        async def _bootstrap(obj: StreamableObject) -> None:
            await obj.initialize()
            await obj.fetch_level(0)

        await asyncio.gather(*(_bootstrap(obj) for obj in objects))
        logger.info("catalog loaded: %d objects from %s", len(objects), descriptor)
        return cls(objects, stats=stats, debug_policy=debug_policy, on_imported=on_imported, now_fn=now_fn)

    @classmethod
    def from_metadata(
        cls,
        entries: Iterable[Tuple[Placement, ObjectMetadata]],
        *,
        fetcher: AssetFetcher,
        decoder: MeshDecoder,
        estimator: ThroughputEstimator,
        **kwargs: Any,
    ) -> "ObjectCatalog":
        """Build a catalog from already-parsed records, without any I/O."""
        now_fn = kwargs.get("now_fn", time.perf_counter)
        objects = [
            StreamableObject(
                placement.name,
                fetcher=fetcher,
                decoder=decoder,
                estimator=estimator,
                position=placement.position,
                rotation=placement.rotation,
                scale=placement.scale,
                metadata=meta,
                now_fn=now_fn,
                debug_policy=kwargs.get("debug_policy"),
            )
            for placement, meta in entries
        ]
        return cls(objects, **kwargs)

    # ---- queries -------------------------------------------------------------

    def all_objects(self) -> List[StreamableObject]:
        if self._objects is None:
            raise CatalogNotLoadedError("catalog has not been loaded")
        return list(self._objects)

    def __len__(self) -> int:
        return len(self.all_objects())

    def partition(self, camera: Camera) -> Tuple[List[StreamableObject], List[StreamableObject]]:
        """Split objects into (visible, invisible) by their displayed mesh."""
        planes = camera.frustum_planes()
        visible: List[StreamableObject] = []
        invisible: List[StreamableObject] = []
        for obj in self.all_objects():
            (visible if obj.current_mesh().in_frustum(planes) else invisible).append(obj)
        if self._log_catalog:
            logger.info(
                "partition: visible=%s invisible=%d",
                [o.name for o in visible],
                len(invisible),
            )
        return visible, invisible

    def visible_objects(self, camera: Camera) -> List[StreamableObject]:
        return self.partition(camera)[0]

    def invisible_objects(self, camera: Camera) -> List[StreamableObject]:
        return self.partition(camera)[1]

    def check_all_loaded(self) -> bool:
        return all(obj.all_loaded() for obj in self.all_objects())

    # ---- scheduling ----------------------------------------------------------

    async def run_tick(self, scheduler: Scheduler) -> List[Renderable]:
        """Run one scheduling pass unless one is already in flight."""
        if self.import_started:
            if self.stats is not None:
                self.stats.inc(TICKS_DROPPED_TOTAL)
            return []
        if self.check_all_loaded():
            return []
        self.import_started = True
        started = self._now()
        try:
            meshes = await scheduler.execute_strategy(self)
            if meshes and self.on_imported is not None:
                self.on_imported(meshes)
            return meshes
        finally:
            self.import_started = False
            if self.stats is not None:
                self.stats.inc(TICKS_TOTAL)
                self.stats.observe_ms(PASS_MS, (self._now() - started) * 1000.0)


__all__ = ["ObjectCatalog", "Placement", "Scheduler", "parse_descriptor"]
