"""Shared fixtures: in-memory assets, a box decoder and catalog builders."""

from __future__ import annotations

import asyncio
import json
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
import pytest

from lodstream.camera import CameraRig, DesktopCamera, ViewpointPredictor
from lodstream.config import StreamingConfig
from lodstream.errors import AssetDecodeError
from lodstream.runtime.stats import SessionStats
from lodstream.scene import MemoryAssetFetcher, MeshGeometry, ObjectCatalog, StreamableObject
from lodstream.scene.streamable import LevelDescriptor, ObjectMetadata
from lodstream.scheduling import SchedulingContext
from lodstream.throughput import ThroughputEstimator
from lodstream.utility import MetricSelector


def box_payload(half: float = 0.5) -> bytes:
    return f"box:{half}".encode("utf-8")


class BoxDecoder:
    """Decodes ``box:<half extent>`` payloads into an axis-aligned cube."""

    def __init__(self) -> None:
        self.calls = 0

    async def decode(self, data: bytes, *, file_type: str) -> MeshGeometry:
        self.calls += 1
        text = data.decode("utf-8", errors="replace")
        if not text.startswith("box:"):
            raise AssetDecodeError(f"not a box payload: {text[:16]!r}")
        half = float(text[4:])
        corners = np.array(
            [[x, y, z] for x in (-half, half) for y in (-half, half) for z in (-half, half)],
            dtype=float,
        )
        return MeshGeometry(vertices=corners, faces=np.zeros((0, 3), dtype=np.int64), nbytes=len(data))


class TickClock:
    """Deterministic clock: every read advances by ``step`` seconds."""

    def __init__(self, step: float = 0.5) -> None:
        self.step = step
        self.now = 0.0

    def __call__(self) -> float:
        self.now += self.step
        return self.now


def make_metadata(name: str, sizes: Sequence[float], qualities: Optional[Sequence[float]] = None) -> ObjectMetadata:
    if qualities is None:
        qualities = [0.5 + 0.4 * i / max(len(sizes) - 1, 1) for i in range(len(sizes))]
    levels = tuple(
        LevelDescriptor(level=i, filename=f"{name}_{i}.ply", size_bytes=float(size), distortion=1.0 - float(q))
        for i, (size, q) in enumerate(zip(sizes, qualities))
    )
    return ObjectMetadata(name=name, area=6.0, levels=levels)


def metadata_json(meta: ObjectMetadata) -> str:
    return json.dumps(
        {
            "name": meta.name,
            "nb_levels": meta.nb_levels,
            "area": meta.area,
            "Levels": [
                {"level": d.level, "filename": d.filename, "size": d.size_bytes, "hdrvdp2": d.distortion}
                for d in meta.levels
            ],
            "Textures": [{"level": 0, "filename": "albedo.png", "size": 10, "hdrvdp2": 0.0}],
        }
    )


def publish_object(
    fetcher: MemoryAssetFetcher,
    meta: ObjectMetadata,
    *,
    missing: Sequence[int] = (),
    corrupt: Sequence[int] = (),
    half: float = 0.5,
) -> None:
    fetcher.put(f"{meta.name}/metadata.json", metadata_json(meta))
    for desc in meta.levels:
        if desc.level in missing:
            continue
        payload = b"corrupt" if desc.level in corrupt else box_payload(half)
        fetcher.put(f"{meta.name}/{desc.filename}", payload)


@pytest.fixture
def fetcher() -> MemoryAssetFetcher:
    return MemoryAssetFetcher()


@pytest.fixture
def decoder() -> BoxDecoder:
    return BoxDecoder()


@pytest.fixture
def estimator() -> ThroughputEstimator:
    return ThroughputEstimator()


@pytest.fixture
def clock() -> TickClock:
    return TickClock()


@pytest.fixture
def make_object(fetcher, decoder, estimator, clock) -> Callable[..., StreamableObject]:
    def _make(
        name: str,
        sizes: Sequence[float],
        position: Sequence[float] = (0.0, 0.0, 5.0),
        *,
        qualities: Optional[Sequence[float]] = None,
        missing: Sequence[int] = (),
        corrupt: Sequence[int] = (),
        half: float = 0.5,
        with_metadata: bool = True,
    ) -> StreamableObject:
        meta = make_metadata(name, sizes, qualities)
        publish_object(fetcher, meta, missing=missing, corrupt=corrupt, half=half)
        return StreamableObject(
            name,
            fetcher=fetcher,
            decoder=decoder,
            estimator=estimator,
            position=position,
            metadata=meta if with_metadata else None,
            now_fn=clock,
        )

    return _make


@pytest.fixture
def build_catalog(make_object, estimator) -> Callable[..., ObjectCatalog]:
    """Objects from ``{name: (sizes, position[, qualities])}`` with level 0 displayed.

    The estimator is emptied after bootstrapping so passes start from the
    default rates.
    """

    def _build(entries: Dict[str, tuple], *, stats: Optional[SessionStats] = None, **object_kwargs) -> ObjectCatalog:
        objects: List[StreamableObject] = []
        for name, entry in entries.items():
            sizes, position = entry[0], entry[1]
            qualities = entry[2] if len(entry) > 2 else None
            objects.append(make_object(name, sizes, position, qualities=qualities, **object_kwargs.get(name, {})))

        async def _bootstrap() -> None:
            for obj in objects:
                await obj.fetch_level(0)

        asyncio.run(_bootstrap())
        estimator.bandwidth.clear()
        estimator.decode_rate.clear()
        return ObjectCatalog(objects, stats=stats)

    return _build


@pytest.fixture
def rig() -> CameraRig:
    return CameraRig(DesktopCamera(position=(0.0, 0.0, 0.0)))


@pytest.fixture
def scheduling_ctx(rig, estimator, clock) -> SchedulingContext:
    return SchedulingContext(
        predictor=ViewpointPredictor(rig),
        metrics=MetricSelector("distance"),
        estimator=estimator,
        cfg=StreamingConfig(),
        stats=SessionStats(),
        now_fn=clock,
    )
