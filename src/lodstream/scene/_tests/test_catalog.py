from __future__ import annotations

import asyncio
import json
import math

import pytest

from lodstream.camera import DesktopCamera, ImmersiveCamera
from lodstream.conftest import make_metadata, publish_object
from lodstream.errors import CatalogFormatError, CatalogNotLoadedError, LevelFetchError
from lodstream.runtime.stats import TICKS_DROPPED_TOTAL, TICKS_TOTAL, SessionStats
from lodstream.scene import ObjectCatalog, parse_descriptor


def _publish_scene(fetcher, names_positions):
    entries = []
    for name, position in names_positions:
        publish_object(fetcher, make_metadata(name, [10, 20, 30]))
        entries.append({"name": name, "position": list(position), "rotation": [0, 90, 0], "scale": 2})
    fetcher.put("positions.json", json.dumps(entries))


def test_descriptor_converts_degrees_and_validates() -> None:
    placements = parse_descriptor(
        json.dumps([{"name": "a", "position": [1, 2, 3], "rotation": [0, 180, 90], "scale": 1.5}])
    )
    assert placements[0].rotation == pytest.approx((0.0, math.pi, math.pi / 2))
    assert placements[0].scale == 1.5

    with pytest.raises(CatalogFormatError):
        parse_descriptor(json.dumps({"name": "a"}))
    with pytest.raises(CatalogFormatError):
        parse_descriptor(json.dumps([{"name": "a", "position": [1, 2]}]))
    with pytest.raises(CatalogFormatError):
        parse_descriptor(json.dumps([{"name": "a", "position": [0, 0, 0]}, {"name": "a", "position": [1, 1, 1]}]))


def test_load_bootstraps_level_zero(fetcher, decoder, estimator) -> None:
    _publish_scene(fetcher, [("a", (0, 0, 5)), ("b", (0, 0, -5))])

    catalog = asyncio.run(ObjectCatalog.load(fetcher, decoder, estimator))

    objects = catalog.all_objects()
    assert [o.name for o in objects] == ["a", "b"]
    assert all(o.current_level == 0 for o in objects)
    assert objects[0].scale == 2.0
    assert objects[0].rotation[1] == pytest.approx(math.pi / 2)
    assert estimator.samples() == 2
    assert not catalog.check_all_loaded()


def test_load_propagates_bootstrap_failures(fetcher, decoder, estimator) -> None:
    publish_object(fetcher, make_metadata("a", [10, 20]), missing=[0])
    fetcher.put("positions.json", json.dumps([{"name": "a", "position": [0, 0, 1]}]))

    with pytest.raises(LevelFetchError):
        asyncio.run(ObjectCatalog.load(fetcher, decoder, estimator))


def test_unloaded_catalog_raises() -> None:
    with pytest.raises(CatalogNotLoadedError):
        ObjectCatalog().all_objects()


def test_partitions_are_complementary(build_catalog) -> None:
    catalog = build_catalog(
        {
            "front": ([10, 20], (0.0, 0.0, 5.0)),
            "behind": ([10, 20], (0.0, 0.0, -5.0)),
            "left": ([10, 20], (-50.0, 0.0, 1.0)),
            "edge": ([10, 20], (3.0, 0.0, 5.0)),
        }
    )
    camera = DesktopCamera(position=(0.0, 0.0, 0.0))

    visible = catalog.visible_objects(camera)
    invisible = catalog.invisible_objects(camera)

    assert [o.name for o in visible] == ["front", "edge"]
    assert [o.name for o in invisible] == ["behind", "left"]
    assert {id(o) for o in visible} | {id(o) for o in invisible} == {id(o) for o in catalog.all_objects()}
    assert not {id(o) for o in visible} & {id(o) for o in invisible}


def test_immersive_partition_does_not_touch_camera(build_catalog) -> None:
    catalog = build_catalog({"front": ([10], (0.0, 0.0, 5.0)), "back": ([10], (0.0, 0.0, -5.0))})
    camera = ImmersiveCamera(position=(0.0, 0.0, 0.0))
    quat_before = camera.rotation_quaternion.copy()

    visible, invisible = catalog.partition(camera)

    # Identity headset pose faces -z in scene terms.
    assert [o.name for o in visible] == ["back"]
    assert [o.name for o in invisible] == ["front"]
    assert camera.rotation_quaternion.tolist() == quat_before.tolist()


class _BlockingScheduler:
    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.calls = 0

    async def execute_strategy(self, catalog):
        self.calls += 1
        await self.release.wait()
        return []


def test_run_tick_drops_reentrant_passes(build_catalog) -> None:
    stats = SessionStats()
    catalog = build_catalog({"a": ([10, 20], (0.0, 0.0, 5.0))}, stats=stats)

    async def _run():
        scheduler = _BlockingScheduler()
        first = asyncio.create_task(catalog.run_tick(scheduler))
        await asyncio.sleep(0)
        assert catalog.import_started
        dropped = await catalog.run_tick(scheduler)
        scheduler.release.set()
        await first
        return scheduler, dropped

    scheduler, dropped = asyncio.run(_run())

    assert dropped == []
    assert scheduler.calls == 1
    assert catalog.import_started is False
    assert stats.counter(TICKS_DROPPED_TOTAL) == 1
    assert stats.counter(TICKS_TOTAL) == 1


class _FailingScheduler:
    async def execute_strategy(self, catalog):
        raise RuntimeError("boom")


def test_run_tick_releases_guard_on_error(build_catalog) -> None:
    catalog = build_catalog({"a": ([10, 20], (0.0, 0.0, 5.0))})

    with pytest.raises(RuntimeError):
        asyncio.run(catalog.run_tick(_FailingScheduler()))
    assert catalog.import_started is False


def test_run_tick_is_noop_when_everything_is_loaded(build_catalog) -> None:
    catalog = build_catalog({"a": ([10], (0.0, 0.0, 5.0))})
    scheduler = _BlockingScheduler()

    assert catalog.check_all_loaded()
    assert asyncio.run(catalog.run_tick(scheduler)) == []
    assert scheduler.calls == 0


def test_on_imported_hook_receives_meshes(build_catalog) -> None:
    catalog = build_catalog({"a": ([10, 20], (0.0, 0.0, 5.0))})
    seen = []
    catalog.on_imported = seen.append
    obj = catalog.all_objects()[0]

    class _OneShot:
        async def execute_strategy(self, cat):
            return [await obj.fetch_level(1)]

    meshes = asyncio.run(catalog.run_tick(_OneShot()))

    assert seen == [meshes]
    assert meshes[0].level == 1
