from __future__ import annotations

import asyncio
import json

import pytest

from lodstream.errors import (
    CatalogFormatError,
    DuplicateRequestError,
    LevelDecodeError,
    LevelFetchError,
    LevelIndexError,
    NoLevelLoadedError,
    ObjectNotInitializedError,
)
from lodstream.scene.streamable import ObjectMetadata


def test_metadata_parses_levels_in_order() -> None:
    payload = {
        "name": "vase",
        "nb_levels": 2,
        "area": 3.5,
        "Levels": [
            {"level": 1, "filename": "vase_1.drc", "size": 900, "hdrvdp2": 0.1},
            {"level": 0, "filename": "vase_0.drc", "size": 100, "hdrvdp2": 0.4},
        ],
        "Textures": [{"level": 0, "filename": "vase.jpg", "size": 50, "hdrvdp2": 0.0}],
    }

    meta = ObjectMetadata.from_json(json.dumps(payload))

    assert meta.nb_levels == 2
    assert [d.filename for d in meta.levels] == ["vase_0.drc", "vase_1.drc"]
    assert meta.levels[0].quality == pytest.approx(0.6)
    assert meta.levels[1].size_bytes == 900.0
    assert meta.area == 3.5


def test_metadata_level_count_mismatch_is_rejected() -> None:
    payload = {"name": "x", "nb_levels": 3, "Levels": [{"level": 0, "filename": "a", "size": 1, "hdrvdp2": 0}]}
    with pytest.raises(CatalogFormatError):
        ObjectMetadata.from_json(payload)
    with pytest.raises(CatalogFormatError):
        ObjectMetadata.from_json("{not json")
    with pytest.raises(CatalogFormatError):
        ObjectMetadata.from_json({"name": "x", "nb_levels": 1, "Levels": [{"level": 0}]})


def test_fetch_requires_initialization(make_object) -> None:
    obj = make_object("lamp", [10, 20], with_metadata=False)

    with pytest.raises(ObjectNotInitializedError):
        asyncio.run(obj.fetch_level(0))
    with pytest.raises(ObjectNotInitializedError):
        obj.num_levels

    asyncio.run(obj.initialize())
    assert obj.num_levels == 2
    assert obj.current_level == -1
    with pytest.raises(NoLevelLoadedError):
        obj.current_mesh()


def test_fetch_rejects_out_of_range_levels(make_object, fetcher) -> None:
    obj = make_object("lamp", [10, 20])
    for bad in (-1, 2, 5):
        with pytest.raises(LevelIndexError):
            asyncio.run(obj.fetch_level(bad))
    assert fetcher.requests == []


def test_display_rule_only_moves_up(make_object) -> None:
    obj = make_object("statue", [10, 20, 30])

    async def _run():
        top = await obj.fetch_level(2)
        low = await obj.fetch_level(0)
        return top, low

    top, low = asyncio.run(_run())

    assert obj.current_level == 2
    assert obj.current_mesh() is top
    assert top.enabled is True
    # Late lower level stays resident but hidden.
    assert obj.is_loaded(0) and low.enabled is False
    assert obj.all_loaded()
    assert obj.open_levels() == []


def test_upgrade_hides_previous_level(make_object) -> None:
    obj = make_object("statue", [10, 20, 30])

    async def _run():
        first = await obj.fetch_level(0)
        second = await obj.fetch_level(1)
        return first, second

    first, second = asyncio.run(_run())

    assert first.enabled is False
    assert second.enabled is True
    assert obj.current_level == 1
    assert not obj.all_loaded()
    assert obj.open_levels() == [2]


def test_duplicate_request_does_no_io(make_object, fetcher) -> None:
    obj = make_object("bust", [10, 20])
    asyncio.run(obj.fetch_level(0))
    before = list(fetcher.requests)

    with pytest.raises(DuplicateRequestError):
        asyncio.run(obj.fetch_level(0))

    assert fetcher.requests == before
    assert obj.is_requested(0) and obj.is_loaded(0)


def test_transfer_failures_keep_level_requested(make_object) -> None:
    obj = make_object("bust", [10, 20, 30], missing=[1], corrupt=[2])
    asyncio.run(obj.fetch_level(0))

    with pytest.raises(LevelFetchError) as fetch_err:
        asyncio.run(obj.fetch_level(1))
    assert fetch_err.value.level == 1
    with pytest.raises(LevelDecodeError):
        asyncio.run(obj.fetch_level(2))

    assert obj.is_requested(1) and not obj.is_loaded(1)
    assert obj.is_requested(2) and not obj.is_loaded(2)
    assert obj.current_level == 0
    # No retry: a failed level is now a duplicate.
    with pytest.raises(DuplicateRequestError):
        asyncio.run(obj.fetch_level(1))


def test_fetch_records_rates(make_object, estimator) -> None:
    obj = make_object("frieze", [100, 400])

    asyncio.run(obj.fetch_level(1))

    # The test clock advances 0.5 s per read: fetch and decode each take 0.5 s.
    assert list(estimator.bandwidth) == [pytest.approx(800.0)]
    assert list(estimator.decode_rate) == [pytest.approx(800.0)]


def test_renderable_uses_object_transform(make_object) -> None:
    obj = make_object("plinth", [10], position=(1.0, 2.0, 3.0))
    mesh = asyncio.run(obj.fetch_level(0))

    assert mesh.name == "plinth0"
    assert mesh.center().tolist() == pytest.approx([1.0, 2.0, 3.0])
    assert mesh.bounding_corners().shape == (8, 3)
    assert obj.level_size(0) == 10.0
