"""Tests for the local <-> remote id table."""

from fiszki.services import IdMapping


async def test_record_and_lookup_both_ways(tmp_path):
    mapping = IdMapping(str(tmp_path / "ids.json"))

    await mapping.record("category", 1, "uuid-a")

    assert mapping.to_remote("category", 1) == "uuid-a"
    assert mapping.to_local("category", "uuid-a") == 1
    assert mapping.to_remote("word", 1) is None


async def test_survives_reload(tmp_path):
    path = str(tmp_path / "ids.json")
    mapping = IdMapping(path)
    await mapping.record("category", 1, "uuid-a")
    await mapping.record("word", 7, "uuid-w")

    reloaded = IdMapping(path)
    assert await reloaded.load() == 2
    assert reloaded.to_remote("category", "1") == "uuid-a"
    assert reloaded.to_local("word", "uuid-w") == 7


async def test_rerecord_replaces_stale_links(tmp_path):
    mapping = IdMapping(str(tmp_path / "ids.json"))
    await mapping.record("category", 1, "uuid-a")
    await mapping.record("category", 1, "uuid-b")
    await mapping.record("category", 2, "uuid-b")

    assert mapping.to_remote("category", 1) is None
    assert mapping.to_local("category", "uuid-a") is None
    assert mapping.to_local("category", "uuid-b") == 2
    assert len(mapping) == 1


async def test_forget_and_clear(tmp_path):
    path = str(tmp_path / "ids.json")
    mapping = IdMapping(path)
    await mapping.record("category", 1, "uuid-a")
    await mapping.record("category", 2, "uuid-b")

    await mapping.forget("category", 1)
    assert mapping.to_local("category", "uuid-a") is None
    assert len(mapping) == 1

    await mapping.clear()
    reloaded = IdMapping(path)
    assert await reloaded.load() == 0


async def test_deferred_persistence(tmp_path):
    path = str(tmp_path / "ids.json")
    mapping = IdMapping(path)
    await mapping.record("word", 1, "uuid-1", persist=False)

    assert await IdMapping(path).load() == 0
    await mapping.save()
    assert await IdMapping(path).load() == 1
