"""
test_store_service.py

StoreManager against a real JSON file: upsert/update/delete, atomic writes,
import application and the read-side views.
"""

import asyncio
import uuid
from datetime import date

import pytest

from labjournal.commons.errors import DecodeError, RecordNotFound, StorageUnavailable, WriteFailed
from labjournal.helpers import file_store
from labjournal.helpers.file_store import JsonFileStore
from labjournal.parsers.models import BloodTestRecord
from labjournal.services.store_service import StoreManager

TODAY = date(2024, 3, 1)


def make_store(tmp_path):
    return StoreManager(JsonFileStore(str(tmp_path / "data" / "blood_tests.json")))


def make_record(day, event="FOLFIRI C1 D1", **values):
    return BloodTestRecord(date=day, event=event, values=values or {"wbc": 5.0})


@pytest.mark.asyncio
async def test_missing_file_loads_empty(tmp_path):
    store = make_store(tmp_path)
    assert await store.load_all() == []
    assert store.latest_record is None


@pytest.mark.asyncio
async def test_save_then_load_round_trip(tmp_path):
    store = make_store(tmp_path)
    rec = make_record(date(2024, 1, 5), wbc=5.6, hgb=121)
    await store.save(rec)

    fresh = make_store(tmp_path)
    [loaded] = await fresh.load_all()
    assert loaded == rec
    assert loaded.values == {"wbc": 5.6, "hgb": 121.0}
    assert loaded.event == rec.event


@pytest.mark.asyncio
async def test_save_is_upsert_and_sorts_newest_first(tmp_path):
    store = make_store(tmp_path)
    old = make_record(date(2024, 1, 1))
    new = make_record(date(2024, 2, 1))
    await store.save(old)
    await store.save(new)
    assert store.records == [new, old]

    old.set_value("wbc", 9.9)
    await store.save(old)
    loaded = await store.load_all()
    assert len(loaded) == 2
    assert loaded[1].value("wbc") == 9.9


@pytest.mark.asyncio
async def test_update_requires_existing_record(tmp_path):
    store = make_store(tmp_path)
    rec = make_record(date(2024, 1, 5))
    with pytest.raises(RecordNotFound):
        await store.update(rec)

    await store.save(rec)
    rec.update_event("XELOX C2 D1")
    await store.update(rec)
    [loaded] = await make_store(tmp_path).load_all()
    assert loaded.tags.scheme == "XELOX"


@pytest.mark.asyncio
async def test_delete_and_delete_unknown(tmp_path):
    store = make_store(tmp_path)
    a, b = make_record(date(2024, 1, 5)), make_record(date(2024, 1, 6))
    await store.save(a)
    await store.save(b)
    await store.delete(a.id)
    assert store.records == [b]
    await store.delete(uuid.uuid4())
    assert await store.load_all() == [b]


@pytest.mark.asyncio
async def test_failed_rename_leaves_canonical_file_untouched(tmp_path, monkeypatch):
    store = make_store(tmp_path)
    rec = make_record(date(2024, 1, 5))
    await store.save(rec)
    path = store.medium.path
    before = path.read_bytes()

    def boom(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(file_store.os, "replace", boom)
    with pytest.raises(WriteFailed):
        await store.save(make_record(date(2024, 1, 6)))

    assert store.medium.tmp_path == path.with_name("blood_tests_temp.json")
    assert path.read_bytes() == before
    assert not store.medium.tmp_path.exists()
    assert store.records == [rec]


@pytest.mark.asyncio
async def test_unreadable_and_corrupt_storage(tmp_path):
    target = tmp_path / "blood_tests.json"
    target.mkdir()
    with pytest.raises(StorageUnavailable):
        await StoreManager(JsonFileStore(str(target))).load_all()

    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text('[{"id": 1}]', encoding="utf-8")
    store = StoreManager(JsonFileStore(str(corrupt)))
    with pytest.raises(DecodeError):
        await store.load_all()
    with pytest.raises(DecodeError):
        await store.save(make_record(date(2024, 1, 5)))
    assert corrupt.read_text(encoding="utf-8") == '[{"id": 1}]'


@pytest.mark.asyncio
async def test_apply_import_replacing_duplicates(tmp_path):
    store = make_store(tmp_path)
    kept = make_record(date(2024, 1, 4))
    dup_a = make_record(date(2024, 1, 5), event="old A")
    dup_b = make_record(date(2024, 1, 5), event="old B")
    for r in (kept, dup_a, dup_b):
        await store.save(r)
    pre_count = len(store.records)

    new = make_record(date(2024, 1, 10), event="new")
    dup = make_record(date(2024, 1, 5), event="replacement")
    removed = await store.apply_import([new, dup], replace_duplicates=True, duplicates_to_replace=[dup])

    assert removed == 2
    loaded = await store.load_all()
    assert len(loaded) == pre_count - removed + 2
    assert {r.event for r in loaded} == {"FOLFIRI C1 D1", "new", "replacement"}


@pytest.mark.asyncio
async def test_apply_import_without_replacement_appends(tmp_path):
    store = make_store(tmp_path)
    await store.save(make_record(date(2024, 1, 5)))
    removed = await store.apply_import([make_record(date(2024, 1, 5))])
    assert removed == 0
    assert len(await store.load_all()) == 2


@pytest.mark.asyncio
async def test_concurrent_saves_are_serialised(tmp_path):
    store = make_store(tmp_path)
    records = [make_record(date(2024, 1, d)) for d in range(1, 11)]
    await asyncio.gather(*(store.save(r) for r in records))
    assert len(await make_store(tmp_path).load_all()) == 10


# ----------------- views -----------------
async def _seeded(tmp_path):
    store = make_store(tmp_path)
    await store.apply_import(
        [
            make_record(date(2024, 2, 28), "FOLFIRI C3 D1", wbc=4.0, hgb=110),
            make_record(date(2024, 2, 1), "folfiri C2 D1", wbc=6.0),
            make_record(date(2024, 1, 2), "XELOX C1 D1", wbc=8.0, hgb=120),
            make_record(date(2023, 10, 1), "术后复查", hgb=100),
        ]
    )
    return store


@pytest.mark.asyncio
async def test_history_and_statistics(tmp_path):
    store = await _seeded(tmp_path)
    assert store.history("wbc") == [
        (date(2024, 1, 2), 8.0),
        (date(2024, 2, 1), 6.0),
        (date(2024, 2, 28), 4.0),
    ]
    assert store.history("wbc", within_days=30, today=TODAY) == [
        (date(2024, 2, 1), 6.0),
        (date(2024, 2, 28), 4.0),
    ]
    assert store.average("wbc") == pytest.approx(6.0)
    assert store.minimum("hgb") == 100.0
    assert store.maximum("hgb") == 120.0
    assert store.average("wbc", within_days=30, today=TODAY) == pytest.approx(5.0)
    assert store.average("ca199") is None
    assert store.history("ca199") == []


@pytest.mark.asyncio
async def test_latest_change_and_window(tmp_path):
    store = await _seeded(tmp_path)
    assert store.latest_record.date == date(2024, 2, 28)
    assert store.metric_change("wbc") == pytest.approx(-2.0)
    assert store.metric_change("hgb") is None
    assert len(store.records_within(60, today=TODAY)) == 3
    assert len(store.records_within(None)) == 4


@pytest.mark.asyncio
async def test_scheme_views(tmp_path):
    store = await _seeded(tmp_path)
    assert [r.date for r in store.records_by_scheme("folfiri")] == [date(2024, 2, 28)]
    assert [r.date for r in store.records_by_scheme("XELOX")] == [date(2024, 1, 2)]
    assert store.records_by_scheme("FOLFOX") == []
    assert [r.date for r in store.records_by_scheme("FOLFIRI", within_days=40, today=TODAY)] == [
        date(2024, 2, 28)
    ]
    assert store.records_by_scheme("xelox", within_days=40, today=TODAY) == []
    assert store.all_schemes() == ["FOLFIRI", "XELOX"]
