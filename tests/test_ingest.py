import asyncio
import itertools
import json

import pytest

from jobstr.index import JobIndex, dump_snapshot, load_snapshot
from jobstr.ingest import Ingestor
from jobstr.relay import RelayPool, listing_filters

from conftest import AUTHOR_A, AUTHOR_B, T0, build_event, build_listing_event


def make_ingestor(links=(), **kwargs):
    return Ingestor(RelayPool(links), JobIndex(), listing_filters(9993, 100), **kwargs)


def test_apply_replace_scenario():
    ing = make_ingestor()
    a = build_listing_event("S", skills=["python", "rust"], created_at=T0)
    a2 = build_listing_event("S", skills=["python", "go"], created_at=T0 + 5)
    assert ing.apply(a) == "inserted"
    assert ing.apply(a2) == "replaced"
    assert ing.apply(a) == "unchanged"
    assert [l.id for l in ing.index.search("go")] == [a2.id]
    assert ing.index.search("rust") == []
    assert ing.stats.received == 3


def test_apply_counts_rejects():
    ing = make_ingestor()
    assert ing.apply(build_event(kind=1, content="gm")) == "ignored"
    assert ing.apply(build_event(tags=[["d", "x"]])) == "malformed"
    assert (ing.stats.ignored, ing.stats.malformed) == (1, 1)
    assert len(ing.index) == 0


def test_apply_retraction_by_event_and_coordinate():
    ing = make_ingestor()
    first = build_listing_event("one", skills=["go"])
    second = build_listing_event("two", skills=["go"])
    ing.apply(first)
    ing.apply(second)
    deletion = build_event(kind=5, created_at=T0 + 1, tags=[
        ["e", first.id],
        ["a", f"9993:{AUTHOR_A}:two"],
        ["k", "9993"],
    ])
    assert ing.apply(deletion) == "retracted"
    assert ing.stats.retracted == 2
    assert len(ing.index) == 0
    # re-delivery from a lagging relay does not resurrect them
    assert ing.apply(first) == "suppressed"
    assert ing.apply(second) == "suppressed"


def test_foreign_retraction_is_ignored():
    ing = make_ingestor()
    listing = build_listing_event("one", skills=["go"])
    ing.apply(listing)
    ing.apply(build_event(kind=5, author=AUTHOR_B, created_at=T0 + 1, tags=[["e", listing.id]]))
    assert len(ing.index) == 1


@pytest.mark.asyncio
async def test_run_ingests_until_stopped(fake_relay, make_link, tmp_path):
    shared = build_listing_event("a", skills=["python", "rust"])
    other = build_listing_event("b", skills=["python"], author=AUTHOR_B)
    snap = tmp_path / "index.json"
    ing = make_ingestor(
        [
            make_link(fake_relay([shared, "EOSE"]), "wss://a.test"),
            make_link(fake_relay([shared, other, "EOSE"]), "wss://b.test"),
        ],
        snapshot_path=snap,
    )
    task = asyncio.create_task(ing.run())
    await asyncio.wait_for(ing.ready.wait(), 2.0)
    assert len(ing.index) == 2
    assert ing.stats.inserted == 2
    assert ing.pool.duplicates == 1

    await ing.pool.close()
    await asyncio.wait_for(task, 2.0)
    assert snap.exists()

    restored = JobIndex()
    assert load_snapshot(restored, snap) == 2


def test_snapshot_keeps_tombstones(tmp_path):
    ing = make_ingestor()
    v1 = build_listing_event("S", skills=["go"], created_at=T0)
    v2 = build_listing_event("S", skills=["go"], created_at=T0 + 10)
    ing.apply(v2)
    ing.apply(build_event(kind=5, created_at=T0 + 20, tags=[["a", f"9993:{AUTHOR_A}:S"]]))
    path = tmp_path / "snap.json"
    dump_snapshot(ing.index, path)

    restored = make_ingestor()
    load_snapshot(restored.index, path)
    assert restored.apply(v1) == "suppressed"
    assert len(restored.index) == 0


def test_missing_or_foreign_snapshot(tmp_path):
    idx = JobIndex()
    assert load_snapshot(idx, tmp_path / "nope.json") == 0
    (tmp_path / "old.json").write_text('{"version": 99, "listings": []}')
    assert load_snapshot(idx, tmp_path / "old.json") == 0


def test_event_id_retraction_converges_in_any_order():
    v1 = build_listing_event("S", skills=["go"], created_at=T0)
    v2 = build_listing_event("S", skills=["go"], created_at=T0 + 10)
    deletion = build_event(kind=5, created_at=T0 + 20, tags=[["e", v2.id], ["k", "9993"]])
    finals = set()
    for order in itertools.permutations([v1, v2, deletion]):
        ing = make_ingestor()
        for ev in order:
            ing.apply(ev)
        finals.add(tuple(sorted(l.id for l in ing.index.listings())))
    assert finals == {()}


def test_corrupt_snapshot_is_skipped(tmp_path):
    path = tmp_path / "snap.json"
    path.write_text('{"version": 1, "listings": [')
    assert load_snapshot(JobIndex(), path) == 0


def test_bad_snapshot_rows_are_skipped(tmp_path):
    good = build_listing_event("S", skills=["go"])
    src = make_ingestor()
    src.apply(good)
    path = tmp_path / "snap.json"
    dump_snapshot(src.index, path)
    data = json.loads(path.read_text())
    data["tombstones"] = [["only-two", "fields"], [AUTHOR_B, "x", "not-a-number"]]
    data["deleted_ids"] = [["lonely"]]
    data["listings"].append({"title": "no id"})
    path.write_text(json.dumps(data))

    idx = JobIndex()
    assert load_snapshot(idx, path) == 1
    assert idx.get(good.id) is not None
