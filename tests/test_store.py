import itertools

from jobstr.index import JobIndex, ListingParser, UpsertOutcome, merge

from conftest import AUTHOR_A, AUTHOR_B, T0, build_listing_event

parse = ListingParser().parse


def listing(slot="s1", **kw):
    return parse(build_listing_event(slot, **kw))


def test_merge_higher_revision_wins():
    old = listing(skills=["go"], created_at=T0)
    new = listing(skills=["rust"], created_at=T0 + 10)
    assert merge(old, new) is new
    assert merge(new, old) is new
    assert merge(None, old) is old


def test_merge_equal_revision_is_order_independent():
    a = listing(title="A", skills=["go"])
    b = listing(title="B", skills=["go"])
    assert merge(a, b) is merge(b, a)
    assert merge(a, b).id == min(a.id, b.id)


def test_any_delivery_order_converges():
    events = [listing(skills=["go"], created_at=T0 + i, content=f"v{i}") for i in range(4)]
    winners = set()
    for order in itertools.permutations(events):
        idx = JobIndex()
        for l in order:
            idx.upsert(l)
        assert len(idx) == 1
        winners.add(idx.listings()[0].id)
    assert winners == {events[-1].id}


def test_upsert_outcomes():
    idx = JobIndex()
    v1 = listing(skills=["python"], created_at=T0)
    v2 = listing(skills=["rust"], created_at=T0 + 1)
    assert idx.upsert(v1) is UpsertOutcome.INSERTED
    assert idx.upsert(v1) is UpsertOutcome.UNCHANGED
    assert idx.upsert(v2) is UpsertOutcome.REPLACED
    assert idx.upsert(v1) is UpsertOutcome.UNCHANGED


def test_replacement_updates_skill_index():
    idx = JobIndex()
    a = listing("S", skills=["python", "rust"], created_at=T0)
    a2 = listing("S", skills=["python", "go"], created_at=T0 + 5)
    idx.upsert(a)
    idx.upsert(a2)
    assert idx.search("rust") == []
    assert [l.id for l in idx.search("go")] == [a2.id]
    assert [l.id for l in idx.search("python")] == [a2.id]
    assert idx.get(a.id) is None
    assert "rust" not in idx.skills()


def test_same_slot_different_authors_are_distinct():
    idx = JobIndex()
    idx.upsert(listing("S", skills=["go"], author=AUTHOR_A))
    idx.upsert(listing("S", skills=["go"], author=AUTHOR_B))
    assert len(idx) == 2


def test_search_is_case_insensitive_and_newest_first():
    idx = JobIndex()
    old = listing("a", skills=["Python"], created_at=T0)
    new = listing("b", skills=["python"], created_at=T0 + 60)
    idx.upsert(old)
    idx.upsert(new)
    assert [l.id for l in idx.search("PYTHON ")] == [new.id, old.id]
    assert idx.search("cobol") == []


def test_pair_counts_match_skill_sets():
    idx = JobIndex()
    sets = [["python", "rust", "go"], ["python", "rust"], ["go"], []]
    for i, skills in enumerate(sets):
        idx.upsert(listing(f"s{i}", skills=skills, title="T"))
    stats = idx.stats()
    assert stats.total_listings == 4
    assert stats.pair_counts[("python", "rust")] == 2
    assert stats.pair_counts[("go", "python")] == 1
    expected = sum(len(s) * (len(s) - 1) // 2 for s in sets)
    assert sum(stats.pair_counts.values()) == expected
    assert stats.pairs_for("python") == [("rust", 2), ("go", 1)]
    # each listing with X contributes one pair per other skill it carries
    with_python = [s for s in sets if "python" in s]
    assert sum(c for _, c in stats.pairs_for("python")) == sum(len(s) - 1 for s in with_python)


def test_slot_retraction_tombstones_older_revisions():
    idx = JobIndex()
    v2 = listing(skills=["go"], created_at=T0 + 10)
    idx.upsert(v2)
    assert idx.remove(AUTHOR_A, "s1", until=T0 + 20)
    assert idx.get(v2.id) is None and idx.search("go") == []
    # late delivery of an older revision stays gone
    assert idx.upsert(listing(skills=["go"], created_at=T0)) is UpsertOutcome.SUPPRESSED
    # a republish after the retraction is accepted
    assert idx.upsert(listing(skills=["go"], created_at=T0 + 30)) is UpsertOutcome.INSERTED


def test_retraction_does_not_remove_newer_revision():
    idx = JobIndex()
    idx.upsert(listing(skills=["go"], created_at=T0 + 50))
    assert not idx.remove(AUTHOR_A, "s1", until=T0 + 20)
    assert len(idx) == 1


def test_remove_event_only_by_author():
    idx = JobIndex()
    l = listing(skills=["go"])
    idx.upsert(l)
    assert not idx.remove_event(AUTHOR_B, l.id)
    assert idx.get(l.id) is not None
    assert idx.remove_event(AUTHOR_A, l.id)
    assert idx.upsert(l) is UpsertOutcome.SUPPRESSED


def test_ttl_eviction():
    now = [T0 + 1000]
    idx = JobIndex(ttl_s=100, clock=lambda: now[0])
    fresh = listing("a", skills=["go"], created_at=T0 + 950)
    idx.upsert(fresh)
    assert idx.upsert(listing("b", skills=["go"], created_at=T0)) is UpsertOutcome.EXPIRED
    now[0] += 100
    assert idx.evict_expired() == 1
    assert len(idx) == 0 and idx.skills() == []


def test_tombstones_are_bounded():
    idx = JobIndex(max_tombstones=2)
    for slot in ("a", "b", "c"):
        idx.remove(AUTHOR_A, slot, until=T0)
    assert len(idx.export_state()["tombstones"]) == 2


def test_retraction_by_event_id_blocks_older_revisions():
    idx = JobIndex()
    v1 = listing(skills=["go"], created_at=T0)
    v2 = listing(skills=["go"], created_at=T0 + 10)
    idx.upsert(v2)
    assert idx.remove_event(AUTHOR_A, v2.id, until=T0 + 20)
    assert idx.upsert(v1) is UpsertOutcome.SUPPRESSED
    assert len(idx) == 0


def test_deleted_id_arriving_late_retires_older_current():
    idx = JobIndex()
    v1 = listing(skills=["go"], created_at=T0)
    v2 = listing(skills=["go"], created_at=T0 + 10)
    idx.remove_event(AUTHOR_A, v2.id)
    idx.upsert(v1)
    assert idx.upsert(v2) is UpsertOutcome.SUPPRESSED
    assert len(idx) == 0 and idx.search("go") == []
    # a later republish is still accepted
    assert idx.upsert(listing(skills=["go"], created_at=T0 + 30)) is UpsertOutcome.INSERTED


def test_find_slot_returns_newest_current_listing():
    idx = JobIndex()
    older = listing("JOB-42", skills=["go"], author=AUTHOR_A, created_at=T0)
    newer = listing("JOB-42", skills=["go"], author=AUTHOR_B, created_at=T0 + 5)
    idx.upsert(older)
    idx.upsert(newer)
    assert idx.find_slot("JOB-42") is newer
    idx.remove(AUTHOR_B, "JOB-42")
    assert idx.find_slot("JOB-42") is older
    idx.remove(AUTHOR_A, "JOB-42")
    assert idx.find_slot("JOB-42") is None
