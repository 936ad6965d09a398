# jobstr/index/store.py
# SPDX-License-Identifier: Apache-2.0
"""
JobIndex: the authoritative in-memory store of current job listings.

- exactly one listing per (author, slot); `merge` decides which one
- skill -> ids index maintained on every insert/replace/remove
- co-occurrence statistics computed on demand from the current set
- bounded tombstones so retractions survive out-of-order delivery
"""

from __future__ import annotations

import enum
import itertools
import logging
import threading
import time
from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from .models import JobListing, SlotKey, normalize_skill

logger = logging.getLogger(__name__)


def merge(current: Optional[JobListing], incoming: JobListing) -> JobListing:
    """
    Replace-by-revision rule for one slot. Returns whichever listing is current.

    Higher revision wins; on equal revision the lowest event id wins, so the
    result does not depend on delivery order and re-delivery is a no-op.
    """
    if current is None:
        return incoming
    if current.slot_key != incoming.slot_key:
        raise ValueError("merge() called with listings from different slots")
    if incoming.revision > current.revision:
        return incoming
    if incoming.revision == current.revision and incoming.id < current.id:
        return incoming
    return current


class UpsertOutcome(str, enum.Enum):
    INSERTED = "inserted"
    REPLACED = "replaced"
    UNCHANGED = "unchanged"    # stale or duplicate revision
    SUPPRESSED = "suppressed"  # retracted earlier
    EXPIRED = "expired"        # older than the TTL horizon


@dataclass
class IndexStats:
    total_listings: int = 0
    skill_counts: Dict[str, int] = field(default_factory=dict)
    pair_counts: Dict[Tuple[str, str], int] = field(default_factory=dict)
    company_counts: Dict[str, int] = field(default_factory=dict)
    job_type_counts: Dict[str, int] = field(default_factory=dict)

    def pairs_for(self, skill: str) -> List[Tuple[str, int]]:
        """(other skill, count) for pairs containing `skill`; count desc, then other asc."""
        token = normalize_skill(skill)
        rows = []
        for (a, b), count in self.pair_counts.items():
            if a == token:
                rows.append((b, count))
            elif b == token:
                rows.append((a, count))
        rows.sort(key=lambda r: (-r[1], r[0]))
        return rows

    def top_pairs(self) -> List[Tuple[Tuple[str, str], int]]:
        return sorted(self.pair_counts.items(), key=lambda r: (-r[1], r[0]))


def compute_stats(listings: Iterable[JobListing]) -> IndexStats:
    skills: Counter = Counter()
    pairs: Counter = Counter()
    companies: Counter = Counter()
    job_types: Counter = Counter()
    total = 0
    for listing in listings:
        total += 1
        skills.update(listing.skills)
        # sorted -> each unordered pair has one canonical (a, b) key with a < b
        pairs.update(itertools.combinations(sorted(listing.skills), 2))
        if listing.company:
            companies[listing.company] += 1
        if listing.job_type:
            job_types[listing.job_type] += 1
    return IndexStats(
        total_listings=total,
        skill_counts=dict(skills),
        pair_counts=dict(pairs),
        company_counts=dict(companies),
        job_type_counts=dict(job_types),
    )


class JobIndex:
    def __init__(
        self,
        *,
        ttl_s: int = 0,
        max_tombstones: int = 10_000,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            ttl_s: Drop listings whose revision is older than now - ttl_s (0 = keep forever)
            max_tombstones: Bound on remembered retractions (oldest forgotten first)
            clock: Wall clock in unix seconds; injectable for tests
        """
        self.ttl_s = ttl_s
        self.max_tombstones = max_tombstones
        self._clock = clock
        # Held briefly around every read and write; never across I/O.
        self._lock = threading.RLock()
        self._by_slot: Dict[SlotKey, JobListing] = {}
        self._slot_by_id: Dict[str, SlotKey] = {}
        self._skills: Dict[str, Set[str]] = {}
        self._slots_by_name: Dict[str, Set[SlotKey]] = {}
        self._tombstones: "OrderedDict[SlotKey, int]" = OrderedDict()
        self._deleted_ids: "OrderedDict[str, str]" = OrderedDict()

    # ---------------------------
    # Writes
    # ---------------------------
    def upsert(self, listing: JobListing) -> UpsertOutcome:
        key = listing.slot_key
        with self._lock:
            if self._is_expired(listing.revision):
                return UpsertOutcome.EXPIRED
            if self._deleted_ids.get(listing.id) == listing.author:
                # the slot is retracted up to this revision, whatever arrived first
                self._retire_slot(key, listing.revision)
                return UpsertOutcome.SUPPRESSED
            until = self._tombstones.get(key)
            if until is not None and listing.revision <= until:
                return UpsertOutcome.SUPPRESSED

            current = self._by_slot.get(key)
            winner = merge(current, listing)
            if winner is current:
                return UpsertOutcome.UNCHANGED
            if current is not None:
                self._unindex(current)
            self._index(winner)
            return UpsertOutcome.REPLACED if current is not None else UpsertOutcome.INSERTED

    def remove(self, author: str, slot: str, *, until: Optional[int] = None) -> bool:
        """
        Remove the current listing of a slot. With `until` (a retraction's
        timestamp) only revisions <= until are removed, and the slot stays
        tombstoned so an older revision arriving later is ignored.
        """
        key = (author, slot)
        with self._lock:
            if until is not None:
                self._remember(self._tombstones, key, max(until, self._tombstones.get(key, until)))
            current = self._by_slot.get(key)
            if current is None:
                return False
            if until is not None and current.revision > until:
                return False
            self._unindex(current)
            return True

    def remove_event(self, author: str, event_id: str, *, until: Optional[int] = None) -> bool:
        """Remove a listing by event id, only if `author` published it."""
        with self._lock:
            self._remember(self._deleted_ids, event_id, author)
            key = self._slot_by_id.get(event_id)
            if key is None:
                return False
            listing = self._by_slot[key]
            if listing.author != author:
                return False
            if until is not None and listing.revision > until:
                return False
            self._retire_slot(key, listing.revision)
            return True

    def evict_expired(self) -> int:
        """Drop listings (and tombstones) older than the TTL horizon."""
        if not self.ttl_s:
            return 0
        horizon = self._clock() - self.ttl_s
        with self._lock:
            stale = [l for l in self._by_slot.values() if l.revision < horizon]
            for listing in stale:
                self._unindex(listing)
            for key in [k for k, until in self._tombstones.items() if until < horizon]:
                del self._tombstones[key]
        if stale:
            logger.info("Evicted %d listing(s) older than %ds", len(stale), self.ttl_s)
        return len(stale)

    def add_tombstone(self, author: str, slot: str, until: int) -> None:
        with self._lock:
            self._remember(self._tombstones, (author, slot), until)

    def add_deleted_id(self, event_id: str, author: str) -> None:
        with self._lock:
            self._remember(self._deleted_ids, event_id, author)

    # ---------------------------
    # Reads
    # ---------------------------
    def get(self, listing_id: str) -> Optional[JobListing]:
        with self._lock:
            key = self._slot_by_id.get(listing_id)
            return self._by_slot.get(key) if key is not None else None

    def get_by_slot(self, author: str, slot: str) -> Optional[JobListing]:
        with self._lock:
            return self._by_slot.get((author, slot))

    def find_slot(self, slot: str) -> Optional[JobListing]:
        """Newest current listing whose slot (d / job-id / j tag) is `slot`, any author."""
        with self._lock:
            found = [self._by_slot[k] for k in self._slots_by_name.get(slot, ())]
        if not found:
            return None
        return min(found, key=lambda l: (-l.revision, l.id))

    def search(self, skill: str) -> List[JobListing]:
        """Listings carrying `skill` (normalized), newest revision first."""
        token = normalize_skill(skill)
        with self._lock:
            ids = self._skills.get(token, ())
            found = [self._by_slot[self._slot_by_id[i]] for i in ids]
        found.sort(key=lambda l: (-l.revision, l.id))
        return found

    def listings(self) -> List[JobListing]:
        with self._lock:
            return list(self._by_slot.values())

    def latest(self, limit: int) -> List[JobListing]:
        return sorted(self.listings(), key=lambda l: (-l.revision, l.id))[:limit]

    def skills(self) -> List[str]:
        with self._lock:
            return sorted(self._skills)

    def stats(self) -> IndexStats:
        # copy under the lock, aggregate outside it
        return compute_stats(self.listings())

    def export_state(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "listings": [l.to_dict() for l in self._by_slot.values()],
                "tombstones": [[a, s, until] for (a, s), until in self._tombstones.items()],
                "deleted_ids": [[i, a] for i, a in self._deleted_ids.items()],
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_slot)

    # ---------------------------
    # Internals (lock held)
    # ---------------------------
    def _index(self, listing: JobListing) -> None:
        self._by_slot[listing.slot_key] = listing
        self._slot_by_id[listing.id] = listing.slot_key
        self._slots_by_name.setdefault(listing.slot, set()).add(listing.slot_key)
        for skill in listing.skills:
            self._skills.setdefault(skill, set()).add(listing.id)

    def _unindex(self, listing: JobListing) -> None:
        self._by_slot.pop(listing.slot_key, None)
        self._slot_by_id.pop(listing.id, None)
        keys = self._slots_by_name.get(listing.slot)
        if keys is not None:
            keys.discard(listing.slot_key)
            if not keys:
                del self._slots_by_name[listing.slot]
        for skill in listing.skills:
            ids = self._skills.get(skill)
            if ids is None:
                continue
            ids.discard(listing.id)
            if not ids:
                del self._skills[skill]

    def _retire_slot(self, key: SlotKey, until: int) -> None:
        """Tombstone `key` up to `until` and drop its current listing if not newer."""
        self._remember(self._tombstones, key, max(until, self._tombstones.get(key, until)))
        current = self._by_slot.get(key)
        if current is not None and current.revision <= until:
            self._unindex(current)

    def _is_expired(self, revision: int) -> bool:
        return bool(self.ttl_s) and revision < self._clock() - self.ttl_s

    def _remember(self, table: "OrderedDict", key: Any, value: Any) -> None:
        table[key] = value
        table.move_to_end(key)
        while len(table) > self.max_tombstones:
            table.popitem(last=False)
