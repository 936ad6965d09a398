# SPDX-License-Identifier: Apache-2.0
"""
Listing index: parse events into JobListings and keep the current one per slot.

- ListingParser.parse(event) -> JobListing | Retraction | None
- merge(current, incoming): pure replace-by-revision rule
- JobIndex: upsert/remove/get/search/stats
"""
__all__ = [
    "JobListing",
    "Retraction",
    "normalize_skill",
    "ListingParser",
    "merge",
    "JobIndex",
    "IndexStats",
    "UpsertOutcome",
    "dump_snapshot",
    "load_snapshot",
]
from .models import JobListing, Retraction, normalize_skill
from .parser import ListingParser
from .snapshot import dump_snapshot, load_snapshot
from .store import IndexStats, JobIndex, UpsertOutcome, merge
