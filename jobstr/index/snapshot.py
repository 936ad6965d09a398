# jobstr/index/snapshot.py
# SPDX-License-Identifier: Apache-2.0
"""
JSON snapshot of the index, so a restart does not wait on a full relay replay.

Loading replays every saved listing through JobIndex.upsert (after restoring
tombstones), so replace-by-revision holds no matter what relays send next.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

from jobstr.utils.dates import iso_now
from jobstr.utils.files import read_json, write_json

from .models import JobListing
from .store import JobIndex, UpsertOutcome

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def dump_snapshot(index: JobIndex, path: Path) -> int:
    state: Dict[str, Any] = index.export_state()
    state["version"] = SNAPSHOT_VERSION
    state["saved_at"] = iso_now()
    write_json(path, state)
    logger.debug("Snapshot of %d listing(s) written to %s", len(state["listings"]), path)
    return len(state["listings"])


def load_snapshot(index: JobIndex, path: Path) -> int:
    """Replay a snapshot into `index`. Returns the number of listings accepted."""
    try:
        data = read_json(path, default=None)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable snapshot %s: %s", path, e)
        return 0
    if data is None:
        return 0
    if not isinstance(data, dict) or data.get("version") != SNAPSHOT_VERSION:
        logger.warning("Ignoring snapshot %s: unknown format", path)
        return 0

    for row in data.get("tombstones") or []:
        try:
            author, slot, until = row
            index.add_tombstone(str(author), str(slot), int(until))
        except (TypeError, ValueError) as e:
            logger.warning("Skipping unreadable snapshot tombstone %r: %s", row, e)
    for row in data.get("deleted_ids") or []:
        try:
            event_id, author = row
            index.add_deleted_id(str(event_id), str(author))
        except (TypeError, ValueError) as e:
            logger.warning("Skipping unreadable snapshot deletion %r: %s", row, e)

    accepted = 0
    for raw in data.get("listings") or []:
        try:
            listing = JobListing.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping unreadable snapshot entry: %s", e)
            continue
        if index.upsert(listing) in (UpsertOutcome.INSERTED, UpsertOutcome.REPLACED):
            accepted += 1
    logger.info("Loaded %d listing(s) from snapshot %s", accepted, path)
    return accepted
