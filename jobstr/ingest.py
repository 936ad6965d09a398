# jobstr/ingest.py
# SPDX-License-Identifier: Apache-2.0
"""
Single writer for the JobIndex.

Producers (the relay pool pump and a few timers) only put commands on the
inbox; `run()` is the one consumer and the only code path that mutates the
index while the service is live.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from jobstr.exceptions import MalformedEvent
from jobstr.index import JobIndex, ListingParser, Retraction, UpsertOutcome, dump_snapshot
from jobstr.relay import CAUGHT_UP, RawEvent, RelayPool, SubscriptionFilter

logger = logging.getLogger(__name__)


@dataclass
class IngestStats:
    received: int = 0
    inserted: int = 0
    replaced: int = 0
    unchanged: int = 0
    suppressed: int = 0
    expired: int = 0
    retracted: int = 0
    malformed: int = 0
    ignored: int = 0


class Ingestor:
    def __init__(
        self,
        pool: RelayPool,
        index: JobIndex,
        filters: List[SubscriptionFilter],
        parser: Optional[ListingParser] = None,
        *,
        sweep_interval_s: float = 60.0,
        snapshot_path: Optional[Path] = None,
        snapshot_interval_s: float = 300.0,
        inbox_size: int = 1_000,
    ):
        self.pool = pool
        self.index = index
        self.filters = filters
        self.parser = parser or ListingParser()
        self.sweep_interval_s = sweep_interval_s
        self.snapshot_path = snapshot_path
        self.snapshot_interval_s = snapshot_interval_s
        self.stats = IngestStats()
        self.ready = asyncio.Event()
        self._inbox: asyncio.Queue = asyncio.Queue(maxsize=inbox_size)

    # ---------------------------
    # Mutations (writer task only)
    # ---------------------------
    def apply(self, event: RawEvent) -> str:
        """Parse one event and fold it into the index. Returns what happened."""
        self.stats.received += 1
        try:
            parsed = self.parser.parse(event)
        except MalformedEvent as e:
            self.stats.malformed += 1
            logger.debug("Rejected event %s: %s", event.id[:12], e)
            return "malformed"

        if parsed is None:
            self.stats.ignored += 1
            return "ignored"

        if isinstance(parsed, Retraction):
            removed = self._retract(parsed)
            self.stats.retracted += removed
            return "retracted"

        outcome = self.index.upsert(parsed)
        if outcome is UpsertOutcome.INSERTED:
            self.stats.inserted += 1
        elif outcome is UpsertOutcome.REPLACED:
            self.stats.replaced += 1
            logger.debug("Listing %s:%s replaced by revision %d", parsed.author[:8], parsed.slot, parsed.revision)
        elif outcome is UpsertOutcome.SUPPRESSED:
            self.stats.suppressed += 1
        elif outcome is UpsertOutcome.EXPIRED:
            self.stats.expired += 1
        else:
            self.stats.unchanged += 1
        return outcome.value

    def _retract(self, retraction: Retraction) -> int:
        removed = 0
        for event_id in retraction.event_ids:
            removed += self.index.remove_event(retraction.author, event_id, until=retraction.revision)
        for slot in retraction.slots:
            removed += self.index.remove(retraction.author, slot, until=retraction.revision)
        if removed:
            logger.info("Retraction %s removed %d listing(s)", retraction.id[:12], removed)
        return removed

    # ---------------------------
    # Task loop
    # ---------------------------
    async def run(self) -> None:
        producers = [asyncio.create_task(self._pump_relays(), name="ingest:relays")]
        if self.index.ttl_s and self.sweep_interval_s > 0:
            producers.append(asyncio.create_task(self._every(self.sweep_interval_s, "sweep"), name="ingest:sweep"))
        if self.snapshot_path and self.snapshot_interval_s > 0:
            producers.append(
                asyncio.create_task(self._every(self.snapshot_interval_s, "snapshot"), name="ingest:snapshot")
            )
        try:
            while True:
                command, payload = await self._inbox.get()
                if command == "event":
                    self.apply(payload)
                elif command == "caught_up":
                    logger.info("Initial sync complete: %d listing(s) indexed", len(self.index))
                    self.ready.set()
                elif command == "sweep":
                    self.index.evict_expired()
                elif command == "snapshot":
                    await self._save_snapshot()
                elif command == "stop":
                    break
        finally:
            for task in producers:
                task.cancel()
            await asyncio.gather(*producers, return_exceptions=True)
        await self._save_snapshot()

    async def stop(self) -> None:
        await self._inbox.put(("stop", None))

    async def _pump_relays(self) -> None:
        async for _relay, item in self.pool.subscribe(*self.filters):
            if item is CAUGHT_UP:
                await self._inbox.put(("caught_up", None))
            else:
                await self._inbox.put(("event", item))
        await self._inbox.put(("stop", None))

    async def _every(self, interval: float, command: str) -> None:
        while True:
            await asyncio.sleep(interval)
            await self._inbox.put((command, None))

    async def _save_snapshot(self) -> None:
        if not self.snapshot_path:
            return
        try:
            await asyncio.to_thread(dump_snapshot, self.index, self.snapshot_path)
        except OSError as e:
            logger.warning("Could not write snapshot %s: %s", self.snapshot_path, e)

    def describe(self) -> Dict[str, Any]:
        data: Dict[str, Any] = asdict(self.stats)
        data["ready"] = self.ready.is_set()
        data["listings"] = len(self.index)
        return data
