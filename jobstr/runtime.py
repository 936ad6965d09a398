# jobstr/runtime.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from jobstr.index import JobIndex, ListingParser, load_snapshot
from jobstr.ingest import Ingestor
from jobstr.query import QueryService
from jobstr.relay import Backoff, RelayLink, RelayPool, listing_filters
from jobstr.relay.link import Connector
from jobstr.settings import SETTINGS, _Settings

logger = logging.getLogger(__name__)


class Runtime:
    """Wires relays -> pool -> ingestor -> index <- query from one settings object."""

    def __init__(self, settings: _Settings = SETTINGS, *, connector: Optional[Connector] = None):
        self.settings = settings
        self.index = JobIndex(ttl_s=settings.listing_ttl_s, max_tombstones=settings.max_tombstones)
        self.links = [
            RelayLink(
                url,
                connector=connector,
                backoff=Backoff(settings.backoff_base_s, settings.backoff_cap_s),
                connect_timeout=settings.connect_timeout_s,
                max_frame_bytes=settings.max_frame_bytes,
                verify_ids=settings.verify_event_ids,
            )
            for url in settings.relays
        ]
        self.pool = RelayPool(self.links, dedup_window=settings.dedup_window, queue_size=settings.queue_size)
        self.snapshot_path = Path(settings.snapshot_path) if settings.snapshot_path else None
        self.ingestor = Ingestor(
            self.pool,
            self.index,
            listing_filters(settings.job_kind, settings.fetch_limit),
            ListingParser(settings.job_kind),
            sweep_interval_s=settings.sweep_interval_s,
            snapshot_path=self.snapshot_path,
            snapshot_interval_s=settings.snapshot_interval_s,
            inbox_size=settings.queue_size,
        )
        self.query = QueryService(
            self.index,
            search_limit=settings.search_limit,
            stats_top=settings.stats_top,
            latest_limit=settings.latest_limit,
        )
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._task is not None:
            return
        if self.snapshot_path:
            # before the writer task exists, so nothing else mutates the index
            await asyncio.to_thread(load_snapshot, self.index, self.snapshot_path)
        logger.info("Connecting to %d relay(s)", len(self.links))
        self._task = asyncio.create_task(self.ingestor.run(), name="ingestor")

    async def wait_caught_up(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(self.ingestor.ready.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def stop(self, timeout: float = 10.0) -> None:
        """Close every relay, let the writer drain and write its final snapshot."""
        if self._task is None:
            return
        await self.pool.close()
        await self.ingestor.stop()
        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Ingestor did not stop within %.0fs; cancelling", timeout)
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Runtime stopped (%d listing(s) in index)", len(self.index))
