# jobstr/relay/pool.py
# SPDX-License-Identifier: Apache-2.0
"""
Fan-out / fan-in over several RelayLinks for one logical subscription.

Each link runs in its own pump task and feeds one bounded queue; the consumer
side drops events already seen on another relay (sliding FIFO window) and
announces CAUGHT_UP once, after every member link has sent EOSE.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Any, AsyncIterator, Dict, Iterable, List, Tuple

from .link import RelayItem, RelayLink
from .protocol import CAUGHT_UP, SubscriptionFilter

logger = logging.getLogger(__name__)

ALL_RELAYS = "*"
_DONE = object()


class DedupWindow:
    """Bounded set of recently seen keys; the oldest key is forgotten first."""

    def __init__(self, size: int):
        if size <= 0:
            raise ValueError("dedup window size must be positive")
        self.size = size
        self._seen: "OrderedDict[str, None]" = OrderedDict()

    def seen(self, key: str) -> bool:
        """True if `key` is in the window; otherwise remember it and return False."""
        if key in self._seen:
            return True
        self._seen[key] = None
        if len(self._seen) > self.size:
            self._seen.popitem(last=False)
        return False

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, key: object) -> bool:
        return key in self._seen


class RelayPool:
    def __init__(self, links: Iterable[RelayLink], *, dedup_window: int = 10_000, queue_size: int = 1_000):
        self.links: List[RelayLink] = list(links)
        self.queue_size = queue_size
        self.caught_up = asyncio.Event()
        self.duplicates = 0
        self._dedup = DedupWindow(dedup_window)

    async def subscribe(self, *filters: SubscriptionFilter) -> AsyncIterator[Tuple[str, RelayItem]]:
        """
        Yield (relay_url, RawEvent) for every event not seen recently, plus a single
        (ALL_RELAYS, CAUGHT_UP) once every link has caught up. Ends after close().
        """
        if not self.links:
            self.caught_up.set()
            yield ALL_RELAYS, CAUGHT_UP
            return

        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        tasks = [
            asyncio.create_task(self._pump(link, filters, queue), name=f"relay:{link.url}")
            for link in self.links
        ]
        done = 0
        caught: set = set()
        try:
            while done < len(tasks):
                link, item = await queue.get()
                if item is _DONE:
                    done += 1
                    continue
                if item is CAUGHT_UP:
                    # keyed by link: two links may share a URL
                    caught.add(link)
                    if not self.caught_up.is_set() and len(caught) == len(self.links):
                        logger.info("All %d relays caught up", len(self.links))
                        self.caught_up.set()
                        yield ALL_RELAYS, CAUGHT_UP
                    continue
                if self._dedup.seen(item.id):
                    self.duplicates += 1
                    continue
                yield link.url, item
        finally:
            await self.close()
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _pump(self, link: RelayLink, filters: Tuple[SubscriptionFilter, ...], queue: asyncio.Queue) -> None:
        stream = link.subscribe(*filters)
        try:
            async for item in stream:
                await queue.put((link, item))
        except asyncio.CancelledError:
            raise
        except Exception:
            # one broken link must not take the others down
            logger.exception("Relay link %s failed", link.url)
        finally:
            await stream.aclose()
        await queue.put((link, _DONE))

    async def close(self) -> None:
        """Signal close to every link; their streams end promptly."""
        await asyncio.gather(*(link.close() for link in self.links))

    def describe(self) -> Dict[str, Any]:
        return {
            "relays": [link.describe() for link in self.links],
            "caught_up": self.caught_up.is_set(),
            "duplicates_suppressed": self.duplicates,
            "dedup_window": len(self._dedup),
        }
