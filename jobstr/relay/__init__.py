# SPDX-License-Identifier: Apache-2.0
"""
Relay layer: websocket links to Nostr relays and a deduplicating pool.

- RelayLink: one relay, reconnect with full-jitter backoff, REQ re-sent on reconnect
- RelayPool: fan-in of N links, dedup by event id, single CAUGHT_UP after all EOSEs
"""
__all__ = [
    "Backoff",
    "RelayLink",
    "RelayStatus",
    "RelayPool",
    "DedupWindow",
    "ALL_RELAYS",
    "CAUGHT_UP",
    "RawEvent",
    "SubscriptionFilter",
    "compute_event_id",
    "listing_filters",
]
from .backoff import Backoff
from .link import RelayLink, RelayStatus
from .pool import ALL_RELAYS, DedupWindow, RelayPool
from .protocol import CAUGHT_UP, RawEvent, SubscriptionFilter, compute_event_id, listing_filters
