# jobstr/relay/protocol.py
# SPDX-License-Identifier: Apache-2.0
"""
Nostr wire shapes used by the relay layer (NIP-01).

- RawEvent: the signed event as received from a relay
- SubscriptionFilter: match criteria sent in a REQ frame
- Frame helpers: encode REQ/CLOSE, decode relay -> client frames
- CAUGHT_UP: marker emitted once a relay has sent all stored matches (EOSE)
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from jobstr.exceptions import MalformedEvent

HEX64_RE = re.compile(r"^[0-9a-f]{64}$")


class _CaughtUp:
    """Singleton marker for 'historical matches delivered, live from here on'."""

    _instance: Optional["_CaughtUp"] = None

    def __new__(cls) -> "_CaughtUp":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CAUGHT_UP"


CAUGHT_UP = _CaughtUp()


@dataclass(frozen=True)
class RawEvent:
    id: str
    author: str
    created_at: int
    kind: int
    tags: Tuple[Tuple[str, ...], ...]
    content: str
    sig: str = ""

    @classmethod
    def from_wire(cls, data: Any) -> "RawEvent":
        """Validate the JSON object shape of an event. Raises MalformedEvent."""
        if not isinstance(data, dict):
            raise MalformedEvent("event is not an object")
        try:
            event_id = data["id"]
            author = data["pubkey"]
            created_at = data["created_at"]
            kind = data["kind"]
            tags = data.get("tags", [])
            content = data.get("content", "")
        except KeyError as e:
            raise MalformedEvent(f"event missing field {e}") from e

        if not (isinstance(event_id, str) and HEX64_RE.match(event_id)):
            raise MalformedEvent("event id is not 64 lowercase hex chars")
        if not (isinstance(author, str) and HEX64_RE.match(author)):
            raise MalformedEvent("pubkey is not 64 lowercase hex chars")
        # bool is an int subclass; reject it explicitly
        if isinstance(created_at, bool) or not isinstance(created_at, int) or created_at < 0:
            raise MalformedEvent("created_at must be a non-negative integer")
        if isinstance(kind, bool) or not isinstance(kind, int) or kind < 0:
            raise MalformedEvent("kind must be a non-negative integer")
        if not isinstance(content, str):
            raise MalformedEvent("content must be a string")
        if not isinstance(tags, list) or not all(
            isinstance(t, list) and t and all(isinstance(v, str) for v in t) for t in tags
        ):
            raise MalformedEvent("tags must be a list of non-empty string lists")

        return cls(
            id=event_id,
            author=author,
            created_at=created_at,
            kind=kind,
            tags=tuple(tuple(t) for t in tags),
            content=content,
            sig=str(data.get("sig", "")),
        )

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pubkey": self.author,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(t) for t in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def tag_values(self, key: str) -> List[str]:
        """Second element of every tag named `key` (in tag order)."""
        return [t[1] for t in self.tags if len(t) >= 2 and t[0] == key]

    def first_tag(self, key: str) -> Optional[Tuple[str, ...]]:
        for t in self.tags:
            if t[0] == key:
                return t
        return None


def compute_event_id(author: str, created_at: int, kind: int, tags, content: str) -> str:
    """NIP-01 event id: sha256 of the compact JSON serialization."""
    payload = json.dumps(
        [0, author, created_at, kind, [list(t) for t in tags], content],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def has_valid_id(event: RawEvent) -> bool:
    return compute_event_id(event.author, event.created_at, event.kind, event.tags, event.content) == event.id


@dataclass(frozen=True)
class SubscriptionFilter:
    kinds: Tuple[int, ...] = ()
    authors: Tuple[str, ...] = ()
    tags: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    since: Optional[int] = None
    limit: Optional[int] = None

    def to_wire(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.kinds:
            out["kinds"] = list(self.kinds)
        if self.authors:
            out["authors"] = list(self.authors)
        for key, values in self.tags.items():
            out[f"#{key}"] = list(values)
        if self.since is not None:
            out["since"] = self.since
        if self.limit is not None:
            out["limit"] = self.limit
        return out


def listing_filters(job_kind: int, limit: int) -> List[SubscriptionFilter]:
    """Listings plus the deletions that target them."""
    return [
        SubscriptionFilter(kinds=(job_kind,), limit=limit),
        SubscriptionFilter(kinds=(5,), tags={"k": (str(job_kind),)}),
    ]


# ---------------------------
# Frames
# ---------------------------
def encode_req(sub_id: str, filters: List[SubscriptionFilter]) -> str:
    return json.dumps(["REQ", sub_id, *[f.to_wire() for f in filters]])


def encode_close(sub_id: str) -> str:
    return json.dumps(["CLOSE", sub_id])


def decode_frame(frame: Any) -> List[Any]:
    """
    Parse a relay -> client frame into a JSON array whose first element is the
    message type. Raises MalformedEvent for anything else.
    """
    if isinstance(frame, bytes):
        try:
            frame = frame.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEvent("frame is not valid UTF-8") from e
    try:
        msg = json.loads(frame)
    except (TypeError, ValueError) as e:
        raise MalformedEvent(f"frame is not JSON: {e}") from e
    if not isinstance(msg, list) or not msg or not isinstance(msg[0], str):
        raise MalformedEvent("frame is not a typed JSON array")
    return msg
