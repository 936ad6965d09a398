# jobstr/index/parser.py
# SPDX-License-Identifier: Apache-2.0
"""
Raw Nostr event -> JobListing / Retraction.

Order of checks:
1) signature validity is the relay layer's concern (not re-checked here)
2) kind must be the job-listing kind (or a deletion aimed at it); else None
3) a listing needs a title or at least one skill; else MalformedEvent
4) a salary that fails to parse, is negative, or has min > max is dropped
   on its own; the listing survives with "salary not specified"
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple, Union

from jobstr.exceptions import MalformedEvent
from jobstr.relay.protocol import HEX64_RE, RawEvent

from .models import JobListing, Retraction, normalize_skill

logger = logging.getLogger(__name__)

DELETION_KIND = 5
SLOT_TAGS = ("d", "job-id", "j")

ParseResult = Union[JobListing, Retraction]


def _first(event: RawEvent, key: str) -> Optional[str]:
    for value in event.tag_values(key):
        value = value.strip()
        if value:
            return value
    return None


def _amount(raw: str) -> Optional[float]:
    raw = (raw or "").strip()
    if not raw:
        return None
    value = float(raw)  # ValueError on junk
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"invalid amount {raw!r}")
    return value


def parse_salary(tag: Optional[Tuple[str, ...]]) -> Tuple[Optional[float], Optional[float], Optional[str], Optional[str]]:
    """
    ["salary", min, max, currency, period] -> (min, max, currency, period).
    A one-sided range is kept as-is; anything invalid yields all None.
    """
    empty = (None, None, None, None)
    if not tag:
        return empty
    fields = list(tag[1:]) + [""] * 4
    try:
        lo = _amount(fields[0])
        hi = _amount(fields[1])
    except ValueError as e:
        logger.debug("Dropping salary %r: %s", tag, e)
        return empty
    if lo is None and hi is None:
        return empty
    if lo is not None and hi is not None and lo > hi:
        logger.debug("Dropping salary %r: min > max", tag)
        return empty
    currency = fields[2].strip() or None
    period = fields[3].strip() or None
    return lo, hi, currency, period


def parse_skills(values: List[str]) -> frozenset:
    return frozenset(s for s in (normalize_skill(v) for v in values) if s)


class ListingParser:
    def __init__(self, job_kind: int = 9993):
        self.job_kind = job_kind

    def parse(self, event: RawEvent) -> Optional[ParseResult]:
        """
        Returns a JobListing, a Retraction, or None for events that are not about
        job listings. Raises MalformedEvent for listings that cannot be used.
        """
        if event.kind == self.job_kind:
            return self._listing(event)
        if event.kind == DELETION_KIND:
            return self._retraction(event)
        return None

    def _listing(self, event: RawEvent) -> JobListing:
        title = _first(event, "title")
        skills = parse_skills(event.tag_values("skill"))
        if not title and not skills:
            raise MalformedEvent(f"listing {event.id[:12]} has neither title nor skills")

        salary_min, salary_max, currency, period = parse_salary(event.first_tag("salary"))
        slot = next((v for v in (_first(event, k) for k in SLOT_TAGS) if v), event.id)

        return JobListing(
            id=event.id,
            author=event.author,
            slot=slot,
            revision=event.created_at,
            title=title,
            company=_first(event, "company"),
            location=_first(event, "location"),
            job_type=_first(event, "employment-type"),
            skills=skills,
            salary_min=salary_min,
            salary_max=salary_max,
            currency=currency,
            salary_period=period,
            description=event.content,
            raw_tags=event.tags,
            kind=event.kind,
        )

    def _retraction(self, event: RawEvent) -> Optional[Retraction]:
        kinds = event.tag_values("k")
        if kinds and str(self.job_kind) not in kinds:
            return None

        event_ids = tuple(v for v in event.tag_values("e") if HEX64_RE.match(v))
        slots = []
        for coord in event.tag_values("a"):
            parts = coord.split(":", 2)
            if len(parts) != 3 or parts[0] != str(self.job_kind):
                continue
            if parts[1] != event.author:
                # only the publisher may retract its listings
                continue
            if parts[2]:
                slots.append(parts[2])

        if not event_ids and not slots:
            if kinds:
                raise MalformedEvent(f"deletion {event.id[:12]} references no listing")
            return None
        return Retraction(
            id=event.id,
            author=event.author,
            revision=event.created_at,
            event_ids=event_ids,
            slots=tuple(slots),
        )
