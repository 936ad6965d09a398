# jobstr/query.py
# SPDX-License-Identifier: Apache-2.0
"""
QueryService: the three agent-facing read operations over a JobIndex.

Stateless apart from its bounds; every call reads the index once under its
lock and shapes JSON-ready dicts. Invalid input raises InvalidArgument,
unknown ids raise NotFound. An unknown skill is just an empty result.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from jobstr.exceptions import InvalidArgument, NotFound
from jobstr.index import JobIndex, JobListing, normalize_skill

logger = logging.getLogger(__name__)

MAX_LIMIT = 100


def _clean(value: Optional[str]) -> str:
    # some MCP clients send string arguments wrapped in quotes
    return (value or "").strip().strip('"').strip()


def _sorted_counts(counts: Dict[str, int]) -> Dict[str, int]:
    return dict(sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))


class QueryService:
    def __init__(self, index: JobIndex, *, search_limit: int = 20, stats_top: int = 0, latest_limit: int = 20):
        self.index = index
        self.search_limit = search_limit
        self.stats_top = stats_top
        self.latest_limit = latest_limit

    def _limit(self, limit: Optional[int], default: int) -> int:
        if limit is None:
            return default
        if isinstance(limit, bool) or not isinstance(limit, int) or not (1 <= limit <= MAX_LIMIT):
            raise InvalidArgument(f"limit must be an integer between 1 and {MAX_LIMIT}")
        return limit

    def search_jobs(
        self,
        skill: str,
        *,
        company: Optional[str] = None,
        job_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        token = normalize_skill(_clean(skill))
        if not token:
            raise InvalidArgument("skill must be a non-empty string")
        limit = self._limit(limit, self.search_limit)
        company_q = _clean(company).lower()
        job_type_q = _clean(job_type).lower()

        matches: List[JobListing] = []
        for listing in self.index.search(token):
            if company_q and company_q not in (listing.company or "").lower():
                continue
            if job_type_q and job_type_q not in (listing.job_type or "").lower():
                continue
            matches.append(listing)

        logger.debug("search_jobs skill=%r company=%r job_type=%r -> %d", token, company_q, job_type_q, len(matches))
        return {
            "skill": token,
            "total": len(matches),
            "listings": [l.summary() for l in matches[:limit]],
        }

    def get_job_details(self, job_id: str) -> Dict[str, Any]:
        """
        Look up by event id, by '<author>:<slot>', or by a bare job id (the d / job-id / j
        tag value); the last two resolve to the current listing of that slot.
        """
        key = _clean(job_id)
        if not key:
            raise InvalidArgument("job_id must be a non-empty string")
        listing = self.index.get(key)
        if listing is None and ":" in key:
            author, slot = key.split(":", 1)
            listing = self.index.get_by_slot(author.lower(), slot)
        if listing is None:
            listing = self.index.find_slot(key)
        if listing is None:
            raise NotFound(key)
        return listing.to_dict()

    def get_stats(self, skill: Optional[str] = None, *, top: Optional[int] = None) -> Dict[str, Any]:
        token = normalize_skill(_clean(skill))
        top = self._limit(top, self.stats_top) if top is not None else self.stats_top
        stats = self.index.stats()

        if token:
            pairs: List[Dict[str, Any]] = [
                {"skill": other, "count": count} for other, count in stats.pairs_for(token)
            ]
        else:
            pairs = [{"skills": [a, b], "count": count} for (a, b), count in stats.top_pairs()]
        if top:
            pairs = pairs[:top]

        report: Dict[str, Any] = {
            "pairs": pairs,
            "totalListings": stats.total_listings,
            "skillCounts": _sorted_counts(stats.skill_counts),
            "companyCounts": _sorted_counts(stats.company_counts),
            "jobTypeCounts": _sorted_counts(stats.job_type_counts),
        }
        if token:
            report["skill"] = token
            report["listingsWithSkill"] = stats.skill_counts.get(token, 0)
        return report

    def latest(self, limit: Optional[int] = None) -> Dict[str, Any]:
        limit = self._limit(limit, self.latest_limit)
        return {"listings": [l.summary() for l in self.index.latest(limit)]}
