# jobstr/index/models.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional, Tuple

from jobstr.utils.dates import iso_from_unix

SlotKey = Tuple[str, str]  # (author, logical slot)


def normalize_skill(raw: str) -> str:
    """Trim, collapse inner whitespace, lower-case."""
    return " ".join((raw or "").split()).lower()


def _num(v: Optional[float]) -> Optional[float]:
    # 100000.0 -> 100000 in JSON output
    if v is not None and float(v).is_integer():
        return int(v)
    return v


@dataclass(frozen=True)
class JobListing:
    """
    Current state of one job slot. Instances are immutable; an update is a whole
    new JobListing that replaces the old one in the index.
    """
    id: str
    author: str
    slot: str
    revision: int
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    job_type: Optional[str] = None
    skills: FrozenSet[str] = frozenset()
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    currency: Optional[str] = None
    salary_period: Optional[str] = None
    description: str = ""
    raw_tags: Tuple[Tuple[str, ...], ...] = ()
    kind: int = 9993

    @property
    def slot_key(self) -> SlotKey:
        return (self.author, self.slot)

    @property
    def has_salary(self) -> bool:
        return self.salary_min is not None or self.salary_max is not None

    def summary(self) -> Dict[str, Any]:
        """Search-result shape: no description, no raw tags."""
        out: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "jobType": self.job_type,
            "skills": sorted(self.skills),
            "postedAt": iso_from_unix(self.revision),
        }
        if self.salary_min is not None:
            out["salaryMin"] = _num(self.salary_min)
        if self.salary_max is not None:
            out["salaryMax"] = _num(self.salary_max)
        if self.has_salary and self.currency:
            out["currency"] = self.currency
        return out

    def to_dict(self) -> Dict[str, Any]:
        """Full listing, as returned by get_job_details and written to snapshots."""
        return {
            "id": self.id,
            "author": self.author,
            "slot": self.slot,
            "revision": self.revision,
            "postedAt": iso_from_unix(self.revision),
            "kind": self.kind,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "jobType": self.job_type,
            "skills": sorted(self.skills),
            "salaryMin": _num(self.salary_min),
            "salaryMax": _num(self.salary_max),
            "currency": self.currency,
            "salaryPeriod": self.salary_period,
            "description": self.description,
            "rawTags": [list(t) for t in self.raw_tags],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobListing":
        return cls(
            id=str(data["id"]),
            author=str(data["author"]),
            slot=str(data["slot"]),
            revision=int(data["revision"]),
            title=data.get("title"),
            company=data.get("company"),
            location=data.get("location"),
            job_type=data.get("jobType"),
            skills=frozenset(normalize_skill(s) for s in data.get("skills") or [] if normalize_skill(s)),
            salary_min=data.get("salaryMin"),
            salary_max=data.get("salaryMax"),
            currency=data.get("currency"),
            salary_period=data.get("salaryPeriod"),
            description=data.get("description") or "",
            raw_tags=tuple(tuple(str(v) for v in t) for t in data.get("rawTags") or []),
            kind=int(data.get("kind", 9993)),
        )


@dataclass(frozen=True)
class Retraction:
    """A publisher's deletion request (NIP-09) for some of its own listings."""
    id: str
    author: str
    revision: int
    event_ids: Tuple[str, ...] = ()
    slots: Tuple[str, ...] = ()
