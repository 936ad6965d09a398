import pytest

from jobstr.exceptions import MalformedEvent
from jobstr.index import JobListing, ListingParser, Retraction
from jobstr.index.parser import parse_salary

from conftest import AUTHOR_A, AUTHOR_B, T0


def test_listing_fields(make_listing_event):
    ev = make_listing_event(
        "job-1",
        title="Backend Engineer",
        skills=[" Python ", "RUST", "python"],
        company="Acme",
        job_type="full-time",
        salary=["100000", "150000", "USD", "year"],
    )
    listing = ListingParser().parse(ev)
    assert isinstance(listing, JobListing)
    assert listing.slot == "job-1"
    assert listing.revision == T0
    assert listing.skills == {"python", "rust"}
    assert (listing.salary_min, listing.salary_max, listing.currency) == (100000, 150000, "USD")
    assert listing.summary()["salaryMin"] == 100000
    assert listing.to_dict()["description"] == "Job description"


def test_other_kinds_are_ignored(make_event):
    assert ListingParser().parse(make_event(kind=1, content="hello")) is None


def test_listing_needs_title_or_skill(make_event):
    with pytest.raises(MalformedEvent):
        ListingParser().parse(make_event(tags=[["d", "x"], ["company", "Acme"]]))
    # skills alone are enough
    assert ListingParser().parse(make_event(tags=[["skill", "go"]])).title is None


def test_slot_falls_back_to_job_id_then_event_id(make_event):
    ev = make_event(tags=[["job-id", "J7"], ["title", "T"]])
    assert ListingParser().parse(ev).slot == "J7"
    ev = make_event(tags=[["title", "T"]])
    assert ListingParser().parse(ev).slot == ev.id


@pytest.mark.parametrize("tag", [
    ("salary", "abc", "100"),
    ("salary", "200", "100", "USD"),
    ("salary", "-5", "100"),
    ("salary", "", ""),
])
def test_bad_salary_is_dropped(tag):
    assert parse_salary(tag) == (None, None, None, None)


def test_one_sided_salary_is_kept():
    assert parse_salary(("salary", "90000", "", "EUR")) == (90000.0, None, "EUR", None)


def test_bad_salary_keeps_listing(make_listing_event):
    listing = ListingParser().parse(make_listing_event(skills=["go"], salary=["lots", "more"]))
    assert listing is not None and not listing.has_salary
    assert "salaryMin" not in listing.summary()


def test_retraction_by_id_and_coordinate(make_event):
    target = "c" * 64
    ev = make_event(kind=5, tags=[
        ["e", target],
        ["e", "not-hex"],
        ["a", f"9993:{AUTHOR_A}:job-1"],
        ["a", f"9993:{AUTHOR_B}:job-2"],  # someone else's listing
        ["k", "9993"],
    ])
    r = ListingParser().parse(ev)
    assert isinstance(r, Retraction)
    assert r.event_ids == (target,)
    assert r.slots == ("job-1",)


def test_deletion_of_other_kind_is_ignored(make_event):
    ev = make_event(kind=5, tags=[["e", "c" * 64], ["k", "1"]])
    assert ListingParser().parse(ev) is None


def test_empty_job_deletion_is_malformed(make_event):
    with pytest.raises(MalformedEvent):
        ListingParser().parse(make_event(kind=5, tags=[["k", "9993"]]))
