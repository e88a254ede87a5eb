# tests/test_adapters.py
import pytest
from conftest import FakeFetcher, greenhouse_job, lever_posting

from modules.job_harvest.lib import adapters
from modules.job_harvest.lib.adapters import ashby, greenhouse, lever
from modules.job_harvest.lib.adapters.base import looks_like_error_payload
from modules.job_harvest.lib.models import AtsPlatform, CompanyTarget, ErrorKind


def _target(platform, identifier="acme"):
    return CompanyTarget(name="Acme", platform=platform, identifier=identifier)


# ---------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------
def test_every_platform_has_an_adapter():
    assert set(adapters.all_platforms()) == {p.value for p in AtsPlatform}


def test_registry_lookup_is_case_insensitive():
    assert adapters.get("Lever") is lever.ADAPTER
    assert adapters.get(AtsPlatform.ASHBY) is ashby.ADAPTER


def test_registry_unknown_platform():
    with pytest.raises(KeyError):
        adapters.get("smartrecruiters")


def test_registry_rejects_a_second_adapter_for_a_platform():
    other = adapters.SourceAdapter(
        platform=AtsPlatform.LEVER, fetch_jobs=lever.fetch_jobs, normalize=lever.normalize
    )
    with pytest.raises(ValueError):
        adapters.register(other)


# ---------------------------------------------------------------------
# Greenhouse
# ---------------------------------------------------------------------
def test_greenhouse_fetch_reads_jobs_wrapper():
    url = greenhouse.board_url("acme")
    fetcher = FakeFetcher({url: {"jobs": [greenhouse_job(1, "Engineer"), greenhouse_job(2, "Designer")], "meta": {}}})

    res = greenhouse.fetch_jobs(_target(AtsPlatform.GREENHOUSE), fetcher)

    assert res.ok
    assert [j["id"] for j in res.items] == [1, 2]
    assert fetcher.calls == ["https://boards-api.greenhouse.io/v1/boards/acme/jobs?content=true"]


def test_greenhouse_empty_board_is_authoritative():
    fetcher = FakeFetcher({greenhouse.board_url("acme"): {"jobs": []}})
    res = greenhouse.fetch_jobs(_target(AtsPlatform.GREENHOUSE), fetcher)
    assert res.ok
    assert res.items == []


def test_greenhouse_error_object_is_platform_error():
    fetcher = FakeFetcher({greenhouse.board_url("ghost"): {"error": "Job board not found"}})
    res = greenhouse.fetch_jobs(_target(AtsPlatform.GREENHOUSE, "ghost"), fetcher)
    assert res.error is ErrorKind.PLATFORM_ERROR
    assert "not found" in res.detail


def test_greenhouse_transport_failure_carries_error_kind():
    res = greenhouse.fetch_jobs(_target(AtsPlatform.GREENHOUSE), FakeFetcher())
    assert res.error is ErrorKind.EXHAUSTED
    assert res.items == []


def test_greenhouse_normalize():
    raw = greenhouse_job(
        7,
        "Backend Engineer",
        location="Bangalore, India",
        department="Platform",
        content="&lt;p&gt;Build &amp;amp; run things&lt;/p&gt;",
    )
    raw["metadata"] = [{"name": "Employment Type", "value": "Contract"}]

    p = greenhouse.normalize(raw, "co-1")

    assert p.title == "Backend Engineer"
    assert p.location == "Bangalore, India"
    assert p.category_hint == "Platform"
    assert p.apply_link == "https://boards.greenhouse.io/acme/jobs/7"
    assert p.description == "<p>Build &amp; run things</p>"
    assert p.job_type_hint == "Contract"
    assert p.company_id == "co-1"


def test_greenhouse_normalize_defaults():
    p = greenhouse.normalize({"title": "Engineer", "absolute_url": "https://x/1"}, None)
    assert (p.location, p.category_hint, p.job_type_hint) == ("Remote", "Engineering", "full_time")
    assert p.description == ""


# ---------------------------------------------------------------------
# Lever
# ---------------------------------------------------------------------
def test_lever_bare_array():
    url = lever.postings_url("acme")
    fetcher = FakeFetcher({url: [lever_posting("a", "Engineer"), lever_posting("b", "Designer")]})

    res = lever.fetch_jobs(_target(AtsPlatform.LEVER), fetcher)

    assert res.ok
    assert len(res.items) == 2
    assert fetcher.calls == ["https://api.lever.co/v0/postings/acme?mode=json"]


@pytest.mark.parametrize("payload", [{"data": [{"id": "a"}]}, {"postings": [{"id": "a"}]}])
def test_lever_wrapped_variants(payload):
    assert lever.extract_jobs(payload) == [{"id": "a"}]


def test_lever_unknown_company():
    fetcher = FakeFetcher({lever.postings_url("ghost"): {"ok": False, "error": "Document not found"}})
    res = lever.fetch_jobs(_target(AtsPlatform.LEVER, "ghost"), fetcher)
    assert res.error is ErrorKind.PLATFORM_ERROR


def test_lever_normalize():
    p = lever.normalize(lever_posting("a", "Staff Engineer", location="", team="Infra", workplace="remote"), "co-1")
    assert p.title == "Staff Engineer"
    assert p.location == "Remote"  # default when no location
    assert p.category_hint == "Infra"
    assert p.apply_link == "https://jobs.lever.co/acme/a"
    assert p.job_type_hint == "Full-time remote"


def test_lever_normalize_falls_back_to_all_locations():
    raw = lever_posting("a", "Engineer", location="")
    raw["categories"]["allLocations"] = ["Toronto, ON", "Remote"]
    assert lever.normalize(raw, None).location == "Toronto, ON"


# ---------------------------------------------------------------------
# Ashby
# ---------------------------------------------------------------------
@pytest.mark.parametrize(
    "payload",
    [
        {"jobs": [{"title": "A"}]},
        {"jobPostings": [{"title": "A"}]},
        {"results": {"jobs": [{"title": "A"}]}},
        [{"title": "A"}],
    ],
)
def test_ashby_payload_shapes(payload):
    assert ashby.extract_jobs(payload) == [{"title": "A"}]


def test_ashby_fetch_url():
    url = "https://api.ashbyhq.com/posting-api/job-board/acme"
    fetcher = FakeFetcher({url: {"jobs": [{"title": "A", "jobUrl": "https://jobs.ashbyhq.com/acme/1"}]}})
    res = ashby.fetch_jobs(_target(AtsPlatform.ASHBY), fetcher)
    assert res.ok
    assert fetcher.calls == [url]


def test_ashby_normalize_postal_address_and_remote_flag():
    raw = {
        "title": "ML Researcher",
        "department": "Research",
        "jobUrl": "https://jobs.ashbyhq.com/acme/1",
        "address": {"postalAddress": {"addressLocality": "Berlin", "addressCountry": "Germany"}},
        "employmentType": "FullTime",
        "isRemote": True,
    }
    p = ashby.normalize(raw, "co-1")
    assert p.location == "Berlin, Germany"
    assert p.category_hint == "Research"
    assert p.job_type_hint == "FullTime remote"


@pytest.mark.parametrize(
    ("module", "platform", "url", "body"),
    [
        (greenhouse, AtsPlatform.GREENHOUSE, greenhouse.board_url("acme"), {"meta": {"total": 0}}),
        (greenhouse, AtsPlatform.GREENHOUSE, greenhouse.board_url("acme"), None),
        (lever, AtsPlatform.LEVER, lever.postings_url("acme"), {"message": "Too many requests"}),
        (lever, AtsPlatform.LEVER, lever.postings_url("acme"), {}),
        (ashby, AtsPlatform.ASHBY, ashby.job_board_url("acme"), {"apiVersion": "1"}),
        (ashby, AtsPlatform.ASHBY, ashby.job_board_url("acme"), "not json"),
    ],
)
def test_unrecognized_listing_shape_is_malformed(module, platform, url, body):
    res = module.fetch_jobs(_target(platform), FakeFetcher({url: body}))
    assert res.error is ErrorKind.MALFORMED
    assert res.items == []


# ---------------------------------------------------------------------
# Error payload sniffing
# ---------------------------------------------------------------------
@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ({"error": "Not found"}, True),
        ({"ok": False}, True),
        ({"success": False, "jobs": []}, True),
        ({"message": "Rate limited"}, True),
        ({"jobs": [], "message": "ok"}, False),
        ({"jobs": []}, False),
        ([], False),
    ],
)
def test_looks_like_error_payload(payload, expected):
    assert looks_like_error_payload(payload) is expected


# ---------------------------------------------------------------------
# Convenience fetchers
# ---------------------------------------------------------------------
def test_convenience_fetchers_return_raw_items():
    fetcher = FakeFetcher({
        greenhouse.board_url("acme"): {"jobs": [greenhouse_job(1, "Engineer")]},
        lever.postings_url("acme"): [lever_posting("a", "Engineer")],
        ashby.job_board_url("acme"): {"jobs": [{"title": "Engineer"}]},
    })
    assert len(greenhouse.fetch_greenhouse_jobs("acme", fetcher)) == 1
    assert len(lever.fetch_lever_jobs("acme", fetcher)) == 1
    assert ashby.fetch_ashby_jobs("acme", fetcher) == [{"title": "Engineer"}]


def test_convenience_fetchers_hide_failures_as_empty():
    assert lever.fetch_lever_jobs("ghost", FakeFetcher()) == []
