# tests/test_store.py
from datetime import timedelta

import pytest
from freezegun import freeze_time

from modules.job_harvest.lib.models import Company, ExperienceLevel, JobCategory, JobRecord, JobType
from modules.job_harvest.lib.store import SqliteStore, StoreError
from modules.job_harvest.lib.utils import utcnow


def _company(store, slug="acme", cid="co-1"):
    return store.insert_company(Company(id=cid, name=slug.title(), slug=slug))


def _job(link, *, company_id="co-1", title="Engineer", active=True):
    return JobRecord(
        company_id=company_id,
        title=title,
        category=JobCategory.IT,
        location_city="Remote",
        location_country="Global",
        job_type=JobType.REMOTE,
        experience_level=ExperienceLevel.MID,
        apply_link=link,
        description="",
        is_active=active,
    )


# ---------------------------------------------------------------------
# Companies
# ---------------------------------------------------------------------
def test_insert_company_is_idempotent_on_slug(store):
    first = _company(store, cid="co-1")
    second = store.insert_company(Company(id="co-2", name="ACME", slug="acme"))
    assert second.id == first.id == "co-1"
    assert len(store.list_companies()) == 1


def test_company_lookups(store):
    store.insert_company(Company(id="co-1", name="Scale AI", slug="scale-ai", ats_platform="ashby", ats_identifier="scale"))
    assert store.find_company_by_slug("scale-ai").id == "co-1"
    assert store.find_company_by_name("scale ai").id == "co-1"
    assert store.find_company_by_ats("ashby", "scale").id == "co-1"
    assert store.find_company_by_ats("lever", "scale") is None


def test_touch_company_stamps_last_sync(store, frozen_utc):
    _company(store)
    store.touch_company("co-1")
    assert store.find_company_by_slug("acme").last_sync_at == "2025-01-01T00:00:00.000000Z"


def test_active_companies_excludes_inactive(store):
    _company(store, "acme", "co-1")
    store.insert_company(Company(id="co-2", name="Old", slug="old", active=False))
    assert [c.id for c in store.active_companies()] == ["co-1"]


# ---------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------
def test_upsert_dedupes_on_apply_link(store):
    _company(store)
    store.upsert_jobs([_job("https://x/1"), _job("https://x/2")])
    store.upsert_jobs([_job("https://x/1", title="Senior Engineer")])

    assert store.count_jobs() == 2
    assert store.get_job("https://x/1")["title"] == "Senior Engineer"


def test_upsert_reactivates_a_reposted_job(store):
    _company(store)
    store.upsert_jobs([_job("https://x/1")])
    store.mark_inactive("co-1", ["https://x/1"])
    assert store.get_job("https://x/1")["is_active"] is False

    store.upsert_jobs([_job("https://x/1")])
    assert store.get_job("https://x/1")["is_active"] is True


def test_upsert_requires_known_company(store):
    with pytest.raises(StoreError):
        store.upsert_jobs([_job("https://x/1", company_id="missing")])


def test_active_apply_links_and_mark_inactive(store):
    _company(store, "acme", "co-1")
    _company(store, "other", "co-2")
    store.upsert_jobs([_job("https://x/1"), _job("https://x/2"), _job("https://y/1", company_id="co-2")])

    assert store.active_apply_links("co-1") == {"https://x/1", "https://x/2"}

    # links of another company are never touched
    changed = store.mark_inactive("co-1", ["https://x/2", "https://y/1"])
    assert changed == 1
    assert store.active_apply_links("co-1") == {"https://x/1"}
    assert store.active_apply_links("co-2") == {"https://y/1"}
    assert store.count_jobs(active=False) == 1


def test_mark_inactive_with_nothing_to_do(store):
    assert store.mark_inactive("co-1", []) == 0


def test_purge_respects_retention_window(store):
    _company(store)
    with freeze_time("2025-01-01T00:00:00Z") as frozen:
        store.upsert_jobs([_job("https://x/old"), _job("https://x/recent"), _job("https://x/live")])
        store.mark_inactive("co-1", ["https://x/old"])

        frozen.tick(timedelta(days=2))
        store.mark_inactive("co-1", ["https://x/recent"])

        # old: inactive 31 days; recent: inactive 29 days
        frozen.tick(timedelta(days=29))
        deleted = store.purge_inactive(utcnow() - timedelta(days=30))

    assert deleted == 1
    assert store.get_job("https://x/old") is None
    assert store.get_job("https://x/recent") is not None
    assert store.get_job("https://x/live")["is_active"] is True


def test_active_jobs_newest_first(store):
    _company(store)
    with freeze_time("2025-01-01T00:00:00Z") as frozen:
        store.upsert_jobs([_job("https://x/1")])
        frozen.tick(timedelta(hours=1))
        store.upsert_jobs([_job("https://x/2")])
    assert [j["apply_link"] for j in store.active_jobs()] == ["https://x/2", "https://x/1"]


# ---------------------------------------------------------------------
# Consumers
# ---------------------------------------------------------------------
def test_unposted_and_mark_posted(store):
    _company(store)
    with freeze_time("2025-01-01T00:00:00Z") as frozen:
        store.upsert_jobs([_job("https://x/1"), _job("https://x/2")])
        batch = store.unposted_jobs(limit=10)
        assert {j["apply_link"] for j in batch} == {"https://x/1", "https://x/2"}

        posted_id = store.get_job("https://x/1")["id"]
        assert store.mark_posted([posted_id]) == 1
        assert [j["apply_link"] for j in store.unposted_jobs()] == ["https://x/2"]

        # eligible again once the repost window has passed
        frozen.tick(timedelta(days=31))
        assert {j["apply_link"] for j in store.unposted_jobs()} == {"https://x/1", "https://x/2"}


def test_reopening_store_keeps_data(sqlite_path):
    first = SqliteStore(sqlite_path)
    _company(first)
    first.upsert_jobs([_job("https://x/1")])

    second = SqliteStore(sqlite_path)
    assert second.count_jobs(active=True) == 1
