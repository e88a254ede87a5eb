"""
Hosted store on Supabase (PostgREST) using the supabase-py client.

Tables and the apply_link unique constraint must exist before the first
write; `POSTGRES_SCHEMA` holds the DDL (printed by `job-harvest schema`).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timedelta
from typing import Any, TypeVar

from postgrest.exceptions import APIError
from supabase import Client, create_client

from .logging_bridge import error as log_error
from .models import Company, JobRecord
from .store import REPOST_AFTER_DAYS, Store, StoreError, chunked
from .utils import now_iso, to_iso, utcnow

T = TypeVar("T")

PAGE_SIZE = 1000  # PostgREST default max rows per response
UPSERT_CHUNK = 500
IN_CHUNK = 100  # keep `in.(...)` filters well under URL length limits

POSTGRES_SCHEMA = """\
create extension if not exists pgcrypto;

create table if not exists companies (
  id             uuid primary key default gen_random_uuid(),
  name           text not null,
  slug           text not null unique,
  logo_url       text,
  website_url    text,
  ats_platform   text,
  ats_identifier text,
  active         boolean not null default true,
  auto_created   boolean not null default false,
  verified       boolean not null default false,
  last_sync_at   timestamptz,
  created_at     timestamptz not null default now(),
  updated_at     timestamptz not null default now()
);
create index if not exists ix_companies_ats on companies (ats_platform, ats_identifier);

create table if not exists jobs (
  id                 uuid primary key default gen_random_uuid(),
  company_id         uuid not null references companies(id) on delete cascade,
  title              text not null,
  category           text not null,
  location_city      text,
  location_country   text,
  job_type           text not null,
  experience_level   text,
  apply_link         text not null,
  description        text,
  is_active          boolean not null default true,
  created_at         timestamptz not null default now(),
  updated_at         timestamptz not null default now(),
  linkedin_posted_at timestamptz,
  constraint jobs_apply_link_key unique (apply_link)
);
create index if not exists ix_jobs_company_active on jobs (company_id, is_active);
create index if not exists ix_jobs_inactive_updated on jobs (is_active, updated_at);
"""


def create_supabase_store(url: str, key: str) -> SupabaseStore:
    return SupabaseStore(create_client(url, key))


def _escape_like(value: str) -> str:
    # ilike without wildcards == case-insensitive equality
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SupabaseStore(Store):
    def __init__(self, client: Client):
        self.client = client

    # ---- companies ----
    def find_company_by_slug(self, slug: str) -> Company | None:
        rows = self._call(
            "find_company_by_slug",
            lambda: self.client.table("companies").select("*").eq("slug", slug).limit(1).execute().data,
        )
        return _to_company(rows[0]) if rows else None

    def find_company_by_name(self, name: str) -> Company | None:
        rows = self._call(
            "find_company_by_name",
            lambda: self.client.table("companies")
            .select("*")
            .ilike("name", _escape_like(name.strip()))
            .order("created_at")
            .limit(1)
            .execute()
            .data,
        )
        return _to_company(rows[0]) if rows else None

    def find_company_by_ats(self, platform: str, identifier: str) -> Company | None:
        rows = self._call(
            "find_company_by_ats",
            lambda: self.client.table("companies")
            .select("*")
            .eq("ats_platform", platform)
            .eq("ats_identifier", identifier)
            .order("created_at")
            .limit(1)
            .execute()
            .data,
        )
        return _to_company(rows[0]) if rows else None

    def insert_company(self, company: Company) -> Company:
        row = {
            "id": company.id,
            "name": company.name,
            "slug": company.slug,
            "logo_url": company.logo_url,
            "website_url": company.website_url,
            "ats_platform": company.ats_platform,
            "ats_identifier": company.ats_identifier,
            "active": company.active,
            "auto_created": company.auto_created,
            "verified": company.verified,
        }
        self._call(
            "insert_company",
            lambda: self.client.table("companies")
            .upsert(row, on_conflict="slug", ignore_duplicates=True)
            .execute(),
        )
        stored = self.find_company_by_slug(company.slug)
        if stored is None:
            raise StoreError(f"company {company.slug!r} missing right after insert")
        return stored

    def touch_company(self, company_id: str) -> None:
        ts = now_iso()
        self._call(
            "touch_company",
            lambda: self.client.table("companies")
            .update({"last_sync_at": ts, "updated_at": ts})
            .eq("id", company_id)
            .execute(),
        )

    def list_companies(self) -> list[Company]:
        rows = self._paged("list_companies", lambda q: q.select("*").order("name"), "companies")
        return [_to_company(r) for r in rows]

    def active_companies(self) -> list[Company]:
        rows = self._paged(
            "active_companies",
            lambda q: q.select("*").eq("active", True).order("name"),
            "companies",
        )
        return [_to_company(r) for r in rows]

    # ---- jobs ----
    def upsert_jobs(self, records: Sequence[JobRecord]) -> int:
        if not records:
            return 0
        ts = now_iso()
        rows = [{**r.to_row(), "updated_at": ts} for r in records]
        written = 0
        for chunk in chunked(rows, UPSERT_CHUNK):
            payload = list(chunk)
            self._call(
                "upsert_jobs",
                lambda payload=payload: self.client.table("jobs")
                .upsert(payload, on_conflict="apply_link")
                .execute(),
            )
            written += len(payload)
        return written

    def active_apply_links(self, company_id: str) -> set[str]:
        rows = self._paged(
            "active_apply_links",
            lambda q: q.select("apply_link").eq("company_id", company_id).eq("is_active", True).order("id"),
            "jobs",
        )
        return {r["apply_link"] for r in rows if r.get("apply_link")}

    def mark_inactive(self, company_id: str, apply_links: Iterable[str]) -> int:
        links = sorted(set(apply_links))
        ts = now_iso()
        changed = 0
        for chunk in chunked(links, IN_CHUNK):
            batch = list(chunk)
            data = self._call(
                "mark_inactive",
                lambda batch=batch: self.client.table("jobs")
                .update({"is_active": False, "updated_at": ts})
                .eq("company_id", company_id)
                .eq("is_active", True)
                .in_("apply_link", batch)
                .execute()
                .data,
            )
            changed += len(data or [])
        return changed

    def purge_inactive(self, older_than: datetime) -> int:
        data = self._call(
            "purge_inactive",
            lambda: self.client.table("jobs")
            .delete()
            .eq("is_active", False)
            .lt("updated_at", to_iso(older_than))
            .execute()
            .data,
        )
        return len(data or [])

    def get_job(self, apply_link: str) -> dict[str, Any] | None:
        rows = self._call(
            "get_job",
            lambda: self.client.table("jobs").select("*").eq("apply_link", apply_link).limit(1).execute().data,
        )
        return rows[0] if rows else None

    def active_jobs(self) -> list[dict[str, Any]]:
        return self._paged(
            "active_jobs",
            lambda q: q.select("id, company_id, title, category, apply_link, updated_at")
            .eq("is_active", True)
            .order("created_at", desc=True),
            "jobs",
        )

    # ---- consumers ----
    def unposted_jobs(self, limit: int = 10, repost_after_days: int = REPOST_AFTER_DAYS) -> list[dict[str, Any]]:
        cutoff = to_iso(utcnow() - timedelta(days=repost_after_days))
        return self._call(
            "unposted_jobs",
            lambda: self.client.table("jobs")
            .select("*, companies(name, slug)")
            .eq("is_active", True)
            .or_(f"linkedin_posted_at.is.null,linkedin_posted_at.lt.{cutoff}")
            .order("created_at", desc=True)
            .limit(int(limit))
            .execute()
            .data,
        ) or []

    def mark_posted(self, job_ids: Iterable[str]) -> int:
        ids = sorted(set(job_ids))
        ts = now_iso()
        changed = 0
        for chunk in chunked(ids, IN_CHUNK):
            batch = list(chunk)
            data = self._call(
                "mark_posted",
                lambda batch=batch: self.client.table("jobs")
                .update({"linkedin_posted_at": ts})
                .in_("id", batch)
                .execute()
                .data,
            )
            changed += len(data or [])
        return changed

    # ---- internals ----
    def _paged(self, op: str, build: Callable[[Any], Any], table: str) -> list[dict[str, Any]]:
        """Read every row of a query using .range() pages."""
        out: list[dict[str, Any]] = []
        start = 0
        while True:
            end = start + PAGE_SIZE - 1
            page = self._call(op, lambda s=start, e=end: build(self.client.table(table)).range(s, e).execute().data)
            page = page or []
            out.extend(page)
            if len(page) < PAGE_SIZE:
                return out
            start += PAGE_SIZE

    def _call(self, op: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except APIError as e:
            detail = {"code": e.code, "message": e.message, "details": e.details, "hint": e.hint}
            log_error({"component": "job_harvest.supabase_store", "op": op, "error": detail})
            raise StoreError(f"{op} failed: {e.message}") from e
        except StoreError:
            raise
        except Exception as e:
            log_error({"component": "job_harvest.supabase_store", "op": op, "error": repr(e)})
            raise StoreError(f"{op} failed: {e!r}") from e


def _to_company(row: dict[str, Any]) -> Company:
    return Company(
        id=str(row["id"]),
        name=row.get("name") or "",
        slug=row.get("slug") or "",
        ats_platform=row.get("ats_platform"),
        ats_identifier=row.get("ats_identifier"),
        logo_url=row.get("logo_url"),
        website_url=row.get("website_url"),
        active=bool(row.get("active", True)),
        auto_created=bool(row.get("auto_created", False)),
        verified=bool(row.get("verified", False)),
        last_sync_at=row.get("last_sync_at"),
    )
