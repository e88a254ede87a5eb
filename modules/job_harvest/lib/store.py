"""
Persistent backing for companies and postings.

`Store` is the interface the harvest needs; `SqliteStore` is the local
implementation (also used by tests), `supabase_store.SupabaseStore` the
hosted one. Every mutation is an idempotent upsert or a conditional update
keyed by apply_link or company id, so repeated runs converge.
"""

from __future__ import annotations

import contextlib
import os
import sqlite3
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime, timedelta
from typing import Any, NoReturn

from .logging_bridge import error as log_error
from .models import Company, JobRecord
from .utils import now_iso, to_iso, utcnow

REPOST_AFTER_DAYS = 30
_IN_CHUNK = 400  # stay well under SQLITE_MAX_VARIABLE_NUMBER


class StoreError(RuntimeError):
    """Raised when the backing store rejects or cannot complete an operation."""


# ---- Interface ---------------------------------------------------------------


class Store(ABC):
    # companies
    @abstractmethod
    def find_company_by_slug(self, slug: str) -> Company | None: ...

    @abstractmethod
    def find_company_by_name(self, name: str) -> Company | None:
        """Case-insensitive exact match on display name."""

    @abstractmethod
    def find_company_by_ats(self, platform: str, identifier: str) -> Company | None: ...

    @abstractmethod
    def insert_company(self, company: Company) -> Company:
        """
        Insert unless the slug already exists; return the stored row either
        way (compare ids to learn whether this call created it).
        """

    @abstractmethod
    def touch_company(self, company_id: str) -> None:
        """Stamp last_sync_at."""

    @abstractmethod
    def list_companies(self) -> list[Company]: ...

    @abstractmethod
    def active_companies(self) -> list[Company]: ...

    # jobs
    @abstractmethod
    def upsert_jobs(self, records: Sequence[JobRecord]) -> int:
        """Insert-or-update keyed on apply_link; returns rows written."""

    @abstractmethod
    def active_apply_links(self, company_id: str) -> set[str]: ...

    @abstractmethod
    def mark_inactive(self, company_id: str, apply_links: Iterable[str]) -> int:
        """Flip the given active postings of one company to is_active=false."""

    @abstractmethod
    def purge_inactive(self, older_than: datetime) -> int:
        """Delete inactive postings last updated before `older_than`."""

    @abstractmethod
    def get_job(self, apply_link: str) -> dict[str, Any] | None: ...

    @abstractmethod
    def active_jobs(self) -> list[dict[str, Any]]: ...

    # consumers
    @abstractmethod
    def unposted_jobs(self, limit: int = 10, repost_after_days: int = REPOST_AFTER_DAYS) -> list[dict[str, Any]]:
        """Active postings never shared, or last shared more than `repost_after_days` ago (newest first)."""

    @abstractmethod
    def mark_posted(self, job_ids: Iterable[str]) -> int: ...

    def close(self) -> None:  # noqa: B027
        """Release resources; default no-op."""


def new_id() -> str:
    return str(uuid.uuid4())


def chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


# ---- SQLite implementation ----------------------------------------------------


class SqliteStore(Store):
    """
    Local store on a single SQLite file.

    Every call opens its own connection (autocommit; explicit BEGIN IMMEDIATE
    for multi-row writes) so the store can be shared across worker threads.
    """

    def __init__(self, sqlite_path: str):
        self.sqlite_path = sqlite_path
        self.init_db()

    # ---- schema ----
    def init_db(self) -> None:
        """
        Ensure the SQLite database and schema exist.
        Safe to call multiple times.
        """
        _ensure_dir(self.sqlite_path)
        with self._conn() as conn:
            _ensure_schema(conn)

    # ---- companies ----
    def find_company_by_slug(self, slug: str) -> Company | None:
        return self._one_company("SELECT * FROM companies WHERE slug = ? LIMIT 1", (slug,))

    def find_company_by_name(self, name: str) -> Company | None:
        return self._one_company(
            "SELECT * FROM companies WHERE name = ? COLLATE NOCASE ORDER BY created_at LIMIT 1",
            (name.strip(),),
        )

    def find_company_by_ats(self, platform: str, identifier: str) -> Company | None:
        return self._one_company(
            "SELECT * FROM companies WHERE ats_platform = ? AND ats_identifier = ? ORDER BY created_at LIMIT 1",
            (platform, identifier),
        )

    def insert_company(self, company: Company) -> Company:
        ts = now_iso()
        self._execute(
            "insert_company",
            """
            INSERT INTO companies (id, name, slug, logo_url, website_url, ats_platform, ats_identifier,
                                   active, auto_created, verified, last_sync_at, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(slug) DO NOTHING
            """,
            (
                company.id,
                company.name,
                company.slug,
                company.logo_url,
                company.website_url,
                company.ats_platform,
                company.ats_identifier,
                int(company.active),
                int(company.auto_created),
                int(company.verified),
                company.last_sync_at,
                ts,
                ts,
            ),
        )
        stored = self.find_company_by_slug(company.slug)
        if stored is None:
            raise StoreError(f"company {company.slug!r} missing right after insert")
        return stored

    def touch_company(self, company_id: str) -> None:
        ts = now_iso()
        self._execute(
            "touch_company",
            "UPDATE companies SET last_sync_at = ?, updated_at = ? WHERE id = ?",
            (ts, ts, company_id),
        )

    def list_companies(self) -> list[Company]:
        return [_row_to_company(r) for r in self._query("SELECT * FROM companies ORDER BY name COLLATE NOCASE")]

    def active_companies(self) -> list[Company]:
        return [
            _row_to_company(r)
            for r in self._query("SELECT * FROM companies WHERE active = 1 ORDER BY name COLLATE NOCASE")
        ]

    # ---- jobs ----
    def upsert_jobs(self, records: Sequence[JobRecord]) -> int:
        if not records:
            return 0
        ts = now_iso()
        rows = [
            (
                new_id(),
                r.company_id,
                r.title,
                r.category.value,
                r.location_city,
                r.location_country,
                r.job_type.value,
                r.experience_level.value if r.experience_level else None,
                r.apply_link,
                r.description,
                int(r.is_active),
                ts,
                ts,
            )
            for r in records
        ]
        try:
            with self._conn() as conn:
                cur = conn.cursor()
                cur.execute("BEGIN IMMEDIATE")
                cur.executemany(
                    """
                    INSERT INTO jobs (id, company_id, title, category, location_city, location_country,
                                      job_type, experience_level, apply_link, description, is_active,
                                      created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(apply_link) DO UPDATE SET
                      company_id = excluded.company_id,
                      title = excluded.title,
                      category = excluded.category,
                      location_city = excluded.location_city,
                      location_country = excluded.location_country,
                      job_type = excluded.job_type,
                      experience_level = excluded.experience_level,
                      description = excluded.description,
                      is_active = excluded.is_active,
                      updated_at = excluded.updated_at
                    """,
                    rows,
                )
                conn.commit()
        except sqlite3.Error as e:
            self._fail("upsert_jobs", e, count=len(rows))
        return len(rows)

    def active_apply_links(self, company_id: str) -> set[str]:
        rows = self._query(
            "SELECT apply_link FROM jobs WHERE company_id = ? AND is_active = 1",
            (company_id,),
        )
        return {r["apply_link"] for r in rows}

    def mark_inactive(self, company_id: str, apply_links: Iterable[str]) -> int:
        links = sorted(set(apply_links))
        if not links:
            return 0
        ts = now_iso()
        changed = 0
        try:
            with self._conn() as conn:
                cur = conn.cursor()
                cur.execute("BEGIN IMMEDIATE")
                for chunk in chunked(links, _IN_CHUNK):
                    marks = ",".join("?" for _ in chunk)
                    cur.execute(
                        f"UPDATE jobs SET is_active = 0, updated_at = ? "
                        f"WHERE company_id = ? AND is_active = 1 AND apply_link IN ({marks})",
                        (ts, company_id, *chunk),
                    )
                    changed += cur.rowcount
                conn.commit()
        except sqlite3.Error as e:
            self._fail("mark_inactive", e, company_id=company_id)
        return changed

    def purge_inactive(self, older_than: datetime) -> int:
        return self._execute(
            "purge_inactive",
            "DELETE FROM jobs WHERE is_active = 0 AND updated_at < ?",
            (to_iso(older_than),),
        )

    def get_job(self, apply_link: str) -> dict[str, Any] | None:
        rows = self._query("SELECT * FROM jobs WHERE apply_link = ?", (apply_link,))
        return _row_to_job(rows[0]) if rows else None

    def active_jobs(self) -> list[dict[str, Any]]:
        return [
            _row_to_job(r) for r in self._query("SELECT * FROM jobs WHERE is_active = 1 ORDER BY created_at DESC")
        ]

    def count_jobs(self, *, active: bool | None = None) -> int:
        if active is None:
            rows = self._query("SELECT COUNT(*) AS n FROM jobs")
        else:
            rows = self._query("SELECT COUNT(*) AS n FROM jobs WHERE is_active = ?", (int(active),))
        return int(rows[0]["n"] or 0)

    # ---- consumers ----
    def unposted_jobs(self, limit: int = 10, repost_after_days: int = REPOST_AFTER_DAYS) -> list[dict[str, Any]]:
        cutoff = to_iso(utcnow() - timedelta(days=repost_after_days))
        rows = self._query(
            """
            SELECT * FROM jobs
            WHERE is_active = 1 AND (linkedin_posted_at IS NULL OR linkedin_posted_at < ?)
            ORDER BY created_at DESC
            LIMIT ?
            """,
            (cutoff, int(limit)),
        )
        return [_row_to_job(r) for r in rows]

    def mark_posted(self, job_ids: Iterable[str]) -> int:
        ids = sorted(set(job_ids))
        if not ids:
            return 0
        ts = now_iso()
        changed = 0
        for chunk in chunked(ids, _IN_CHUNK):
            marks = ",".join("?" for _ in chunk)
            changed += self._execute(
                "mark_posted",
                f"UPDATE jobs SET linkedin_posted_at = ? WHERE id IN ({marks})",
                (ts, *chunk),
            )
        return changed

    # ---- internals ----
    @contextlib.contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = _connect(self.sqlite_path)
        try:
            _apply_pragmas(conn)
            yield conn
        finally:
            conn.close()

    def _query(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        try:
            with self._conn() as conn:
                return list(conn.execute(sql, params).fetchall())
        except sqlite3.Error as e:
            self._fail("query", e, sql=sql.split()[0])

    def _execute(self, op: str, sql: str, params: Sequence[Any] = ()) -> int:
        """Run one statement; returns the affected row count."""
        try:
            with self._conn() as conn:
                return conn.execute(sql, params).rowcount
        except sqlite3.Error as e:
            self._fail(op, e)

    def _one_company(self, sql: str, params: Sequence[Any]) -> Company | None:
        rows = self._query(sql, params)
        return _row_to_company(rows[0]) if rows else None

    def _fail(self, op: str, exc: Exception, **extra: Any) -> NoReturn:
        log_error({
            "component": "job_harvest.store",
            "op": op,
            "sqlite_path": self.sqlite_path,
            "error": repr(exc),
            **extra,
        })
        raise StoreError(f"{op} failed: {exc}") from exc


# ---- Internal utilities -----------------------------------------------------


def _ensure_dir(sqlite_path: str) -> None:
    d = os.path.dirname(os.path.abspath(sqlite_path)) or "."
    os.makedirs(d, exist_ok=True)


def _connect(sqlite_path: str) -> sqlite3.Connection:
    # isolation_level=None gives autocommit mode; multi-row writes use BEGIN IMMEDIATE.
    conn = sqlite3.connect(sqlite_path, timeout=30.0, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA temp_store=MEMORY;")
    conn.execute("PRAGMA cache_size=-8000;")  # approx 8MB cache


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS companies (
          id             TEXT PRIMARY KEY,
          name           TEXT NOT NULL,
          slug           TEXT NOT NULL UNIQUE,
          logo_url       TEXT,
          website_url    TEXT,
          ats_platform   TEXT,
          ats_identifier TEXT,
          active         INTEGER NOT NULL DEFAULT 1,
          auto_created   INTEGER NOT NULL DEFAULT 0,
          verified       INTEGER NOT NULL DEFAULT 0,
          last_sync_at   TEXT,
          created_at     TEXT NOT NULL,
          updated_at     TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS ix_companies_ats ON companies (ats_platform, ats_identifier);

        CREATE TABLE IF NOT EXISTS jobs (
          id                 TEXT PRIMARY KEY,
          company_id         TEXT NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
          title              TEXT NOT NULL,
          category           TEXT NOT NULL,
          location_city      TEXT,
          location_country   TEXT,
          job_type           TEXT NOT NULL,
          experience_level   TEXT,
          apply_link         TEXT NOT NULL UNIQUE,
          description        TEXT,
          is_active          INTEGER NOT NULL DEFAULT 1,
          created_at         TEXT NOT NULL,
          updated_at         TEXT NOT NULL,
          linkedin_posted_at TEXT
        );
        CREATE INDEX IF NOT EXISTS ix_jobs_company_active ON jobs (company_id, is_active);
        CREATE INDEX IF NOT EXISTS ix_jobs_inactive_updated ON jobs (is_active, updated_at);
        """
    )


def _row_to_company(row: sqlite3.Row) -> Company:
    return Company(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        ats_platform=row["ats_platform"],
        ats_identifier=row["ats_identifier"],
        logo_url=row["logo_url"],
        website_url=row["website_url"],
        active=bool(row["active"]),
        auto_created=bool(row["auto_created"]),
        verified=bool(row["verified"]),
        last_sync_at=row["last_sync_at"],
    )


def _row_to_job(row: sqlite3.Row) -> dict[str, Any]:
    out = dict(row)
    out["is_active"] = bool(out.get("is_active"))
    return out
