"""
Harvest orchestrator: one pass over the roster.

Per company:
  fetch -> resolve company -> normalize + classify -> upsert
        -> reconcile staleness -> touch last_sync_at -> courtesy delay
        (the delay follows a successful write only)
then one retention purge for the whole store.

Features:
  - Sequential by default; bounded ThreadPoolExecutor when max_workers > 1
  - A company's failure never aborts the run (caught, logged, counted)
  - Cooperative cancellation via threading.Event (between companies and
    between fetch attempts)
  - Dependency injection for testability (store, fetcher, get_adapter, sleep)
  - Structured logging via `logging_bridge`
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import timedelta

from . import logging_bridge
from .adapters.base import SourceAdapter
from .classifier import classify_category, classify_experience, classify_job_type
from .companies import CompanyResolver
from .config import Settings, open_store
from .http_client import HttpClient, ResilientFetcher
from .location import parse_location
from .models import (
    CompanyTarget,
    ErrorKind,
    ExperienceLevel,
    HarvestSummary,
    JobCategory,
    JobRecord,
    NormalizedPosting,
    ScrapeResult,
)
from .store import Store, StoreError
from .utils import utcnow

LOG = logging.getLogger(__name__)

COMPONENT = "job_harvest.engine"


# =============================================================================
# DEFAULT ADAPTER LOOKUP (PRODUCTION)
# =============================================================================
def _default_get_adapter(platform: object) -> SourceAdapter:
    """
    Resolve the adapter from the registry. Only called if no `get_adapter`
    override is provided.
    """
    from .adapters import get as get_adapter_record

    return get_adapter_record(platform)


# =============================================================================
# PER-COMPANY OUTCOME
# =============================================================================
@dataclass
class CompanyOutcome:
    """What one company contributed to the run; merged on the calling thread."""

    source: str
    name: str
    processed: bool = False
    cancelled: bool = False
    skipped: bool = False
    wrote: bool = False
    error: str | None = None
    found: int = 0
    synced: int = 0
    failed: int = 0
    marked_expired: int = 0
    company_created: bool = False
    categories: list[JobCategory] = field(default_factory=list)
    experiences: list[ExperienceLevel | None] = field(default_factory=list)
    dt_us: int = 0


# =============================================================================
# PURE STEP: raw items -> records
# =============================================================================
def build_records(
    adapter: SourceAdapter,
    items: Iterable[dict],
    company_id: str,
) -> list[JobRecord]:
    """
    Normalize, locate and classify raw items. Postings without a title or
    apply link are dropped; a repeated apply link keeps the last occurrence.
    """
    by_link: dict[str, JobRecord] = {}
    for raw in items:
        posting: NormalizedPosting = adapter.normalize(raw, company_id)
        if not posting.title or not posting.apply_link:
            continue
        loc = parse_location(posting.location)
        record = JobRecord(
            company_id=company_id,
            title=posting.title,
            category=classify_category(posting.category_hint, posting.title),
            location_city=loc.city,
            location_country=loc.country,
            job_type=classify_job_type(posting.location, posting.title, posting.job_type_hint),
            experience_level=classify_experience(posting.title, posting.description),
            apply_link=posting.apply_link,
            description=posting.description,
            is_active=True,
        )
        by_link.pop(record.apply_link, None)
        by_link[record.apply_link] = record
    return list(by_link.values())


# =============================================================================
# MAIN ORCHESTRATOR
# =============================================================================
def run_once(
    settings: Settings,
    *,
    store: Store | None = None,
    fetcher: ResilientFetcher | None = None,
    get_adapter: Callable[[object], SourceAdapter] | None = None,
    cancel: threading.Event | None = None,
    sleep: Callable[[float], object] | None = None,
) -> HarvestSummary:
    """
    Run one complete harvest.

    Args:
        settings: validated run configuration (roster, store, pacing).
        store: optional store override; otherwise opened from settings and
            closed on exit.
        fetcher: optional fetch layer override (tests inject fakes).
        get_adapter: optional adapter lookup override.
        cancel: set it to stop between companies; the purge is then skipped.
        sleep: courtesy-delay function; defaults to `cancel.wait`, which
            returns early on cancellation.

    Returns:
        HarvestSummary with counters and distributions for the run.
    """
    start_ns = time.perf_counter_ns()
    cancel = cancel or threading.Event()
    get_adapter_func = get_adapter or _default_get_adapter
    sleep_func = sleep or cancel.wait

    targets = settings.roster()
    summary = HarvestSummary(companies_total=len(targets))

    own_store = store is None
    own_fetcher = fetcher is None
    store = store if store is not None else open_store(settings)
    if fetcher is None:
        fetcher = ResilientFetcher(
            HttpClient(timeout=settings.timeout),
            cancel=cancel,
            use_proxies=settings.use_proxies,
        )
    resolver = CompanyResolver(store)

    logging_bridge.activity({
        "component": COMPONENT,
        "op": "start",
        "backend": settings.backend,
        "companies": len(targets),
        "platforms": sorted({t.platform.value for t in targets}),
        "max_workers": settings.max_workers,
        "skip_network": settings.skip_network,
    })

    # -------------------------------------------------------------------------
    # INNER: one company, end to end
    # -------------------------------------------------------------------------
    def _run_company(target: CompanyTarget) -> CompanyOutcome:
        out = CompanyOutcome(source=target.source, name=target.name)
        if cancel.is_set():
            out.cancelled = True
            return out
        if settings.skip_network:
            out.skipped = True
            return out

        t0 = time.perf_counter_ns()
        try:
            _harvest_company(target, out, store, fetcher, resolver, get_adapter_func)
        except Exception as e:
            # covers unknown platforms (KeyError) and adapter bugs
            out.processed = False
            out.error = repr(e)
            out.failed += 1
            logging_bridge.error({
                "component": COMPONENT,
                "op": "company",
                "source": target.source,
                "company": target.name,
                "error": repr(e),
            })
        out.dt_us = int((time.perf_counter_ns() - t0) // 1000)

        logging_bridge.activity({
            "component": COMPONENT,
            "op": "company",
            "source": target.source,
            "company": target.name,
            "processed": out.processed,
            "cancelled": out.cancelled,
            "error": out.error,
            "found": out.found,
            "synced": out.synced,
            "marked_expired": out.marked_expired,
            "company_created": out.company_created,
            "duration_us": out.dt_us,
        })

        if out.wrote and settings.delay_seconds > 0 and not cancel.is_set():
            sleep_func(settings.delay_seconds)
        return out

    # -------------------------------------------------------------------------
    # EXECUTE (sequential, or a bounded pool)
    # -------------------------------------------------------------------------
    outcomes: list[CompanyOutcome] = []
    try:
        if settings.max_workers <= 1:
            for target in targets:
                outcomes.append(_run_company(target))
        else:
            with ThreadPoolExecutor(max_workers=min(len(targets) or 1, settings.max_workers)) as pool:
                futures = {pool.submit(_run_company, t): t for t in targets}
                for fut in as_completed(futures):
                    target = futures[fut]
                    try:
                        outcomes.append(fut.result())
                    except Exception as e:
                        logging_bridge.error({
                            "component": COMPONENT,
                            "op": "company_future",
                            "source": target.source,
                            "error": repr(e),
                        })
                        outcomes.append(CompanyOutcome(source=target.source, name=target.name, error=repr(e), failed=1))

        # ---------------------------------------------------------------------
        # MERGE
        # ---------------------------------------------------------------------
        for out in outcomes:
            _merge(summary, out)
        summary.cancelled = cancel.is_set()

        # ---------------------------------------------------------------------
        # RETENTION PURGE (once per run, skipped when cancelled)
        # ---------------------------------------------------------------------
        if summary.cancelled:
            logging_bridge.activity({"component": COMPONENT, "op": "purge_skipped", "reason": "cancelled"})
        else:
            t0 = time.perf_counter_ns()
            cutoff = utcnow() - timedelta(days=settings.retention_days)
            try:
                summary.deleted = store.purge_inactive(cutoff)
            except StoreError as e:
                logging_bridge.error({"component": COMPONENT, "op": "purge", "error": str(e)})
            summary.durations_us["purge"] = int((time.perf_counter_ns() - t0) // 1000)
    finally:
        if own_fetcher:
            fetcher.close()
        if own_store:
            store.close()

    # -------------------------------------------------------------------------
    # SUMMARY LOG (always emitted)
    # -------------------------------------------------------------------------
    summary.durations_us["_total_us"] = int((time.perf_counter_ns() - start_ns) // 1000)
    logging_bridge.activity({"component": COMPONENT, "op": "summary", **summary.as_dict()})
    return summary


# =============================================================================
# STEPS
# =============================================================================
def _harvest_company(
    target: CompanyTarget,
    out: CompanyOutcome,
    store: Store,
    fetcher: ResilientFetcher,
    resolver: CompanyResolver,
    get_adapter: Callable[[object], SourceAdapter],
) -> None:
    adapter = get_adapter(target.platform)

    # 1. fetch
    result: ScrapeResult = adapter.fetch_jobs(target, fetcher)
    if result.error is ErrorKind.CANCELLED:
        out.cancelled = True
        return
    if not result.ok:
        out.error = f"{result.error.value}: {result.detail}" if result.error else result.detail
        LOG.warning("fetch failed for %s: %s", target.source, out.error)
        return
    out.found = len(result.items)

    # 2. resolve (an empty board never creates a company)
    if result.items:
        resolution = resolver.resolve(target.name, target.platform.value, target.identifier)
    else:
        resolution = resolver.lookup(target.name, target.platform.value, target.identifier)
    if resolution.error:
        out.error = f"company resolution: {resolution.error}"
        out.failed += out.found
        return
    out.company_created = resolution.was_created
    company_id = resolution.id
    if company_id is None:
        # unknown company with zero postings: nothing to reconcile
        out.processed = True
        return

    # 3. normalize + classify
    records = build_records(adapter, result.items, company_id)

    # 4. upsert
    try:
        out.synced = store.upsert_jobs(records)
    except StoreError as e:
        out.error = f"upsert: {e}"
        out.failed += len(records)
        return
    out.wrote = True
    for r in records:
        out.categories.append(r.category)
        out.experiences.append(r.experience_level)

    # 5. reconcile: anything active for this company that we did not just write
    current = {r.apply_link for r in records}
    stale = store.active_apply_links(company_id) - current
    if stale:
        out.marked_expired = store.mark_inactive(company_id, stale)

    # 6. touch
    store.touch_company(company_id)
    out.processed = True


def _merge(summary: HarvestSummary, out: CompanyOutcome) -> None:
    if out.cancelled or out.skipped:
        return
    summary.found += out.found
    summary.synced += out.synced
    summary.failed += out.failed
    summary.marked_expired += out.marked_expired
    for c in out.categories:
        summary.count_category(c)
    for lvl in out.experiences:
        summary.count_experience(lvl)
    summary.durations_us[out.source] = out.dt_us
    if out.processed:
        summary.companies_processed += 1
    else:
        summary.companies_failed += 1
        summary.errors_by_source[out.source] = out.error or "unknown error"
