# modules/job_harvest/lib/adapters/ashby.py
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..http_client import ResilientFetcher
from ..models import AtsPlatform, CompanyTarget, NormalizedPosting, ScrapeResult
from .base import (
    DEFAULT_CATEGORY_HINT,
    DEFAULT_JOB_TYPE_HINT,
    DEFAULT_LOCATION,
    SourceAdapter,
    dicts_only,
    first_nonempty,
    result_from_fetch,
)
from .registry import register

JOB_BOARD_URL = "https://api.ashbyhq.com/posting-api/job-board/{token}"


def job_board_url(token: str) -> str:
    return JOB_BOARD_URL.format(token=token.strip())


def extract_jobs(payload: Any) -> list[dict[str, Any]] | None:
    """
    Posting API shapes:
      { jobs: [...] }            # current
      { jobPostings: [...] }     # older boards
      { results: { jobs: [...] } }
    None for anything else.
    """
    if isinstance(payload, list):
        return dicts_only(payload)
    if not isinstance(payload, dict):
        return None
    for key in ("jobs", "jobPostings"):
        val = payload.get(key)
        if isinstance(val, list):
            return dicts_only(val)
    inner = payload.get("results")
    if isinstance(inner, dict):
        return extract_jobs(inner)
    return None


def fetch_jobs(target: CompanyTarget, fetcher: ResilientFetcher) -> ScrapeResult:
    res = fetcher.fetch_json(job_board_url(target.identifier))
    return result_from_fetch(target, res, extract_jobs)


def fetch_ashby_jobs(token: str, fetcher: ResilientFetcher | None = None) -> list[dict[str, Any]]:
    """Raw postings for an Ashby board token; [] when the board cannot be fetched."""
    target = CompanyTarget(name=token, platform=AtsPlatform.ASHBY, identifier=token)
    return fetch_jobs(target, fetcher or ResilientFetcher()).items


def normalize(raw: Mapping[str, Any], company_id: str | None) -> NormalizedPosting:
    location = first_nonempty(raw, "location", "locationName")
    if not location:
        address = raw.get("address")
        postal = address.get("postalAddress") if isinstance(address, Mapping) else None
        if isinstance(postal, Mapping):
            location = ", ".join(
                p for p in (first_nonempty(postal, "addressLocality"), first_nonempty(postal, "addressCountry")) if p
            )

    hint_parts = [first_nonempty(raw, "employmentType"), first_nonempty(raw, "workplaceType")]
    if raw.get("isRemote") is True:
        hint_parts.append("remote")
    hint = " ".join(p for p in hint_parts if p)

    return NormalizedPosting(
        title=first_nonempty(raw, "title"),
        location=location or DEFAULT_LOCATION,
        category_hint=first_nonempty(raw, "department", "team", "departmentName") or DEFAULT_CATEGORY_HINT,
        apply_link=first_nonempty(raw, "jobUrl", "applyUrl", "externalLink", "url"),
        description=first_nonempty(raw, "descriptionHtml", "description", "descriptionPlain"),
        job_type_hint=hint or DEFAULT_JOB_TYPE_HINT,
        company_id=company_id,
    )


ADAPTER = register(SourceAdapter(platform=AtsPlatform.ASHBY, fetch_jobs=fetch_jobs, normalize=normalize))
