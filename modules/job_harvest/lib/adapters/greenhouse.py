# modules/job_harvest/lib/adapters/greenhouse.py
from __future__ import annotations

import html
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

BOARD_URL = "https://boards-api.greenhouse.io/v1/boards/{token}/jobs?content=true"


def board_url(token: str) -> str:
    return BOARD_URL.format(token=token.strip())


def extract_jobs(payload: Any) -> list[dict[str, Any]] | None:
    """
    Board listing shapes:
      { jobs: [ {...}, ... ], meta: {...} }
      [ {...}, ... ]                       # seen through some proxies
    None for anything else.
    """
    if isinstance(payload, dict):
        jobs = payload.get("jobs")
        return dicts_only(jobs) if isinstance(jobs, list) else None
    if isinstance(payload, list):
        return dicts_only(payload)
    return None


def fetch_jobs(target: CompanyTarget, fetcher: ResilientFetcher) -> ScrapeResult:
    res = fetcher.fetch_json(board_url(target.identifier))
    return result_from_fetch(target, res, extract_jobs)


def fetch_greenhouse_jobs(token: str, fetcher: ResilientFetcher | None = None) -> list[dict[str, Any]]:
    """Raw postings for a board token; [] when the board cannot be fetched."""
    target = CompanyTarget(name=token, platform=AtsPlatform.GREENHOUSE, identifier=token)
    return fetch_jobs(target, fetcher or ResilientFetcher()).items


def normalize(raw: Mapping[str, Any], company_id: str | None) -> NormalizedPosting:
    location = raw.get("location")
    if isinstance(location, Mapping):
        location_name = first_nonempty(location, "name")
    else:
        location_name = str(location or "").strip()

    department = ""
    departments = raw.get("departments")
    if isinstance(departments, list) and departments and isinstance(departments[0], Mapping):
        department = first_nonempty(departments[0], "name")

    # content arrives entity-escaped ("&lt;p&gt;...")
    content = first_nonempty(raw, "content", "description")
    description = html.unescape(content) if content else ""

    return NormalizedPosting(
        title=first_nonempty(raw, "title", "name"),
        location=location_name or DEFAULT_LOCATION,
        category_hint=department or DEFAULT_CATEGORY_HINT,
        apply_link=first_nonempty(raw, "absolute_url", "url", "apply_url", "hosted_url"),
        description=description,
        job_type_hint=_employment_type(raw) or DEFAULT_JOB_TYPE_HINT,
        company_id=company_id,
    )


def _employment_type(raw: Mapping[str, Any]) -> str:
    metadata = raw.get("metadata")
    if not isinstance(metadata, list):
        return ""
    for entry in metadata:
        if isinstance(entry, Mapping) and str(entry.get("name") or "").strip().lower() == "employment type":
            value = entry.get("value")
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value if v)
            return str(value or "").strip()
    return ""


ADAPTER = register(SourceAdapter(platform=AtsPlatform.GREENHOUSE, fetch_jobs=fetch_jobs, normalize=normalize))
