# modules/job_harvest/lib/adapters/lever.py
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

POSTINGS_URL = "https://api.lever.co/v0/postings/{company}?mode=json"


def postings_url(company: str) -> str:
    return POSTINGS_URL.format(company=company.strip())


def extract_jobs(payload: Any) -> list[dict[str, Any]] | None:
    """
    Lever answers with a BARE array: [ {...}, {...} ].
    Wrapped variants ({data: [...]}, {postings: [...]}) are accepted too.
    Anything else (an object with no list, null) returns None.
    """
    if isinstance(payload, list):
        return dicts_only(payload)
    if isinstance(payload, dict):
        for key in ("data", "postings", "jobs"):
            val = payload.get(key)
            if isinstance(val, list):
                return dicts_only(val)
    return None


def is_error_payload(payload: Any) -> bool:
    # unknown company: {"ok": false, "error": "Document not found"}
    if not isinstance(payload, dict):
        return False
    if payload.get("ok") is False:
        return True
    return bool(payload.get("error")) and not extract_jobs(payload)


def fetch_jobs(target: CompanyTarget, fetcher: ResilientFetcher) -> ScrapeResult:
    res = fetcher.fetch_json(postings_url(target.identifier))
    return result_from_fetch(target, res, extract_jobs, is_error_payload)


def fetch_lever_jobs(company: str, fetcher: ResilientFetcher | None = None) -> list[dict[str, Any]]:
    """Raw postings for a Lever company handle; [] when it cannot be fetched."""
    target = CompanyTarget(name=company, platform=AtsPlatform.LEVER, identifier=company)
    return fetch_jobs(target, fetcher or ResilientFetcher()).items


def normalize(raw: Mapping[str, Any], company_id: str | None) -> NormalizedPosting:
    categories = raw.get("categories")
    if not isinstance(categories, Mapping):
        categories = {}

    location = first_nonempty(categories, "location")
    if not location:
        all_locations = categories.get("allLocations")
        if isinstance(all_locations, list) and all_locations:
            location = str(all_locations[0] or "").strip()

    # commitment is "Full-time" etc.; workplaceType ("remote", "hybrid") feeds job-type detection
    hint = " ".join(filter(None, (first_nonempty(categories, "commitment"), first_nonempty(raw, "workplaceType"))))

    return NormalizedPosting(
        title=first_nonempty(raw, "text", "title"),
        location=location or DEFAULT_LOCATION,
        category_hint=first_nonempty(categories, "team", "department") or DEFAULT_CATEGORY_HINT,
        apply_link=first_nonempty(raw, "hostedUrl", "applyUrl", "url"),
        description=first_nonempty(raw, "description", "descriptionPlain", "openingPlain"),
        job_type_hint=hint or DEFAULT_JOB_TYPE_HINT,
        company_id=company_id,
    )


ADAPTER = register(SourceAdapter(platform=AtsPlatform.LEVER, fetch_jobs=fetch_jobs, normalize=normalize))
