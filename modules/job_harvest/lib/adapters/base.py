from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from ..http_client import FetchResult, ResilientFetcher
from ..models import AtsPlatform, CompanyTarget, ErrorKind, NormalizedPosting, ScrapeResult

log = logging.getLogger(__name__)

DEFAULT_LOCATION = "Remote"
DEFAULT_CATEGORY_HINT = "Engineering"
DEFAULT_JOB_TYPE_HINT = "full_time"

FetchJobs = Callable[[CompanyTarget, ResilientFetcher], ScrapeResult]
Normalize = Callable[[Mapping[str, Any], "str | None"], NormalizedPosting]


@dataclass(frozen=True)
class SourceAdapter:
    """
    One ATS integration: a fetch function and a normalize function.

    Contract:
      - fetch_jobs(target, fetcher) returns ONE ScrapeResult for the company.
        Zero items with error=None is a valid "no openings" answer; transport
        or shape failures set `error` and never raise.
      - normalize(raw, company_id) is pure and never touches the network.
    """

    platform: AtsPlatform
    fetch_jobs: FetchJobs
    normalize: Normalize


# ---- Shared helpers for adapter modules ---------------------------------------


def first_nonempty(raw: Mapping[str, Any], *keys: str) -> str:
    """First key whose value is a non-blank string (numbers are stringified)."""
    for key in keys:
        val = raw.get(key)
        if isinstance(val, (int, float)) and not isinstance(val, bool):
            val = str(val)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ""


def dicts_only(items: Iterable[Any]) -> list[dict[str, Any]]:
    return [x for x in items if isinstance(x, dict)]


def looks_like_error_payload(payload: Any) -> bool:
    """
    Platforms answer unknown boards with small error objects rather than
    HTTP errors, e.g. {"error": "Not found"} or {"ok": false, "error": ...}.
    """
    if not isinstance(payload, dict):
        return False
    if payload.get("ok") is False or payload.get("success") is False:
        return True
    if any(isinstance(v, list) for v in payload.values()):
        return False
    return bool(payload.get("error") or payload.get("message"))


def result_from_fetch(
    target: CompanyTarget,
    res: FetchResult,
    extract: Callable[[Any], "list[dict[str, Any]] | None"],
    is_error: Callable[[Any], bool] = looks_like_error_payload,
) -> ScrapeResult:
    """
    Translate a FetchResult into a ScrapeResult using the adapter's shape rules.

    `extract` returns None when the body is not a listing shape it knows.
    That is MALFORMED, not an empty board: only a recognized listing may
    retire a company's active postings.
    """
    if not res.ok:
        return ScrapeResult(source=target.source, error=res.error, detail=res.detail)
    payload = res.value
    if is_error(payload):
        return ScrapeResult(
            source=target.source,
            error=ErrorKind.PLATFORM_ERROR,
            detail=str(payload)[:200],
        )
    items = extract(payload)
    if items is None:
        detail = str(payload)[:200]
        log.warning("%s: unrecognized listing shape via %s: %s", target.source, res.via, detail)
        return ScrapeResult(source=target.source, error=ErrorKind.MALFORMED, detail=detail)
    return ScrapeResult(source=target.source, items=items)
