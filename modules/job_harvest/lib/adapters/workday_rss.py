# modules/job_harvest/lib/adapters/workday_rss.py
"""
Workday public RSS feeds: https://<tenant>.wdN.myworkdayjobs.com/<site>/rss

The feed is loose XML (unescaped ampersands are common), so items and
fields are pulled with tag-scoped regexes rather than an XML parser.
CDATA content is preferred when present.
"""

from __future__ import annotations

import html
import logging
import re
from collections.abc import Mapping
from typing import Any

from ..http_client import BROWSER_USER_AGENT, XML_ACCEPT, ResilientFetcher
from ..models import AtsPlatform, CompanyTarget, ErrorKind, NormalizedPosting, ScrapeResult
from ..utils import collapse_ws
from .base import DEFAULT_CATEGORY_HINT, DEFAULT_JOB_TYPE_HINT, SourceAdapter, first_nonempty
from .registry import register

log = logging.getLogger(__name__)

RSS_URL = "https://{domain}/{site_id}/rss"
NOT_SPECIFIED = "Not Specified"

_ITEM_RE = re.compile(r"<item\b[^>]*>(.*?)</item>", re.DOTALL | re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")

# "Engineer - San Francisco, CA", "(Austin, TX)", "in Denver, CO", "Location: Reno, NV"
_LOCATION_PATTERNS = (
    re.compile(r"[-–—]\s*([A-Za-z\s]+,\s*[A-Z]{2})\b"),
    re.compile(r"\(([A-Za-z\s]+,\s*[A-Z]{2})\)"),
    re.compile(r"\bin\s+([A-Za-z\s]+,\s*[A-Z]{2})\b"),
    re.compile(r"Location[:\s]+([A-Za-z\s]+,\s*[A-Z]{2})\b"),
)
_REMOTE_RE = re.compile(r"\bremote\b", re.IGNORECASE)


def rss_url(domain: str, site_id: str) -> str:
    return RSS_URL.format(domain=domain.strip().strip("/"), site_id=site_id.strip().strip("/"))


# ---- Parsing -----------------------------------------------------------------


def extract_tag(xml: str, tag: str) -> str | None:
    """CDATA-aware single-tag extraction; None when the tag is absent."""
    name = re.escape(tag)
    cdata = re.search(rf"<{name}(?:\s[^>]*)?>\s*<!\[CDATA\[(.*?)\]\]>\s*</{name}>", xml, re.DOTALL)
    if cdata:
        return cdata.group(1)
    simple = re.search(rf"<{name}(?:\s[^>]*)?>(.*?)</{name}>", xml, re.DOTALL)
    if simple:
        return simple.group(1)
    return None


def clean_text(text: str | None) -> str:
    """Unescape entities, drop tags, collapse whitespace."""
    if not text:
        return ""
    return collapse_ws(_TAG_RE.sub(" ", html.unescape(text)))


def extract_location(title: str, description: str) -> str:
    combined = f"{title} {description}"
    for pattern in _LOCATION_PATTERNS:
        m = pattern.search(combined)
        if m:
            return collapse_ws(m.group(1))
    if _REMOTE_RE.search(combined):
        return "Remote"
    return NOT_SPECIFIED


def parse_item(item_xml: str) -> dict[str, Any] | None:
    title = extract_tag(item_xml, "title")
    link = extract_tag(item_xml, "link") or extract_tag(item_xml, "guid")
    if not title or not link:
        return None
    title_clean = clean_text(title)
    description_clean = clean_text(extract_tag(item_xml, "description"))
    return {
        "title": title_clean,
        "link": clean_text(link),
        "description": description_clean,
        "location": extract_location(title_clean, description_clean),
        "pubDate": clean_text(extract_tag(item_xml, "pubDate")) or None,
    }


def parse_feed(xml_text: str) -> list[dict[str, Any]]:
    """Return one dict per <item>; malformed items are skipped."""
    out: list[dict[str, Any]] = []
    for block in _ITEM_RE.findall(xml_text or ""):
        item = parse_item(block)
        if item is not None:
            out.append(item)
    return out


# ---- Adapter surface ----------------------------------------------------------


def fetch_jobs(target: CompanyTarget, fetcher: ResilientFetcher) -> ScrapeResult:
    if not target.workday_domain or not target.workday_site_id:
        return ScrapeResult(
            source=target.source,
            error=ErrorKind.MALFORMED,
            detail="workday target needs workday_domain and workday_site_id",
        )
    url = rss_url(target.workday_domain, target.workday_site_id)
    res = fetcher.fetch_text(url, headers={"User-Agent": BROWSER_USER_AGENT}, accept=XML_ACCEPT)
    if not res.ok:
        return ScrapeResult(source=target.source, error=res.error, detail=res.detail)

    body = str(res.value)
    items = parse_feed(body)
    if not items and "<rss" not in body.lower() and "<channel" not in body.lower():
        # a 200 that is neither an RSS document nor an HTML page
        log.warning("workday %s: body is not an RSS feed (via %s)", target.source, res.via)
        return ScrapeResult(source=target.source, error=ErrorKind.MALFORMED, detail=body.lstrip()[:120])
    log.debug("workday %s: %d item(s) via %s", target.source, len(items), res.via)
    return ScrapeResult(source=target.source, items=items)


def fetch_workday_jobs(
    domain: str,
    site_id: str,
    fetcher: ResilientFetcher | None = None,
    *,
    name: str | None = None,
) -> list[dict[str, Any]]:
    """Raw RSS items for one Workday career site; [] when the feed cannot be fetched."""
    target = CompanyTarget(
        name=name or domain.split(".")[0],
        platform=AtsPlatform.WORKDAY,
        identifier=domain.split(".")[0],
        workday_domain=domain,
        workday_site_id=site_id,
    )
    return fetch_jobs(target, fetcher or ResilientFetcher()).items


def normalize(raw: Mapping[str, Any], company_id: str | None) -> NormalizedPosting:
    return NormalizedPosting(
        title=first_nonempty(raw, "title"),
        location=first_nonempty(raw, "location") or NOT_SPECIFIED,
        # the feed carries no department; classification falls back to title/description
        category_hint=DEFAULT_CATEGORY_HINT,
        apply_link=first_nonempty(raw, "link", "url"),
        description=first_nonempty(raw, "description"),
        job_type_hint=DEFAULT_JOB_TYPE_HINT,
        company_id=company_id,
    )


ADAPTER = register(SourceAdapter(platform=AtsPlatform.WORKDAY, fetch_jobs=fetch_jobs, normalize=normalize))
