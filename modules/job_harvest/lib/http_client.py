# job_harvest/http_client.py
"""
HTTP plumbing shared by every source adapter.

`HttpClient` owns the requests.Session. `ResilientFetcher` layers the
direct-then-proxy fallback chain on top of it and reports every outcome as a
`FetchResult` instead of raising, so callers can tell "no postings" apart
from "could not fetch".
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .models import ErrorKind

LOG = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)
JSON_ACCEPT = "application/json, text/plain, */*"
XML_ACCEPT = "application/rss+xml, application/xml, text/xml, */*"


class HttpClient:
    """Shared HTTP client with browser-like defaults."""

    def __init__(
        self,
        timeout: float = 15.0,
        user_agent: str = BROWSER_USER_AGENT,
        retries: int = 1,
    ):
        self.timeout = float(timeout)
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": JSON_ACCEPT,
            "Accept-Language": "en-US,en;q=0.9",
        })

        # One quick connection retry; the proxy chain is the real retry path,
        # and failed companies are not retried within a run.
        retry = Retry(
            total=retries,
            connect=retries,
            read=0,
            status=0,
            backoff_factor=0,
            allowed_methods=frozenset(["GET", "HEAD"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=20)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> requests.Response:
        """Plain GET; status handling is left to the caller."""
        return self.session.get(url, headers=headers, timeout=timeout or self.timeout)

    def close(self) -> None:
        try:
            self.session.close()
        except Exception:
            LOG.debug("HttpClient.close() swallow", exc_info=True)


# ---- Proxies -----------------------------------------------------------------


def _identity(text: str) -> str:
    return text


def _unwrap_allorigins(text: str) -> str:
    """
    allorigins answers {"contents": "<body>", "status": {...}}. The body is
    normally a string (itself JSON for JSON targets) but is occasionally
    already decoded.
    """
    data = json.loads(text)
    if not isinstance(data, dict) or "contents" not in data:
        raise ValueError("allorigins response has no 'contents'")
    contents = data["contents"]
    if contents is None:
        raise ValueError("allorigins returned empty contents")
    if isinstance(contents, str):
        return contents
    return json.dumps(contents)


@dataclass(frozen=True)
class Proxy:
    """A pass-through proxy: `prefix + quote(target)`, then `unwrap(body)`."""

    name: str
    prefix: str
    unwrap: Callable[[str], str] = _identity

    def url_for(self, target: str) -> str:
        return f"{self.prefix}{quote(target, safe='')}"


DEFAULT_PROXIES: tuple[Proxy, ...] = (
    Proxy("allorigins", "https://api.allorigins.win/get?url=", _unwrap_allorigins),
    Proxy("corsproxy", "https://corsproxy.io/?"),
    Proxy("codetabs", "https://api.codetabs.com/v1/proxy?quest="),
    Proxy("thingproxy", "https://thingproxy.freeboard.io/fetch/"),
)

DIRECT = "direct"


# ---- Results -----------------------------------------------------------------


@dataclass(frozen=True)
class Attempt:
    endpoint: str
    error: ErrorKind | None
    detail: str = ""


@dataclass
class FetchResult:
    """
    Outcome of one logical fetch across the whole chain.
    `value` is parsed JSON (fetch_json) or text (fetch_text) when ok.
    """

    url: str
    value: Any = None
    error: ErrorKind | None = None
    via: str | None = None
    attempts: list[Attempt] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def detail(self) -> str:
        return "; ".join(f"{a.endpoint}={a.error.value if a.error else 'ok'}:{a.detail}" for a in self.attempts)


class _AttemptFailed(Exception):
    def __init__(self, kind: ErrorKind, detail: str = ""):
        super().__init__(detail)
        self.kind = kind
        self.detail = detail


def looks_like_html(text: str) -> bool:
    head = text.lstrip()[:512].lower()
    return head.startswith("<!doctype html") or head.startswith("<html") or ("<html" in head and "<rss" not in head)


# ---- Fetcher -----------------------------------------------------------------


class ResilientFetcher:
    """
    Direct request first, then each proxy in order, until one yields a usable
    body. Never raises; cancellation is checked before every attempt.
    """

    def __init__(
        self,
        client: HttpClient | None = None,
        *,
        proxies: Sequence[Proxy] = DEFAULT_PROXIES,
        cancel: threading.Event | None = None,
        use_proxies: bool = True,
    ):
        self.client = client or HttpClient()
        self.proxies = tuple(proxies)
        self.cancel = cancel or threading.Event()
        self.use_proxies = use_proxies

    # ---- public ----
    def fetch(self, url: str) -> Any | None:
        """Parsed JSON, or None once every endpoint has failed."""
        res = self.fetch_json(url)
        return res.value if res.ok else None

    def fetch_json(self, url: str, *, headers: Mapping[str, str] | None = None) -> FetchResult:
        return self._run_chain(url, headers=headers, parse=self._parse_json)

    def fetch_text(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        accept: str = XML_ACCEPT,
    ) -> FetchResult:
        """Same chain for non-JSON bodies (RSS); HTML error pages are rejected."""
        merged = {"Accept": accept, **dict(headers or {})}
        return self._run_chain(url, headers=merged, parse=self._parse_markup)

    def close(self) -> None:
        self.client.close()

    # ---- internals ----
    def _endpoints(self, url: str) -> list[tuple[str, str, Callable[[str], str]]]:
        out: list[tuple[str, str, Callable[[str], str]]] = [(DIRECT, url, _identity)]
        if self.use_proxies:
            out.extend((p.name, p.url_for(url), p.unwrap) for p in self.proxies)
        return out

    def _run_chain(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None,
        parse: Callable[[str], Any],
    ) -> FetchResult:
        result = FetchResult(url=url)
        for name, endpoint_url, unwrap in self._endpoints(url):
            if self.cancel.is_set():
                result.attempts.append(Attempt(name, ErrorKind.CANCELLED, "cancelled"))
                result.error = ErrorKind.CANCELLED
                LOG.info("fetch cancelled before %s for %s", name, url)
                return result
            try:
                body = self._get_body(endpoint_url, headers=headers)
                value = parse(unwrap(body))
            except _AttemptFailed as e:
                result.attempts.append(Attempt(name, e.kind, e.detail))
                LOG.debug("fetch via %s failed for %s: %s %s", name, url, e.kind.value, e.detail)
                continue
            except ValueError as e:
                # unwrap() could not find the payload
                result.attempts.append(Attempt(name, ErrorKind.MALFORMED, str(e)[:200]))
                LOG.debug("fetch via %s malformed for %s: %s", name, url, e)
                continue

            result.attempts.append(Attempt(name, None))
            result.value = value
            result.via = name
            if name != DIRECT:
                LOG.info("fetched %s via proxy %s after %d failed attempt(s)", url, name, len(result.attempts) - 1)
            return result

        result.error = ErrorKind.EXHAUSTED
        LOG.warning("all %d endpoint(s) failed for %s", len(result.attempts), url)
        return result

    def _get_body(self, endpoint_url: str, *, headers: Mapping[str, str] | None) -> str:
        try:
            resp = self.client.get(endpoint_url, headers=headers)
        except requests.RequestException as e:
            raise _AttemptFailed(ErrorKind.NETWORK, repr(e)[:200]) from e
        if not 200 <= resp.status_code < 300:
            raise _AttemptFailed(ErrorKind.HTTP_STATUS, f"status={resp.status_code}")
        if not resp.encoding and resp.apparent_encoding:
            resp.encoding = resp.apparent_encoding
        return resp.text

    @staticmethod
    def _parse_json(body: str) -> Any:
        stripped = body.lstrip()
        if stripped.startswith("<"):
            raise _AttemptFailed(ErrorKind.HTML_PAGE, f"body starts: {stripped[:80]!r}")
        try:
            return json.loads(stripped)
        except ValueError as e:
            raise _AttemptFailed(ErrorKind.MALFORMED, f"JSON decode failed; body starts: {stripped[:80]!r}") from e

    @staticmethod
    def _parse_markup(body: str) -> str:
        if not body.strip():
            raise _AttemptFailed(ErrorKind.MALFORMED, "empty body")
        if looks_like_html(body):
            raise _AttemptFailed(ErrorKind.HTML_PAGE, f"body starts: {body.lstrip()[:80]!r}")
        return body
