from __future__ import annotations

import html
import os
import re
from datetime import datetime, timezone
from typing import Any

from bs4 import BeautifulSoup  # pip install beautifulsoup4 html5lib

_WS_RE = re.compile(r"\s+")


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/kwargs.
    Accepts bools or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "on", "y", "t"}


def now_iso() -> str:
    """
    UTC ISO-8601 timestamp with 'Z' suffix.
    """
    return to_iso(datetime.now(timezone.utc))


def to_iso(dt: datetime) -> str:
    """
    Fixed-width UTC form (always microseconds) so stored timestamps
    compare correctly as strings.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def getenv_str(name: str, default: str | None = None) -> str | None:
    """
    Typed wrapper for environment access. Empty values count as unset.
    """
    val = os.getenv(name)
    return val if val not in (None, "") else default


def first_env(*names: str) -> str | None:
    """Return the first non-empty environment variable among `names`."""
    for name in names:
        val = getenv_str(name)
        if val is not None:
            return val.strip()
    return None


def collapse_ws(s: str | None) -> str:
    return _WS_RE.sub(" ", s or "").strip()


def html_to_text(markup: str | None) -> str:
    """
    Flatten an HTML (or entity-escaped HTML) fragment into plain text.
    Greenhouse ships `content` escaped, so unescape before parsing.
    """
    if not markup:
        return ""
    raw = html.unescape(markup) if "&lt;" in markup else markup
    if "<" not in raw:
        return collapse_ws(html.unescape(raw))
    soup = BeautifulSoup(raw, "html5lib")
    return collapse_ws(soup.get_text(" "))
