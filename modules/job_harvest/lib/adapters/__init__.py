# modules/job_harvest/lib/adapters/__init__.py
from __future__ import annotations

# Importing the platform modules registers their adapters.
from . import ashby, greenhouse, lever, workday_rss
from .base import SourceAdapter
from .registry import all_platforms, get, register

__all__ = [
    "SourceAdapter",
    "all_platforms",
    "ashby",
    "get",
    "greenhouse",
    "lever",
    "register",
    "workday_rss",
]
