# modules/job_harvest/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience.
# Importing .engine pulls in .adapters, which registers every built-in adapter.
from .config import ConfigError, Settings
from .engine import run_once
from .models import CompanyTarget, ErrorKind, HarvestSummary, JobRecord, ScrapeResult
from .store import SqliteStore, Store, StoreError

__all__ = [
    "CompanyTarget",
    "ConfigError",
    "ErrorKind",
    "HarvestSummary",
    "JobRecord",
    "ScrapeResult",
    "Settings",
    "SqliteStore",
    "Store",
    "StoreError",
    "run_once",
]
