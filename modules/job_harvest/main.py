from __future__ import annotations

import threading
from typing import Any

from .lib.config import Settings
from .lib.engine import run_once as _run_engine
from .lib.logging_bridge import activity as log_activity
from .lib.models import HarvestSummary


def run(cancel: threading.Event | None = None, **kwargs: Any) -> HarvestSummary:
    """
    Entry point for the 'job_harvest' module.

    Accepts kwargs (from the CLI/scheduler), each falling back to env:
      sqlite_path: str          # HARVEST_SQLITE_PATH; else Supabase credentials
      roster_path: str          # HARVEST_ROSTER_PATH; else the built-in roster
      platforms: list[str]      # restrict to some ATS platforms
      delay_seconds: float = 1.0
      retention_days: int = 30
      max_workers: int = 1
      use_proxies: bool = True
      skip_network: bool = False

    `cancel` stops the run between companies when set.

    Raises ConfigError before any network activity if settings are invalid.
    Returns the run's HarvestSummary.
    """
    # Build validated settings from env + kwargs
    settings = Settings.from_env_and_kwargs(kwargs)

    log_activity({
        "component": "job_harvest.main",
        "op": "start",
        "backend": settings.backend,
        "roster_path": settings.roster_path,
        "platforms": list(settings.platforms),
        "flags": {
            "use_proxies": settings.use_proxies,
            "skip_network": settings.skip_network,
        },
    })

    return _run_engine(settings, cancel=cancel)
