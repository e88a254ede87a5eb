# service/scheduler.py
from __future__ import annotations

import json
import logging
import os
import threading
import time as _time
from collections.abc import Callable, Iterable
from datetime import datetime, time
from datetime import tzinfo as _dt_tzinfo
from typing import Any

import pytz
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .logging_utils import write_activity_log

LOG = logging.getLogger(__name__)

DEFAULT_SCHEDULE = "0 6 * * *"
JOB_ID = "job_harvest"


# ---- Public controller ------------------------------------------------------


class SchedulerController:
    """
    A small façade around APScheduler so the CLI can manage lifecycle cleanly.
    `cancel` is shared with the running harvest; stop() sets it so an
    in-flight run ends between companies.
    """

    def __init__(self, scheduler: BackgroundScheduler, cancel: threading.Event) -> None:
        self._scheduler = scheduler
        self.cancel = cancel
        self._stopped_evt = threading.Event()

    def stop(self) -> None:
        self.cancel.set()
        if self._scheduler.running:
            LOG.info("Shutting down scheduler...")
            # wait=False: an in-flight harvest sees `cancel` and winds down on its own
            self._scheduler.shutdown(wait=False)
        self._stopped_evt.set()
        LOG.info("Scheduler shut down complete.")

    def join(self, timeout: float | None = None) -> bool:
        """Block until stop() (or timeout). True if stopped before timeout."""
        return self._stopped_evt.wait(timeout=timeout)

    def next_run_time(self) -> datetime | None:
        job = self._scheduler.get_job(JOB_ID)
        return getattr(job, "next_run_time", None) if job else None


# ---- Module API -------------------------------------------------------------


def start(
    schedule: str | None = None,
    *,
    harvest: Callable[..., Any] | None = None,
    harvest_kwargs: dict[str, Any] | None = None,
) -> SchedulerController:
    """
    Build a BackgroundScheduler with one harvest job and start it.

    `schedule` (else HARVEST_SCHEDULE, else "0 6 * * *") is a crontab string
    or a JSON trigger object understood by `_build_trigger`. `harvest`
    defaults to modules.job_harvest.main.run and is called with
    `cancel=<event>` plus `harvest_kwargs`.

    APScheduler 3.x prefers a pytz scheduler timezone (TZ, default UTC).
    """
    tz = resolve_timezone()
    trigger = _build_trigger(parse_schedule(schedule or os.getenv("HARVEST_SCHEDULE") or DEFAULT_SCHEDULE), tz)

    if harvest is None:
        from modules.job_harvest.main import run as harvest

    scheduler = BackgroundScheduler(
        timezone=tz,
        # never overlap harvests; run only the latest if several were missed
        job_defaults={"coalesce": True, "max_instances": 1},
        executors={"default": ThreadPoolExecutor(1)},
        jobstores={"default": MemoryJobStore()},
    )
    cancel = threading.Event()
    _add_job(scheduler, trigger, harvest, dict(harvest_kwargs or {}), cancel)

    scheduler.start()
    controller = SchedulerController(scheduler, cancel)
    LOG.info("Scheduler started; next harvest at %s", controller.next_run_time())
    return controller


def resolve_timezone(name: str | None = None):
    """pytz timezone from `name`, else TZ, else UTC (invalid names fall back to UTC)."""
    tz_name = name or os.getenv("TZ") or "UTC"
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        LOG.warning("Falling back to UTC timezone (invalid tz '%s')", tz_name)
        return pytz.UTC


def parse_schedule(value: str) -> dict[str, Any]:
    """
    "0 6 * * *"                        -> {"cron": "0 6 * * *"}
    '{"interval": {"hours": 6}}'       -> parsed JSON trigger object
    """
    text = (value or "").strip()
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ValueError(f"schedule is not valid JSON: {text!r}") from e
        if not isinstance(data, dict):
            raise ValueError("schedule JSON must be an object")
        return data
    return {"cron": text}


# ---- Triggers ---------------------------------------------------------------


def _build_trigger(trig_def: dict[str, Any], tz: Any) -> Any:
    """
    Build an APScheduler trigger from a dict. Exactly one of:

      {"cron":       "0 6 * * *"}                             # crontab, scheduler tz
      {"cron":       {minute?, hour?, day?, day_of_week?, month?, second?, timezone?}}
      {"interval":   {weeks|days|hours|minutes|seconds, jitter?, timezone?}}
      {"daily_time": {"time": "HH:MM[:SS]" | [...], "day_of_week"?, "timezone"?}}

    A block's own 'timezone' wins over the scheduler tz.
    """
    if not isinstance(trig_def, dict):
        raise ValueError("trigger definition must be a dict")

    present = [k for k in ("interval", "cron", "daily_time") if trig_def.get(k) is not None]
    if len(present) != 1:
        raise ValueError("exactly one of {'interval','cron','daily_time'} must be provided")
    kind = present[0]
    default_tz = _tz(tz)

    if kind == "interval":
        return _interval_trigger(trig_def["interval"], default_tz)
    if kind == "cron":
        return _cron_trigger(trig_def["cron"], default_tz)
    return _daily_trigger(trig_def["daily_time"], default_tz)


def _tz(z: Any) -> Any:
    if not z:
        return None
    if isinstance(z, _dt_tzinfo):
        return z
    return pytz.timezone(str(z))


def _check_fields(block: dict[str, Any], name: str, allowed: set[str]) -> None:
    unknown = set(block) - allowed
    if unknown:
        raise ValueError(f"{name} has unknown field(s): {sorted(unknown)}")


def _interval_trigger(spec: Any, default_tz: Any) -> IntervalTrigger:
    if not isinstance(spec, dict):
        raise ValueError("interval must be an object with time fields")
    units = ("weeks", "days", "hours", "minutes", "seconds")
    _check_fields(spec, "interval", {*units, "jitter", "timezone"})

    def _as_int_ge0(name: str) -> int:
        try:
            v = int(spec.get(name, 0))
        except (TypeError, ValueError) as err:
            raise ValueError(f"interval.{name} must be an integer") from err
        if v < 0:
            raise ValueError(f"interval.{name} must be >= 0")
        return v

    kwargs = {u: _as_int_ge0(u) for u in units if _as_int_ge0(u)}
    if not kwargs:
        raise ValueError("interval must be greater than 0 (provide at least one nonzero time field)")
    jitter = _as_int_ge0("jitter")
    if jitter:
        kwargs["jitter"] = jitter
    return IntervalTrigger(timezone=_tz(spec.get("timezone")) or default_tz, **kwargs)


def _cron_trigger(spec: Any, default_tz: Any) -> CronTrigger:
    if isinstance(spec, str):
        fields = spec.split()
        if len(fields) != 5:
            raise ValueError(f"cron string must have 5 fields (got {len(fields)}): {spec!r}")
        return CronTrigger.from_crontab(spec, timezone=default_tz)
    if not isinstance(spec, dict):
        raise ValueError("cron must be a crontab string or an object")
    _check_fields(spec, "cron", {"second", "minute", "hour", "day", "day_of_week", "month", "timezone", "jitter"})
    return CronTrigger(
        second=spec.get("second", 0),
        minute=spec.get("minute", 0),
        hour=spec.get("hour", 0),
        day=spec.get("day"),
        day_of_week=spec.get("day_of_week"),
        month=spec.get("month"),
        jitter=spec.get("jitter"),
        timezone=_tz(spec.get("timezone")) or default_tz,
    )


def _daily_trigger(spec: Any, default_tz: Any) -> Any:
    if not isinstance(spec, dict):
        raise ValueError("daily_time must be an object")
    _check_fields(spec, "daily_time", {"time", "day_of_week", "timezone"})
    tzinfo = _tz(spec.get("timezone")) or default_tz

    times = spec.get("time")
    if times is None:
        raise ValueError("daily_time requires 'time'")
    if isinstance(times, str):
        times = [times]
    if not isinstance(times, Iterable):
        raise ValueError("daily_time.time must be a string or list of strings")

    triggers = [
        CronTrigger(second=s, minute=m, hour=h, day_of_week=spec.get("day_of_week"), timezone=tzinfo)
        for h, m, s in sorted({_parse_hms(str(t)) for t in times})
    ]
    return triggers[0] if len(triggers) == 1 else OrTrigger(triggers)


def _parse_hms(s: str) -> tuple[int, int, int]:
    parts = s.split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"daily_time.time must be 'HH:MM' or 'HH:MM:SS', got {s!r}")
    try:
        hh, mm = int(parts[0]), int(parts[1])
        ss = int(parts[2]) if len(parts) == 3 else 0
    except ValueError as err:
        raise ValueError(f"daily_time.time must contain integers: {s!r}") from err
    time(hh, mm, ss)  # validates ranges
    return hh, mm, ss


# ---- Job --------------------------------------------------------------------


def _add_job(
    scheduler: BackgroundScheduler,
    trigger: Any,
    harvest: Callable[..., Any],
    harvest_kwargs: dict[str, Any],
    cancel: threading.Event,
) -> None:
    """Register the harvest with a wrapper that times it and writes one activity record."""

    def _job_wrapper() -> None:
        if cancel.is_set():
            return
        started = _time.monotonic()
        LOG.info("Job[%s] starting", JOB_ID)
        try:
            summary = harvest(cancel=cancel, **harvest_kwargs)
        except Exception as e:
            LOG.exception("Job[%s] raised an exception.", JOB_ID)
            _write_activity(status="error", duration_s=_time.monotonic() - started, error=repr(e))
            return
        duration = _time.monotonic() - started
        LOG.info("Job[%s] finished in %.3fs", JOB_ID, duration)
        as_dict = getattr(summary, "as_dict", None)
        _write_activity(status="ok", duration_s=duration, summary=as_dict() if as_dict else None)

    scheduler.add_job(func=_job_wrapper, trigger=trigger, id=JOB_ID, replace_existing=True)
    LOG.debug("Registered job[%s] trigger=%s", JOB_ID, trigger)


def _write_activity(status: str, duration_s: float, **fields: Any) -> None:
    """Best-effort activity logging; non-fatal on errors."""
    try:
        write_activity_log({
            "component": "service.scheduler",
            "op": "job_run",
            "job_id": JOB_ID,
            "status": status,
            "duration_ms": int(duration_s * 1000),
            **fields,
        })
    except Exception:
        LOG.debug("write_activity_log failed for job[%s]", JOB_ID, exc_info=True)
