# service/cli.py
"""
User-facing command-line entrypoints (`job-harvest` / `python -m service.cli`).

Subcommands
-----------
harvest
    - Runs one harvest pass over the roster, configured from env
    - SIGINT/SIGTERM cancel the run between companies
    - Exit 0 on completion, 1 on configuration or fatal errors, 130 if cancelled

serve
    - Starts the APScheduler loop (HARVEST_SCHEDULE, default "0 6 * * *")
    - Registers signal handlers for graceful shutdown

companies
    - Prints the roster (HARVEST_ROSTER_PATH or the built-in list)

validate-config
    - Validates settings and roster; nonzero on error

duplicates
    - Lists stored companies whose names look like duplicates

schema
    - Prints the Postgres DDL for the hosted store
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from service import logging_utils as L
from service import scheduler as _scheduler

LOG = logging.getLogger("service.cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


# -------------------------- Utility / glue code ------------------------------
@contextmanager
def _cancel_on_signals(cancel: threading.Event) -> Iterator[None]:
    """Route SIGINT/SIGTERM to `cancel` for the duration of the block."""

    def _handler(signum, frame):
        LOG.warning("Signal %s received; stopping after the current company...", signum)
        cancel.set()

    previous: dict[int, Any] = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, _handler)
        except ValueError:
            # not on the main thread (e.g. under a test runner thread)
            LOG.debug("cannot install handler for %s", sig)
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


def _guarded(where: str, fn: Callable[[], int]) -> int:
    """Shared ConfigError / KeyboardInterrupt / crash handling for subcommands."""
    from modules.job_harvest.lib.config import ConfigError

    try:
        return fn()
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    except ConfigError as e:
        print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
        return EXIT_ERROR
    except Exception as e:
        LOG.exception("%s failed: %s", where, e)
        L.write_error_log({"component": "service.cli", "op": where, "error": repr(e)})
        print(f"FAILURE: {e}", file=sys.stderr)
        return EXIT_ERROR


# ------------------------------ Subcommands ----------------------------------
def cmd_harvest(args: argparse.Namespace) -> int:
    from modules.job_harvest.lib.render import summary_text
    from modules.job_harvest.main import run

    def _go() -> int:
        cancel = threading.Event()
        start = time.monotonic()
        with _cancel_on_signals(cancel):
            summary = run(cancel=cancel)
        L.write_activity_log({
            "component": "service.cli",
            "op": "harvest",
            "cancelled": summary.cancelled,
            "duration_ms": int((time.monotonic() - start) * 1000),
        })
        print(summary_text(summary))
        return EXIT_INTERRUPTED if summary.cancelled else EXIT_OK

    return _guarded("harvest", _go)


def cmd_serve(args: argparse.Namespace) -> int:
    """
    Run the scheduler until a termination signal is received.
    A signal also cancels an in-flight harvest between companies.
    """
    stop_event = threading.Event()

    def _go() -> int:
        controller = _scheduler.start()
        L.write_activity_log({"component": "service.cli", "op": "serve_start"})

        def _graceful_shutdown(signum=None, frame=None):
            LOG.info("Signal %s received; initiating shutdown...", signum)
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, _graceful_shutdown)

        try:
            # Main wait loop (respond quickly to signals)
            while not stop_event.is_set():
                time.sleep(0.3)
        finally:
            controller.stop()
            controller.join(timeout=10.0)
            L.write_activity_log({"component": "service.cli", "op": "serve_stop"})
        return EXIT_OK

    return _guarded("serve", _go)


def cmd_companies(args: argparse.Namespace) -> int:
    from modules.job_harvest.lib.config import load_roster
    from modules.job_harvest.lib.render import roster_table
    from modules.job_harvest.lib.utils import getenv_str

    def _go() -> int:
        print(roster_table(load_roster(getenv_str("HARVEST_ROSTER_PATH"))))
        return EXIT_OK

    return _guarded("companies", _go)


def cmd_validate_config(args: argparse.Namespace) -> int:
    from modules.job_harvest.lib.config import Settings

    def _go() -> int:
        settings = Settings.from_env_and_kwargs({})
        print(
            f"OK: configuration is valid (store={settings.backend}, "
            f"companies={len(settings.roster())})."
        )
        return EXIT_OK

    return _guarded("validate-config", _go)


def cmd_duplicates(args: argparse.Namespace) -> int:
    from modules.job_harvest.lib.companies import find_duplicates
    from modules.job_harvest.lib.config import Settings, open_store
    from modules.job_harvest.lib.render import duplicates_text

    def _go() -> int:
        store = open_store(Settings.from_env_and_kwargs({}))
        try:
            names = [c.name for c in store.list_companies()]
        finally:
            store.close()
        print(duplicates_text(find_duplicates(names)))
        return EXIT_OK

    return _guarded("duplicates", _go)


def cmd_schema(args: argparse.Namespace) -> int:
    from modules.job_harvest.lib.supabase_store import POSTGRES_SCHEMA

    print(POSTGRES_SCHEMA)
    return EXIT_OK


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="job-harvest",
        description="Job posting harvester: ATS boards -> normalized store.",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("harvest", help="Run one harvest pass now (configured from env).")
    sp.set_defaults(func=cmd_harvest)

    sp = sub.add_parser("serve", help="Run harvests on HARVEST_SCHEDULE until stopped.")
    sp.set_defaults(func=cmd_serve)

    sp = sub.add_parser("companies", help="Print the company roster.")
    sp.set_defaults(func=cmd_companies)

    sp = sub.add_parser("validate-config", help="Verify settings and roster.")
    sp.set_defaults(func=cmd_validate_config)

    sp = sub.add_parser("duplicates", help="List stored companies that look like duplicates.")
    sp.set_defaults(func=cmd_duplicates)

    sp = sub.add_parser("schema", help="Print the Postgres DDL for the hosted store.")
    sp.set_defaults(func=cmd_schema)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    L.configure_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
