# tests/conftest.py
import json
import os
import tempfile

import pytest
from freezegun import freeze_time

from modules.job_harvest.lib import config as jh_config
from modules.job_harvest.lib.http_client import FetchResult
from modules.job_harvest.lib.models import ErrorKind
from modules.job_harvest.lib.store import SqliteStore

_HARVEST_ENV = (
    "SUPABASE_URL",
    "VITE_SUPABASE_URL",
    "SUPABASE_KEY",
    "SUPABASE_ANON_KEY",
    "VITE_SUPABASE_ANON_KEY",
    "HARVEST_SQLITE_PATH",
    "HARVEST_ROSTER_PATH",
    "HARVEST_DELAY_SECONDS",
    "HARVEST_MAX_WORKERS",
    "HARVEST_USE_PROXIES",
    "HARVEST_SCHEDULE",
)


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls or external services).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or hit external services (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="jh-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")

    # No ambient credentials or overrides leak in from the developer's shell
    for name in _HARVEST_ENV:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


# ---------------------------------------------------------------------
# Store / settings
# ---------------------------------------------------------------------
@pytest.fixture
def sqlite_path(tmp_path):
    return str(tmp_path / "state" / "jobs.db")


@pytest.fixture
def store(sqlite_path):
    s = SqliteStore(sqlite_path)
    yield s
    s.close()


@pytest.fixture
def roster_file(tmp_path):
    """Write a roster JSON file and return its path: roster_file([{...}, ...])."""

    def _write(entries, name="roster.json"):
        path = tmp_path / name
        path.write_text(json.dumps(entries), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def make_settings(sqlite_path, roster_file):
    """
    Settings for a SQLite-backed run over the given roster entries, with no
    courtesy delay. Extra kwargs pass straight through.
    """

    def _make(entries, **overrides):
        kwargs = {
            "sqlite_path": sqlite_path,
            "roster_path": roster_file(entries),
            "delay_seconds": 0,
        }
        kwargs.update(overrides)
        return jh_config.Settings.from_env_and_kwargs(kwargs)

    return _make


# ---------------------------------------------------------------------
# Fake fetch layer
# ---------------------------------------------------------------------
class FakeFetcher:
    """
    Stands in for ResilientFetcher. `routes` maps URL -> parsed value, or ->
    ErrorKind for a failed fetch; unknown URLs are EXHAUSTED. Every requested
    URL is recorded in `calls`.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.closed = False

    def _result(self, url):
        self.calls.append(url)
        if url not in self.routes:
            return FetchResult(url=url, error=ErrorKind.EXHAUSTED)
        value = self.routes[url]
        if isinstance(value, ErrorKind):
            return FetchResult(url=url, error=value)
        return FetchResult(url=url, value=value, via="direct")

    def fetch(self, url):
        res = self._result(url)
        return res.value if res.ok else None

    def fetch_json(self, url, *, headers=None):
        return self._result(url)

    def fetch_text(self, url, *, headers=None, accept=None):
        return self._result(url)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


# ---------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------
def greenhouse_job(job_id, title, *, location="Remote", department="Engineering", content=""):
    return {
        "id": job_id,
        "title": title,
        "location": {"name": location},
        "departments": [{"name": department}],
        "absolute_url": f"https://boards.greenhouse.io/acme/jobs/{job_id}",
        "content": content,
    }


def lever_posting(posting_id, title, *, location="San Francisco, CA", team="Engineering", workplace=""):
    return {
        "id": posting_id,
        "text": title,
        "categories": {"location": location, "team": team, "commitment": "Full-time"},
        "hostedUrl": f"https://jobs.lever.co/acme/{posting_id}",
        "descriptionPlain": "",
        "workplaceType": workplace,
    }
