# tests/test_config.py
import pytest

from modules.job_harvest.lib.config import (
    ConfigError,
    Settings,
    load_roster,
    load_roster_file,
    open_store,
    parse_roster,
    validate_roster,
)
from modules.job_harvest.lib.models import AtsPlatform, CompanyTarget
from modules.job_harvest.lib.roster import default_roster
from modules.job_harvest.lib.store import SqliteStore

ACME = {"name": "Acme", "platform": "greenhouse", "identifier": "acme"}
GLOBEX = {"name": "Globex", "platform": "lever", "identifier": "globex"}


# ---------------------------------------------------------------------
# Settings from kwargs / env
# ---------------------------------------------------------------------
def test_defaults_with_sqlite(make_settings):
    s = make_settings([ACME])
    assert s.backend == "sqlite"
    assert s.retention_days == 30
    assert s.max_workers == 1
    assert s.use_proxies is True
    assert [t.source for t in s.roster()] == ["greenhouse:acme"]


def test_missing_store_is_rejected():
    with pytest.raises(ConfigError, match="No store configured"):
        Settings.from_env_and_kwargs({})


def test_supabase_credentials_from_env_aliases(monkeypatch):
    monkeypatch.setenv("VITE_SUPABASE_URL", "https://proj.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
    s = Settings.from_env_and_kwargs({})
    assert s.backend == "supabase"
    assert s.store_url == "https://proj.supabase.co"
    assert s.store_key == "anon-key"
    assert "anon-key" not in repr(s)


def test_env_overrides(monkeypatch, sqlite_path, roster_file):
    monkeypatch.setenv("HARVEST_SQLITE_PATH", sqlite_path)
    monkeypatch.setenv("HARVEST_ROSTER_PATH", roster_file([ACME, GLOBEX]))
    monkeypatch.setenv("HARVEST_DELAY_SECONDS", "0.5")
    monkeypatch.setenv("HARVEST_MAX_WORKERS", "4")
    monkeypatch.setenv("HARVEST_USE_PROXIES", "false")

    s = Settings.from_env_and_kwargs({})
    assert (s.delay_seconds, s.max_workers, s.use_proxies) == (0.5, 4, False)
    assert len(s.roster()) == 2


def test_kwargs_win_over_env(monkeypatch, make_settings):
    monkeypatch.setenv("HARVEST_MAX_WORKERS", "4")
    assert make_settings([ACME], max_workers=2).max_workers == 2


def test_platform_filter(make_settings):
    s = make_settings([ACME, GLOBEX], platforms="lever")
    assert [t.name for t in s.roster()] == ["Globex"]


def test_platform_filter_that_selects_nothing_is_rejected(make_settings):
    with pytest.raises(ConfigError, match="No companies"):
        make_settings([ACME], platforms=["ashby"])


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_workers": 0},
        {"delay_seconds": -1},
        {"retention_days": 0},
        {"timeout": "soon"},
        {"platforms": "greenhouse,taleo"},
    ],
)
def test_invalid_values(make_settings, overrides):
    with pytest.raises(ConfigError):
        make_settings([ACME], **overrides)


# ---------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------
def test_builtin_roster_is_valid():
    targets = load_roster()
    assert targets == default_roster()
    assert {t.platform for t in targets} == set(AtsPlatform)
    validate_roster(targets)


def test_parse_roster_workday_fields():
    (t,) = parse_roster([
        {
            "name": "Acme",
            "platform": "Workday",
            "identifier": "acme",
            "workday_domain": "acme.wd5.myworkdayjobs.com",
            "workday_site_id": "External",
        }
    ])
    assert t.platform is AtsPlatform.WORKDAY
    assert t.workday_site_id == "External"


@pytest.mark.parametrize(
    "entries",
    [
        [{"name": "Acme", "platform": "taleo", "identifier": "acme"}],
        ["acme"],
    ],
)
def test_parse_roster_rejects_bad_items(entries):
    with pytest.raises(ConfigError):
        parse_roster(entries)


@pytest.mark.parametrize(
    "targets",
    [
        [CompanyTarget(name="", platform=AtsPlatform.LEVER, identifier="x")],
        [CompanyTarget(name="X", platform=AtsPlatform.LEVER, identifier="")],
        [CompanyTarget(name="X", platform=AtsPlatform.WORKDAY, identifier="x", workday_domain="x.wd1.myworkdayjobs.com")],
        [
            CompanyTarget(name="Acme", platform=AtsPlatform.LEVER, identifier="acme"),
            CompanyTarget(name="Acme Corp", platform=AtsPlatform.LEVER, identifier="ACME"),
        ],
    ],
)
def test_validate_roster_rejects(targets):
    with pytest.raises(ConfigError):
        validate_roster(targets)


def test_roster_file_errors(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_roster_file(str(tmp_path / "missing.json"))

    bad = tmp_path / "bad.json"
    bad.write_text("{nope", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid JSON"):
        load_roster_file(str(bad))

    empty = tmp_path / "empty.json"
    empty.write_text("[]", encoding="utf-8")
    with pytest.raises(ConfigError, match="No companies"):
        load_roster_file(str(empty))


# ---------------------------------------------------------------------
# Store wiring
# ---------------------------------------------------------------------
def test_open_store_prefers_sqlite(make_settings):
    s = make_settings([ACME], store_url="https://proj.supabase.co", store_key="k")
    store = open_store(s)
    try:
        assert isinstance(store, SqliteStore)
    finally:
        store.close()
