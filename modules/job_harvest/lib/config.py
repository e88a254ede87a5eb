from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .models import AtsPlatform, CompanyTarget
from .roster import default_roster
from .utils import first_env, getenv_str, truthy

if TYPE_CHECKING:
    from .store import Store


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings."""


# -----------------------------
# Models
# -----------------------------
@dataclass
class Settings:
    """
    Canonical configuration for one harvest run.

    Storage is either a local SQLite file (`sqlite_path`) or the hosted
    store (`store_url` + `store_key`); SQLite wins when both are present.
    The roster is the built-in list unless `roster_path` points at a JSON
    file of {"name", "platform", "identifier", ...} objects.
    """

    # Storage
    store_url: str | None = None
    store_key: str | None = field(default=None, repr=False)
    sqlite_path: str | None = None

    # Selection
    roster_path: str | None = None
    platforms: tuple[str, ...] = ()
    _roster: list[CompanyTarget] = field(default_factory=list, repr=False)

    # Runtime behavior
    delay_seconds: float = 1.0
    retention_days: int = 30
    max_workers: int = 1
    timeout: float = 15.0
    use_proxies: bool = True
    skip_network: bool = False

    # ------------- convenience -------------
    @property
    def backend(self) -> str:
        return "sqlite" if self.sqlite_path else "supabase"

    def roster(self) -> list[CompanyTarget]:
        """
        Companies to harvest this run, filtered by `platforms` when given.
        Loaded (and validated) once.
        """
        if not self._roster:
            self._roster = load_roster(self.roster_path)

        if not self.platforms:
            return list(self._roster)
        wanted = set(self.platforms)
        return [t for t in self._roster if t.platform.value in wanted]

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Settings:
        """
        Build Settings from kwargs (scheduler/CLI) falling back to env.

        Expected kwargs (all optional):

            sqlite_path: str            # or HARVEST_SQLITE_PATH
            store_url / store_key: str  # or SUPABASE_URL / SUPABASE_KEY (+ aliases)
            roster_path: str            # or HARVEST_ROSTER_PATH
            platforms: list[str] | str  # "greenhouse,lever"
            delay_seconds: float = 1.0  # or HARVEST_DELAY_SECONDS
            retention_days: int = 30
            max_workers: int = 1        # or HARVEST_MAX_WORKERS
            timeout: float = 15.0
            use_proxies: bool = true    # or HARVEST_USE_PROXIES
            skip_network: bool = false
        """
        kw = dict(kwargs or {})

        store_url = _opt_str(kw.get("store_url")) or first_env("SUPABASE_URL", "VITE_SUPABASE_URL")
        store_key = _opt_str(kw.get("store_key")) or first_env(
            "SUPABASE_KEY", "SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY"
        )
        sqlite_path = _opt_str(kw.get("sqlite_path")) or getenv_str("HARVEST_SQLITE_PATH")
        roster_path = _opt_str(kw.get("roster_path")) or getenv_str("HARVEST_ROSTER_PATH")

        use_proxies_raw = kw.get("use_proxies")
        if use_proxies_raw is None:
            use_proxies_raw = getenv_str("HARVEST_USE_PROXIES", "true")

        settings = cls(
            store_url=store_url,
            store_key=store_key,
            sqlite_path=sqlite_path,
            roster_path=roster_path,
            platforms=_parse_platforms(kw.get("platforms")),
            delay_seconds=_number(kw, "delay_seconds", "HARVEST_DELAY_SECONDS", 1.0, float),
            retention_days=_number(kw, "retention_days", None, 30, int),
            max_workers=_number(kw, "max_workers", "HARVEST_MAX_WORKERS", 1, int),
            timeout=_number(kw, "timeout", None, 15.0, float),
            use_proxies=truthy(use_proxies_raw),
            skip_network=truthy(kw.get("skip_network")),
        )
        _validate_settings(settings)
        return settings


# -----------------------------
# Roster files
# -----------------------------
def load_roster(roster_path: str | None = None) -> list[CompanyTarget]:
    """Validated roster from `roster_path`, or the built-in one when unset."""
    targets = load_roster_file(roster_path) if roster_path else default_roster()
    validate_roster(targets)
    return targets


def load_roster_file(path: str) -> list[CompanyTarget]:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"roster file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"roster file is invalid JSON: {path}") from e

    targets = parse_roster(data)
    if not targets:
        raise ConfigError(f"No companies found in {path}")
    return targets


def parse_roster(value: Any) -> list[CompanyTarget]:
    """
    Parse a flat list into CompanyTarget objects.
    Accepts: [{"name": "...", "platform": "...", "identifier": "...",
               "workday_domain": "...", "workday_site_id": "..."}, ...]
    """
    if not value:
        return []
    if not isinstance(value, list):
        raise ConfigError("Expected a list of company objects.")
    out: list[CompanyTarget] = []
    for i, item in enumerate(value):
        if not isinstance(item, dict):
            raise ConfigError(f"Item[{i}] must be an object.")
        platform_raw = str(item.get("platform") or "").strip().lower()
        try:
            platform = AtsPlatform(platform_raw)
        except ValueError as e:
            raise ConfigError(f"Item[{i}] has unknown platform {item.get('platform')!r}.") from e
        out.append(
            CompanyTarget(
                name=str(item.get("name") or "").strip(),
                platform=platform,
                identifier=str(item.get("identifier") or "").strip(),
                workday_domain=_opt_str(item.get("workday_domain")),
                workday_site_id=_opt_str(item.get("workday_site_id")),
            )
        )
    return out


def validate_roster(targets: Iterable[CompanyTarget]) -> None:
    seen: set[tuple[str, str]] = set()
    for t in targets:
        if not t.name:
            raise ConfigError(f"Roster entry {t.source!r} has an empty name.")
        if not t.identifier:
            raise ConfigError(f"Roster entry {t.name!r} has an empty identifier.")
        if t.platform is AtsPlatform.WORKDAY and not (t.workday_domain and t.workday_site_id):
            raise ConfigError(f"Workday entry {t.name!r} needs 'workday_domain' and 'workday_site_id'.")
        key = (t.platform.value, t.identifier.lower())
        if key in seen:
            raise ConfigError(f"Duplicate roster entry {t.source!r}.")
        seen.add(key)


# -----------------------------
# Store wiring
# -----------------------------
def open_store(settings: Settings) -> Store:
    """Build the configured store. Supabase is imported only when used."""
    if settings.sqlite_path:
        from .store import SqliteStore

        return SqliteStore(settings.sqlite_path)

    from .supabase_store import create_supabase_store

    if not (settings.store_url and settings.store_key):
        raise ConfigError("Supabase store requires both store_url and store_key.")
    return create_supabase_store(settings.store_url, settings.store_key)


# -----------------------------
# Helpers
# -----------------------------
def _opt_str(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _parse_platforms(value: Any) -> tuple[str, ...]:
    if value in (None, "", [], ()):
        return ()
    items = value.split(",") if isinstance(value, str) else list(value)
    out: list[str] = []
    for raw in items:
        key = str(getattr(raw, "value", raw)).strip().lower()
        if not key:
            continue
        try:
            AtsPlatform(key)
        except ValueError as e:
            raise ConfigError(f"Unknown platform {raw!r} in 'platforms'.") from e
        if key not in out:
            out.append(key)
    return tuple(out)


def _number(kw: Mapping[str, Any], key: str, env: str | None, default: Any, cast: type) -> Any:
    raw = kw.get(key)
    if raw is None and env:
        raw = getenv_str(env)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key!r} must be a number, got {raw!r}.") from e


def _validate_settings(s: Settings) -> None:
    if not s.sqlite_path and not (s.store_url and s.store_key):
        raise ConfigError(
            "No store configured. Set HARVEST_SQLITE_PATH, or both SUPABASE_URL and SUPABASE_KEY "
            "(SUPABASE_ANON_KEY / VITE_SUPABASE_* are accepted too)."
        )
    if s.max_workers <= 0:
        raise ConfigError("'max_workers' must be >= 1.")
    if s.delay_seconds < 0:
        raise ConfigError("'delay_seconds' cannot be negative.")
    if s.retention_days <= 0:
        raise ConfigError("'retention_days' must be >= 1.")
    if s.timeout <= 0:
        raise ConfigError("'timeout' must be > 0.")

    # Loads and validates the roster; fails before any network activity.
    if not s.roster():
        raise ConfigError("No companies selected to harvest.")
