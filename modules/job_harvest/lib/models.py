from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


# -----------------------------
# Enumerations
# -----------------------------
class AtsPlatform(str, Enum):
    GREENHOUSE = "greenhouse"
    LEVER = "lever"
    ASHBY = "ashby"
    WORKDAY = "workday"


class JobCategory(str, Enum):
    IT = "it"
    SALES = "sales"
    MARKETING = "marketing"
    FINANCE = "finance"
    LEGAL = "legal"
    MANAGEMENT = "management"
    RESEARCH_DEVELOPMENT = "research-development"


class JobType(str, Enum):
    REMOTE = "Remote"
    ONSITE = "On-site"
    HYBRID = "Hybrid"


class ExperienceLevel(str, Enum):
    INTERNSHIP = "internship"
    ENTRY = "entry-level"
    MID = "mid-level"
    SENIOR = "senior-level"
    LEAD = "lead"
    EXECUTIVE = "executive"


class ErrorKind(str, Enum):
    """Why a fetch (or a whole company batch) produced no usable data."""

    NETWORK = "network"
    HTTP_STATUS = "http_status"
    HTML_PAGE = "html_page"
    MALFORMED = "malformed"
    PLATFORM_ERROR = "platform_error"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


# -----------------------------
# Roster / companies
# -----------------------------
@dataclass(frozen=True)
class CompanyTarget:
    """
    One roster entry: a company and where its postings live.
    Workday entries also carry the tenant domain and career-site id.
    """

    name: str
    platform: AtsPlatform
    identifier: str
    workday_domain: str | None = None
    workday_site_id: str | None = None

    @property
    def source(self) -> str:
        # stable label used in logs and summaries, e.g. "lever:netflix"
        return f"{self.platform.value}:{self.identifier}"


@dataclass(frozen=True)
class Company:
    id: str
    name: str
    slug: str
    ats_platform: str | None = None
    ats_identifier: str | None = None
    logo_url: str | None = None
    website_url: str | None = None
    active: bool = True
    auto_created: bool = False
    verified: bool = False
    last_sync_at: str | None = None


@dataclass(frozen=True)
class CompanyResolution:
    """Outcome of resolving a company name. `error` is set instead of raising."""

    id: str | None
    was_created: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.id is not None and self.error is None


# -----------------------------
# Postings
# -----------------------------
@dataclass(frozen=True)
class NormalizedPosting:
    """
    Common shape every source adapter produces before classification.
    Never persisted directly.
    """

    title: str
    location: str
    category_hint: str
    apply_link: str
    description: str
    job_type_hint: str
    company_id: str | None


@dataclass(frozen=True)
class ParsedLocation:
    city: str
    country: str
    state: str | None = None
    is_remote: bool = False


@dataclass(frozen=True)
class JobRecord:
    """A classified posting ready to be upserted (keyed by apply_link)."""

    company_id: str
    title: str
    category: JobCategory
    location_city: str
    location_country: str
    job_type: JobType
    experience_level: ExperienceLevel | None
    apply_link: str
    description: str
    is_active: bool = True

    def to_row(self) -> dict[str, Any]:
        row = asdict(self)
        row["category"] = self.category.value
        row["job_type"] = self.job_type.value
        row["experience_level"] = self.experience_level.value if self.experience_level else None
        return row


@dataclass
class ScrapeResult:
    """
    Result bundle produced by one adapter call for one company.
    - items: raw postings as returned by the platform (NOT normalized).
    - error: why the fetch failed; None means the items are authoritative
      (an empty list is a valid "no openings" answer).
    """

    source: str
    items: list[dict[str, Any]] = field(default_factory=list)
    error: ErrorKind | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


# -----------------------------
# Run summary
# -----------------------------
@dataclass
class HarvestSummary:
    companies_total: int = 0
    companies_processed: int = 0
    companies_failed: int = 0
    found: int = 0
    synced: int = 0
    marked_expired: int = 0
    deleted: int = 0
    failed: int = 0
    category_counts: dict[str, int] = field(default_factory=dict)
    experience_counts: dict[str, int] = field(default_factory=dict)
    errors_by_source: dict[str, str] = field(default_factory=dict)
    durations_us: dict[str, int] = field(default_factory=dict)
    cancelled: bool = False

    def count_category(self, category: JobCategory) -> None:
        self.category_counts[category.value] = self.category_counts.get(category.value, 0) + 1

    def count_experience(self, level: ExperienceLevel | None) -> None:
        key = level.value if level else "unknown"
        self.experience_counts[key] = self.experience_counts.get(key, 0) + 1

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)
