"""
Keyword-table classification of postings.

Both classifiers are pure: ordered keyword tables, first matching bucket
wins, deterministic defaults. Matching is word-boundary aware so short
keywords ("ae", "vp", "hr", "intern") do not fire inside unrelated words.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from functools import lru_cache

from .models import ExperienceLevel, JobCategory, JobType
from .utils import html_to_text

# ---- Keyword tables (checked in order; first hit wins) -----------------------

CATEGORY_KEYWORDS: Sequence[tuple[JobCategory, tuple[str, ...]]] = (
    (
        JobCategory.SALES,
        (
            "sales", "account executive", "ae", "business development", "bdr", "sdr",
            "revenue", "account manager", "customer success", "partnerships", "commercial",
        ),
    ),
    (
        JobCategory.MARKETING,
        (
            "marketing", "brand", "growth", "content", "seo", "sem", "digital marketing",
            "campaign", "social media", "community", "creative", "copywriter",
        ),
    ),
    (
        JobCategory.FINANCE,
        ("finance", "accounting", "controller", "financial", "audit", "fp&a", "cfo", "tax", "payroll"),
    ),
    (
        JobCategory.LEGAL,
        ("legal", "attorney", "counsel", "compliance", "lawyer", "paralegal", "regulatory", "contracts"),
    ),
    (
        JobCategory.RESEARCH_DEVELOPMENT,
        (
            "research", "scientist", "science", "r&d", "algorithm", "lab", "phd", "postdoc",
            "ml researcher", "ai researcher",
        ),
    ),
    (
        JobCategory.MANAGEMENT,
        (
            "ceo", "cto", "coo", "cmo", "chief", "vp", "vice president", "director of",
            "head of", "hr", "human resources", "people ops",
        ),
    ),
    (
        JobCategory.IT,
        (
            "engineer", "engineering", "developer", "software", "frontend", "backend", "devops",
            "sre", "architect", "programming", "cloud", "security",
        ),
    ),
)

EXPERIENCE_KEYWORDS: Sequence[tuple[ExperienceLevel, tuple[str, ...]]] = (
    (
        ExperienceLevel.INTERNSHIP,
        ("intern", "internship", "co-op", "apprentice", "new grad", "student", "campus"),
    ),
    (
        ExperienceLevel.EXECUTIVE,
        (
            "ceo", "cto", "coo", "cfo", "cmo", "chief", "vp", "vice president",
            "executive director", "managing director",
        ),
    ),
    (
        ExperienceLevel.LEAD,
        ("lead", "principal", "staff", "staff engineer", "staff developer", "architect", "head of"),
    ),
    (ExperienceLevel.SENIOR, ("senior", "sr.", "sr", "expert")),
    (
        ExperienceLevel.ENTRY,
        ("junior", "jr.", "jr", "graduate", "entry", "entry level", "associate", "trainee"),
    ),
)

DEFAULT_CATEGORY = JobCategory.IT
DEFAULT_EXPERIENCE = ExperienceLevel.MID

# Keywords whose behavior differs from a plain substring test. Each entry is
# (keyword, text): a substring search finds the keyword in the text, the
# word-boundary matcher does not. Tests pin these.
SUBSTRING_DIVERGENCES: Sequence[tuple[str, str]] = (
    ("intern", "internal tools engineer"),
    ("intern", "international sales"),
    ("ae", "aerospace engineer"),
    ("hr", "three.js developer"),
    ("vp", "vpn engineer"),
    ("lab", "gitlab administrator"),
    ("tax", "syntax tooling engineer"),
    ("sr", "srv platform"),
    ("lead", "leadership development coach"),
    ("content", "contentful integrator"),
)


# ---- Matching ----------------------------------------------------------------


@lru_cache(maxsize=512)
def keyword_pattern(keyword: str) -> re.Pattern[str]:
    """
    Compile a keyword into a word-boundary regex.

    - Boundaries are "not a letter/digit" on either side, so punctuation
      inside keywords ("fp&a", "co-op", "sr.") still works.
    - Internal spaces match any run of whitespace.
    - Keywords ending in a letter also match their plain plural ("interns").
    """
    kw = keyword.strip().lower()
    body = r"\s+".join(re.escape(tok) for tok in kw.split())
    plural = "s?" if kw[-1:].isalpha() else ""
    return re.compile(rf"(?<![a-z0-9]){body}{plural}(?![a-z0-9])")


def contains_keyword(text: str, keyword: str) -> bool:
    return bool(keyword_pattern(keyword).search(text))


def _first_match(text: str, keywords: Iterable[str]) -> str | None:
    for kw in keywords:
        if contains_keyword(text, kw):
            return kw
    return None


def _combine(*parts: str | None) -> str:
    return " ".join(p for p in parts if p).lower()


# ---- Public API --------------------------------------------------------------


def classify_category(department: str | None, title: str | None) -> JobCategory:
    """
    First matching category over department + title; defaults to IT.
    """
    text = _combine(department, title)
    for category, keywords in CATEGORY_KEYWORDS:
        if _first_match(text, keywords):
            return category
    return DEFAULT_CATEGORY


def classify_experience(title: str | None, description: str | None = "") -> ExperienceLevel:
    """
    First matching seniority bucket; defaults to mid-level.

    The title decides when it carries any keyword, so body text such as
    "our Mountain View campus" cannot turn a senior role into an internship.
    The description (HTML flattened) is only read for titles with no keyword.
    """
    for text in (_combine(title), _combine(html_to_text(description))):
        for level, keywords in EXPERIENCE_KEYWORDS:
            if _first_match(text, keywords):
                return level
    return DEFAULT_EXPERIENCE


def classify_job_type(location: str | None, title: str | None = "", hint: str | None = "") -> JobType:
    """
    Remote/anywhere -> Remote, hybrid -> Hybrid, else On-site.
    `hint` is the platform's workplace/employment metadata when present.
    """
    text = _combine(location, title, hint)
    if contains_keyword(text, "remote") or contains_keyword(text, "anywhere"):
        return JobType.REMOTE
    if contains_keyword(text, "hybrid"):
        return JobType.HYBRID
    return JobType.ONSITE


def explain_category(department: str | None, title: str | None) -> tuple[JobCategory, str | None]:
    """Like classify_category, but also returns the keyword that decided it."""
    text = _combine(department, title)
    for category, keywords in CATEGORY_KEYWORDS:
        hit = _first_match(text, keywords)
        if hit:
            return category, hit
    return DEFAULT_CATEGORY, None
