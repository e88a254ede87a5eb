"""
Company identity: slugs, name normalization, resolve-or-create, and
offline duplicate clustering.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable

from rapidfuzz.distance import Levenshtein

from .models import Company, CompanyResolution
from .store import Store, StoreError, new_id

LOG = logging.getLogger(__name__)

MAX_EDIT_DISTANCE = 2

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_LEGAL_SUFFIX_RE = re.compile(r"\b(inc|llc|ltd|corp|corporation|company|co)\b\.?", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")


# ---- Pure helpers ------------------------------------------------------------


def generate_slug(text: str) -> str:
    """'Scale AI' -> 'scale-ai'; 'Stripe, Inc.' -> 'stripe-inc'."""
    return _SLUG_RE.sub("-", (text or "").lower()).strip("-")


def normalize_company_name(name: str) -> str:
    """Lowercase, drop legal suffixes and punctuation: 'Stripe Inc.' -> 'stripe'."""
    s = _LEGAL_SUFFIX_RE.sub("", (name or "").lower())
    s = _NON_ALNUM_RE.sub("", s)
    return " ".join(s.split())


def levenshtein(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def are_similar(a: str, b: str) -> bool:
    """
    Same company under a naming variant: equal after normalization, one
    contains the other, or within MAX_EDIT_DISTANCE edits.
    """
    na, nb = normalize_company_name(a), normalize_company_name(b)
    if not na or not nb:
        # names that normalize to nothing ("Co.") only match themselves
        return (a or "").strip().lower() == (b or "").strip().lower()
    if na == nb:
        return True
    if na in nb or nb in na:
        return True
    return Levenshtein.distance(na, nb, score_cutoff=MAX_EDIT_DISTANCE) <= MAX_EDIT_DISTANCE


def find_duplicates(names: Iterable[str]) -> list[list[str]]:
    """
    Group names into clusters of likely duplicates (clusters of size >= 2).
    Greedy: each name joins the first cluster whose seed it resembles.
    """
    unique: list[str] = []
    seen: set[str] = set()
    for n in names:
        key = (n or "").strip()
        if key and key not in seen:
            seen.add(key)
            unique.append(key)

    clusters: list[list[str]] = []
    used: set[int] = set()
    for i, seed in enumerate(unique):
        if i in used:
            continue
        group = [seed]
        for j in range(i + 1, len(unique)):
            if j not in used and are_similar(seed, unique[j]):
                group.append(unique[j])
                used.add(j)
        if len(group) > 1:
            used.add(i)
            clusters.append(group)
    return clusters


def logo_url_for(slug: str) -> str:
    return f"https://logo.clearbit.com/{slug}.com"


def website_url_for(slug: str) -> str:
    return f"https://www.{slug}.com"


# ---- Resolver ----------------------------------------------------------------


class CompanyResolver:
    """
    Resolve a company name to a stored company id, creating it when unseen.

    Lookup order (first hit wins):
      1. slug of the name
      2. case-insensitive display name
      3. (ats_platform, ats_identifier)
      4. slug of the suffix-stripped name ("Stripe Inc." -> "stripe")

    Lookup-then-create is serialized per suffix-stripped slug, so "Stripe"
    and "Stripe Inc." share a lock and, within one resolver, the same id in
    either order. The store's unique slug turns a lost race into a lookup.
    """

    def __init__(self, store: Store):
        self.store = store
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        # suffix-stripped slug -> id of a company resolved by insert in this process
        self._created: dict[str, str] = {}

    def find(
        self,
        name: str,
        platform: str | None = None,
        identifier: str | None = None,
    ) -> Company | None:
        name = (name or "").strip()
        slug = generate_slug(name)
        if slug:
            hit = self.store.find_company_by_slug(slug)
            if hit:
                return hit
        if name:
            hit = self.store.find_company_by_name(name)
            if hit:
                return hit
        if platform and identifier:
            hit = self.store.find_company_by_ats(platform, identifier)
            if hit:
                return hit
        base_slug = generate_slug(normalize_company_name(name))
        if base_slug and base_slug != slug:
            hit = self.store.find_company_by_slug(base_slug)
            if hit:
                return hit
        return None

    def lookup(
        self,
        name: str,
        platform: str | None = None,
        identifier: str | None = None,
    ) -> CompanyResolution:
        """Find without creating; id is None when the company is unknown."""
        try:
            hit = self.find(name, platform, identifier)
        except StoreError as e:
            return CompanyResolution(id=None, error=str(e))
        return CompanyResolution(id=hit.id if hit else None)

    def resolve(
        self,
        name: str,
        platform: str | None = None,
        identifier: str | None = None,
    ) -> CompanyResolution:
        """Find or create. Store failures come back in `error`, never raised."""
        name = (name or "").strip()
        slug = generate_slug(name)
        if not slug:
            return CompanyResolution(id=None, error=f"cannot derive a slug from company name {name!r}")

        base_slug = generate_slug(normalize_company_name(name)) or slug
        with self._lock_for(base_slug):
            try:
                hit = self.find(name, platform, identifier)
                if hit:
                    return CompanyResolution(id=hit.id, was_created=False)
                # "Stripe Inc." created first leaves slug "stripe-inc", which a
                # later "Stripe" cannot find by slug
                known = self._created.get(base_slug)
                if known:
                    return CompanyResolution(id=known, was_created=False)

                candidate = Company(
                    id=new_id(),
                    name=name,
                    slug=slug,
                    ats_platform=platform,
                    ats_identifier=identifier,
                    logo_url=logo_url_for(slug),
                    website_url=website_url_for(slug),
                    active=True,
                    auto_created=True,
                    verified=False,
                )
                stored = self.store.insert_company(candidate)
            except StoreError as e:
                LOG.warning("company resolution failed for %r: %s", name, e)
                return CompanyResolution(id=None, error=str(e))

            self._created[base_slug] = stored.id

        created = stored.id == candidate.id
        if created:
            LOG.info("created company %s (%s)", name, slug)
        return CompanyResolution(id=stored.id, was_created=created)

    def _lock_for(self, slug: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(slug)
            if lock is None:
                lock = self._locks[slug] = threading.Lock()
            return lock
