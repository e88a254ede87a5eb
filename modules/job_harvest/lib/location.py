"""
Best-effort parsing of free-text job locations into (city, country, state).

This is a heuristic over curated city tables, not geocoding. Ambiguous city
names resolve to the first table that contains them, in the fixed order
India, US, UK, Canada, Australia, Europe, Asia.
"""

from __future__ import annotations

import re

from .models import ParsedLocation

REMOTE_CITY = "Remote"
GLOBAL_COUNTRY = "Global"

_REMOTE_RE = re.compile(r"\b(remote|anywhere|wfh|work\s+from\s+home)\b", re.IGNORECASE)

# ---- City tables -------------------------------------------------------------

INDIAN_CITIES = frozenset({
    "bangalore", "bengaluru", "mumbai", "delhi", "new delhi", "gurgaon", "gurugram",
    "hyderabad", "chennai", "pune", "kolkata", "ahmedabad", "jaipur", "surat",
    "lucknow", "kanpur", "nagpur", "indore", "thane", "bhopal", "visakhapatnam",
    "pimpri", "patna", "vadodara", "ghaziabad", "ludhiana", "agra", "nashik",
    "faridabad", "meerut", "rajkot", "kalyan", "vasai", "varanasi", "srinagar",
    "aurangabad", "dhanbad", "amritsar", "navi mumbai", "allahabad", "prayagraj",
    "ranchi", "howrah", "coimbatore", "jabalpur", "gwalior", "vijayawada",
    "jodhpur", "madurai", "raipur", "kota", "chandigarh", "guwahati", "noida",
    "greater noida",
})

US_CITIES = frozenset({
    "new york", "new york city", "nyc", "los angeles", "chicago", "houston",
    "phoenix", "philadelphia", "san antonio", "san diego", "dallas", "san jose",
    "austin", "jacksonville", "fort worth", "columbus", "charlotte",
    "san francisco", "indianapolis", "seattle", "denver", "washington", "boston",
    "nashville", "detroit", "portland", "las vegas", "memphis", "louisville",
    "baltimore", "milwaukee", "albuquerque", "tucson", "fresno", "sacramento",
    "kansas city", "atlanta", "miami", "oakland", "raleigh", "minneapolis",
    "tulsa", "cleveland", "new orleans", "tampa", "honolulu", "colorado springs",
    "st. louis", "palo alto", "mountain view", "menlo park", "sunnyvale",
    "redmond", "bellevue", "santa clara", "pittsburgh", "salt lake city",
})

UK_CITIES = frozenset({
    "london", "birmingham", "manchester", "glasgow", "liverpool", "edinburgh",
    "leeds", "bristol", "sheffield", "cardiff", "belfast", "newcastle",
    "nottingham", "southampton", "leicester", "coventry", "bradford", "stoke",
    "cambridge", "oxford",
})

CANADIAN_CITIES = frozenset({
    "toronto", "montreal", "vancouver", "calgary", "edmonton", "ottawa",
    "winnipeg", "quebec city", "hamilton", "kitchener", "waterloo", "london",
    "victoria",
})

AUSTRALIAN_CITIES = frozenset({
    "sydney", "melbourne", "brisbane", "perth", "adelaide", "gold coast",
    "canberra", "newcastle", "wollongong", "logan city", "geelong", "hobart",
})

EUROPEAN_CITIES: dict[str, str] = {
    "paris": "France",
    "berlin": "Germany",
    "madrid": "Spain",
    "rome": "Italy",
    "amsterdam": "Netherlands",
    "barcelona": "Spain",
    "munich": "Germany",
    "milan": "Italy",
    "prague": "Czech Republic",
    "vienna": "Austria",
    "budapest": "Hungary",
    "warsaw": "Poland",
    "dublin": "Ireland",
    "brussels": "Belgium",
    "zurich": "Switzerland",
    "stockholm": "Sweden",
    "copenhagen": "Denmark",
    "oslo": "Norway",
    "helsinki": "Finland",
    "athens": "Greece",
    "lisbon": "Portugal",
}

ASIAN_CITIES: dict[str, str] = {
    "singapore": "Singapore",
    "tokyo": "Japan",
    "shanghai": "China",
    "beijing": "China",
    "hong kong": "Hong Kong",
    "seoul": "South Korea",
    "bangkok": "Thailand",
    "kuala lumpur": "Malaysia",
    "manila": "Philippines",
    "jakarta": "Indonesia",
    "dubai": "United Arab Emirates",
    "tel aviv": "Israel",
    "taipei": "Taiwan",
    "ho chi minh": "Vietnam",
    "ho chi minh city": "Vietnam",
    "hanoi": "Vietnam",
}

# ---- Country / state tables --------------------------------------------------

US_STATES: dict[str, str] = {
    "AL": "alabama", "AK": "alaska", "AZ": "arizona", "AR": "arkansas",
    "CA": "california", "CO": "colorado", "CT": "connecticut", "DE": "delaware",
    "FL": "florida", "GA": "georgia", "HI": "hawaii", "ID": "idaho",
    "IL": "illinois", "IN": "indiana", "IA": "iowa", "KS": "kansas",
    "KY": "kentucky", "LA": "louisiana", "ME": "maine", "MD": "maryland",
    "MA": "massachusetts", "MI": "michigan", "MN": "minnesota", "MS": "mississippi",
    "MO": "missouri", "MT": "montana", "NE": "nebraska", "NV": "nevada",
    "NH": "new hampshire", "NJ": "new jersey", "NM": "new mexico", "NY": "new york",
    "NC": "north carolina", "ND": "north dakota", "OH": "ohio", "OK": "oklahoma",
    "OR": "oregon", "PA": "pennsylvania", "RI": "rhode island", "SC": "south carolina",
    "SD": "south dakota", "TN": "tennessee", "TX": "texas", "UT": "utah",
    "VT": "vermont", "VA": "virginia", "WA": "washington", "WV": "west virginia",
    "WI": "wisconsin", "WY": "wyoming",
}
_US_STATE_BY_NAME = {name: code for code, name in US_STATES.items()}

# explicit country names / abbreviations accepted in the second segment
_COUNTRY_ALIASES: dict[str, str] = {
    "india": "India",
    "in": "India",
    "usa": "United States",
    "us": "United States",
    "u.s.": "United States",
    "u.s.a.": "United States",
    "united states": "United States",
    "united states of america": "United States",
    "uk": "United Kingdom",
    "u.k.": "United Kingdom",
    "united kingdom": "United Kingdom",
    "england": "United Kingdom",
    "scotland": "United Kingdom",
    "wales": "United Kingdom",
    "canada": "Canada",
    "ca": "Canada",
    "australia": "Australia",
    "au": "Australia",
}
for _country in {*EUROPEAN_CITIES.values(), *ASIAN_CITIES.values()}:
    _COUNTRY_ALIASES.setdefault(_country.lower(), _country)

# two-letter codes that are both a country alias and a US state
_AMBIGUOUS_CODES = {"ca": ("Canada", CANADIAN_CITIES), "in": ("India", INDIAN_CITIES)}


# ---- Public API --------------------------------------------------------------


def is_remote(text: str | None) -> bool:
    """True for empty input or any remote keyword on a word boundary."""
    if not text or not text.strip():
        return True
    return bool(_REMOTE_RE.search(text))


def parse_location(text: str | None) -> ParsedLocation:
    """
    Map a free-text location ("Bangalore, India", "Austin, TX", "Remote")
    to a ParsedLocation. Unresolvable cities get country 'Global'.
    """
    if is_remote(text):
        return _remote()

    parts = [p.strip() for p in str(text).split(",") if p.strip()]
    if not parts:
        return _remote()

    city = parts[0]
    city_lower = city.lower()

    if len(parts) >= 2:
        hit = _match_region(city_lower, parts[1], parts[2] if len(parts) >= 3 else None)
        if hit is None and len(parts) >= 3:
            # "City, Region, Country": let the last segment decide
            hit = _match_region(city_lower, parts[-1], None)
            if hit is not None and hit[1] is None and hit[0] == "United States":
                hit = (hit[0], _us_state_code(parts[1]))
        if hit is not None:
            country, state = hit
            return ParsedLocation(city=city, country=country, state=state, is_remote=False)

    return ParsedLocation(city=city, country=infer_country_from_city(city_lower), is_remote=False)


def infer_country_from_city(city_lower: str) -> str:
    """
    Look the city up in the curated tables (first table wins).
    """
    c = city_lower.strip().lower()
    if c in INDIAN_CITIES or "bengaluru" in c or "bangalore" in c:
        return "India"
    if c in US_CITIES:
        return "United States"
    if c in UK_CITIES:
        return "United Kingdom"
    if c in CANADIAN_CITIES:
        return "Canada"
    if c in AUSTRALIAN_CITIES:
        return "Australia"
    if c in EUROPEAN_CITIES:
        return EUROPEAN_CITIES[c]
    if c in ASIAN_CITIES:
        return ASIAN_CITIES[c]
    return GLOBAL_COUNTRY


def format_location(parsed: ParsedLocation) -> str:
    if parsed.is_remote:
        return REMOTE_CITY
    if parsed.state:
        return f"{parsed.city}, {parsed.state}, {parsed.country}"
    return f"{parsed.city}, {parsed.country}"


# ---- Internal helpers --------------------------------------------------------


def _remote() -> ParsedLocation:
    return ParsedLocation(city=REMOTE_CITY, country=GLOBAL_COUNTRY, is_remote=True)


def _us_state_code(segment: str | None) -> str | None:
    if not segment:
        return None
    s = segment.strip()
    if s.upper() in US_STATES:
        return s.upper()
    return _US_STATE_BY_NAME.get(s.lower())


def _match_region(city_lower: str, segment: str, trailing: str | None) -> tuple[str, str | None] | None:
    """
    Interpret the segment after the city. Returns (country, state) or None.

    "CA" and "IN" are both US states and country codes; the city tables
    break the tie (Toronto, CA -> Canada), otherwise the state reading wins.
    """
    seg = segment.strip().lower()

    if seg in _AMBIGUOUS_CODES:
        country, cities = _AMBIGUOUS_CODES[seg]
        if city_lower in cities or (country == "India" and infer_country_from_city(city_lower) == "India"):
            return country, _trailing_state(country, trailing)
        return "United States", segment.strip().upper()

    if seg.upper() in US_STATES:
        return "United States", segment.strip().upper()

    if seg in _COUNTRY_ALIASES:
        country = _COUNTRY_ALIASES[seg]
        state = None
        if country in ("United States", "India"):
            state = _trailing_state(country, trailing)
        return country, state

    if seg in _US_STATE_BY_NAME:
        return "United States", _US_STATE_BY_NAME[seg]

    return None


def _trailing_state(country: str, trailing: str | None) -> str | None:
    """Third segment as a state, unless it only repeats the country ("Toronto, CA, Canada")."""
    if not trailing or not trailing.strip():
        return None
    if _COUNTRY_ALIASES.get(trailing.strip().lower()) == country:
        return None
    return trailing.strip()
