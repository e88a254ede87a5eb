#!/usr/bin/env python3

import os
import sys
from datetime import datetime
from pathlib import Path

# Allow running from a checkout: python scripts/print_latest_postings.py [limit]
PROJECT_ROOT = Path(__file__).resolve().parent.parent  # ../scripts → project root
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from modules.job_harvest.lib.store import SqliteStore  # noqa: E402

DEFAULT_DB = PROJECT_ROOT / "local" / "state" / "jobs.db"


def get_latest_entries(db_path: str, limit: int = 15) -> list[dict]:
    """Newest active postings first, at most `limit`."""
    return SqliteStore(db_path).active_jobs()[:limit]


def format_timestamp(iso_str: str) -> str:
    """Convert ISO timestamp to readable local format."""
    try:
        dt = datetime.fromisoformat(iso_str.replace("Z", "+00:00"))
        return dt.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")
    except (AttributeError, ValueError):
        return str(iso_str)


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    db_path = os.getenv("HARVEST_SQLITE_PATH") or str(DEFAULT_DB)
    if not os.path.exists(db_path):
        print(f"Database not found: {db_path}")
        return 1

    # Parse optional limit
    limit = 15
    if argv:
        try:
            limit = int(argv[0])
            if limit <= 0:
                raise ValueError
        except ValueError:
            print(f"Invalid limit: {argv[0]}. Using default (15).", file=sys.stderr)
            limit = 15

    entries = get_latest_entries(db_path, limit)
    print("=" * 80)
    print(f"DATABASE: {db_path}")
    print("-" * 80)
    if not entries:
        print("  No active postings.")
        return 0

    for i, job in enumerate(entries, 1):
        print(f"{i:2d}. [{format_timestamp(job['created_at'])}] {job['category']} / {job['job_type']}")
        print(f"     Title:    {job['title']}")
        print(f"     Location: {job['location_city']}, {job['location_country']}")
        print(f"     URL:      {job['apply_link']}")
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
