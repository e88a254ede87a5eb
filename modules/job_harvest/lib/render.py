from __future__ import annotations

from collections.abc import Iterable, Sequence

from .models import CompanyTarget, HarvestSummary

RULE = "=" * 60


def summary_text(summary: HarvestSummary) -> str:
    """
    Plain-text end-of-run report:

        HARVEST SUMMARY
           Companies processed: 12/14 (2 failed)
           Jobs found: 480
           ...
    """
    lines = [
        RULE,
        "HARVEST SUMMARY" + ("  (cancelled)" if summary.cancelled else ""),
        RULE,
        f"   Companies processed: {summary.companies_processed}/{summary.companies_total}"
        f" ({summary.companies_failed} failed)",
        f"   Jobs found: {summary.found}",
        f"   Jobs synced: {summary.synced}",
        f"   Jobs marked expired: {summary.marked_expired}",
        f"   Jobs deleted: {summary.deleted}",
        f"   Jobs failed: {summary.failed}",
    ]
    lines += _distribution("Category Distribution", summary.category_counts)
    lines += _distribution("Experience Level Distribution", summary.experience_counts)
    if summary.errors_by_source:
        lines.append("")
        lines.append("Failures:")
        for source, err in sorted(summary.errors_by_source.items()):
            lines.append(f"   {source}: {err}")
    lines.append(RULE)
    return "\n".join(lines)


def roster_table(targets: Sequence[CompanyTarget]) -> str:
    """Fixed-width table of roster entries (name, platform, identifier, feed)."""
    rows = [("NAME", "PLATFORM", "IDENTIFIER", "WORKDAY FEED")]
    for t in targets:
        feed = f"{t.workday_domain}/{t.workday_site_id}" if t.workday_domain else ""
        rows.append((t.name, t.platform.value, t.identifier, feed))
    widths = [max(len(r[i]) for r in rows) for i in range(3)]
    out = []
    for r in rows:
        out.append(
            f"{r[0]:<{widths[0]}}  {r[1]:<{widths[1]}}  {r[2]:<{widths[2]}}  {r[3]}".rstrip()
        )
    out.append(f"\n{len(targets)} companies")
    return "\n".join(out)


def duplicates_text(clusters: Iterable[list[str]]) -> str:
    clusters = list(clusters)
    if not clusters:
        return "No likely duplicate companies found."
    lines = [f"{len(clusters)} group(s) of likely duplicates:"]
    for i, group in enumerate(clusters, 1):
        lines.append(f"{i:3d}. " + " | ".join(group))
    return "\n".join(lines)


def _distribution(title: str, counts: dict[str, int]) -> list[str]:
    if not counts:
        return []
    lines = ["", f"{title}:"]
    for key, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
        lines.append(f"   {key}: {n}")
    return lines
