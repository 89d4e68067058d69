"""
README rendering

Literal placeholder substitution into README.tpl.md:
    {{TOTAL_HELLOS}}     total hellos
    {{TOTAL_COUNTRIES}}  countries with at least one hello
    {{WHO_SAID_HELLO}}   most recent claimants, flag + profile link
    {{COUNTRY_TABLE}}    markdown table, most hellos first
    {{UPDATED_AT}}       ledger updatedAt
"""

from pathlib import Path
from typing import Callable, Optional

from ..core.clock import now_iso
from ..core.intake import flag_emoji
from ..core.projector import Claimant, CountryCount, LedgerStats
from ..observability import get_logger

logger = get_logger(__name__)

GITHUB_PROFILE_URL = "https://github.com/{user}"
EMPTY_WHO = "—"


def country_table(countries: list[CountryCount], names: Optional[dict[str, str]] = None) -> str:
    names = names or {}
    rows = ["| Country | Count |", "|---------|------:|"]
    for row in countries:
        name = names.get(row.iso, row.iso)
        rows.append(f"| {flag_emoji(row.iso)} {name} | {row.count} |")
    return "\n".join(rows)


def who_said_hello(claimants: list[Claimant], limit: int = 50) -> str:
    """The `limit` most recent claimants, oldest of them first."""
    if limit <= 0 or not claimants:
        return EMPTY_WHO
    recent = claimants[-limit:]
    return " | ".join(
        f"{flag_emoji(c.iso)} [@{c.user}]({GITHUB_PROFILE_URL.format(user=c.user)})"
        for c in recent
    )


def render_readme(
    template: str,
    stats: LedgerStats,
    names: Optional[dict[str, str]] = None,
    who_limit: int = 50,
    clock: Callable[[], str] = now_iso,
) -> str:
    replacements = {
        "{{TOTAL_HELLOS}}": str(stats.total_hellos),
        "{{TOTAL_COUNTRIES}}": str(stats.total_countries),
        "{{WHO_SAID_HELLO}}": who_said_hello(stats.claimants, who_limit),
        "{{COUNTRY_TABLE}}": country_table(stats.countries, names),
        "{{UPDATED_AT}}": str(stats.updated_at or clock()),
    }
    out = template
    for placeholder, value in replacements.items():
        out = out.replace(placeholder, value)
    return out


def write_readme(
    template_path: Path,
    output_path: Path,
    stats: LedgerStats,
    names: Optional[dict[str, str]] = None,
    who_limit: int = 50,
) -> bool:
    """
    Render template_path into output_path.

    Returns False, without error, when there is no template.
    """
    template_path = Path(template_path)
    if not template_path.exists():
        logger.info(f"No {template_path} found, skipping README generation")
        return False

    template = template_path.read_text(encoding="utf-8")
    output = render_readme(template, stats, names=names, who_limit=who_limit)
    Path(output_path).write_text(output, encoding="utf-8")
    logger.info(
        f"{output_path} generated",
        hellos=stats.total_hellos,
        countries=stats.total_countries,
    )
    return True
