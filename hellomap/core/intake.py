"""
Claim intake: turning issue text into claim arguments.

Titles look like "hello|US" (any case, anything after a "-" ignored).
Bodies may carry a "City: Lisbon" line anywhere.
"""

import re
from typing import Optional

from .ledger import COUNTRY_CODE_RE

CITY_LINE_RE = re.compile(r"^[ \t]*City:[ \t]*(.+?)[ \t]*$", re.IGNORECASE | re.MULTILINE)
EXACT_TITLE_RE = re.compile(r"hello\|([A-Z]{2})", re.IGNORECASE)

REGIONAL_INDICATOR_A = 0x1F1E6


def parse_claim_title(title: Optional[str]) -> Optional[str]:
    """
    Extract the country code from a claim title.

    "hello|us" -> "US", "hello|FR-extra" -> "FR", "hello" -> None
    """
    parts = (title or "").split("|")
    if len(parts) < 2:
        return None
    code = parts[1].split("-")[0].strip().upper()
    return code if COUNTRY_CODE_RE.fullmatch(code) else None


def parse_city(body: Optional[str]) -> Optional[str]:
    """First "City: ..." line of an issue body, or None."""
    match = CITY_LINE_RE.search(body or "")
    if not match:
        return None
    city = match.group(1).strip()
    return city or None


def flag_emoji(code: Optional[str]) -> str:
    """Regional-indicator flag for a two-letter code; "" for anything else."""
    code = (code or "").upper()
    if not COUNTRY_CODE_RE.fullmatch(code):
        return ""
    return "".join(chr(REGIONAL_INDICATOR_A + ord(ch) - ord("A")) for ch in code)


def format_issue_title(title: Optional[str], author: str) -> Optional[str]:
    """
    Decorated title for a bare "hello|XX" issue.

    Returns None when the title is anything other than exactly hello|XX,
    so already-formatted titles are left alone.
    """
    match = EXACT_TITLE_RE.fullmatch((title or "").strip())
    if not match:
        return None
    code = match.group(1).upper()
    return f"{flag_emoji(code)} hello|{code} - @{author} says hello 👋"
