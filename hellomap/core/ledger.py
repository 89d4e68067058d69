"""
Ledger Service - Claim Transactions

One process, one claim. The ledger:
- Is loaded and migrated before anything else
- Accepts at most one claim per run
- Is persisted only if that claim changed something
- Always yields fresh stats, even when nothing changed

Rules (enforced in code):
- Country codes are exactly two uppercase letters after normalization
- A user belongs to at most one country at a time
- A user may change their claim at most max_changes_per_user times
- The quota is checked BEFORE the same-country check, so a user at quota
  cannot re-confirm their current country either
- firstUser is write-once
- changesUsed never decreases

Failures to claim are outcomes, not exceptions. The caller gets a
ClaimResult whose changed flag says whether anything needs persisting.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, TYPE_CHECKING

from ..observability import get_logger
from ..schemas import CountryRecord, CurrentClaim, Ledger, Timestamp, UserRecord
from .clock import format_timestamp, now_iso
from .projector import LedgerStats, aggregate

if TYPE_CHECKING:
    from ..db.store import LedgerStore

logger = get_logger(__name__)

COUNTRY_CODE_RE = re.compile(r"[A-Z]{2}")


class LedgerError(Exception):
    """Base exception for ledger errors."""
    pass


class ValidationError(LedgerError):
    """Raised when a claim is rejected before reaching the ledger."""
    pass


class ClaimOutcome(str, Enum):
    """How a claim transaction ended."""
    APPLIED = "applied"
    UNCHANGED = "unchanged"             # Same country as current claim
    QUOTA_EXHAUSTED = "quota_exhausted" # changesUsed already at the limit
    INVALID_INPUT = "invalid_input"     # Bad user id or country code


@dataclass
class ClaimResult:
    """Result of applying one claim."""
    ledger: Ledger
    outcome: ClaimOutcome
    user: str = ""
    iso: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.outcome == ClaimOutcome.APPLIED


def normalize_country_code(code: Optional[str]) -> str:
    """
    Trim and uppercase a country code.

    Raises ValidationError unless the result is exactly two letters A-Z.
    """
    normalized = (code or "").strip().upper()
    if not COUNTRY_CODE_RE.fullmatch(normalized):
        raise ValidationError(
            f"Invalid country code {code!r}: expected two letters, e.g. hello|US"
        )
    return normalized


def _timestamp(value: Optional[Timestamp]) -> Timestamp:
    if value is None:
        return now_iso()
    if isinstance(value, datetime):
        return format_timestamp(value)
    return value


def apply_claim(
    ledger: Ledger,
    user: str,
    country: str,
    city: Optional[str] = None,
    claimed_at: Optional[Timestamp] = None,
    clock: Callable[[], str] = now_iso,
) -> ClaimResult:
    """
    Apply one user's country claim to a loaded ledger, in place.

    Args:
        ledger: A migrated ledger
        user: Claimant identifier (GitHub login)
        country: Target country code, normalized here
        city: Explicit city; None carries the previous city forward
        claimed_at: Event time stamped on the membership and the claim;
                    defaults to now
        clock: Processing-time source for the ledger's updatedAt

    Returns:
        ClaimResult; result.changed is True only if the ledger was modified
    """
    if not user or not user.strip():
        logger.info("Missing user identifier. No-op.")
        return ClaimResult(ledger=ledger, outcome=ClaimOutcome.INVALID_INPUT)

    try:
        iso = normalize_country_code(country)
    except ValidationError as e:
        logger.info(f"{e}. No-op.", user=user)
        return ClaimResult(ledger=ledger, outcome=ClaimOutcome.INVALID_INPUT, user=user)

    record = ledger.users.get(user) or UserRecord()

    if record.changes_used >= ledger.max_changes_per_user:
        logger.info(
            f"User {user} reached max changes ({ledger.max_changes_per_user}). No-op.",
            user=user,
            iso=iso,
            changes_used=record.changes_used,
        )
        return ClaimResult(ledger=ledger, outcome=ClaimOutcome.QUOTA_EXHAUSTED, user=user, iso=iso)

    previous_iso = record.current.iso
    if previous_iso == iso:
        logger.info(f"Same country as current ({iso}). No-op.", user=user, iso=iso)
        return ClaimResult(ledger=ledger, outcome=ClaimOutcome.UNCHANGED, user=user, iso=iso)

    stamp = _timestamp(claimed_at)
    target = ledger.countries.setdefault(iso, CountryRecord())

    # One country per user, even in hand-edited files
    for other_iso, other in ledger.countries.items():
        if other_iso != iso and other.has_member(user):
            del other.users[user]

    target.users[user] = stamp
    if not target.first_user:
        target.first_user = user
    target.last_at = stamp

    record.current = CurrentClaim(
        iso=iso,
        city=city if city is not None else record.current.city,
        hello_at=stamp,
    )
    record.changes_used += 1
    ledger.users[user] = record
    ledger.updated_at = clock()

    logger.info(
        f"Updated {user} -> {iso} (change {record.changes_used}/{ledger.max_changes_per_user})",
        user=user,
        iso=iso,
        previous_iso=previous_iso,
        changes_used=record.changes_used,
    )
    return ClaimResult(ledger=ledger, outcome=ClaimOutcome.APPLIED, user=user, iso=iso)


class LedgerService:
    """
    Runs one claim against a LedgerStore.

    The store owns persistence; this class owns the order of operations:
    load -> migrate -> claim -> persist if changed -> aggregate.

    Usage:
        service = LedgerService(JsonFileLedgerStore(path))
        result, stats = service.submit_claim("octocat", "US", city="Lisbon")
    """

    def __init__(self, store: Optional["LedgerStore"] = None):
        if store is None:
            from ..db.store import InMemoryLedgerStore
            store = InMemoryLedgerStore()
        self._store = store

    @property
    def store(self) -> "LedgerStore":
        return self._store

    def load(self) -> Ledger:
        """Load and migrate without claiming anything."""
        return self._store.load()

    def stats(self) -> LedgerStats:
        return aggregate(self.load())

    def submit_claim(
        self,
        user: str,
        country: str,
        city: Optional[str] = None,
        claimed_at: Optional[Timestamp] = None,
    ) -> tuple[ClaimResult, LedgerStats]:
        """
        Apply one claim and persist it if it changed the ledger.

        Stats are computed from the in-memory ledger in every case, so views
        stay in sync with a freshly migrated ledger even on a no-op.
        """
        with self._store.begin_transaction() as tx:
            result = apply_claim(
                tx.ledger,
                user=user,
                country=country,
                city=city,
                claimed_at=claimed_at,
            )
            if result.changed:
                tx.commit()
        return result, aggregate(result.ledger)
