# Core ledger services
from .clock import EPOCH, format_timestamp, now_iso, parse_timestamp
from .hasher import Hasher, CanonicalSerializationError
from .migration import empty_ledger, is_recognized, migrate
from .ledger import (
    LedgerService,
    LedgerError,
    ValidationError,
    ClaimOutcome,
    ClaimResult,
    apply_claim,
    normalize_country_code,
)
from .intake import flag_emoji, format_issue_title, parse_city, parse_claim_title
from .projector import (
    Projector,
    CountryCount,
    Claimant,
    LedgerStats,
    aggregate,
)

__all__ = [
    "EPOCH",
    "format_timestamp",
    "now_iso",
    "parse_timestamp",
    "Hasher",
    "CanonicalSerializationError",
    "empty_ledger",
    "is_recognized",
    "migrate",
    "LedgerService",
    "LedgerError",
    "ValidationError",
    "ClaimOutcome",
    "ClaimResult",
    "apply_claim",
    "normalize_country_code",
    "flag_emoji",
    "format_issue_title",
    "parse_city",
    "parse_claim_title",
    "Projector",
    "CountryCount",
    "Claimant",
    "LedgerStats",
    "aggregate",
]
