# Canonical schemas for the visitor ledger
# Everything that reaches disk goes through these models.

from .ledger import (
    Ledger,
    CountryRecord,
    UserRecord,
    CurrentClaim,
    PresenceMarker,
    Timestamp,
    SCHEMA_VERSION,
    MAX_CHANGES_PER_USER,
    is_legacy_marker,
)

__all__ = [
    "Ledger",
    "CountryRecord",
    "UserRecord",
    "CurrentClaim",
    "PresenceMarker",
    "Timestamp",
    "SCHEMA_VERSION",
    "MAX_CHANGES_PER_USER",
    "is_legacy_marker",
]
