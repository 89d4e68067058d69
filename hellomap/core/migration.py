"""
Ledger Migration

Brings whatever was on disk up to the current schema before anything else
touches it. Runs unconditionally on every load.

Recognized shapes, in priority order:
1. Current (schemaVersion == 3, or the older "version": 3 key) -> as is,
   with nulls filled in and maxChangesPerUser pinned to the system quota.
   Unknown keys are kept. A record that still fails validation is dropped
   on its own; the rest of the ledger survives.
2. Legacy counters: countries = {CC: n}, byUser = {user: {last, count}}
3. Anything else (including nothing) -> a fresh empty ledger

Migration never raises for data it recognizes, and running it on its own
output changes nothing.
"""

from typing import Any, Optional, Type

from pydantic import ValidationError as SchemaValidationError

from ..observability import get_logger
from ..schemas import (
    CountryRecord,
    CurrentClaim,
    Ledger,
    UserRecord,
    MAX_CHANGES_PER_USER,
    SCHEMA_VERSION,
)
from .clock import now_iso

logger = get_logger(__name__)


def empty_ledger() -> Ledger:
    """A fresh ledger: no countries, no users, never updated."""
    return Ledger(
        schema_version=SCHEMA_VERSION,
        updated_at="",
        max_changes_per_user=MAX_CHANGES_PER_USER,
    )


def is_current(raw: Any) -> bool:
    if not isinstance(raw, dict):
        return False
    return raw.get("schemaVersion") == SCHEMA_VERSION or raw.get("version") == SCHEMA_VERSION


def is_legacy(raw: Any) -> bool:
    return (
        isinstance(raw, dict)
        and isinstance(raw.get("countries"), dict)
        and isinstance(raw.get("byUser"), dict)
    )


def is_recognized(raw: Any) -> bool:
    """False for stored data that migrate() would throw away."""
    return not raw or isinstance(raw, Ledger) or is_current(raw) or is_legacy(raw)


def migrate(raw: Any) -> Ledger:
    """
    Produce a well-formed current-version Ledger from a persisted object.

    Args:
        raw: A decoded JSON document, a Ledger, or None for "nothing stored"
    """
    if isinstance(raw, Ledger):
        return raw

    if is_current(raw):
        return _load_current(raw)
    if is_legacy(raw):
        return _from_legacy(raw)

    if raw:
        logger.warning(
            "Unrecognized ledger shape; starting from an empty ledger",
            shape=type(raw).__name__,
            keys=sorted(raw.keys())[:10] if isinstance(raw, dict) else None,
        )
    return empty_ledger()


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def _normalize_country(record: Any) -> dict:
    record = dict(record) if isinstance(record, dict) else {}
    users = record.get("users")
    if not isinstance(users, dict):
        users = {}
    # Membership is key existence; a null marker still means "present"
    record["users"] = {
        user: True if marker is None else marker
        for user, marker in users.items()
    }
    return record


def _normalize_user(record: Any) -> dict:
    record = dict(record) if isinstance(record, dict) else {}
    if not isinstance(record.get("current"), dict):
        record["current"] = {}
    if record.get("changesUsed") is None:
        record["changesUsed"] = 0
    return record


def _validate_record(model: Type[Any], record: dict, **context: Any) -> Optional[Any]:
    try:
        return model.model_validate(record)
    except SchemaValidationError as e:
        logger.warning(
            f"Dropping {model.__name__} that failed validation",
            errors=e.error_count(),
            first_error=str(e.errors()[0].get("msg")) if e.errors() else None,
            **context,
        )
        return None


def _load_current(raw: dict) -> Ledger:
    document = dict(raw)
    # Earlier releases wrote the marker as "version"
    if "schemaVersion" not in document:
        document["schemaVersion"] = document.pop("version")
    else:
        document.pop("version", None)

    if not _is_timestamp(document.get("updatedAt")):
        document["updatedAt"] = ""
    document["maxChangesPerUser"] = MAX_CHANGES_PER_USER

    countries = document.pop("countries", None)
    users = document.pop("users", None)
    ledger = Ledger.model_validate(document)

    if isinstance(countries, dict):
        for iso, record in countries.items():
            country = _validate_record(CountryRecord, _normalize_country(record), iso=iso)
            if country is not None:
                ledger.countries[iso] = country

    if isinstance(users, dict):
        for user, record in users.items():
            user_record = _validate_record(UserRecord, _normalize_user(record), user=user)
            if user_record is not None:
                ledger.users[user] = user_record

    return ledger


def _legacy_change_count(info: dict) -> int:
    count = info.get("count") or 0
    if isinstance(count, bool) or not isinstance(count, (int, float)):
        return 0
    return max(0, min(int(count), MAX_CHANGES_PER_USER))


def _from_legacy(raw: dict) -> Ledger:
    """
    Convert the counter-based legacy document.

    Per-country numeric counts cannot be attributed to users and are dropped;
    membership is rebuilt from each user's last claim instead.
    """
    seeded_at = raw.get("updatedAt") or now_iso()
    first_visitors = raw.get("firstVisitor")
    if not isinstance(first_visitors, dict):
        first_visitors = {}

    ledger = Ledger(
        schema_version=SCHEMA_VERSION,
        updated_at=seeded_at,
        max_changes_per_user=MAX_CHANGES_PER_USER,
    )

    for user, info in raw["byUser"].items():
        if not isinstance(info, dict):
            info = {}
        last = info.get("last")
        iso = last.strip().upper() if isinstance(last, str) and last.strip() else None
        ledger.users[user] = UserRecord(
            current=CurrentClaim(iso=iso, city=None),
            changes_used=_legacy_change_count(info),
        )

    for user, record in ledger.users.items():
        iso = record.current.iso
        if not iso:
            continue
        country = ledger.countries.get(iso)
        if country is None:
            seeded_first = first_visitors.get(iso)
            country = CountryRecord(
                first_user=seeded_first if isinstance(seeded_first, str) and seeded_first else None,
                last_at=seeded_at,
            )
            ledger.countries[iso] = country
        country.users[user] = True
        if not country.first_user:
            country.first_user = user

    logger.info(
        "Migrated legacy ledger",
        users=len(ledger.users),
        countries=len(ledger.countries),
    )
    return ledger
