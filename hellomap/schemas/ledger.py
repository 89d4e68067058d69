"""
Canonical Visitor Ledger Schema

The ledger is the whole persisted state of the campaign:
who currently claims which country, and which countries have ever been claimed.

Field names are snake_case in Python and camelCase on disk.
Always dump with by_alias=True.
Keys this schema doesn't know are kept and written back as they were.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


SCHEMA_VERSION = 3
MAX_CHANGES_PER_USER = 3

# A timestamp as it appears on disk: ISO-8601 string or a numeric epoch
Timestamp = Union[str, int, float]

# Presence marker inside CountryRecord.users.
# True is the legacy form, a timestamp is what current writes produce.
# Membership is key existence only; the value is never consulted for it.
PresenceMarker = Union[bool, str, int, float]


def is_legacy_marker(marker: PresenceMarker) -> bool:
    """True for the bare boolean marker written by the legacy migration."""
    return isinstance(marker, bool)


class CurrentClaim(BaseModel):
    """A user's single active claim."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    iso: Optional[str] = Field(
        default=None,
        description="Two-letter uppercase country code"
    )
    city: Optional[str] = Field(
        default=None,
        description="Free-text city, carried forward between claims"
    )
    hello_at: Optional[Timestamp] = Field(
        default=None,
        alias="helloAt",
        description="When the claim was made (event time)"
    )


class UserRecord(BaseModel):
    """
    Per-user state.

    changes_used only ever goes up, and never past the ledger quota.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    current: CurrentClaim = Field(default_factory=CurrentClaim)
    changes_used: int = Field(
        default=0,
        ge=0,
        alias="changesUsed",
        description="Successful claim changes so far"
    )


class CountryRecord(BaseModel):
    """
    Per-country membership.

    first_user is write-once. A record with no users is kept, not deleted.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    users: dict[str, PresenceMarker] = Field(default_factory=dict)
    first_user: Optional[str] = Field(default=None, alias="firstUser")
    last_at: Optional[Timestamp] = Field(default=None, alias="lastAt")

    def has_member(self, user: str) -> bool:
        return user in self.users

    @property
    def member_count(self) -> int:
        return len(self.users)


class Ledger(BaseModel):
    """
    The root persisted object (schema version 3).

    Invariants:
    - users[u].current.iso == K  =>  u in countries[K].users
    - a user is present in at most one countries[K].users
    - 0 <= users[u].changes_used <= max_changes_per_user
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    schema_version: int = Field(default=SCHEMA_VERSION, alias="schemaVersion")
    updated_at: Timestamp = Field(
        default="",
        alias="updatedAt",
        description="Processing time of the last mutating transaction"
    )
    max_changes_per_user: int = Field(
        default=MAX_CHANGES_PER_USER,
        gt=0,
        alias="maxChangesPerUser",
    )
    countries: dict[str, CountryRecord] = Field(default_factory=dict)
    users: dict[str, UserRecord] = Field(default_factory=dict)

    def to_document(self) -> dict:
        """Serialize to the on-disk JSON shape."""
        return self.model_dump(mode="json", by_alias=True)

    def country_of(self, user: str) -> Optional[str]:
        record = self.users.get(user)
        if record is None:
            return None
        return record.current.iso
