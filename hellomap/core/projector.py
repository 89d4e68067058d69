"""
Projector: read models derived from the ledger

Nothing here mutates the ledger. Same ledger in, same stats out.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ..schemas import Ledger, Timestamp
from .clock import parse_timestamp


@dataclass(frozen=True)
class CountryCount:
    """One row of the per-country table."""
    iso: str
    count: int


@dataclass(frozen=True)
class Claimant:
    """A user with an active claim, as shown in "who said hello"."""
    user: str
    iso: str
    hello_at: Timestamp | None = None
    city: str | None = None


@dataclass
class LedgerStats:
    """Everything the renderers need."""
    countries: list[CountryCount] = field(default_factory=list)
    claimants: list[Claimant] = field(default_factory=list)
    updated_at: Timestamp = ""

    @property
    def total_hellos(self) -> int:
        return sum(c.count for c in self.countries)

    @property
    def total_countries(self) -> int:
        return len(self.countries)

    def as_dict(self) -> dict:
        return {
            "totalHellos": self.total_hellos,
            "totalCountries": self.total_countries,
            "countries": [[c.iso, c.count] for c in self.countries],
            "whoSaidHello": [[c.user, c.iso] for c in self.claimants],
            "updatedAt": self.updated_at,
        }


class Projector:
    """
    Aggregation over a loaded ledger.

    Usage:
        stats = Projector(ledger).stats()
    """

    def __init__(self, ledger: Ledger):
        self.ledger = ledger

    def country_counts(self) -> list[CountryCount]:
        """
        Countries with at least one current member, most members first.

        Membership is key presence, so legacy True markers and timestamp
        markers count the same. Ties keep the ledger's mapping order.
        """
        counts = [
            CountryCount(iso=iso, count=record.member_count)
            for iso, record in self.ledger.countries.items()
            if record.member_count
        ]
        return sorted(counts, key=lambda c: -c.count)

    def claimants(self) -> list[Claimant]:
        """
        Every user with a current country, earliest claim first.

        Missing or unparseable claim times sort as the epoch; equal times
        fall back to the user id so the order is total.
        """
        claimants = [
            Claimant(
                user=user,
                iso=record.current.iso,
                hello_at=record.current.hello_at,
                city=record.current.city,
            )
            for user, record in self.ledger.users.items()
            if record.current.iso
        ]
        return sorted(claimants, key=self._claimant_key)

    @staticmethod
    def _claimant_key(claimant: Claimant) -> tuple[datetime, str]:
        return parse_timestamp(claimant.hello_at), claimant.user

    def stats(self) -> LedgerStats:
        return LedgerStats(
            countries=self.country_counts(),
            claimants=self.claimants(),
            updated_at=self.ledger.updated_at,
        )


def aggregate(ledger: Ledger) -> LedgerStats:
    """Shortcut for Projector(ledger).stats()."""
    return Projector(ledger).stats()
