"""
Immutable cache snapshot and cache state.

A refresh always builds a new Snapshot and a new CacheState; nothing is
mutated in place, so a reader holding a reference never sees a half-updated
view.
"""

from dataclasses import dataclass, field
from datetime import datetime

from salesdash.models.domain.records import (
    Contact,
    DateRange,
    Interaction,
    PurchaseAttempt,
    Sale,
    Seller,
)


@dataclass(frozen=True, slots=True)
class FilteredCollections:
    """The date-bearing collections for one requested range."""

    contacts: tuple[Contact, ...] = ()
    interactions: tuple[Interaction, ...] = ()
    sales: tuple[Sale, ...] = ()
    attempts: tuple[PurchaseAttempt, ...] = ()


@dataclass(frozen=True, slots=True)
class Snapshot:
    timestamp: datetime
    sellers: tuple[Seller, ...] = ()
    contacts: tuple[Contact, ...] = ()
    all_contacts: tuple[Contact, ...] = ()  # funnel/pipeline set, independent of the range
    interactions: tuple[Interaction, ...] = ()
    sales: tuple[Sale, ...] = ()
    attempts: tuple[PurchaseAttempt, ...] = ()
    is_demo: bool = False
    date_range: DateRange | None = None

    @classmethod
    def empty_demo(cls, timestamp: datetime, date_range: DateRange | None) -> "Snapshot":
        return cls(timestamp=timestamp, is_demo=True, date_range=date_range)

    def filtered(self) -> FilteredCollections:
        return FilteredCollections(
            contacts=self.contacts,
            interactions=self.interactions,
            sales=self.sales,
            attempts=self.attempts,
        )

    def counts(self) -> dict[str, int]:
        return {
            "sellers": len(self.sellers),
            "contacts": len(self.contacts),
            "all_contacts": len(self.all_contacts),
            "interactions": len(self.interactions),
            "sales": len(self.sales),
            "attempts": len(self.attempts),
        }


@dataclass(frozen=True, slots=True)
class CacheState:
    data: Snapshot | None = None
    loading: bool = False
    error: Exception | None = field(default=None, compare=False)
    is_network_error: bool = False
    last_fetch: datetime | None = None
    current_date_range: DateRange | None = None
