"""Record builders and in-memory fakes shared by the unit tests."""

import asyncio
from datetime import UTC, date, datetime, timedelta, timezone

from salesdash.models.domain.records import (
    Contact,
    DateRange,
    Interaction,
    InteractionType,
    LeadStatus,
    PurchaseAttempt,
    PurchaseAttemptStatus,
    Sale,
    Seller,
)

# Fixed offset so tests do not depend on the host's tz database
LOCAL_TZ = timezone(timedelta(hours=-5))


def day_range(start: date, end: date | None = None, tz=LOCAL_TZ) -> DateRange:
    return DateRange.for_days(start, end or start, tz)


def make_contact(
    contact_id: str,
    created_at: str = "2024-06-01T15:00:00.000Z",
    status: LeadStatus = LeadStatus.NEW,
) -> Contact:
    return Contact(
        id=contact_id,
        name=f"Lead {contact_id}",
        country="Colombia",
        created_at=created_at,
        status=status,
        assigned_seller_id="1",
    )


def make_sale(sale_id: str, amount: float = 2000, sale_date: str = "2024-06-01T16:00:00.000Z") -> Sale:
    return Sale(
        id=sale_id,
        contact_id="c1",
        seller_id="1",
        product_name="Coaching Premium",
        amount=amount,
        date=sale_date,
    )


def make_interaction(interaction_id: str, when: str = "2024-06-01T17:00:00.000Z") -> Interaction:
    return Interaction(
        id=interaction_id,
        contact_id="c1",
        seller_id="1",
        type=InteractionType.WHATSAPP,
        date=when,
    )


def make_attempt(
    attempt_id: str,
    status: PurchaseAttemptStatus = PurchaseAttemptStatus.FAILED,
    when: str = "2024-06-01T18:00:00.000Z",
    recovery_seller_id: str = "",
    amount: float = 5000,
) -> PurchaseAttempt:
    return PurchaseAttempt(
        id=attempt_id,
        contact_id="c1",
        amount=amount,
        status=status,
        date=when,
        recovery_seller_id=recovery_seller_id,
    )


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 6, 1, 20, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeFetcher:
    """In-memory stand-in for RecordFetcher that records every call."""

    def __init__(self):
        self.sellers = [Seller(id="1", name="Ana Garcia"), Seller(id="2", name="Sofia Martinez")]
        self.contacts = [make_contact("c1"), make_contact("c2"), make_contact("c3")]
        self.funnel_contacts = [
            make_contact("f1", status=LeadStatus.NEW),
            make_contact("f2", status=LeadStatus.CONTACTED),
            make_contact("f3", status=LeadStatus.INTERESTED),
            make_contact("f4", status=LeadStatus.CLOSED_WON),
            make_contact("f5", status=LeadStatus.CLOSED_LOST),
        ]
        self.interactions = [make_interaction("i1")]
        self.sales = [make_sale("s1")]
        self.attempts = [make_attempt("a1")]

        self.calls: list[tuple[str, DateRange | None]] = []
        self.errors: dict[str, Exception] = {}
        self.delay = 0.0
        self.hold: asyncio.Event | None = None
        self.active = 0
        self.max_active = 0

    def count(self, name: str) -> int:
        return sum(1 for called, _ in self.calls if called == name)

    def ranges(self, name: str) -> list[DateRange | None]:
        return [dr for called, dr in self.calls if called == name]

    async def _serve(self, name: str, date_range: DateRange | None, records: list) -> list:
        self.calls.append((name, date_range))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            # Only the next call waits on a held gate
            if self.hold is not None:
                gate, self.hold = self.hold, None
                await gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if name in self.errors:
                raise self.errors[name]
            return list(records)
        finally:
            self.active -= 1

    async def fetch_sellers(self):
        return await self._serve("sellers", None, self.sellers)

    async def fetch_contacts(self, date_range=None):
        return await self._serve("contacts", date_range, self.contacts)

    async def fetch_contacts_by_status(self, statuses=()):
        return await self._serve("funnel", None, self.funnel_contacts)

    async def fetch_interactions(self, date_range=None):
        return await self._serve("interactions", date_range, self.interactions)

    async def fetch_sales(self, date_range=None):
        return await self._serve("sales", date_range, self.sales)

    async def fetch_attempts(self, date_range=None):
        return await self._serve("attempts", date_range, self.attempts)
