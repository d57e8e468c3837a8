"""
Record fetchers: one coroutine per collection.

Each fetcher pages through the gateway (optionally with a server-side date
filter) and normalizes the raw rows into domain records.
"""

from datetime import tzinfo

from salesdash.infrastructure.observability.logging import get_logger
from salesdash.models.domain.records import (
    Collection,
    Contact,
    DateRange,
    Interaction,
    PurchaseAttempt,
    Sale,
    Seller,
)
from salesdash.services.cache.date_range import build_filter_expression
from salesdash.services.gateway.client import GatewayClient
from salesdash.services.gateway.normalizers import normalize_records

logger = get_logger(__name__)

STATUS_FIELD = "Estado Actual"

# Raw "Estado Actual" values that matter to the funnel and pipeline views.
FUNNEL_STATUSES: tuple[str, ...] = (
    "Lead Nuevo",
    "En Seguimiento 24 hs después primer contacto",
    "En Seguimiento 7 días",
    "Llamada Agendada",
    "Seguimiento Cliente Nuevo",
    "Seguimiento venta perdida",
    "Seguimiento leads sin respuesta",
    "Seguimiento Potencial venta",
    "Contactar en 48 horas",
    "Nutrición a Largo Plazo",
    "No se presentó",
    "Venta Ganada",
    "Venta Perdida",
    "Leads perdidos (que nunca contestaron)",
    "no contactar",
)


def build_status_filter(statuses: tuple[str, ...] | list[str]) -> str | None:
    if not statuses:
        return None
    return f"({STATUS_FIELD},in,{','.join(statuses)})"


class RecordFetcher:
    """Fetches and normalizes the dashboard collections from the gateway."""

    def __init__(self, client: GatewayClient, tz: tzinfo | None = None):
        self.client = client
        # Day boundaries for server-side filters; must match the cache's zone
        self.tz = tz

    async def fetch_collection(
        self,
        collection: Collection,
        date_range: DateRange | None = None,
        where: str | None = None,
    ) -> list:
        """
        Fetch one collection as typed records.

        ``where`` overrides the date filter; sellers are never date-filtered.
        """
        if where is None:
            where = build_filter_expression(date_range, collection, self.tz)

        rows = await self.client.fetch_all(collection, where=where)
        records, skipped = normalize_records(collection, rows)

        if skipped:
            logger.warning(
                "Skipped malformed gateway rows",
                collection=collection.value,
                skipped=len(skipped),
                reasons=sorted(set(skipped)),
            )

        logger.debug(
            "Collection normalized",
            collection=collection.value,
            records=len(records),
            date_filter=where,
        )
        return records

    async def fetch_sellers(self) -> list[Seller]:
        return await self.fetch_collection(Collection.SELLERS)

    async def fetch_contacts(self, date_range: DateRange | None = None) -> list[Contact]:
        return await self.fetch_collection(Collection.CONTACTS, date_range)

    async def fetch_contacts_by_status(
        self, statuses: tuple[str, ...] | list[str] = FUNNEL_STATUSES
    ) -> list[Contact]:
        """Contacts in the given raw statuses, regardless of creation date."""
        return await self.fetch_collection(Collection.CONTACTS, where=build_status_filter(statuses))

    async def fetch_interactions(self, date_range: DateRange | None = None) -> list[Interaction]:
        return await self.fetch_collection(Collection.INTERACTIONS, date_range)

    async def fetch_sales(self, date_range: DateRange | None = None) -> list[Sale]:
        return await self.fetch_collection(Collection.SALES, date_range)

    async def fetch_attempts(self, date_range: DateRange | None = None) -> list[PurchaseAttempt]:
        return await self.fetch_collection(Collection.ATTEMPTS, date_range)
