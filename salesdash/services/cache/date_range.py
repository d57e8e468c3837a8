"""
Date-range reconciliation between the viewer's selection and cached data.

Ranges are compared by calendar day in the viewer's zone, never by raw
timestamps: the same "today" built at two different moments, or in two
different offsets, must hit the same cache entry.
"""

from datetime import date, datetime, tzinfo

from salesdash.config import settings
from salesdash.models.domain.records import (
    RECORD_DATE_ATTRIBUTE,
    Collection,
    DateRange,
)
from salesdash.services.cache.snapshot import FilteredCollections, Snapshot
from salesdash.services.gateway.normalizers import parse_timestamp

# Gateway column holding each collection's date. Sellers are never filtered.
DATE_FIELDS: dict[Collection, str] = {
    Collection.CONTACTS: "Fecha y hora de creación",
    Collection.INTERACTIONS: "Fecha",
    Collection.SALES: "Fecha",
    Collection.ATTEMPTS: "Fecha del Intento",
}


def _zone(tz: tzinfo | None) -> tzinfo:
    return tz if tz is not None else settings.timezone()


def to_local(value: datetime, tz: tzinfo | None = None) -> datetime:
    """Express a datetime in the viewer's zone; naive values are already local."""
    zone = _zone(tz)
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)


def local_day(value: datetime, tz: tzinfo | None = None) -> date:
    return to_local(value, tz).date()


def format_local_date(value: datetime, tz: tzinfo | None = None) -> str:
    """YYYY-MM-DD of the local calendar day (not the UTC day)."""
    return local_day(value, tz).isoformat()


def build_filter_expression(
    date_range: DateRange | None,
    collection: Collection,
    tz: tzinfo | None = None,
) -> str | None:
    """
    Gateway where-clause restricting a collection to the range.

    Returns None when there is no range or the collection has no date column.
    """
    if date_range is None:
        return None
    field = DATE_FIELDS.get(collection)
    if field is None:
        return None

    start = format_local_date(date_range.start, tz)
    end = format_local_date(date_range.end, tz)
    return f"({field},gte,exactDate,{start})~and({field},lte,exactDate,{end})"


def ranges_equal_by_calendar_day(
    a: DateRange | None,
    b: DateRange | None,
    tz: tzinfo | None = None,
) -> bool:
    if a is None or b is None:
        return False
    return local_day(a.start, tz) == local_day(b.start, tz) and local_day(a.end, tz) == local_day(
        b.end, tz
    )


def same_date_range(
    a: DateRange | None,
    b: DateRange | None,
    tz: tzinfo | None = None,
) -> bool:
    """Cache-key equality: two unfiltered requests match each other."""
    if a is None and b is None:
        return True
    return ranges_equal_by_calendar_day(a, b, tz)


def reconcile(
    snapshot: Snapshot,
    requested: DateRange | None,
    tz: tzinfo | None = None,
) -> FilteredCollections:
    """
    Collections of the snapshot that belong to the requested range.

    When the snapshot was fetched for the same calendar days the stored
    tuples are returned as-is. Otherwise records are re-filtered locally
    with exact timestamp bounds.
    """
    if requested is None or ranges_equal_by_calendar_day(snapshot.date_range, requested, tz):
        return snapshot.filtered()

    start = to_local(requested.start, tz)
    end = to_local(requested.end, tz)

    def within(records, collection: Collection):
        attribute = RECORD_DATE_ATTRIBUTE[collection]
        kept = []
        for record in records:
            stamp = parse_timestamp(getattr(record, attribute))
            if stamp is not None and start <= stamp <= end:
                kept.append(record)
        return tuple(kept)

    return FilteredCollections(
        contacts=within(snapshot.contacts, Collection.CONTACTS),
        interactions=within(snapshot.interactions, Collection.INTERACTIONS),
        sales=within(snapshot.sales, Collection.SALES),
        attempts=within(snapshot.attempts, Collection.ATTEMPTS),
    )
