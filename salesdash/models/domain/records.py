"""
Domain models for the dashboard record collections.

Records are frozen so a snapshot can hand the same objects to every
consumer. Date-bearing fields hold canonical UTC timestamp strings
(``YYYY-MM-DDTHH:MM:SS.mmmZ``) produced by the normalizers.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo
from enum import Enum

EPOCH_SENTINEL = "1970-01-01T00:00:00.000Z"


class Collection(str, Enum):
    """Record collections exposed by the remote gateway."""

    SELLERS = "sellers"
    CONTACTS = "contacts"
    INTERACTIONS = "interactions"
    SALES = "sales"
    ATTEMPTS = "attempts"


class LeadStatus(str, Enum):
    NEW = "Nuevo"
    CONTACTED = "Contactado"
    INTERESTED = "Interesado"
    CLOSED_WON = "Venta Cerrada"
    CLOSED_LOST = "Venta Perdida"


class LostReason(str, Enum):
    EXPENSIVE = "Muy caro"
    NOT_INTERESTED = "No interesado"
    NO_ANSWER = "No contesta"
    COMPETITION = "Competencia"
    TIMING = "Mal momento"
    OTHER = "Otro"


class InteractionType(str, Enum):
    CALL = "Llamada"
    WHATSAPP = "WhatsApp"
    EMAIL = "Email"
    SYSTEM = "System.io"
    FORM = "Formulario Web"
    MANYCHAT = "ManyChat"
    OTHER = "Otro"


class PurchaseAttemptStatus(str, Enum):
    SUCCESSFUL = "Exitoso"
    FAILED = "Fallido"
    ABANDONED = "Abandonado"


@dataclass(frozen=True, slots=True)
class Seller:
    id: str
    name: str
    avatar_url: str | None = None


@dataclass(frozen=True, slots=True)
class Contact:
    id: str
    name: str
    country: str
    created_at: str
    status: LeadStatus
    assigned_seller_id: str
    lost_reason: LostReason | None = None
    lost_reason_detail: str = ""


@dataclass(frozen=True, slots=True)
class Interaction:
    id: str
    contact_id: str
    seller_id: str
    type: InteractionType
    date: str
    duration_seconds: int = 0
    result: str = ""


@dataclass(frozen=True, slots=True)
class Sale:
    id: str
    contact_id: str
    seller_id: str
    product_name: str
    amount: float
    date: str
    payment_status: str | None = None
    sales_cycle_days: int | None = None
    interaction_count_snapshot: int | None = None


@dataclass(frozen=True, slots=True)
class PurchaseAttempt:
    id: str
    contact_id: str
    amount: float
    status: PurchaseAttemptStatus
    date: str
    recovery_seller_id: str = ""


# Attribute holding the normalized timestamp on each date-bearing record type
RECORD_DATE_ATTRIBUTE: dict[Collection, str] = {
    Collection.CONTACTS: "created_at",
    Collection.INTERACTIONS: "date",
    Collection.SALES: "date",
    Collection.ATTEMPTS: "date",
}


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive date range selected by the viewer.

    Naive datetimes are taken to be in the viewer's local zone; the
    reconciliation helpers attach that zone before comparing.
    """

    start: datetime
    end: datetime

    def __post_init__(self):
        same_kind = (self.start.tzinfo is None) == (self.end.tzinfo is None)
        if same_kind and self.start > self.end:
            raise ValueError(f"DateRange start {self.start} is after end {self.end}")

    @classmethod
    def for_days(cls, start_day: date, end_day: date, tz: tzinfo) -> "DateRange":
        """Range from local midnight of start_day to the last microsecond of end_day."""
        return cls(
            start=datetime.combine(start_day, time.min, tzinfo=tz),
            end=datetime.combine(end_day, time.max, tzinfo=tz),
        )

    def describe(self) -> str:
        return f"{self.start.date().isoformat()}..{self.end.date().isoformat()}"

