"""
Normalizers for raw gateway rows.

The no-code database returns loosely typed rows: linked records arrive as
arrays, nested objects or scalars, and column names vary between tables
and schema revisions. Each parser maps one raw row into a domain record
and reports malformed rows as ``Skipped`` instead of raising, so one bad
row never aborts a collection load.
"""

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any, Generic, TypeVar

from salesdash.models.domain.records import (
    EPOCH_SENTINEL,
    Collection,
    Contact,
    Interaction,
    InteractionType,
    LeadStatus,
    LostReason,
    PurchaseAttempt,
    PurchaseAttemptStatus,
    Sale,
    Seller,
)

T = TypeVar("T")

DEFAULT_ATTEMPT_AMOUNT = 5000.0
_AMOUNT_CLEANUP = re.compile(r"[^0-9.\-]+")
_LEADING_NUMBER = re.compile(r"-?\d*\.?\d+")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    record: T


@dataclass(frozen=True, slots=True)
class Skipped:
    reason: str


NormalizeResult = Ok[T] | Skipped


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def first_present(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first truthy value among keys, mirroring the UI's fallbacks."""
    for key in keys:
        value = raw.get(key)
        if value:
            return value
    return default


def extract_id(field: Any) -> str:
    """Pull a record id out of a linked-record lookup."""
    if field is None:
        return ""
    if isinstance(field, list):
        return extract_id(field[0]) if field else ""
    if isinstance(field, Mapping):
        value = field.get("Id", field.get("id"))
        return str(value) if value is not None else ""
    return str(field)


def extract_image(field: Any) -> str | None:
    if isinstance(field, list) and field:
        first = field[0]
        if isinstance(first, Mapping):
            return first.get("signedUrl") or first.get("url")
        return None
    if isinstance(field, str) and field.startswith("http"):
        return field
    return None


def extract_linked_name(field: Any) -> str:
    """Display value of a linked record (first non-id column)."""
    if not field:
        return ""
    if isinstance(field, str):
        return field
    if isinstance(field, list):
        return extract_linked_name(field[0])
    if isinstance(field, Mapping) and isinstance(field.get("fields"), Mapping):
        keys = [k for k in field["fields"] if k.lower() != "id"]
        if keys:
            return str(field["fields"][keys[0]] or "")
    return ""


def normalize_date(value: Any) -> str:
    """Canonical UTC timestamp string, or the epoch sentinel when unparseable."""
    parsed = _to_utc(_parse_datetime(value))
    if parsed is None:
        return EPOCH_SENTINEL
    return parsed.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime | None:
    """Parse a canonical timestamp back into an aware UTC datetime."""
    return _to_utc(_parse_datetime(value))


def _to_utc(parsed: datetime | None) -> datetime | None:
    if parsed is None:
        return None
    try:
        return parsed.astimezone(UTC)
    except (OverflowError, ValueError):
        # Valid ISO values at the edges of the calendar can fall outside it in UTC
        return None


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "" or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, int | float):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_amount(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        return float(value)
    if not value or not isinstance(value, str):
        return 0.0

    clean = _AMOUNT_CLEANUP.sub("", value)
    try:
        return float(clean)
    except ValueError:
        match = _LEADING_NUMBER.match(clean)
        return float(match.group()) if match else 0.0


def _parse_int(value: Any) -> int | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _record_id(raw: Mapping[str, Any]) -> str | None:
    value = first_present(raw, "Id", "id")
    if value is None and raw.get("Id") == 0:
        value = 0
    return str(value) if value is not None else None


# ---------------------------------------------------------------------------
# Keyword inference
# ---------------------------------------------------------------------------


def infer_lead_status(raw_status: str | None) -> LeadStatus:
    """
    Map the free-text "Estado Actual" column onto the five funnel stages.

    Rules are ordered; the first match wins. "no contactar" must be checked
    before the generic "contactar" rule.
    """
    s = (raw_status or "").lower()

    if "nuevo" in s and "seguimiento" not in s:
        return LeadStatus.NEW
    if "ganada" in s:
        return LeadStatus.CLOSED_WON
    if "perdida" in s or "leads perdidos" in s or "no contactar" in s:
        return LeadStatus.CLOSED_LOST
    if "agendada" in s or "potencial venta" in s:
        return LeadStatus.INTERESTED
    if any(marker in s for marker in ("seguimiento", "contactar", "nutrición", "no se presentó")):
        return LeadStatus.CONTACTED
    return LeadStatus.NEW


def infer_lost_reason(raw_reason: str | None) -> LostReason | None:
    r = (raw_reason or "").lower()

    if "precio" in r or "caro" in r:
        return LostReason.EXPENSIVE
    if "interesado" in r:
        return LostReason.NOT_INTERESTED
    if "oferta" in r or "competencia" in r:
        return LostReason.COMPETITION
    if "presupuesto" in r:
        return LostReason.EXPENSIVE
    return None


def infer_interaction_type(raw_type: str | None) -> InteractionType:
    t = (raw_type or "").lower()

    if "llamada" in t:
        return InteractionType.CALL
    if "email" in t:
        return InteractionType.EMAIL
    if "system.io" in t:
        return InteractionType.SYSTEM
    if "formulario" in t:
        return InteractionType.FORM
    if "manychat" in t:
        return InteractionType.MANYCHAT
    if "sistema" in t:
        return InteractionType.OTHER
    return InteractionType.WHATSAPP


def infer_attempt_status(raw_status: str | None) -> PurchaseAttemptStatus:
    s = (raw_status or "").lower()

    status = PurchaseAttemptStatus.ABANDONED
    if "recuperado" in s or "aprobado" in s:
        status = PurchaseAttemptStatus.SUCCESSFUL
    if "cerrado" in s or "cancelado" in s:
        status = PurchaseAttemptStatus.FAILED
    return status


# ---------------------------------------------------------------------------
# Per-collection parsers
# ---------------------------------------------------------------------------


def parse_seller(raw: Any) -> NormalizeResult[Seller]:
    if not isinstance(raw, Mapping):
        return Skipped(f"expected object, got {type(raw).__name__}")
    record_id = _record_id(raw)
    if record_id is None:
        return Skipped("missing id")

    return Ok(
        Seller(
            id=record_id,
            name=str(first_present(raw, "Nombre de la Vendedora", "Name", "Nombre", default="Sin Nombre")),
            avatar_url=extract_image(first_present(raw, "Foto", "Avatar", "Imagen")),
        )
    )


def parse_contact(raw: Any) -> NormalizeResult[Contact]:
    if not isinstance(raw, Mapping):
        return Skipped(f"expected object, got {type(raw).__name__}")
    record_id = _record_id(raw)
    if record_id is None:
        return Skipped("missing id")

    raw_status = first_present(raw, "Estado Actual", "Status", "Estado", default="")
    raw_reason = first_present(raw, "Motivo Venta Perdida", "LostReason", "Motivo", default="")

    return Ok(
        Contact(
            id=record_id,
            name=str(first_present(raw, "Nombre", "Name", default="Lead Sin Nombre")),
            country=str(first_present(raw, "País", "Country", "Pais", default="Desconocido")),
            created_at=normalize_date(
                first_present(raw, "Fecha y hora de creación", "CreatedAt", "created_at")
            ),
            status=infer_lead_status(str(raw_status)),
            assigned_seller_id=extract_id(
                first_present(raw, "Vendedora Asignada", "AssignedSeller", "Seller")
            ),
            lost_reason=infer_lost_reason(str(raw_reason)),
            lost_reason_detail=str(raw_reason),
        )
    )


def parse_interaction(raw: Any) -> NormalizeResult[Interaction]:
    if not isinstance(raw, Mapping):
        return Skipped(f"expected object, got {type(raw).__name__}")
    record_id = _record_id(raw)
    if record_id is None:
        return Skipped("missing id")

    raw_type = first_present(raw, "Medio/Canal", "Type", "Tipo", default="")

    return Ok(
        Interaction(
            id=record_id,
            contact_id=extract_id(first_present(raw, "Contacto Involucrado", "Contact", "Contacto")),
            seller_id=extract_id(first_present(raw, "Realizada Por", "Seller", "Vendedora")),
            type=infer_interaction_type(str(raw_type)),
            date=normalize_date(first_present(raw, "Fecha", "Date", "created_at")),
            duration_seconds=_parse_int(first_present(raw, "Duración (Minutos)", "Duration")) or 0,
            result=str(first_present(raw, "Resultado", "Result", "Notas", default="")),
        )
    )


def parse_sale(raw: Any) -> NormalizeResult[Sale]:
    if not isinstance(raw, Mapping):
        return Skipped(f"expected object, got {type(raw).__name__}")
    record_id = _record_id(raw)
    if record_id is None:
        return Skipped("missing id")

    return Ok(
        Sale(
            id=record_id,
            contact_id=extract_id(first_present(raw, "Contacto que Compró", "Contact", "Lead")),
            seller_id=extract_id(first_present(raw, "Quién Vendió", "Seller", "Vendedora")),
            product_name=extract_linked_name(raw.get("Producto Vendido")) or "Servicio General",
            amount=parse_amount(first_present(raw, "Monto Final", "Amount", "Monto")),
            date=normalize_date(first_present(raw, "Fecha", "Date", "created_at")),
            payment_status=raw.get("Estado del Pago") or None,
            sales_cycle_days=_parse_int(raw.get("Sales_Cycle_Days")) or None,
            interaction_count_snapshot=_parse_int(raw.get("Interaction_Count_Snapshot")) or None,
        )
    )


def parse_attempt(raw: Any) -> NormalizeResult[PurchaseAttempt]:
    if not isinstance(raw, Mapping):
        return Skipped(f"expected object, got {type(raw).__name__}")
    record_id = _record_id(raw)
    if record_id is None:
        return Skipped("missing id")

    raw_amount = first_present(raw, "Monto", "Amount")

    return Ok(
        PurchaseAttempt(
            id=record_id,
            contact_id=extract_id(first_present(raw, "Quién Intentó Comprar", "Contact", "Lead")),
            amount=parse_amount(raw_amount) if raw_amount else DEFAULT_ATTEMPT_AMOUNT,
            status=infer_attempt_status(str(first_present(raw, "Estado", "Status", default=""))),
            date=normalize_date(first_present(raw, "Fecha del Intento", "Date", "Fecha")),
            recovery_seller_id=extract_id(
                first_present(raw, "Vendedora de Recuperación", "RecoverySeller", "Seller")
            ),
        )
    )


PARSERS: dict[Collection, Callable[[Any], NormalizeResult]] = {
    Collection.SELLERS: parse_seller,
    Collection.CONTACTS: parse_contact,
    Collection.INTERACTIONS: parse_interaction,
    Collection.SALES: parse_sale,
    Collection.ATTEMPTS: parse_attempt,
}


def normalize_records(collection: Collection, rows: Iterable[Any]) -> tuple[list, list[str]]:
    """Run every row through the collection's parser.

    Returns:
        (records, skipped_reasons)
    """
    parser = PARSERS[collection]
    records = []
    skipped: list[str] = []

    for row in rows:
        result = parser(row)
        if isinstance(result, Ok):
            records.append(result.record)
        else:
            skipped.append(result.reason)

    return records, skipped
