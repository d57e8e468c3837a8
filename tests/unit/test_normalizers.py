import random

import pytest

from salesdash.models.domain.records import (
    EPOCH_SENTINEL,
    Collection,
    InteractionType,
    LeadStatus,
    LostReason,
    PurchaseAttemptStatus,
)
from salesdash.services.gateway.normalizers import (
    Ok,
    Skipped,
    extract_id,
    extract_image,
    extract_linked_name,
    infer_attempt_status,
    infer_interaction_type,
    infer_lead_status,
    infer_lost_reason,
    normalize_date,
    normalize_records,
    parse_amount,
    parse_attempt,
    parse_contact,
    parse_sale,
    parse_seller,
    parse_timestamp,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Lead Nuevo", LeadStatus.NEW),
        ("Seguimiento Cliente Nuevo", LeadStatus.CONTACTED),
        ("no contactar", LeadStatus.CLOSED_LOST),
        ("Llamada Agendada", LeadStatus.INTERESTED),
        ("", LeadStatus.NEW),
        (None, LeadStatus.NEW),
        ("Venta Ganada", LeadStatus.CLOSED_WON),
        ("Venta Perdida", LeadStatus.CLOSED_LOST),
        ("Leads perdidos (que nunca contestaron)", LeadStatus.CLOSED_LOST),
        ("Seguimiento Potencial venta", LeadStatus.INTERESTED),
        ("Contactar en 48 horas", LeadStatus.CONTACTED),
        ("Nutrición a Largo Plazo", LeadStatus.CONTACTED),
        ("No se presentó", LeadStatus.CONTACTED),
        ("Something unexpected", LeadStatus.NEW),
    ],
)
def test_infer_lead_status(raw, expected):
    assert infer_lead_status(raw) == expected


def test_infer_lead_status_is_order_independent():
    statuses = ["Lead Nuevo", "Venta Ganada", "no contactar", "Llamada Agendada", "En Seguimiento 7 días"]
    expected = {s: infer_lead_status(s) for s in statuses}

    shuffled = statuses[:]
    random.Random(7).shuffle(shuffled)

    assert {s: infer_lead_status(s) for s in shuffled} == expected


def test_infer_lost_reason_and_interaction_type():
    assert infer_lost_reason("Precio muy alto") == LostReason.EXPENSIVE
    assert infer_lost_reason("No está interesado") == LostReason.NOT_INTERESTED
    assert infer_lost_reason("Tomó otra oferta") == LostReason.COMPETITION
    assert infer_lost_reason("") is None

    assert infer_interaction_type("Llamada telefónica") == InteractionType.CALL
    assert infer_interaction_type("ManyChat bot") == InteractionType.MANYCHAT
    assert infer_interaction_type("") == InteractionType.WHATSAPP


def test_infer_attempt_status_failure_keywords_win():
    assert infer_attempt_status("Aprobado") == PurchaseAttemptStatus.SUCCESSFUL
    assert infer_attempt_status("Cerrado - recuperado") == PurchaseAttemptStatus.FAILED
    assert infer_attempt_status("pendiente") == PurchaseAttemptStatus.ABANDONED


def test_extract_helpers():
    assert extract_id([{"Id": 7, "Nombre": "Ana"}]) == "7"
    assert extract_id({"id": "x9"}) == "x9"
    assert extract_id(5) == "5"
    assert extract_id([]) == ""
    assert extract_id(None) == ""

    assert extract_image([{"signedUrl": "https://cdn/a.png", "url": "https://b"}]) == "https://cdn/a.png"
    assert extract_image("https://cdn/b.png") == "https://cdn/b.png"
    assert extract_image("not-a-url") is None

    assert extract_linked_name({"fields": {"Id": 1, "Nombre": "Coaching"}}) == "Coaching"
    assert extract_linked_name(["Mentoría"]) == "Mentoría"
    assert extract_linked_name(None) == ""


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-06-01T05:00:00-05:00", "2024-06-01T10:00:00.000Z"),
        ("2024-06-01 10:00:00+00:00", "2024-06-01T10:00:00.000Z"),
        ("2024-06-01T10:00:00Z", "2024-06-01T10:00:00.000Z"),
        ("2024-06-01", "2024-06-01T00:00:00.000Z"),
        (1717236000000, "2024-06-01T10:00:00.000Z"),
        ("garbage", EPOCH_SENTINEL),
        (None, EPOCH_SENTINEL),
        ("", EPOCH_SENTINEL),
    ],
)
def test_normalize_date(value, expected):
    assert normalize_date(value) == expected


@pytest.mark.parametrize("value", ["0001-01-01T00:00:00+05:00", "9999-12-31T23:00:00-05:00"])
def test_dates_outside_the_utc_calendar_fall_back_to_epoch(value):
    assert normalize_date(value) == EPOCH_SENTINEL
    assert parse_timestamp(value) is None


def test_out_of_range_date_does_not_abort_the_collection():
    rows = [{"Id": 1, "Fecha y hora de creación": "0001-01-01T00:00:00+05:00"}, {"Id": 2}]

    records, skipped = normalize_records(Collection.CONTACTS, rows)

    assert [r.created_at for r in records] == [EPOCH_SENTINEL, EPOCH_SENTINEL]
    assert skipped == []


@pytest.mark.parametrize(
    "value, expected",
    [
        (1500, 1500.0),
        ("$ 1,500.50", 1500.5),
        ("2000", 2000.0),
        ("abc", 0.0),
        (None, 0.0),
        (True, 0.0),
    ],
)
def test_parse_amount(value, expected):
    assert parse_amount(value) == expected


def test_parse_contact_full_row():
    result = parse_contact(
        {
            "Id": 12,
            "Nombre": "Laura",
            "País": "México",
            "Fecha y hora de creación": "2024-06-01T15:00:00Z",
            "Estado Actual": "Venta Perdida",
            "Vendedora Asignada": [{"Id": 3}],
            "Motivo Venta Perdida": "Muy caro para ella",
        }
    )

    assert isinstance(result, Ok)
    contact = result.record
    assert contact.id == "12"
    assert contact.country == "México"
    assert contact.created_at == "2024-06-01T15:00:00.000Z"
    assert contact.status == LeadStatus.CLOSED_LOST
    assert contact.assigned_seller_id == "3"
    assert contact.lost_reason == LostReason.EXPENSIVE
    assert contact.lost_reason_detail == "Muy caro para ella"


def test_parse_contact_defaults():
    contact = parse_contact({"Id": 1}).record

    assert contact.name == "Lead Sin Nombre"
    assert contact.country == "Desconocido"
    assert contact.created_at == EPOCH_SENTINEL
    assert contact.status == LeadStatus.NEW


def test_parsers_skip_malformed_rows():
    assert parse_contact({"Nombre": "No id"}) == Skipped("missing id")
    assert parse_seller("oops") == Skipped("expected object, got str")


def test_parse_seller_and_sale():
    seller = parse_seller({"Id": 2, "Nombre de la Vendedora": "Sofia", "Foto": [{"url": "https://img"}]}).record
    assert seller.name == "Sofia"
    assert seller.avatar_url == "https://img"

    sale = parse_sale(
        {
            "Id": 9,
            "Contacto que Compró": [{"Id": 12}],
            "Quién Vendió": {"Id": 2},
            "Producto Vendido": {"fields": {"Id": 1, "Nombre": "Coaching"}},
            "Monto Final": "$2,500",
            "Fecha": "2024-06-02T18:30:00Z",
            "Sales_Cycle_Days": "4",
        }
    ).record
    assert sale.contact_id == "12"
    assert sale.seller_id == "2"
    assert sale.product_name == "Coaching"
    assert sale.amount == 2500.0
    assert sale.date == "2024-06-02T18:30:00.000Z"
    assert sale.sales_cycle_days == 4
    assert sale.payment_status is None


def test_parse_attempt_defaults_amount():
    attempt = parse_attempt({"Id": 4, "Estado": "Cancelado", "Fecha del Intento": "2024-06-02T10:00:00Z"}).record

    assert attempt.amount == 5000.0
    assert attempt.status == PurchaseAttemptStatus.FAILED
    assert attempt.recovery_seller_id == ""


def test_normalize_records_collects_skip_reasons():
    rows = [{"Id": 1, "Nombre": "A"}, {"Nombre": "B"}, None, {"Id": 2}]

    records, skipped = normalize_records(Collection.CONTACTS, rows)

    assert [r.id for r in records] == ["1", "2"]
    assert skipped == ["missing id", "expected object, got NoneType"]
