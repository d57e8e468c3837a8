from datetime import datetime, timedelta, timezone

import httpx
import pytest

from salesdash.models.domain.records import DateRange, LeadStatus
from salesdash.services.gateway.client import GatewayClient
from salesdash.services.gateway.fetchers import FUNNEL_STATUSES, RecordFetcher, build_status_filter

ROWS = {
    "sellers": [{"Id": 1, "Nombre de la Vendedora": "Ana"}],
    "contacts": [
        {"Id": 10, "Nombre": "Laura", "Estado Actual": "Llamada Agendada"},
        {"Nombre": "missing id"},
    ],
    "sales": [{"Id": 20, "Monto Final": 1500, "Fecha": "2024-06-01T15:00:00Z"}],
    "interactions": [{"Id": 30, "Medio/Canal": "Email", "Fecha": "2024-06-01T16:00:00Z"}],
    "attempts": [{"Id": 40, "Estado": "Abandonado"}],
}


@pytest.fixture
def recorded():
    return []


@pytest.fixture
def fetcher(recorded):
    def handler(request):
        name = request.url.path.rsplit("/", 1)[-1]
        recorded.append((name, request.url.params.get("where")))
        return httpx.Response(200, json={"list": ROWS[name], "pageInfo": {"isLastPage": True}})

    client = GatewayClient("http://gateway.test", transport=httpx.MockTransport(handler))
    return RecordFetcher(client)


def test_build_status_filter():
    assert build_status_filter(["Lead Nuevo", "Venta Ganada"]) == "(Estado Actual,in,Lead Nuevo,Venta Ganada)"
    assert build_status_filter([]) is None


@pytest.mark.asyncio
async def test_sellers_are_never_date_filtered(fetcher, recorded):
    sellers = await fetcher.fetch_sellers()

    assert [s.name for s in sellers] == ["Ana"]
    assert recorded == [("sellers", None)]


@pytest.mark.asyncio
async def test_date_filtered_collections(fetcher, recorded, monkeypatch):
    monkeypatch.setattr("salesdash.services.cache.date_range.settings.DASHBOARD_TIMEZONE", "UTC")
    dr = DateRange(
        start=datetime(2024, 6, 1, tzinfo=timezone.utc),
        end=datetime(2024, 6, 7, 23, 59, tzinfo=timezone.utc),
    )

    sales = await fetcher.fetch_sales(dr)
    interactions = await fetcher.fetch_interactions(dr)
    attempts = await fetcher.fetch_attempts(dr)

    assert sales[0].amount == 1500.0
    assert interactions[0].type.value == "Email"
    assert attempts[0].amount == 5000.0
    assert recorded == [
        ("sales", "(Fecha,gte,exactDate,2024-06-01)~and(Fecha,lte,exactDate,2024-06-07)"),
        ("interactions", "(Fecha,gte,exactDate,2024-06-01)~and(Fecha,lte,exactDate,2024-06-07)"),
        ("attempts", "(Fecha del Intento,gte,exactDate,2024-06-01)~and(Fecha del Intento,lte,exactDate,2024-06-07)"),
    ]


@pytest.mark.asyncio
async def test_unfiltered_contacts_skip_malformed_rows(fetcher, recorded):
    contacts = await fetcher.fetch_contacts()

    assert [c.id for c in contacts] == ["10"]
    assert contacts[0].status == LeadStatus.INTERESTED
    assert recorded == [("contacts", None)]


@pytest.mark.asyncio
async def test_funnel_contacts_use_status_filter(fetcher, recorded):
    await fetcher.fetch_contacts_by_status()

    name, where = recorded[0]
    assert name == "contacts"
    assert where == build_status_filter(FUNNEL_STATUSES)
    assert where.startswith("(Estado Actual,in,Lead Nuevo,")


@pytest.mark.asyncio
async def test_filter_days_follow_the_fetcher_zone(recorded):
    def handler(request):
        recorded.append(request.url.params.get("where"))
        return httpx.Response(200, json={"list": [], "pageInfo": {"isLastPage": True}})

    client = GatewayClient("http://gateway.test", transport=httpx.MockTransport(handler))
    fetcher = RecordFetcher(client, tz=timezone(timedelta(hours=9)))
    # 20:00 UTC on June 1st is already June 2nd at UTC+9
    dr = DateRange(
        start=datetime(2024, 6, 1, 20, 0, tzinfo=timezone.utc),
        end=datetime(2024, 6, 1, 21, 0, tzinfo=timezone.utc),
    )

    await fetcher.fetch_sales(dr)

    assert recorded == ["(Fecha,gte,exactDate,2024-06-02)~and(Fecha,lte,exactDate,2024-06-02)"]
