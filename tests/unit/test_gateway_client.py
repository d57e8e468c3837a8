"""
Tests for gateway pagination, retries and partial-result handling.
"""

import httpx
import pytest

from salesdash.models.domain.records import Collection
from salesdash.services.gateway.client import GatewayClient

BASE_URL = "http://gateway.test/api"


def _page(rows, is_last):
    return httpx.Response(200, json={"list": rows, "pageInfo": {"isLastPage": is_last, "totalRows": 99}})


def _client(handler, **kwargs):
    kwargs.setdefault("retry_backoff", 0)
    return GatewayClient(BASE_URL, transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_last_empty_page_is_a_single_request():
    requests = []

    def handler(request):
        requests.append(request)
        return _page([], True)

    client = _client(handler)
    rows = await client.fetch_all(Collection.SALES)
    await client.close()

    assert rows == []
    assert len(requests) == 1
    assert requests[0].url.path == "/api/collections/sales"
    assert requests[0].url.params["offset"] == "0"
    assert requests[0].url.params["limit"] == "1000"


@pytest.mark.asyncio
async def test_offset_advances_by_rows_returned_when_gateway_caps_page_size():
    data = [{"Id": i} for i in range(5)]
    offsets = []

    def handler(request):
        offset = int(request.url.params["offset"])
        offsets.append(offset)
        batch = data[offset : offset + 2]
        return _page(batch, offset + 2 >= len(data))

    client = _client(handler)
    rows = await client.fetch_all(Collection.CONTACTS)
    await client.close()

    assert rows == data
    assert offsets == [0, 2, 4]


@pytest.mark.asyncio
async def test_empty_page_stops_pagination_without_last_page_flag():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return _page([{"Id": 1}] if calls["n"] == 1 else [], False)

    client = _client(handler)
    rows = await client.fetch_all("attempts")
    await client.close()

    assert rows == [{"Id": 1}]
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_failed_page_returns_partial_results():
    def handler(request):
        if request.url.params["offset"] == "0":
            return _page([{"Id": 1}, {"Id": 2}], False)
        return httpx.Response(500, text="boom")

    client = _client(handler, max_retries=0)
    rows = await client.fetch_all(Collection.INTERACTIONS)
    await client.close()

    assert rows == [{"Id": 1}, {"Id": 2}]


@pytest.mark.asyncio
async def test_invalid_json_returns_partial_results():
    def handler(request):
        return httpx.Response(200, content=b"<html>not json</html>")

    client = _client(handler)
    rows = await client.fetch_all(Collection.SALES)
    await client.close()

    assert rows == []


@pytest.mark.asyncio
async def test_retries_server_errors_before_giving_up():
    statuses = iter([503, 200])

    def handler(request):
        code = next(statuses)
        if code != 200:
            return httpx.Response(code)
        return _page([{"Id": 1}], True)

    client = _client(handler, max_retries=2)
    rows = await client.fetch_all(Collection.SELLERS)
    await client.close()

    assert rows == [{"Id": 1}]


@pytest.mark.asyncio
async def test_transport_errors_propagate_after_retries():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler, max_retries=1)
    with pytest.raises(httpx.ConnectError):
        await client.fetch_all(Collection.SALES)
    await client.close()

    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_max_pages_bounds_pagination():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return _page([{"Id": calls["n"]}], False)

    client = _client(handler, max_pages=3)
    rows = await client.fetch_all(Collection.CONTACTS)
    await client.close()

    assert len(rows) == 3
    assert calls["n"] == 3


@pytest.mark.asyncio
async def test_sends_token_and_filters():
    seen = {}

    def handler(request):
        seen["token"] = request.headers.get("xc-token")
        seen["where"] = request.url.params.get("where")
        seen["sort"] = request.url.params.get("sort")
        return _page([], True)

    client = _client(handler, token="secret-token")
    await client.fetch_all(Collection.SALES, where="(Fecha,gte,exactDate,2024-06-01)", sort="-Fecha")
    await client.close()

    assert seen == {
        "token": "secret-token",
        "where": "(Fecha,gte,exactDate,2024-06-01)",
        "sort": "-Fecha",
    }
