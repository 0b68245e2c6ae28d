from __future__ import annotations

import json
from collections import Counter

import httpx
import pytest

from conftest import FakeRateClient, failed, ok, rate
from core.config import AppSettings
from core.domain.errors import ClientInputError, ConfigurationError, RawCarrierResponse
from core.domain.models import CarrierQuote, DeliveryType, MatchType, QuoteRequest, ShipmentType
from core.services.quote_pipeline import (
    QuoteAggregator,
    dedupe_cheapest,
    handle_quote_request,
    is_ground_service,
    quotes_from_response,
    service_display_name,
)

CARRIERS = ("coordinadora", "interrapidisimo", "deprisa")


def _request(city: str = "Medellín", department: str = "Antioquia", **extra) -> QuoteRequest:
    return QuoteRequest(destination_city=city, destination_department=department, **extra)


def _quote(carrier: str, service: str, price: float, delivery: DeliveryType) -> CarrierQuote:
    return CarrierQuote(
        carrier=carrier,
        service=service,
        service_display_name=service_display_name(service),
        delivery_type=delivery,
        delivery_type_label=delivery.label(),
        price=price,
    )


@pytest.mark.parametrize(
    ("service", "expected"),
    [
        ("ground", True),
        ("Terrestre", True),
        ("standard", True),
        ("económico", True),
        ("ground_cod", True),
        ("express", False),
        ("express_ground", False),
        ("aereo", False),
        ("air", False),
        ("next_day", False),
        ("", False),
    ],
)
def test_ground_allow_list(service: str, expected: bool) -> None:
    assert is_ground_service(service) is expected


def test_service_display_names() -> None:
    assert service_display_name("ground") == "Terrestre"
    assert service_display_name("ECONOMICO") == "Económico"
    assert service_display_name("ground_plus") == "Ground Plus"


def test_dedupe_keeps_cheapest_per_key() -> None:
    quotes = [
        _quote("deprisa", "ground", 15_000, DeliveryType.DOMICILE),
        _quote("deprisa", "ground", 12_000, DeliveryType.DOMICILE),
        _quote("deprisa", "ground", 13_000, DeliveryType.DOMICILE),
        _quote("deprisa", "ground", 11_000, DeliveryType.BRANCH),
        _quote("coordinadora", "ground", 14_000, DeliveryType.DOMICILE),
    ]
    unique = dedupe_cheapest(quotes)
    keys = [q.dedupe_key() for q in unique]
    assert len(keys) == len(set(keys)) == 3
    for kept in unique:
        same_key = [q.price for q in quotes if q.dedupe_key() == kept.dedupe_key()]
        assert kept.price == min(same_key)


def test_quotes_from_response_normalizes_line_items() -> None:
    response = RawCarrierResponse(
        "coordinadora",
        ShipmentType.ADDRESS_TO_BRANCH,
        {
            "meta": "rate",
            "data": [
                rate("Coordinadora", "ground", 12_500, deliveryDate={"dateDifference": 3}, deliveryEstimate="2-3 días"),
                rate("coordinadora", "express", 30_000),
                {"service": "ground", "price": "9800"},
                rate("coordinadora", "ground_cod", 0),
                "garbage",
            ],
        },
    )
    quotes = quotes_from_response(response)
    assert [(q.carrier, q.service, q.price) for q in quotes] == [
        ("coordinadora", "ground", 12_500),
        ("coordinadora", "ground", 9_800),
    ]
    first = quotes[0]
    assert first.delivery_type is DeliveryType.BRANCH
    assert first.delivery_type_label == "Recoger en oficina"
    assert first.service_display_name == "Terrestre"
    assert first.estimated_days == 3
    assert first.delivery_estimate == "2-3 días"


@pytest.mark.asyncio
async def test_aggregate_fans_out_every_combination(settings: AppSettings, bundled_index) -> None:
    def responder(carrier, shipment_type, template):
        if carrier == "interrapidisimo":
            return failed(carrier, shipment_type)
        if carrier == "deprisa" and shipment_type is ShipmentType.ADDRESS_TO_BRANCH:
            raise RuntimeError("unexpected client bug")
        return ok(carrier, shipment_type, rate(carrier, "ground", 10_000 + 1_000 * int(shipment_type)))

    client = FakeRateClient(responder)
    response = await QuoteAggregator(settings, bundled_index, rate_client=client).aggregate(_request())

    assert len(client.calls) == len(CARRIERS) * 2
    assert Counter((c, t) for c, t, _ in client.calls) == Counter(
        (c, t) for c in CARRIERS for t in ShipmentType
    )
    assert {q.carrier for q in response.quotes} == {"coordinadora", "deprisa"}
    assert len(response.quotes) == 3


@pytest.mark.asyncio
async def test_aggregate_filters_dedupes_sorts_and_partitions(settings: AppSettings, bundled_index) -> None:
    def responder(carrier, shipment_type, template):
        base = {"coordinadora": 14_000, "interrapidisimo": 9_000, "deprisa": 11_000}[carrier]
        if shipment_type is ShipmentType.ADDRESS_TO_BRANCH:
            base -= 2_000
        return ok(
            carrier,
            shipment_type,
            rate(carrier, "ground", base + 500),
            rate(carrier, "ground", base),
            rate(carrier, "express", base - 5_000),
            rate(carrier, "standard", base + 3_000),
        )

    response = await QuoteAggregator(
        settings, bundled_index, rate_client=FakeRateClient(responder)
    ).aggregate(_request())

    prices = [q.price for q in response.quotes]
    assert prices == sorted(prices)
    assert all(is_ground_service(q.service) for q in response.quotes)
    keys = [q.dedupe_key() for q in response.quotes]
    assert len(keys) == len(set(keys)) == 12
    assert response.quotes[0].carrier == "interrapidisimo"
    assert response.quotes[0].price == 7_000

    assert all(q.delivery_type is DeliveryType.DOMICILE for q in response.domicilio)
    assert all(q.delivery_type is DeliveryType.BRANCH for q in response.oficina)
    assert len(response.domicilio) + len(response.oficina) == len(response.quotes)
    combined = {q.model_dump_json() for q in response.domicilio} | {q.model_dump_json() for q in response.oficina}
    assert combined == {q.model_dump_json() for q in response.quotes}


@pytest.mark.asyncio
async def test_template_uses_defaults_and_each_call_gets_its_own_copy(
    settings: AppSettings, bundled_index
) -> None:
    def responder(carrier, shipment_type, template):
        template.package.weight = 99
        return ok(carrier, shipment_type)

    client = FakeRateClient(responder)
    await QuoteAggregator(settings, bundled_index, rate_client=client).aggregate(_request())

    templates = [t for _, _, t in client.calls]
    assert len({id(t) for t in templates}) == len(templates)
    assert len({id(t.package) for t in templates}) == len(templates)

    fresh = QuoteAggregator(settings, bundled_index).build_template(state_code="AN", division_code="05001000")
    assert fresh.package.weight == 0.5
    assert fresh.package.declared_value == 100_000
    assert fresh.origin.city == "11001000"
    assert fresh.destination.postal_code == "05001000"


@pytest.mark.asyncio
async def test_supplied_package_attributes_are_used(settings: AppSettings, bundled_index) -> None:
    client = FakeRateClient(lambda c, t, template: ok(c, t))
    await QuoteAggregator(settings, bundled_index, rate_client=client).aggregate(
        _request(package_weight=2.5, declared_value=250_000)
    )
    _, _, template = client.calls[0]
    assert template.package.weight == 2.5
    assert template.package.declared_value == 250_000


@pytest.mark.asyncio
async def test_unaccented_capital_resolves_exact(settings: AppSettings, bundled_index) -> None:
    client = FakeRateClient(lambda c, t, template: ok(c, t))
    response = await QuoteAggregator(settings, bundled_index, rate_client=client).aggregate(
        _request("Bogota", "Bogota DC")
    )
    assert response.match_info.match_type is MatchType.EXACT
    assert response.destination.state_code == "DC"
    assert response.destination.dane_code == "11001000"
    assert response.destination.city == "Bogotá"
    assert client.calls[0][2].destination.state == "DC"


@pytest.mark.asyncio
async def test_unknown_city_still_quotes_with_fallback(settings: AppSettings, bundled_index) -> None:
    client = FakeRateClient(lambda c, t, template: ok(c, t, rate(c, "ground", 20_000)))
    response = await QuoteAggregator(settings, bundled_index, rate_client=client).aggregate(
        _request("Xyzabc123", "Antioquia")
    )
    assert response.match_info.match_type is MatchType.NOT_FOUND
    assert response.match_info.confidence == 0.0
    assert response.destination.dane_code == "11001000"
    assert response.destination.city == "Xyzabc123"
    assert response.destination.state_code == "AN"
    assert len(client.calls) == 6
    assert response.quotes


@pytest.mark.asyncio
async def test_all_express_yields_empty_success(settings: AppSettings, bundled_index) -> None:
    client = FakeRateClient(lambda c, t, template: ok(c, t, rate(c, "express", 30_000), rate(c, "air", 40_000)))
    response = await QuoteAggregator(settings, bundled_index, rate_client=client).aggregate(_request())
    assert response.success is True
    assert response.quotes == []
    assert response.domicilio == []
    assert response.oficina == []


@pytest.mark.asyncio
async def test_one_carrier_timing_out_over_http(settings: AppSettings, bundled_index) -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        carrier = body["shipment"]["carrier"]
        calls.append(carrier)
        if carrier == "deprisa":
            raise httpx.ConnectTimeout("timed out", request=request)
        return httpx.Response(200, json={"meta": "rate", "data": [rate(carrier, "ground", 10_000)]})

    aggregator = QuoteAggregator(settings, bundled_index, transport=httpx.MockTransport(handler))
    response = await aggregator.aggregate(_request())

    assert len(calls) == 6
    assert response.success is True
    assert {q.carrier for q in response.quotes} == {"coordinadora", "interrapidisimo"}


@pytest.mark.asyncio
@pytest.mark.parametrize(("city", "department"), [("", "Antioquia"), ("Medellín", "  "), (None, None)])
async def test_missing_destination_is_a_client_error(settings: AppSettings, bundled_index, city, department) -> None:
    client = FakeRateClient(lambda c, t, template: ok(c, t))
    with pytest.raises(ClientInputError):
        await QuoteAggregator(settings, bundled_index, rate_client=client).aggregate(
            QuoteRequest(destination_city=city, destination_department=department)
        )
    assert client.calls == []


@pytest.mark.asyncio
async def test_missing_api_key_is_a_configuration_error(bundled_index) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    settings = AppSettings(_env_file=None, envia_api_key=None)
    aggregator = QuoteAggregator(settings, bundled_index, transport=httpx.MockTransport(handler))
    with pytest.raises(ConfigurationError):
        await aggregator.aggregate(_request())
    assert calls == []


@pytest.mark.asyncio
async def test_handler_success_payload_shape(settings: AppSettings, bundled_index) -> None:
    client = FakeRateClient(lambda c, t, template: ok(c, t, rate(c, "ground", 10_000, deliveryDays=2)))
    status, body = await handle_quote_request(
        {"destination_city": "Medelin", "destination_department": "ANT"},
        settings=settings,
        index=bundled_index,
        rate_client=client,
    )
    assert status == 200
    assert body["success"] is True
    assert set(body) == {"success", "quotes", "domicilio", "oficina", "destination", "matchInfo"}
    assert body["destination"] == {
        "city": "Medellín",
        "department": "Antioquia",
        "state_code": "AN",
        "dane_code": "05001000",
    }
    assert body["matchInfo"]["matchType"] == "fuzzy"
    assert body["matchInfo"]["inputCity"] == "Medelin"
    assert body["quotes"][0]["delivery_type"] in ("domicilio", "oficina")
    assert body["quotes"][0]["estimated_days"] == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"destination_city": "Cali"},
        {"destination_city": "Cali", "destination_department": "Valle", "package_weight": -1},
        ["not", "a", "dict"],
    ],
)
async def test_handler_client_errors(settings: AppSettings, bundled_index, payload) -> None:
    client = FakeRateClient(lambda c, t, template: ok(c, t))
    status, body = await handle_quote_request(payload, settings=settings, index=bundled_index, rate_client=client)
    assert status == 400
    assert body["success"] is False
    assert body["error"]
    assert client.calls == []


@pytest.mark.asyncio
async def test_handler_missing_credentials(bundled_index) -> None:
    status, body = await handle_quote_request(
        {"destination_city": "Cali", "destination_department": "Valle"},
        settings=AppSettings(_env_file=None, envia_api_key=None),
        index=bundled_index,
    )
    assert status == 500
    assert body == {"success": False, "error": "API key de Envia.com no configurada"}


@pytest.mark.asyncio
async def test_handler_converts_unexpected_errors(settings: AppSettings) -> None:
    class BrokenIndex:
        def find_all_exact(self, name):
            raise RuntimeError("database exploded")

    status, body = await handle_quote_request(
        {"destination_city": "Cali", "destination_department": "Valle"},
        settings=settings,
        index=BrokenIndex(),
        rate_client=FakeRateClient(lambda c, t, template: ok(c, t)),
    )
    assert status == 500
    assert body["success"] is False
    assert "database exploded" not in body["error"]


def test_malformed_line_items_do_not_break_the_response() -> None:
    response = RawCarrierResponse(
        "deprisa",
        ShipmentType.ADDRESS_TO_ADDRESS,
        {
            "meta": "rate",
            "data": [
                rate(" ", "ground", 11_000),
                rate("deprisa", "ground_ecommerce", 12_000, deliveryDays=float("inf")),
                rate("deprisa", "ground_cod", 13_000, days=10**400),
                rate("deprisa", "regular", "1e400"),
            ],
        },
    )
    quotes = quotes_from_response(response)
    assert [(q.carrier, q.service, q.estimated_days) for q in quotes] == [
        ("deprisa", "ground", 0),
        ("deprisa", "ground_ecommerce", 0),
        ("deprisa", "ground_cod", 0),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_item", [{"carrier": " "}, {"deliveryDays": float("inf")}, {"days": 10**400}])
async def test_handler_keeps_siblings_when_one_carrier_sends_odd_items(
    settings: AppSettings, bundled_index, bad_item
) -> None:
    def responder(carrier, shipment_type, template):
        if carrier == "deprisa":
            odd = {**rate(carrier, "ground_cod", 9_500), **bad_item}
            return ok(carrier, shipment_type, rate(carrier, "ground", 9_000), odd)
        return ok(carrier, shipment_type, rate(carrier, "ground", 10_000))

    status, body = await handle_quote_request(
        {"destination_city": "Cali", "destination_department": "Valle"},
        settings=settings,
        index=bundled_index,
        rate_client=FakeRateClient(responder),
    )
    assert status == 200
    assert body["success"] is True
    assert {q["carrier"] for q in body["quotes"]} == set(CARRIERS)
    assert body["quotes"][0]["price"] == 9_000
