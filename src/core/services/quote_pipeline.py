"""Shipping-quote orchestration.

One quote request is a single pass with no retained state:

resolve destination -> build one rate template -> fan out
carriers x shipment types concurrently -> keep ground services ->
cheapest per (carrier, service, delivery type) -> sort -> partition.

The fan-out is a join-all barrier: every (carrier, shipment type) call is
independently fallible and a failed call only removes its own quotes.
`handle_quote_request` is the edge used by HTTP handlers and the CLI; it is
the only place where exceptions become `{"success": false}` payloads.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
from typing import Any, Iterable, Sequence

import httpx
from pydantic import ValidationError

from adapters.divisions.cache import DivisionIndexCache
from adapters.envia_client import EnviaRateClient
from adapters.http_client import build_envia_client
from core.config import AppSettings
from core.domain.errors import (
    CarrierError,
    CarrierOutcome,
    ClientInputError,
    ConfigurationError,
    QuoteEngineError,
    RawCarrierResponse,
)
from core.domain.models import (
    CarrierQuote,
    DeliveryType,
    Dimensions,
    PackageSpec,
    QuoteErrorResponse,
    QuoteRequest,
    QuoteResponse,
    RateRequestTemplate,
    ResolvedDestination,
    ShipmentType,
    ShippingAddress,
)
from core.domain.text import normalize_text
from core.interfaces.division_index import AdminDivisionIndex
from core.interfaces.rate_client import CarrierRateClient
from core.services.city_resolver import FuzzyCityResolver
from core.services.department_mapper import DepartmentCodeMapper

logger = logging.getLogger(__name__)

SHIPMENT_TYPES: tuple[ShipmentType, ...] = (
    ShipmentType.ADDRESS_TO_ADDRESS,
    ShipmentType.ADDRESS_TO_BRANCH,
)

GROUND_SERVICE_TOKENS: tuple[str, ...] = (
    "ground",
    "terrestre",
    "standard",
    "estandar",
    "economico",
    "economy",
    "regular",
)

# A service carrying any of these is never ground, even if it also says "ground".
NON_GROUND_SERVICE_TOKENS: tuple[str, ...] = (
    "express",
    "expres",
    "air",
    "aereo",
    "priority",
    "prioritario",
    "next_day",
    "same_day",
    "overnight",
)

SERVICE_DISPLAY_NAMES: dict[str, str] = {
    "ground": "Terrestre",
    "terrestre": "Terrestre",
    "ground_cod": "Terrestre contraentrega",
    "ground_ecommerce": "Terrestre e-commerce",
    "standard": "Estándar",
    "estandar": "Estándar",
    "economico": "Económico",
    "economy": "Económico",
    "regular": "Regular",
}

MISSING_DESTINATION_MESSAGE = "Se requiere ciudad y departamento de destino"
MISSING_API_KEY_MESSAGE = "API key de Envia.com no configurada"
UNEXPECTED_ERROR_MESSAGE = "Error interno al cotizar el envío"


def is_ground_service(service: str) -> bool:
    token = normalize_text(service)
    if not token:
        return False
    if any(bad in token for bad in NON_GROUND_SERVICE_TOKENS):
        return False
    return any(good in token for good in GROUND_SERVICE_TOKENS)


def service_display_name(service: str) -> str:
    known = SERVICE_DISPLAY_NAMES.get(service.strip().lower())
    if known:
        return known
    return service.replace("_", " ").replace("-", " ").strip().title()


def _as_float(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _estimated_days(rate: dict[str, Any]) -> int:
    candidates: list[object] = [rate.get("deliveryDays"), rate.get("days")]
    delivery_date = rate.get("deliveryDate")
    if isinstance(delivery_date, dict):
        candidates.append(delivery_date.get("dateDifference"))
    for value in candidates:
        number = _as_float(value)
        if number is not None and number > 0:
            return int(number)
    return 0


def quotes_from_response(response: RawCarrierResponse, *, default_currency: str = "COP") -> list[CarrierQuote]:
    """Normalize the ground-service line items of one successful call."""

    items = response.payload.get("data")
    if not isinstance(items, list):
        return []

    delivery_type = DeliveryType.from_shipment_type(response.shipment_type)
    quotes: list[CarrierQuote] = []
    for rate in items:
        if not isinstance(rate, dict):
            continue
        service = str(rate.get("service") or "ground").strip()
        if not is_ground_service(service):
            continue

        price = _as_float(rate.get("totalPrice"))
        if price is None:
            price = _as_float(rate.get("price"))
        if price is None or price <= 0:
            continue

        carrier = str(rate.get("carrier") or "").strip().lower() or response.carrier
        estimate = rate.get("deliveryEstimate")
        try:
            quote = CarrierQuote(
                carrier=carrier,
                service=service,
                service_display_name=service_display_name(service),
                delivery_type=delivery_type,
                delivery_type_label=delivery_type.label(),
                price=price,
                currency=str(rate.get("currency") or default_currency),
                estimated_days=_estimated_days(rate),
                delivery_estimate=str(estimate) if estimate else None,
            )
        except (ValidationError, ValueError, OverflowError) as exc:
            # Only this line item is lost.
            logger.warning(
                "Dropping malformed %s line item (shipment type %s): %s",
                response.carrier,
                int(response.shipment_type),
                exc,
            )
            continue
        quotes.append(quote)
    return quotes


def dedupe_cheapest(quotes: Iterable[CarrierQuote]) -> list[CarrierQuote]:
    """Keep the minimum-price quote per (carrier, service, delivery type).

    On equal prices the first one observed wins.
    """

    best: dict[tuple[str, str, DeliveryType], CarrierQuote] = {}
    for quote in quotes:
        key = quote.dedupe_key()
        current = best.get(key)
        if current is None or quote.price < current.price:
            best[key] = quote
    return list(best.values())


def rank_and_partition(
    quotes: Iterable[CarrierQuote],
) -> tuple[list[CarrierQuote], list[CarrierQuote], list[CarrierQuote]]:
    ranked = sorted(quotes, key=lambda q: q.price)
    domicile = [q for q in ranked if q.delivery_type is DeliveryType.DOMICILE]
    branch = [q for q in ranked if q.delivery_type is DeliveryType.BRANCH]
    return ranked, domicile, branch


class QuoteAggregator:
    """Resolve the destination and aggregate rates from every carrier.

    `rate_client` is optional: without one, each `aggregate` call opens an
    authenticated Envia client for the duration of its fan-out.
    """

    def __init__(
        self,
        settings: AppSettings,
        index: AdminDivisionIndex,
        *,
        rate_client: CarrierRateClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        shipment_types: Sequence[ShipmentType] = SHIPMENT_TYPES,
    ) -> None:
        self._settings = settings
        self._rate_client = rate_client
        self._transport = transport
        self._shipment_types = tuple(shipment_types)
        self._carriers = tuple(settings.carriers)
        self._resolver = FuzzyCityResolver(
            index,
            threshold=settings.fuzzy_threshold,
            max_suggestions=settings.max_suggestions,
            fallback_code=settings.default_division_code,
        )
        self._departments = DepartmentCodeMapper(default_code=settings.default_state_code)

    @property
    def resolver(self) -> FuzzyCityResolver:
        return self._resolver

    def build_template(
        self,
        *,
        state_code: str,
        division_code: str,
        package_weight: float | None = None,
        declared_value: float | None = None,
    ) -> RateRequestTemplate:
        s = self._settings
        return RateRequestTemplate(
            origin=ShippingAddress(
                country=s.origin.country,
                state=s.origin.state,
                city=s.origin.city,
                postal_code=s.origin.postal_code,
            ),
            destination=ShippingAddress(
                country="CO",
                state=state_code,
                city=division_code,
                postal_code=division_code,
            ),
            package=PackageSpec(
                content=s.package_content,
                weight=package_weight or s.default_package_weight,
                declared_value=declared_value or s.default_declared_value,
                dimensions=Dimensions(
                    length=s.default_length_cm,
                    width=s.default_width_cm,
                    height=s.default_height_cm,
                ),
            ),
            currency=s.currency,
        )

    async def aggregate(self, request: QuoteRequest) -> QuoteResponse:
        city = (request.destination_city or "").strip()
        department = (request.destination_department or "").strip()
        if not city or not department:
            raise ClientInputError(MISSING_DESTINATION_MESSAGE)

        if self._rate_client is None and not self._settings.envia_api_key:
            logger.error("ENVIOS_ENVIA_API_KEY not configured")
            raise ConfigurationError(MISSING_API_KEY_MESSAGE)

        logger.info("Getting shipping quote for %s, %s", city, department)

        state_code = self._departments.map_to_state_code(department)
        division_code, match = self._resolver.resolve(city, department)
        logger.info(
            "Destination %r/%r -> state %s, DANE %s (%s)",
            city,
            department,
            state_code,
            division_code,
            match.match_type.value,
        )

        template = self.build_template(
            state_code=state_code,
            division_code=division_code,
            package_weight=request.package_weight,
            declared_value=request.declared_value,
        )

        if self._rate_client is not None:
            outcomes = await self.fan_out(self._rate_client, template)
        else:
            async with build_envia_client(self._settings, transport=self._transport) as client:
                rate_client = EnviaRateClient(client, base_url=self._settings.envia_base_url)
                outcomes = await self.fan_out(rate_client, template)

        collected: list[CarrierQuote] = []
        for outcome in outcomes:
            if isinstance(outcome, RawCarrierResponse):
                collected.extend(quotes_from_response(outcome, default_currency=self._settings.currency))

        ranked, domicile, branch = rank_and_partition(dedupe_cheapest(collected))
        succeeded = sum(1 for o in outcomes if o.ok)
        logger.info(
            "Got %d quotes (%d domicilio, %d oficina) from %d/%d carrier calls",
            len(ranked),
            len(domicile),
            len(branch),
            succeeded,
            len(outcomes),
        )

        return QuoteResponse(
            quotes=ranked,
            domicilio=domicile,
            oficina=branch,
            destination=ResolvedDestination(
                city=match.matched_municipality or city,
                department=match.matched_department or department,
                state_code=state_code,
                dane_code=division_code,
            ),
            match_info=match,
        )

    async def fan_out(self, rate_client: CarrierRateClient, template: RateRequestTemplate) -> list[CarrierOutcome]:
        """Issue every (carrier, shipment type) call concurrently and collect all outcomes."""

        async def safe_quote(carrier: str, shipment_type: ShipmentType) -> CarrierOutcome:
            try:
                return await rate_client.quote(carrier, shipment_type, template.clone())
            except Exception as exc:
                logger.exception("Unexpected error quoting %s (type %d)", carrier, shipment_type)
                return CarrierError(carrier, shipment_type, "unexpected", str(exc))

        logger.debug("Requesting quotes from %s", ", ".join(self._carriers))
        tasks = [
            safe_quote(carrier, shipment_type)
            for carrier in self._carriers
            for shipment_type in self._shipment_types
        ]
        return list(await asyncio.gather(*tasks))


_shared_cache: DivisionIndexCache | None = None
_shared_cache_lock = threading.Lock()


def shared_division_cache(settings: AppSettings) -> DivisionIndexCache:
    """Process-wide division cache, created on first use from `settings`."""

    global _shared_cache
    with _shared_cache_lock:
        if _shared_cache is None:
            _shared_cache = DivisionIndexCache.from_settings(settings)
        return _shared_cache


async def handle_quote_request(
    payload: object,
    *,
    settings: AppSettings | None = None,
    index: AdminDivisionIndex | None = None,
    rate_client: CarrierRateClient | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[int, dict[str, Any]]:
    """JSON request in, `(http_status, json_body)` out. Never raises."""

    try:
        settings = settings or AppSettings()
        if not isinstance(payload, dict):
            raise ClientInputError(MISSING_DESTINATION_MESSAGE)
        try:
            request = QuoteRequest.model_validate(payload)
        except ValidationError as exc:
            raise ClientInputError(f"Solicitud inválida: {exc.error_count()} campo(s) con error") from exc

        if index is None:
            index = shared_division_cache(settings).get()
        aggregator = QuoteAggregator(settings, index, rate_client=rate_client, transport=transport)
        response = await aggregator.aggregate(request)
        return 200, response.to_payload()
    except QuoteEngineError as exc:
        return exc.status_code, QuoteErrorResponse(error=exc.message).to_payload()
    except Exception:
        logger.exception("Unexpected error while quoting")
        return 500, QuoteErrorResponse(error=UNEXPECTED_ERROR_MESSAGE).to_payload()
