from __future__ import annotations

from typing import Callable

import pytest

from adapters.divisions.index import InMemoryDivisionIndex
from adapters.divisions.loader import load_divisions_file
from core.config import AppSettings
from core.domain.errors import CarrierError, CarrierOutcome, RawCarrierResponse
from core.domain.models import AdminDivisionEntry, RateRequestTemplate, ShipmentType
from core.resources_loader import bundled_divisions_path


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(_env_file=None, envia_api_key="test-key")


@pytest.fixture(scope="session")
def bundled_index() -> InMemoryDivisionIndex:
    return InMemoryDivisionIndex(load_divisions_file(bundled_divisions_path()))


def make_index(*rows: tuple[str, str, str]) -> InMemoryDivisionIndex:
    return InMemoryDivisionIndex(
        AdminDivisionEntry(canonical_code=code, municipality_name=name, department_name=dept)
        for code, name, dept in rows
    )


def rate(carrier: str, service: str, price: float, **extra: object) -> dict[str, object]:
    return {"carrier": carrier, "service": service, "totalPrice": price, "currency": "COP", **extra}


Responder = Callable[[str, ShipmentType, RateRequestTemplate], CarrierOutcome]


class FakeRateClient:
    """Records every call; answers through `responder` (which may raise)."""

    def __init__(self, responder: Responder) -> None:
        self._responder = responder
        self.calls: list[tuple[str, ShipmentType, RateRequestTemplate]] = []

    async def quote(
        self,
        carrier: str,
        shipment_type: ShipmentType,
        template: RateRequestTemplate,
    ) -> CarrierOutcome:
        self.calls.append((carrier, shipment_type, template))
        return self._responder(carrier, shipment_type, template)


def ok(carrier: str, shipment_type: ShipmentType, *rates: dict[str, object]) -> RawCarrierResponse:
    return RawCarrierResponse(carrier, shipment_type, {"meta": "rate", "data": list(rates)})


def failed(carrier: str, shipment_type: ShipmentType, message: str = "boom") -> CarrierError:
    return CarrierError(carrier, shipment_type, "carrier_error", message)
