"""Contrato del cliente de tarifas por transportadora."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.errors import CarrierOutcome
from core.domain.models import RateRequestTemplate, ShipmentType


@runtime_checkable
class CarrierRateClient(Protocol):
    """Una llamada de cotización por (transportadora, tipo de envío).

    Reglas de diseño:
    - `quote` es asíncrono porque hace I/O (HTTP).
    - Nunca lanza por fallos del proveedor: devuelve `CarrierError`.
    """

    async def quote(
        self,
        carrier: str,
        shipment_type: ShipmentType,
        template: RateRequestTemplate,
    ) -> CarrierOutcome:
        ...
