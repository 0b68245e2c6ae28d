"""Errores del dominio.

Solo los fallos que detienen una cotización completa son excepciones. Los
fallos por transportadora son valores (`CarrierError`), y una ciudad no
resuelta ni siquiera es un error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from core.domain.models import ShipmentType


class QuoteEngineError(Exception):
    """Base de los errores que se convierten en una respuesta `success: false`."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ClientInputError(QuoteEngineError):
    """Faltan datos obligatorios del destino (o el payload es inválido)."""

    status_code = 400


class ConfigurationError(QuoteEngineError):
    """Falta configuración del servidor (p.ej. la API key de Envia)."""

    status_code = 500


CarrierErrorKind = Literal["invalid_json", "carrier_error", "http_status", "transport", "unexpected"]


@dataclass(frozen=True)
class RawCarrierResponse:
    carrier: str
    shipment_type: ShipmentType
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class CarrierError:
    """Fallo aislado de una combinación (transportadora, tipo de envío)."""

    carrier: str
    shipment_type: ShipmentType
    kind: CarrierErrorKind
    message: str | None = None
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return False


CarrierOutcome = RawCarrierResponse | CarrierError
