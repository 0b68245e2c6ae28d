"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Nos da validación estricta y documentación autocontenida (Field) sin acoplar
  el Core a librerías de I/O.
- Facilita normalizar respuestas heterogéneas de varias transportadoras.

Nota:
- Estos modelos describen *qué* es la información, no *cómo* se obtiene.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict


class AdminDivisionEntry(BaseModel):
    """Fila de la tabla de referencia DANE (municipio -> código canónico)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    canonical_code: str = Field(
        ...,
        min_length=1,
        description="Código DANE del municipio (8 dígitos en el formato de Envia).",
    )
    municipality_name: str = Field(..., min_length=1)
    department_name: str = Field(..., min_length=1)
    aliases: tuple[str, ...] = Field(
        default=(),
        description="Nombres de uso común (\"Cartagena\" para \"Cartagena de Indias\").",
    )


class MatchType(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    NOT_FOUND = "not_found"


class CitySuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    municipality: str
    department: str
    similarity: float = Field(..., ge=0.0, le=1.0)


class CityMatchResult(BaseModel):
    """Diagnóstico de la resolución de ciudad.

    Se devuelve siempre al llamador: una coincidencia difusa o un fallback
    nunca quedan ocultos.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    match_type: MatchType
    input_city: str
    matched_municipality: str | None = None
    matched_department: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    suggestions: tuple[CitySuggestion, ...] = ()


class ShipmentType(IntEnum):
    """Bandera numérica `shipment.type` de la API de Envia."""

    ADDRESS_TO_ADDRESS = 1
    ADDRESS_TO_BRANCH = 2


class DeliveryType(str, Enum):
    DOMICILE = "domicilio"
    BRANCH = "oficina"

    @classmethod
    def from_shipment_type(cls, shipment_type: ShipmentType) -> "DeliveryType":
        if shipment_type is ShipmentType.ADDRESS_TO_BRANCH:
            return cls.BRANCH
        return cls.DOMICILE

    def label(self) -> str:
        """Etiqueta legible para el cliente final."""

        return "Recoger en oficina" if self is DeliveryType.BRANCH else "Entrega a domicilio"


class Dimensions(BaseModel):
    length: float = Field(..., gt=0)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)


class PackageSpec(BaseModel):
    content: str = Field(default="Ropa", min_length=1)
    weight: float = Field(..., gt=0, description="Peso en kg.")
    declared_value: float = Field(..., gt=0)
    dimensions: Dimensions


class ShippingAddress(BaseModel):
    country: str = Field(default="CO", min_length=2, max_length=2)
    state: str = Field(..., min_length=2, max_length=2)
    city: str = Field(..., min_length=1, description="Código DANE.")
    postal_code: str = Field(..., min_length=1)


class RateRequestTemplate(BaseModel):
    """Plantilla canónica de cotización; se clona por (transportadora, tipo de envío)."""

    origin: ShippingAddress
    destination: ShippingAddress
    package: PackageSpec
    currency: str = Field(default="COP", min_length=3, max_length=3)

    def clone(self) -> "RateRequestTemplate":
        # Copia profunda: los clones no comparten sub-objetos mutables.
        return self.model_copy(deep=True)

    def to_envia_payload(self, *, carrier: str, shipment_type: ShipmentType) -> dict[str, Any]:
        """Documento JSON de `POST /ship/rate/` para una combinación concreta."""

        pkg = self.package
        return {
            "origin": {
                "country": self.origin.country,
                "state": self.origin.state,
                "city": self.origin.city,
                "postalCode": self.origin.postal_code,
            },
            "destination": {
                "country": self.destination.country,
                "state": self.destination.state,
                "city": self.destination.city,
                "postalCode": self.destination.postal_code,
            },
            "packages": [
                {
                    "content": pkg.content,
                    "amount": 1,
                    "type": "box",
                    "weight": pkg.weight,
                    "insurance": 0,
                    "declaredValue": pkg.declared_value,
                    "weightUnit": "KG",
                    "lengthUnit": "CM",
                    "dimensions": pkg.dimensions.model_dump(),
                }
            ],
            "shipment": {"type": int(shipment_type), "carrier": carrier},
            "settings": {"currency": self.currency},
        }


class CarrierQuote(BaseModel):
    """Una tarifa normalizada de una transportadora."""

    carrier: str = Field(..., min_length=1)
    service: str = Field(..., min_length=1, description="Token crudo del servicio (p.ej. 'ground').")
    service_display_name: str
    delivery_type: DeliveryType
    delivery_type_label: str
    price: float = Field(..., ge=0)
    currency: str = "COP"
    estimated_days: int = Field(default=0, ge=0)
    delivery_estimate: str | None = None

    def dedupe_key(self) -> tuple[str, str, DeliveryType]:
        return (self.carrier, self.service, self.delivery_type)


class ResolvedDestination(BaseModel):
    city: str
    department: str
    state_code: str
    dane_code: str


class QuoteRequest(BaseModel):
    """Solicitud entrante (JSON del llamador)."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    destination_city: str | None = None
    destination_department: str | None = None
    destination_postal_code: str | None = None
    package_weight: float | None = Field(default=None, gt=0)
    declared_value: float | None = Field(default=None, gt=0)


class QuoteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: Literal[True] = True
    quotes: list[CarrierQuote] = Field(default_factory=list)
    domicilio: list[CarrierQuote] = Field(default_factory=list)
    oficina: list[CarrierQuote] = Field(default_factory=list)
    destination: ResolvedDestination
    match_info: CityMatchResult = Field(..., alias="matchInfo")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class QuoteErrorResponse(BaseModel):
    success: Literal[False] = False
    error: str

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
