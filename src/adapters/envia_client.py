"""Cliente de tarifas: Envia.com (`POST /ship/rate/`).

Implementación:
- Clona la plantilla y estampa transportadora + tipo de envío.
- Una sola llamada HTTP, sin reintentos.
- Cualquier fallo (JSON inválido, `meta: error`, HTTP != 2xx, red/timeout)
  se devuelve como `CarrierError`; nunca se lanza.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from core.domain.errors import CarrierError, CarrierOutcome, RawCarrierResponse
from core.domain.models import RateRequestTemplate, ShipmentType
from core.interfaces.rate_client import CarrierRateClient

logger = logging.getLogger(__name__)

RATE_PATH = "/ship/rate/"


def _error_message(data: dict[str, Any]) -> str | None:
    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message") or error.get("description")
        return str(message) if message else None
    if isinstance(error, str) and error.strip():
        return error.strip()
    return None


class EnviaRateClient(CarrierRateClient):
    """Cotiza una combinación (transportadora, tipo de envío) contra Envia.com.

    El `httpx.AsyncClient` lo aporta el llamador (ya autenticado, con timeout),
    así las seis llamadas de una cotización comparten conexiones.
    """

    def __init__(self, client: httpx.AsyncClient, *, base_url: str) -> None:
        self._client = client
        self._url = base_url.rstrip("/") + RATE_PATH

    async def quote(
        self,
        carrier: str,
        shipment_type: ShipmentType,
        template: RateRequestTemplate,
    ) -> CarrierOutcome:
        payload = template.clone().to_envia_payload(carrier=carrier, shipment_type=shipment_type)

        logger.debug("Requesting %s rate (shipment type %d)", carrier, shipment_type)
        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.HTTPError as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning("Transport error from %s (type %d): %s", carrier, shipment_type, message)
            return CarrierError(carrier, shipment_type, "transport", message)

        text = response.text
        try:
            data = json.loads(text)
        except ValueError:
            logger.warning("Invalid JSON from %s (type %d): %s", carrier, shipment_type, text[:100])
            return CarrierError(carrier, shipment_type, "invalid_json", "Invalid response", response.status_code)

        if not isinstance(data, dict):
            logger.warning("Unexpected body from %s (type %d): %s", carrier, shipment_type, text[:100])
            return CarrierError(carrier, shipment_type, "invalid_json", "Invalid response", response.status_code)

        if data.get("meta") == "error":
            message = _error_message(data)
            logger.warning("%s error (type %d): %s", carrier, shipment_type, message or "Unknown error")
            return CarrierError(carrier, shipment_type, "carrier_error", message, response.status_code)

        if response.status_code >= 400:
            message = _error_message(data) or f"HTTP {response.status_code}"
            logger.warning("%s returned HTTP %d (type %d)", carrier, response.status_code, shipment_type)
            return CarrierError(carrier, shipment_type, "http_status", message, response.status_code)

        logger.debug("Got %s rate response (type %d)", carrier, shipment_type)
        return RawCarrierResponse(carrier, shipment_type, data)
