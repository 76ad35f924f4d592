"""Puertos hexagonales (interfaces) y DTOs de los colaboradores externos."""
from typing import Protocol
from pydantic import BaseModel
from ..domain.models import GeocodeResult

class InboundMessage(BaseModel):
    """DTO mínimo normalizado del webhook de WhatsApp."""
    tenant_id: str
    customer_id: str
    provider_message_id: str
    text: str
    timestamp: int
    phone_number_id: str | None = None

class OutboundMessage(BaseModel):
    """DTO de mensaje saliente hacia el proveedor."""
    customer_id: str
    text: str

class DeliveryReceipt(BaseModel):
    """Resultado estandarizado de envío por el proveedor."""
    ok: bool
    provider_message_id: str | None = None
    error_code: str | None = None
    error_detail: str | None = None

class LLMPort(Protocol):
    def complete(self, messages: list[dict]) -> str: ...

class GeocoderPort(Protocol):
    def geocode(self, address: str) -> GeocodeResult | None: ...
