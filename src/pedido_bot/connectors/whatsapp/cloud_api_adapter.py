"""Adapter del WhatsApp Cloud API: normaliza entrantes y envía texto."""
from __future__ import annotations
import httpx
from kink import di
from ...core.settings import Settings
from ...core.guardrails import sanitize_text
from ...ports.interfaces import InboundMessage, OutboundMessage, DeliveryReceipt

class WhatsAppCloudAdapter:
    """Adapter para WhatsApp Cloud API."""
    def __init__(self, settings: Settings | None = None, transport: httpx.BaseTransport | None = None):
        self.s = settings if settings is not None else di[Settings]
        self.transport = transport

    # --- Ingress ---
    def normalize_incoming(self, raw: dict, tenant_id: str | None = None) -> InboundMessage | None:
        """Extrae el primer mensaje de texto del payload; None para callbacks sin mensajes (statuses)."""
        try:
            value = raw["entry"][0]["changes"][0]["value"]
        except (KeyError, IndexError, TypeError):
            return None
        messages = value.get("messages") or []
        if not messages:
            return None
        entry = messages[0]
        contacts = value.get("contacts") or [{}]
        customer_id = contacts[0].get("wa_id") or entry.get("from")
        if not customer_id or not entry.get("id"):
            return None
        if entry.get("type", "text") == "text":
            text = (entry.get("text") or {}).get("body", "")
        elif entry.get("type") == "button":
            text = (entry.get("button") or {}).get("text", "")
        else:
            text = ""
        return InboundMessage(
            tenant_id=tenant_id or self.s.default_tenant_id,
            customer_id=str(customer_id),
            provider_message_id=str(entry["id"]),
            text=sanitize_text(text),
            timestamp=int(entry.get("timestamp") or 0),
            phone_number_id=(value.get("metadata") or {}).get("phone_number_id"),
        )

    # --- Egress ---
    def send(self, msg: OutboundMessage) -> DeliveryReceipt:
        """Envía un mensaje de texto simple vía Graph API. Nunca manda cuerpo vacío."""
        if not msg.text.strip():
            return DeliveryReceipt(ok=False, error_code="empty_body", error_detail="mensaje vacío")
        url = f"https://graph.facebook.com/{self.s.graph_api_version}/{self.s.whatsapp_phone_number_id}/messages"
        payload = {
            "messaging_product": "whatsapp",
            "to": msg.customer_id,
            "type": "text",
            "text": {"body": msg.text},
        }
        headers = {"Authorization": f"Bearer {self.s.whatsapp_token}"}
        try:
            with httpx.Client(timeout=10, transport=self.transport) as cli:
                r = cli.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            return DeliveryReceipt(ok=False, error_code="transport", error_detail=str(e))
        if r.status_code // 100 == 2:
            j = r.json()
            provider_id = (j.get("messages") or [{}])[0].get("id")
            return DeliveryReceipt(ok=True, provider_message_id=provider_id)
        j = {}
        if "application/json" in r.headers.get("content-type", ""):
            j = r.json()
        err = j.get("error", {})
        return DeliveryReceipt(ok=False, error_code=str(err.get("code", r.status_code)), error_detail=err.get("message"))
