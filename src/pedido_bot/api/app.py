"""API Flask: webhook de Meta, simulate, handoff (modo manual) y administración del local."""
from __future__ import annotations
import time
from flask import Flask, request, jsonify
from kink import di
from ..core.di import bootstrap_di
from ..core.logging import set_trace_id, get_logger
from ..core.guardrails import sanitize_text
from ..core.settings import Settings
from ..repo import repo
from ..ports.interfaces import InboundMessage, OutboundMessage
from ..connectors.whatsapp.cloud_api_adapter import WhatsAppCloudAdapter
from ..domain.services.behavior import BehaviorConfig
from ..domain.services.catalog_pricer import CatalogPricer
from ..domain.services.schedule import normalize_hours_payload
from ..domain.services.turns import TurnProcessor, TurnResult

app = Flask(__name__)
bootstrap_di()
log = get_logger()

def _tenant(body: dict | None = None) -> str:
    body = body or {}
    return str(body.get("tenant_id") or request.args.get("tenant_id") or di[Settings].default_tenant_id).strip()

def _result_json(result: TurnResult) -> dict:
    return {
        "reply": result.reply or None,
        "conversation_id": result.conversation_id,
        "status": result.status.value if result.status else None,
        "order": result.order.to_wire() if result.order else None,
        "finalized": result.finalized,
        "skipped": result.skipped,
        "stalled": result.stalled,
    }

@app.get("/healthz")
def healthz():
    """Health check básico."""
    return {"ok": True}

# ---------- WhatsApp ----------
@app.get("/webhook/meta")
def verify():
    """Verificación del webhook: devuelve hub.challenge si el VERIFY_TOKEN coincide."""
    s = di[Settings]
    if request.args.get("hub.mode") == "subscribe" and request.args.get("hub.verify_token") == s.verify_token:
        return request.args.get("hub.challenge", ""), 200
    return "forbidden", 403

@app.post("/webhook/meta")
def webhook():
    """Procesa el mensaje y responde por WhatsApp. Siempre 200 para que Meta no reintente."""
    set_trace_id(request.headers.get("X-Trace-Id"))
    adapter = di[WhatsAppCloudAdapter]
    raw = request.get_json(force=True, silent=True) or {}
    msg = adapter.normalize_incoming(raw, tenant_id=_tenant())
    if msg is None:
        return jsonify({"ok": True, "ignored": True})
    log.info("webhook_in", customer_id=msg.customer_id, provider_id=msg.provider_message_id)

    result = di[TurnProcessor].handle(msg)
    if result.reply and not result.skipped:
        receipt = adapter.send(OutboundMessage(customer_id=msg.customer_id, text=result.reply))
        if not receipt.ok:
            log.warning("send_failed", customer_id=msg.customer_id, error_code=receipt.error_code, error_detail=receipt.error_detail)
    return jsonify({"ok": True, "status": result.status.value if result.status else None, "skipped": result.skipped})

@app.post("/simulate")
def simulate():
    """Procesa un mensaje sin enviar nada a Meta y devuelve la respuesta prevista.

    Cuerpo esperado:
    { "customer_id": "5493462000000", "text": "quiero 2 empanadas", "provider_message_id": "debug-1" }
    """
    set_trace_id(request.headers.get("X-Trace-Id"))
    body = request.get_json(force=True, silent=True) or {}
    customer_id = str(body.get("customer_id") or body.get("wa_id") or "debug-customer")
    text = sanitize_text(body.get("text", ""))
    provider_mid = body.get("provider_message_id") or f"debug-{time.time_ns()}"
    msg = InboundMessage(
        tenant_id=_tenant(body), customer_id=customer_id, provider_message_id=str(provider_mid),
        text=text, timestamp=int(time.time()),
    )
    log.info("simulate_in", customer_id=customer_id, provider_id=provider_mid)
    return jsonify({"preview": _result_json(di[TurnProcessor].handle(msg))})

# ---------- Handoff ----------
def _set_manual(enabled: bool):
    body = request.get_json(force=True, silent=True) or {}
    customer_id = body.get("customer_id") or body.get("wa_id")
    if not customer_id:
        return {"error": "missing customer_id"}, 400
    conv = repo.set_manual_override(_tenant(body), str(customer_id), enabled)
    return {"ok": True, "customer_id": customer_id, "conversation_id": conv.id, "paused": enabled}

@app.post("/handoff/pause")
def handoff_pause():
    """Pausa las respuestas automáticas para un cliente (atiende un humano)."""
    return _set_manual(True)

@app.post("/handoff/resume")
def handoff_resume():
    """Reanuda las respuestas automáticas."""
    return _set_manual(False)

# ---------- Administración ----------
@app.get("/admin/hours")
def get_hours():
    tenant = _tenant()
    return {"ok": True, "tenant": tenant, "hours": repo.get_store_hours(tenant)}

@app.post("/admin/hours")
def save_hours():
    """Guarda horarios normalizados (sobrescribe los existentes del tenant)."""
    body = request.get_json(force=True, silent=True) or {}
    tenant = _tenant(body)
    hours = normalize_hours_payload(body.get("hours", body))
    repo.set_store_hours(tenant, hours)
    return {"ok": True, "tenant": tenant, "hours": hours}

@app.get("/admin/behavior")
def get_behavior():
    tenant = _tenant()
    return {"ok": True, "tenant": tenant, "text": repo.get_behavior(tenant) or di[Settings].behavior_text}

@app.post("/admin/behavior")
def save_behavior():
    body = request.get_json(force=True, silent=True) or {}
    text = str(body.get("text") or "").strip()
    if not text:
        return {"error": "missing text"}, 400
    tenant = _tenant(body)
    repo.set_behavior(tenant, text)
    di[BehaviorConfig].invalidate(tenant)
    return {"ok": True, "tenant": tenant}

@app.post("/admin/reload-config")
def reload_config():
    """Invalida caches de catálogo y comportamiento (todos los tenants o uno)."""
    body = request.get_json(force=True, silent=True) or {}
    tenant = body.get("tenant_id")
    di[CatalogPricer].invalidate(tenant)
    di[BehaviorConfig].invalidate(tenant)
    return {"ok": True, "tenant": tenant}
