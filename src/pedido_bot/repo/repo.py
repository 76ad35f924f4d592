"""Repositorio (ledger): conversaciones, mensajes, dedupe de webhooks, pedidos y configuración."""
from __future__ import annotations
import time
from datetime import datetime, timezone
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from kink import di
from ..repo.models import (
    Conversation, Message, ProcessedMessage, ConversationEvent, OrderRecord, Product, StoreSetting,
)
from ..core.errors import InvalidTransitionError
from ..core.logging import get_logger
from ..domain.models import CatalogEntry, ConversationStatus, ConversationView, Order

log = get_logger()

ACTIVE_STATUSES = (ConversationStatus.OPEN.value, ConversationStatus.IN_PROGRESS.value)

def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

def _view(c: Conversation) -> ConversationView:
    return ConversationView(
        id=c.id, tenant_id=c.tenant_id, customer_id=c.customer_id,
        status=ConversationStatus(c.status), finalized=c.finalized, manual_override=c.manual_override,
    )

# ---------- Inbound ----------
def register_inbound(tenant_id: str, provider_message_id: str) -> bool:
    """Registra el id del proveedor; False si ya se había procesado (reentrega del webhook)."""
    Session = di["session_factory"]
    try:
        with Session() as s, s.begin():
            s.add(ProcessedMessage(tenant_id=tenant_id, provider_message_id=provider_message_id))
    except IntegrityError:
        log.info("inbound_duplicate", tenant_id=tenant_id, provider_message_id=provider_message_id)
        return False
    return True

# ---------- Conversaciones ----------
def get_or_open_conversation(tenant_id: str, customer_id: str) -> ConversationView:
    """Conversación activa del cliente; si la última terminó, abre una nueva."""
    Session = di["session_factory"]
    with Session() as s, s.begin():
        c = s.execute(
            select(Conversation)
            .where(
                Conversation.tenant_id == tenant_id,
                Conversation.customer_id == customer_id,
                Conversation.status.in_(ACTIVE_STATUSES),
                Conversation.finalized.is_(False),
            )
            .order_by(Conversation.id.desc())
            .limit(1)
        ).scalar_one_or_none()
        if c is None:
            c = Conversation(tenant_id=tenant_id, customer_id=customer_id, status=ConversationStatus.OPEN.value,
                             finalized=False, manual_override=False, summary={})
            s.add(c)
            s.flush()
            log.info("conversation_opened", tenant_id=tenant_id, customer_id=customer_id, conversation_id=c.id)
        return _view(c)

def get_conversation(conversation_id: int) -> ConversationView | None:
    Session = di["session_factory"]
    with Session() as s:
        c = s.get(Conversation, conversation_id)
        return _view(c) if c else None

def append_message(conversation_id: int, role: str, content: str, type: str = "text", meta: dict | None = None) -> int:
    """Guarda un mensaje y actualiza contadores de la conversación."""
    Session = di["session_factory"]
    now = _now()
    with Session() as s, s.begin():
        m = Message(conversation_id=conversation_id, role=role, content=content, type=type, meta=meta or {}, ts=now)
        s.add(m)
        c = s.get(Conversation, conversation_id)
        if c is not None:
            if role == "user":
                c.turns = (c.turns or 0) + 1
                c.last_user_ts = now
            else:
                c.last_assistant_ts = now
        s.flush()
        mid = m.id
    return mid

def list_messages(conversation_id: int) -> list[dict]:
    Session = di["session_factory"]
    with Session() as s:
        rows = s.execute(
            select(Message).where(Message.conversation_id == conversation_id).order_by(Message.id)
        ).scalars().all()
        return [{"role": r.role, "content": r.content, "type": r.type, "meta": r.meta} for r in rows]

def mark_in_progress(conversation_id: int) -> None:
    """OPEN → IN_PROGRESS; no toca conversaciones ya finalizadas."""
    Session = di["session_factory"]
    with Session() as s, s.begin():
        s.execute(
            update(Conversation)
            .where(
                Conversation.id == conversation_id,
                Conversation.finalized.is_(False),
                Conversation.status.in_(ACTIVE_STATUSES),
            )
            .values(status=ConversationStatus.IN_PROGRESS.value)
        )

def finalize_conversation_once(conversation_id: int, status: ConversationStatus, summary: dict | None = None) -> bool:
    """UPDATE guardado por `finalized = false`. True sólo para la llamada que ganó."""
    if not status.is_terminal:
        raise InvalidTransitionError("finalize", status.value)
    Session = di["session_factory"]
    values = {"status": status.value, "finalized": True, "closed_at": _now()}
    if summary is not None:
        values["summary"] = summary
    with Session() as s, s.begin():
        res = s.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id, Conversation.finalized.is_(False))
            .values(**values)
        )
        won = res.rowcount == 1
    if won:
        log.info("conversation_finalized", conversation_id=conversation_id, status=status.value)
    else:
        log.info("finalize_skipped", conversation_id=conversation_id, status=status.value)
    return won

def set_manual_override(tenant_id: str, customer_id: str, enabled: bool) -> ConversationView:
    """Pausa/reanuda las respuestas automáticas en la conversación activa del cliente."""
    conv = get_or_open_conversation(tenant_id, customer_id)
    Session = di["session_factory"]
    with Session() as s, s.begin():
        c = s.get(Conversation, conv.id)
        c.manual_override = enabled
        view = _view(c)
    log.info("manual_override_set", tenant_id=tenant_id, customer_id=customer_id, conversation_id=conv.id, enabled=enabled)
    return view

# ---------- Pedidos ----------
def upsert_order(conversation_id: int, tenant_id: str, customer_id: str, status: ConversationStatus, order: Order) -> int:
    """Un único registro por conversación: reintentos convergen al mismo pedido."""
    Session = di["session_factory"]
    values = {
        "tenant_id": tenant_id,
        "customer_id": customer_id,
        "status": status.value,
        "payload": order.to_wire(),
        "grand_total": order.grand_total,
        "distance_km": order.distance_km,
        "updated_at": _now(),
    }
    for _ in range(2):
        try:
            with Session() as s, s.begin():
                rec = s.execute(
                    select(OrderRecord).where(OrderRecord.conversation_id == conversation_id)
                ).scalar_one_or_none()
                if rec is None:
                    rec = OrderRecord(conversation_id=conversation_id, **values)
                    s.add(rec)
                else:
                    for k, v in values.items():
                        setattr(rec, k, v)
                s.flush()
                oid = rec.id
            log.info("order_upserted", conversation_id=conversation_id, order_id=oid, status=status.value)
            return oid
        except IntegrityError:
            # otro proceso insertó primero; el segundo intento actualiza
            log.info("order_upsert_retry", conversation_id=conversation_id)
    raise RuntimeError(f"no se pudo guardar el pedido de la conversación {conversation_id}")

def get_order(conversation_id: int) -> dict | None:
    Session = di["session_factory"]
    with Session() as s:
        rec = s.execute(select(OrderRecord).where(OrderRecord.conversation_id == conversation_id)).scalar_one_or_none()
        if rec is None:
            return None
        return {"id": rec.id, "status": rec.status, "payload": rec.payload,
                "grand_total": rec.grand_total, "distance_km": rec.distance_km}

def count_orders(conversation_id: int | None = None, tenant_id: str | None = None) -> int:
    Session = di["session_factory"]
    q = select(func.count(OrderRecord.id))
    if conversation_id is not None:
        q = q.where(OrderRecord.conversation_id == conversation_id)
    if tenant_id is not None:
        q = q.where(OrderRecord.tenant_id == tenant_id)
    with Session() as s:
        return int(s.execute(q).scalar() or 0)

# ---------- Catálogo ----------
def list_active_products(tenant_id: str) -> list[CatalogEntry]:
    Session = di["session_factory"]
    with Session() as s:
        rows = s.execute(
            select(Product).where(Product.tenant_id == tenant_id, Product.active.is_(True)).order_by(Product.id)
        ).scalars().all()
        return [
            CatalogEntry(id=p.id, description=p.description, unit_price=p.unit_price, active=p.active,
                         min_km=p.min_km, max_km=p.max_km, notes=p.notes or "")
            for p in rows
        ]

def add_product(tenant_id: str, description: str, unit_price, *, active: bool = True,
                min_km: float | None = None, max_km: float | None = None, notes: str = "") -> int:
    Session = di["session_factory"]
    with Session() as s, s.begin():
        p = Product(tenant_id=tenant_id, description=description, unit_price=unit_price, active=active,
                    min_km=min_km, max_km=max_km, notes=notes)
        s.add(p)
        s.flush()
        pid = p.id
    log.info("product_added", tenant_id=tenant_id, product_id=pid)
    return pid

# ---------- Configuración del local ----------
def _get_setting(key: str) -> dict | None:
    Session = di["session_factory"]
    with Session() as s:
        row = s.get(StoreSetting, key)
        return dict(row.value) if row else None

def _set_setting(key: str, value: dict) -> None:
    Session = di["session_factory"]
    with Session() as s, s.begin():
        row = s.get(StoreSetting, key)
        if row is None:
            s.add(StoreSetting(key=key, value=value, updated_at=_now()))
        else:
            row.value = value
            row.updated_at = _now()
    log.info("setting_saved", key=key)

def get_store_hours(tenant_id: str) -> dict:
    doc = _get_setting(f"store_hours:{tenant_id}") or {}
    return doc.get("hours") or {}

def set_store_hours(tenant_id: str, hours: dict) -> dict:
    """Guarda horarios ya normalizados (sobrescribe los anteriores)."""
    _set_setting(f"store_hours:{tenant_id}", {"hours": hours})
    return hours

def get_behavior(tenant_id: str) -> str | None:
    doc = _get_setting(f"behavior:{tenant_id}") or {}
    return doc.get("text")

def set_behavior(tenant_id: str, text: str) -> None:
    _set_setting(f"behavior:{tenant_id}", {"text": text})

# ---------- Auditoría ----------
def log_event(conversation_id: int, kind: str, data: dict) -> None:
    """Registra un evento de auditoría en conversation_events."""
    Session = di["session_factory"]
    with Session() as s, s.begin():
        s.add(ConversationEvent(conversation_id=conversation_id, kind=kind, data=data, ts=int(time.time() * 1000)))
    log.info("conv_event", conversation_id=conversation_id, kind=kind)
