"""Procesamiento de un turno del cliente, de punta a punta.

Orden: dedupe → cortesía post-cierre → conversación → modo manual → LLM →
reconciliación (y corrección) → envío/horarios → estado → persistencia.

El cliente siempre recibe una respuesta: las fallas de colaboradores degradan
el texto (espera, resumen, pedido de dirección) pero no cortan el turno.
"""
from __future__ import annotations
import json
from types import ModuleType
from pydantic import BaseModel
from kink import di
from ...core.settings import Settings
from ...core.errors import LLMError
from ...core.logging import get_logger
from ...core.parsing import parse_llm_reply
from ...core.prompting import PromptBuilder
from ...ports.interfaces import InboundMessage, LLMPort
from ..models import (
    ConversationStatus, ConversationView, DeliveryMode, DeliveryResolution, DeliveryStatus, Intent, Order, ProposedOrder,
)
from .behavior import BehaviorConfig
from .catalog_pricer import CatalogPricer
from .conversation import next_status
from .intents import INTENT_PATTERNS_VERSION, classify_intent, is_polite_closing
from .recalculator import OrderRecalculator
from .repair_loop import RepairLoop
from .schedule import ScheduleValidator, format_hours
from .session_store import InMemorySessionStore, SessionStore
from .summary import build_backend_summary

log = get_logger()

STALL_REPLY = "Dame un momento que estoy revisando tu pedido. ⏳"
ERROR_REPLY = "Perdón, hubo un error. ¿Podés repetir?"
START_REPLY = "¡Hola! 👋 ¿Qué te gustaría pedir?"
POLITE_REPLY = "¡Gracias! 😊 Cuando quieras hacemos otro pedido."
CANCELLED_REPLY = "Listo, cancelamos tu pedido. Cuando quieras hacemos otro. 👋"
ADDRESS_CLARIFY_REPLY = (
    "No pude ubicar con precisión esa dirección. 📍 "
    "¿Me la pasás de nuevo con calle, número y localidad?"
)
GEO_UNAVAILABLE_REPLY = (
    "En este momento no pudimos calcular el costo de envío a tu dirección. "
    "Dame un ratito y volvé a escribirme, o si preferís podés retirar por el local."
)
MAX_HISTORY = 40

# el pedido no puede cerrarse con estos problemas de envío
_BLOCKING_DELIVERY = {DeliveryStatus.INEXACT, DeliveryStatus.UNAVAILABLE, DeliveryStatus.NO_ADDRESS}


class TurnResult(BaseModel):
    reply: str = ""
    conversation_id: int | None = None
    status: ConversationStatus | None = None
    order: Order | None = None
    finalized: bool = False
    skipped: str | None = None  # duplicate | manual
    stalled: bool = False


class TurnProcessor:
    def __init__(
        self,
        settings: Settings | None = None,
        llm: LLMPort | None = None,
        pricer: CatalogPricer | None = None,
        recalculator: OrderRecalculator | None = None,
        repair: RepairLoop | None = None,
        schedule: ScheduleValidator | None = None,
        prompts: PromptBuilder | None = None,
        behavior: BehaviorConfig | None = None,
        sessions: SessionStore | None = None,
        ledger: ModuleType | None = None,
    ):
        self.settings = settings if settings is not None else di[Settings]
        if llm is None:
            from ...core.llm_client import LLMClient
            llm = di[LLMClient]
        self.llm = llm
        self.pricer = pricer if pricer is not None else di[CatalogPricer]
        self.recalculator = recalculator if recalculator is not None else di[OrderRecalculator]
        self.repair = repair if repair is not None else di[RepairLoop]
        self.schedule = schedule if schedule is not None else di[ScheduleValidator]
        self.prompts = prompts if prompts is not None else di[PromptBuilder]
        self.behavior = behavior if behavior is not None else di[BehaviorConfig]
        self.sessions = sessions if sessions is not None else di[InMemorySessionStore]
        if ledger is None:
            from ...repo import repo as ledger
        self.ledger = ledger

    # ---------- ledger tolerante a fallas ----------
    def _safe(self, op: str, *args, default=None, **kwargs):
        try:
            return getattr(self.ledger, op)(*args, **kwargs)
        except Exception:
            log.exception("ledger_error", op=op)
            return default

    # ---------- entrada ----------
    def handle(self, msg: InboundMessage) -> TurnResult:
        try:
            return self._handle(msg)
        except Exception:
            log.exception("turn_failed", tenant_id=msg.tenant_id, customer_id=msg.customer_id)
            return TurnResult(reply=ERROR_REPLY)

    def _handle(self, msg: InboundMessage) -> TurnResult:
        tenant, customer, text = msg.tenant_id, msg.customer_id, msg.text
        log.info("turn_in", tenant_id=tenant, customer_id=customer, provider_message_id=msg.provider_message_id)

        if self._safe("register_inbound", tenant, msg.provider_message_id, default=True) is False:
            return TurnResult(skipped="duplicate")

        polite = is_polite_closing(text)
        if polite and self.sessions.has_recently_ended(tenant, customer):
            log.info("polite_closing", tenant_id=tenant, customer_id=customer)
            return TurnResult(reply=POLITE_REPLY)
        if not polite:
            self.sessions.clear_ended(tenant, customer)

        session = None
        conv: ConversationView | None = self._safe("get_or_open_conversation", tenant, customer)
        if conv is None:
            # ledger caído: se sigue con la sesión vigente sin reiniciarla
            session = self.sessions.get_or_create(tenant, customer, None)
            conv = ConversationView(
                id=session.conversation_id or 0, tenant_id=tenant, customer_id=customer,
                status=ConversationStatus.IN_PROGRESS if session.history else ConversationStatus.OPEN,
            )
        self._safe("append_message", conv.id, "user", text, meta={"provider_message_id": msg.provider_message_id})

        if conv.manual_override:
            log.info("manual_override_gated", conversation_id=conv.id)
            self._safe("log_event", conv.id, "manual_gated", {"provider_message_id": msg.provider_message_id})
            return TurnResult(conversation_id=conv.id, status=conv.status, skipped="manual")

        if session is None:
            session = self.sessions.get_or_create(tenant, customer, conv.id)
        intent = classify_intent(text)
        hours = self._safe("get_store_hours", tenant, default={}) or {}

        system = self.prompts.system_prompt(
            behavior=self.behavior.text(tenant),
            catalog_text=self.pricer.catalog_text(tenant),
            hours_text=format_hours(hours),
        )
        messages = [{"role": "system", "content": system}, *session.history, {"role": "user", "content": text}]

        try:
            raw = self.llm.complete(messages)
        except LLMError as e:
            log.warning("llm_stall", conversation_id=conv.id, error=str(e))
            return TurnResult(reply=STALL_REPLY, conversation_id=conv.id, status=conv.status,
                              order=session.order, stalled=True)

        # ---------- reconciliación ----------
        reply = parse_llm_reply(raw)
        llm_estado: ConversationStatus | None = None
        delivery = DeliveryResolution(status=DeliveryStatus.NOT_APPLICABLE)
        if reply is None:
            log.warning("llm_parse_failed", conversation_id=conv.id)
            order = session.order
            reply_text = build_backend_summary(order) if order.items else ERROR_REPLY
        else:
            llm_estado = reply.estado
            result = self.recalculator.reconcile(tenant, reply.order or ProposedOrder(), current=session.order)
            order, delivery = result.order, result.delivery
            reply_text = reply.error or reply.response
            if not reply.error and result.needs_repair:
                history = messages + [{"role": "assistant", "content": raw}]
                fixed = self.repair.run(tenant, history, result)
                self._safe("log_event", conv.id, "repair", {"success": fixed.success, "attempts": fixed.attempts})
                order, reply_text = fixed.final_order, fixed.reply_text
                llm_estado = fixed.estado or llm_estado
                delivery = fixed.delivery or delivery

        # ---------- envío y horarios ----------
        blocked = order.mode is DeliveryMode.DELIVERY and delivery.status in _BLOCKING_DELIVERY
        if delivery.status is DeliveryStatus.INEXACT:
            reply_text = ADDRESS_CLARIFY_REPLY
        elif delivery.status is DeliveryStatus.UNAVAILABLE:
            reply_text = GEO_UNAVAILABLE_REPLY

        check = self.schedule.validate(order, hours)
        if not check.ok:
            blocked = True
            reply_text = check.message or reply_text
            log.info("schedule_rejected", conversation_id=conv.id, reason=check.reason)

        status = next_status(conv.status, intent=intent, llm_estado=llm_estado, order=order, blocked=blocked)
        if status is ConversationStatus.CANCELLED and intent is Intent.CANCEL and llm_estado is not ConversationStatus.CANCELLED:
            reply_text = CANCELLED_REPLY
        if not (reply_text or "").strip():
            reply_text = build_backend_summary(order) if order.items else START_REPLY
        log.info("turn_status", conversation_id=conv.id, status=status.value, intent=intent.value,
                 llm_estado=llm_estado.value if llm_estado else None, intents_version=INTENT_PATTERNS_VERSION)

        # ---------- sesión y ledger ----------
        snapshot = {"response": reply_text, "estado": status.value, "Pedido": order.to_wire()}
        session.history = (session.history + [
            {"role": "user", "content": text},
            {"role": "assistant", "content": json.dumps(snapshot, ensure_ascii=False)},
        ])[-MAX_HISTORY:]
        session.order = order
        self.sessions.save(tenant, customer, session)

        self._safe("append_message", conv.id, "assistant", reply_text)
        self._safe("append_message", conv.id, "assistant", json.dumps(snapshot, ensure_ascii=False),
                   type="json", meta={"kind": "pedido-snapshot"})

        finalized = False
        if status.is_terminal:
            finalized = self._finalize(conv, status, order)
        else:
            self._safe("mark_in_progress", conv.id)

        return TurnResult(reply=reply_text, conversation_id=conv.id, status=status, order=order, finalized=finalized)

    def _finalize(self, conv: ConversationView, status: ConversationStatus, order: Order) -> bool:
        """Sólo la llamada que gana el UPDATE guardado persiste el pedido."""
        won = bool(self._safe("finalize_conversation_once", conv.id, status, summary=order.to_wire(), default=False))
        if won:
            self._safe("upsert_order", conv.id, conv.tenant_id, conv.customer_id, status, order)
            self._safe("log_event", conv.id, "finalized", {"status": status.value, "grand_total": str(order.grand_total)})
        self.sessions.evict(conv.tenant_id, conv.customer_id, ended=True)
        return won
