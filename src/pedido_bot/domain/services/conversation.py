"""Máquina de estados de la conversación: OPEN → IN_PROGRESS → COMPLETED | CANCELLED."""
from __future__ import annotations
from ...core.errors import InvalidTransitionError
from ..models import ConversationStatus, DeliveryMode, Intent, Order


def is_order_complete(order: Order) -> bool:
    """Ítems, modo de entrega (con domicilio si es envío), fecha y hora bien formadas."""
    if not order.items:
        return False
    if order.mode is DeliveryMode.UNSET:
        return False
    if order.mode is DeliveryMode.DELIVERY and not order.has_address():
        return False
    return bool(order.scheduled_date and order.scheduled_time)


def next_status(
    current: ConversationStatus,
    *,
    intent: Intent,
    llm_estado: ConversationStatus | None,
    order: Order,
    blocked: bool = False,
) -> ConversationStatus:
    """Estado siguiente para un turno del cliente.

    `blocked` indica un problema que impide cerrar (horario inválido o dirección a
    reescribir): en ese caso nunca se pasa a COMPLETED.
    """
    if current.is_terminal:
        raise InvalidTransitionError(current.value, "turn")
    if intent is Intent.CANCEL or llm_estado is ConversationStatus.CANCELLED:
        return ConversationStatus.CANCELLED
    if blocked:
        return ConversationStatus.IN_PROGRESS
    if llm_estado is ConversationStatus.COMPLETED:
        return ConversationStatus.COMPLETED
    if intent is Intent.CONFIRM and is_order_complete(order):
        return ConversationStatus.COMPLETED
    return ConversationStatus.IN_PROGRESS
