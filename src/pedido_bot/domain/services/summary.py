"""Resumen determinístico del pedido, usado cuando el modelo no logra cuadrar importes."""
from __future__ import annotations
from ..models import Order
from ..numbers import format_money

HEADER = "🧾 Resumen del pedido:"
FOOTER = "¿Confirmamos el pedido? ✅"


def _qty(q) -> str:
    return format_money(q)


def build_backend_summary(order: Order) -> str:
    """Lista de ítems con cantidad, unitario y subtotal, envío y total (formato es-AR)."""
    lines = [HEADER]
    for i in order.items:
        lines.append(f"- {_qty(i.quantity)} x {i.description} @ ${format_money(i.unit_price)} = ${format_money(i.line_total)}")
    if order.delivery_line is not None:
        d = order.delivery_line
        lines.append(f"- {d.description}: ${format_money(d.line_total)}")
    lines.append(f"💰 Total: ${format_money(order.grand_total)}")
    lines.append(FOOTER)
    return "\n".join(lines)
