"""Reconciliación del pedido propuesto por el LLM contra catálogo y envío.

Los valores autoritativos siempre ganan; `mismatch` sólo decide si hace falta
un ciclo de corrección con el modelo.
"""
from __future__ import annotations
from decimal import Decimal
from kink import di
from ...core.logging import get_logger
from ..models import (
    DeliveryMode, DeliveryResolution, DeliveryStatus, Order, OrderLine, ProposedItem, ProposedOrder, ReconcileResult,
)
from ..numbers import coerce_number
from .catalog_pricer import CatalogPricer
from .delivery_fee import DeliveryFeeResolver

log = get_logger()

# estados en los que el envío no se pudo calcular por la dirección o el servicio
_UNRESOLVED = {DeliveryStatus.NO_ADDRESS, DeliveryStatus.INEXACT, DeliveryStatus.UNAVAILABLE, DeliveryStatus.NO_TIERS}


def _declared(v) -> Decimal | None:
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    return coerce_number(v)


class OrderRecalculator:
    def __init__(self, pricer: CatalogPricer | None = None, resolver: DeliveryFeeResolver | None = None):
        self.pricer = pricer if pricer is not None else di[CatalogPricer]
        self.resolver = resolver if resolver is not None else di[DeliveryFeeResolver]

    def _product_line(self, tenant_id: str, item: ProposedItem, missing: list[str]) -> OrderLine | None:
        qty = coerce_number(item.quantity)
        if qty <= 0:
            return None
        entry = self.pricer.find(tenant_id, item.description)
        if entry is None:
            missing.append(item.description)
            unit = Decimal(0)
        else:
            unit = entry.unit_price
        return OrderLine(
            id=entry.id if entry is not None and entry.id is not None else item.id,
            description=item.description,
            quantity=qty,
            unit_price=unit,
            line_total=qty * unit,
        )

    def reconcile(self, tenant_id: str, proposal: ProposedOrder, current: Order | None = None) -> ReconcileResult:
        """Recalcula precios, envío y total. `current` completa lo que el modelo omitió."""
        if current is not None:
            proposal = proposal.merged_onto(current)

        proposed = [i for i in (proposal.items or []) if i.description]
        products = [i for i in proposed if not self.pricer.is_delivery(i.description)]
        delivery_items = [i for i in proposed if self.pricer.is_delivery(i.description)]
        has_items = bool(products)
        mismatch = False
        missing: list[str] = []

        # 1. productos contra catálogo
        lines: list[OrderLine] = []
        for item in products:
            line = self._product_line(tenant_id, item, missing)
            if line is None:
                mismatch = True
                continue
            declared = _declared(item.line_total)
            if declared is None or declared != line.line_total:
                mismatch = True
            lines.append(line)
        if missing:
            mismatch = True

        # 2. envío
        mode = proposal.mode
        address = proposal.address.model_copy() if proposal.address else None
        resolution = (self.resolver.resolve(tenant_id, mode, address)
                      if mode is DeliveryMode.DELIVERY
                      else DeliveryResolution(status=DeliveryStatus.NOT_APPLICABLE))

        proposed_delivery = delivery_items[0] if delivery_items else None
        extra_delivery = len(delivery_items) > 1
        unresolved_declared = Decimal(0)
        delivery_line: OrderLine | None = None
        distance_km: float | None = None

        if resolution.status is DeliveryStatus.RESOLVED:
            delivery_line = resolution.line
            distance_km = resolution.distance_km
            if address is not None:
                address.lat, address.lon = resolution.lat, resolution.lon
            if proposed_delivery is None or extra_delivery:
                mismatch = True
            else:
                declared = _declared(proposed_delivery.line_total)
                if declared is None or declared != delivery_line.line_total:
                    mismatch = True
        elif resolution.status is DeliveryStatus.NOT_APPLICABLE:
            if delivery_items:
                mismatch = True
        elif resolution.status in _UNRESOLVED:
            # sin dirección utilizable no se culpa al modelo por el ítem de envío
            unresolved_declared = sum((_declared(i.line_total) or Decimal(0) for i in delivery_items), Decimal(0))
            if resolution.status is DeliveryStatus.INEXACT:
                address = None
            elif address is not None:
                address.clear_location()
            if resolution.status is DeliveryStatus.NO_TIERS:
                distance_km = resolution.distance_km

        order = Order(
            mode=mode,
            address=address,
            items=lines,
            delivery_line=delivery_line,
            scheduled_date=proposal.scheduled_date if proposal.has_valid_date() else None,
            scheduled_time=proposal.scheduled_time if proposal.has_valid_time() else None,
            distance_km=distance_km,
        )

        # 3. total general
        declared_total = _declared(proposal.declared_total)
        if declared_total is None or declared_total != order.grand_total + unresolved_declared:
            mismatch = True

        if not has_items:
            mismatch = False
        if mismatch:
            log.info("mismatch_detected", tenant_id=tenant_id, declared_total=str(declared_total),
                     grand_total=str(order.grand_total), missing_prices=missing, delivery=resolution.status.value)
        return ReconcileResult(order=order, mismatch=mismatch, has_items=has_items, delivery=resolution, missing_prices=missing)
