"""Precios autoritativos desde el catálogo activo del tenant.

- Coincidencia por descripción sin distinguir mayúsculas ni tildes: igualdad,
  luego inclusión. No hay matching semántico/difuso.
- Los ítems cuya descripción arranca con la palabra clave de envío ("Envio ...")
  son tramos de delivery y no se usan para precio de productos.
- Cache por tenant con TTL corto; `invalidate()` al escribir el catálogo.
"""
from __future__ import annotations
import re
import time
import unicodedata
from decimal import Decimal
from typing import Callable
from kink import di
from ...core.settings import Settings
from ...core.logging import get_logger
from ..models import CatalogEntry, DeliveryTier

log = get_logger()

_KM = r"(\d+(?:[.,]\d+)?)"
_RANGE_RE = re.compile(_KM + r"\s*-\s*" + _KM + r"\s*km")
_UPTO_RE = re.compile(r"hasta\s*" + _KM + r"\s*km")
_OVER_RE = re.compile(r"(?:>\s*|(?:^|\s))" + _KM + r"\s*\+?\s*km")


def normalize_text(s: str) -> str:
    """Minúsculas, sin tildes ni símbolos, espacios colapsados."""
    s = unicodedata.normalize("NFD", str(s or "").lower())
    s = "".join(ch for ch in s if unicodedata.category(ch) != "Mn")
    s = re.sub(r"[^a-z0-9\s]", " ", s)
    return re.sub(r"\s+", " ", s).strip()


def _km(v: str) -> float:
    return float(v.replace(",", "."))


def parse_km_range(description: str) -> tuple[float, float] | None:
    """Extrae el rango en km de descripciones tipo "Envio 0-3km", "Envio hasta 3 km", "Envio 6+ km"."""
    d = str(description or "").lower()
    m = _RANGE_RE.search(d)
    if m:
        return _km(m.group(1)), _km(m.group(2))
    m = _UPTO_RE.search(d)
    if m:
        return 0.0, _km(m.group(1))
    m = _OVER_RE.search(d)
    if m:
        return _km(m.group(1)), float("inf")
    return None


class CatalogPricer:
    """Resuelve precio unitario y tramos de envío contra el catálogo del tenant."""

    def __init__(
        self,
        settings: Settings | None = None,
        loader: Callable[[str], list[CatalogEntry]] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings if settings is not None else di[Settings]
        if loader is None:
            from ...repo import repo
            loader = repo.list_active_products
        self.loader = loader
        self.clock = clock
        self._cache: dict[str, tuple[float, list[CatalogEntry]]] = {}
        self._keyword = normalize_text(self.settings.delivery_keyword)

    # ---------- cache ----------
    def entries(self, tenant_id: str) -> list[CatalogEntry]:
        hit = self._cache.get(tenant_id)
        now = self.clock()
        if hit and now - hit[0] < self.settings.catalog_cache_ttl_s:
            return hit[1]
        items = [e for e in self.loader(tenant_id) if e.active]
        self._cache[tenant_id] = (now, items)
        log.info("catalog_loaded", tenant_id=tenant_id, items=len(items))
        return items

    def invalidate(self, tenant_id: str | None = None) -> None:
        if tenant_id is None:
            self._cache.clear()
        else:
            self._cache.pop(tenant_id, None)

    # ---------- productos ----------
    def is_delivery(self, description: str) -> bool:
        return normalize_text(description).startswith(self._keyword)

    def products(self, tenant_id: str) -> list[CatalogEntry]:
        return [e for e in self.entries(tenant_id) if not self.is_delivery(e.description)]

    def find(self, tenant_id: str, description: str) -> CatalogEntry | None:
        key = normalize_text(description)
        if not key:
            return None
        products = [(normalize_text(p.description), p) for p in self.products(tenant_id)]
        for norm, p in products:
            if norm == key:
                return p
        # el ítem menciona un producto del catálogo: gana el más específico
        contained = [(norm, p) for norm, p in products if norm and norm in key]
        if contained:
            return max(contained, key=lambda t: len(t[0]))[1]
        # el ítem es una forma corta de un único producto
        covering = [p for norm, p in products if key in norm]
        if len(covering) == 1:
            return covering[0]
        return None

    def price_for(self, tenant_id: str, description: str) -> Decimal | None:
        """Precio unitario autoritativo o None si no está en el catálogo."""
        hit = self.find(tenant_id, description)
        return hit.unit_price if hit else None

    # ---------- envío ----------
    def delivery_tiers(self, tenant_id: str) -> list[DeliveryTier]:
        """Tramos de envío ordenados por km mínimo.

        Un ítem "Envio" sin rango (ni explícito ni en la descripción) cuenta como
        tarifa plana sólo si no hay ningún tramo con rango.
        """
        ranged: list[DeliveryTier] = []
        flat: list[DeliveryTier] = []
        for e in self.entries(tenant_id):
            if not self.is_delivery(e.description):
                continue
            if e.min_km is not None or e.max_km is not None:
                lo, hi = e.min_km or 0.0, e.max_km if e.max_km is not None else float("inf")
            else:
                parsed = parse_km_range(e.description)
                if parsed is None:
                    flat.append(DeliveryTier(id=e.id, description=e.description, unit_price=e.unit_price, min_km=0.0, max_km=float("inf")))
                    continue
                lo, hi = parsed
            ranged.append(DeliveryTier(id=e.id, description=e.description, unit_price=e.unit_price, min_km=lo, max_km=hi))
        tiers = ranged or flat[:1]
        return sorted(tiers, key=lambda t: (t.min_km, t.max_km))

    def catalog_text(self, tenant_id: str) -> str:
        """Bloque [CATALOGO] para el prompt: "id N - Descripción. Precio: X"."""
        lines = []
        for i, e in enumerate(sorted(self.entries(tenant_id), key=lambda x: x.description.lower()), start=1):
            base = f"id {i} - {e.description.strip()}. Precio: {e.unit_price.normalize():f}"
            lines.append(f"{base}. Observaciones: {e.notes.strip()}" if e.notes.strip() else f"{base}.")
        return "\n".join(lines) if lines else "( catálogo vacío )"
