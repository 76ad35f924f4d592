"""Ítem de envío a partir del domicilio: geocoding, distancia y tramo del catálogo.

Si el geocoding no es exacto no se adivina: se devuelve INEXACT y el turno
pide al cliente que reescriba la dirección.
"""
from __future__ import annotations
import math
from decimal import Decimal
from kink import di
from ...core.settings import Settings
from ...core.errors import GeocodingUnavailableError
from ...core.logging import get_logger
from ...ports.interfaces import GeocoderPort
from ..models import (
    DeliveryAddress, DeliveryMode, DeliveryResolution, DeliveryStatus, DeliveryTier, GeocodeResult, OrderLine,
)
from .catalog_pricer import CatalogPricer

log = get_logger()

EARTH_RADIUS_KM = 6371.0
_MEMO_MAX = 512


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distancia de gran círculo en km."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2)
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def compose_address_query(address: DeliveryAddress, settings: Settings) -> str:
    """Arma el texto para el geocoder; sin localidad separada por coma agrega ciudad/provincia/país por defecto."""
    parts = [
        address.text,
        " ".join(p for p in (address.street, address.number) if p),
        address.neighborhood,
        address.city,
        address.province,
        address.postal_code,
    ]
    query = ", ".join(p for p in parts if p).strip()
    if query and "," not in query:
        defaults = [settings.default_city, settings.default_province, settings.default_country]
        query = ", ".join([query] + [d for d in defaults if d])
    return query


def select_tier(tiers: list[DeliveryTier], distance_km: float) -> DeliveryTier | None:
    """Tramo cuyo intervalo semiabierto [min, max) contiene la distancia.

    Sin tramo que la contenga (huecos, debajo del primero, encima del último)
    gana el de borde más cercano; en empate, el tramo más bajo.
    """
    if not tiers:
        return None
    ordered = sorted(tiers, key=lambda t: (t.min_km, t.max_km))
    for t in ordered:
        if t.min_km <= distance_km < t.max_km:
            return t

    def gap(t: DeliveryTier) -> float:
        if distance_km < t.min_km:
            return t.min_km - distance_km
        return distance_km - t.max_km

    return min(ordered, key=gap)


class DeliveryFeeResolver:
    def __init__(self, settings: Settings | None = None, geocoder: GeocoderPort | None = None, pricer: CatalogPricer | None = None):
        self.settings = settings if settings is not None else di[Settings]
        if geocoder is None:
            from ...connectors.geocoding.google_adapter import GoogleGeocoder
            geocoder = di[GoogleGeocoder]
        self.geocoder = geocoder
        self.pricer = pricer if pricer is not None else di[CatalogPricer]
        self._memo: dict[str, GeocodeResult] = {}

    def _store_coords(self) -> tuple[float, float] | None:
        if self.settings.store_lat is None or self.settings.store_lon is None:
            return None
        return self.settings.store_lat, self.settings.store_lon

    def _geocode(self, query: str) -> GeocodeResult | None:
        if query in self._memo:
            return self._memo[query]
        geo = self.geocoder.geocode(query)
        if geo is not None and geo.exact:
            if len(self._memo) >= _MEMO_MAX:
                self._memo.clear()
            self._memo[query] = geo
        return geo

    def resolve(self, tenant_id: str, mode: DeliveryMode, address: DeliveryAddress | None) -> DeliveryResolution:
        if mode is not DeliveryMode.DELIVERY:
            return DeliveryResolution(status=DeliveryStatus.NOT_APPLICABLE)
        if address is None or address.is_empty():
            return DeliveryResolution(status=DeliveryStatus.NO_ADDRESS)

        query = compose_address_query(address, self.settings)
        store = self._store_coords()
        if store is None:
            log.warning("store_coords_missing", tenant_id=tenant_id)
            return DeliveryResolution(status=DeliveryStatus.UNAVAILABLE, query=query)

        try:
            geo = self._geocode(query)
        except GeocodingUnavailableError as e:
            log.warning("geocode_unavailable", tenant_id=tenant_id, query=query, error=str(e))
            return DeliveryResolution(status=DeliveryStatus.UNAVAILABLE, query=query)

        if geo is None or not geo.exact:
            log.info("geocode_inexact", tenant_id=tenant_id, query=query, found=geo is not None)
            return DeliveryResolution(status=DeliveryStatus.INEXACT, query=query)

        distance = round(haversine_km(store[0], store[1], geo.lat, geo.lon), self.settings.distance_precision)
        tier = select_tier(self.pricer.delivery_tiers(tenant_id), distance)
        if tier is None:
            log.warning("delivery_tiers_missing", tenant_id=tenant_id, distance_km=distance)
            return DeliveryResolution(status=DeliveryStatus.NO_TIERS, distance_km=distance, lat=geo.lat, lon=geo.lon, query=query)

        line = OrderLine(
            id=tier.id,
            description=tier.description,
            quantity=Decimal(1),
            unit_price=tier.unit_price,
            line_total=tier.unit_price,
        )
        log.info("delivery_resolved", tenant_id=tenant_id, query=query, distance_km=distance, tier=tier.description)
        return DeliveryResolution(status=DeliveryStatus.RESOLVED, line=line, distance_km=distance, lat=geo.lat, lon=geo.lon, query=query)
