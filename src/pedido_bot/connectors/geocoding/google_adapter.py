"""Adapter de Google Geocoding API (exactitud por location_type y partial_match)."""
from __future__ import annotations
import httpx
from kink import di
from ...core.settings import Settings
from ...core.errors import GeocodingUnavailableError
from ...domain.models import GeocodeResult

EXACT_LOCATION_TYPES = {"ROOFTOP", "RANGE_INTERPOLATED"}

class GoogleGeocoder:
    """Geocoder sobre Google Maps.

    Devuelve None si no hay resultados; levanta GeocodingUnavailableError si el
    servicio no responde o rechaza el pedido (cuota, key inválida, 5xx).
    """
    BASE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(self, settings: Settings | None = None, transport: httpx.BaseTransport | None = None):
        self.s = settings if settings is not None else di[Settings]
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.s.geocoding_timeout_s, transport=self.transport)

    def geocode(self, address: str) -> GeocodeResult | None:
        if not address:
            return None
        if not self.s.google_maps_api_key:
            raise GeocodingUnavailableError("google_maps_api_key no configurada")
        try:
            with self._client() as cli:
                r = cli.get(self.BASE_URL, params={"address": address, "key": self.s.google_maps_api_key})
                r.raise_for_status()
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GeocodingUnavailableError(str(e)) from e

        status = data.get("status")
        if status == "ZERO_RESULTS":
            return None
        if status != "OK":
            raise GeocodingUnavailableError(f"{status}: {data.get('error_message', '')}")

        first = (data.get("results") or [{}])[0]
        geometry = first.get("geometry") or {}
        loc = geometry.get("location") or {}
        if "lat" not in loc or "lng" not in loc:
            return None
        exact = geometry.get("location_type") in EXACT_LOCATION_TYPES and not first.get("partial_match", False)
        return GeocodeResult(
            lat=float(loc["lat"]),
            lon=float(loc["lng"]),
            exact=exact,
            formatted_address=first.get("formatted_address", ""),
        )
