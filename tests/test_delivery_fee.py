from decimal import Decimal
import pytest
from pedido_bot.core.errors import GeocodingUnavailableError
from pedido_bot.domain.models import DeliveryAddress, DeliveryMode, DeliveryStatus, DeliveryTier, GeocodeResult
from pedido_bot.domain.services.catalog_pricer import CatalogPricer
from pedido_bot.domain.services.delivery_fee import (
    DeliveryFeeResolver, compose_address_query, haversine_km, select_tier,
)
from conftest import FakeGeocoder, STORE_LAT, STORE_LON, exact_at, make_settings

TIERS = [
    DeliveryTier(id=1, description="Envio 0-5km", unit_price=Decimal(1000), min_km=0, max_km=5),
    DeliveryTier(id=2, description="Envio 5-10km", unit_price=Decimal(1500), min_km=5, max_km=10),
]


def test_haversine_known_distance():
    # un grado de latitud sobre la esfera de 6371 km
    assert haversine_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)
    assert haversine_km(STORE_LAT, STORE_LON, STORE_LAT, STORE_LON) == 0


@pytest.mark.parametrize("distance, expected", [
    (0.0, "Envio 0-5km"),
    (4.99, "Envio 0-5km"),
    (5.0, "Envio 5-10km"),
    (9.99, "Envio 5-10km"),
    (10.0, "Envio 5-10km"),
    (25.0, "Envio 5-10km"),
])
def test_select_tier_half_open_boundaries(distance, expected):
    assert select_tier(TIERS, distance).description == expected


def test_select_tier_below_all_picks_lowest():
    tiers = [
        DeliveryTier(description="Envio 1-5km", unit_price=Decimal(1000), min_km=1, max_km=5),
        DeliveryTier(description="Envio 5-10km", unit_price=Decimal(1500), min_km=5, max_km=10),
    ]
    assert select_tier(tiers, 0.3).description == "Envio 1-5km"


def test_select_tier_gap_resolves_to_closest_boundary():
    tiers = [
        DeliveryTier(description="cerca", unit_price=Decimal(1000), min_km=0, max_km=3),
        DeliveryTier(description="lejos", unit_price=Decimal(2000), min_km=5, max_km=10),
    ]
    assert select_tier(tiers, 3.5).description == "cerca"
    assert select_tier(tiers, 4.6).description == "lejos"
    # empate: gana el tramo más bajo
    assert select_tier(tiers, 4.0).description == "cerca"


def test_select_tier_without_tiers():
    assert select_tier([], 3) is None


def test_compose_address_adds_default_locality(settings):
    q = compose_address_query(DeliveryAddress(text="Belgrano 123"), settings)
    assert q == "Belgrano 123, Venado Tuerto, Santa Fe, Argentina"


def test_compose_structured_address(settings):
    addr = DeliveryAddress.model_validate({"calle": "Belgrano", "numero": "123", "barrio": "Centro", "ciudad": "Rufino"})
    assert compose_address_query(addr, settings) == "Belgrano 123, Centro, Rufino"


def test_resolve_exact_geocode_4_2_km(resolver, geocoder):
    res = resolver.resolve("t1", DeliveryMode.DELIVERY, DeliveryAddress(text="Belgrano 123"))
    assert res.status is DeliveryStatus.RESOLVED
    assert res.distance_km == 4.2
    assert res.line.description == "Envio 0-5km"
    assert res.line.unit_price == Decimal(1000)
    assert res.line.line_total == Decimal(1000)
    assert res.line.quantity == 1
    assert geocoder.queries == ["Belgrano 123, Venado Tuerto, Santa Fe, Argentina"]


def test_resolve_not_applicable_for_pickup(resolver, geocoder):
    res = resolver.resolve("t1", DeliveryMode.PICKUP, DeliveryAddress(text="Belgrano 123"))
    assert res.status is DeliveryStatus.NOT_APPLICABLE
    assert geocoder.queries == []


def test_resolve_without_address(resolver):
    assert resolver.resolve("t1", DeliveryMode.DELIVERY, None).status is DeliveryStatus.NO_ADDRESS
    assert resolver.resolve("t1", DeliveryMode.DELIVERY, DeliveryAddress()).status is DeliveryStatus.NO_ADDRESS


def test_resolve_inexact_geocode_asks_for_clarification(settings, pricer):
    geo = FakeGeocoder(result=GeocodeResult(lat=-33.7, lon=-61.9, exact=False))
    res = DeliveryFeeResolver(settings, geocoder=geo, pricer=pricer).resolve(
        "t1", DeliveryMode.DELIVERY, DeliveryAddress(text="por el centro"))
    assert res.status is DeliveryStatus.INEXACT
    assert res.needs_clarification
    assert res.line is None and res.distance_km is None


def test_resolve_no_results_is_inexact(settings, pricer):
    res = DeliveryFeeResolver(settings, geocoder=FakeGeocoder(result=None), pricer=pricer).resolve(
        "t1", DeliveryMode.DELIVERY, DeliveryAddress(text="calle falsa 123"))
    assert res.status is DeliveryStatus.INEXACT


def test_resolve_geocoder_down_is_unavailable(settings, pricer):
    geo = FakeGeocoder(error=GeocodingUnavailableError("503"))
    res = DeliveryFeeResolver(settings, geocoder=geo, pricer=pricer).resolve(
        "t1", DeliveryMode.DELIVERY, DeliveryAddress(text="Belgrano 123"))
    assert res.status is DeliveryStatus.UNAVAILABLE
    assert not res.needs_clarification


def test_resolve_without_store_coordinates(pricer, geocoder):
    s = make_settings(store_lat=None, store_lon=None)
    res = DeliveryFeeResolver(s, geocoder=geocoder, pricer=pricer).resolve(
        "t1", DeliveryMode.DELIVERY, DeliveryAddress(text="Belgrano 123"))
    assert res.status is DeliveryStatus.UNAVAILABLE
    assert geocoder.queries == []


def test_resolve_without_delivery_tiers(settings, geocoder):
    pricer = CatalogPricer(settings, loader=lambda t: [])
    res = DeliveryFeeResolver(settings, geocoder=geocoder, pricer=pricer).resolve(
        "t1", DeliveryMode.DELIVERY, DeliveryAddress(text="Belgrano 123"))
    assert res.status is DeliveryStatus.NO_TIERS
    assert res.line is None
    assert res.distance_km == 4.2


def test_exact_results_are_memoized(resolver, geocoder):
    addr = DeliveryAddress(text="Belgrano 123")
    resolver.resolve("t1", DeliveryMode.DELIVERY, addr)
    resolver.resolve("t1", DeliveryMode.DELIVERY, addr)
    assert len(geocoder.queries) == 1


def test_distance_rounding_follows_precision(pricer):
    s = make_settings(distance_precision=0)
    res = DeliveryFeeResolver(s, geocoder=FakeGeocoder(result=exact_at()), pricer=pricer).resolve(
        "t1", DeliveryMode.DELIVERY, DeliveryAddress(text="Belgrano 123"))
    assert res.distance_km == 4
