import os

# la app Flask arma el contenedor al importarse: necesita estas variables
os.environ.setdefault("PB_DATABASE_URL", "sqlite://")
os.environ.setdefault("PB_WHATSAPP_TOKEN", "test-token")
os.environ.setdefault("PB_WHATSAPP_PHONE_NUMBER_ID", "123456")
os.environ.setdefault("PB_VERIFY_TOKEN", "verify-me")
os.environ.setdefault("PB_LLM_BASE_URL", "http://llm.test")

import json
import pytest
from kink import di

from pedido_bot.core.db import create_db_engine, create_session_factory
from pedido_bot.core.settings import Settings
from pedido_bot.core.prompting import PromptBuilder
from pedido_bot.domain.models import CatalogEntry, GeocodeResult
from pedido_bot.domain.services.catalog_pricer import CatalogPricer
from pedido_bot.domain.services.delivery_fee import DeliveryFeeResolver
from pedido_bot.domain.services.recalculator import OrderRecalculator
from pedido_bot.repo.models import Base

STORE_LAT = -33.7456
STORE_LON = -61.9688
# 4.2 km al norte del local (1° de latitud = 111.19493 km con R = 6371)
LAT_4_2_KM = STORE_LAT + 4.2 / 111.19493


def make_settings(**overrides) -> Settings:
    base = dict(
        database_url="sqlite://",
        whatsapp_token="test-token",
        whatsapp_phone_number_id="123456",
        verify_token="verify-me",
        llm_base_url="http://llm.test",
        store_lat=STORE_LAT,
        store_lon=STORE_LON,
        simulated_now_iso="2025-03-14T12:00:00",
        google_maps_api_key="maps-key",
    )
    base.update(overrides)
    return Settings(**base)


CATALOG = [
    CatalogEntry(id=1, description="Pollo entero", unit_price=12000),
    CatalogEntry(id=2, description="Medio pollo", unit_price=6500),
    CatalogEntry(id=3, description="Papas fritas", unit_price=3000),
    CatalogEntry(id=4, description="Coca Cola 1.5L", unit_price="$2.500"),
    CatalogEntry(id=10, description="Envio 0-5km", unit_price=1000),
    CatalogEntry(id=11, description="Envio 5-10km", unit_price=1500),
]


class FakeLLM:
    """Devuelve respuestas en orden; una excepción en la lista se levanta. La última se repite."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[list[dict]] = []

    def complete(self, messages):
        self.calls.append(messages)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item if isinstance(item, str) else json.dumps(item, ensure_ascii=False)


class FakeGeocoder:
    def __init__(self, result=None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.queries: list[str] = []

    def geocode(self, address):
        self.queries.append(address)
        if self.error is not None:
            raise self.error
        return self.result


def exact_at(lat=LAT_4_2_KM, lon=STORE_LON) -> GeocodeResult:
    return GeocodeResult(lat=lat, lon=lon, exact=True, formatted_address="Belgrano 123, Venado Tuerto")


@pytest.fixture
def settings():
    s = make_settings()
    di[Settings] = s
    return s


@pytest.fixture
def pricer(settings):
    return CatalogPricer(settings, loader=lambda tenant: list(CATALOG))


@pytest.fixture
def geocoder():
    return FakeGeocoder(result=exact_at())


@pytest.fixture
def resolver(settings, geocoder, pricer):
    return DeliveryFeeResolver(settings, geocoder=geocoder, pricer=pricer)


@pytest.fixture
def recalculator(pricer, resolver):
    return OrderRecalculator(pricer=pricer, resolver=resolver)


@pytest.fixture
def prompts(settings):
    return PromptBuilder(store_tz=settings.store_tz, simulated_now_iso=settings.simulated_now_iso)


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    factory = create_session_factory(engine)
    di.factories["session_factory"] = lambda _: factory
    yield factory
    engine.dispose()


def pedido(items, total=None, entrega="retiro", domicilio=None, fecha="", hora=""):
    """Arma el dict "Pedido" tal como lo escribe el modelo."""
    wire_items = []
    for desc, qty, unit in items:
        wire_items.append({"descripcion": desc, "cantidad": qty, "importe_unitario": unit, "total": qty * unit})
    return {
        "Entrega": entrega,
        "Domicilio": domicilio or {},
        "items": wire_items,
        "total_pedido": sum(i["total"] for i in wire_items) if total is None else total,
        "Fecha": fecha,
        "Hora": hora,
    }
