from decimal import Decimal
import pytest
from pedido_bot.domain.models import CatalogEntry
from pedido_bot.domain.services.catalog_pricer import CatalogPricer, normalize_text, parse_km_range
from conftest import CATALOG


def test_normalize_text_strips_accents_and_symbols():
    assert normalize_text("  Envío  (0-3 km) ") == "envio 0 3 km"


@pytest.mark.parametrize("desc, expected", [
    ("Envio 0-3km", (0.0, 3.0)),
    ("Envío 3 - 6 km", (3.0, 6.0)),
    ("Envio 2,5-4,5 km", (2.5, 4.5)),
    ("Envio hasta 3 km", (0.0, 3.0)),
    ("Envio >6km", (6.0, float("inf"))),
    ("Envio 6+ km", (6.0, float("inf"))),
    ("Envio a domicilio", None),
])
def test_parse_km_range(desc, expected):
    assert parse_km_range(desc) == expected


def test_price_for_exact_and_case_insensitive(pricer):
    assert pricer.price_for("t1", "POLLO ENTERO") == Decimal(12000)
    assert pricer.price_for("t1", "coca cola 1.5l") == Decimal(2500)


def test_price_for_item_mentioning_product(pricer):
    assert pricer.price_for("t1", "Papas fritas grandes") == Decimal(3000)


def test_price_for_short_form_of_single_product(pricer):
    assert pricer.price_for("t1", "papas") == Decimal(3000)
    # "pollo" cubre dos productos: ambiguo
    assert pricer.price_for("t1", "pollo") is None


def test_price_for_unknown_and_delivery_entries(pricer):
    assert pricer.price_for("t1", "Empanada de carne") is None
    assert pricer.price_for("t1", "Envio 0-5km") is None


def test_delivery_tiers_sorted_from_descriptions(pricer):
    tiers = pricer.delivery_tiers("t1")
    assert [(t.min_km, t.max_km, t.unit_price) for t in tiers] == [
        (0.0, 5.0, Decimal(1000)),
        (5.0, 10.0, Decimal(1500)),
    ]


def test_explicit_range_wins_and_flat_entry_ignored_when_ranged_exist(settings):
    entries = [
        CatalogEntry(id=1, description="Envio", unit_price=800),
        CatalogEntry(id=2, description="Envio cerca", unit_price=900, min_km=0, max_km=4),
        CatalogEntry(id=3, description="Envio lejos", unit_price=1900, min_km=4),
    ]
    p = CatalogPricer(settings, loader=lambda t: entries)
    tiers = p.delivery_tiers("t1")
    assert [t.description for t in tiers] == ["Envio cerca", "Envio lejos"]
    assert tiers[1].max_km == float("inf")


def test_flat_delivery_entry_alone_is_single_tier(settings):
    p = CatalogPricer(settings, loader=lambda t: [CatalogEntry(description="Envío", unit_price=700)])
    [tier] = p.delivery_tiers("t1")
    assert (tier.min_km, tier.max_km, tier.unit_price) == (0.0, float("inf"), Decimal(700))


def test_inactive_entries_ignored(settings):
    entries = [CatalogEntry(description="Pollo entero", unit_price=12000, active=False)]
    p = CatalogPricer(settings, loader=lambda t: entries)
    assert p.price_for("t1", "Pollo entero") is None


def test_cache_ttl_and_invalidate(settings):
    calls = []
    now = [0.0]

    def loader(tenant):
        calls.append(tenant)
        return list(CATALOG)

    p = CatalogPricer(settings, loader=loader, clock=lambda: now[0])
    p.entries("t1")
    p.entries("t1")
    assert calls == ["t1"]
    now[0] = settings.catalog_cache_ttl_s + 1
    p.entries("t1")
    assert calls == ["t1", "t1"]
    p.invalidate("t1")
    p.entries("t1")
    assert len(calls) == 3


def test_catalog_text_lines(pricer):
    text = pricer.catalog_text("t1")
    assert "Pollo entero. Precio: 12000." in text
    assert text.splitlines()[0].startswith("id 1 - ")


def test_catalog_text_empty(settings):
    assert CatalogPricer(settings, loader=lambda t: []).catalog_text("t1") == "( catálogo vacío )"
