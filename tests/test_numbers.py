from decimal import Decimal
import pytest
from pedido_bot.domain.numbers import coerce_number, format_money, to_json_number


@pytest.mark.parametrize("raw, expected", [
    (12000, Decimal(12000)),
    (2.5, Decimal("2.5")),
    ("$ 12.000", Decimal(12000)),
    ("1.500", Decimal(1500)),
    ("1.5", Decimal("1.5")),
    ("12,50", Decimal("12.50")),
    ("1,500.50", Decimal("1500.50")),
    ("1.500,50", Decimal("1500.50")),
    ("12.500.000", Decimal(12500000)),
    ("0.500", Decimal("0.5")),
    ("", Decimal(0)),
    (None, Decimal(0)),
    ("gratis", Decimal(0)),
    (True, Decimal(0)),
])
def test_coerce_number(raw, expected):
    assert coerce_number(raw) == expected


def test_coerce_number_rejects_non_finite():
    assert coerce_number(float("nan")) == 0
    assert coerce_number(Decimal("Infinity")) == 0


def test_to_json_number():
    assert to_json_number(Decimal("13000.00")) == 13000
    assert isinstance(to_json_number(Decimal("13000.00")), int)
    assert to_json_number(Decimal("12.5")) == 12.5


def test_format_money_es_ar():
    assert format_money(Decimal(13000)) == "13.000"
    assert format_money(Decimal("1500.5")) == "1.500,50"
    assert format_money(Decimal(0)) == "0"
