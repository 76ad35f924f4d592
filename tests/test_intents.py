import pytest
from pedido_bot.domain.models import Intent
from pedido_bot.domain.services.intents import classify_intent, is_polite_closing


@pytest.mark.parametrize("text", [
    "quiero cancelar el pedido",
    "Cancelá todo",
    "ANULAR",
    "mejor lo cancelo",
    "dar de baja el pedido",
])
def test_cancel(text):
    assert classify_intent(text) is Intent.CANCEL


@pytest.mark.parametrize("text", ["confirmo", "Sí, confirmá", "si dale confirmalo nomas", "quiero confirmar"])
def test_confirm(text):
    assert classify_intent(text) is Intent.CONFIRM


def test_cancel_beats_confirm():
    assert classify_intent("confirmo... no, mejor cancelá") is Intent.CANCEL


@pytest.mark.parametrize("text", ["ya no quiero cancelar, seguí", "no lo cancelen", "no cancelar"])
def test_negated_cancel_is_neither(text):
    assert classify_intent(text) is Intent.NEITHER


@pytest.mark.parametrize("text", ["", "quiero 2 pollos", "a las 21", "cancelería"])
def test_neither(text):
    assert classify_intent(text) is Intent.NEITHER


@pytest.mark.parametrize("text", ["gracias", "Gracias!", "ok gracias", "👍", "dale genial", "buen día", "saludos!"])
def test_polite_closing(text):
    assert is_polite_closing(text)


@pytest.mark.parametrize("text", ["", "ok quiero otro pedido", "quiero 2 pollos", "hola"])
def test_not_polite_closing(text):
    assert not is_polite_closing(text)
