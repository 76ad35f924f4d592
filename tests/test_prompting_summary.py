from decimal import Decimal
from pedido_bot.core.prompting import PromptBuilder
from pedido_bot.domain.models import DeliveryMode, Order, OrderLine
from pedido_bot.domain.services.summary import FOOTER, HEADER, build_backend_summary


def _line(desc, qty, unit, id=None):
    qty, unit = Decimal(qty), Decimal(unit)
    return OrderLine(id=id, description=desc, quantity=qty, unit_price=unit, line_total=qty * unit)


ORDER = Order(
    mode=DeliveryMode.DELIVERY,
    items=[_line("Pollo entero", 2, 12000, id=1), _line("Papas fritas", "0.5", "3500.50", id=2)],
    delivery_line=_line("Envio 0-5km", 1, 1000, id=9),
)


def test_backend_summary_lists_lines_and_total():
    text = build_backend_summary(ORDER)
    lines = text.split("\n")
    assert lines[0] == HEADER
    assert lines[1] == "- 2 x Pollo entero @ $12.000 = $24.000"
    assert lines[2] == "- 0,50 x Papas fritas @ $3.500,50 = $1.750,25"
    assert lines[3] == "- Envio 0-5km: $1.000"
    assert lines[4] == "💰 Total: $26.750,25"
    assert lines[-1] == FOOTER


def test_backend_summary_empty_order():
    text = build_backend_summary(Order())
    assert "💰 Total: $0" in text


def test_system_prompt_sections():
    prompts = PromptBuilder(store_tz="America/Argentina/Cordoba", simulated_now_iso="2025-03-14T12:00:00")
    text = prompts.system_prompt(behavior="  ", catalog_text="- Pollo entero: $12.000", hours_text="")
    assert "viernes, 14/03/2025 12:00" in text
    assert "Sos un asistente claro" in text
    assert "- Pollo entero: $12.000" in text
    assert "[HORARIOS]" not in text
    with_hours = prompts.system_prompt(behavior="Sos Pollería Don Pepe.", catalog_text="", hours_text="viernes 19:00-23:00")
    assert "[HORARIOS]" in with_hours
    assert "Sos Pollería Don Pepe." in with_hours


def test_correction_prompt_carries_authoritative_figures():
    prompts = PromptBuilder()
    text = prompts.correction_prompt(order=ORDER, attempt=2, max_attempts=3)
    assert "- 2 x Pollo entero @ 12000" in text
    assert "- 1 x Envio 0-5km @ 1000" in text
    assert "Total esperado por backend (total_pedido): 26750.25" in text
    assert text.endswith("[INTENTO:2/3]")
