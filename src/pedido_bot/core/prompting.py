"""PromptBuilder (es-AR) con Jinja2: prompt de sistema y prompt de corrección de importes.

- [AHORA] en la zona horaria del local (o fecha simulada para pruebas).
- [COMPORTAMIENTO] texto configurable por tenant.
- [CATALOGO] una línea por producto con su precio.
- [SALIDA] contrato JSON que el backend parsea.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo
from jinja2 import Environment, BaseLoader, StrictUndefined
from ..domain.models import Order
from ..domain.numbers import to_json_number

DIAS = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]

SALIDA = (
    "FORMATO DE RESPUESTA (OBLIGATORIO - SOLO JSON, sin ```):\n"
    '{ "response": "texto para WhatsApp", "estado": "IN_PROGRESS|COMPLETED|CANCELLED", '
    '"Pedido": { "Entrega": "domicilio|retiro", "Domicilio": { "direccion": string }, '
    '"items": [ { "id": number, "descripcion": string, "cantidad": number, "importe_unitario": number, "total": number } ], '
    '"total_pedido": number, "Fecha": "YYYY-MM-DD", "Hora": "HH:MM" } }'
)

_SYSTEM = """
[AHORA]
Zona horaria: {{ tz }}
Fecha y hora actuales (local): {{ ahora }}

[COMPORTAMIENTO]
{{ comportamiento }}

{% if horarios %}
[HORARIOS]
{{ horarios }}

{% endif %}
[CATALOGO]
{{ catalogo }}

[SALIDA]
{{ salida }}

RECORDATORIOS: Respondé en español. No uses bloques de código. Devolvé SOLO JSON plano.
"""

_CORRECTION = """
[CORRECCION_DE_IMPORTES]
Detectamos que los importes de tu JSON no coinciden con la suma de ítems según el catálogo.
Usá EXACTAMENTE estos ítems interpretados por backend (cantidad y precio unitario):
{% for i in items %}
- {{ i.cantidad }} x {{ i.descripcion }} @ {{ i.importe_unitario }}
{% endfor %}
Total esperado por backend (total_pedido): {{ total }}
Reglas OBLIGATORIAS:
- No recalcules precios por tu cuenta: usá estos precios unitarios y este total.
- Si Pedido.Entrega = 'domicilio', DEBES incluir el ítem de Envío correspondiente.

SOBRE EL CAMPO response:
- NO digas que estás recalculando ni hables de backend ni de importes.
- Usá en `response` el MISMO tipo de mensaje que venías usando para seguir la conversación.
- Si antes estabas pidiendo fecha y hora, seguí pidiendo fecha y hora.
- Si ya tenés fecha/hora, seguí con el siguiente dato faltante.

Devolvé UN ÚNICO objeto JSON con: response, estado (IN_PROGRESS|COMPLETED|CANCELLED),
y Pedido { Entrega, Domicilio, items[ {id, descripcion, cantidad, importe_unitario, total} ], total_pedido, Fecha, Hora }.
No incluyas texto fuera del JSON.
[INTENTO:{{ attempt }}/{{ max_attempts }}]
"""

@dataclass
class PromptBuilder:
    store_tz: str = "America/Argentina/Cordoba"
    simulated_now_iso: str | None = None
    env: Environment = field(default_factory=lambda: Environment(
        loader=BaseLoader(),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    ))

    def now(self) -> datetime:
        tz = ZoneInfo(self.store_tz)
        if self.simulated_now_iso:
            base = datetime.fromisoformat(self.simulated_now_iso)
            return base.astimezone(tz) if base.tzinfo else base.replace(tzinfo=tz)
        return datetime.now(tz)

    def now_label(self) -> str:
        """Ej.: "domingo, 19/10/2026 14:30"."""
        n = self.now()
        return f"{DIAS[n.weekday()]}, {n:%d/%m/%Y %H:%M}"

    def system_prompt(self, *, behavior: str, catalog_text: str, hours_text: str = "") -> str:
        return self.env.from_string(_SYSTEM).render(
            tz=self.store_tz,
            ahora=self.now_label(),
            comportamiento=behavior.strip() or "Sos un asistente claro, amable y conciso. Respondé en español.",
            horarios=hours_text.strip(),
            catalogo=catalog_text,
            salida=SALIDA,
        ).strip()

    def correction_prompt(self, *, order: Order, attempt: int, max_attempts: int) -> str:
        """Instrucción de corrección con los ítems y el total autoritativos."""
        items = [line.to_wire() for line in order.all_lines()]
        return self.env.from_string(_CORRECTION).render(
            items=items,
            total=to_json_number(order.grand_total),
            attempt=attempt,
            max_attempts=max_attempts,
        ).strip()
