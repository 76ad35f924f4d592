"""Coerción de números escritos "a mano" por el modelo o por el cliente.

Acepta símbolos de moneda, separadores de miles con punto o coma y decimales
con cualquiera de los dos. Todo lo que no se pueda interpretar vale 0.
"""
from __future__ import annotations
import re
from decimal import Decimal, InvalidOperation
from typing import Any

_NON_NUMERIC = re.compile(r"[^\d.,\-]")


def _single_separator(text: str, sep: str) -> str:
    parts = text.split(sep)
    # "1.500" / "12.500.000" son miles; "1.5" / "0.500" son decimales
    if len(parts) > 2 or (len(parts[-1]) == 3 and parts[0] not in ("", "0")):
        return "".join(parts)
    return ".".join(parts)


def coerce_number(value: Any) -> Decimal:
    """Convierte `value` a Decimal. Valores vacíos o no numéricos devuelven 0."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal(0)
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        d = Decimal(str(value))
        return d if d.is_finite() else Decimal(0)

    text = _NON_NUMERIC.sub("", str(value))
    negative = text.startswith("-")
    text = text.replace("-", "")
    if not text.strip(".,"):
        return Decimal(0)

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = _single_separator(text, ",")
    elif "." in text:
        text = _single_separator(text, ".")

    try:
        d = Decimal(text)
    except InvalidOperation:
        return Decimal(0)
    if not d.is_finite():
        return Decimal(0)
    return -d if negative else d


def to_json_number(value: Decimal) -> int | float:
    """Decimal -> número JSON (int si es entero)."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def format_money(value: Decimal) -> str:
    """Formato es-AR: miles con punto, decimales con coma (solo si hay centavos)."""
    if value == value.to_integral_value():
        return f"{int(value):,}".replace(",", ".")
    whole = f"{value:,.2f}"
    return whole.replace(",", "_").replace(".", ",").replace("_", ".")
