"""Clasificación de intención explícita del cliente (confirmar / cancelar) y mensajes de cortesía.

La tabla de patrones es configuración versionada: cualquier cambio sube
INTENT_PATTERNS_VERSION para poder correlacionarlo en los logs.
"""
from __future__ import annotations
import re
import unicodedata
from ..models import Intent

INTENT_PATTERNS_VERSION = "2024.1"

CANCEL_PATTERNS = [
    re.compile(r"\b(cancel|anul)(ar|o|a|e|en|ado|ada)?\b"),
    re.compile(r"\bdar de baja\b"),
]
# "no quiero cancelar", "ya no quiero cancelar, segui", "no lo anulen"
CANCEL_NEGATIONS = [
    re.compile(r"\bno\s+(lo\s+|la\s+)?(quiero\s+)?(cancel|anul)"),
]
CONFIRM_PATTERNS = [
    re.compile(r"\bconfirm(ar|o|a)\b"),
    re.compile(r"^s[i]\b.*confirm"),
]

POLITE_EXACT = {
    "gracias", "muchas gracias", "mil gracias", "ok", "oka", "okey", "dale", "listo",
    "genial", "perfecto", "buenas", "buenas noches", "buen dia",
    "👍", "👌", "🙌", "🙏", "🙂", "😊", "👏", "✌️",
}
_POLITE_PREFIX = re.compile(r"^(gracias+!?|ok+|dale+|listo+|genial+|perfecto+)\b")
_POLITE_GREETING = re.compile(r"(saludos|abrazo)")


def _fold(text: str) -> str:
    s = unicodedata.normalize("NFD", str(text or "").lower())
    return "".join(ch for ch in s if unicodedata.category(ch) != "Mn").strip()


def classify_intent(text: str) -> Intent:
    """Cancelar gana sobre confirmar; una negación explícita anula la cancelación."""
    t = _fold(text)
    if not t:
        return Intent.NEITHER
    wants_cancel = any(p.search(t) for p in CANCEL_PATTERNS)
    negated = any(p.search(t) for p in CANCEL_NEGATIONS)
    if wants_cancel and not negated:
        return Intent.CANCEL
    if any(p.search(t) for p in CONFIRM_PATTERNS):
        return Intent.CONFIRM
    return Intent.NEITHER


def is_polite_closing(text: str) -> bool:
    """"gracias", "ok", "dale", un emoji... mensajes que no abren un pedido nuevo."""
    t = str(text or "").strip().lower()
    if not t:
        return False
    if t in POLITE_EXACT or _fold(t) in POLITE_EXACT:
        return True
    # "ok gracias", "dale genial!"; "ok quiero otro pedido" ya no es cortesía
    if _POLITE_PREFIX.match(_fold(t)) and len(t.split()) <= 3:
        return True
    return bool(_POLITE_GREETING.search(t)) and len(t) <= 40
