"""Sanitización del texto entrante antes de clasificar o mandarlo al modelo."""
import re

CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
MAX_INBOUND_CHARS = 2000

def sanitize_text(text: str) -> str:
    """Normaliza espacios, quita caracteres de control y recorta mensajes gigantes."""
    text = CONTROL_CHARS.sub("", text or "")
    return " ".join(text.split())[:MAX_INBOUND_CHARS]
