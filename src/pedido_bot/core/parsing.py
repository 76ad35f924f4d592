"""Parseo defensivo de la salida del LLM: JSON estricto, luego sin ``` y por llaves."""
from __future__ import annotations
import json
import re
from pydantic import ValidationError
from ..domain.models import LLMReply

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_llm_json(raw: str | None) -> dict | None:
    """Devuelve el objeto JSON de la respuesta o None si no hay forma de rescatarlo."""
    text = (raw or "").strip()
    if not text:
        return None
    candidates = [text, _FENCE_RE.sub("", text).strip()]
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start:end + 1])
    for c in candidates:
        try:
            data = json.loads(c)
        except ValueError:
            continue
        if isinstance(data, dict):
            return data
    return None


def parse_llm_reply(raw: str | None) -> LLMReply | None:
    data = parse_llm_json(raw)
    if data is None:
        return None
    try:
        return LLMReply.model_validate(data)
    except ValidationError:
        return None
