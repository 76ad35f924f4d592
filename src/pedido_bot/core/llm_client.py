"""Cliente HTTP para el gateway OpenAI-compatible (`/chat/completions`) con modelo de respaldo."""
from __future__ import annotations
import httpx
from kink import di
from .settings import Settings
from .errors import LLMTimeoutError, LLMUnavailableError
from .logging import get_logger

log = get_logger()

class LLMClient:
    """Pide siempre salida JSON (`response_format=json_object`) y devuelve el texto crudo.

    Si el modelo primario falla se reintenta una vez con el de respaldo. Un timeout
    en ambos termina en LLMTimeoutError; cualquier otro error en LLMUnavailableError.
    """
    def __init__(self, settings: Settings | None = None, transport: httpx.BaseTransport | None = None):
        self.settings = settings if settings is not None else di[Settings]
        self.transport = transport

    def _client(self) -> httpx.Client:
        headers = {"Authorization": f"Bearer {self.settings.llm_api_key}"} if self.settings.llm_api_key else {}
        return httpx.Client(
            base_url=self.settings.llm_base_url,
            timeout=self.settings.llm_timeout_s,
            headers=headers,
            transport=self.transport,
        )

    def _post(self, model: str, messages: list[dict]) -> str:
        payload = {
            "model": model,
            "messages": messages,
            "response_format": {"type": "json_object"},
            "temperature": self.settings.llm_temperature,
            "max_tokens": self.settings.llm_max_tokens,
        }
        with self._client() as cli:
            r = cli.post("/chat/completions", json=payload)
            r.raise_for_status()
            data = r.json()
        return data["choices"][0]["message"]["content"] or ""

    def complete(self, messages: list[dict]) -> str:
        timed_out = False
        last_error: Exception | None = None
        for model in dict.fromkeys([self.settings.llm_model_primary, self.settings.llm_model_fallback]):
            try:
                return self._post(model, messages)
            except httpx.TimeoutException as e:
                timed_out, last_error = True, e
            except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as e:
                last_error = e
            log.warning("llm_call_failed", model=model, error=str(last_error))
        if timed_out:
            raise LLMTimeoutError(str(last_error)) from last_error
        raise LLMUnavailableError(str(last_error)) from last_error
