"""Jerarquía de errores del servicio.

Los adapters convierten fallas de colaboradores externos (LLM, geocoding) en
estas excepciones; el procesador de turnos las captura y degrada la respuesta.
"""


class PedidoBotError(Exception):
    """Base de todos los errores propios."""


class LLMError(PedidoBotError):
    """Falla al obtener respuesta del modelo."""


class LLMTimeoutError(LLMError):
    """El modelo no respondió dentro del timeout configurado."""


class LLMUnavailableError(LLMError):
    """El gateway respondió con error en el modelo primario y en el fallback."""


class GeocodingUnavailableError(PedidoBotError):
    """El proveedor de geocoding no está disponible (red, cuota, 5xx)."""


class InvalidTransitionError(PedidoBotError):
    """Transición de estado no permitida (p. ej. salir de un estado terminal)."""

    def __init__(self, current: str, target: str):
        super().__init__(f"transición inválida: {current} -> {target}")
        self.current = current
        self.target = target
