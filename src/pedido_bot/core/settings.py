"""Configuración Pydantic Settings para la aplicación."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    """Configuración de la aplicación. Carga desde env y .env.

    Todas las credenciales deben venir por env. Nunca hardcodear.
    """
    model_config = SettingsConfigDict(env_file=".env", env_prefix="PB_", case_sensitive=False)

    # Flask
    flask_debug: bool = Field(default=False)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # DB
    database_url: str = Field(..., description="URL de la base, ej: postgresql+psycopg://user:pass@db:5432/app")

    # WhatsApp Cloud API
    whatsapp_token: str = Field(...)
    whatsapp_phone_number_id: str = Field(...)
    verify_token: str = Field(..., description="VERIFY_TOKEN para la verificación de hub.challenge")
    graph_api_version: str = Field(default="v20.0")

    # Multi-tenant
    default_tenant_id: str = Field(default="default")

    # LLM (gateway compatible con /chat/completions)
    llm_base_url: str = Field(..., description="URL del gateway LLM")
    llm_api_key: str = Field(default="")
    llm_model_primary: str = Field(default="gpt-4o-mini")
    llm_model_fallback: str = Field(default="gpt-4o-mini")
    llm_timeout_s: float = Field(default=12)
    llm_temperature: float = Field(default=0.1)
    llm_max_tokens: int = Field(default=600)

    # Ciclo de corrección de importes
    calc_fix_max_retries: int = Field(default=3, ge=1)

    # Local
    store_tz: str = Field(default="America/Argentina/Cordoba")
    store_lat: float | None = Field(default=None)
    store_lon: float | None = Field(default=None)
    distance_precision: int = Field(default=2)
    default_city: str = Field(default="Venado Tuerto")
    default_province: str = Field(default="Santa Fe")
    default_country: str = Field(default="Argentina")
    delivery_keyword: str = Field(default="envio")
    simulated_now_iso: str | None = Field(default=None)

    # Geocoding (Google)
    google_maps_api_key: str = Field(default="")
    geocoding_timeout_s: float = Field(default=8)

    # Caches y sesiones
    catalog_cache_ttl_s: int = Field(default=300)
    behavior_cache_ttl_s: int = Field(default=300)
    session_ttl_minutes: int = Field(default=120)
    ended_session_ttl_minutes: int = Field(default=15)

    # Comportamiento por defecto (si el tenant no tiene uno guardado)
    behavior_text: str = Field(default="")
