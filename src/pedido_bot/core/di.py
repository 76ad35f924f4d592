"""Bootstrap del contenedor de DI (kink): settings, base, colaboradores externos y servicios."""
from kink import di
from .settings import Settings
from .db import create_session_factory
from .llm_client import LLMClient
from .prompting import PromptBuilder
from ..connectors.geocoding.google_adapter import GoogleGeocoder
from ..connectors.whatsapp.cloud_api_adapter import WhatsAppCloudAdapter
from ..domain.services.behavior import BehaviorConfig
from ..domain.services.catalog_pricer import CatalogPricer
from ..domain.services.delivery_fee import DeliveryFeeResolver
from ..domain.services.recalculator import OrderRecalculator
from ..domain.services.repair_loop import RepairLoop
from ..domain.services.schedule import ScheduleValidator
from ..domain.services.session_store import InMemorySessionStore
from ..domain.services.turns import TurnProcessor

def bootstrap_di(settings: Settings | None = None) -> None:
    settings = settings or Settings()
    di[Settings] = settings
    session_factory = create_session_factory(settings.database_url)
    # sessionmaker es callable: registrado como servicio, kink lo invocaría
    di.factories["session_factory"] = lambda _: session_factory
    di[LLMClient] = LLMClient(settings)
    di[GoogleGeocoder] = GoogleGeocoder(settings)
    di[WhatsAppCloudAdapter] = WhatsAppCloudAdapter(settings)
    di[PromptBuilder] = PromptBuilder(store_tz=settings.store_tz, simulated_now_iso=settings.simulated_now_iso)
    di[InMemorySessionStore] = InMemorySessionStore(
        ttl_s=settings.session_ttl_minutes * 60,
        ended_ttl_s=settings.ended_session_ttl_minutes * 60,
    )
    di[BehaviorConfig] = BehaviorConfig(settings)
    di[CatalogPricer] = CatalogPricer(settings)
    di[DeliveryFeeResolver] = DeliveryFeeResolver(settings, geocoder=di[GoogleGeocoder], pricer=di[CatalogPricer])
    di[OrderRecalculator] = OrderRecalculator(pricer=di[CatalogPricer], resolver=di[DeliveryFeeResolver])
    di[ScheduleValidator] = ScheduleValidator(settings)
    di[RepairLoop] = RepairLoop(settings, llm=di[LLMClient], recalculator=di[OrderRecalculator], prompts=di[PromptBuilder])
    di[TurnProcessor] = TurnProcessor(settings, llm=di[LLMClient])
