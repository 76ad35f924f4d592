"""Texto de comportamiento por tenant, con cache TTL e invalidación explícita."""
from __future__ import annotations
import time
from typing import Callable
from kink import di
from ...core.settings import Settings
from ...core.logging import get_logger

log = get_logger()

class BehaviorConfig:
    def __init__(
        self,
        settings: Settings | None = None,
        loader: Callable[[str], str | None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings if settings is not None else di[Settings]
        if loader is None:
            from ...repo import repo
            loader = repo.get_behavior
        self.loader = loader
        self.clock = clock
        self._cache: dict[str, tuple[float, str]] = {}

    def text(self, tenant_id: str) -> str:
        """Texto guardado para el tenant o, si no hay, `Settings.behavior_text`."""
        hit = self._cache.get(tenant_id)
        now = self.clock()
        if hit and now - hit[0] < self.settings.behavior_cache_ttl_s:
            return hit[1]
        value = (self.loader(tenant_id) or self.settings.behavior_text or "").strip()
        self._cache[tenant_id] = (now, value)
        log.info("behavior_loaded", tenant_id=tenant_id, chars=len(value))
        return value

    def invalidate(self, tenant_id: str | None = None) -> None:
        if tenant_id is None:
            self._cache.clear()
        else:
            self._cache.pop(tenant_id, None)
