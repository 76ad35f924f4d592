"""Sesiones en memoria por (tenant, cliente): historial del LLM y pedido autoritativo vigente."""
from __future__ import annotations
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol
from ..models import Order

Key = tuple[str, str]

@dataclass
class Session:
    conversation_id: int | None
    history: list[dict] = field(default_factory=list)
    order: Order = field(default_factory=Order)
    touched_at: float = 0.0


class SessionStore(Protocol):
    def get_or_create(self, tenant_id: str, customer_id: str, conversation_id: int | None) -> Session: ...
    def save(self, tenant_id: str, customer_id: str, session: Session) -> None: ...
    def evict(self, tenant_id: str, customer_id: str, *, ended: bool = False) -> None: ...
    def has_recently_ended(self, tenant_id: str, customer_id: str) -> bool: ...
    def clear_ended(self, tenant_id: str, customer_id: str) -> None: ...


class InMemorySessionStore:
    """Mapa en proceso con TTL de inactividad y marca de "pedido recién cerrado"."""

    def __init__(self, ttl_s: float = 120 * 60, ended_ttl_s: float = 15 * 60, clock: Callable[[], float] = time.monotonic):
        self.ttl_s = ttl_s
        self.ended_ttl_s = ended_ttl_s
        self.clock = clock
        self._sessions: dict[Key, Session] = {}
        self._ended: dict[Key, float] = {}
        self._lock = threading.Lock()

    def _purge(self, now: float) -> None:
        for k in [k for k, s in self._sessions.items() if now - s.touched_at > self.ttl_s]:
            del self._sessions[k]
        for k in [k for k, until in self._ended.items() if until <= now]:
            del self._ended[k]

    def get_or_create(self, tenant_id: str, customer_id: str, conversation_id: int | None) -> Session:
        """Devuelve la sesión; si el ledger abrió otra conversación, arranca de cero.

        ``conversation_id=None`` (ledger sin respuesta) conserva la sesión vigente;
        una sesión creada así adopta el id real en cuanto el ledger vuelve.
        """
        key = (tenant_id, customer_id)
        now = self.clock()
        with self._lock:
            self._purge(now)
            s = self._sessions.get(key)
            if s is None:
                s = Session(conversation_id=conversation_id)
                self._sessions[key] = s
            elif conversation_id is not None and s.conversation_id != conversation_id:
                if s.conversation_id is None:
                    s.conversation_id = conversation_id
                else:
                    s = Session(conversation_id=conversation_id)
                    self._sessions[key] = s
            s.touched_at = now
            return s

    def save(self, tenant_id: str, customer_id: str, session: Session) -> None:
        with self._lock:
            session.touched_at = self.clock()
            self._sessions[(tenant_id, customer_id)] = session

    def evict(self, tenant_id: str, customer_id: str, *, ended: bool = False) -> None:
        key = (tenant_id, customer_id)
        with self._lock:
            self._sessions.pop(key, None)
            if ended:
                self._ended[key] = self.clock() + self.ended_ttl_s

    def has_recently_ended(self, tenant_id: str, customer_id: str) -> bool:
        with self._lock:
            until = self._ended.get((tenant_id, customer_id))
            return until is not None and until > self.clock()

    def clear_ended(self, tenant_id: str, customer_id: str) -> None:
        with self._lock:
            self._ended.pop((tenant_id, customer_id), None)
