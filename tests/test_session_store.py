from pedido_bot.domain.services.behavior import BehaviorConfig
from pedido_bot.domain.services.session_store import InMemorySessionStore


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_session_kept_for_same_conversation():
    store = InMemorySessionStore(clock=Clock())
    s = store.get_or_create("t1", "549111", 7)
    s.history.append({"role": "user", "content": "hola"})
    store.save("t1", "549111", s)
    assert store.get_or_create("t1", "549111", 7).history == [{"role": "user", "content": "hola"}]


def test_new_conversation_resets_session():
    store = InMemorySessionStore(clock=Clock())
    s = store.get_or_create("t1", "549111", 7)
    s.history.append({"role": "user", "content": "hola"})
    fresh = store.get_or_create("t1", "549111", 8)
    assert fresh.conversation_id == 8
    assert fresh.history == []


def test_sessions_are_per_tenant_and_customer():
    store = InMemorySessionStore(clock=Clock())
    store.get_or_create("t1", "a", 1).history.append({"role": "user", "content": "x"})
    assert store.get_or_create("t2", "a", 1).history == []
    assert store.get_or_create("t1", "a", 1).history == [{"role": "user", "content": "x"}]


def test_idle_sessions_expire():
    clock = Clock()
    store = InMemorySessionStore(ttl_s=60, clock=clock)
    store.get_or_create("t1", "a", 1).history.append({"role": "user", "content": "x"})
    clock.now = 61
    assert store.get_or_create("t1", "a", 1).history == []


def test_ended_marker_expires():
    clock = Clock()
    store = InMemorySessionStore(ended_ttl_s=900, clock=clock)
    store.get_or_create("t1", "a", 1).history.append({"role": "user", "content": "x"})
    store.evict("t1", "a", ended=True)
    assert store.get_or_create("t1", "a", 1).history == []
    assert store.has_recently_ended("t1", "a")
    clock.now = 899
    assert store.has_recently_ended("t1", "a")
    clock.now = 900
    assert not store.has_recently_ended("t1", "a")


def test_clear_ended_and_plain_evict():
    store = InMemorySessionStore(clock=Clock())
    store.evict("t1", "a", ended=True)
    store.clear_ended("t1", "a")
    assert not store.has_recently_ended("t1", "a")
    store.evict("t1", "b")
    assert not store.has_recently_ended("t1", "b")


def test_behavior_cache_and_fallback(settings):
    clock = Clock()
    saved = {"t1": "Sos Pollería Don Pepe."}
    calls = []

    def loader(tenant):
        calls.append(tenant)
        return saved.get(tenant)

    behavior = BehaviorConfig(settings.model_copy(update={"behavior_text": "por defecto"}), loader=loader, clock=clock)
    assert behavior.text("t1") == "Sos Pollería Don Pepe."
    assert behavior.text("t2") == "por defecto"
    saved["t1"] = "nuevo"
    assert behavior.text("t1") == "Sos Pollería Don Pepe."
    behavior.invalidate("t1")
    assert behavior.text("t1") == "nuevo"
    clock.now = settings.behavior_cache_ttl_s + 1
    behavior.text("t2")
    assert calls == ["t1", "t2", "t1", "t2"]


def test_unknown_conversation_keeps_current_session():
    store = InMemorySessionStore(clock=Clock())
    store.get_or_create("t1", "a", 7).history.append({"role": "user", "content": "x"})
    kept = store.get_or_create("t1", "a", None)
    assert kept.conversation_id == 7
    assert kept.history == [{"role": "user", "content": "x"}]
    assert store.get_or_create("t1", "a", 7) is kept


def test_session_opened_without_id_adopts_real_one():
    store = InMemorySessionStore(clock=Clock())
    s = store.get_or_create("t1", "a", None)
    s.history.append({"role": "user", "content": "x"})
    adopted = store.get_or_create("t1", "a", 9)
    assert adopted is s
    assert adopted.conversation_id == 9
    assert store.get_or_create("t1", "a", 10).history == []
