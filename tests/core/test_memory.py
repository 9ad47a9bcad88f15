"""Tests for conversation memory and the embedding cache."""

from src.core.models.chat import ConversationTurn
from src.core.services.memory import InMemoryConversationStore, LRUEmbeddingCache


def _turn(i: int, response: str = "ok") -> ConversationTurn:
    return ConversationTurn(timestamp=f"2024-01-01T00:00:{i:02d}", query=f"question {i}", response=response)


def test_turn_cap_evicts_oldest():
    store = InMemoryConversationStore(max_turns=12, token_budget=100_000)
    for i in range(1, 14):
        store.append("c1", _turn(i))

    history = store.get("c1")
    assert len(history) == 12
    assert history[0].query == "question 2"
    assert history[-1].query == "question 13"


def test_token_budget_prunes_to_eighty_percent():
    store = InMemoryConversationStore(max_turns=50, token_budget=100)
    long_response = " ".join(["word"] * 18)  # 2 query tokens + 18 = 20 per turn
    for i in range(5):
        store.append("c1", _turn(i, long_response))
    assert len(store.get("c1")) == 5

    store.append("c1", _turn(5, long_response))
    history = store.get("c1")
    # 120 tokens > 100, pruned until <= 80
    assert len(history) == 4
    assert history[0].query == "question 2"


def test_token_budget_keeps_latest_turn():
    store = InMemoryConversationStore(max_turns=5, token_budget=10)
    store.append("c1", _turn(0, " ".join(["word"] * 50)))
    assert len(store.get("c1")) == 1


def test_conversations_are_isolated_and_evictable():
    store = InMemoryConversationStore()
    store.append("a", _turn(1))
    store.append("b", _turn(2))

    assert [t.query for t in store.get("a")] == ["question 1"]
    assert store.recent_queries("b") == ["question 2"]

    store.evict("a")
    assert store.get("a") == []
    assert len(store) == 1


def test_get_returns_copy():
    store = InMemoryConversationStore()
    store.append("a", _turn(1))
    store.get("a").clear()
    assert len(store.get("a")) == 1


def test_lru_cache_evicts_least_recently_used():
    cache = LRUEmbeddingCache(max_entries=2)
    cache.put("one", [1.0])
    cache.put("two", [2.0])
    assert cache.get("one") == [1.0]

    cache.put("three", [3.0])
    assert "two" not in cache
    assert cache.get("one") == [1.0]
    assert cache.get("three") == [3.0]

    cache.evict("one")
    assert cache.get("one") is None
