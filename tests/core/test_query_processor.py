"""Tests for query normalization."""

import pytest

from src.core.services.query_processor import build_search_query, extract_entities, normalize_query


def test_normalize_expands_abbreviations_and_drops_stopwords():
    assert normalize_query("  What is ML?  ") == "machine learning"
    assert normalize_query("Explain RAG with LLM") == "retrieval augmented generation large language model"


def test_normalize_falls_back_to_lowercased_query():
    assert normalize_query("What is it?") == "what is it?"


@pytest.mark.parametrize("query", [
    "What is ML?",
    "How do vector databases compare to Postgres?",
    "Tell me about AI and NLP",
    "What is it?",
    "",
    "C++ and Python for data pipelines",
])
def test_normalize_is_idempotent(query):
    once = normalize_query(query)
    assert normalize_query(once) == once


def test_extract_entities_is_distinct_and_ordered():
    assert extract_entities(["python", "vector", "python", "gardening"]) == ["python", "vector"]


def test_short_query_gets_recent_history():
    processed = build_search_query("and python?", ["What is ML?", "vector search"])
    assert processed.text == "python What is ML? | vector search"
    assert processed.entities == ["python"]


def test_long_query_ignores_history():
    processed = build_search_query("compare vector embedding models", ["earlier question"])
    assert processed.text == "compare vector embedding models"
    assert processed.key_terms == ["compare", "vector", "embedding", "models"]


def test_history_limited_to_last_three_queries():
    processed = build_search_query("more", ["q1", "q2", "q3", "q4"])
    assert processed.text == "more q2 | q3 | q4"


def test_build_search_query_is_pure():
    history = ["What is ML?"]
    first = build_search_query("why?", history)
    second = build_search_query("why?", history)
    assert first == second
    assert history == ["What is ML?"]
