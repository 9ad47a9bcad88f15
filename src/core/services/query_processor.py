import re
from typing import List, NamedTuple, Sequence

ABBREVIATIONS = {
    "ml": "machine learning",
    "ai": "artificial intelligence",
    "llm": "large language model",
    "rag": "retrieval augmented generation",
    "nlp": "natural language processing",
}

STOPWORDS = frozenset([
    "the", "a", "an", "and", "or", "in", "on", "for", "to", "is", "are",
    "what", "how", "of", "explain", "tell", "me", "about", "with", "can",
    "you", "does", "do", "why", "when", "which",
])

TECH_LEXICON = frozenset([
    "python", "javascript", "node", "aws", "bedrock", "lambda", "vector",
    "embedding", "chroma", "semantic", "similarity", "machine", "learning",
    "model", "dataset", "gemini", "postgres", "pgvector",
])

MIN_QUERY_TOKENS = 3
HISTORY_QUERIES = 3


class ProcessedQuery(NamedTuple):
    text: str
    key_terms: List[str]
    entities: List[str]


def _tokenize(text: str) -> List[str]:
    return [t for t in re.split(r'[^a-z0-9+]+', text) if t]


def _key_terms(query: str) -> List[str]:
    tokens = _tokenize(query.strip().lower())
    expanded = []
    for token in tokens:
        expanded.extend(ABBREVIATIONS[token].split() if token in ABBREVIATIONS else [token])
    return [t for t in expanded if t not in STOPWORDS and len(t) > 2]


def normalize_query(query: str) -> str:
    """Lowercase, expand abbreviations and drop stopwords.

    Falls back to the lowercased query when no key term survives.
    Normalizing an already normalized query returns it unchanged.
    """
    terms = _key_terms(query or "")
    if terms:
        return " ".join(terms)
    return " ".join((query or "").lower().split())


def extract_entities(terms: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(t for t in terms if t in TECH_LEXICON))


def build_search_query(query: str, recent_queries: Sequence[str] = ()) -> ProcessedQuery:
    """Build the text used for retrieval from a query and prior turns.

    Short queries get the most recent conversation queries appended to
    disambiguate follow-ups such as "and in python?".
    """
    terms = _key_terms(query or "")
    text = normalize_query(query)

    history = [q for q in list(recent_queries)[-HISTORY_QUERIES:] if q]
    if len(text.split()) < MIN_QUERY_TOKENS and history:
        text = f"{text} {' | '.join(history)}".strip()

    return ProcessedQuery(text=text, key_terms=terms, entities=extract_entities(terms))
