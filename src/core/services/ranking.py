import re
from typing import List, NamedTuple, Optional, Sequence
import numpy as np
from src.core.models.records import VectorRecord

EPSILON = 1e-12


class RankedRecord(NamedTuple):
    record: VectorRecord
    similarity: float


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """Cosine similarity of two vectors, -1.0 when either is unusable."""
    if a is None or b is None or len(a) == 0 or len(a) != len(b):
        return -1.0
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    na = float(np.linalg.norm(va))
    nb = float(np.linalg.norm(vb))
    if na == 0.0 or nb == 0.0:
        return -1.0
    return float(np.dot(va, vb) / (na * nb + EPSILON))


def keyword_score(query: str, text: str) -> float:
    """Fraction of the query's distinct terms found as substrings of text."""
    terms = list(dict.fromkeys(t for t in re.split(r'\W+', (query or "").lower()) if t))
    if not terms:
        return 0.0
    lower = (text or "").lower()
    hits = sum(1 for t in terms if t in lower)
    return hits / len(terms)


def rank_records(
    records: Sequence[VectorRecord],
    k: int,
    query_vector: Optional[Sequence[float]] = None,
    query: str = "",
) -> List[RankedRecord]:
    """Score every record and return the top k, highest first.

    Cosine scoring is used when the query vector matches the records'
    dimension, lexical overlap otherwise. Ties keep input order.
    """
    if k <= 0 or not records:
        return []

    dim = len(records[0].vector)
    use_vectors = query_vector is not None and len(query_vector) == dim

    if use_vectors:
        scored = [RankedRecord(r, cosine_similarity(query_vector, r.vector)) for r in records]
    else:
        scored = [RankedRecord(r, keyword_score(query, r.content)) for r in records]

    # sorted() is stable
    scored = sorted(scored, key=lambda item: item.similarity, reverse=True)
    return scored[:k]
