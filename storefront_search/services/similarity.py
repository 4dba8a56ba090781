"""Scoring helpers for the local similarity fallback."""

from typing import Sequence

import numpy as np

EXACT_NAME_MATCH_SCORE = 0.7
WORD_OVERLAP_WEIGHT = 0.5


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Cosine similarity dot(a, b) / (|a| * |b|).

    Returns 0.0 when either vector has zero norm, the vectors differ in length,
    or either is empty, so callers never see NaN.
    """
    a = np.asarray(vec_a, dtype=float)
    b = np.asarray(vec_b, dtype=float)
    if a.size == 0 or a.shape != b.shape:
        return 0.0

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(a, b) / (norm_a * norm_b))


def text_overlap_score(query_text: str, product_name: str) -> float:
    """
    Heuristic score for products without a stored embedding.

    An exact (case-insensitive) substring match of the whole query scores 0.7;
    otherwise the fraction of query words found inside the name, times 0.5.
    """
    name = product_name.lower()
    query = query_text.lower().strip()
    if not query:
        return 0.0
    if query in name:
        return EXACT_NAME_MATCH_SCORE

    words = query.split()
    matching = [word for word in words if word in name]
    return len(matching) / len(words) * WORD_OVERLAP_WEIGHT
