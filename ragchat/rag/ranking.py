"""Cosine-similarity ranking shared by every partition kind."""
from typing import Iterable, List, Sequence

import numpy as np

from ragchat.errors import DimensionMismatchError
from ragchat.rag.documents import Document, ScoredDocument


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0

    return float(np.dot(va, vb) / norm)


def rank_documents(
    query_vector: Sequence[float],
    documents: Iterable[Document],
    top_k: int,
) -> List[ScoredDocument]:
    """Score documents against a query and return the best ``top_k``.

    Sorting is stable, so equal scores keep the order the documents were given in.
    """
    if top_k <= 0:
        return []

    scored = [
        ScoredDocument(document=doc, score=cosine_similarity(query_vector, doc.embedding))
        for doc in documents
    ]
    scored.sort(key=lambda hit: hit.score, reverse=True)
    return scored[:top_k]


def merge_ranked(result_sets: Iterable[List[ScoredDocument]], top_k: int) -> List[ScoredDocument]:
    """Concatenate per-partition results in the given order, re-rank and truncate."""
    if top_k <= 0:
        return []

    merged: List[ScoredDocument] = []
    for results in result_sets:
        merged.extend(results)
    merged.sort(key=lambda hit: hit.score, reverse=True)
    return merged[:top_k]
