"""
Vector similarity helpers for the in-memory stores.
"""

from __future__ import annotations

import numpy as np
from scipy.spatial.distance import cdist


def cosine_similarities(query: list[float], vectors: list[list[float]]) -> list[float]:
    """
    Cosine similarity of one query vector against many vectors.

    Uses scipy's cdist. Zero vectors have no direction, so any pair
    involving one scores 0.0 instead of NaN.

    Args:
        query: Query embedding (d)
        vectors: Stored embeddings (n x d)

    Returns:
        n similarities in the same order as vectors
    """
    if not vectors:
        return []
    q = np.array([query], dtype=np.float64)
    arr = np.array(vectors, dtype=np.float64)
    with np.errstate(invalid="ignore", divide="ignore"):
        similarity = 1 - cdist(q, arr, metric="cosine")[0]
    similarity = np.nan_to_num(similarity, nan=0.0)
    return [float(s) for s in np.clip(similarity, -1.0, 1.0)]
