"""
Cosine similarity between embedding vectors.
"""

import numpy as np

from ..core.exceptions import DimensionMismatchError


def cosine_similarity(vec_a, vec_b) -> float:
    """
    Compute cosine similarity between two vectors.

    Args:
        vec_a: First vector
        vec_b: Second vector

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero norm

    Raises:
        DimensionMismatchError: If the vectors have different lengths
    """
    a = np.asarray(vec_a, dtype=np.float64).reshape(-1)
    b = np.asarray(vec_b, dtype=np.float64).reshape(-1)

    if a.shape[0] != b.shape[0]:
        raise DimensionMismatchError(expected=a.shape[0], actual=b.shape[0])

    scale_a = float(np.max(np.abs(a))) if a.size else 0.0
    scale_b = float(np.max(np.abs(b))) if b.size else 0.0
    if scale_a == 0.0 or scale_b == 0.0:
        return 0.0

    # Max-abs scaling keeps the squared norms within float range for any magnitude
    a = a / scale_a
    b = b / scale_b
    # sqrt(fl(x*x)) == x, so v against itself scores exactly 1.0
    similarity = float(np.dot(a, b)) / np.sqrt(float(np.dot(a, a)) * float(np.dot(b, b)))
    # Rounding can push |similarity| a hair past 1
    return float(min(1.0, max(-1.0, similarity)))
