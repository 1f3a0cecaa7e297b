import math
from typing import Optional, Sequence


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0.0 instead of raising for missing, empty, mismatched,
    zero-norm or non-numeric input.
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    try:
        dot = sum(x * y for x, y in zip(a, b))
        norm_a = math.sqrt(sum(x * x for x in a))
        norm_b = math.sqrt(sum(y * y for y in b))
    except TypeError:
        return 0.0

    if norm_a == 0 or norm_b == 0 or math.isnan(norm_a) or math.isnan(norm_b):
        return 0.0

    return dot / (norm_a * norm_b)
