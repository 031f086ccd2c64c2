"""
HbA1c Trajectory Encoder & N-gram Comparator

Captures the temporal pattern of a patient's glycemic control, which a
single latest-snapshot comparison cannot see.

ENCODING:
Each consecutive pair of chronologically ordered HbA1c readings (v1, v2)
becomes one symbol:

    |v2 − v1| ≤ τ  and  v1 within the normal band [4.0, 7.0]  →  N  (normal, stable)
    |v2 − v1| ≤ τ  and  v1 outside the normal band            →  A  (abnormal, stable)
    v2 − v1 > τ                                               →  U  (trending up)
    v1 − v2 > τ                                               →  D  (trending down)

so a history of k readings yields a string of k − 1 symbols.

COMPARISON:
Overlapping n-grams (n = 6) are taken from each string; a string shorter
than n is its own single n-gram. Two patients are compared by the cosine
similarity of their n-gram frequency vectors over the union vocabulary.

GRACEFUL DEGRADATION:
A patient with fewer than two dated readings has no trajectory. The pair's
trajectory similarity is then the neutral value 0.5, so missing longitudinal
data neither rewards nor excludes a candidate.

Reference: Scientific Reports 12, 20910 (2022) - T-D3K trajectory term
"""

from typing import List, Optional, Sequence
from collections import Counter
from enum import Enum
import math


# ==================== CONSTANTS ====================

TRAJECTORY_THRESHOLD = 0.5          # τ, percentage points
NORMAL_HBA1C_RANGE = (4.0, 7.0)     # %
NGRAM_SIZE = 6
MIN_TRAJECTORY_READINGS = 2
NEUTRAL_TRAJECTORY_SIMILARITY = 0.5


class TrajectorySymbol(Enum):
    NORMAL_STABLE = "N"
    ABNORMAL_STABLE = "A"
    TRENDING_UP = "U"
    TRENDING_DOWN = "D"


# ==================== ENCODING ====================

def classify_step(v1: float, v2: float, threshold: float = TRAJECTORY_THRESHOLD) -> TrajectorySymbol:
    """Symbol for one consecutive pair of readings"""
    if abs(v2 - v1) <= threshold:
        low, high = NORMAL_HBA1C_RANGE
        if low <= v1 <= high:
            return TrajectorySymbol.NORMAL_STABLE
        return TrajectorySymbol.ABNORMAL_STABLE

    if v2 > v1:
        return TrajectorySymbol.TRENDING_UP
    return TrajectorySymbol.TRENDING_DOWN


def encode_trajectory(hba1c_values: Sequence[float],
                      threshold: float = TRAJECTORY_THRESHOLD) -> Optional[str]:
    """
    Encode a chronologically sorted HbA1c history as a symbol string.

    Returns:
        String of len(hba1c_values) − 1 symbols, or None when fewer than
        two readings are available.
    """
    if len(hba1c_values) < MIN_TRAJECTORY_READINGS:
        return None

    return "".join(
        classify_step(hba1c_values[i], hba1c_values[i + 1], threshold).value
        for i in range(len(hba1c_values) - 1)
    )


def generate_ngrams(trajectory: str, n: int = NGRAM_SIZE) -> List[str]:
    """Overlapping n-grams; a string shorter than n is its own single n-gram"""
    if not trajectory:
        return []
    if len(trajectory) < n:
        return [trajectory]
    return [trajectory[i:i + n] for i in range(len(trajectory) - n + 1)]


# ==================== COMPARISON ====================

def ngram_cosine_similarity(trajectory1: str, trajectory2: str, n: int = NGRAM_SIZE) -> float:
    """
    Cosine similarity of n-gram frequency vectors over the shared vocabulary.
    Returns 0.0 if either side has no n-grams.
    """
    counts1 = Counter(generate_ngrams(trajectory1, n))
    counts2 = Counter(generate_ngrams(trajectory2, n))

    if not counts1 or not counts2:
        return 0.0

    vocabulary = sorted(set(counts1) | set(counts2))
    dot_product = sum(counts1[gram] * counts2[gram] for gram in vocabulary)
    norm1 = sum(count * count for count in counts1.values())
    norm2 = sum(count * count for count in counts2.values())

    return dot_product / math.sqrt(norm1 * norm2)


class TrajectoryComparator:
    """Trajectory similarity of two HbA1c histories, with neutral fallback"""

    def __init__(self, threshold: float = TRAJECTORY_THRESHOLD, ngram_size: int = NGRAM_SIZE):
        self.threshold = threshold
        self.ngram_size = ngram_size

    def similarity(self, history1: Sequence[float], history2: Sequence[float]) -> float:
        trajectory1 = encode_trajectory(history1, self.threshold)
        trajectory2 = encode_trajectory(history2, self.threshold)

        if trajectory1 is None or trajectory2 is None:
            return NEUTRAL_TRAJECTORY_SIMILARITY

        return ngram_cosine_similarity(trajectory1, trajectory2, self.ngram_size)
