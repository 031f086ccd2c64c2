"""
D3K Similarity Calculator - Data-Driven Domain Knowledge Distance

Clinical closeness of two patients as a weighted squared Euclidean distance
over their normalized profile vectors, mapped to a similarity by exponential
decay:

    distance² = Σ w_i · (x1_i − x2_i)²
    similarity = exp(−√distance²)

Properties:
- similarity ∈ (0, 1]
- similarity == 1.0 only for identical vectors
- strictly decreasing in distance

The weights are fixed relative importances tuned empirically in the source
study; HbA1c carries the highest weight. They are not required to sum to 1.

Reference: Scientific Reports 12, 20910 (2022)
"""

from typing import Mapping, Sequence
from types import MappingProxyType
import math

from clinical_profile import FEATURE_ORDER
from similarity_errors import DimensionMismatch


# ==================== FEATURE WEIGHTS ====================

FEATURE_WEIGHTS = MappingProxyType({
    "age": 0.0821,
    "gender": 0.0543,
    "systolic_bp": 0.1187,
    "diastolic_bp": 0.0976,
    "cholesterol_hdl": 0.1045,
    "cholesterol_ldl": 0.1034,
    "triglycerides": 0.0812,
    "hba1c": 0.2456,
    "has_hyperlipidemia": 0.0634,
    "has_hypertension": 0.0587,
    "disease_duration": 0.1134,
    "medication_count": 0.0771,
})

if set(FEATURE_WEIGHTS) != set(FEATURE_ORDER):
    raise RuntimeError("D3K weight table must cover exactly the profile features")


# ==================== CALCULATOR ====================

class D3KCalculator:
    """Weighted-distance similarity between two ClinicalProfileVectors"""

    def __init__(self, weights: Mapping[str, float] = FEATURE_WEIGHTS):
        self.weight_vector = tuple(weights[feature] for feature in FEATURE_ORDER)

    def weighted_squared_distance(self, profile1: Sequence[float],
                                  profile2: Sequence[float]) -> float:
        if len(profile1) != len(profile2):
            raise DimensionMismatch(len(profile1), len(profile2))
        if len(profile1) != len(self.weight_vector):
            raise DimensionMismatch(len(profile1), len(self.weight_vector))

        return sum(
            weight * (a - b) ** 2
            for weight, a, b in zip(self.weight_vector, profile1, profile2)
        )

    def similarity(self, profile1: Sequence[float], profile2: Sequence[float]) -> float:
        """
        Returns:
            exp(−weighted distance), in (0, 1]

        Raises:
            DimensionMismatch: vectors differ in length
        """
        distance = math.sqrt(self.weighted_squared_distance(profile1, profile2))
        return math.exp(-distance)
