"""
Medication Candidate Aggregator

Collects the medications prescribed to the top-K most similar patients into
one candidate per distinct (drug, intensity) pair, tracking how many of
those patients use it and how similar they are to the target.

Pure aggregation: no side effects, candidates appear in first-seen order.
"""

from typing import Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass

from drug_taxonomy import DiabetesDrug, DrugClass, Intensity
from similarity_engine import SimilarityResult

DEFAULT_TOP_K = 10


@dataclass
class MedicationCandidate:
    """A drug/intensity pair observed among similar patients"""
    drug: DiabetesDrug
    drug_class: DrugClass
    intensity: Intensity
    dosage: Optional[float]           # mg/day at this tier; None for insulin
    count: int = 0
    total_similarity: float = 0.0
    score: float = 0.0                # composite ranking score, set by the ranker

    @property
    def average_similarity(self) -> float:
        if self.count == 0:
            return 0.0
        return self.total_similarity / self.count


def aggregate_candidates(similarity_results: Sequence[SimilarityResult],
                         k: int = DEFAULT_TOP_K) -> List[MedicationCandidate]:
    """
    Build medication candidates from the first k similarity results.

    Args:
        similarity_results: ranked results, best first
        k: number of top results to draw medications from
    """
    if k < 0:
        raise ValueError("k must be non-negative")

    candidates: Dict[Tuple[DiabetesDrug, Intensity], MedicationCandidate] = {}

    for result in similarity_results[:k]:
        for entry in result.medications:
            if not entry.prescribed:
                continue

            key = (entry.drug, entry.intensity)
            candidate = candidates.get(key)
            if candidate is None:
                profile = entry.drug.profile
                candidate = MedicationCandidate(
                    drug=entry.drug,
                    drug_class=profile.drug_class,
                    intensity=entry.intensity,
                    dosage=profile.dose_for(entry.intensity),
                )
                candidates[key] = candidate

            candidate.count += 1
            candidate.total_similarity += result.score

    return list(candidates.values())
