"""
Evaluation Metrics - Offline Validation of Medication Recommendations

Compares a ranked recommendation list against a patient's actual
(ground-truth) medication set:

- Hit ratio   1 if any recommendation matches an actual drug AND intensity
- Recall      fraction of actual drugs that appear among the recommendations
- Precision   fraction of recommendations whose drug is actually prescribed
- MRR         1 / (1-based position of the first drug-name match), 0 if none

The population runner performs leave-one-out evaluation: each sampled
patient is held out, ranked against everyone else, and the recommendations
for them are scored against their own prescriptions.

Reference: Scientific Reports 12, 20910 (2022), Section "Evaluation"
"""

from typing import Dict, Any, List, Optional, Sequence
from dataclasses import dataclass, asdict
import logging
import random
import statistics

from medication_aggregation import DEFAULT_TOP_K
from patient_repository import PatientRepository
from recommendation_ranker import recommend_medications, DEFAULT_MAX_RECOMMENDATIONS
from similarity_engine import TD3KSimilarityEngine, DEFAULT_MEANINGFUL_THRESHOLD

logger = logging.getLogger(__name__)


@dataclass
class EvaluationResult:
    hit_ratio: float
    recall: float
    precision: float
    mrr: float
    matches: int = 0
    total_recommendations: int = 0
    total_actual: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PopulationEvaluation:
    hit_ratio: float
    recall: float
    precision: float
    mrr: float
    evaluated: int
    eligible: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def evaluate(recommendations: Sequence, actual_medications: Sequence,
             k: int = DEFAULT_TOP_K) -> EvaluationResult:
    """
    Score the top-k recommendations against the actual medications.

    Both sequences hold items exposing `drug` and `intensity`
    (Recommendation, MedicationCandidate or MedicationEntry).
    """
    if k < 0:
        raise ValueError("k must be non-negative")

    recommended = list(recommendations)[:k]
    actual = list(actual_medications)

    actual_drugs = {m.drug for m in actual}
    actual_pairs = {(m.drug, m.intensity) for m in actual}
    recommended_drugs = {r.drug for r in recommended}

    hit_ratio = 1.0 if any((r.drug, r.intensity) in actual_pairs for r in recommended) else 0.0

    matches = [r for r in recommended if r.drug in actual_drugs]
    recall = len(actual_drugs & recommended_drugs) / len(actual_drugs) if actual_drugs else 0.0
    precision = len(matches) / len(recommended) if recommended else 0.0

    mrr = 0.0
    for position, rec in enumerate(recommended, start=1):
        if rec.drug in actual_drugs:
            mrr = 1.0 / position
            break

    return EvaluationResult(
        hit_ratio=hit_ratio,
        recall=recall,
        precision=precision,
        mrr=mrr,
        matches=len(matches),
        total_recommendations=len(recommended),
        total_actual=len(actual),
    )


def evaluate_population(repository: PatientRepository,
                        sample_size: int = 50,
                        k: int = DEFAULT_TOP_K,
                        seed: int = 42,
                        engine: Optional[TD3KSimilarityEngine] = None,
                        min_score: float = DEFAULT_MEANINGFUL_THRESHOLD,
                        max_recommendations: int = DEFAULT_MAX_RECOMMENDATIONS) -> PopulationEvaluation:
    """
    Leave-one-out evaluation over a deterministic random sample.

    Eligible patients have analysis data and at least one prescribed drug.
    The same seed always selects the same sample.
    """
    engine = engine or TD3KSimilarityEngine()

    eligible = [
        p for p in repository.get_all()
        if p.has_analysis_data and p.medication_count() > 0
    ]
    sample = random.Random(seed).sample(eligible, min(max(sample_size, 0), len(eligible)))

    logger.info("=" * 60)
    logger.info(f"🧪 OFFLINE EVALUATION: {len(sample)} of {len(eligible)} eligible patients")
    logger.info("=" * 60)

    results: List[EvaluationResult] = []
    for patient in sample:
        population = repository.get_all_except(patient.patient_id)
        ranked = engine.rank(patient, population)
        report = recommend_medications(patient, ranked, k, min_score, max_recommendations)
        result = evaluate(report.recommendations, patient.prescribed_medications(), k)
        logger.debug(f"  {patient.patient_id}: hit={result.hit_ratio:.0f} recall={result.recall:.2f} "
                     f"precision={result.precision:.2f} mrr={result.mrr:.2f}")
        results.append(result)

    if not results:
        logger.info("No eligible patients to evaluate")
        return PopulationEvaluation(0.0, 0.0, 0.0, 0.0, evaluated=0, eligible=len(eligible))

    summary = PopulationEvaluation(
        hit_ratio=statistics.mean(r.hit_ratio for r in results),
        recall=statistics.mean(r.recall for r in results),
        precision=statistics.mean(r.precision for r in results),
        mrr=statistics.mean(r.mrr for r in results),
        evaluated=len(results),
        eligible=len(eligible),
    )

    logger.info(f"✅ Hit ratio {summary.hit_ratio:.3f} | Recall {summary.recall:.3f} | "
                f"Precision {summary.precision:.3f} | MRR {summary.mrr:.3f}")
    return summary
