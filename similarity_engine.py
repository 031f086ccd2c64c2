"""
T-D3K Similarity Orchestrator - Patient Similarity Ranking

Ranks every previously recorded patient by clinical similarity to a target
patient, combining two signals:

1. D3K clinical similarity   - weighted distance between normalized profiles
2. Trajectory similarity     - n-gram cosine over encoded HbA1c histories

    score = α · D3K + β · trajectory,   α = β = 0.5

Equal weighting follows the published T-D3K methodology.

PASS SEMANTICS:
- One synchronous pass over the comparison population, O(n) scoring plus an
  O(n log n) stable sort. Equal scores keep the population's order.
- Candidates without any analysis snapshot are skipped, not scored as zero.
- The target must resolve (PatientNotFound) and must itself have analysis
  data (NoComparisonData).
- No state is kept between passes; engines may be shared across threads.

Reference: Scientific Reports 12, 20910 (2022) - "Diabetes medication
recommendation system using patient similarity analytics"
"""

from typing import Dict, Any, List, Optional, Sequence
from dataclasses import dataclass, field
import logging

from clinical_profile import ClinicalProfileExtractor
from d3k_similarity import D3KCalculator
from hba1c_trajectory import TrajectoryComparator
from patient_records import PatientRecord, AnalysisSnapshot, MedicationEntry
from patient_repository import PatientRepository
from similarity_errors import PatientNotFound, NoComparisonData, MissingAnalysisData

logger = logging.getLogger(__name__)


ALPHA = 0.5     # D3K weight
BETA = 0.5      # trajectory weight

DEFAULT_MEANINGFUL_THRESHOLD = 0.1


# ==================== DATA MODELS ====================

@dataclass
class ClinicalDetails:
    """Clinical values of a candidate's latest snapshot, as used for scoring"""
    age: int
    sex: str
    systolic_pressure: Optional[float]
    diastolic_pressure: Optional[float]
    cholesterol_hdl: Optional[float]
    cholesterol_ldl: Optional[float]
    triglycerides: Optional[float]
    hemoglobin_a1c: Optional[float]
    has_hyperlipidemia: bool
    has_hypertension: bool
    disease_duration: Optional[float]
    hba1c_readings: int

    @classmethod
    def from_patient(cls, patient: PatientRecord, snapshot: AnalysisSnapshot,
                     reference_year: Optional[int] = None) -> "ClinicalDetails":
        return cls(
            age=patient.age(reference_year),
            sex=patient.sex.value,
            systolic_pressure=snapshot.systolic_pressure,
            diastolic_pressure=snapshot.diastolic_pressure,
            cholesterol_hdl=snapshot.cholesterol_hdl,
            cholesterol_ldl=snapshot.cholesterol_ldl,
            triglycerides=snapshot.triglycerides,
            hemoglobin_a1c=snapshot.hemoglobin_a1c,
            has_hyperlipidemia=snapshot.has_hyperlipidemia,
            has_hypertension=snapshot.has_hypertension,
            disease_duration=snapshot.disease_duration,
            hba1c_readings=len(patient.hba1c_history()),
        )


@dataclass
class SimilarityResult:
    """One scored candidate"""
    patient_id: str
    score: float                      # combined T-D3K score, [0, 1]
    d3k_similarity: float
    trajectory_similarity: float
    details: ClinicalDetails
    medications: List[MedicationEntry] = field(default_factory=list)
    email: Optional[str] = None


# ==================== ORCHESTRATOR ====================

class TD3KSimilarityEngine:
    """
    Scores and ranks a comparison population against one target patient.
    """

    def __init__(self,
                 extractor: Optional[ClinicalProfileExtractor] = None,
                 d3k: Optional[D3KCalculator] = None,
                 trajectory: Optional[TrajectoryComparator] = None,
                 alpha: float = ALPHA,
                 beta: float = BETA):
        self.extractor = extractor or ClinicalProfileExtractor()
        self.d3k = d3k or D3KCalculator()
        self.trajectory = trajectory or TrajectoryComparator()
        self.alpha = alpha
        self.beta = beta

    def combine(self, d3k_similarity: float, trajectory_similarity: float) -> float:
        score = self.alpha * d3k_similarity + self.beta * trajectory_similarity
        return max(0.0, min(1.0, score))

    def score_candidate(self, target: PatientRecord, candidate: PatientRecord,
                        target_profile: Optional[List[float]] = None,
                        target_history: Optional[Sequence[float]] = None) -> SimilarityResult:
        """
        T-D3K score of one candidate against the target.

        Raises:
            MissingAnalysisData: either patient has no analysis snapshot
        """
        if target_profile is None:
            target_profile = self.extractor.extract(target)
        if target_history is None:
            target_history = target.hba1c_history()

        snapshot = candidate.latest_snapshot()
        if snapshot is None:
            raise MissingAnalysisData(candidate.patient_id)

        candidate_profile = self.extractor.extract(candidate, snapshot)
        d3k_similarity = self.d3k.similarity(target_profile, candidate_profile)
        trajectory_similarity = self.trajectory.similarity(target_history, candidate.hba1c_history())
        score = self.combine(d3k_similarity, trajectory_similarity)

        logger.debug(f"  {candidate.patient_id}: D3K={d3k_similarity:.4f} "
                     f"trajectory={trajectory_similarity:.4f} → T-D3K={score:.4f}")

        return SimilarityResult(
            patient_id=candidate.patient_id,
            score=score,
            d3k_similarity=d3k_similarity,
            trajectory_similarity=trajectory_similarity,
            details=ClinicalDetails.from_patient(candidate, snapshot, self.extractor.reference_year),
            medications=candidate.prescribed_medications(),
            email=candidate.email,
        )

    def rank(self, target: PatientRecord,
             population: Sequence[PatientRecord]) -> List[SimilarityResult]:
        """
        Score every candidate and sort descending by combined score.

        Raises:
            NoComparisonData: target has no analysis data
        """
        if target.latest_snapshot() is None:
            raise NoComparisonData(target.patient_id)

        target_profile = self.extractor.extract(target)
        target_history = target.hba1c_history()

        results = []
        skipped = 0
        for candidate in population:
            if candidate.patient_id == target.patient_id:
                continue
            try:
                results.append(
                    self.score_candidate(target, candidate, target_profile, target_history)
                )
            except MissingAnalysisData:
                skipped += 1
                logger.debug(f"  Skipping {candidate.patient_id}: no analysis data")

        results.sort(key=lambda r: r.score, reverse=True)

        logger.info(f"📊 Ranked {len(results)} candidates for {target.patient_id} "
                    f"({skipped} skipped without analysis data)")
        for result in results[:3]:
            logger.info(f"  • {result.patient_id} - T-D3K {result.score * 100:.1f}%")

        return results

    def compute_similarity(self, target_id: str,
                           repository: PatientRepository) -> List[SimilarityResult]:
        """
        Resolve the target and its comparison population, then rank.

        Raises:
            PatientNotFound: target_id does not resolve
            NoComparisonData: target has no analysis data
        """
        logger.info("=" * 60)
        logger.info(f"🔍 T-D3K SIMILARITY PASS for patient {target_id}")
        logger.info("=" * 60)

        target = repository.get_by_id(target_id)
        if target is None:
            logger.warning(f"⚠️  Patient {target_id} not found")
            raise PatientNotFound(target_id)

        population = repository.get_all_except(target_id)
        if not population:
            logger.info("No other patients available for comparison")

        try:
            return self.rank(target, population)
        except NoComparisonData:
            logger.warning(f"⚠️  Patient {target_id} has no analysis data")
            raise


# ==================== RESULT HELPERS ====================

def filter_meaningful(results: Sequence[SimilarityResult],
                      threshold: float = DEFAULT_MEANINGFUL_THRESHOLD) -> List[SimilarityResult]:
    """Drop noise matches (score ≤ threshold), preserving order"""
    return [r for r in results if r.score > threshold]


def format_similarity_result(result: SimilarityResult) -> Dict[str, Any]:
    """JSON-serializable view of one SimilarityResult"""
    return {
        "patient_id": result.patient_id,
        "email": result.email,
        "similarity": round(result.score, 4),
        "d3k_similarity": round(result.d3k_similarity, 4),
        "trajectory_similarity": round(result.trajectory_similarity, 4),
        "details": {
            "age": result.details.age,
            "sex": result.details.sex,
            "systolic_pressure": result.details.systolic_pressure,
            "diastolic_pressure": result.details.diastolic_pressure,
            "cholesterol_hdl": result.details.cholesterol_hdl,
            "cholesterol_ldl": result.details.cholesterol_ldl,
            "triglycerides": result.details.triglycerides,
            "hemoglobin_a1c": result.details.hemoglobin_a1c,
            "has_hyperlipidemia": result.details.has_hyperlipidemia,
            "has_hypertension": result.details.has_hypertension,
            "disease_duration": result.details.disease_duration,
            "hba1c_readings": result.details.hba1c_readings,
        },
        "medications": [
            {"medication": m.drug.value, "intensity": m.intensity.value}
            for m in result.medications
        ],
    }
