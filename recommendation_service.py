"""
T-D3K Recommendation Service

Single entry point binding the pipeline stages to a patient repository:

    compute_similarity      target id → ranked SimilarityResult list
    recommend_medications   target id + ranked results → RecommendationReport
    evaluate                recommendations + actual medications → metrics

Callers (the HTTP adapter, batch scripts) go through this facade and never
assemble the stages themselves.
"""

from typing import List, Optional, Sequence
import logging

from clinical_insights import (
    LifestyleRecommendation,
    MonitoringPlan,
    MedicationUsageStatistics,
    PatientProfileSummary,
    build_lifestyle_plan,
    build_monitoring_plan,
    build_patient_profile,
    medication_usage_statistics,
    personalized_insights,
)
from config import Config
from evaluation_metrics import EvaluationResult, PopulationEvaluation, evaluate, evaluate_population
from patient_records import PatientRecord
from patient_repository import PatientRepository
from recommendation_ranker import RecommendationReport, recommend_medications
from similarity_engine import TD3KSimilarityEngine, SimilarityResult
from similarity_errors import PatientNotFound, NoComparisonData

logger = logging.getLogger(__name__)


class TD3KRecommendationService:

    def __init__(self, repository: PatientRepository,
                 engine: Optional[TD3KSimilarityEngine] = None,
                 top_k: int = Config.TOP_K,
                 min_meaningful_score: float = Config.MIN_MEANINGFUL_SCORE,
                 max_recommendations: int = Config.MAX_RECOMMENDATIONS):
        self.repository = repository
        self.engine = engine or TD3KSimilarityEngine()
        self.top_k = top_k
        self.min_meaningful_score = min_meaningful_score
        self.max_recommendations = max_recommendations

    def get_patient(self, patient_id: str) -> PatientRecord:
        patient = self.repository.get_by_id(patient_id)
        if patient is None:
            logger.warning(f"⚠️  Patient {patient_id} not found")
            raise PatientNotFound(patient_id)
        return patient

    def compute_similarity(self, target_id: str) -> List[SimilarityResult]:
        return self.engine.compute_similarity(target_id, self.repository)

    def recommend_medications(self, target_id: str,
                              similarity_results: Optional[Sequence[SimilarityResult]] = None,
                              k: Optional[int] = None) -> RecommendationReport:
        """
        Recommend medications for target_id. When similarity_results is None
        a fresh similarity pass is run first.
        """
        target = self.get_patient(target_id)
        if similarity_results is None:
            similarity_results = self.compute_similarity(target_id)

        try:
            return recommend_medications(
                target,
                similarity_results,
                k=self.top_k if k is None else k,
                min_score=self.min_meaningful_score,
                max_recommendations=self.max_recommendations,
            )
        except NoComparisonData:
            logger.warning(f"⚠️  Patient {target_id} has no analysis data")
            raise

    def monitoring_plan(self, target_id: str) -> MonitoringPlan:
        target = self.get_patient(target_id)
        snapshot = target.latest_snapshot()
        if snapshot is None:
            raise NoComparisonData(target_id)
        return build_monitoring_plan(snapshot)

    def lifestyle_plan(self, target_id: str) -> List[LifestyleRecommendation]:
        target = self.get_patient(target_id)
        return build_lifestyle_plan(target, target.latest_snapshot())

    def patient_profile(self, target_id: str) -> PatientProfileSummary:
        target = self.get_patient(target_id)
        snapshot = target.latest_snapshot()
        if snapshot is None:
            raise NoComparisonData(target_id)
        return build_patient_profile(target, snapshot)

    def insights(self, target_id: str, report: RecommendationReport) -> List[str]:
        target = self.get_patient(target_id)
        return personalized_insights(report, target.latest_snapshot())

    def medication_statistics(self) -> MedicationUsageStatistics:
        return medication_usage_statistics(self.repository.get_all())

    @staticmethod
    def evaluate(recommendations: Sequence, actual_medications: Sequence,
                 k: int = Config.TOP_K) -> EvaluationResult:
        return evaluate(recommendations, actual_medications, k)

    def evaluate_population(self, sample_size: int = Config.EVALUATION_SAMPLE_SIZE,
                            k: Optional[int] = None,
                            seed: int = Config.EVALUATION_SEED) -> PopulationEvaluation:
        return evaluate_population(
            self.repository,
            sample_size=sample_size,
            k=self.top_k if k is None else k,
            seed=seed,
            engine=self.engine,
            min_score=self.min_meaningful_score,
            max_recommendations=self.max_recommendations,
        )
