"""
Recommendation Ranker - Statistical Ranking with Guideline Overrides

STAGE 1: STATISTICAL ORDER
Each medication candidate gets a composite score

    score = 0.7 · occurrence_count + 0.3 · average_similarity

Occurrence dominates, favoring consensus among similar patients over a
single very similar outlier.

STAGE 2: GUIDELINE OVERRIDES (deterministic)
1. Metformin, if observed, is surfaced first as first-line therapy.
2. The patient group's second-line preferences (insulin promoted when
   HbA1c ≥ 10%) are inserted next, in preference order, when observed.
3. Every other drug follows as an alternative, in statistical order.

FALLBACK TO GUIDELINES:
With no candidates at all (e.g. no similar patients), the ranker returns the
standard-of-care recommendation (metformin) instead of an empty list, so a
clinician is never left without an actionable option.
"""

from typing import Dict, Any, List, Optional, Sequence
from dataclasses import dataclass, field
from enum import Enum
import logging

from clinical_profile import CLINICAL_DEFAULTS
from drug_taxonomy import DiabetesDrug, DrugClass, Intensity
from guideline_rules import (
    PatientGroup,
    HbA1cStatus,
    FIRST_LINE_DRUG,
    FIRST_LINE_RATIONALE,
    ALTERNATIVE_RATIONALE,
    classify_patient_group,
    classify_hba1c_status,
    second_line_preferences,
    second_line_rationale,
)
from medication_aggregation import MedicationCandidate, aggregate_candidates, DEFAULT_TOP_K
from patient_records import PatientRecord
from similarity_engine import SimilarityResult, filter_meaningful
from similarity_errors import NoComparisonData

logger = logging.getLogger(__name__)


OCCURRENCE_WEIGHT = 0.7
SIMILARITY_WEIGHT = 0.3
DEFAULT_MAX_RECOMMENDATIONS = 10

STANDARD_OF_CARE_INTENSITY = Intensity.LOW
STANDARD_OF_CARE_RATIONALE = (
    "No similar patient data available; standard-of-care first-line therapy "
    "for T2DM (ADA/EASD Guidelines)"
)

METHODOLOGY = "T-D3K Algorithm (Trajectory + Data-driven Domain Knowledge)"
REFERENCE = "Scientific Reports 12, 20910 (2022)"


# ==================== DATA MODELS ====================

class TreatmentLine(Enum):
    FIRST_LINE = "First-line"
    SECOND_LINE = "Second-line"
    ALTERNATIVE = "Alternative"


class EvidenceLevel(Enum):
    """A: guideline-endorsed line of therapy, B: similar-patient statistics only"""
    A = "A"
    B = "B"
    GUIDELINE = "Guidelines"


@dataclass
class Recommendation:
    drug: DiabetesDrug
    drug_class: DrugClass
    intensity: Intensity
    dosage: Optional[float]
    count: int
    average_similarity: float
    score: float
    line: TreatmentLine
    rationale: str
    evidence_level: EvidenceLevel

    @classmethod
    def from_candidate(cls, candidate: MedicationCandidate, line: TreatmentLine,
                       rationale: str, evidence_level: EvidenceLevel) -> "Recommendation":
        return cls(
            drug=candidate.drug,
            drug_class=candidate.drug_class,
            intensity=candidate.intensity,
            dosage=candidate.dosage,
            count=candidate.count,
            average_similarity=candidate.average_similarity,
            score=candidate.score,
            line=line,
            rationale=rationale,
            evidence_level=evidence_level,
        )


@dataclass
class RecommendationReport:
    patient_group: PatientGroup
    target_hba1c: float
    target_hba1c_status: HbA1cStatus
    recommendations: List[Recommendation]
    based_on_patients: int
    is_fallback: bool = False
    methodology: str = METHODOLOGY
    reference: str = REFERENCE
    notes: List[str] = field(default_factory=list)


# ==================== RANKER ====================

class RecommendationRanker:
    """Orders medication candidates for one target patient"""

    @staticmethod
    def composite_score(candidate: MedicationCandidate) -> float:
        return OCCURRENCE_WEIGHT * candidate.count + SIMILARITY_WEIGHT * candidate.average_similarity

    @staticmethod
    def score_candidates(candidates: Sequence[MedicationCandidate]) -> List[MedicationCandidate]:
        """Assign composite scores and sort descending (stable)"""
        for candidate in candidates:
            candidate.score = RecommendationRanker.composite_score(candidate)
        return sorted(candidates, key=lambda c: c.score, reverse=True)

    @staticmethod
    def apply_guidelines(ranked: Sequence[MedicationCandidate], group: PatientGroup,
                         hba1c: float) -> List[Recommendation]:
        """
        Reorder statistically ranked candidates by treatment line.
        Each drug appears at most once, at its best-scored intensity.
        """
        recommendations: List[Recommendation] = []
        used_drugs = set()

        # ─── First line ───
        for candidate in ranked:
            if candidate.drug == FIRST_LINE_DRUG:
                recommendations.append(Recommendation.from_candidate(
                    candidate, TreatmentLine.FIRST_LINE, FIRST_LINE_RATIONALE, EvidenceLevel.A
                ))
                used_drugs.add(candidate.drug)
                break

        # ─── Second line (group preferences) ───
        for preferred in second_line_preferences(group, hba1c):
            if preferred in used_drugs:
                continue
            for candidate in ranked:
                if candidate.drug == preferred:
                    recommendations.append(Recommendation.from_candidate(
                        candidate, TreatmentLine.SECOND_LINE,
                        second_line_rationale(preferred), EvidenceLevel.A
                    ))
                    used_drugs.add(preferred)
                    break

        # ─── Alternatives ───
        for candidate in ranked:
            if candidate.drug in used_drugs:
                continue
            recommendations.append(Recommendation.from_candidate(
                candidate, TreatmentLine.ALTERNATIVE, ALTERNATIVE_RATIONALE, EvidenceLevel.B
            ))
            used_drugs.add(candidate.drug)

        return recommendations

    @staticmethod
    def standard_of_care() -> List[Recommendation]:
        """Guideline default used when there is nothing to rank"""
        profile = FIRST_LINE_DRUG.profile
        return [Recommendation(
            drug=FIRST_LINE_DRUG,
            drug_class=profile.drug_class,
            intensity=STANDARD_OF_CARE_INTENSITY,
            dosage=profile.dose_for(STANDARD_OF_CARE_INTENSITY),
            count=0,
            average_similarity=0.0,
            score=0.0,
            line=TreatmentLine.FIRST_LINE,
            rationale=STANDARD_OF_CARE_RATIONALE,
            evidence_level=EvidenceLevel.GUIDELINE,
        )]

    @staticmethod
    def rank(candidates: Sequence[MedicationCandidate], group: PatientGroup, hba1c: float,
             max_recommendations: int = DEFAULT_MAX_RECOMMENDATIONS) -> List[Recommendation]:
        if not candidates:
            logger.info("⚠️  No medication candidates - falling back to standard of care")
            return RecommendationRanker.standard_of_care()

        ranked = RecommendationRanker.score_candidates(candidates)
        recommendations = RecommendationRanker.apply_guidelines(ranked, group, hba1c)
        return recommendations[:max_recommendations]


# ==================== PIPELINE ENTRY POINT ====================

def recommend_medications(target: PatientRecord,
                          similarity_results: Sequence[SimilarityResult],
                          k: int = DEFAULT_TOP_K,
                          min_score: Optional[float] = None,
                          max_recommendations: int = DEFAULT_MAX_RECOMMENDATIONS) -> RecommendationReport:
    """
    Aggregate the top-k similar patients' medications and rank them for target.

    Never fails on empty input: no results yields the standard-of-care report.

    Args:
        target: the patient being treated
        similarity_results: ranked output of the similarity engine
        k: number of top similar patients to draw medications from
        min_score: optional meaningfulness threshold applied before aggregation
        max_recommendations: length cap on the returned list

    Raises:
        NoComparisonData: target has no analysis data to classify
    """
    snapshot = target.latest_snapshot()
    if snapshot is None:
        raise NoComparisonData(target.patient_id)

    logger.info("=" * 60)
    logger.info(f"💊 MEDICATION RECOMMENDATION for patient {target.patient_id}")
    logger.info("=" * 60)

    hba1c = snapshot.hemoglobin_a1c
    if hba1c is None or hba1c <= 0:
        hba1c = CLINICAL_DEFAULTS["hba1c"]

    group = classify_patient_group(snapshot.has_hyperlipidemia, snapshot.has_hypertension)
    status = classify_hba1c_status(hba1c)

    results = list(similarity_results)
    if min_score is not None:
        results = filter_meaningful(results, min_score)
    top_results = results[:k]

    candidates = aggregate_candidates(top_results, k)
    recommendations = RecommendationRanker.rank(candidates, group, hba1c, max_recommendations)

    logger.info(f"👥 Group: {group.value} | HbA1c {hba1c}% ({status.value})")
    logger.info(f"📊 {len(candidates)} candidates from {len(top_results)} similar patients")
    for position, rec in enumerate(recommendations, start=1):
        logger.info(f"  {position}. {rec.drug.display_name} ({rec.intensity.value}) - "
                    f"{rec.line.value}, score {rec.score:.2f}")

    notes = []
    if not candidates:
        notes.append("Recommendation derived from clinical guidelines only")

    return RecommendationReport(
        patient_group=group,
        target_hba1c=hba1c,
        target_hba1c_status=status,
        recommendations=recommendations,
        based_on_patients=len(top_results),
        is_fallback=not candidates,
        notes=notes,
    )


def format_recommendation(rec: Recommendation) -> Dict[str, Any]:
    return {
        "medication": rec.drug.value,
        "display_name": rec.drug.display_name,
        "class": rec.drug_class.value,
        "intensity": rec.intensity.value,
        "dosage": rec.dosage,
        "count": rec.count,
        "average_similarity": round(rec.average_similarity, 4),
        "score": round(rec.score, 4),
        "line": rec.line.value,
        "rationale": rec.rationale,
        "evidence_level": rec.evidence_level.value,
    }


def format_recommendation_report(report: RecommendationReport) -> Dict[str, Any]:
    """Convert a RecommendationReport to a JSON-serializable dictionary"""
    return {
        "patient_group": report.patient_group.value,
        "target_hba1c": report.target_hba1c,
        "target_hba1c_status": report.target_hba1c_status.value,
        "recommendations": [format_recommendation(r) for r in report.recommendations],
        "based_on_patients": report.based_on_patients,
        "is_fallback": report.is_fallback,
        "methodology": report.methodology,
        "reference": report.reference,
        "notes": report.notes,
    }
