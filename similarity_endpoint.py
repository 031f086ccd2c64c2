"""
FastAPI Endpoints for T-D3K Patient Similarity and Medication Recommendation

Exposes the recommendation service over HTTP:

    GET  /similarity/{patient_id}                  ranked similar patients
    GET  /medications/recommendations/{patient_id} guideline-adjusted recommendations
    GET  /medications/statistics                   population medication usage
    POST /evaluation/metrics                       hit ratio / recall / precision / MRR
    POST /evaluation/population                    leave-one-out batch evaluation

Error mapping: unknown patient → 404, patient without analysis data → 400,
anything else → 500.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, Any, List, Optional
from datetime import datetime
import logging

from config import Config
from drug_taxonomy import DiabetesDrug, Intensity
from patient_records import MedicationEntry
from patient_repository import PatientRepository
from recommendation_ranker import format_recommendation_report
from recommendation_service import TD3KRecommendationService
from similarity_engine import format_similarity_result
from similarity_errors import PatientNotFound, NoComparisonData

logger = logging.getLogger(__name__)

similarity_router = APIRouter(tags=["td3k"])


# ==================== REQUEST/RESPONSE MODELS ====================

class MedicationItem(BaseModel):
    medication: str = Field(..., description="Generic drug name, e.g. metformin")
    intensity: Optional[str] = Field(None, description="L / M / H (defaults to M)")


class EvaluationRequest(BaseModel):
    """Request model for single-patient evaluation"""
    recommendations: List[MedicationItem] = Field(..., description="Ranked recommendations, best first")
    actual_medications: List[MedicationItem] = Field(..., description="Ground-truth medication set")
    k: int = Field(Config.TOP_K, ge=0)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "recommendations": [
                {"medication": "metformin", "intensity": "M"},
                {"medication": "sitagliptin", "intensity": "L"},
                {"medication": "insulin", "intensity": "M"},
            ],
            "actual_medications": [{"medication": "sitagliptin", "intensity": "M"}],
            "k": 10,
        }
    })


class PopulationEvaluationRequest(BaseModel):
    sample_size: int = Field(Config.EVALUATION_SAMPLE_SIZE, ge=0)
    k: int = Field(Config.TOP_K, ge=0)
    seed: int = Config.EVALUATION_SEED


class SimilarityResponse(BaseModel):
    success: bool
    timestamp: str
    patient_id: str
    total_compared: int
    meaningful_matches: int
    similar_patients: List[Dict[str, Any]]
    processing_time: float


class RecommendationResponse(BaseModel):
    success: bool
    timestamp: str
    patient_id: str
    recommendation: Dict[str, Any]
    monitoring: Dict[str, Any]
    personalized_insights: List[str]
    lifestyle: List[Dict[str, str]]
    patient_profile: Dict[str, Any]
    processing_time: float


class EvaluationResponse(BaseModel):
    hit_ratio: float
    recall: float
    precision: float
    mrr: float
    matches: int
    total_recommendations: int
    total_actual: int


# ==================== DEPENDENCIES ====================

def get_service(request: Request) -> TD3KRecommendationService:
    service = getattr(request.app.state, "td3k_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Recommendation service is not configured")
    return service


def _to_entries(items: List[MedicationItem]) -> List[MedicationEntry]:
    entries = []
    for item in items:
        drug = DiabetesDrug.lookup(item.medication)
        if drug is None:
            raise HTTPException(status_code=400, detail=f"Unknown medication: {item.medication}")
        try:
            intensity = Intensity.parse(item.intensity)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        entries.append(MedicationEntry(drug=drug, intensity=intensity))
    return entries


# ==================== ENDPOINTS ====================

@similarity_router.get("/similarity/{patient_id}", response_model=SimilarityResponse)
async def get_similar_patients(patient_id: str,
                               limit: int = Query(Config.SIMILAR_PATIENTS_RETURNED, ge=1),
                               service: TD3KRecommendationService = Depends(get_service)):
    """
    Rank every recorded patient by T-D3K similarity to patient_id.

    Only meaningful matches (score above the configured threshold) are
    returned, best first.
    """
    start_time = datetime.now()

    try:
        results = service.compute_similarity(patient_id)
        meaningful = [r for r in results if r.score > service.min_meaningful_score]

        return SimilarityResponse(
            success=True,
            timestamp=datetime.now().isoformat(),
            patient_id=patient_id,
            total_compared=len(results),
            meaningful_matches=len(meaningful),
            similar_patients=[format_similarity_result(r) for r in meaningful[:limit]],
            processing_time=(datetime.now() - start_time).total_seconds(),
        )

    except PatientNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NoComparisonData as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Similarity computation error: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Similarity computation failed: {str(e)}")


@similarity_router.get("/medications/recommendations/{patient_id}", response_model=RecommendationResponse)
async def get_medication_recommendations(patient_id: str,
                                         service: TD3KRecommendationService = Depends(get_service)):
    """
    Guideline-adjusted medication recommendations drawn from the most
    similar patients, with a monitoring plan, lifestyle guidance, a
    patient profile summary and short insights.
    """
    start_time = datetime.now()

    try:
        report = service.recommend_medications(patient_id)

        return RecommendationResponse(
            success=True,
            timestamp=datetime.now().isoformat(),
            patient_id=patient_id,
            recommendation=format_recommendation_report(report),
            monitoring=service.monitoring_plan(patient_id).to_dict(),
            personalized_insights=service.insights(patient_id, report),
            lifestyle=[item.to_dict() for item in service.lifestyle_plan(patient_id)],
            patient_profile=service.patient_profile(patient_id).to_dict(),
            processing_time=(datetime.now() - start_time).total_seconds(),
        )

    except PatientNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NoComparisonData as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Recommendation error: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Recommendation failed: {str(e)}")


@similarity_router.get("/medications/statistics")
async def get_medication_statistics(service: TD3KRecommendationService = Depends(get_service)):
    try:
        return service.medication_statistics().to_dict()
    except Exception as e:
        logger.error(f"❌ Statistics error: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Statistics failed: {str(e)}")


@similarity_router.post("/evaluation/metrics", response_model=EvaluationResponse)
async def evaluate_recommendations(request: EvaluationRequest):
    """Score a ranked recommendation list against actual medications"""
    try:
        result = TD3KRecommendationService.evaluate(
            _to_entries(request.recommendations),
            _to_entries(request.actual_medications),
            request.k,
        )
        return EvaluationResponse(**result.to_dict())

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Evaluation error: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Evaluation failed: {str(e)}")


@similarity_router.post("/evaluation/population")
async def evaluate_population(request: PopulationEvaluationRequest,
                              service: TD3KRecommendationService = Depends(get_service)):
    """Leave-one-out evaluation over a seeded sample of recorded patients"""
    try:
        return service.evaluate_population(
            sample_size=request.sample_size, k=request.k, seed=request.seed
        ).to_dict()
    except Exception as e:
        logger.error(f"❌ Population evaluation error: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Population evaluation failed: {str(e)}")


# ==================== INTEGRATION HELPER ====================

def add_similarity_routes_to_app(app, repository: PatientRepository):
    """
    Bind a recommendation service over repository and register the routes.

    Usage in main.py:
        from similarity_endpoint import add_similarity_routes_to_app
        add_similarity_routes_to_app(app, repository)
    """
    app.state.td3k_service = TD3KRecommendationService(repository)
    app.include_router(similarity_router)
    logger.info("✅ T-D3K similarity routes registered")
