"""
T-D3K Diabetes Medication Recommendation API

Setup:
1. Optional .env file with TD3K_* settings (see config.py)
2. pip install -e .
3. Run: python main.py  (or: uvicorn main:app)
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from config import Config
from patient_repository import InMemoryPatientRepository
from similarity_endpoint import add_similarity_routes_to_app

logging.basicConfig(level=Config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def load_repository() -> InMemoryPatientRepository:
    if Config.PATIENT_DATA_PATH:
        return InMemoryPatientRepository.from_json_file(Config.PATIENT_DATA_PATH)
    logger.warning("⚠️  TD3K_PATIENT_DATA_PATH not set - starting with an empty repository")
    return InMemoryPatientRepository()


repository = load_repository()

app = FastAPI(title="T-D3K Medication Recommendation")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
add_similarity_routes_to_app(app, repository)


@app.get("/")
async def root():
    return {
        "service": "T-D3K Medication Recommendation",
        "version": "1.0.0",
        "status": "active",
        "endpoints": {
            "similarity": "/similarity/{patient_id}",
            "recommendations": "/medications/recommendations/{patient_id}",
            "statistics": "/medications/statistics",
            "evaluation": "/evaluation/metrics",
        }
    }


@app.get("/health")
async def health():
    return {"status": "healthy", "patients_loaded": len(repository)}


if __name__ == "__main__":
    import uvicorn

    print("\n" + "=" * 70)
    print("🩺 T-D3K Medication Recommendation API")
    print("=" * 70)
    print("📍 Server: http://localhost:8000")
    print("📚 Docs:   http://localhost:8000/docs")
    print("=" * 70 + "\n")

    uvicorn.run(app, host="0.0.0.0", port=8000)
