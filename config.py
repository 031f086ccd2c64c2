"""
Runtime configuration for the T-D3K recommendation service.

Values are read once at import time from the environment, after an
optional .env file is loaded. Algorithm constants (feature weights,
clinical ranges, trajectory parameters, guideline tables) live in their
own modules and are not configurable.
"""

import os
from dotenv import load_dotenv

load_dotenv()


# ==================== CONFIGURATION ====================
class Config:
    TOP_K                    = int(os.getenv("TD3K_TOP_K", "10"))
    MIN_MEANINGFUL_SCORE     = float(os.getenv("TD3K_MIN_MEANINGFUL_SCORE", "0.1"))
    MAX_RECOMMENDATIONS      = int(os.getenv("TD3K_MAX_RECOMMENDATIONS", "10"))
    SIMILAR_PATIENTS_RETURNED = int(os.getenv("TD3K_SIMILAR_PATIENTS_RETURNED", "10"))

    # JSON export used to seed the in-memory repository; empty repository when unset
    PATIENT_DATA_PATH        = os.getenv("TD3K_PATIENT_DATA_PATH") or None

    LOG_LEVEL                = os.getenv("TD3K_LOG_LEVEL", "INFO").upper()

    # Offline evaluation defaults
    EVALUATION_SAMPLE_SIZE   = 50
    EVALUATION_SEED          = 42
