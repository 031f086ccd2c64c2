"""
Clinical Profile Extractor - Normalized Feature Vectors for D3K Similarity

Converts a patient record and its most recent analysis snapshot into a
fixed-length vector of 12 features, each min-max scaled to [0, 1] against a
fixed clinical range table:

    age, sex, systolic BP, diastolic BP, HDL, LDL, triglycerides, HbA1c,
    hyperlipidemia flag, hypertension flag, disease duration, medication count

DESIGN CHOICE: completeness over precision.
A missing lab value falls back to a clinically plausible default (e.g. HbA1c
7.0%) instead of excluding the patient. Only a patient with no snapshot at
all is rejected (MissingAnalysisData).

Lipid values above 10 are assumed to be in mg/dL and converted to mmol/L
before scaling.

Reference: Scientific Reports 12, 20910 (2022) - D3K feature set
"""

from typing import Dict, List, Optional, Tuple
from types import MappingProxyType
from datetime import datetime
import logging

from drug_taxonomy import MAX_MEDICATION_COUNT
from patient_records import PatientRecord, AnalysisSnapshot, Sex
from similarity_errors import MissingAnalysisData

logger = logging.getLogger(__name__)


# ==================== CLINICAL CONSTANTS ====================

# Ordered feature names; the D3K weight table is keyed by the same names
FEATURE_ORDER: Tuple[str, ...] = (
    "age",
    "gender",
    "systolic_bp",
    "diastolic_bp",
    "cholesterol_hdl",
    "cholesterol_ldl",
    "triglycerides",
    "hba1c",
    "has_hyperlipidemia",
    "has_hypertension",
    "disease_duration",
    "medication_count",
)

# (min, max) per continuous feature; lipids in mmol/L
CLINICAL_RANGES = MappingProxyType({
    "age": (21.0, 100.0),
    "systolic_bp": (80.0, 250.0),
    "diastolic_bp": (50.0, 150.0),
    "cholesterol_hdl": (0.5, 3.0),
    "cholesterol_ldl": (1.0, 5.0),
    "triglycerides": (0.5, 10.0),
    "hba1c": (4.0, 20.0),
    "disease_duration": (0.0, 30.0),
    "medication_count": (0.0, float(MAX_MEDICATION_COUNT)),
})

# Substituted when a snapshot field is missing
CLINICAL_DEFAULTS = MappingProxyType({
    "systolic_bp": 130.0,
    "diastolic_bp": 80.0,
    "cholesterol_hdl": 1.2,
    "cholesterol_ldl": 2.6,
    "triglycerides": 1.7,
    "hba1c": 7.0,
    "disease_duration": 5.0,
})

MG_DL_TO_MMOL_L = MappingProxyType({
    "cholesterol": 0.02586,
    "triglycerides": 0.01129,
})

# Lipid readings above this are taken to be mg/dL
MG_DL_DETECTION_THRESHOLD = 10.0


# ==================== NORMALIZATION ====================

def normalize_value(value: float, minimum: float, maximum: float) -> float:
    """
    Min-max scale a value into [0, 1], clamping anything outside the range.
    A degenerate range yields 0.5.
    """
    if maximum == minimum:
        return 0.5
    return max(0.0, min(1.0, (value - minimum) / (maximum - minimum)))


def normalize_feature(feature: str, value: float) -> float:
    minimum, maximum = CLINICAL_RANGES[feature]
    return normalize_value(value, minimum, maximum)


def to_mmol_per_litre(value: Optional[float], lipid: str, default: float) -> float:
    """Convert a lipid reading to mmol/L when it looks like mg/dL"""
    if value is None or value <= 0:
        return default
    if value > MG_DL_DETECTION_THRESHOLD:
        return value * MG_DL_TO_MMOL_L[lipid]
    return value


# ==================== EXTRACTOR ====================

class ClinicalProfileExtractor:
    """
    Builds the ClinicalProfileVector used by the D3K calculator.

    reference_year fixes "now" for the age and disease-duration derivations;
    it defaults to the current calendar year.
    """

    def __init__(self, reference_year: Optional[int] = None):
        self.reference_year = reference_year

    def _current_year(self) -> int:
        return self.reference_year if self.reference_year is not None else datetime.now().year

    def raw_features(self, patient: PatientRecord,
                     snapshot: Optional[AnalysisSnapshot] = None) -> Dict[str, float]:
        """
        Un-normalized feature values after defaults and unit conversion.

        Raises:
            MissingAnalysisData: patient has no analysis snapshot
        """
        if snapshot is None:
            snapshot = patient.latest_snapshot()
        if snapshot is None:
            raise MissingAnalysisData(patient.patient_id)

        year = self._current_year()

        disease_duration = snapshot.disease_duration
        if disease_duration is None and patient.diagnosis_year is not None:
            disease_duration = year - patient.diagnosis_year
        if disease_duration is None:
            disease_duration = CLINICAL_DEFAULTS["disease_duration"]

        def lab(value: Optional[float], feature: str) -> float:
            return value if value is not None and value > 0 else CLINICAL_DEFAULTS[feature]

        return {
            "age": float(patient.age(year)),
            "gender": 1.0 if patient.sex == Sex.MALE else 0.0,
            "systolic_bp": lab(snapshot.systolic_pressure, "systolic_bp"),
            "diastolic_bp": lab(snapshot.diastolic_pressure, "diastolic_bp"),
            "cholesterol_hdl": to_mmol_per_litre(
                snapshot.cholesterol_hdl, "cholesterol", CLINICAL_DEFAULTS["cholesterol_hdl"]),
            "cholesterol_ldl": to_mmol_per_litre(
                snapshot.cholesterol_ldl, "cholesterol", CLINICAL_DEFAULTS["cholesterol_ldl"]),
            "triglycerides": to_mmol_per_litre(
                snapshot.triglycerides, "triglycerides", CLINICAL_DEFAULTS["triglycerides"]),
            "hba1c": lab(snapshot.hemoglobin_a1c, "hba1c"),
            "has_hyperlipidemia": 1.0 if snapshot.has_hyperlipidemia else 0.0,
            "has_hypertension": 1.0 if snapshot.has_hypertension else 0.0,
            "disease_duration": float(disease_duration),
            "medication_count": float(patient.medication_count()),
        }

    def extract(self, patient: PatientRecord,
                snapshot: Optional[AnalysisSnapshot] = None) -> List[float]:
        """
        Normalized profile vector in FEATURE_ORDER.

        Binary features (sex, comorbidity flags) pass through unchanged; every
        other feature is scaled against CLINICAL_RANGES.
        """
        raw = self.raw_features(patient, snapshot)

        vector = []
        for feature in FEATURE_ORDER:
            if feature in CLINICAL_RANGES:
                vector.append(normalize_feature(feature, raw[feature]))
            else:
                vector.append(raw[feature])

        logger.debug(f"Profile for {patient.patient_id}: "
                     f"{', '.join(f'{v:.3f}' for v in vector)}")
        return vector
