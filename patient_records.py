"""
Patient Record Data Model

Immutable-by-convention inputs to one similarity pass: a patient's identity,
demographics, dated lab panels (analysis snapshots) and current diabetes
medication set.

Records are parsed from plain dictionaries as stored by the patient record
store. Both the store's field names (birthYear, analysisData, hemoglobinA1c,
currentMedication, ...) and snake_case names are accepted.
"""

from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, date, timezone
from enum import Enum
import logging
import math

from drug_taxonomy import DiabetesDrug, Intensity

logger = logging.getLogger(__name__)


# ==================== PARSING HELPERS ====================

def _pick(raw: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present, non-None value among several field aliases"""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


def _to_float(value: Any) -> Optional[float]:
    """Numeric value, or None when missing, non-numeric or non-finite (NaN, inf)"""
    if value is None or value == "":
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring non-numeric lab value: {value!r}")
        return None
    if not math.isfinite(result):
        logger.debug(f"Ignoring non-finite lab value: {value!r}")
        return None
    return result


_TRUE_FLAGS = ("true", "1", "yes", "y", "da")


def _to_flag(value: Any) -> bool:
    """Comorbidity flag from a bool, number or string export (\"false\" and \"0\" are False)"""
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_FLAGS
    return bool(value)


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a snapshot date (datetime, date or ISO-8601 string).

    Timezone-aware values are converted to naive UTC so that all snapshot
    dates are mutually comparable.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


# ==================== DATA MODELS ====================

class Sex(Enum):
    """Biological sex (binary-encoded in the clinical profile)"""
    MALE = "male"
    FEMALE = "female"

    @classmethod
    def parse(cls, raw: Any) -> "Sex":
        text = str(raw or "").strip().lower()
        if text in ("m", "male", "masculin", "man"):
            return cls.MALE
        return cls.FEMALE


@dataclass
class AnalysisSnapshot:
    """One dated lab panel"""
    date: Optional[datetime] = None

    systolic_pressure: Optional[float] = None     # mmHg
    diastolic_pressure: Optional[float] = None    # mmHg
    cholesterol_hdl: Optional[float] = None       # mmol/L or mg/dL
    cholesterol_ldl: Optional[float] = None       # mmol/L or mg/dL
    triglycerides: Optional[float] = None         # mmol/L or mg/dL
    hemoglobin_a1c: Optional[float] = None        # %

    has_hyperlipidemia: bool = False
    has_hypertension: bool = False
    disease_duration: Optional[float] = None      # years

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AnalysisSnapshot":
        return cls(
            date=parse_date(_pick(raw, "date")),
            systolic_pressure=_to_float(_pick(raw, "systolicPressure", "systolic_pressure")),
            diastolic_pressure=_to_float(_pick(raw, "diastolicPressure", "diastolic_pressure")),
            cholesterol_hdl=_to_float(_pick(raw, "cholesterolHDL", "cholesterol_hdl")),
            cholesterol_ldl=_to_float(_pick(raw, "cholesterolLDL", "cholesterol_ldl")),
            triglycerides=_to_float(_pick(raw, "triglycerides")),
            hemoglobin_a1c=_to_float(_pick(raw, "hemoglobinA1c", "hemoglobin_a1c", "hba1c")),
            has_hyperlipidemia=_to_flag(_pick(raw, "hasHyperlipidemia", "has_hyperlipidemia", default=False)),
            has_hypertension=_to_flag(_pick(raw, "hasHypertension", "has_hypertension", default=False)),
            disease_duration=_to_float(_pick(raw, "diseaseDuration", "disease_duration")),
        )


@dataclass
class MedicationEntry:
    """One drug in a patient's current medication set"""
    drug: DiabetesDrug
    prescribed: bool = True
    intensity: Intensity = Intensity.MEDIUM
    dosage: Optional[float] = None

    @classmethod
    def from_dict(cls, drug: DiabetesDrug, raw: Dict[str, Any]) -> "MedicationEntry":
        try:
            intensity = Intensity.parse(raw.get("intensity"))
        except ValueError:
            logger.debug(f"Unknown intensity {raw.get('intensity')!r} for {drug.value}, using M")
            intensity = Intensity.MEDIUM
        return cls(
            drug=drug,
            prescribed=_to_flag(raw.get("prescribed", False)),
            intensity=intensity,
            dosage=_to_float(raw.get("dosage")),
        )


def parse_medication_set(raw: Optional[Dict[str, Any]]) -> Dict[DiabetesDrug, MedicationEntry]:
    """
    Convert a raw medication mapping (drug name -> {prescribed, intensity, dosage})
    into typed entries. Keys outside the study drug set are dropped.
    """
    medications: Dict[DiabetesDrug, MedicationEntry] = {}
    if not raw:
        return medications

    for name, details in raw.items():
        drug = DiabetesDrug.lookup(name)
        if drug is None or not isinstance(details, dict):
            logger.debug(f"Skipping unrecognized medication key: {name!r}")
            continue
        medications[drug] = MedicationEntry.from_dict(drug, details)

    return medications


@dataclass
class PatientRecord:
    """A previously recorded patient as read from the repository"""
    patient_id: str
    birth_year: int
    sex: Sex
    snapshots: List[AnalysisSnapshot] = field(default_factory=list)
    medications: Dict[DiabetesDrug, MedicationEntry] = field(default_factory=dict)
    diagnosis_year: Optional[int] = None
    email: Optional[str] = None
    height: Optional[float] = None  # cm
    weight: Optional[float] = None  # kg

    # ─── Derived views ───

    @property
    def has_analysis_data(self) -> bool:
        return len(self.snapshots) > 0

    def latest_snapshot(self) -> Optional[AnalysisSnapshot]:
        """
        Most recent snapshot by date. Undated snapshots rank as oldest; among
        equal dates the one stored last wins.
        """
        latest = None
        latest_key = None
        for snapshot in self.snapshots:
            key = snapshot.date or datetime.min
            if latest_key is None or key >= latest_key:
                latest, latest_key = snapshot, key
        return latest

    def hba1c_history(self) -> List[float]:
        """Dated, positive HbA1c readings in chronological order"""
        dated = [
            s for s in self.snapshots
            if s.date is not None and s.hemoglobin_a1c is not None and s.hemoglobin_a1c > 0
        ]
        dated.sort(key=lambda s: s.date)
        return [s.hemoglobin_a1c for s in dated]

    def prescribed_medications(self) -> List[MedicationEntry]:
        """Currently prescribed drugs, in taxonomy order"""
        return [
            self.medications[drug]
            for drug in DiabetesDrug
            if drug in self.medications and self.medications[drug].prescribed
        ]

    def medication_count(self) -> int:
        return len(self.prescribed_medications())

    def age(self, reference_year: Optional[int] = None) -> int:
        year = reference_year if reference_year is not None else datetime.now().year
        return year - self.birth_year

    def bmi(self) -> Optional[float]:
        """Body-mass index rounded to one decimal, or None without a usable height and weight"""
        if self.height is None or self.weight is None or self.height <= 0 or self.weight <= 0:
            return None
        return round(self.weight / (self.height / 100) ** 2, 1)

    # ─── Parsing ───

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PatientRecord":
        """Build a record from a stored patient document"""
        patient_id = _pick(raw, "_id", "id", "patient_id", "userId")
        if patient_id is None:
            raise ValueError("Patient document has no identifier")

        birth_year = _pick(raw, "birthYear", "birth_year")
        if birth_year is None:
            raise ValueError(f"Patient document {patient_id!r} has no birth year")

        analysis = _pick(raw, "analysisData", "analysis_data", "snapshots", default=[])
        if isinstance(analysis, dict):
            analysis = [analysis]

        diagnosis_year = _pick(raw, "diagnosisYear", "diagnosis_year")

        return cls(
            patient_id=str(patient_id),
            birth_year=int(birth_year),
            sex=Sex.parse(_pick(raw, "gender", "sex")),
            snapshots=[AnalysisSnapshot.from_dict(item) for item in analysis],
            medications=parse_medication_set(
                _pick(raw, "currentMedication", "current_medication", "medications")
            ),
            diagnosis_year=int(diagnosis_year) if diagnosis_year is not None else None,
            email=_pick(raw, "email"),
            height=_to_float(_pick(raw, "height")),
            weight=_to_float(_pick(raw, "weight")),
        )
