"""
Diabetes Drug Taxonomy - Study Medication Classes

Encodes the oral and injectable T2DM medications used in the patient
similarity study (Supplementary Table S1), with maximum daily doses and the
Low / Medium / High intensity tiers obtained by splitting the maximum dose
into thirds.

Every drug is an enum member, so a medication outside the study set cannot be
represented once a record has been parsed. Insulin is a binary variable
(prescribed or not) and carries no dose tiers.

Reference: Scientific Reports 12, 20910 (2022) - "Diabetes medication
recommendation system using patient similarity analytics"
"""

from typing import Dict, Optional
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


# ==================== ENUMERATIONS ====================

class DrugClass(Enum):
    """Pharmacological classes of the study drugs"""
    BIGUANIDES = "Biguanides"
    SULFONYLUREAS = "Sulfonylureas"
    DPP4_INHIBITORS = "DPP-4 Inhibitors"
    SGLT2_INHIBITORS = "SGLT-2 Inhibitors"
    ALPHA_GLUCOSIDASE_INHIBITORS = "Alpha-glucosidase Inhibitors"
    THIAZOLIDINEDIONES = "Thiazolidinediones"
    GLP1_AGONISTS = "GLP-1 Agonists"
    MEGLITINIDES = "Meglitinides"
    INSULIN = "Insulin"


class Intensity(Enum):
    """Dosage intensity tier"""
    LOW = "L"
    MEDIUM = "M"
    HIGH = "H"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "Intensity":
        """
        Accepts "L"/"M"/"H" or "low"/"medium"/"high" (any case).
        Missing values default to MEDIUM.
        """
        if raw is None or str(raw).strip() == "":
            return cls.MEDIUM

        text = str(raw).strip().lower()
        aliases = {
            "l": cls.LOW, "low": cls.LOW,
            "m": cls.MEDIUM, "medium": cls.MEDIUM,
            "h": cls.HIGH, "high": cls.HIGH,
        }
        if text not in aliases:
            raise ValueError(f"Unknown intensity tier: {raw!r}")
        return aliases[text]


class DiabetesDrug(Enum):
    """Recognized diabetes medications (lower-case generic names)"""
    METFORMIN = "metformin"
    GLICLAZIDE = "gliclazide"
    GLIPIZIDE = "glipizide"
    TOLBUTAMIDE = "tolbutamide"
    SITAGLIPTIN = "sitagliptin"
    VILDAGLIPTIN = "vildagliptin"
    LINAGLIPTIN = "linagliptin"
    SAXAGLIPTIN = "saxagliptin"
    EMPAGLIFLOZIN = "empagliflozin"
    DAPAGLIFLOZIN = "dapagliflozin"
    CANAGLIFLOZIN = "canagliflozin"
    ACARBOSE = "acarbose"
    PIOGLITAZONE = "pioglitazone"
    ROSIGLITAZONE = "rosiglitazone"
    EXENATIDE = "exenatide"
    LIRAGLUTIDE = "liraglutide"
    REPAGLINIDE = "repaglinide"
    NATEGLINIDE = "nateglinide"
    INSULIN = "insulin"

    @classmethod
    def lookup(cls, name: str) -> Optional["DiabetesDrug"]:
        """Resolve a generic name; returns None for drugs outside the study set"""
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            return None

    @property
    def profile(self) -> "DrugProfile":
        return DRUG_PROFILES[self]

    @property
    def drug_class(self) -> DrugClass:
        return DRUG_PROFILES[self].drug_class

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


# ==================== DRUG PROFILES ====================

@dataclass(frozen=True)
class DrugProfile:
    """Class membership and dosing tiers for one drug"""
    drug_class: DrugClass
    max_dose: Optional[float] = None      # mg/day; None for binary drugs
    intensity_doses: Dict[Intensity, float] = field(default_factory=dict)
    binary: bool = False                  # insulin: prescribed / not prescribed

    def dose_for(self, intensity: Intensity) -> Optional[float]:
        """Daily dose for an intensity tier (None for binary drugs)"""
        if self.binary:
            return None
        return self.intensity_doses[intensity]


def _tiers(low: float, medium: float, high: float) -> Dict[Intensity, float]:
    return {Intensity.LOW: low, Intensity.MEDIUM: medium, Intensity.HIGH: high}


DRUG_PROFILES = MappingProxyType({
    # Biguanides
    DiabetesDrug.METFORMIN: DrugProfile(DrugClass.BIGUANIDES, 3000, _tiers(1000, 2000, 3000)),

    # Sulfonylureas
    DiabetesDrug.GLICLAZIDE: DrugProfile(DrugClass.SULFONYLUREAS, 320, _tiers(107, 213, 320)),
    DiabetesDrug.GLIPIZIDE: DrugProfile(DrugClass.SULFONYLUREAS, 30, _tiers(10, 20, 30)),
    DiabetesDrug.TOLBUTAMIDE: DrugProfile(DrugClass.SULFONYLUREAS, 3000, _tiers(1000, 2000, 3000)),

    # DPP-4 inhibitors
    DiabetesDrug.SITAGLIPTIN: DrugProfile(DrugClass.DPP4_INHIBITORS, 100, _tiers(33, 67, 100)),
    DiabetesDrug.VILDAGLIPTIN: DrugProfile(DrugClass.DPP4_INHIBITORS, 100, _tiers(33, 67, 100)),
    DiabetesDrug.LINAGLIPTIN: DrugProfile(DrugClass.DPP4_INHIBITORS, 5, _tiers(5, 5, 5)),
    DiabetesDrug.SAXAGLIPTIN: DrugProfile(DrugClass.DPP4_INHIBITORS, 5, _tiers(2.5, 5, 5)),

    # SGLT-2 inhibitors
    DiabetesDrug.EMPAGLIFLOZIN: DrugProfile(DrugClass.SGLT2_INHIBITORS, 25, _tiers(8, 17, 25)),
    DiabetesDrug.DAPAGLIFLOZIN: DrugProfile(DrugClass.SGLT2_INHIBITORS, 10, _tiers(3, 7, 10)),
    DiabetesDrug.CANAGLIFLOZIN: DrugProfile(DrugClass.SGLT2_INHIBITORS, 300, _tiers(100, 200, 300)),

    # Alpha-glucosidase inhibitors
    DiabetesDrug.ACARBOSE: DrugProfile(DrugClass.ALPHA_GLUCOSIDASE_INHIBITORS, 300, _tiers(100, 200, 300)),

    # Thiazolidinediones
    DiabetesDrug.PIOGLITAZONE: DrugProfile(DrugClass.THIAZOLIDINEDIONES, 45, _tiers(15, 30, 45)),
    DiabetesDrug.ROSIGLITAZONE: DrugProfile(DrugClass.THIAZOLIDINEDIONES, 8, _tiers(3, 6, 8)),

    # GLP-1 receptor agonists
    DiabetesDrug.EXENATIDE: DrugProfile(DrugClass.GLP1_AGONISTS, 20, _tiers(5, 10, 20)),
    DiabetesDrug.LIRAGLUTIDE: DrugProfile(DrugClass.GLP1_AGONISTS, 1.8, _tiers(0.6, 1.2, 1.8)),

    # Meglitinides
    DiabetesDrug.REPAGLINIDE: DrugProfile(DrugClass.MEGLITINIDES, 16, _tiers(4, 8, 16)),
    DiabetesDrug.NATEGLINIDE: DrugProfile(DrugClass.MEGLITINIDES, 540, _tiers(180, 360, 540)),

    # Insulin (binary variable)
    DiabetesDrug.INSULIN: DrugProfile(DrugClass.INSULIN, binary=True),
})

# Upper bound used when normalizing the number of concurrently prescribed drugs
MAX_MEDICATION_COUNT = 6
