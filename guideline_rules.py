"""
Clinical Guideline Rules - Declarative Tables for Recommendation Ordering

Encodes the ADA/EASD treatment-line conventions applied on top of the
statistical (similar-patient) ranking:

1. Metformin is first-line therapy for T2DM.
2. Second-line preferences depend on the patient group, derived from the
   hypertension / hyperlipidemia flags:

       DM      diabetes only
       DM_HLD  diabetes + hyperlipidemia
       DM_HTN  diabetes + hypertension
       DHL     diabetes + hyperlipidemia + hypertension

3. Severe hyperglycemia (HbA1c ≥ 10%) promotes insulin to the front of the
   second-line list regardless of group.

All rules are data (tables) or small total functions so they can be checked
independently of the ranking flow.

Reference: ADA Standards of Medical Care in Diabetes; ADA/EASD consensus
report on management of hyperglycemia in T2DM
"""

from typing import Dict, Tuple
from types import MappingProxyType
from enum import Enum
import math

from drug_taxonomy import DiabetesDrug, DrugClass


# ==================== PATIENT GROUPS ====================

class PatientGroup(Enum):
    DM = "DM"
    DM_HLD = "DM_HLD"
    DM_HTN = "DM_HTN"
    DHL = "DHL"


# (has_hyperlipidemia, has_hypertension) -> group; covers all four combinations
_GROUP_BY_FLAGS: Dict[Tuple[bool, bool], PatientGroup] = {
    (False, False): PatientGroup.DM,
    (True, False): PatientGroup.DM_HLD,
    (False, True): PatientGroup.DM_HTN,
    (True, True): PatientGroup.DHL,
}


def classify_patient_group(has_hyperlipidemia: bool, has_hypertension: bool) -> PatientGroup:
    return _GROUP_BY_FLAGS[(bool(has_hyperlipidemia), bool(has_hypertension))]


# ==================== HbA1c STATUS ====================

class HbA1cStatus(Enum):
    WELL_CONTROLLED = "Well-controlled"
    MODERATELY_CONTROLLED = "Moderately controlled"
    SUBOPTIMAL_CONTROL = "Suboptimal control"
    POOR_CONTROL = "Poor control"


def classify_hba1c_status(hba1c: float) -> HbA1cStatus:
    """
    < 7.0 well-controlled, < 8.0 moderate, < 9.0 suboptimal, ≥ 9.0 poor.

    Raises:
        ValueError: hba1c is NaN
    """
    if math.isnan(hba1c):
        raise ValueError("HbA1c must be a number")
    if hba1c < 7.0:
        return HbA1cStatus.WELL_CONTROLLED
    if hba1c < 8.0:
        return HbA1cStatus.MODERATELY_CONTROLLED
    if hba1c < 9.0:
        return HbA1cStatus.SUBOPTIMAL_CONTROL
    return HbA1cStatus.POOR_CONTROL


# ==================== TREATMENT LINES ====================

FIRST_LINE_DRUG = DiabetesDrug.METFORMIN
FIRST_LINE_RATIONALE = "First-line therapy for T2DM (ADA/EASD Guidelines)"

SECOND_LINE_PREFERENCES = MappingProxyType({
    PatientGroup.DM: (
        DiabetesDrug.SITAGLIPTIN, DiabetesDrug.EMPAGLIFLOZIN, DiabetesDrug.GLICLAZIDE,
    ),
    PatientGroup.DM_HLD: (
        DiabetesDrug.EMPAGLIFLOZIN, DiabetesDrug.SITAGLIPTIN, DiabetesDrug.PIOGLITAZONE,
    ),
    PatientGroup.DM_HTN: (
        DiabetesDrug.EMPAGLIFLOZIN, DiabetesDrug.DAPAGLIFLOZIN, DiabetesDrug.SITAGLIPTIN,
    ),
    PatientGroup.DHL: (
        DiabetesDrug.EMPAGLIFLOZIN, DiabetesDrug.DAPAGLIFLOZIN,
    ),
})

# (HbA1c threshold, drug promoted to the front of the second-line list)
SEVERITY_PROMOTIONS: Tuple[Tuple[float, DiabetesDrug], ...] = (
    (10.0, DiabetesDrug.INSULIN),
)

SECOND_LINE_RATIONALES = MappingProxyType({
    DiabetesDrug.EMPAGLIFLOZIN: "SGLT-2 inhibitor with cardiovascular benefits",
    DiabetesDrug.DAPAGLIFLOZIN: "SGLT-2 inhibitor with renal and cardiovascular benefits",
    DiabetesDrug.SITAGLIPTIN: "DPP-4 inhibitor with low hypoglycemia risk",
    DiabetesDrug.PIOGLITAZONE: "Thiazolidinedione improving insulin sensitivity",
    DiabetesDrug.GLICLAZIDE: "Sulfonylurea with established efficacy",
    DiabetesDrug.INSULIN: "Required for severe hyperglycemia (HbA1c ≥10%)",
})

CLASS_RATIONALES = MappingProxyType({
    DrugClass.BIGUANIDES: "Biguanide reducing hepatic glucose output",
    DrugClass.SULFONYLUREAS: "Sulfonylurea with established efficacy",
    DrugClass.DPP4_INHIBITORS: "DPP-4 inhibitor with low hypoglycemia risk",
    DrugClass.SGLT2_INHIBITORS: "SGLT-2 inhibitor with cardiovascular benefits",
    DrugClass.ALPHA_GLUCOSIDASE_INHIBITORS: "Alpha-glucosidase inhibitor lowering postprandial glucose",
    DrugClass.THIAZOLIDINEDIONES: "Thiazolidinedione improving insulin sensitivity",
    DrugClass.GLP1_AGONISTS: "GLP-1 receptor agonist with weight and cardiovascular benefits",
    DrugClass.MEGLITINIDES: "Meglitinide targeting postprandial glucose",
    DrugClass.INSULIN: "Insulin for insufficient glycemic control",
})

ALTERNATIVE_RATIONALE = "Based on similar patient outcomes"


def second_line_preferences(group: PatientGroup, hba1c: float) -> Tuple[DiabetesDrug, ...]:
    """
    Ordered second-line drug preferences for a patient group, after applying
    the severity promotions for the given HbA1c. The tables are not modified.
    """
    preferences = list(SECOND_LINE_PREFERENCES[group])

    for threshold, drug in reversed(SEVERITY_PROMOTIONS):
        if hba1c >= threshold:
            if drug in preferences:
                preferences.remove(drug)
            preferences.insert(0, drug)

    return tuple(preferences)


def second_line_rationale(drug: DiabetesDrug) -> str:
    """Drug-specific rationale, falling back to the drug's pharmacological class"""
    if drug in SECOND_LINE_RATIONALES:
        return SECOND_LINE_RATIONALES[drug]
    return CLASS_RATIONALES[drug.drug_class]
