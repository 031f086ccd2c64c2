"""
Clinical Insights - Follow-up Guidance Around a Recommendation

Complements the ranked medication list with:
1. A monitoring plan (test frequencies and treatment targets)
2. A lifestyle and nutrition plan driven by BMI, HbA1c and comorbidities
3. A patient profile summary for the response
4. Population-level medication usage statistics
5. Short personalized statements for the clinician

Targets follow the ADA Standards of Medical Care in Diabetes.
"""

from typing import Dict, Any, List, Optional, Sequence
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum

from clinical_profile import CLINICAL_DEFAULTS
from drug_taxonomy import DiabetesDrug
from patient_records import AnalysisSnapshot, PatientRecord
from recommendation_ranker import RecommendationReport, EvidenceLevel

MOST_COMMON_LIMIT = 3


# ==================== MONITORING PLAN ====================

@dataclass
class MonitoringItem:
    frequency: str
    target: str


@dataclass
class MonitoringPlan:
    hba1c: MonitoringItem
    blood_glucose: MonitoringItem
    blood_pressure: MonitoringItem
    lipids: MonitoringItem

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _snapshot_hba1c(snapshot: AnalysisSnapshot) -> float:
    if snapshot.hemoglobin_a1c is None or snapshot.hemoglobin_a1c <= 0:
        return CLINICAL_DEFAULTS["hba1c"]
    return snapshot.hemoglobin_a1c


def build_monitoring_plan(snapshot: AnalysisSnapshot) -> MonitoringPlan:
    hba1c = _snapshot_hba1c(snapshot)

    return MonitoringPlan(
        hba1c=MonitoringItem(
            frequency="Every 3 months" if hba1c > 8 else "Every 6 months",
            target="<8.0%" if hba1c > 9 else "<7.0%",
        ),
        blood_glucose=MonitoringItem(
            frequency="Daily (fasting and 2h postprandial)",
            target="Fasting: 80-130 mg/dL, Postprandial: <180 mg/dL",
        ),
        blood_pressure=MonitoringItem(
            frequency="Weekly at home and at every visit",
            target="<130/80 mmHg" if snapshot.has_hypertension else "<140/90 mmHg",
        ),
        lipids=MonitoringItem(
            frequency="Yearly, or every 6 months if uncontrolled",
            target="LDL <100 mg/dL (<70 mg/dL with high cardiovascular risk)",
        ),
    )


# ==================== LIFESTYLE PLAN ====================

class BMICategory(Enum):
    UNDERWEIGHT = "Underweight"
    NORMAL = "Normal weight"
    OVERWEIGHT = "Overweight"
    OBESITY = "Obesity"


WEIGHT_GOALS = {
    BMICategory.UNDERWEIGHT: "Controlled weight gain with nutritional support",
    BMICategory.NORMAL: "Maintain current weight",
    BMICategory.OVERWEIGHT: "Lose 5-10% of body weight (3-7 kg)",
    BMICategory.OBESITY: "Lose 10-15% of body weight (7-12 kg)",
}


def classify_bmi(bmi: float) -> BMICategory:
    """WHO adult categories; lower bounds are inclusive"""
    if bmi < 18.5:
        return BMICategory.UNDERWEIGHT
    if bmi < 25:
        return BMICategory.NORMAL
    if bmi < 30:
        return BMICategory.OVERWEIGHT
    return BMICategory.OBESITY


@dataclass
class LifestyleRecommendation:
    category: str
    recommendation: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def build_lifestyle_plan(patient: PatientRecord,
                         snapshot: Optional[AnalysisSnapshot] = None) -> List[LifestyleRecommendation]:
    """
    Diet and activity guidance for the patient.

    Weight and calorie advice needs both height and weight; carbohydrate
    advice tightens with HbA1c; sodium and fat limits follow the
    hypertension and hyperlipidemia flags of the snapshot.
    """
    if snapshot is None:
        snapshot = patient.latest_snapshot() or AnalysisSnapshot()

    plan: List[LifestyleRecommendation] = []

    def add(category: str, recommendation: str) -> None:
        plan.append(LifestyleRecommendation(category, recommendation))

    bmi = patient.bmi()
    category = classify_bmi(bmi) if bmi is not None else None

    if category is not None:
        add("Weight Control", f"BMI {bmi} ({category.value}): {WEIGHT_GOALS[category]}")

    hba1c = snapshot.hemoglobin_a1c
    if hba1c is not None and hba1c > 8:
        add("Urgent Glycemic Control",
            "Limit carbohydrates to 45-60g per meal and monitor blood glucose 4 times a day")
    elif hba1c is not None and hba1c > 7:
        add("Glycemic Control", "Carbohydrates 45-65g per meal, evenly distributed through the day")

    if category == BMICategory.OBESITY:
        add("Nutrition", "Calorie deficit of 500-750 kcal/day under dietitian supervision")
        add("Carbohydrates", "30-40g complex carbohydrates per meal")
    elif category == BMICategory.OVERWEIGHT:
        add("Nutrition", "Moderate calorie deficit of 300-500 kcal/day")
        add("Carbohydrates", "45-50g per meal")
    elif category is not None:
        add("Nutrition", "Maintenance calories with a balanced distribution of macronutrients")
        add("Carbohydrates", "45-60g per meal, preferring low glycemic index sources")

    add("Protein", "20-25g per meal from lean sources (fish, poultry, legumes)")
    add("Healthy Fats", "25-30% of daily calories, mainly unsaturated (olive oil, nuts, fish)")
    add("Fiber", "25-30g per day from vegetables, whole grains and legumes")

    if snapshot.has_hypertension:
        add("Sodium", "Limit sodium to under 2300mg/day and increase potassium-rich foods")
    if snapshot.has_hyperlipidemia:
        add("Cholesterol", "Saturated fat under 7% of calories and more soluble fiber (oats, legumes)")

    if category == BMICategory.OBESITY:
        add("Physical Activity", "150 min/week of walking, progressing to 300 min/week")
    else:
        add("Physical Activity", "150 min/week of moderate activity plus 2 resistance training sessions")

    add("Meal Schedule", "3 main meals and 2 small snacks, 3-4 hours apart")

    return plan


# ==================== PATIENT PROFILE ====================

@dataclass
class PatientProfileSummary:
    age: int
    gender: str
    height: Optional[float]
    weight: Optional[float]
    bmi: Optional[float]
    current_hba1c: Optional[float]
    disease_duration: Optional[float]
    blood_pressure: str
    comorbidities: Dict[str, bool]
    current_medications: List[Dict[str, str]]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_patient_profile(patient: PatientRecord,
                          snapshot: Optional[AnalysisSnapshot] = None,
                          reference_year: Optional[int] = None) -> PatientProfileSummary:
    """Headline facts about the target patient, echoed alongside a recommendation"""
    if snapshot is None:
        snapshot = patient.latest_snapshot() or AnalysisSnapshot()
    year = reference_year if reference_year is not None else datetime.now().year

    disease_duration = snapshot.disease_duration
    if disease_duration is None and patient.diagnosis_year is not None:
        disease_duration = year - patient.diagnosis_year

    if snapshot.systolic_pressure is not None and snapshot.diastolic_pressure is not None:
        blood_pressure = f"{snapshot.systolic_pressure:g}/{snapshot.diastolic_pressure:g}"
    else:
        blood_pressure = "N/A"

    return PatientProfileSummary(
        age=patient.age(year),
        gender=patient.sex.value,
        height=patient.height,
        weight=patient.weight,
        bmi=patient.bmi(),
        current_hba1c=snapshot.hemoglobin_a1c,
        disease_duration=disease_duration,
        blood_pressure=blood_pressure,
        comorbidities={
            "hyperlipidemia": snapshot.has_hyperlipidemia,
            "hypertension": snapshot.has_hypertension,
        },
        current_medications=[
            {"medication": entry.drug.value, "intensity": entry.intensity.value}
            for entry in patient.prescribed_medications()
        ],
    )


# ==================== USAGE STATISTICS ====================

@dataclass
class MedicationUsage:
    medication: str
    count: int
    percentage: float


@dataclass
class MedicationUsageStatistics:
    total_patients: int
    total_prescriptions: int
    usage: List[MedicationUsage]
    most_common: List[MedicationUsage]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def medication_usage_statistics(population: Sequence[PatientRecord]) -> MedicationUsageStatistics:
    """
    Per-drug prescription counts across the population, in taxonomy order.
    Percentages are relative to the number of patients, rounded to 0.1.
    """
    total_patients = len(population)
    counts: Dict[DiabetesDrug, int] = {drug: 0 for drug in DiabetesDrug}

    for patient in population:
        for entry in patient.prescribed_medications():
            counts[entry.drug] += 1

    usage = [
        MedicationUsage(
            medication=drug.value,
            count=count,
            percentage=round(count / total_patients * 100, 1) if total_patients else 0.0,
        )
        for drug, count in counts.items()
    ]

    # stable sort keeps taxonomy order among equal counts
    most_common = [u for u in sorted(usage, key=lambda u: u.count, reverse=True) if u.count > 0]

    return MedicationUsageStatistics(
        total_patients=total_patients,
        total_prescriptions=sum(counts.values()),
        usage=usage,
        most_common=most_common[:MOST_COMMON_LIMIT],
    )


# ==================== PERSONALIZED INSIGHTS ====================

def personalized_insights(report: RecommendationReport,
                          snapshot: Optional[AnalysisSnapshot] = None) -> List[str]:
    insights = []

    if report.recommendations:
        top = report.recommendations[0]
        if top.evidence_level == EvidenceLevel.GUIDELINE:
            insights.append(f"{top.drug.display_name} is recommended as standard-of-care "
                            f"first-line therapy")
        else:
            insights.append(f"{top.drug.display_name} is used by {top.count} of the "
                            f"{report.based_on_patients} most similar patients")

    hba1c = report.target_hba1c
    if hba1c > 8.0:
        insights.append("HbA1c is above the recommended target - treatment intensification "
                        "and strict dietary control are advised")
    elif hba1c <= 7.0:
        insights.append("HbA1c is at target - maintain current treatment and lifestyle")

    if snapshot is not None and snapshot.has_hypertension and snapshot.has_hyperlipidemia:
        insights.append("Hypertension with hyperlipidemia calls for medication with "
                        "cardiovascular benefits and a modified DASH diet")

    return insights
