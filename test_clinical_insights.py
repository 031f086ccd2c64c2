"""
Test Suite for Clinical Insights (monitoring, lifestyle, patient profile, usage statistics, insights)

Run: python test_clinical_insights.py   (or: pytest)
"""

import sys

from clinical_insights import (
    BMICategory,
    build_lifestyle_plan,
    build_monitoring_plan,
    build_patient_profile,
    classify_bmi,
    medication_usage_statistics,
    personalized_insights,
)
from drug_taxonomy import DiabetesDrug, Intensity
from patient_records import AnalysisSnapshot, PatientRecord
from recommendation_ranker import recommend_medications
from test_patient_records import make_patient, run_all_tests as _run
from test_recommendation_ranker import make_result


# (HbA1c, expected test frequency, expected HbA1c target)
MONITORING_CASES = [
    (6.8, "Every 6 months", "<7.0%"),
    (8.0, "Every 6 months", "<7.0%"),
    (8.5, "Every 3 months", "<7.0%"),
    (9.5, "Every 3 months", "<8.0%"),
    (None, "Every 6 months", "<7.0%"),
]


def test_monitoring_plan_table():
    for hba1c, frequency, target in MONITORING_CASES:
        plan = build_monitoring_plan(AnalysisSnapshot(hemoglobin_a1c=hba1c))
        assert plan.hba1c.frequency == frequency, hba1c
        assert plan.hba1c.target == target, hba1c


def test_blood_pressure_target_depends_on_hypertension():
    assert build_monitoring_plan(AnalysisSnapshot(has_hypertension=True)).blood_pressure.target == "<130/80 mmHg"
    assert build_monitoring_plan(AnalysisSnapshot()).blood_pressure.target == "<140/90 mmHg"

    plan = build_monitoring_plan(AnalysisSnapshot(hemoglobin_a1c=7.2)).to_dict()
    assert set(plan) == {"hba1c", "blood_glucose", "blood_pressure", "lipids"}
    assert "LDL" in plan["lipids"]["target"]


def test_medication_usage_statistics():
    population = [
        make_patient("p1", medications={"metformin": "M", "sitagliptin": "L"}),
        make_patient("p2", medications={"metformin": "H"}),
        make_patient("p3", medications={"metformin": "M", "insulin": "M"}),
        make_patient("p4"),
    ]

    stats = medication_usage_statistics(population)

    assert stats.total_patients == 4
    assert stats.total_prescriptions == 5
    assert len(stats.usage) == len(DiabetesDrug)

    usage = {u.medication: u for u in stats.usage}
    assert usage["metformin"].count == 3
    assert usage["metformin"].percentage == 75.0
    assert usage["insulin"].percentage == 25.0
    assert usage["acarbose"].count == 0

    assert [u.medication for u in stats.most_common] == ["metformin", "sitagliptin", "insulin"]


def test_usage_statistics_of_empty_population():
    stats = medication_usage_statistics([])
    assert stats.total_patients == 0
    assert stats.most_common == []
    assert all(u.percentage == 0.0 for u in stats.usage)


def test_personalized_insights_for_uncontrolled_comorbid_patient():
    target = make_patient("t", hba1c_history=(9.5,), hasHypertension=True, hasHyperlipidemia=True)
    results = [
        make_result("a", 0.8, [(DiabetesDrug.METFORMIN, Intensity.MEDIUM)]),
        make_result("b", 0.7, [(DiabetesDrug.METFORMIN, Intensity.MEDIUM)]),
    ]
    report = recommend_medications(target, results)

    insights = personalized_insights(report, target.latest_snapshot())

    assert len(insights) == 3
    assert insights[0] == "Metformin is used by 2 of the 2 most similar patients"
    assert insights[1].startswith("HbA1c is above the recommended target")
    assert "cardiovascular" in insights[2]


def test_personalized_insights_for_fallback_at_target():
    target = make_patient("t", hba1c_history=(6.5,))
    report = recommend_medications(target, [])

    insights = personalized_insights(report, target.latest_snapshot())

    assert insights == [
        "Metformin is recommended as standard-of-care first-line therapy",
        "HbA1c is at target - maintain current treatment and lifestyle",
    ]


# (weight in kg at 200 cm height, expected BMI, expected category)
BMI_CASES = [
    (73.6, 18.4, BMICategory.UNDERWEIGHT),
    (74.0, 18.5, BMICategory.NORMAL),
    (99.6, 24.9, BMICategory.NORMAL),
    (100.0, 25.0, BMICategory.OVERWEIGHT),
    (119.6, 29.9, BMICategory.OVERWEIGHT),
    (120.0, 30.0, BMICategory.OBESITY),
]


def lifestyle_of(patient) -> dict:
    return {item.category: item.recommendation for item in build_lifestyle_plan(patient)}


def test_bmi_category_boundaries():
    for weight, bmi, category in BMI_CASES:
        patient = make_patient("p")
        patient.height, patient.weight = 200.0, weight

        assert patient.bmi() == bmi, weight
        assert classify_bmi(patient.bmi()) == category, weight
        assert lifestyle_of(patient)["Weight Control"].startswith(f"BMI {bmi} ({category.value})"), weight


def test_lifestyle_calorie_and_activity_follow_bmi():
    obese = make_patient("p")
    obese.height, obese.weight = 170.0, 95.0
    plan = lifestyle_of(obese)
    assert "500-750 kcal" in plan["Nutrition"]
    assert plan["Carbohydrates"].startswith("30-40g")
    assert "300 min/week" in plan["Physical Activity"]

    overweight = make_patient("p")
    overweight.height, overweight.weight = 170.0, 78.0
    plan = lifestyle_of(overweight)
    assert "300-500 kcal" in plan["Nutrition"]
    assert "resistance" in plan["Physical Activity"]

    normal = make_patient("p")
    normal.height, normal.weight = 170.0, 65.0
    assert "low glycemic index" in lifestyle_of(normal)["Carbohydrates"]


def test_lifestyle_without_height_or_weight_skips_weight_advice():
    plan = lifestyle_of(make_patient("p", hba1c_history=(6.5,)))

    assert "Weight Control" not in plan
    assert "Nutrition" not in plan
    assert "Carbohydrates" not in plan
    assert {"Protein", "Healthy Fats", "Fiber", "Physical Activity", "Meal Schedule"} <= set(plan)
    assert "resistance" in plan["Physical Activity"]


# (HbA1c, expected glycemic category or None)
GLYCEMIC_CASES = [
    (9.1, "Urgent Glycemic Control"),
    (8.0, "Glycemic Control"),
    (7.3, "Glycemic Control"),
    (7.0, None),
]


def test_lifestyle_glycemic_advice_table():
    for hba1c, expected in GLYCEMIC_CASES:
        plan = lifestyle_of(make_patient("p", hba1c_history=(hba1c,)))
        glycemic = [c for c in plan if c.endswith("Glycemic Control")]
        assert glycemic == ([expected] if expected else []), hba1c


def test_lifestyle_comorbidity_branches():
    neither = lifestyle_of(make_patient("p"))
    assert "Sodium" not in neither and "Cholesterol" not in neither

    hypertension = lifestyle_of(make_patient("p", hasHypertension=True))
    assert "2300mg" in hypertension["Sodium"]
    assert "Cholesterol" not in hypertension

    hyperlipidemia = lifestyle_of(make_patient("p", hasHyperlipidemia=True))
    assert "7%" in hyperlipidemia["Cholesterol"]
    assert "Sodium" not in hyperlipidemia

    both = lifestyle_of(make_patient("p", hasHypertension=True, hasHyperlipidemia=True))
    assert {"Sodium", "Cholesterol"} <= set(both)


def test_patient_profile_summary():
    patient = make_patient("p", hba1c_history=(8.2, 7.9), birth_year=1964,
                           medications={"metformin": "H", "sitagliptin": "L"},
                           hasHypertension=True)
    patient.height, patient.weight = 175.0, 80.0

    profile = build_patient_profile(patient, reference_year=2024).to_dict()

    assert profile["age"] == 60
    assert profile["gender"] == "male"
    assert profile["bmi"] == 26.1
    assert profile["current_hba1c"] == 7.9
    assert profile["disease_duration"] == 6
    assert profile["blood_pressure"] == "135/85"
    assert profile["comorbidities"] == {"hyperlipidemia": False, "hypertension": True}
    assert profile["current_medications"] == [
        {"medication": "metformin", "intensity": "H"},
        {"medication": "sitagliptin", "intensity": "L"},
    ]


def test_patient_profile_fallbacks():
    patient = PatientRecord.from_dict({
        "_id": "p",
        "birthYear": 1970,
        "gender": "F",
        "diagnosisYear": 2018,
        "analysisData": [{"date": "2023-01-01", "systolicPressure": 128}],
    })

    profile = build_patient_profile(patient, reference_year=2024)

    assert profile.disease_duration == 6
    assert profile.blood_pressure == "N/A"
    assert profile.bmi is None
    assert profile.current_hba1c is None
    assert profile.current_medications == []


ALL_TESTS = [
    test_monitoring_plan_table,
    test_blood_pressure_target_depends_on_hypertension,
    test_medication_usage_statistics,
    test_usage_statistics_of_empty_population,
    test_personalized_insights_for_uncontrolled_comorbid_patient,
    test_personalized_insights_for_fallback_at_target,
    test_bmi_category_boundaries,
    test_lifestyle_calorie_and_activity_follow_bmi,
    test_lifestyle_without_height_or_weight_skips_weight_advice,
    test_lifestyle_glycemic_advice_table,
    test_lifestyle_comorbidity_branches,
    test_patient_profile_summary,
    test_patient_profile_fallbacks,
]


def run_all_tests() -> bool:
    return _run(ALL_TESTS, title="CLINICAL INSIGHTS")


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
