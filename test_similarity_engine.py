"""
Test Suite for T-D3K Similarity (D3K distance, HbA1c trajectories, ranking)

Validates the mathematical properties of the similarity measure and the
orchestrator's ranking and skip rules.

Run: python test_similarity_engine.py   (or: pytest)
"""

import math
import sys
from typing import Optional, Sequence

from clinical_profile import ClinicalProfileExtractor
from d3k_similarity import D3KCalculator, FEATURE_WEIGHTS
from hba1c_trajectory import (
    NEUTRAL_TRAJECTORY_SIMILARITY,
    TrajectoryComparator,
    encode_trajectory,
    generate_ngrams,
    ngram_cosine_similarity,
)
from patient_repository import InMemoryPatientRepository
from similarity_engine import TD3KSimilarityEngine, filter_meaningful, format_similarity_result
from similarity_errors import DimensionMismatch, NoComparisonData, PatientNotFound
from test_patient_records import REFERENCE_YEAR, make_patient, run_all_tests as _run


def make_engine() -> TD3KSimilarityEngine:
    return TD3KSimilarityEngine(extractor=ClinicalProfileExtractor(reference_year=REFERENCE_YEAR))


# ==================== SCENARIO TABLES ====================

class TrajectoryCase:
    """Trajectory encoding scenario"""
    def __init__(self, name: str, readings: Sequence[float], expected: Optional[str]):
        self.name = name
        self.readings = readings
        self.expected = expected


TRAJECTORY_CASES = [
    TrajectoryCase("Normal and stable", [6.5, 6.8], "N"),
    TrajectoryCase("Abnormal and stable", [8.0, 8.2], "A"),
    TrajectoryCase("Rising", [7.0, 7.8], "U"),
    TrajectoryCase("Falling", [9.0, 8.0], "D"),
    TrajectoryCase("Change equal to threshold is stable", [6.0, 6.5], "N"),
    TrajectoryCase("Stable classified by earlier reading", [7.0, 7.2, 8.0, 7.0], "NUD"),
    TrajectoryCase("Single reading has no trajectory", [7.5], None),
    TrajectoryCase("No readings", [], None),
]

# (trajectory a, trajectory b, expected similarity) - pairs with unequal n-gram counts
SYMMETRY_CASES = [
    ("NNNNNNNU", "NNNNNNUD", 3 / math.sqrt(15)),
    ("NNNNNNNNN", "NNNNNNN", 1.0),
    ("UUDDUUDDA", "UUDD", 0.0),
    ("ANANANAN", "NANANAU", 1 / math.sqrt(10)),
    ("NNUUDDAN", "NNUUDD", 1 / math.sqrt(3)),
]

# HbA1c history pairs of different lengths
HISTORY_PAIRS = [
    ([7.0, 7.1, 7.0, 7.2, 7.1, 7.0, 7.1, 8.0], [7.0, 7.1, 7.0, 7.2, 7.1, 7.0, 7.8, 7.0]),
    ([9.5, 8.8, 8.1, 7.6, 7.0, 6.8, 6.9], [9.0, 8.2, 7.5, 7.1]),
    ([6.5, 7.4, 8.3, 9.1], [6.4, 6.5, 6.4, 7.3, 8.2, 9.0, 9.9, 10.6, 10.5]),
]


# ==================== D3K ====================

def test_identical_profiles_score_one():
    engine = make_engine()
    a = make_patient("a", hba1c_history=(8.4, 8.9, 7.6), medications={"metformin": "M"})
    b = make_patient("b", hba1c_history=(8.4, 8.9, 7.6), medications={"metformin": "M"})

    result = engine.score_candidate(a, b)

    assert result.d3k_similarity == 1.0
    assert result.trajectory_similarity == 1.0
    assert result.score >= 0.95


def test_d3k_is_symmetric_and_bounded():
    extractor = ClinicalProfileExtractor(reference_year=REFERENCE_YEAR)
    d3k = D3KCalculator()
    a = extractor.extract(make_patient("a", hba1c_history=(6.1,), birth_year=1990, gender="F"))
    b = extractor.extract(make_patient("b", hba1c_history=(14.0,), birth_year=1940,
                                       hasHypertension=True, systolicPressure=190))

    forward = d3k.similarity(a, b)
    backward = d3k.similarity(b, a)

    assert math.isclose(forward, backward)
    assert 0.0 < forward < 1.0

    # maximally distant vectors still score above zero
    assert d3k.similarity([0.0] * 12, [1.0] * 12) > 0.0


def test_d3k_weights_put_hba1c_highest():
    assert max(FEATURE_WEIGHTS, key=FEATURE_WEIGHTS.get) == "hba1c"
    assert all(w >= 0 for w in FEATURE_WEIGHTS.values())


def test_dimension_mismatch_raised():
    try:
        D3KCalculator().similarity([0.5] * 12, [0.5] * 11)
    except DimensionMismatch as e:
        assert isinstance(e, ValueError)
        return
    raise AssertionError("vectors of different length must be rejected")


# ==================== TRAJECTORY ====================

def test_trajectory_encoding_table():
    for case in TRAJECTORY_CASES:
        assert encode_trajectory(case.readings) == case.expected, case.name


def test_trajectory_encoding_is_deterministic():
    readings = [9.2, 8.1, 8.3, 7.4, 7.5, 6.8, 6.9, 7.9]
    first = encode_trajectory(readings)
    assert first == encode_trajectory(list(readings))
    assert len(first) == len(readings) - 1


def test_ngram_generation():
    assert generate_ngrams("NNUUDDA", 6) == ["NNUUDD", "NUUDDA"]
    assert generate_ngrams("UD", 6) == ["UD"]
    assert generate_ngrams("", 6) == []


def test_ngram_cosine_similarity():
    assert ngram_cosine_similarity("NNUUDDA", "NNUUDDA") == 1.0
    assert ngram_cosine_similarity("UD", "UD") == 1.0
    assert ngram_cosine_similarity("NNUUDD", "AAAAAA") == 0.0
    assert ngram_cosine_similarity("", "N") == 0.0
    assert ngram_cosine_similarity("", "") == 0.0

    partial = ngram_cosine_similarity("NNUUDDA", "NNUUDDU")
    assert math.isclose(partial, 0.5)


def test_ngram_cosine_similarity_is_symmetric_table():
    for a, b, expected in SYMMETRY_CASES:
        forward = ngram_cosine_similarity(a, b)
        backward = ngram_cosine_similarity(b, a)
        assert math.isclose(forward, backward), (a, b)
        assert math.isclose(forward, expected, abs_tol=1e-12), (a, b, forward)
        assert 0.0 <= forward <= 1.0 + 1e-12


def test_trajectory_comparator_is_symmetric():
    comparator = TrajectoryComparator()
    for history1, history2 in HISTORY_PAIRS:
        assert math.isclose(comparator.similarity(history1, history2),
                            comparator.similarity(history2, history1)), (history1, history2)


def test_short_history_uses_neutral_trajectory():
    comparator = TrajectoryComparator()
    assert comparator.similarity([8.0], [8.0, 8.5, 9.5]) == NEUTRAL_TRAJECTORY_SIMILARITY
    assert comparator.similarity([], []) == NEUTRAL_TRAJECTORY_SIMILARITY


def test_single_reading_candidate_combined_score():
    engine = make_engine()
    target = make_patient("target", hba1c_history=(7.2, 7.9, 8.6))
    candidate = make_patient("candidate", hba1c_history=(8.0,), birth_year=1972)

    result = engine.score_candidate(target, candidate)

    assert result.trajectory_similarity == 0.5
    assert math.isclose(result.score, 0.5 * result.d3k_similarity + 0.25)


# ==================== ORCHESTRATOR ====================

def test_ranking_descending_and_stable_on_ties():
    target = make_patient("target", hba1c_history=(7.0, 7.1))
    twin_b = make_patient("b", hba1c_history=(9.0, 9.8), birth_year=1950)
    twin_c = make_patient("c", hba1c_history=(9.0, 9.8), birth_year=1950)
    distant = make_patient("d", hba1c_history=(13.0, 11.0), birth_year=1995, gender="F",
                           hasHypertension=True, hasHyperlipidemia=True, systolicPressure=200)

    engine = make_engine()
    ranked = engine.rank(target, [twin_b, twin_c, distant])

    assert [r.patient_id for r in ranked] == ["b", "c", "d"]
    assert ranked[0].score == ranked[1].score > ranked[2].score

    reordered = engine.rank(target, [twin_c, distant, twin_b])
    assert [r.patient_id for r in reordered] == ["c", "b", "d"]


def test_scores_within_unit_interval():
    target = make_patient("target", hba1c_history=(6.5, 7.5, 9.0), medications={"metformin": "L"})
    population = [
        make_patient("p1", hba1c_history=(12.0, 10.0, 8.0), birth_year=1998, gender="F"),
        make_patient("p2", hba1c_history=(5.0,), cholesterolLDL=190),
        make_patient("p3", hba1c_history=(6.5, 7.5, 9.0), medications={"metformin": "L"}),
    ]

    for result in make_engine().rank(target, population):
        assert 0.0 <= result.score <= 1.0
        assert 0.0 < result.d3k_similarity <= 1.0


def test_candidates_without_analysis_are_skipped():
    repository = InMemoryPatientRepository([
        make_patient("target", hba1c_history=(8.0, 8.4)),
        make_patient("no-labs", hba1c_history=()),
        make_patient("ok", hba1c_history=(8.1, 8.3)),
    ])

    results = make_engine().compute_similarity("target", repository)

    assert [r.patient_id for r in results] == ["ok"]


def test_target_is_excluded_from_its_own_ranking():
    target = make_patient("target", hba1c_history=(8.0,))
    results = make_engine().rank(target, [target, make_patient("other")])
    assert [r.patient_id for r in results] == ["other"]


def test_unknown_target_raises_patient_not_found():
    repository = InMemoryPatientRepository([make_patient("a")])
    try:
        make_engine().compute_similarity("missing", repository)
    except PatientNotFound as e:
        assert e.patient_id == "missing"
        return
    raise AssertionError("unknown target must raise PatientNotFound")


def test_target_without_analysis_raises_no_comparison_data():
    repository = InMemoryPatientRepository([
        make_patient("target", hba1c_history=()),
        make_patient("a"),
    ])
    try:
        make_engine().compute_similarity("target", repository)
    except NoComparisonData:
        return
    raise AssertionError("target without analysis data must raise NoComparisonData")


def test_empty_population_returns_empty_list():
    repository = InMemoryPatientRepository([make_patient("alone")])
    assert make_engine().compute_similarity("alone", repository) == []


def test_filter_and_format_results():
    target = make_patient("target", hba1c_history=(7.0, 7.4))
    candidate = make_patient("c", hba1c_history=(7.1, 7.3), medications={"sitagliptin": "H"})
    results = make_engine().rank(target, [candidate])

    assert filter_meaningful(results, 0.1) == results
    assert filter_meaningful(results, 1.0) == []

    formatted = format_similarity_result(results[0])
    assert formatted["patient_id"] == "c"
    assert formatted["medications"] == [{"medication": "sitagliptin", "intensity": "H"}]
    assert formatted["details"]["hba1c_readings"] == 2


# ==================== RUNNER ====================

ALL_TESTS = [
    test_identical_profiles_score_one,
    test_d3k_is_symmetric_and_bounded,
    test_d3k_weights_put_hba1c_highest,
    test_dimension_mismatch_raised,
    test_trajectory_encoding_table,
    test_trajectory_encoding_is_deterministic,
    test_ngram_generation,
    test_ngram_cosine_similarity,
    test_ngram_cosine_similarity_is_symmetric_table,
    test_trajectory_comparator_is_symmetric,
    test_short_history_uses_neutral_trajectory,
    test_single_reading_candidate_combined_score,
    test_ranking_descending_and_stable_on_ties,
    test_scores_within_unit_interval,
    test_candidates_without_analysis_are_skipped,
    test_target_is_excluded_from_its_own_ranking,
    test_unknown_target_raises_patient_not_found,
    test_target_without_analysis_raises_no_comparison_data,
    test_empty_population_returns_empty_list,
    test_filter_and_format_results,
]


def run_all_tests() -> bool:
    return _run(ALL_TESTS, title="T-D3K SIMILARITY")


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
