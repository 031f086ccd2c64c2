"""
Error taxonomy for the T-D3K similarity and recommendation engine.

PatientNotFound and NoComparisonData are user-facing and terminal for the
request. MissingAnalysisData is terminal for a single candidate (the
orchestrator skips it). DimensionMismatch signals a programming error
between profile vectors and is never shown to a user.
"""

from typing import Any


class TD3KError(Exception):
    """Base class for all engine errors"""


class PatientNotFound(TD3KError):
    """Target patient identifier does not resolve in the repository"""

    def __init__(self, patient_id: Any):
        self.patient_id = patient_id
        super().__init__(f"Patient {patient_id!r} not found")


class MissingAnalysisData(TD3KError):
    """Patient has no analysis snapshot at all"""

    def __init__(self, patient_id: Any):
        self.patient_id = patient_id
        super().__init__(f"Patient {patient_id!r} has no analysis data")


class NoComparisonData(MissingAnalysisData):
    """The target patient itself has no analysis data to compare against"""

    def __init__(self, patient_id: Any):
        super().__init__(patient_id)
        self.args = (f"Target patient {patient_id!r} has no analysis data for comparison",)


class DimensionMismatch(TD3KError, ValueError):
    """Two clinical profile vectors differ in length"""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Profile vectors must have the same length ({left} != {right})")
