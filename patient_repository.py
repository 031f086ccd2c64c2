"""
Patient Repository - Read-Only Access to Recorded Patients

The engine reads patients through this interface only; it never writes.
The production record store lives outside this project. The in-memory
implementation below backs the HTTP adapter, offline evaluation and tests,
and can be seeded from a JSON export of the store.
"""

from typing import Any, Dict, Iterable, List, Optional
from abc import ABC, abstractmethod
from pathlib import Path
import json
import logging

from patient_records import PatientRecord

logger = logging.getLogger(__name__)


class PatientRepository(ABC):
    """Collaborator contract consumed by the similarity engine"""

    @abstractmethod
    def get_by_id(self, patient_id: str) -> Optional[PatientRecord]:
        """Return the patient, or None if the id does not resolve"""

    @abstractmethod
    def get_all_except(self, patient_id: str) -> List[PatientRecord]:
        """Every stored patient other than patient_id (the comparison population)"""

    @abstractmethod
    def get_all(self) -> List[PatientRecord]:
        """Every stored patient (used by population statistics and offline evaluation)"""


class InMemoryPatientRepository(PatientRepository):
    """
    Dictionary-backed repository. Iteration follows insertion order, so
    rankings of equally scored candidates are reproducible.
    """

    def __init__(self, patients: Iterable[PatientRecord] = ()):
        self._patients: Dict[str, PatientRecord] = {}
        for patient in patients:
            self.add(patient)

    def add(self, patient: PatientRecord) -> None:
        self._patients[patient.patient_id] = patient

    def __len__(self) -> int:
        return len(self._patients)

    def get_by_id(self, patient_id: str) -> Optional[PatientRecord]:
        return self._patients.get(str(patient_id))

    def get_all_except(self, patient_id: str) -> List[PatientRecord]:
        excluded = str(patient_id)
        return [p for pid, p in self._patients.items() if pid != excluded]

    def get_all(self) -> List[PatientRecord]:
        return list(self._patients.values())

    @classmethod
    def from_documents(cls, documents: Iterable[Dict[str, Any]]) -> "InMemoryPatientRepository":
        return cls(PatientRecord.from_dict(doc) for doc in documents)

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryPatientRepository":
        """
        Load a JSON array of patient documents (or {"patients": [...]}).
        """
        with Path(path).open(encoding="utf-8") as fh:
            payload = json.load(fh)

        if isinstance(payload, dict):
            payload = payload.get("patients", [])

        repository = cls.from_documents(payload)
        logger.info(f"📂 Loaded {len(repository)} patients from {path}")
        return repository
