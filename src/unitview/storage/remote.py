"""HTTP client that publishes shift assignment snapshots to a document store."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests

from unitview.census.types import Nurse, OperationResult, Patient
from unitview.config.loader import RemoteStoreConfig

LOGGER = logging.getLogger(__name__)

DAY_SHIFT_START_HOUR = 2
NIGHT_SHIFT_START_HOUR = 14
_WHITESPACE = re.compile(r"\s+")


def shift_for(now: datetime) -> str:
    """Day shift runs 02:00-13:59; everything else is Night."""
    return "Day" if DAY_SHIFT_START_HOUR <= now.hour < NIGHT_SHIFT_START_HOUR else "Night"


def snapshot_id(layout_name: str, now: datetime) -> str:
    return f"{_WHITESPACE.sub('-', layout_name)}-{now.date().isoformat()}-{shift_for(now)}"


@dataclass(frozen=True)
class AssignedPatient:
    patient_id: str
    room_designation: str
    patient_name: str


@dataclass(frozen=True)
class NurseAssignment:
    nurse_id: str
    nurse_name: str
    spectra: Optional[str]
    assigned_patients: Tuple[AssignedPatient, ...]


@dataclass(frozen=True)
class AssignmentSnapshot:
    id: str
    layout_name: str
    shift: str
    date: datetime
    charge_nurse_name: str
    assignments: Tuple[NurseAssignment, ...]

    @classmethod
    def build(
        cls,
        layout_name: str,
        nurses: Sequence[Nurse],
        patients: Sequence[Patient],
        charge_nurse_name: str,
        now: datetime,
    ) -> "AssignmentSnapshot":
        by_id = {p.id: p for p in patients}
        assignments: List[NurseAssignment] = []
        for nurse in nurses:
            assigned = []
            for patient_id in nurse.assigned_ids:
                patient = by_id.get(patient_id)
                assigned.append(
                    AssignedPatient(
                        patient_id=patient_id,
                        room_designation=patient.room_designation if patient else "N/A",
                        patient_name=patient.name if patient else "Unknown",
                    )
                )
            assignments.append(
                NurseAssignment(
                    nurse_id=nurse.id,
                    nurse_name=nurse.name,
                    spectra=nurse.spectra,
                    assigned_patients=tuple(assigned),
                )
            )
        return cls(
            id=snapshot_id(layout_name, now),
            layout_name=layout_name,
            shift=f"{shift_for(now)} Shift",
            date=now,
            charge_nurse_name=charge_nurse_name,
            assignments=tuple(assignments),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "layoutName": self.layout_name,
            "shift": self.shift,
            "date": self.date.isoformat(),
            "chargeNurseName": self.charge_nurse_name,
            "assignments": [
                {
                    "nurseId": entry.nurse_id,
                    "nurseName": entry.nurse_name,
                    "spectra": entry.spectra,
                    "assignedPatients": [
                        {
                            "patientId": patient.patient_id,
                            "roomDesignation": patient.room_designation,
                            "patientName": patient.patient_name,
                        }
                        for patient in entry.assigned_patients
                    ],
                }
                for entry in self.assignments
            ],
        }


class SnapshotClient:
    """Writes assignment snapshots with an HTTP PUT per document."""

    def __init__(self, config: RemoteStoreConfig, *, session: Optional[requests.Session] = None) -> None:
        self._config = config
        base_url = (config.base_url or "").rstrip("/")
        self._collection_url = f"{base_url}/{config.collection}" if base_url else ""
        self._timeout_s = max(config.timeout_ms, 1) / 1000.0
        self._session = session or requests.Session()
        self._last_error: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return self._config.enabled and bool(self._collection_url)

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def document_url(self, document_id: str) -> str:
        return f"{self._collection_url}/{quote(document_id, safe='')}"

    def publish(self, snapshot: AssignmentSnapshot) -> OperationResult:
        if not self.enabled:
            return OperationResult.fail("Remote store is not configured.")
        url = self.document_url(snapshot.id)
        try:
            start = time.perf_counter()
            response = self._session.put(url, json=snapshot.to_document(), timeout=self._timeout_s)
            latency_ms = (time.perf_counter() - start) * 1000.0
            response.raise_for_status()
        except requests.RequestException as exc:
            self._last_error = f"{exc.__class__.__name__}: {exc}"
            LOGGER.warning("Failed to publish assignments %s (%s)", snapshot.id, self._last_error)
            return OperationResult.fail("Failed to save assignments to the remote store.")
        self._last_error = None
        LOGGER.debug("Published assignments %s latency=%.2fms", snapshot.id, latency_ms)
        return OperationResult.ok(f"Assignments saved as {snapshot.id}.")


__all__ = [
    "AssignedPatient",
    "AssignmentSnapshot",
    "NurseAssignment",
    "SnapshotClient",
    "shift_for",
    "snapshot_id",
]
