"""Shared dataclasses and enums used across the census, storage, and reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional, Tuple

VACANT_NAME = "Vacant"
SLOTS_PER_NURSE = 6
NURSE_CARD_HEIGHT = 3
TECH_CARD_HEIGHT = 1
UNASSIGNED = "Unassigned"


class StaffRole(str, Enum):
    STAFF_NURSE = "Staff Nurse"
    CHARGE_NURSE = "Charge Nurse"
    FLOAT_POOL_NURSE = "Float Pool Nurse"
    UNIT_CLERK = "Unit Clerk"
    PATIENT_CARE_TECH = "Patient Care Tech"
    SITTER = "Sitter"


ASSIGNABLE_ROLES = (StaffRole.STAFF_NURSE, StaffRole.FLOAT_POOL_NURSE)
SINGLETON_ROLES = (StaffRole.CHARGE_NURSE, StaffRole.UNIT_CLERK)


class MobilityStatus(str, Enum):
    BED_REST = "Bed Rest"
    ASSISTED = "Assisted"
    INDEPENDENT = "Independent"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class CodeStatus(str, Enum):
    FULL_CODE = "Full Code"
    DNR = "DNR"
    DNI = "DNI"
    DNR_DNI = "DNR/DNI"


class OrientationStatus(str, Enum):
    X1 = "x1"
    X2 = "x2"
    X3 = "x3"
    X4 = "x4"
    NOT_APPLICABLE = "N/A"


@dataclass(frozen=True)
class Patient:
    """One bed on the unit grid; an empty bed carries the Vacant sentinel name."""

    id: str
    bed_number: int
    room_designation: str
    grid_row: int
    grid_column: int
    name: str = VACANT_NAME
    age: int = 0
    gender: Optional[Gender] = None
    admit_date: Optional[date] = None
    discharge_date: Optional[date] = None
    chief_complaint: str = "N/A"
    ldas: Tuple[str, ...] = ()
    diet: str = "N/A"
    mobility: MobilityStatus = MobilityStatus.INDEPENDENT
    code_status: CodeStatus = CodeStatus.FULL_CODE
    orientation_status: OrientationStatus = OrientationStatus.NOT_APPLICABLE
    assigned_nurse: Optional[str] = None
    is_fall_risk: bool = False
    is_seizure_risk: bool = False
    is_aspiration_risk: bool = False
    is_isolation: bool = False
    is_in_restraints: bool = False
    is_comfort_care_dnr: bool = False
    is_blocked: bool = False
    notes: Optional[str] = None

    @property
    def is_vacant(self) -> bool:
        return self.name == VACANT_NAME

    @property
    def is_active(self) -> bool:
        return not self.is_vacant and not self.is_blocked

    @property
    def is_placed(self) -> bool:
        return self.grid_row > 0 and self.grid_column > 0


def empty_slots() -> Tuple[Optional[str], ...]:
    return (None,) * SLOTS_PER_NURSE


@dataclass(frozen=True)
class Nurse:
    id: str
    name: str
    grid_row: int
    grid_column: int
    role: StaffRole = StaffRole.STAFF_NURSE
    spectra: Optional[str] = None
    relief: Optional[str] = None
    assigned_patient_ids: Tuple[Optional[str], ...] = field(default_factory=empty_slots)

    @property
    def assigned_ids(self) -> List[str]:
        return [pid for pid in self.assigned_patient_ids if pid is not None]

    @property
    def is_assignable(self) -> bool:
        return self.role in ASSIGNABLE_ROLES


@dataclass(frozen=True)
class PatientCareTech:
    id: str
    name: str
    grid_row: int
    grid_column: int
    spectra: Optional[str] = None
    assignment_group: str = ""


@dataclass(frozen=True)
class Spectra:
    id: str
    in_service: bool = True


@dataclass(frozen=True)
class StaffAssignments:
    """Charge Nurse and Unit Clerk, tracked outside the bedside roster."""

    charge_nurse_name: str = UNASSIGNED
    unit_clerk_name: str = UNASSIGNED


@dataclass(frozen=True)
class OperationResult:
    success: bool
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, message: Optional[str] = None) -> "OperationResult":
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)


__all__ = [
    "ASSIGNABLE_ROLES",
    "CodeStatus",
    "Gender",
    "MobilityStatus",
    "NURSE_CARD_HEIGHT",
    "Nurse",
    "OperationResult",
    "OrientationStatus",
    "Patient",
    "PatientCareTech",
    "SINGLETON_ROLES",
    "SLOTS_PER_NURSE",
    "Spectra",
    "StaffAssignments",
    "StaffRole",
    "TECH_CARD_HEIGHT",
    "UNASSIGNED",
    "VACANT_NAME",
    "empty_slots",
]
