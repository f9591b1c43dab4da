"""Seed data for a fresh unit: beds, the starting nurse roster, and Spectra phones."""

from __future__ import annotations

import random
from dataclasses import replace
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

from unitview.census.grid import DEFAULT_GRID, GridSize, perimeter_cells
from unitview.census.types import (
    CodeStatus,
    Gender,
    MobilityStatus,
    Nurse,
    OrientationStatus,
    Patient,
    Spectra,
    StaffRole,
)

SEED_BED_COUNT = 48
MAX_UNIT_ROOMS = 100

# Probability that a freshly admitted seed patient carries each flag.
RISK_PROBABILITIES = {
    "is_fall_risk": 0.30,
    "is_seizure_risk": 0.10,
    "is_aspiration_risk": 0.15,
    "is_isolation": 0.20,
    "is_in_restraints": 0.05,
}

FIRST_NAMES = (
    "Ava", "Ben", "Carmen", "Dmitri", "Elena", "Farid", "Grace", "Hiro",
    "Imani", "Jonah", "Keiko", "Luis", "Maya", "Nate", "Olga", "Priya",
)
LAST_NAMES = (
    "Alvarez", "Brooks", "Chen", "Dubois", "Eriksen", "Fischer", "Garcia",
    "Haddad", "Ibrahim", "Jensen", "Kowalski", "Lopez", "Moreau", "Nakamura",
)
COMPLAINTS = (
    "Chest pain", "Shortness of breath", "Pneumonia", "CHF exacerbation",
    "Cellulitis", "Syncope", "GI bleed", "Post-op hip repair", "Sepsis",
    "COPD exacerbation", "DKA", "Altered mental status",
)
DIETS = (
    "Regular", "NPO (Nothing by mouth)", "Cardiac Diet", "Diabetic Diet (ADA)",
    "Renal Diet", "Clear Liquids", "Full Liquids", "Mechanical Soft", "Pureed",
)
LDA_CHOICES = ("PIV", "PICC", "Foley", "NG tube", "JP drain", "Central line", "Trach")

SEED_SPECTRA = (
    ("SPEC-1122", True),
    ("SPEC-2231", True),
    ("SPEC-3340", True),
    ("SPEC-4458", True),
    ("SPEC-5563", True),
    ("SPEC-6671", True),
    ("SPEC-7789", True),
    ("SPEC-8894", False),
)

# (id, name, relief, row, col); rows 2-4 and 6-8 stay clear of the perimeter ring.
SEED_NURSES = (
    ("nurse-1", "RN Alice", "RN Eve", 2, 4),
    ("nurse-2", "RN Bob", "RN Frank", 2, 7),
    ("nurse-3", "RN Carol", None, 2, 10),
    ("nurse-4", "RN David", None, 2, 13),
    ("nurse-5", "RN Erin", None, 6, 4),
    ("nurse-6", "RN Felix", None, 6, 7),
)


def room_label(bed_number: int) -> str:
    return f"Room {100 + bed_number}"


def vacant_patient(
    patient_id: str,
    bed_number: int,
    room_designation: str,
    grid_row: int,
    grid_column: int,
    *,
    is_blocked: bool = False,
) -> Patient:
    """Vacant sentinel record for an empty bed."""

    return Patient(
        id=patient_id,
        bed_number=bed_number,
        room_designation=room_designation,
        grid_row=grid_row,
        grid_column=grid_column,
        is_blocked=is_blocked,
    )


def generate_patients(
    size: GridSize = DEFAULT_GRID,
    rng: Optional[random.Random] = None,
    *,
    count: int = SEED_BED_COUNT,
    today: Optional[date] = None,
) -> List[Patient]:
    """Seed beds around the perimeter; every other bed is admitted."""

    rng = rng or random.Random()
    today = today or date.today()
    cells = perimeter_cells(size)
    if count > len(cells):
        raise ValueError(f"Cannot place {count} beds on a perimeter of {len(cells)} cells")
    patients: List[Patient] = []
    for index in range(count):
        bed_number = index + 1
        row, col = cells[index]
        bed = vacant_patient(f"patient-{bed_number}", bed_number, room_label(bed_number), row, col)
        if index % 2 == 0:
            bed = _admit_mock(bed, rng, today)
        patients.append(bed)
    return patients


def generate_nurses() -> List[Nurse]:
    in_service = [spectra_id for spectra_id, active in SEED_SPECTRA if active]
    return [
        Nurse(
            id=nurse_id,
            name=name,
            role=StaffRole.STAFF_NURSE,
            relief=relief,
            spectra=in_service[index],
            grid_row=row,
            grid_column=col,
        )
        for index, (nurse_id, name, relief, row, col) in enumerate(SEED_NURSES)
    ]


def generate_spectra() -> List[Spectra]:
    return [Spectra(id=spectra_id, in_service=active) for spectra_id, active in SEED_SPECTRA]


def generate_unit_rooms(
    size: GridSize,
    room_count: int,
    start_number: int,
) -> List[Patient]:
    """Vacant rooms for a newly created unit, numbered from start_number."""

    cells = perimeter_cells(size)
    if room_count < 1 or room_count > min(MAX_UNIT_ROOMS, len(cells)):
        raise ValueError(f"Room count must be between 1 and {min(MAX_UNIT_ROOMS, len(cells))}")
    if start_number < 1:
        raise ValueError("Starting room number must be at least 1")
    rooms: List[Patient] = []
    for index in range(room_count):
        number = start_number + index
        row, col = cells[index]
        rooms.append(vacant_patient(f"room-{number}", number, f"Room {number}", row, col))
    return rooms


def fill_vacant_beds(
    patients: Sequence[Patient],
    rng: Optional[random.Random] = None,
    *,
    today: Optional[date] = None,
) -> Tuple[List[Patient], int]:
    """Admit mock patients into every vacant, in-service bed."""

    rng = rng or random.Random()
    today = today or date.today()
    filled: List[Patient] = []
    inserted = 0
    for patient in patients:
        if patient.is_vacant and not patient.is_blocked:
            filled.append(_admit_mock(patient, rng, today))
            inserted += 1
        else:
            filled.append(patient)
    return filled, inserted


def _admit_mock(bed: Patient, rng: random.Random, today: date) -> Patient:
    code_status = rng.choice(list(CodeStatus))
    ldas = tuple(sorted(rng.sample(LDA_CHOICES, k=rng.randint(0, 2))))
    flags = {flag: rng.random() < probability for flag, probability in RISK_PROBABILITIES.items()}
    return replace(
        bed,
        name=f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
        age=rng.randint(18, 98),
        gender=rng.choice(list(Gender)),
        admit_date=today - timedelta(days=rng.randint(0, 4)),
        discharge_date=today + timedelta(days=rng.randint(2, 11)),
        chief_complaint=rng.choice(COMPLAINTS),
        ldas=ldas,
        diet=rng.choice(DIETS),
        mobility=rng.choice(list(MobilityStatus)),
        code_status=code_status,
        orientation_status=rng.choice(
            [OrientationStatus.X1, OrientationStatus.X2, OrientationStatus.X3, OrientationStatus.X4]
        ),
        is_comfort_care_dnr="DNR" in code_status.value,
        assigned_nurse=None,
        notes=None,
        **flags,
    )


__all__ = [
    "MAX_UNIT_ROOMS",
    "RISK_PROBABILITIES",
    "SEED_BED_COUNT",
    "fill_vacant_beds",
    "generate_nurses",
    "generate_patients",
    "generate_spectra",
    "generate_unit_rooms",
    "room_label",
    "vacant_patient",
]
