"""Plain-text census report, assignment sheet, and grid map."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence

from unitview.census.grid import DEFAULT_GRID, GridSize, nurse_footprint, tech_footprint
from unitview.census.types import Nurse, Patient, PatientCareTech
from unitview.storage.remote import shift_for

# Order matches the alert icons on the printed sheets.
ALERT_LABELS = (
    ("is_fall_risk", "Fall Risk"),
    ("is_seizure_risk", "Seizure Risk"),
    ("is_aspiration_risk", "Aspiration Risk"),
    ("is_isolation", "Isolation"),
    ("is_in_restraints", "Restraints"),
    ("is_comfort_care_dnr", "Comfort/DNR"),
)

GRID_SYMBOLS = {
    "empty": ".",
    "occupied": "P",
    "vacant": "v",
    "blocked": "x",
    "nurse": "N",
    "tech": "T",
}


@dataclass(frozen=True)
class CensusSummary:
    active: int
    total_rooms: int
    dnr: int
    restraints: int
    foley: int


def census_summary(patients: Iterable[Patient]) -> CensusSummary:
    patients = list(patients)
    return CensusSummary(
        active=sum(1 for p in patients if not p.is_vacant),
        total_rooms=len(patients),
        dnr=sum(1 for p in patients if p.is_comfort_care_dnr),
        restraints=sum(1 for p in patients if p.is_in_restraints),
        foley=sum(1 for p in patients if any("foley" in lda.lower() for lda in p.ldas)),
    )


def alert_labels(patient: Patient) -> List[str]:
    return [label for attr, label in ALERT_LABELS if getattr(patient, attr)]


def _short_date(value: Optional[date]) -> str:
    if value is None:
        return "--"
    return f"{value.month}/{value.day}"


def render_census_report(patients: Sequence[Patient], generated_at: datetime) -> str:
    """One block per placed, occupied bed, ordered by bed number."""
    occupied = sorted(
        (p for p in patients if p.is_placed and not p.is_vacant),
        key=lambda p: p.bed_number,
    )
    lines = ["Unit Charge Report", f"Generated on: {generated_at.strftime('%Y-%m-%d %H:%M')}", ""]
    if not occupied:
        lines.append("No admitted patients.")
        return "\n".join(lines) + "\n"
    for patient in occupied:
        gender = patient.gender.value[0] if patient.gender else ""
        lines.append(f"Bed {patient.bed_number} - {patient.name} ({patient.age} {gender})".rstrip())
        lines.append(
            f"  {patient.room_designation} | Admit: {_short_date(patient.admit_date)}"
            f" / EDD: {_short_date(patient.discharge_date)}"
        )
        lines.append(f"  Complaint: {patient.chief_complaint}")
        lines.append(f"  Diet: {patient.diet} | Mobility: {patient.mobility.value}")
        lines.append(f"  Code: {patient.code_status.value} | Nurse: {patient.assigned_nurse or 'N/A'}")
        lines.append(f"  LDAs: {', '.join(patient.ldas) or 'None'}")
        alerts = alert_labels(patient)
        if alerts:
            lines.append(f"  Alerts: {', '.join(alerts)}")
        lines.append("")
    return "\n".join(lines)


def render_assignment_sheet(
    unit_name: str,
    charge_nurse: str,
    nurses: Sequence[Nurse],
    techs: Sequence[PatientCareTech],
    patients: Sequence[Patient],
    now: datetime,
) -> str:
    by_id: Dict[str, Patient] = {p.id: p for p in patients}
    lines = [
        unit_name,
        f"{now.month}/{now.day}/{now.year}  {shift_for(now)} Shift",
        f"Charge Nurse: {charge_nurse}",
        "",
    ]
    for nurse in nurses:
        header = nurse.name if not nurse.spectra else f"{nurse.name} [{nurse.spectra}]"
        if nurse.relief:
            header += f" (relief: {nurse.relief})"
        lines.append(header)
        for slot, patient_id in enumerate(nurse.assigned_patient_ids, start=1):
            patient = by_id.get(patient_id) if patient_id else None
            if patient is None:
                lines.append(f"  {slot}. -")
                continue
            alerts = alert_labels(patient)
            tags = f" [{', '.join(alerts)}]" if alerts else ""
            lines.append(f"  {slot}. {patient.room_designation}{tags}")
        lines.append("")
    lines.append("Patient Care Techs")
    if not techs:
        lines.append("  (none)")
    for tech in techs:
        device = f" [{tech.spectra}]" if tech.spectra else ""
        lines.append(f"  {tech.name}{device}: {tech.assignment_group or 'N/A'}")
    return "\n".join(lines) + "\n"


def render_grid(
    patients: Sequence[Patient],
    nurses: Sequence[Nurse],
    techs: Sequence[PatientCareTech],
    size: GridSize = DEFAULT_GRID,
) -> str:
    cells = [[GRID_SYMBOLS["empty"]] * size.columns for _ in range(size.rows)]

    def put(row: int, col: int, symbol: str) -> None:
        if 1 <= row <= size.rows and 1 <= col <= size.columns:
            cells[row - 1][col - 1] = symbol

    for patient in patients:
        if not patient.is_placed:
            continue
        if patient.is_blocked:
            symbol = GRID_SYMBOLS["blocked"]
        elif patient.is_vacant:
            symbol = GRID_SYMBOLS["vacant"]
        else:
            symbol = GRID_SYMBOLS["occupied"]
        put(patient.grid_row, patient.grid_column, symbol)
    for nurse in nurses:
        for row, col in nurse_footprint(nurse).cells():
            put(row, col, GRID_SYMBOLS["nurse"])
    for tech in techs:
        for row, col in tech_footprint(tech).cells():
            put(row, col, GRID_SYMBOLS["tech"])

    header = "    " + " ".join(f"{col % 10}" for col in range(1, size.columns + 1))
    lines = [header]
    for index, row_cells in enumerate(cells, start=1):
        lines.append(f"{index:>3} " + " ".join(row_cells))
    lines.append("")
    lines.append("P occupied  v vacant  x blocked  N nurse  T tech")
    return "\n".join(lines) + "\n"


__all__ = [
    "ALERT_LABELS",
    "CensusSummary",
    "alert_labels",
    "census_summary",
    "render_assignment_sheet",
    "render_census_report",
    "render_grid",
]
