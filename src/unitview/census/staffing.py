"""Staff placement, caseload balancing, and patient-nurse assignment bookkeeping."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from unitview.census.grid import (
    DEFAULT_GRID,
    Cell,
    Footprint,
    GridSize,
    is_free,
    nurse_footprint,
    occupancy_mask,
    tech_footprint,
)
from unitview.census.types import (
    NURSE_CARD_HEIGHT,
    SLOTS_PER_NURSE,
    TECH_CARD_HEIGHT,
    Nurse,
    OperationResult,
    Patient,
    PatientCareTech,
    Spectra,
)

LOGGER = logging.getLogger(__name__)

NO_GROUP = "N/A"
_DIGITS = re.compile(r"\D")


# -------------------------
# Grid search
# -------------------------

def find_slot(
    patients: Sequence[Patient],
    nurses: Sequence[Nurse],
    techs: Sequence[PatientCareTech],
    height: int,
    width: int,
    size: GridSize = DEFAULT_GRID,
) -> Optional[Cell]:
    """Free top-left cell for a height x width card, clustering next to staff first.

    Pass one walks the staff cells in enumeration order (nurses in roster
    order, each card top to bottom, then techs) and tries the cell to the
    left and then to the right of each. Pass two is a row-major scan of the
    whole grid. Returns None when no footprint of that size fits anywhere.
    """
    mask = occupancy_mask(size, patients, nurses, techs)
    for row, col in _staff_cells(nurses, techs):
        for candidate in ((row, col - 1), (row, col + 1)):
            if is_free(mask, Footprint(candidate[0], candidate[1], height, width)):
                return candidate
    for row in range(1, size.rows - height + 2):
        for col in range(1, size.columns - width + 2):
            if is_free(mask, Footprint(row, col, height, width)):
                return (row, col)
    return None


def find_room_slot(
    patients: Sequence[Patient],
    nurses: Sequence[Nurse],
    techs: Sequence[PatientCareTech],
    size: GridSize = DEFAULT_GRID,
) -> Optional[Cell]:
    """Free 1x1 cell for a new room, preferring the interior of the grid."""
    mask = occupancy_mask(size, patients, nurses, techs)
    for row in range(2, size.rows):
        for col in range(2, size.columns):
            if not mask[row - 1, col - 1]:
                return (row, col)
    for row in range(1, size.rows + 1):
        for col in range(1, size.columns + 1):
            if not mask[row - 1, col - 1]:
                return (row, col)
    return None


def _staff_cells(nurses: Iterable[Nurse], techs: Iterable[PatientCareTech]) -> List[Cell]:
    cells: List[Cell] = []
    seen: Set[Cell] = set()
    footprints = [nurse_footprint(n) for n in nurses] + [tech_footprint(t) for t in techs]
    for footprint in footprints:
        for cell in footprint.cells():
            if cell not in seen:
                seen.add(cell)
                cells.append(cell)
    return cells


def nurse_target_row(row: int, size: GridSize = DEFAULT_GRID) -> int:
    """Clamp a dropped nurse card so its three rows stay on the grid."""
    return max(1, min(row, size.rows - NURSE_CARD_HEIGHT + 1))


def validate_move(
    patients: Sequence[Patient],
    nurses: Sequence[Nurse],
    techs: Sequence[PatientCareTech],
    staff_id: str,
    row: int,
    col: int,
    size: GridSize = DEFAULT_GRID,
) -> Tuple[OperationResult, Cell]:
    """Check a nurse or tech drop target against every other card.

    Returns the (possibly clamped) destination alongside the verdict; the
    caller commits the move only when the result is successful.
    """
    nurse = next((n for n in nurses if n.id == staff_id), None)
    tech = next((t for t in techs if t.id == staff_id), None)
    if nurse is not None:
        target = (nurse_target_row(row, size), col)
        footprint = Footprint(target[0], target[1], NURSE_CARD_HEIGHT, 1)
        label = "nurse"
    elif tech is not None:
        target = (row, col)
        footprint = Footprint(row, col, TECH_CARD_HEIGHT, 1)
        label = "tech"
    else:
        return OperationResult.fail(f"Unknown staff member '{staff_id}'."), (row, col)

    if not footprint.within(size):
        return OperationResult.fail(f"Cannot move {label}: the target is off the grid."), target
    mask = occupancy_mask(size, patients, nurses, techs, exclude_ids={staff_id})
    if not is_free(mask, footprint):
        return OperationResult.fail(f"Cannot move {label}: the target location is occupied."), target
    return OperationResult.ok(), target


# -------------------------
# Spectra
# -------------------------

def available_spectra(
    pool: Sequence[Spectra],
    nurses: Sequence[Nurse],
    techs: Sequence[PatientCareTech],
) -> List[Spectra]:
    held = {n.spectra for n in nurses if n.spectra} | {t.spectra for t in techs if t.spectra}
    return [device for device in pool if device.in_service and device.id not in held]


def spectra_holder(
    spectra_id: str,
    nurses: Sequence[Nurse],
    techs: Sequence[PatientCareTech],
) -> Optional[str]:
    for nurse in nurses:
        if nurse.spectra == spectra_id:
            return nurse.name
    for tech in techs:
        if tech.spectra == spectra_id:
            return tech.name
    return None


# -------------------------
# Ordering helpers
# -------------------------

def room_number(designation: str) -> int:
    """Numeric portion of a room designation ("Room 804B" -> 804, none -> 0)."""
    digits = _DIGITS.sub("", designation or "")
    return int(digits) if digits else 0


def active_patients(patients: Iterable[Patient]) -> List[Patient]:
    """Occupied, in-service beds ordered by room number, then bed number."""
    active = [p for p in patients if p.is_active]
    active.sort(key=lambda p: (room_number(p.room_designation), p.bed_number))
    return active


def pack_slots(
    patient_ids: Iterable[str],
    bed_numbers: Dict[str, int],
) -> Tuple[Optional[str], ...]:
    """Sort ids by bed number and pad to the fixed slot count; overflow is dropped."""
    ordered = sorted(dict.fromkeys(patient_ids), key=lambda pid: bed_numbers.get(pid, 0))
    kept = ordered[:SLOTS_PER_NURSE]
    if len(ordered) > SLOTS_PER_NURSE:
        LOGGER.debug("Dropping %d patient(s) past slot capacity", len(ordered) - SLOTS_PER_NURSE)
    return tuple(kept) + (None,) * (SLOTS_PER_NURSE - len(kept))


# -------------------------
# Caseload balancing
# -------------------------

def balance_caseloads(nurses: Sequence[Nurse], patients: Sequence[Patient]) -> List[Nurse]:
    """Spread active patients across Staff and Float Pool nurses.

    Loads differ by at most one: the first ``active % nurses`` nurses, ranked
    by how many current patients they keep, may take ``ceil`` and the rest
    take ``floor``; no nurse exceeds the slot capacity. Current assignments
    that are still active are kept up to that quota (lowest rooms first).
    Remaining patients are handed out by a single cursor over the active
    list, nurses in roster order, with a shared claimed-set so nobody is
    assigned twice. Other roles come back untouched.
    """
    assignable = [n for n in nurses if n.is_assignable]
    if not assignable:
        return list(nurses)

    active = active_patients(patients)
    rank = {p.id: index for index, p in enumerate(active)}
    bed_numbers = {p.id: p.bed_number for p in patients}

    claimed: Set[str] = set()
    kept: Dict[str, List[str]] = {}
    for nurse in assignable:
        keep: List[str] = []
        for patient_id in nurse.assigned_ids:
            if patient_id in rank and patient_id not in claimed:
                keep.append(patient_id)
                claimed.add(patient_id)
        kept[nurse.id] = keep

    base, extra = divmod(len(active), len(assignable))
    by_holdings = sorted(assignable, key=lambda n: len(kept[n.id]), reverse=True)
    quotas = {
        nurse.id: min(base + (1 if position < extra else 0), SLOTS_PER_NURSE)
        for position, nurse in enumerate(by_holdings)
    }

    for nurse in assignable:
        keep = kept[nurse.id]
        quota = quotas[nurse.id]
        if len(keep) > quota:
            keep.sort(key=rank.__getitem__)
            for released in keep[quota:]:
                claimed.discard(released)
            kept[nurse.id] = keep[:quota]

    cursor = 0
    for nurse in assignable:
        keep = kept[nurse.id]
        while len(keep) < quotas[nurse.id] and cursor < len(active):
            patient_id = active[cursor].id
            cursor += 1
            if patient_id in claimed:
                continue
            keep.append(patient_id)
            claimed.add(patient_id)

    unassigned = len(active) - len(claimed)
    if unassigned:
        LOGGER.warning("Balance left %d active patient(s) unassigned: all slots are full", unassigned)

    balanced: List[Nurse] = []
    for nurse in nurses:
        if nurse.id in kept:
            nurse = replace(nurse, assigned_patient_ids=pack_slots(kept[nurse.id], bed_numbers))
        balanced.append(nurse)
    return balanced


# -------------------------
# Assignment ledger
# -------------------------

def sync_patient_nurses(patients: Sequence[Patient], nurses: Sequence[Nurse]) -> List[Patient]:
    """Rewrite every patient's nurse name from the nurses' slot lists."""
    owner: Dict[str, str] = {}
    for nurse in nurses:
        for patient_id in nurse.assigned_ids:
            owner.setdefault(patient_id, nurse.name)
    synced: List[Patient] = []
    for patient in patients:
        name = owner.get(patient.id)
        if patient.assigned_nurse != name:
            patient = replace(patient, assigned_nurse=name)
        synced.append(patient)
    return synced


@dataclass(frozen=True)
class AssignmentLedger:
    """Patients and nurses held together so both sides of an assignment always agree.

    Every transition returns a new ledger. Nurse slot lists are the source
    of truth; the patients' ``assigned_nurse`` names are rebuilt from them
    after each change. Unknown ids leave the ledger as it was.
    """

    patients: Tuple[Patient, ...]
    nurses: Tuple[Nurse, ...]

    @classmethod
    def build(cls, patients: Iterable[Patient], nurses: Iterable[Nurse]) -> "AssignmentLedger":
        return cls(tuple(patients), tuple(nurses)).repair()

    def _commit(self, nurses: Iterable[Nurse]) -> "AssignmentLedger":
        nurse_tuple = tuple(nurses)
        return AssignmentLedger(tuple(sync_patient_nurses(self.patients, nurse_tuple)), nurse_tuple)

    def _bed_numbers(self) -> Dict[str, int]:
        return {p.id: p.bed_number for p in self.patients}

    def patient(self, patient_id: str) -> Optional[Patient]:
        return next((p for p in self.patients if p.id == patient_id), None)

    def nurse(self, nurse_id: str) -> Optional[Nurse]:
        return next((n for n in self.nurses if n.id == nurse_id), None)

    def nurse_for(self, patient_id: str) -> Optional[Nurse]:
        return next((n for n in self.nurses if patient_id in n.assigned_patient_ids), None)

    def repair(self) -> "AssignmentLedger":
        """Drop unknown or duplicate ids, re-sort every slot list, and resync names."""
        known = self._bed_numbers()
        claimed: Set[str] = set()
        nurses: List[Nurse] = []
        for nurse in self.nurses:
            ids = [pid for pid in nurse.assigned_ids if pid in known and pid not in claimed]
            slots = pack_slots(ids, known)
            claimed.update(pid for pid in slots if pid is not None)
            nurses.append(replace(nurse, assigned_patient_ids=slots))
        return self._commit(nurses)

    def reassign(
        self,
        patient_id: str,
        nurse_id: str,
        slot_index: Optional[int] = None,
    ) -> "AssignmentLedger":
        """Move a patient onto a nurse's card.

        The drop slot only has to be a real slot; final order is by bed
        number, and a seventh patient by that order falls off the card.
        """
        target = self.nurse(nurse_id)
        if self.patient(patient_id) is None or target is None:
            LOGGER.debug("Ignoring reassign of %s to %s: stale id", patient_id, nurse_id)
            return self
        if slot_index is not None and not 0 <= slot_index < SLOTS_PER_NURSE:
            LOGGER.debug("Ignoring reassign to slot %s: out of range", slot_index)
            return self

        bed_numbers = self._bed_numbers()
        nurses: List[Nurse] = []
        for nurse in self.nurses:
            if nurse.id == nurse_id:
                ids = [pid for pid in nurse.assigned_ids if pid != patient_id] + [patient_id]
                nurse = replace(nurse, assigned_patient_ids=pack_slots(ids, bed_numbers))
            elif patient_id in nurse.assigned_patient_ids:
                nurse = replace(
                    nurse,
                    assigned_patient_ids=tuple(
                        None if pid == patient_id else pid for pid in nurse.assigned_patient_ids
                    ),
                )
            nurses.append(nurse)
        return self._commit(nurses)

    def assign_by_name(self, patient_id: str, nurse_name: Optional[str]) -> "AssignmentLedger":
        """Assign to the first bedside nurse with this name, or unassign when there is none."""
        if self.patient(patient_id) is None:
            return self
        nurse = next((n for n in self.nurses if n.is_assignable and n.name == nurse_name), None)
        if nurse is None:
            return self.unassign(patient_id)
        return self.reassign(patient_id, nurse.id)

    def unassign(self, patient_id: str) -> "AssignmentLedger":
        if self.nurse_for(patient_id) is None:
            return self._commit(self.nurses)
        nurses = [
            replace(
                nurse,
                assigned_patient_ids=tuple(
                    None if pid == patient_id else pid for pid in nurse.assigned_patient_ids
                ),
            )
            for nurse in self.nurses
        ]
        return self._commit(nurses)

    def clear(self, nurse_id: str) -> "AssignmentLedger":
        if self.nurse(nurse_id) is None:
            return self
        nurses = [
            replace(nurse, assigned_patient_ids=(None,) * SLOTS_PER_NURSE) if nurse.id == nurse_id else nurse
            for nurse in self.nurses
        ]
        return self._commit(nurses)

    def remove_nurse(self, nurse_id: str) -> "AssignmentLedger":
        if self.nurse(nurse_id) is None:
            return self
        return self._commit(n for n in self.nurses if n.id != nurse_id)

    def add_nurse(self, nurse: Nurse) -> "AssignmentLedger":
        return AssignmentLedger(self.patients, self.nurses + (nurse,)).repair()

    def balance(self) -> "AssignmentLedger":
        """Rebalance bedside nurses; a patient they take over leaves any other card."""
        balanced = balance_caseloads(self.nurses, self.patients)
        taken = {pid for nurse in balanced if nurse.is_assignable for pid in nurse.assigned_ids}
        nurses = [
            nurse
            if nurse.is_assignable
            else replace(
                nurse,
                assigned_patient_ids=tuple(None if pid in taken else pid for pid in nurse.assigned_patient_ids),
            )
            for nurse in balanced
        ]
        return self._commit(nurses)

    def with_patients(self, patients: Iterable[Patient]) -> "AssignmentLedger":
        return AssignmentLedger(tuple(patients), self.nurses).repair()

    def with_nurses(self, nurses: Iterable[Nurse]) -> "AssignmentLedger":
        return AssignmentLedger(self.patients, tuple(nurses)).repair()


# -------------------------
# Tech assignment groups
# -------------------------

def recompute_tech_groups(
    techs: Sequence[PatientCareTech],
    patients: Sequence[Patient],
) -> Tuple[List[PatientCareTech], bool]:
    """Derive each tech's room range from the active census.

    Active beds are split into consecutive chunks of ``ceil(active / techs)``;
    a tech past the end of the census gets "N/A". The flag reports whether
    anything differs from the input so callers can skip a redundant write.
    """
    active = active_patients(patients)
    if not techs:
        return [], False
    if not active:
        updated = [replace(tech, assignment_group=NO_GROUP) for tech in techs]
        return updated, updated != list(techs)

    per_tech = -(-len(active) // len(techs))
    updated: List[PatientCareTech] = []
    for index, tech in enumerate(techs):
        start = index * per_tech
        if start >= len(active):
            group = NO_GROUP
        else:
            end = min(start + per_tech, len(active)) - 1
            first, last = active[start].room_designation, active[end].room_designation
            group = first if first == last else f"{first} - {last}"
        updated.append(tech if tech.assignment_group == group else replace(tech, assignment_group=group))
    return updated, updated != list(techs)


__all__ = [
    "AssignmentLedger",
    "NO_GROUP",
    "active_patients",
    "available_spectra",
    "balance_caseloads",
    "find_room_slot",
    "find_slot",
    "nurse_target_row",
    "pack_slots",
    "recompute_tech_groups",
    "room_number",
    "spectra_holder",
    "sync_patient_nurses",
    "validate_move",
]
