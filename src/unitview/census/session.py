"""In-memory unit session: every census, grid, and staffing edit for one layout."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple
from uuid import uuid4

from unitview.census.generators import (
    MAX_UNIT_ROOMS,
    fill_vacant_beds,
    generate_unit_rooms,
    vacant_patient,
)
from unitview.census.grid import (
    Footprint,
    GridSize,
    nurse_footprint,
    occupancy_mask,
    overlapping_cells,
    tech_footprint,
)
from unitview.census.staffing import (
    AssignmentLedger,
    available_spectra,
    find_room_slot,
    find_slot,
    recompute_tech_groups,
    spectra_holder,
    validate_move,
)
from unitview.census.types import (
    NURSE_CARD_HEIGHT,
    SLOTS_PER_NURSE,
    TECH_CARD_HEIGHT,
    VACANT_NAME,
    CodeStatus,
    Gender,
    MobilityStatus,
    Nurse,
    OperationResult,
    OrientationStatus,
    Patient,
    PatientCareTech,
    Spectra,
    StaffAssignments,
    StaffRole,
)
from unitview.reports.printable import CensusSummary, census_summary
from unitview.storage.layouts import DEFAULT_LAYOUT, LayoutStore, validate_layout_name
from unitview.storage.remote import AssignmentSnapshot, SnapshotClient

LOGGER = logging.getLogger(__name__)

TO_BE_ASSIGNED = "To Be Assigned"
MIN_NAME_LENGTH = 2
MIN_UNIT_DESIGNATION_LENGTH = 3
MAX_AGE = 130


class SessionEventType(str, Enum):
    WARNING = "warning"
    NOTICE = "notice"
    SAVED = "saved"
    SAVE_FAILED = "save_failed"


@dataclass(frozen=True)
class SessionEvent:
    event_type: SessionEventType
    layout_name: str
    message: str
    details: Dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class AdmissionForm:
    """Fields a charge nurse fills in to admit a patient or update an admitted one."""

    bed_number: int
    name: str
    age: int
    gender: Gender
    chief_complaint: str
    admit_date: date
    discharge_date: date
    diet: str
    mobility: MobilityStatus = MobilityStatus.INDEPENDENT
    code_status: CodeStatus = CodeStatus.FULL_CODE
    orientation_status: OrientationStatus = OrientationStatus.X4
    assigned_nurse: Optional[str] = None
    ldas: Tuple[str, ...] = ()
    notes: Optional[str] = None
    is_fall_risk: bool = False
    is_seizure_risk: bool = False
    is_aspiration_risk: bool = False
    is_isolation: bool = False
    is_in_restraints: bool = False
    is_comfort_care_dnr: bool = False

    def validate(self) -> Optional[str]:
        name = self.name.strip()
        if len(name) < MIN_NAME_LENGTH:
            return f"Name must be at least {MIN_NAME_LENGTH} characters."
        if name == VACANT_NAME:
            return f"'{VACANT_NAME}' is reserved for empty beds."
        if not 0 <= self.age <= MAX_AGE:
            return f"Age must be between 0 and {MAX_AGE}."
        if not self.chief_complaint.strip():
            return "Chief complaint is required."
        if not self.diet.strip():
            return "Diet is required."
        return None

    @property
    def nurse_name(self) -> Optional[str]:
        if not self.assigned_nurse or self.assigned_nurse == TO_BE_ASSIGNED:
            return None
        return self.assigned_nurse


class UnitSession:
    """Owns the authoritative collections of one layout.

    Mutations apply to memory first and are then autosaved; a failed save
    is reported as a SAVE_FAILED event and never rolls memory back. While
    the layout is locked, grid and staffing edits are rejected and autosave
    is skipped, but census edits and reads still work.
    """

    def __init__(
        self,
        store: LayoutStore,
        layout_name: str = DEFAULT_LAYOUT,
        *,
        callback: Optional[Callable[[SessionEvent], None]] = None,
        autosave: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._layout_name = layout_name
        self._callback = callback
        self._autosave = autosave
        self._clock = clock
        self._rng = store.rng()
        self._batch_depth = 0
        self._dirty = False

        staffing = store.load_staffing(layout_name)
        self._ledger = AssignmentLedger.build(store.load_layout(layout_name), staffing.nurses)
        self._techs: List[PatientCareTech] = list(staffing.techs)
        self._staff = staffing.staff
        self._spectra: List[Spectra] = store.load_spectra_pool()
        self._locked = store.load_preferences().is_layout_locked
        self._techs, _ = recompute_tech_groups(self._techs, self._ledger.patients)
        self._warn_overlaps()
        LOGGER.info(
            "Opened layout %s with %d bed(s), %d nurse(s), %d tech(s)",
            layout_name,
            len(self._ledger.patients),
            len(self._ledger.nurses),
            len(self._techs),
        )

    @classmethod
    def open(
        cls,
        store: LayoutStore,
        layout_name: Optional[str] = None,
        *,
        default_layout: str = DEFAULT_LAYOUT,
        **kwargs,
    ) -> "UnitSession":
        """Open the named layout, or the last one opened, and remember the choice.

        A name missing from the registry is registered first so its saves
        show up in the layout list; an unusable name raises ValueError.
        """
        name = (layout_name or store.load_preferences().last_opened_layout or default_layout).strip()
        registered = {entry.lower(): entry for entry in store.list_layouts()}
        if name.lower() in registered:
            name = registered[name.lower()]
        else:
            error = validate_layout_name(name)
            if error:
                raise ValueError(error)
            store.create_layout(name)
        session = cls(store, name, **kwargs)
        store.save_preference("lastOpenedLayout", name)
        return session

    def _warn_overlaps(self) -> None:
        footprints = [Footprint(p.grid_row, p.grid_column) for p in self._ledger.patients if p.is_placed]
        footprints += [nurse_footprint(n) for n in self._ledger.nurses]
        footprints += [tech_footprint(t) for t in self._techs]
        clashes = overlapping_cells(footprints)
        if clashes:
            LOGGER.warning("Layout %s has %d overlapping cell(s): %s", self._layout_name, len(clashes), clashes)

    # Read access -----------------------------------------------------------

    @property
    def layout_name(self) -> str:
        return self._layout_name

    @property
    def size(self) -> GridSize:
        return self._store.size

    @property
    def patients(self) -> Tuple[Patient, ...]:
        return self._ledger.patients

    @property
    def nurses(self) -> Tuple[Nurse, ...]:
        return self._ledger.nurses

    @property
    def techs(self) -> Tuple[PatientCareTech, ...]:
        return tuple(self._techs)

    @property
    def spectra_pool(self) -> Tuple[Spectra, ...]:
        return tuple(self._spectra)

    @property
    def staff(self) -> StaffAssignments:
        return self._staff

    @property
    def locked(self) -> bool:
        return self._locked

    def patient(self, patient_id: str) -> Optional[Patient]:
        return self._ledger.patient(patient_id)

    def patient_by_bed(self, bed_number: int) -> Optional[Patient]:
        return next((p for p in self._ledger.patients if p.bed_number == bed_number), None)

    def available_spectra(self) -> List[Spectra]:
        return available_spectra(self._spectra, self._ledger.nurses, self._techs)

    def census_summary(self) -> CensusSummary:
        return census_summary(self._ledger.patients)

    # Lock ------------------------------------------------------------------

    def lock(self) -> OperationResult:
        return self._set_locked(True)

    def unlock(self) -> OperationResult:
        return self._set_locked(False)

    def _set_locked(self, locked: bool) -> OperationResult:
        if self._locked == locked:
            return OperationResult.ok(f"Layout is already {'locked' if locked else 'unlocked'}.")
        self._locked = locked
        if not self._store.save_preference("isLayoutLocked", locked):
            self._emit(SessionEventType.SAVE_FAILED, "Could not save the lock setting.")
        state = "locked" if locked else "unlocked"
        self._emit(SessionEventType.NOTICE, f"Layout {state}.")
        if not locked:
            self._flush()
        return OperationResult.ok(f"Layout {state}.")

    def _guard_unlocked(self, action: str) -> Optional[OperationResult]:
        if not self._locked:
            return None
        return self._reject(f"Layout is locked. Unlock it to {action}.")

    # Persistence -----------------------------------------------------------

    @contextmanager
    def batch(self) -> Iterator["UnitSession"]:
        """Group several edits so the layout is saved once when the batch settles."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self._flush()

    def save(self) -> bool:
        """Write positions and staffing now, regardless of lock or autosave."""
        layout_ok = self._store.save_layout(self._layout_name, self._ledger.patients)
        staffing_ok = self._store.save_staffing(
            self._layout_name, self._ledger.nurses, self._techs, self._staff
        )
        if layout_ok and staffing_ok:
            self._dirty = False
            self._emit(SessionEventType.SAVED, f"Layout '{self._layout_name}' saved.")
            return True
        self._emit(
            SessionEventType.SAVE_FAILED,
            f"Could not save layout '{self._layout_name}'. Changes are kept in memory.",
            positions=layout_ok,
            staffing=staffing_ok,
        )
        return False

    def save_as(self, name: str) -> OperationResult:
        """Register a new layout name and continue the session under it."""
        result = self._store.create_layout(name)
        if not result.success:
            return self._reject(result.error or "Could not create layout.")
        self._layout_name = name.strip()
        self._store.save_preference("lastOpenedLayout", self._layout_name)
        if not self.save():
            return OperationResult.fail(f"Layout '{self._layout_name}' was registered but could not be saved.")
        return OperationResult.ok(f"Layout saved as '{self._layout_name}'.")

    def _settle(self) -> None:
        techs, changed = recompute_tech_groups(self._techs, self._ledger.patients)
        if changed:
            self._techs = techs
        self._dirty = True
        if self._batch_depth == 0:
            self._flush()

    def _flush(self) -> None:
        if not self._dirty or not self._autosave:
            return
        if self._locked:
            LOGGER.debug("Layout %s is locked; autosave deferred", self._layout_name)
            return
        self.save()

    def _save_spectra(self) -> None:
        if not self._store.save_spectra_pool(self._spectra):
            self._emit(SessionEventType.SAVE_FAILED, "Could not save the Spectra pool. Changes are kept in memory.")

    def _emit(self, event_type: SessionEventType, message: str, **details: object) -> None:
        if self._callback is None:
            return
        self._callback(SessionEvent(event_type, self._layout_name, message, dict(details)))

    def _reject(self, error: str) -> OperationResult:
        LOGGER.debug("Rejected on %s: %s", self._layout_name, error)
        self._emit(SessionEventType.WARNING, error)
        return OperationResult.fail(error)

    def _set_patients(self, patients: Sequence[Patient]) -> None:
        self._ledger = self._ledger.with_patients(patients)

    def _replace_patient(self, updated: Patient) -> List[Patient]:
        return [updated if p.id == updated.id else p for p in self._ledger.patients]

    # Census edits ----------------------------------------------------------

    def admit_patient(self, form: AdmissionForm) -> OperationResult:
        """Admit into a vacant bed, or update the patient already in it."""
        error = form.validate()
        if error:
            return self._reject(error)
        bed = self.patient_by_bed(form.bed_number)
        if bed is None:
            return self._reject(f"No bed numbered {form.bed_number}.")

        nurse_name = form.nurse_name
        if nurse_name is not None:
            nurse = next((n for n in self._ledger.nurses if n.is_assignable and n.name == nurse_name), None)
            if nurse is None:
                return self._reject(f"No Staff or Float Pool nurse named '{nurse_name}'.")
            if bed.id not in nurse.assigned_ids and len(nurse.assigned_ids) >= SLOTS_PER_NURSE:
                return self._reject(f"{nurse.name} already has {SLOTS_PER_NURSE} patients.")
        if self._locked:
            current = self._ledger.nurse_for(bed.id)
            if (current.name if current else None) != nurse_name:
                return self._reject("Layout is locked. Unlock it to change the assigned nurse.")

        admitted = replace(
            bed,
            name=form.name.strip(),
            age=form.age,
            gender=form.gender,
            admit_date=form.admit_date,
            discharge_date=form.discharge_date,
            chief_complaint=form.chief_complaint.strip(),
            ldas=tuple(item.strip() for item in form.ldas if item.strip()),
            diet=form.diet,
            mobility=form.mobility,
            code_status=form.code_status,
            orientation_status=form.orientation_status,
            is_fall_risk=form.is_fall_risk,
            is_seizure_risk=form.is_seizure_risk,
            is_aspiration_risk=form.is_aspiration_risk,
            is_isolation=form.is_isolation,
            is_in_restraints=form.is_in_restraints,
            is_comfort_care_dnr=form.is_comfort_care_dnr,
            notes=form.notes or None,
            is_blocked=False,
        )
        self._set_patients(self._replace_patient(admitted))
        self._ledger = self._ledger.assign_by_name(bed.id, nurse_name)
        self._settle()
        verb = "Admitted" if bed.is_vacant else "Updated"
        LOGGER.info("%s %s in %s", verb, admitted.name, admitted.room_designation)
        return OperationResult.ok(f"{verb} {admitted.name} in {admitted.room_designation}.")

    def discharge_patient(self, patient_id: str) -> OperationResult:
        patient = self._ledger.patient(patient_id)
        if patient is None:
            return self._reject(f"Unknown patient '{patient_id}'.")
        if patient.is_vacant:
            return OperationResult.ok(f"{patient.room_designation} is already vacant.")
        vacant = vacant_patient(
            patient.id,
            patient.bed_number,
            patient.room_designation,
            patient.grid_row,
            patient.grid_column,
            is_blocked=patient.is_blocked,
        )
        self._ledger = self._ledger.unassign(patient_id)
        self._set_patients(self._replace_patient(vacant))
        self._settle()
        LOGGER.info("Discharged %s from %s", patient.name, patient.room_designation)
        return OperationResult.ok(f"{patient.name} has been discharged from {patient.room_designation}.")

    def set_room_blocked(self, patient_id: str, blocked: bool) -> OperationResult:
        patient = self._ledger.patient(patient_id)
        if patient is None:
            return self._reject(f"Unknown room '{patient_id}'.")
        if blocked and not patient.is_vacant:
            return self._reject(f"Discharge {patient.name} before blocking {patient.room_designation}.")
        if patient.is_blocked == blocked:
            return OperationResult.ok()
        self._set_patients(self._replace_patient(replace(patient, is_blocked=blocked)))
        self._settle()
        state = "out of service" if blocked else "in service"
        return OperationResult.ok(f"{patient.room_designation} is now {state}.")

    def rename_room(self, patient_id: str, designation: str) -> OperationResult:
        patient = self._ledger.patient(patient_id)
        if patient is None:
            return self._reject(f"Unknown room '{patient_id}'.")
        error = self._designation_error(designation, exclude_id=patient_id)
        if error:
            return self._reject(error)
        renamed = replace(patient, room_designation=designation.strip())
        self._set_patients(self._replace_patient(renamed))
        self._settle()
        return OperationResult.ok(f"Room has been renamed to \"{renamed.room_designation}\".")

    def fill_mock_beds(self) -> OperationResult:
        patients, inserted = fill_vacant_beds(self._ledger.patients, self._rng, today=self._clock().date())
        if not inserted:
            return OperationResult.ok("No vacant beds to fill.")
        self._set_patients(patients)
        self._settle()
        return OperationResult.ok(f"Filled {inserted} vacant bed(s) with mock patients.")

    def _designation_error(self, designation: str, *, exclude_id: Optional[str] = None) -> Optional[str]:
        trimmed = (designation or "").strip()
        if not trimmed:
            return "Room designation cannot be empty."
        for patient in self._ledger.patients:
            if patient.id != exclude_id and patient.room_designation.lower() == trimmed.lower():
                return f"A room named '{trimmed}' already exists."
        return None

    # Rooms and grid --------------------------------------------------------

    def create_room(self, designation: str) -> OperationResult:
        rejected = self._guard_unlocked("add rooms")
        if rejected:
            return rejected
        error = self._designation_error(designation)
        if error:
            return self._reject(error)
        cell = find_room_slot(self._ledger.patients, self._ledger.nurses, self._techs, self.size)
        if cell is None:
            return self._reject("No available space on the grid for a new room.")
        bed_number = max((p.bed_number for p in self._ledger.patients), default=0) + 1
        room = vacant_patient(f"bed-{uuid4().hex[:8]}", bed_number, designation.strip(), cell[0], cell[1])
        self._set_patients(list(self._ledger.patients) + [room])
        self._settle()
        return OperationResult.ok(f"Room \"{room.room_designation}\" has been added to the grid.")

    def delete_room(self, patient_id: str) -> OperationResult:
        rejected = self._guard_unlocked("delete rooms")
        if rejected:
            return rejected
        patient = self._ledger.patient(patient_id)
        if patient is None:
            return self._reject(f"Unknown room '{patient_id}'.")
        if not patient.is_vacant:
            return self._reject(f"Only vacant rooms can be deleted; {patient.room_designation} is occupied.")
        self._set_patients([p for p in self._ledger.patients if p.id != patient_id])
        self._settle()
        return OperationResult.ok(f"{patient.room_designation} has been deleted.")

    def move_patient(self, patient_id: str, row: int, col: int) -> OperationResult:
        """Move a bed to a cell, swapping places with any bed already there."""
        rejected = self._guard_unlocked("move rooms")
        if rejected:
            return rejected
        patient = self._ledger.patient(patient_id)
        if patient is None:
            return self._reject(f"Unknown room '{patient_id}'.")
        target = Footprint(row, col)
        if not target.within(self.size):
            return self._reject("Cannot move room: the target is off the grid.")
        staff_mask = occupancy_mask(self.size, (), self._ledger.nurses, self._techs)
        if staff_mask[row - 1, col - 1]:
            return self._reject("Cannot move room: a staff card occupies that cell.")
        if (patient.grid_row, patient.grid_column) == (row, col):
            return OperationResult.ok()

        occupant = next(
            (p for p in self._ledger.patients if p.id != patient_id and (p.grid_row, p.grid_column) == (row, col)),
            None,
        )
        moved: List[Patient] = []
        for entry in self._ledger.patients:
            if entry.id == patient_id:
                entry = replace(entry, grid_row=row, grid_column=col)
            elif occupant is not None and entry.id == occupant.id:
                entry = replace(entry, grid_row=patient.grid_row, grid_column=patient.grid_column)
            moved.append(entry)
        self._set_patients(moved)
        self._settle()
        if occupant is not None:
            return OperationResult.ok(f"Swapped {patient.room_designation} with {occupant.room_designation}.")
        return OperationResult.ok(f"Moved {patient.room_designation}.")

    def move_nurse(self, nurse_id: str, row: int, col: int) -> OperationResult:
        rejected = self._guard_unlocked("move staff")
        if rejected:
            return rejected
        result, (target_row, target_col) = validate_move(
            self._ledger.patients, self._ledger.nurses, self._techs, nurse_id, row, col, self.size
        )
        if not result.success or self._ledger.nurse(nurse_id) is None:
            return self._reject(result.error or f"Unknown nurse '{nurse_id}'.")
        nurses = [
            replace(n, grid_row=target_row, grid_column=target_col) if n.id == nurse_id else n
            for n in self._ledger.nurses
        ]
        self._ledger = self._ledger.with_nurses(nurses)
        self._settle()
        return OperationResult.ok()

    def move_tech(self, tech_id: str, row: int, col: int) -> OperationResult:
        rejected = self._guard_unlocked("move staff")
        if rejected:
            return rejected
        if not any(t.id == tech_id for t in self._techs):
            return self._reject(f"Unknown tech '{tech_id}'.")
        result, (target_row, target_col) = validate_move(
            self._ledger.patients, self._ledger.nurses, self._techs, tech_id, row, col, self.size
        )
        if not result.success:
            return self._reject(result.error or "Cannot move tech.")
        self._techs = [
            replace(t, grid_row=target_row, grid_column=target_col) if t.id == tech_id else t
            for t in self._techs
        ]
        self._settle()
        return OperationResult.ok()

    # Staffing --------------------------------------------------------------

    def add_staff(self, name: str, role: StaffRole, relief: Optional[str] = None) -> OperationResult:
        rejected = self._guard_unlocked("add staff")
        if rejected:
            return rejected
        trimmed = (name or "").strip()
        if len(trimmed) < MIN_NAME_LENGTH:
            return self._reject(f"Name must be at least {MIN_NAME_LENGTH} characters.")

        if role is StaffRole.SITTER:
            return OperationResult.ok(f"{trimmed} ({role.value}) has been added.")
        if role is StaffRole.CHARGE_NURSE:
            self._staff = replace(self._staff, charge_nurse_name=trimmed)
            self._settle()
            return OperationResult.ok(f"{trimmed} is now the Charge Nurse.")
        if role is StaffRole.UNIT_CLERK:
            self._staff = replace(self._staff, unit_clerk_name=trimmed)
            self._settle()
            return OperationResult.ok(f"{trimmed} is now the Unit Clerk.")

        devices = self.available_spectra()
        if not devices:
            return self._reject("Could not add staff. Please add or enable a Spectra device in the pool.")
        height = TECH_CARD_HEIGHT if role is StaffRole.PATIENT_CARE_TECH else NURSE_CARD_HEIGHT
        cell = find_slot(self._ledger.patients, self._ledger.nurses, self._techs, height, 1, self.size)
        if cell is None:
            return self._reject("Cannot add new staff member, the grid is full.")

        if role is StaffRole.PATIENT_CARE_TECH:
            tech = PatientCareTech(
                id=f"tech-{uuid4().hex[:8]}",
                name=trimmed,
                spectra=devices[0].id,
                grid_row=cell[0],
                grid_column=cell[1],
            )
            self._techs = self._techs + [tech]
        else:
            nurse = Nurse(
                id=f"nurse-{uuid4().hex[:8]}",
                name=trimmed,
                role=role,
                relief=(relief or "").strip() or None,
                spectra=devices[0].id,
                grid_row=cell[0],
                grid_column=cell[1],
            )
            self._ledger = self._ledger.add_nurse(nurse)
        self._settle()
        LOGGER.info("Added %s (%s) at %s with %s", trimmed, role.value, cell, devices[0].id)
        return OperationResult.ok(f"{trimmed} ({role.value}) has been added to the unit.")

    def remove_nurse(self, nurse_id: str) -> OperationResult:
        rejected = self._guard_unlocked("remove staff")
        if rejected:
            return rejected
        nurse = self._ledger.nurse(nurse_id)
        if nurse is None:
            return self._reject(f"Unknown nurse '{nurse_id}'.")
        self._ledger = self._ledger.remove_nurse(nurse_id)
        self._settle()
        return OperationResult.ok(f"{nurse.name} has been removed from the unit.")

    def remove_tech(self, tech_id: str) -> OperationResult:
        rejected = self._guard_unlocked("remove staff")
        if rejected:
            return rejected
        tech = next((t for t in self._techs if t.id == tech_id), None)
        if tech is None:
            return self._reject(f"Unknown tech '{tech_id}'.")
        self._techs = [t for t in self._techs if t.id != tech_id]
        self._settle()
        return OperationResult.ok(f"{tech.name} has been removed from the unit.")

    def reassign(self, patient_id: str, nurse_id: str, slot_index: Optional[int] = None) -> OperationResult:
        rejected = self._guard_unlocked("change assignments")
        if rejected:
            return rejected
        patient = self._ledger.patient(patient_id)
        nurse = self._ledger.nurse(nurse_id)
        if patient is None or nurse is None:
            return self._reject("That patient or nurse is no longer on the unit.")
        if not nurse.is_assignable:
            return self._reject(f"{nurse.name} ({nurse.role.value}) does not take patient assignments.")
        if patient.is_vacant:
            return self._reject(f"{patient.room_designation} is vacant.")
        if patient_id in nurse.assigned_ids:
            return OperationResult.ok()
        if slot_index is not None and not 0 <= slot_index < SLOTS_PER_NURSE:
            return self._reject(f"Slot {slot_index} does not exist; slots run from 0 to {SLOTS_PER_NURSE - 1}.")
        if len(nurse.assigned_ids) >= SLOTS_PER_NURSE:
            return self._reject(f"{nurse.name} already has {SLOTS_PER_NURSE} patients.")
        self._ledger = self._ledger.reassign(patient_id, nurse_id, slot_index)
        self._settle()
        return OperationResult.ok(f"{patient.name} assigned to {nurse.name}.")

    def clear_assignments(self, nurse_id: str) -> OperationResult:
        rejected = self._guard_unlocked("change assignments")
        if rejected:
            return rejected
        nurse = self._ledger.nurse(nurse_id)
        if nurse is None:
            return self._reject(f"Unknown nurse '{nurse_id}'.")
        self._ledger = self._ledger.clear(nurse_id)
        self._settle()
        return OperationResult.ok(f"Cleared all assignments for {nurse.name}.")

    def balance(self) -> OperationResult:
        rejected = self._guard_unlocked("balance assignments")
        if rejected:
            return rejected
        if not any(n.is_assignable for n in self._ledger.nurses):
            return self._reject("No Staff or Float Pool nurses to balance.")
        self._ledger = self._ledger.balance()
        self._settle()
        active = sum(1 for p in self._ledger.patients if p.is_active)
        assigned = sum(1 for p in self._ledger.patients if p.is_active and p.assigned_nurse)
        if assigned < active:
            self._emit(SessionEventType.WARNING, f"{active - assigned} patient(s) could not be assigned.")
        return OperationResult.ok(f"Balanced {assigned} patient(s) across the nurses.")

    # Spectra ---------------------------------------------------------------

    def add_spectra(self, device_id: str) -> OperationResult:
        normalized = (device_id or "").strip().upper()
        if not normalized:
            return self._reject("Spectra ID cannot be empty.")
        if any(device.id.upper() == normalized for device in self._spectra):
            return self._reject("This Spectra ID already exists in the pool.")
        self._spectra = self._spectra + [Spectra(id=normalized, in_service=True)]
        self._save_spectra()
        return OperationResult.ok(f"Device {normalized} added to the pool.")

    def set_spectra_service(self, device_id: str, in_service: bool) -> OperationResult:
        normalized = (device_id or "").strip().upper()
        device = next((d for d in self._spectra if d.id.upper() == normalized), None)
        if device is None:
            return self._reject(f"Unknown Spectra '{device_id}'.")
        device_id = device.id
        if not in_service:
            holder = spectra_holder(device_id, self._ledger.nurses, self._techs)
            if holder is not None:
                return self._reject(f"This Spectra is currently assigned to a staff member ({holder}).")
        if device.in_service == in_service:
            return OperationResult.ok()
        self._spectra = [replace(d, in_service=in_service) if d.id == device_id else d for d in self._spectra]
        self._save_spectra()
        state = "in service" if in_service else "out of service"
        return OperationResult.ok(f"{device_id} is now {state}.")

    # Publishing ------------------------------------------------------------

    def publish_assignments(self, client: SnapshotClient, now: Optional[datetime] = None) -> OperationResult:
        snapshot = AssignmentSnapshot.build(
            self._layout_name,
            self._ledger.nurses,
            self._ledger.patients,
            self._staff.charge_nurse_name,
            now or self._clock(),
        )
        result = client.publish(snapshot)
        if not result.success:
            self._emit(SessionEventType.SAVE_FAILED, result.error or "Failed to publish assignments.")
        return result


def create_unit(
    store: LayoutStore,
    designation: str,
    room_count: int,
    start_number: int = 1,
) -> OperationResult:
    """Register a new unit with vacant rooms along the perimeter and no staff."""
    trimmed = (designation or "").strip()
    if len(trimmed) < MIN_UNIT_DESIGNATION_LENGTH:
        return OperationResult.fail(f"Designation must be at least {MIN_UNIT_DESIGNATION_LENGTH} characters.")
    if not 1 <= room_count <= MAX_UNIT_ROOMS:
        return OperationResult.fail(f"Unit must have between 1 and {MAX_UNIT_ROOMS} rooms.")
    if start_number < 1:
        return OperationResult.fail("Starting room number must be at least 1.")
    try:
        rooms = generate_unit_rooms(store.size, room_count, start_number)
    except ValueError as exc:
        return OperationResult.fail(str(exc))
    result = store.create_layout(trimmed)
    if not result.success:
        return result
    saved = store.save_layout(trimmed, rooms) and store.save_staffing(trimmed, [], [], StaffAssignments())
    store.save_preference("lastOpenedLayout", trimmed)
    if not saved:
        return OperationResult.fail(f"Unit '{trimmed}' was registered but its rooms could not be saved.")
    LOGGER.info("Created unit %s with %d room(s) from %d", trimmed, room_count, start_number)
    return OperationResult.ok(f"Unit \"{trimmed}\" with {room_count} rooms has been created.")


__all__ = [
    "AdmissionForm",
    "SessionEvent",
    "SessionEventType",
    "TO_BE_ASSIGNED",
    "UnitSession",
    "create_unit",
]
