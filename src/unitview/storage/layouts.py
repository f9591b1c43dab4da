"""Local persistence for layouts, staffing, the Spectra pool, and preferences."""

from __future__ import annotations

import json
import logging
import os
import random
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import quote, unquote

from unitview.census.generators import (
    SEED_BED_COUNT,
    generate_nurses,
    generate_patients,
    generate_spectra,
    vacant_patient,
)
from unitview.census.grid import DEFAULT_GRID, GridSize
from unitview.census.types import (
    SLOTS_PER_NURSE,
    UNASSIGNED,
    Nurse,
    OperationResult,
    Patient,
    PatientCareTech,
    Spectra,
    StaffAssignments,
    StaffRole,
    empty_slots,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_LAYOUT = "default"
REGISTRY_KEY = "layouts"
SPECTRA_KEY = "spectra"
PREFERENCES_KEY = "preferences"
PREFERENCE_KEYS = ("isLayoutLocked", "lastOpenedLayout")


class StorageError(RuntimeError):
    """Raised when the backing store cannot be read or written."""


class JsonFileStorage:
    """Keyed JSON documents, one file per key under a root directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        return self._root / f"{quote(key, safe='')}.json"

    def get(self, key: str) -> Any:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StorageError(f"Failed to read '{key}': {exc}") from exc

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        try:
            payload = json.dumps(value, indent=2)
            self._root.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(f"Failed to write '{key}': {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to delete '{key}': {exc}") from exc

    def keys(self) -> List[str]:
        if not self._root.exists():
            return []
        return sorted(unquote(path.stem) for path in self._root.glob("*.json"))


@dataclass(frozen=True)
class Staffing:
    nurses: List[Nurse]
    techs: List[PatientCareTech] = field(default_factory=list)
    staff: StaffAssignments = field(default_factory=StaffAssignments)


@dataclass(frozen=True)
class Preferences:
    is_layout_locked: bool = False
    last_opened_layout: Optional[str] = None


def validate_layout_name(name: str, existing: Sequence[str] = ()) -> Optional[str]:
    """Return an error message for an unusable layout name, or None."""
    trimmed = (name or "").strip()
    if not trimmed:
        return "Layout name cannot be empty."
    if "/" in trimmed:
        return "Layout name cannot contain '/'."
    if trimmed.lower() in {entry.lower() for entry in existing}:
        return f"A layout named '{trimmed}' already exists."
    return None


def _empty_placement(size: GridSize, rng: random.Random, count: int) -> List[Patient]:
    return []


def _perimeter_placement(size: GridSize, rng: random.Random, count: int) -> List[Patient]:
    return generate_patients(size, rng, count=count)


# Named layouts with a fixed starting placement; anything else starts from the seed census.
PLACEMENTS: Dict[str, Callable[[GridSize, random.Random, int], List[Patient]]] = {
    DEFAULT_LAYOUT: _perimeter_placement,
    "eighthFloor": _empty_placement,
    "tenthFloor": _empty_placement,
}


class LayoutStore:
    """Serialized layout snapshots on top of a keyed JSON store.

    Only positions and room structure are stored for patients; the census
    itself is regenerated on every load. Reads that fail fall back to fresh
    seed data and writes that fail return False, so a broken store never
    stops the session.
    """

    def __init__(
        self,
        storage: JsonFileStorage,
        *,
        size: GridSize = DEFAULT_GRID,
        seed_beds: int = SEED_BED_COUNT,
        seed: Optional[int] = None,
    ) -> None:
        self._storage = storage
        self._size = size
        self._seed_beds = seed_beds
        self._seed = seed

    @property
    def size(self) -> GridSize:
        return self._size

    # Registry --------------------------------------------------------------

    def list_layouts(self) -> List[str]:
        try:
            stored = self._storage.get(REGISTRY_KEY)
        except StorageError as exc:
            LOGGER.warning("Layout registry unavailable, using defaults: %s", exc)
            stored = None
        names = [DEFAULT_LAYOUT]
        if isinstance(stored, list):
            for entry in stored:
                if isinstance(entry, str) and entry.strip() and entry.lower() not in {n.lower() for n in names}:
                    names.append(entry)
        return names

    def create_layout(self, name: str) -> OperationResult:
        existing = self.list_layouts()
        error = validate_layout_name(name, existing)
        if error:
            return OperationResult.fail(error)
        trimmed = name.strip()
        try:
            self._storage.set(REGISTRY_KEY, existing + [trimmed])
        except StorageError as exc:
            LOGGER.warning("Failed to register layout %s: %s", trimmed, exc)
            return OperationResult.fail(f"Could not save layout '{trimmed}'.")
        LOGGER.info("Registered layout %s", trimmed)
        return OperationResult.ok(f"Layout '{trimmed}' created.")

    # Patients --------------------------------------------------------------

    def base_patients(self, name: str) -> List[Patient]:
        placement = PLACEMENTS.get(name, _perimeter_placement)
        return placement(self._size, self.rng(), self._seed_beds)

    def rng(self) -> random.Random:
        return random.Random(self._seed)

    def load_layout(self, name: str) -> List[Patient]:
        base = self.base_patients(name)
        try:
            rooms = self._storage.get(_layout_key(name, "rooms"))
            overrides = self._storage.get(_layout_key(name, "positions"))
        except StorageError as exc:
            LOGGER.warning("Failed to load layout %s, using generated census: %s", name, exc)
            return base
        patients = _apply_rooms(base, rooms) if isinstance(rooms, list) else base
        return _merge_positions(patients, overrides)

    def save_layout(self, name: str, patients: Sequence[Patient]) -> bool:
        positions = {p.id: {"gridRow": p.grid_row, "gridColumn": p.grid_column} for p in patients}
        rooms = [
            {
                "id": p.id,
                "bedNumber": p.bed_number,
                "roomDesignation": p.room_designation,
                "isBlocked": p.is_blocked,
            }
            for p in patients
        ]
        try:
            self._storage.set(_layout_key(name, "positions"), positions)
            self._storage.set(_layout_key(name, "rooms"), rooms)
        except StorageError as exc:
            LOGGER.warning("Failed to save layout %s: %s", name, exc)
            return False
        LOGGER.debug("Saved %d position(s) for layout %s", len(positions), name)
        return True

    # Staffing --------------------------------------------------------------

    def load_staffing(self, name: str) -> Staffing:
        try:
            nurse_records = self._storage.get(_layout_key(name, "nurses"))
            tech_records = self._storage.get(_layout_key(name, "techs"))
            staff_record = self._storage.get(_layout_key(name, "staff"))
        except StorageError as exc:
            LOGGER.warning("Failed to load staffing for %s, using seed roster: %s", name, exc)
            return Staffing(nurses=generate_nurses())

        if isinstance(nurse_records, dict):
            nurses = [n for n in (_nurse_from_record(r) for r in nurse_records.values()) if n is not None]
        else:
            nurses = generate_nurses()
        techs: List[PatientCareTech] = []
        if isinstance(tech_records, dict):
            techs = [t for t in (_tech_from_record(r) for r in tech_records.values()) if t is not None]
        return Staffing(nurses=nurses, techs=techs, staff=_staff_from_record(staff_record))

    def save_staffing(
        self,
        name: str,
        nurses: Sequence[Nurse],
        techs: Sequence[PatientCareTech],
        staff: StaffAssignments,
    ) -> bool:
        try:
            self._storage.set(_layout_key(name, "nurses"), {n.id: nurse_to_record(n) for n in nurses})
            self._storage.set(_layout_key(name, "techs"), {t.id: tech_to_record(t) for t in techs})
            self._storage.set(
                _layout_key(name, "staff"),
                {"chargeNurseName": staff.charge_nurse_name, "unitClerkName": staff.unit_clerk_name},
            )
        except StorageError as exc:
            LOGGER.warning("Failed to save staffing for %s: %s", name, exc)
            return False
        return True

    # Spectra ---------------------------------------------------------------

    def load_spectra_pool(self) -> List[Spectra]:
        try:
            records = self._storage.get(SPECTRA_KEY)
        except StorageError as exc:
            LOGGER.warning("Spectra pool unavailable, using seed devices: %s", exc)
            return generate_spectra()
        if not isinstance(records, list):
            return generate_spectra()
        pool: List[Spectra] = []
        for record in records:
            if isinstance(record, dict) and isinstance(record.get("id"), str):
                pool.append(Spectra(id=record["id"], in_service=bool(record.get("inService", True))))
        return pool or generate_spectra()

    def save_spectra_pool(self, pool: Sequence[Spectra]) -> bool:
        try:
            self._storage.set(SPECTRA_KEY, [{"id": s.id, "inService": s.in_service} for s in pool])
        except StorageError as exc:
            LOGGER.warning("Failed to save Spectra pool: %s", exc)
            return False
        return True

    # Preferences -----------------------------------------------------------

    def load_preferences(self) -> Preferences:
        try:
            record = self._storage.get(PREFERENCES_KEY)
        except StorageError as exc:
            LOGGER.warning("Preferences unavailable, using defaults: %s", exc)
            return Preferences()
        if not isinstance(record, dict):
            return Preferences()
        last_opened = record.get("lastOpenedLayout")
        return Preferences(
            is_layout_locked=bool(record.get("isLayoutLocked", False)),
            last_opened_layout=last_opened if isinstance(last_opened, str) else None,
        )

    def save_preference(self, key: str, value: Any) -> bool:
        if key not in PREFERENCE_KEYS:
            raise ValueError(f"Unknown preference '{key}'")
        try:
            record = self._storage.get(PREFERENCES_KEY)
            merged = dict(record) if isinstance(record, dict) else {}
            merged[key] = value
            self._storage.set(PREFERENCES_KEY, merged)
        except StorageError as exc:
            LOGGER.warning("Failed to save preference %s: %s", key, exc)
            return False
        return True


def _layout_key(name: str, part: str) -> str:
    return f"layout/{name}/{part}"


def _apply_rooms(base: Sequence[Patient], records: Sequence[Any]) -> List[Patient]:
    """Make the stored room list authoritative over the generated one."""
    by_id = {p.id: p for p in base}
    rooms: List[Patient] = []
    seen = set()
    for record in records:
        if not isinstance(record, dict):
            continue
        patient_id = record.get("id")
        bed_number = record.get("bedNumber")
        designation = record.get("roomDesignation")
        if not isinstance(patient_id, str) or patient_id in seen:
            continue
        if not isinstance(bed_number, int) or not isinstance(designation, str):
            continue
        seen.add(patient_id)
        blocked = bool(record.get("isBlocked", False))
        existing = by_id.get(patient_id)
        if existing is None:
            rooms.append(vacant_patient(patient_id, bed_number, designation, 0, 0, is_blocked=blocked))
        else:
            rooms.append(
                replace(existing, bed_number=bed_number, room_designation=designation, is_blocked=blocked)
            )
    return rooms


def _merge_positions(patients: Sequence[Patient], overrides: Any) -> List[Patient]:
    if not isinstance(overrides, dict):
        return list(patients)
    merged: List[Patient] = []
    for patient in patients:
        position = overrides.get(patient.id)
        if isinstance(position, dict):
            row, col = position.get("gridRow"), position.get("gridColumn")
            if isinstance(row, int) and isinstance(col, int):
                patient = replace(patient, grid_row=row, grid_column=col)
        merged.append(patient)
    return merged


def nurse_to_record(nurse: Nurse) -> Dict[str, Any]:
    return {
        "id": nurse.id,
        "name": nurse.name,
        "role": nurse.role.value,
        "spectra": nurse.spectra,
        "relief": nurse.relief,
        "gridRow": nurse.grid_row,
        "gridColumn": nurse.grid_column,
        "assignedPatientIds": list(nurse.assigned_patient_ids),
    }


def tech_to_record(tech: PatientCareTech) -> Dict[str, Any]:
    return {
        "id": tech.id,
        "name": tech.name,
        "spectra": tech.spectra,
        "gridRow": tech.grid_row,
        "gridColumn": tech.grid_column,
        "assignmentGroup": tech.assignment_group,
    }


def _nurse_from_record(record: Any) -> Optional[Nurse]:
    if not isinstance(record, dict) or not isinstance(record.get("id"), str):
        LOGGER.warning("Skipping malformed nurse record: %r", record)
        return None
    try:
        role = StaffRole(record.get("role", StaffRole.STAFF_NURSE.value))
    except ValueError:
        LOGGER.warning("Unknown role %r for nurse %s; treating as Staff Nurse", record.get("role"), record["id"])
        role = StaffRole.STAFF_NURSE
    slots = record.get("assignedPatientIds")
    if (
        isinstance(slots, list)
        and len(slots) == SLOTS_PER_NURSE
        and all(slot is None or isinstance(slot, str) for slot in slots)
    ):
        assigned = tuple(slots)
    else:
        assigned = empty_slots()
    return Nurse(
        id=record["id"],
        name=str(record.get("name", "")),
        role=role,
        spectra=_optional_str(record.get("spectra")),
        relief=_optional_str(record.get("relief")),
        grid_row=_int_or_zero(record.get("gridRow")),
        grid_column=_int_or_zero(record.get("gridColumn")),
        assigned_patient_ids=assigned,
    )


def _tech_from_record(record: Any) -> Optional[PatientCareTech]:
    if not isinstance(record, dict) or not isinstance(record.get("id"), str):
        LOGGER.warning("Skipping malformed tech record: %r", record)
        return None
    return PatientCareTech(
        id=record["id"],
        name=str(record.get("name", "")),
        spectra=_optional_str(record.get("spectra")),
        grid_row=_int_or_zero(record.get("gridRow")),
        grid_column=_int_or_zero(record.get("gridColumn")),
        assignment_group=str(record.get("assignmentGroup", "")),
    )


def _staff_from_record(record: Any) -> StaffAssignments:
    if not isinstance(record, dict):
        return StaffAssignments()
    return StaffAssignments(
        charge_nurse_name=str(record.get("chargeNurseName") or UNASSIGNED),
        unit_clerk_name=str(record.get("unitClerkName") or UNASSIGNED),
    )


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _int_or_zero(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


__all__ = [
    "DEFAULT_LAYOUT",
    "JsonFileStorage",
    "LayoutStore",
    "PLACEMENTS",
    "PREFERENCE_KEYS",
    "Preferences",
    "Staffing",
    "StorageError",
    "nurse_to_record",
    "tech_to_record",
    "validate_layout_name",
]
