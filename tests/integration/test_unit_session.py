from __future__ import annotations

import random
from datetime import date, datetime
from pathlib import Path
from typing import List, Tuple

import pytest

from unitview.census.grid import Footprint, nurse_footprint, overlapping_cells, tech_footprint
from unitview.census.session import (
    AdmissionForm,
    SessionEvent,
    SessionEventType,
    UnitSession,
    create_unit,
)
from unitview.census.types import SLOTS_PER_NURSE, Gender, StaffRole
from unitview.storage.layouts import JsonFileStorage, LayoutStore

NOW = datetime(2024, 3, 15, 9, 0)


def _store(tmp_path: Path) -> LayoutStore:
    return LayoutStore(JsonFileStorage(tmp_path / "layouts"), seed=5)


def _open(store: LayoutStore, events: List[SessionEvent], layout: str = "default") -> UnitSession:
    return UnitSession(store, layout, callback=events.append, clock=lambda: NOW)


def _form(bed_number: int, /, **kwargs) -> AdmissionForm:
    fields = dict(
        bed_number=bed_number,
        name="Jordan Ellis",
        age=64,
        gender=Gender.MALE,
        chief_complaint="Pneumonia",
        admit_date=date(2024, 3, 14),
        discharge_date=date(2024, 3, 19),
        diet="Regular",
    )
    fields.update(kwargs)
    return AdmissionForm(**fields)


def _types(events: List[SessionEvent]) -> List[SessionEventType]:
    return [event.event_type for event in events]


@pytest.fixture()
def store(tmp_path: Path) -> LayoutStore:
    return _store(tmp_path)


@pytest.fixture()
def events() -> List[SessionEvent]:
    return []


@pytest.fixture()
def session(store: LayoutStore, events: List[SessionEvent]) -> UnitSession:
    return _open(store, events)


def test_fresh_session_seeds_the_default_unit(session: UnitSession) -> None:
    summary = session.census_summary()

    assert summary.total_rooms == 48
    assert summary.active == 24
    assert len(session.nurses) == 6
    assert session.techs == ()
    assert [device.id for device in session.available_spectra()] == ["SPEC-7789"]
    assert not session.locked


def test_admit_assigns_nurse_and_autosaves(session: UnitSession, store: LayoutStore, events) -> None:
    result = session.admit_patient(_form(2, assigned_nurse="RN Alice", ldas=(" Foley ", "")))

    assert result.success
    patient = session.patient("patient-2")
    assert patient.name == "Jordan Ellis"
    assert patient.ldas == ("Foley",)
    assert patient.assigned_nurse == "RN Alice"
    assert "patient-2" in session.nurses[0].assigned_ids
    assert SessionEventType.SAVED in _types(events)
    assert store.load_staffing("default").nurses[0].assigned_ids == ["patient-2"]


@pytest.mark.parametrize(
    "overrides,error",
    [
        ({"name": "J"}, "at least 2"),
        ({"name": "Vacant"}, "reserved"),
        ({"age": 131}, "Age"),
        ({"chief_complaint": "  "}, "complaint"),
        ({"diet": ""}, "Diet"),
        ({"bed_number": 999}, "No bed"),
        ({"assigned_nurse": "RN Nobody"}, "No Staff or Float Pool nurse"),
    ],
)
def test_admit_rejects_invalid_forms(session: UnitSession, events, overrides, error: str) -> None:
    before = session.patients

    result = session.admit_patient(_form(2, **overrides))

    assert not result.success
    assert error in result.error
    assert session.patients == before
    assert _types(events) == [SessionEventType.WARNING]


def test_to_be_assigned_leaves_patient_unassigned(session: UnitSession) -> None:
    session.admit_patient(_form(2, assigned_nurse="RN Alice"))
    session.admit_patient(_form(2, assigned_nurse="To Be Assigned"))

    assert session.patient("patient-2").assigned_nurse is None
    assert all("patient-2" not in n.assigned_ids for n in session.nurses)


def test_discharge_clears_assignment_and_is_idempotent(session: UnitSession) -> None:
    session.admit_patient(_form(2, assigned_nurse="RN Bob"))

    result = session.discharge_patient("patient-2")

    assert result.success
    assert session.patient("patient-2").is_vacant
    assert session.patient("patient-2").room_designation == "Room 102"
    assert all("patient-2" not in n.assigned_ids for n in session.nurses)
    assert session.discharge_patient("patient-2").success
    assert not session.discharge_patient("ghost").success


def test_block_only_vacant_rooms_and_admission_unblocks(session: UnitSession) -> None:
    assert not session.set_room_blocked("patient-1", True).success
    assert session.set_room_blocked("patient-2", True).success
    assert session.patient("patient-2").is_blocked
    assert session.census_summary().active == 24

    session.admit_patient(_form(2))

    assert not session.patient("patient-2").is_blocked


def test_rename_room_requires_unique_designation(session: UnitSession) -> None:
    assert not session.rename_room("patient-1", "room 103").success
    assert not session.rename_room("patient-1", "   ").success

    assert session.rename_room("patient-1", " Room 101A ").success
    assert session.patient("patient-1").room_designation == "Room 101A"


def test_create_and_delete_room(session: UnitSession) -> None:
    result = session.create_room("Overflow 1")

    assert result.success
    room = session.patients[-1]
    assert room.id.startswith("bed-")
    assert room.bed_number == 49
    assert room.is_vacant
    assert (room.grid_row, room.grid_column) == (2, 2)
    assert not session.create_room("overflow 1").success

    assert not session.delete_room("patient-1").success
    assert session.delete_room(room.id).success
    assert len(session.patients) == 48


def test_move_patient_swaps_with_occupant(session: UnitSession) -> None:
    result = session.move_patient("patient-1", 1, 2)

    assert result.success
    assert (session.patient("patient-1").grid_row, session.patient("patient-1").grid_column) == (1, 2)
    assert (session.patient("patient-2").grid_row, session.patient("patient-2").grid_column) == (1, 1)


def test_move_patient_rejects_staff_cells_and_off_grid(session: UnitSession) -> None:
    assert not session.move_patient("patient-1", 3, 4).success
    assert not session.move_patient("patient-1", 0, 1).success
    assert not session.move_patient("patient-1", 1, 18).success


def test_move_nurse_rejects_overlap(session: UnitSession) -> None:
    assert session.move_nurse("nurse-1", 6, 10).success
    moved = session.nurses[0]
    assert (moved.grid_row, moved.grid_column) == (6, 10)

    # Clamped to rows 8-10, which runs into the bottom row of beds.
    assert not session.move_nurse("nurse-1", 10, 3).success
    assert not session.move_nurse("nurse-2", 6, 10).success
    assert not session.move_nurse("ghost", 5, 5).success


def test_locked_layout_rejects_structure_edits_and_defers_autosave(
    session: UnitSession, store: LayoutStore, events
) -> None:
    assert session.lock().success
    assert store.load_preferences().is_layout_locked
    events.clear()

    assert not session.create_room("Overflow 1").success
    assert not session.move_patient("patient-1", 1, 2).success
    assert not session.move_nurse("nurse-1", 6, 10).success
    assert not session.add_staff("RN New", StaffRole.STAFF_NURSE).success
    assert not session.reassign("patient-1", "nurse-1").success
    assert not session.clear_assignments("nurse-1").success
    assert not session.balance().success
    assert all(event.event_type is SessionEventType.WARNING for event in events)
    events.clear()

    assert session.admit_patient(_form(2)).success
    assert session.set_room_blocked("patient-4", True).success
    assert SessionEventType.SAVED not in _types(events)

    assert session.unlock().success
    assert SessionEventType.SAVED in _types(events)
    assert not store.load_preferences().is_layout_locked


def test_lock_state_survives_reopen(store: LayoutStore, events) -> None:
    _open(store, events).lock()

    assert _open(store, []).locked


def test_batch_saves_once(session: UnitSession, events) -> None:
    with session.batch():
        session.move_patient("patient-1", 1, 2)
        session.rename_room("patient-3", "Room 103A")
        session.set_room_blocked("patient-4", True)

    assert _types(events).count(SessionEventType.SAVED) == 1


def test_failed_save_keeps_memory_and_reports(tmp_path: Path) -> None:
    blocker = tmp_path / "layouts"
    blocker.write_text("not a directory", encoding="utf-8")
    events: List[SessionEvent] = []
    session = _open(_store(tmp_path), events)

    result = session.rename_room("patient-1", "Room 101A")

    assert result.success
    assert session.patient("patient-1").room_designation == "Room 101A"
    assert _types(events) == [SessionEventType.SAVE_FAILED]


def test_autosave_can_be_disabled(store: LayoutStore) -> None:
    events: List[SessionEvent] = []
    session = UnitSession(store, callback=events.append, autosave=False)

    session.rename_room("patient-1", "Room 101A")

    assert events == []
    assert session.save()
    assert _types(events) == [SessionEventType.SAVED]


def test_add_staff_takes_free_spectra_and_free_cell(session: UnitSession) -> None:
    result = session.add_staff("RN Quinn", StaffRole.FLOAT_POOL_NURSE, relief=" RN Park ")

    assert result.success
    added = session.nurses[-1]
    assert added.id.startswith("nurse-")
    assert added.role is StaffRole.FLOAT_POOL_NURSE
    assert added.spectra == "SPEC-7789"
    assert added.relief == "RN Park"
    assert (added.grid_row, added.grid_column) == (2, 3)
    assert session.available_spectra() == []

    blocked = session.add_staff("RN Rae", StaffRole.STAFF_NURSE)
    assert not blocked.success
    assert "Spectra" in blocked.error


def test_add_tech_gets_group_and_no_overlap(session: UnitSession) -> None:
    session.add_spectra("SPEC-9000")

    assert session.add_staff("PCT Diaz", StaffRole.PATIENT_CARE_TECH).success

    tech = session.techs[0]
    assert tech.id.startswith("tech-")
    assert tech.spectra == "SPEC-7789"
    assert tech.assignment_group == "Room 101 - Room 147"
    footprints = [Footprint(p.grid_row, p.grid_column) for p in session.patients]
    footprints += [nurse_footprint(n) for n in session.nurses] + [tech_footprint(tech)]
    assert overlapping_cells(footprints) == []


def test_singleton_roles_update_staff_assignments(session: UnitSession) -> None:
    assert session.add_staff("RN Park", StaffRole.CHARGE_NURSE).success
    assert session.add_staff("Sam Ortiz", StaffRole.UNIT_CLERK).success
    assert session.add_staff("Lee Sitter", StaffRole.SITTER).success

    assert session.staff.charge_nurse_name == "RN Park"
    assert session.staff.unit_clerk_name == "Sam Ortiz"
    assert len(session.nurses) == 6
    assert not session.add_staff("X", StaffRole.STAFF_NURSE).success


def test_spectra_in_use_cannot_be_taken_out_of_service(session: UnitSession, store: LayoutStore) -> None:
    result = session.set_spectra_service("SPEC-1122", False)

    assert not result.success
    assert "RN Alice" in result.error
    assert next(d for d in session.spectra_pool if d.id == "SPEC-1122").in_service

    assert session.set_spectra_service("SPEC-7789", False).success
    assert session.available_spectra() == []
    assert session.set_spectra_service("SPEC-8894", True).success
    assert [d.id for d in session.available_spectra()] == ["SPEC-8894"]
    assert [d.id for d in store.load_spectra_pool()] == [d.id for d in session.spectra_pool]


def test_add_spectra_normalizes_and_rejects_duplicates(session: UnitSession) -> None:
    assert not session.add_spectra("spec-1122").success
    assert not session.add_spectra("  ").success
    assert session.add_spectra(" spec-9000 ").success
    assert session.spectra_pool[-1].id == "SPEC-9000"


def test_spectra_pool_saves_while_locked(session: UnitSession, store: LayoutStore) -> None:
    session.lock()

    assert session.add_spectra("SPEC-9000").success
    assert store.load_spectra_pool()[-1].id == "SPEC-9000"


def test_reassign_moves_patient_between_nurses(session: UnitSession) -> None:
    assert session.reassign("patient-1", "nurse-1").success
    assert session.reassign("patient-3", "nurse-1").success

    assert session.reassign("patient-1", "nurse-2", slot_index=0).success

    assert session.nurses[0].assigned_patient_ids == (None, "patient-3", None, None, None, None)
    assert session.nurses[1].assigned_ids == ["patient-1"]
    assert session.patient("patient-1").assigned_nurse == "RN Bob"


def test_reassign_rejects_vacant_full_and_unknown(session: UnitSession) -> None:
    for bed in (1, 3, 5, 7, 9, 11):
        assert session.reassign(f"patient-{bed}", "nurse-1").success

    full = session.reassign("patient-13", "nurse-1")

    assert not full.success
    assert str(SLOTS_PER_NURSE) in full.error
    assert session.patient("patient-13").assigned_nurse is None
    assert not session.reassign("patient-2", "nurse-2").success
    assert not session.reassign("ghost", "nurse-2").success


def test_clear_and_remove_nurse_unassign_patients(session: UnitSession) -> None:
    session.reassign("patient-1", "nurse-1")
    session.reassign("patient-3", "nurse-2")

    assert session.clear_assignments("nurse-1").success
    assert session.patient("patient-1").assigned_nurse is None

    assert session.remove_nurse("nurse-2").success
    assert session.patient("patient-3").assigned_nurse is None
    assert len(session.nurses) == 5
    assert "SPEC-2231" in [d.id for d in session.available_spectra()]


def test_balance_spreads_active_patients(session: UnitSession) -> None:
    result = session.balance()

    assert result.success
    assert [len(n.assigned_ids) for n in session.nurses] == [4] * 6
    assert all(p.assigned_nurse for p in session.patients if p.is_active)


def test_balance_warns_when_capacity_runs_out(session: UnitSession, events) -> None:
    for nurse_id in ("nurse-3", "nurse-4", "nurse-5", "nurse-6"):
        session.remove_nurse(nurse_id)
    events.clear()

    assert session.balance().success

    assert [len(n.assigned_ids) for n in session.nurses] == [6, 6]
    assert any(
        e.event_type is SessionEventType.WARNING and "12 patient(s)" in e.message for e in events
    )


def test_layout_survives_reopen(store: LayoutStore) -> None:
    first = _open(store, [])
    first.move_nurse("nurse-1", 6, 10)
    first.move_patient("patient-1", 1, 2)
    first.balance()

    second = _open(store, [])

    assert second.nurses == first.nurses
    assert [(p.id, p.grid_row, p.grid_column) for p in second.patients] == [
        (p.id, p.grid_row, p.grid_column) for p in first.patients
    ]
    assert second.patient("patient-1").name == first.patient("patient-1").name


def test_open_remembers_last_layout(store: LayoutStore) -> None:
    store.create_layout("Ortho")

    first = UnitSession.open(store, "Ortho")
    again = UnitSession.open(store)

    assert first.layout_name == again.layout_name == "Ortho"


def test_empty_named_layout(store: LayoutStore) -> None:
    session = _open(store, [], layout="eighthFloor")

    assert session.patients == ()
    assert session.balance().success


def test_save_as_registers_and_switches(session: UnitSession, store: LayoutStore) -> None:
    session.move_patient("patient-1", 1, 2)

    result = session.save_as(" ICU Pod A ")

    assert result.success
    assert session.layout_name == "ICU Pod A"
    assert "ICU Pod A" in store.list_layouts()
    assert store.load_preferences().last_opened_layout == "ICU Pod A"
    reopened = _open(store, [], layout="ICU Pod A")
    assert (reopened.patient("patient-1").grid_row, reopened.patient("patient-1").grid_column) == (1, 2)

    assert not session.save_as("icu pod a").success


def test_create_unit_builds_vacant_perimeter(store: LayoutStore) -> None:
    result = create_unit(store, " 8 North ", 20, start_number=801)

    assert result.success
    assert "8 North" in store.list_layouts()
    assert store.load_preferences().last_opened_layout == "8 North"

    session = UnitSession.open(store)
    assert session.layout_name == "8 North"
    assert len(session.patients) == 20
    assert all(p.is_vacant for p in session.patients)
    assert session.patients[0].room_designation == "Room 801"
    assert session.nurses == ()


@pytest.mark.parametrize(
    "designation,rooms,start",
    [("8N", 10, 1), ("8 North", 0, 1), ("8 North", 101, 1), ("8 North", 10, 0), ("default", 10, 1)],
)
def test_create_unit_rejects_bad_input(store: LayoutStore, designation: str, rooms: int, start: int) -> None:
    assert not create_unit(store, designation, rooms, start).success
    assert store.list_layouts() == ["default"]


def test_reassign_rejects_slot_outside_the_card(session: UnitSession, events) -> None:
    for slot in (SLOTS_PER_NURSE, 9, -1):
        result = session.reassign("patient-1", "nurse-1", slot_index=slot)
        assert not result.success
        assert "Slot" in result.error

    assert session.nurses[0].assigned_ids == []
    assert session.patient("patient-1").assigned_nurse is None
    assert _types(events) == [SessionEventType.WARNING] * 3
    assert session.reassign("patient-1", "nurse-1", slot_index=SLOTS_PER_NURSE - 1).success


def test_locked_admission_cannot_change_nurse(session: UnitSession) -> None:
    assert session.admit_patient(_form(1, assigned_nurse="RN Alice")).success
    session.lock()

    rejected = session.admit_patient(_form(2, assigned_nurse="RN Bob"))
    assert not rejected.success
    assert "locked" in rejected.error.lower()
    assert session.patient("patient-2").is_vacant
    assert session.nurses[1].assigned_ids == []

    assert not session.admit_patient(_form(1, assigned_nurse="RN Bob")).success
    assert not session.admit_patient(_form(1)).success
    assert session.admit_patient(_form(1, assigned_nurse="RN Alice", diet="NPO")).success
    assert session.patient("patient-1").diet == "NPO"
    assert session.nurses[0].assigned_ids == ["patient-1"]


def test_spectra_service_matches_ids_in_any_case(session: UnitSession, store: LayoutStore) -> None:
    assert not session.set_spectra_service("spec-1122", False).success
    assert not session.set_spectra_service("SPEC-0000", True).success

    assert session.set_spectra_service(" spec-8894 ", True).success

    device = next(d for d in session.spectra_pool if d.id == "SPEC-8894")
    assert device.in_service
    assert [d.id for d in session.available_spectra()] == ["SPEC-7789", "SPEC-8894"]
    assert all(d.id == d.id.upper() for d in store.load_spectra_pool())


def test_open_registers_unlisted_layout(store: LayoutStore) -> None:
    session = UnitSession.open(store, " Step Down ")

    assert session.layout_name == "Step Down"
    assert store.list_layouts() == ["default", "Step Down"]
    assert store.load_preferences().last_opened_layout == "Step Down"


def test_open_reuses_registered_spelling(store: LayoutStore) -> None:
    store.create_layout("Ortho")

    assert UnitSession.open(store, "ORTHO").layout_name == "Ortho"
    assert store.list_layouts() == ["default", "Ortho"]


@pytest.mark.parametrize("name", ["east/west", " / "])
def test_open_rejects_unusable_layout_name(store: LayoutStore, name: str) -> None:
    with pytest.raises(ValueError, match="/"):
        UnitSession.open(store, name)

    assert store.list_layouts() == ["default"]


def _footprints(session: UnitSession) -> List[Footprint]:
    footprints = [Footprint(p.grid_row, p.grid_column) for p in session.patients if p.is_placed]
    footprints += [nurse_footprint(n) for n in session.nurses]
    footprints += [tech_footprint(t) for t in session.techs]
    return footprints


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_random_grid_edits_never_overlap(store: LayoutStore, seed: int) -> None:
    session = UnitSession(store, "default", autosave=False, clock=lambda: NOW)
    for number in range(6):
        session.add_spectra(f"SPEC-W{number}")
    rng = random.Random(seed)
    size = session.size

    def cell() -> Tuple[int, int]:
        return rng.randint(0, size.rows + 1), rng.randint(0, size.columns + 1)

    for step in range(200):
        action = rng.choice(["create", "staff", "tech", "patient", "nurse", "move_tech", "delete"])
        if action == "create":
            session.create_room(f"Walk {step}")
        elif action == "staff":
            session.add_staff(f"RN Walker {step}", StaffRole.STAFF_NURSE)
        elif action == "tech":
            session.add_staff(f"PCT Walker {step}", StaffRole.PATIENT_CARE_TECH)
        elif action == "patient":
            session.move_patient(rng.choice(session.patients).id, *cell())
        elif action == "nurse":
            session.move_nurse(rng.choice(session.nurses).id, *cell())
        elif action == "move_tech" and session.techs:
            session.move_tech(rng.choice(session.techs).id, *cell())
        elif action == "delete":
            vacant = [p for p in session.patients if p.is_vacant]
            if vacant:
                session.delete_room(rng.choice(vacant).id)

        footprints = _footprints(session)
        assert overlapping_cells(footprints) == [], f"step {step}: {action}"
        assert all(footprint.within(size) for footprint in footprints), f"step {step}: {action}"
