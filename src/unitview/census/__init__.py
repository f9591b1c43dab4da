"""Census model: beds, staff cards, grid placement, and assignment bookkeeping."""

from unitview.census.grid import DEFAULT_GRID, Footprint, GridSize, perimeter_cells
from unitview.census.staffing import AssignmentLedger, balance_caseloads, find_slot, recompute_tech_groups
from unitview.census.types import (
	Nurse,
	OperationResult,
	Patient,
	PatientCareTech,
	Spectra,
	StaffAssignments,
	StaffRole,
)

__all__ = [
	"AssignmentLedger",
	"DEFAULT_GRID",
	"Footprint",
	"GridSize",
	"Nurse",
	"OperationResult",
	"Patient",
	"PatientCareTech",
	"Spectra",
	"StaffAssignments",
	"StaffRole",
	"balance_caseloads",
	"find_slot",
	"perimeter_cells",
	"recompute_tech_groups",
]
