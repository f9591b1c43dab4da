"""Grid geometry helpers for placing beds and staff cards."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Collection, Iterable, List, Sequence, Tuple

import numpy as np

from unitview.census.types import (
    NURSE_CARD_HEIGHT,
    TECH_CARD_HEIGHT,
    Nurse,
    Patient,
    PatientCareTech,
)

Cell = Tuple[int, int]


@dataclass(frozen=True)
class GridSize:
    rows: int = 10
    columns: int = 17


DEFAULT_GRID = GridSize()


@dataclass(frozen=True)
class Footprint:
    """Rectangle of 1-indexed cells anchored at its top-left cell."""

    row: int
    column: int
    height: int = 1
    width: int = 1

    def cells(self) -> List[Cell]:
        return [
            (self.row + dr, self.column + dc)
            for dr in range(self.height)
            for dc in range(self.width)
        ]

    def within(self, size: GridSize) -> bool:
        return (
            self.row >= 1
            and self.column >= 1
            and self.row + self.height - 1 <= size.rows
            and self.column + self.width - 1 <= size.columns
        )


def perimeter_cells(size: GridSize = DEFAULT_GRID) -> List[Cell]:
    """Return the perimeter ring clockwise from the top-left corner."""

    rows, cols = size.rows, size.columns
    if rows <= 0 or cols <= 0:
        return []
    if rows == 1:
        return [(1, c) for c in range(1, cols + 1)]
    if cols == 1:
        return [(r, 1) for r in range(1, rows + 1)]

    cells: List[Cell] = [(1, c) for c in range(1, cols + 1)]
    cells.extend((r, cols) for r in range(2, rows + 1))
    cells.extend((rows, c) for c in range(cols - 1, 0, -1))
    cells.extend((r, 1) for r in range(rows - 1, 1, -1))
    return cells


def nurse_footprint(nurse: Nurse) -> Footprint:
    return Footprint(nurse.grid_row, nurse.grid_column, NURSE_CARD_HEIGHT, 1)


def tech_footprint(tech: PatientCareTech) -> Footprint:
    return Footprint(tech.grid_row, tech.grid_column, TECH_CARD_HEIGHT, 1)


def occupancy_mask(
    size: GridSize,
    patients: Iterable[Patient],
    nurses: Iterable[Nurse],
    techs: Iterable[PatientCareTech],
    *,
    exclude_ids: Collection[str] = (),
) -> np.ndarray:
    """Boolean rows x columns matrix; True where a card sits."""

    mask = np.zeros((size.rows, size.columns), dtype=bool)
    for patient in patients:
        if patient.id in exclude_ids or not patient.is_placed:
            continue
        _mark(mask, Footprint(patient.grid_row, patient.grid_column))
    for nurse in nurses:
        if nurse.id not in exclude_ids:
            _mark(mask, nurse_footprint(nurse))
    for tech in techs:
        if tech.id not in exclude_ids:
            _mark(mask, tech_footprint(tech))
    return mask


def is_free(mask: np.ndarray, footprint: Footprint) -> bool:
    rows, cols = mask.shape
    if not footprint.within(GridSize(rows, cols)):
        return False
    top, left = footprint.row - 1, footprint.column - 1
    return not mask[top : top + footprint.height, left : left + footprint.width].any()


def overlapping_cells(footprints: Sequence[Footprint]) -> List[Cell]:
    """Cells claimed by more than one footprint, in row-major order."""

    seen: set[Cell] = set()
    clashes: set[Cell] = set()
    for footprint in footprints:
        for cell in footprint.cells():
            if cell in seen:
                clashes.add(cell)
            seen.add(cell)
    return sorted(clashes)


def _mark(mask: np.ndarray, footprint: Footprint) -> None:
    rows, cols = mask.shape
    top = max(footprint.row, 1) - 1
    left = max(footprint.column, 1) - 1
    bottom = min(footprint.row + footprint.height - 1, rows)
    right = min(footprint.column + footprint.width - 1, cols)
    if bottom <= top or right <= left:
        return
    mask[top:bottom, left:right] = True


__all__ = [
    "Cell",
    "DEFAULT_GRID",
    "Footprint",
    "GridSize",
    "is_free",
    "nurse_footprint",
    "occupancy_mask",
    "overlapping_cells",
    "perimeter_cells",
    "tech_footprint",
]
