"""Printable text reports."""

from unitview.reports.printable import render_assignment_sheet, render_census_report, render_grid

__all__ = ["render_assignment_sheet", "render_census_report", "render_grid"]
