"""Command-line front end for the unit census: layouts, staffing, reports, publishing."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from typing import Sequence

from unitview.cli._helpers import (
    add_common_args,
    build_layout_store,
    configure_logging,
    load_cli_config,
    report_result,
)
from unitview.census.session import SessionEvent, SessionEventType, UnitSession, create_unit
from unitview.census.types import StaffRole
from unitview.config.loader import Config
from unitview.reports.printable import render_assignment_sheet, render_census_report, render_grid
from unitview.storage.layouts import LayoutStore
from unitview.storage.remote import SnapshotClient

LOGGER = logging.getLogger(__name__)

# Commands that work on the layout registry without opening a session.
_REGISTRY_COMMANDS = {"layouts", "create-layout", "create-unit"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unitview",
        description="Manage the nursing unit census, staffing, and shift assignments.",
    )
    add_common_args(parser)
    parser.add_argument(
        "--layout",
        default=None,
        help="Layout to open (default: last opened layout, else census.default_layout)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("layouts", help="List saved layouts")

    create_layout = subparsers.add_parser("create-layout", help="Register a new layout name")
    create_layout.add_argument("name", help="Layout name (unique, no '/')")

    create_unit_cmd = subparsers.add_parser("create-unit", help="Create a unit with vacant perimeter rooms")
    create_unit_cmd.add_argument("designation", help="Unit designation (at least 3 characters)")
    create_unit_cmd.add_argument("--rooms", type=int, required=True, help="Number of rooms (1-100)")
    create_unit_cmd.add_argument(
        "--start",
        type=int,
        default=1,
        help="First room number (default: %(default)s)",
    )

    show = subparsers.add_parser("show", help="Print the census summary and grid map")

    report = subparsers.add_parser("report", help="Print a census report or assignment sheet")
    report.add_argument("kind", choices=("census", "assignments"))

    balance = subparsers.add_parser("balance", help="Spread active patients evenly across nurses")

    add_staff = subparsers.add_parser("add-staff", help="Add a staff member to the unit")
    add_staff.add_argument("name")
    add_staff.add_argument(
        "--role",
        choices=[role.value for role in StaffRole],
        default=StaffRole.STAFF_NURSE.value,
        help="Staff role (default: %(default)s)",
    )
    add_staff.add_argument("--relief", default=None, help="Relief nurse name")

    spectra = subparsers.add_parser("spectra", help="Manage the Spectra device pool")
    spectra_sub = spectra.add_subparsers(dest="spectra_command", required=True)
    spectra_sub.add_parser("list", help="List devices and who holds them")
    for action in ("add", "enable", "disable"):
        sub = spectra_sub.add_parser(action, help=f"{action.capitalize()} a device")
        sub.add_argument("device_id")

    subparsers.add_parser("lock", help="Lock the layout against grid and staffing edits")
    subparsers.add_parser("unlock", help="Unlock the layout")
    publish = subparsers.add_parser("publish", help="Publish the shift assignment snapshot")

    # Mock patients are not persisted; they only live for this run.
    for command in (show, report, balance, publish):
        command.add_argument(
            "--fill-mock",
            action="store_true",
            help="Admit mock patients into every vacant bed before running the command",
        )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    config = load_cli_config(args.config)
    LOGGER.debug("Config loaded (version=%s)", config.config_version)
    store = build_layout_store(config)

    if args.command in _REGISTRY_COMMANDS:
        return _handle_registry(args, store)

    try:
        session = UnitSession.open(
            store,
            args.layout,
            default_layout=config.census.default_layout,
            callback=_log_event,
            autosave=config.autosave.enabled,
        )
    except ValueError as exc:
        LOGGER.error("Cannot open layout %r: %s", args.layout, exc)
        return 2
    if getattr(args, "fill_mock", False):
        report_result(session.fill_mock_beds())
    if args.command == "show":
        return _handle_show(session)
    if args.command == "report":
        return _handle_report(session, args.kind)
    if args.command == "balance":
        return report_result(session.balance())
    if args.command == "add-staff":
        return report_result(session.add_staff(args.name, StaffRole(args.role), relief=args.relief))
    if args.command == "spectra":
        return _handle_spectra(session, args)
    if args.command == "lock":
        return report_result(session.lock())
    if args.command == "unlock":
        return report_result(session.unlock())
    if args.command == "publish":
        return _handle_publish(session, config)
    parser.error(f"Unknown command: {args.command}")  # pragma: no cover
    return 2  # pragma: no cover


def _handle_registry(args: argparse.Namespace, store: LayoutStore) -> int:
    if args.command == "layouts":
        last_opened = store.load_preferences().last_opened_layout
        for name in store.list_layouts():
            marker = "*" if name == last_opened else " "
            print(f"{marker} {name}")
        return 0
    if args.command == "create-layout":
        return report_result(store.create_layout(args.name))
    return report_result(create_unit(store, args.designation, args.rooms, args.start))


def _handle_show(session: UnitSession) -> int:
    summary = session.census_summary()
    state = "locked" if session.locked else "unlocked"
    print(f"Layout: {session.layout_name} ({state})")
    print(
        f"Census: {summary.active}/{summary.total_rooms} | DNR: {summary.dnr}"
        f" | Restraints: {summary.restraints} | Foley: {summary.foley}"
    )
    print(f"Charge Nurse: {session.staff.charge_nurse_name} | Unit Clerk: {session.staff.unit_clerk_name}")
    print()
    sys.stdout.write(render_grid(session.patients, session.nurses, session.techs, session.size))
    return 0


def _handle_report(session: UnitSession, kind: str) -> int:
    now = datetime.now()
    if kind == "census":
        sys.stdout.write(render_census_report(session.patients, now))
    else:
        sys.stdout.write(
            render_assignment_sheet(
                session.layout_name,
                session.staff.charge_nurse_name,
                session.nurses,
                session.techs,
                session.patients,
                now,
            )
        )
    return 0


def _handle_spectra(session: UnitSession, args: argparse.Namespace) -> int:
    if args.spectra_command == "list":
        holders = {n.spectra: n.name for n in session.nurses if n.spectra}
        holders.update({t.spectra: t.name for t in session.techs if t.spectra})
        for device in session.spectra_pool:
            status = "in service" if device.in_service else "out of service"
            print(f"{device.id:<12} {status:<15} {holders.get(device.id, '-')}")
        return 0
    if args.spectra_command == "add":
        return report_result(session.add_spectra(args.device_id))
    in_service = args.spectra_command == "enable"
    return report_result(session.set_spectra_service(args.device_id, in_service))


def _handle_publish(session: UnitSession, config: Config) -> int:
    client = SnapshotClient(config.remote_store)
    if not client.enabled:
        LOGGER.error("remote_store is disabled; set remote_store.enabled and base_url to publish")
        return 2
    return report_result(session.publish_assignments(client))


def _log_event(event: SessionEvent) -> None:
    if event.event_type is SessionEventType.SAVE_FAILED:
        LOGGER.error("%s", event.message)
    elif event.event_type is SessionEventType.WARNING:
        LOGGER.warning("%s", event.message)
    else:
        LOGGER.debug("[%s] %s", event.event_type.value, event.message)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
