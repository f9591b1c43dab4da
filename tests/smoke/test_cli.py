from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from unitview.cli.unit import main


def _write_config(tmp_path: Path) -> Path:
    data = {
        "config_version": "smoke",
        "grid": {"rows": 10, "columns": 17},
        "storage": {"path": "layouts"},
        "census": {"default_layout": "default", "seed_beds": 48, "seed": 3},
        "remote_store": {"enabled": False},
        "autosave": {"enabled": True},
    }
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return config_path


def _run(config_path: Path, *argv: str) -> int:
    return main(["--config", str(config_path), *argv])


def test_show_prints_summary_and_grid(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path = _write_config(tmp_path)

    assert _run(config_path, "show") == 0

    out = capsys.readouterr().out
    assert "Layout: default (unlocked)" in out
    assert "Census: 24/48" in out
    assert "P occupied" in out
    assert (tmp_path / "layouts").is_dir()


def test_layout_registry_commands(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path = _write_config(tmp_path)

    assert _run(config_path, "create-layout", "ICU Pod A") == 0
    assert _run(config_path, "create-layout", "icu pod a") == 1
    assert _run(config_path, "create-unit", "8 North", "--rooms", "12", "--start", "801") == 0
    capsys.readouterr()

    assert _run(config_path, "layouts") == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines == ["  default", "  ICU Pod A", "* 8 North"]


def test_staffing_and_reports(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path = _write_config(tmp_path)

    assert _run(config_path, "balance") == 0
    assert _run(config_path, "add-staff", "RN Quinn", "--role", "Float Pool Nurse") == 0
    assert _run(config_path, "add-staff", "RN Rae") == 1
    assert _run(config_path, "add-staff", "RN Park", "--role", "Charge Nurse") == 0
    capsys.readouterr()

    assert _run(config_path, "report", "assignments") == 0
    sheet = capsys.readouterr().out
    assert "Charge Nurse: RN Park" in sheet
    assert "RN Quinn [SPEC-7789]" in sheet

    assert _run(config_path, "report", "census") == 0
    assert "Unit Charge Report" in capsys.readouterr().out


def test_spectra_commands(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path = _write_config(tmp_path)

    assert _run(config_path, "spectra", "disable", "SPEC-1122") == 1
    assert _run(config_path, "spectra", "add", "spec-9000") == 0
    assert _run(config_path, "spectra", "disable", "SPEC-9000") == 0
    capsys.readouterr()

    assert _run(config_path, "spectra", "list") == 0

    out = capsys.readouterr().out
    assert "RN Alice" in out
    assert any(line.startswith("SPEC-9000") and "out of service" in line for line in out.splitlines())


def test_lock_blocks_balance(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path = _write_config(tmp_path)

    assert _run(config_path, "lock") == 0
    assert _run(config_path, "balance") == 1
    assert _run(config_path, "show", "--fill-mock") == 0
    assert _run(config_path, "unlock") == 0
    capsys.readouterr()

    assert _run(config_path, "show") == 0
    assert "Layout: default (unlocked)" in capsys.readouterr().out


def test_publish_requires_remote_store(tmp_path: Path) -> None:
    assert _run(_write_config(tmp_path), "publish") == 2


def test_invalid_config_exits(tmp_path: Path) -> None:
    config_path = tmp_path / "broken.yaml"
    config_path.write_text(yaml.safe_dump({"config_version": "broken"}), encoding="utf-8")

    with pytest.raises(SystemExit):
        _run(config_path, "show")


def test_fill_mock_applies_within_one_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path = _write_config(tmp_path)
    assert _run(config_path, "create-unit", "Pod A", "--rooms", "4") == 0
    capsys.readouterr()

    assert _run(config_path, "--layout", "Pod A", "show", "--fill-mock") == 0
    assert "Census: 4/4" in capsys.readouterr().out

    assert _run(config_path, "--layout", "Pod A", "show") == 0
    assert "Census: 0/4" in capsys.readouterr().out


def test_fill_mock_is_not_a_command(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        _run(_write_config(tmp_path), "fill-mock")


def test_unusable_layout_name_exits(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path = _write_config(tmp_path)

    assert _run(config_path, "--layout", "east/west", "show") == 2
    assert _run(config_path, "--layout", "Step Down", "show") == 0
    capsys.readouterr()

    assert _run(config_path, "layouts") == 0
    assert capsys.readouterr().out.splitlines() == ["  default", "* Step Down"]


def test_spectra_ids_match_any_case(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path)

    assert _run(config_path, "spectra", "enable", "spec-8894") == 0
    assert _run(config_path, "spectra", "disable", "spec-1122") == 1
