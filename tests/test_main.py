#!/usr/bin/env python3

"""Tests for the command line entry point."""

import json
from pathlib import Path

import pytest

from header_type_model.main import main, parse_args


@pytest.fixture
def cli_env(monkeypatch, tmp_path: Path, clean_logging) -> Path:
    """Keep logs and any .env lookup inside the test directory."""
    monkeypatch.chdir(tmp_path)
    for name in ("TYPEMODEL_OUTPUT_DIR", "TYPEMODEL_VERBOSE", "TYPEMODEL_WORKERS", "TYPEMODEL_ABI_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TYPEMODEL_LOG_DIR", str(tmp_path / "logs"))
    return tmp_path


def run_main(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


@pytest.mark.unit
class TestParseArgs:
    def test_analyze(self):
        args = parse_args(["analyze", "a.hpp", "headers", "-o", "out", "--snapshot", "v1", "-j", "4"])

        assert args.command == "analyze"
        assert args.paths == [Path("a.hpp"), Path("headers")]
        assert args.output == Path("out")
        assert args.snapshot == "v1"
        assert args.workers == 4
        assert not args.verbose

    def test_analyze_defaults(self):
        args = parse_args(["analyze", "headers"])

        assert args.snapshot == "default"
        assert args.output is None
        assert args.abi is None

    def test_diff_types_repeatable(self):
        args = parse_args(["diff", "old", "new", "--type", "Player", "--type", "game::Item", "-v"])

        assert args.command == "diff"
        assert args.old == Path("old")
        assert args.types == ["Player", "game::Item"]
        assert args.verbose

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])


@pytest.mark.integration
class TestMain:
    """End-to-end runs of both subcommands."""

    def test_analyze_writes_model(self, cli_env: Path, fixtures_dir: Path):
        output_dir = cli_env / "out"

        code = run_main(["analyze", str(fixtures_dir / "snapshots" / "v1"), "-o", str(output_dir), "--snapshot", "v1"])

        assert code == 0
        data = json.loads((output_dir / "v1.json").read_text(encoding="utf-8"))
        assert data["snapshot"] == "v1"
        assert data["layouts"]["Player"]["size"] == 24
        assert list((cli_env / "logs").glob("*.log"))

    def test_analyze_errors_exit_code(self, cli_env: Path):
        header = cli_env / "bad.hpp"
        header.write_text("struct S { int a[1 / 0]; };", encoding="utf-8")

        code = run_main(["analyze", str(header), "-o", str(cli_env / "out")])

        assert code == 1
        assert (cli_env / "out" / "default.json").exists()

    def test_missing_input_is_config_error(self, cli_env: Path, capsys):
        code = run_main(["analyze", str(cli_env / "missing")])

        assert code == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_bad_abi_file(self, cli_env: Path, fixtures_dir: Path):
        abi_file = cli_env / "abi.json"
        abi_file.write_text(json.dumps({"pointer_width": 4}), encoding="utf-8")

        code = run_main(["analyze", str(fixtures_dir / "enum.hpp"), "--abi", str(abi_file)])

        assert code == 1

    def test_diff_to_file(self, cli_env: Path, fixtures_dir: Path):
        snapshots = fixtures_dir / "snapshots"
        output = cli_env / "diff.json"

        code = run_main(["diff", str(snapshots / "v1"), str(snapshots / "v2"), "-o", str(output)])

        assert code == 0
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["added_types"] == ["Vehicle"]
        assert data["removed_types"] == ["Weapon"]

    def test_diff_selected_types_to_stdout(self, cli_env: Path, fixtures_dir: Path, capsys):
        snapshots = fixtures_dir / "snapshots"

        code = run_main(["diff", str(snapshots / "v1"), str(snapshots / "v2"), "--type", "Player"])

        assert code == 0
        out = capsys.readouterr().out
        assert '"added_fields"' in out
        assert '"stamina"' in out
