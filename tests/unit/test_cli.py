"""Tests for CLI commands using Click's CliRunner."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from avastscan.cli import main


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("CI", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    (tmp_path / "src").mkdir()
    return tmp_path


def _scan(*args: str):
    runner = CliRunner()
    return runner.invoke(main, ["scan", *args])


def test_main_help():
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "AVAST" in result.output
    assert "scan" in result.output
    assert "rules" in result.output


def test_main_version():
    runner = CliRunner()
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_scan_help():
    runner = CliRunner()
    result = runner.invoke(main, ["scan", "--help"])
    assert result.exit_code == 0
    assert "TARGETS" in result.output
    assert "--threshold" in result.output


class TestScanExitCodes:
    def test_findings_fail_gate(self, workdir):
        (workdir / "src" / "app.py").write_text('password = "hunter2"\n')
        result = _scan("src", "-f", "human")
        assert result.exit_code == 1
        assert "Gate: FAIL" in result.output
        assert "avast-auth-001" in result.output

    def test_clean_scan_passes(self, workdir):
        (workdir / "src" / "app.py").write_text("password = hash(input)\n")
        result = _scan("src", "-f", "human")
        assert result.exit_code == 0
        assert "Gate: PASS (threshold high)" in result.output

    def test_threshold_option(self, workdir):
        (workdir / "src" / "api.py").write_text('BASE = "http://api.internal.corp"\n')
        assert _scan("src", "-f", "human").exit_code == 0
        assert _scan("src", "-f", "human", "--threshold", "low").exit_code == 1

    def test_category_option(self, workdir):
        (workdir / "src" / "app.py").write_text('password = "hunter2"\n')
        assert _scan("src", "-f", "human", "-c", "secrets").exit_code == 0

    def test_override_catalog(self, workdir, override_rules_path):
        (workdir / "src" / "app.py").write_text('password = "hunter2"\n')
        result = _scan("src", "-f", "human", "-r", str(override_rules_path))
        assert result.exit_code == 0

    def test_duplicate_rules_are_internal_error(self, workdir, duplicate_rules_path):
        (workdir / "src" / "app.py").write_text("x = 1\n")
        result = _scan("src", "-r", str(duplicate_rules_path))
        assert result.exit_code == 2
        assert "dup-1" in result.output

    def test_unknown_format_is_internal_error(self, workdir):
        result = _scan("src", "-f", "xml")
        assert result.exit_code == 2
        assert "xml" in result.output

    def test_config_file(self, workdir):
        (workdir / "src" / "api.py").write_text('BASE = "http://api.internal.corp"\n')
        (workdir / ".avast.yaml").write_text("severity_threshold: low\n")
        assert _scan("src", "-f", "human").exit_code == 1

    def test_unreadable_file_does_not_abort(self, workdir, monkeypatch):
        import avastscan.scanner.engine as engine_mod

        (workdir / "src" / "app.py").write_text('password = "hunter2"\n')
        (workdir / "src" / "locked.py").write_text("x = 1\n")
        real_read = engine_mod._read_bytes

        def fake_read(path: Path) -> bytes:
            if path.name == "locked.py":
                raise PermissionError(13, "Permission denied")
            return real_read(path)

        monkeypatch.setattr(engine_mod, "_read_bytes", fake_read)
        result = _scan("src", "-f", "human")
        assert result.exit_code == 1
        assert "locked.py" in result.output

    def test_undecodable_rules_file_is_internal_error(self, workdir):
        (workdir / "a.py").write_text("x = 1\n")
        (workdir / "rules.yaml").write_bytes(b"rules: []\n# caf\xe9\n")
        result = _scan("a.py", "-r", "rules.yaml")
        assert result.exit_code == 2
        assert "cannot read" in result.output

    def test_malformed_languages_is_internal_error(self, workdir):
        (workdir / "a.py").write_text("x = 1\n")
        (workdir / "rules.yaml").write_text(
            "rules:\n"
            "  - id: r-1\n"
            "    category: secrets\n"
            "    severity: high\n"
            "    message: m\n"
            "    languages: 5\n"
            "    match: {regex: abc}\n"
        )
        result = _scan("a.py", "-r", "rules.yaml")
        assert result.exit_code == 2
        assert "languages" in result.output

    def test_unexpected_exception_is_internal_error(self, workdir, monkeypatch):
        import avastscan.cli.scan as scan_mod

        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(scan_mod, "load_catalog", broken)
        (workdir / "a.py").write_text("x = 1\n")
        result = _scan("a.py")
        assert result.exit_code == 2
        assert "RuntimeError: boom" in result.output


class TestScanOutput:
    def test_structured_report_file(self, workdir):
        (workdir / "src" / "app.py").write_text('password = "hunter2"\n')
        result = _scan("src", "-f", "human", "-o", "out/report.json")
        assert result.exit_code == 1

        data = json.loads((workdir / "out" / "report.json").read_text())
        assert data["gate"]["passed"] is False
        assert [f["rule_id"] for f in data["findings"]] == ["avast-auth-001"]
        assert data["findings"][0]["file"] == str(Path("src") / "app.py")

    def test_ci_defaults_to_structured(self, workdir, monkeypatch):
        monkeypatch.setenv("CI", "true")
        (workdir / "src" / "app.py").write_text("x = 1\n")
        result = _scan("src")
        assert result.exit_code == 0
        assert '"schema_version": 1' in result.output

    def test_sarif_format(self, workdir):
        (workdir / "src" / "app.py").write_text('password = "hunter2"\n')
        result = _scan("src", "-f", "sarif")
        assert result.exit_code == 1
        assert '"version": "2.1.0"' in result.output


class TestRulesCommand:
    def test_list(self, workdir):
        runner = CliRunner()
        result = runner.invoke(main, ["rules", "list", "-c", "secrets"])
        assert result.exit_code == 0
        assert "avast-sec-001" in result.output
        assert "avast-auth-001" not in result.output

    def test_validate_ok(self, override_rules_path):
        runner = CliRunner()
        result = runner.invoke(main, ["rules", "validate", str(override_rules_path)])
        assert result.exit_code == 0
        assert "ok" in result.output

    def test_validate_duplicate(self, duplicate_rules_path):
        runner = CliRunner()
        result = runner.invoke(main, ["rules", "validate", str(duplicate_rules_path)])
        assert result.exit_code == 2
        assert "dup-1" in result.output
