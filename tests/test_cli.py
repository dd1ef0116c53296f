from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from performanalyzer import __version__
from performanalyzer.cli import app

runner = CliRunner()

LEAKY_APP = "setInterval(tick, 10);\nconsole.log('mounted');\n"


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    for key in ("GITHUB_HEAD_REF", "GITHUB_REF_NAME", "GITHUB_SHA"):
        monkeypatch.delenv(key, raising=False)
    (tmp_path / "App.tsx").write_text(LEAKY_APP, encoding="utf-8")
    src = tmp_path / "src"
    src.mkdir()
    (src / "clean.ts").write_text("export const answer = 42;\n", encoding="utf-8")
    (src / "timer.ts").write_text("export const answer = 42;\n", encoding="utf-8")
    return tmp_path


def _invoke(*args: str, input: str | None = None):
    return runner.invoke(app, ["--no-color", *args], input=input)


def test_version_option() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == __version__


def test_analyze_reports_score_and_issues(project: Path) -> None:
    result = _invoke("analyze", "App.tsx")
    assert result.exit_code == 0, result.output
    assert "App.tsx: 88/100 (GOOD)" in result.output
    assert "1: [HIGH] setInterval is started but clearInterval is never called." in result.output
    assert "2: [LOW]" in result.output


def test_analyze_severity_filter(project: Path) -> None:
    result = _invoke("analyze", "App.tsx", "--severity", "high", "--detailed")
    assert result.exit_code == 0, result.output
    assert "[LOW]" not in result.output
    assert "rule: interval_without_cleanup, column 1" in result.output


def test_analyze_ignore_patterns_skips_rules(project: Path) -> None:
    result = _invoke("analyze", "App.tsx", "--ignore-patterns", "console_statement, ")
    assert result.exit_code == 0, result.output
    assert "App.tsx: 90/100 (EXCELLENT)" in result.output
    assert "[LOW]" not in result.output


def test_analyze_ignore_patterns_rejects_unknown_rule(project: Path) -> None:
    result = _invoke("analyze", "App.tsx", "--ignore-patterns", "no_such_rule")
    assert result.exit_code == 1
    assert "Unknown rule ids: no_such_rule" in result.output


def test_analyze_rejects_unknown_severity(project: Path) -> None:
    result = _invoke("analyze", "App.tsx", "--severity", "critical")
    assert result.exit_code == 2


def test_missing_and_unsupported_files_exit_with_error(project: Path) -> None:
    missing = _invoke("analyze", "missing.tsx")
    assert missing.exit_code == 1
    assert "Error: File not found: missing.tsx" in missing.output

    (project / "notes.md").write_text("# notes\n", encoding="utf-8")
    unsupported = _invoke("analyze", "notes.md")
    assert unsupported.exit_code == 1
    assert "Unsupported file extension '.md'" in unsupported.output


def test_quick_uses_the_quick_rule_set(project: Path) -> None:
    result = _invoke("quick", "App.tsx")
    assert result.exit_code == 0, result.output
    assert "Quick performance check" in result.output
    assert "App.tsx: 90/100 (EXCELLENT)" in result.output

    critical = _invoke("quick", "App.tsx", "--only-critical")
    assert "[HIGH]" in critical.output


def test_simple_json_output(project: Path) -> None:
    result = _invoke("simple", "App.tsx", "--format", "json")
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["file_path"] == "App.tsx"
    assert payload["score"] == 88
    assert [issue["rule_id"] for issue in payload["issues"]] == [
        "interval_without_cleanup",
        "console_statement",
    ]


def test_simple_table_output(project: Path) -> None:
    result = _invoke("simple", "App.tsx", "--format", "table")
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0] == "App.tsx: 88/100 (GOOD)"
    assert lines[1].split() == ["Line", "Severity", "Rule", "Message"]
    assert lines[3].split()[:3] == ["1", "HIGH", "interval_without_cleanup"]
    assert lines[4].split()[:3] == ["2", "LOW", "console_statement"]


def test_fix_lists_suggestions_without_touching_the_file(project: Path) -> None:
    result = _invoke("fix", "App.tsx")
    assert result.exit_code == 0, result.output
    assert "Fix suggestions for App.tsx:" in result.output
    assert "1. Line 1:" in result.output
    assert (project / "App.tsx").read_text(encoding="utf-8") == LEAKY_APP


def test_global_output_option_writes_json(project: Path) -> None:
    result = _invoke("--output", "out/result.json", "analyze", "App.tsx")
    assert result.exit_code == 0, result.output
    assert "Results saved to: out/result.json" in result.output
    payload = json.loads((project / "out" / "result.json").read_text(encoding="utf-8"))
    assert payload["score"] == 88


def test_bulk_scans_directory(project: Path) -> None:
    (project / "src" / "timer.ts").write_text(LEAKY_APP, encoding="utf-8")
    result = _invoke("bulk", "src", "--parallel", "2")
    assert result.exit_code == 0, result.output
    assert "Overall score: 94/100 (EXCELLENT) across 2 files" in result.output
    assert "- timer.ts: 88/100, 2 issues (1 high)" in result.output

    summary = _invoke("bulk", "src", "--summary-only", "--extensions", "tsx")
    assert "across 0 files" in summary.output
    assert "Files needing attention" not in summary.output


def test_bulk_rejects_bad_mode_and_missing_directory(project: Path) -> None:
    assert _invoke("bulk", "src", "--mode", "deep").exit_code == 2
    missing = _invoke("bulk", "nowhere")
    assert missing.exit_code == 1
    assert "Error: Not a directory" in missing.output


def test_health_threshold_sets_exit_code(project: Path) -> None:
    (project / "src" / "timer.ts").write_text(LEAKY_APP, encoding="utf-8")
    passing = _invoke("health", "src")
    assert passing.exit_code == 0, passing.output
    assert "Project health: 94/100 (EXCELLENT)" in passing.output

    failing = _invoke("health", "src", "--score-threshold", "95")
    assert failing.exit_code == 1
    assert "below the threshold of 95" in failing.output


def test_ci_bootstraps_then_gates_regressions(project: Path) -> None:
    first = _invoke("ci", "--directory", "src", "--branch", "main", "--commit", "abc123")
    assert first.exit_code == 0, first.output
    assert "Performance check: PASS" in first.output
    assert "this run becomes the baseline" in first.output
    assert (project / ".performance-snapshots" / "baseline-main.json").is_file()

    leaky = "setInterval(a, 10);\nsetInterval(b, 10);\nsetInterval(c, 10);\n"
    (project / "src" / "timer.ts").write_text(leaky, encoding="utf-8")
    failed = _invoke(
        "ci",
        "--directory",
        "src",
        "--branch",
        "feature/x",
        "--commit",
        "def456",
        "--output",
        "console,json,github-comment",
    )
    assert failed.exit_code == 1, failed.output
    assert "Performance check: FAIL" in failed.output
    assert "Warning: performance regressed." in failed.output
    assert "Report written to:" in failed.output
    assert "Comment written to:" in failed.output
    reports = list((project / ".performance-snapshots").glob("report-*.json"))
    assert len(reports) == 1
    assert json.loads(reports[0].read_text(encoding="utf-8"))["summary"]["status"] == "fail"

    warned = _invoke(
        "ci",
        "--directory",
        "src",
        "--branch",
        "feature/x",
        "--no-fail-on-regression",
        "--no-warn-on-regression",
    )
    assert warned.exit_code == 0, warned.output
    assert "Performance check: WARN" in warned.output
    assert "Warning: performance regressed." not in warned.output


def test_ci_thresholds_can_be_loosened(project: Path) -> None:
    _invoke("ci", "--directory", "src", "--branch", "main", "--commit", "abc123")
    (project / "src" / "timer.ts").write_text(
        "setInterval(a, 10);\nsetInterval(b, 10);\n", encoding="utf-8"
    )

    result = _invoke(
        "ci",
        "--directory",
        "src",
        "--branch",
        "feature/x",
        "--commit",
        "def456",
        "--max-score-regression",
        "10",
    )
    assert result.exit_code == 0, result.output
    assert "Performance check: PASS" in result.output


def test_ci_without_baseline_on_feature_branch(project: Path) -> None:
    result = _invoke("ci", "--directory", "src", "--branch", "feature/x", "--commit", "abc")
    assert result.exit_code == 0, result.output
    assert "No baseline found for 'main'" in result.output


def test_ci_rejects_unknown_output_format(project: Path) -> None:
    result = _invoke("ci", "--directory", "src", "--branch", "main", "--output", "xml")
    assert result.exit_code == 1
    assert "Error: Unknown output format 'xml'" in result.output


def test_invalid_config_file_fails_fast(project: Path) -> None:
    (project / ".performanalyzer.toml").write_text("[analysis\n", encoding="utf-8")
    result = _invoke("analyze", "App.tsx")
    assert result.exit_code == 1
    assert "Error: Invalid TOML" in result.output


def test_config_disables_rules(project: Path) -> None:
    (project / ".performanalyzer.toml").write_text(
        '[rules]\ndisable = ["console_statement"]\n', encoding="utf-8"
    )
    result = _invoke("analyze", "App.tsx")
    assert result.exit_code == 0, result.output
    assert "App.tsx: 90/100 (EXCELLENT)" in result.output


def test_unknown_rule_in_config_is_an_error(project: Path) -> None:
    (project / ".performanalyzer.toml").write_text(
        '[rules]\nenable = ["no_such_rule"]\n', encoding="utf-8"
    )
    result = _invoke("analyze", "App.tsx")
    assert result.exit_code == 1
    assert "no_such_rule" in result.output


def test_rules_lists_mode_membership(project: Path) -> None:
    result = _invoke("rules", "--mode", "quick")
    assert result.exit_code == 0, result.output
    assert "Rules (quick mode):" in result.output
    assert "[x] interval_without_cleanup" in result.output
    assert "[ ] console_statement" in result.output


def test_interactive_quick_check(project: Path) -> None:
    result = _invoke("interactive", input="2\nApp.tsx\n\n")
    assert result.exit_code == 0, result.output
    assert "Quick performance check" in result.output
    assert "App.tsx: 90/100" in result.output


def test_interactive_full_analysis_with_output_file(project: Path) -> None:
    result = _invoke("interactive", input="1\nApp.tsx\nreport.json\n")
    assert result.exit_code == 0, result.output
    assert "App.tsx: 88/100" in result.output
    assert json.loads((project / "report.json").read_text(encoding="utf-8"))["score"] == 88
