"""CLI entrypoint for performanalyzer."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Annotated, TypeVar

import click
import typer

from performanalyzer import __version__
from performanalyzer.analysis import analyze_file
from performanalyzer.bulk import BulkResult, analyze_directory
from performanalyzer.ci import CiOptions, run_ci
from performanalyzer.config import (
    AnalysisConfig,
    AppConfig,
    load_app_config,
    parse_output_formats,
    split_csv,
    validate_analysis_config,
)
from performanalyzer.detector import Detector
from performanalyzer.errors import AnalysisAborted, AnalyzerError, StorageError
from performanalyzer.logging import configure_logging
from performanalyzer.models import AnalysisResult, Snapshot, Thresholds
from performanalyzer.output import (
    render_analysis,
    render_bulk,
    render_comparison,
    render_fix_suggestions,
    render_health,
    render_issue_table,
    render_json_result,
    render_rules,
    render_snapshot_json,
)
from performanalyzer.rules import (
    MODE_FULL,
    MODE_QUICK,
    MODE_SIMPLE,
    MODES,
    build_rule_set,
    list_rule_info,
)
from performanalyzer.scoring import SEVERITIES

EXIT_ABORTED = 130

T = TypeVar("T")

app = typer.Typer(
    name="performanalyzer",
    no_args_is_help=True,
    help="Find performance anti-patterns in React code and gate regressions in CI.",
)


@dataclass(frozen=True, slots=True)
class CliState:
    """Global options shared by every command."""

    verbose: bool = False
    color: bool = True
    output: Path | None = None
    config_path: Path | None = None
    repo: Path = Path(".")


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log debug diagnostics to stderr.")
    ] = False,
    no_color: Annotated[bool, typer.Option("--no-color", help="Disable colored output.")] = False,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write results as JSON to this file.")
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
) -> None:
    """Root command callback."""
    _ = version
    configure_logging(verbose=verbose, color=not no_color)
    ctx.obj = CliState(
        verbose=verbose,
        color=not no_color,
        output=output,
        config_path=config_file,
    )


@app.command("analyze")
def analyze_command(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="File to analyze.")],
    severity: Annotated[
        str, typer.Option(help="Lowest severity to show: high|medium|low.")
    ] = "low",
    detailed: Annotated[bool, typer.Option(help="Show rule ids and columns.")] = False,
    ignore_patterns: Annotated[
        str | None,
        typer.Option("--ignore-patterns", help="Comma-separated rule ids to skip."),
    ] = None,
) -> None:
    """Run every rule over a file and print its health score."""
    state = _state(ctx)
    min_severity = _choice_or_default(
        value=severity, default="low", allowed=set(SEVERITIES), field_name="--severity"
    )
    with _exit_on_error():
        _run_single_file(
            state,
            file,
            mode=MODE_FULL,
            min_severity=min_severity,
            detailed=detailed,
            ignored=split_csv(ignore_patterns or ""),
        )


@app.command("quick")
def quick_command(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="File to analyze.")],
    only_critical: Annotated[
        bool, typer.Option("--only-critical", help="Show high severity issues only.")
    ] = False,
) -> None:
    """Fast check for memory leaks, effect dependencies and render allocations."""
    state = _state(ctx)
    with _exit_on_error():
        _run_single_file(
            state,
            file,
            mode=MODE_QUICK,
            min_severity="high" if only_critical else "low",
            title="Quick performance check",
        )


@app.command("simple")
def simple_command(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="File to analyze.")],
    format: Annotated[str, typer.Option(help="Output format: text|json|table.")] = "text",
) -> None:
    """Basic check with beginner-friendly rules."""
    state = _state(ctx)
    output_format = _choice_or_default(
        value=format, default="text", allowed={"text", "json", "table"}, field_name="--format"
    )
    with _exit_on_error():
        if output_format == "json":
            result = _analyze_single(state, file, mode=MODE_SIMPLE)
            typer.echo(render_json_result(result))
            _write_output(state, render_json_result(result))
            return
        if output_format == "table":
            result = _analyze_single(state, file, mode=MODE_SIMPLE)
            typer.echo(render_issue_table(result, color=state.color))
            _write_output(state, render_json_result(result))
            return
        _run_single_file(state, file, mode=MODE_SIMPLE, title="Simple performance check")


@app.command("fix")
def fix_command(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="File to inspect.")],
) -> None:
    """Print fix suggestions for high and medium issues. Files are never modified."""
    state = _state(ctx)
    with _exit_on_error():
        _run_fix(state, file)


@app.command("bulk")
def bulk_command(
    ctx: typer.Context,
    directory: Annotated[Path, typer.Argument(help="Directory to scan.")],
    extensions: Annotated[
        str | None, typer.Option(help="Comma-separated file extensions.")
    ] = None,
    exclude: Annotated[
        str | None, typer.Option(help="Comma-separated directory names or globs to skip.")
    ] = None,
    max_files: Annotated[int | None, typer.Option(help="Maximum number of files.")] = None,
    parallel: Annotated[int | None, typer.Option(help="Number of worker threads.")] = None,
    summary_only: Annotated[
        bool, typer.Option("--summary-only", help="Print totals only.")
    ] = False,
    mode: Annotated[str, typer.Option(help="Rule mode: full|quick|simple.")] = MODE_FULL,
) -> None:
    """Analyze every matching file under a directory."""
    state = _state(ctx)
    resolved_mode = _choice_or_default(
        value=mode, default=MODE_FULL, allowed=set(MODES), field_name="--mode"
    )
    with _exit_on_error():
        app_config = _load_config_or_raise(state)
        analysis = _merge_analysis_options(
            app_config.analysis,
            extensions=extensions,
            exclude=exclude,
            max_files=max_files,
            workers=parallel,
        )
        bulk, snapshot = _run_bulk(
            state, directory, app_config=app_config, analysis=analysis, mode=resolved_mode
        )
        typer.echo(
            render_bulk(bulk, snapshot.summary, color=state.color, summary_only=summary_only)
        )
        _write_output(state, render_snapshot_json(snapshot))


@app.command("health")
def health_command(
    ctx: typer.Context,
    directory: Annotated[Path, typer.Argument(help="Directory to assess.")],
    score_threshold: Annotated[
        int, typer.Option(help="Exit nonzero when the project score is below this value.")
    ] = 70,
) -> None:
    """Assess overall project health."""
    state = _state(ctx)
    with _exit_on_error():
        app_config = _load_config_or_raise(state)
        _, snapshot = _run_bulk(
            state, directory, app_config=app_config, analysis=app_config.analysis, mode=MODE_FULL
        )
        summary = snapshot.summary
        typer.echo(render_health(summary, threshold=score_threshold, color=state.color))
        _write_output(state, render_snapshot_json(snapshot))
    if summary.score < score_threshold:
        raise typer.Exit(code=1)


@app.command("ci")
def ci_command(
    ctx: typer.Context,
    directory: Annotated[Path, typer.Option(help="Directory to analyze.")] = Path("."),
    baseline_branch: Annotated[
        str | None, typer.Option(help="Branch whose snapshot is the baseline.", show_default="main")
    ] = None,
    snapshots_dir: Annotated[
        Path | None,
        typer.Option(help="Snapshot directory.", show_default=".performance-snapshots"),
    ] = None,
    max_score_regression: Annotated[
        float | None, typer.Option(help="Allowed score drop.", show_default="5")
    ] = None,
    max_high_severity_increase: Annotated[
        float | None, typer.Option(help="Allowed increase in high issues.", show_default="2")
    ] = None,
    max_total_issues_increase: Annotated[
        float | None, typer.Option(help="Allowed increase in total issues.", show_default="10")
    ] = None,
    min_score_improvement: Annotated[
        float | None, typer.Option(help="Score gain reported as improvement.", show_default="2")
    ] = None,
    output_formats: Annotated[
        str | None,
        typer.Option(
            "--output",
            help="Comma-separated outputs: console,json,github-comment.",
            show_default="console",
        ),
    ] = None,
    fail_on_regression: Annotated[
        bool | None,
        typer.Option(
            "--fail-on-regression/--no-fail-on-regression",
            help="Exit nonzero when a regression is detected.",
        ),
    ] = None,
    warn_on_regression: Annotated[
        bool | None,
        typer.Option(
            "--warn-on-regression/--no-warn-on-regression",
            help="Print a warning banner when a regression is detected.",
        ),
    ] = None,
    branch: Annotated[str | None, typer.Option(help="Branch of this run.")] = None,
    commit: Annotated[str | None, typer.Option(help="Commit of this run.")] = None,
    baseline_id: Annotated[
        str | None, typer.Option(help="Compare against this snapshot id.")
    ] = None,
    update_baseline: Annotated[
        bool,
        typer.Option("--update-baseline", help="Promote a passing run on the baseline branch."),
    ] = False,
) -> None:
    """Compare the project against its baseline and gate on regressions."""
    state = _state(ctx)
    with _exit_on_error():
        app_config = _load_config_or_raise(state)
        ci_config = app_config.ci
        thresholds = Thresholds(
            max_score_regression=_pick(
                max_score_regression, ci_config.thresholds.max_score_regression
            ),
            max_high_severity_increase=_pick(
                max_high_severity_increase, ci_config.thresholds.max_high_severity_increase
            ),
            max_total_issues_increase=_pick(
                max_total_issues_increase, ci_config.thresholds.max_total_issues_increase
            ),
            min_score_improvement=_pick(
                min_score_improvement, ci_config.thresholds.min_score_improvement
            ),
        )
        formats = (
            parse_output_formats(output_formats)
            if output_formats is not None
            else ci_config.output_formats
        )
        options = CiOptions(
            directory=directory,
            snapshots_dir=snapshots_dir or Path(ci_config.snapshots_dir),
            baseline_branch=baseline_branch or ci_config.baseline_branch,
            thresholds=thresholds,
            output_formats=tuple(formats),
            fail_on_regression=_pick(fail_on_regression, ci_config.fail_on_regression),
            warn_on_regression=_pick(warn_on_regression, ci_config.warn_on_regression),
            branch=branch,
            commit=commit,
            baseline_id=baseline_id,
            update_baseline=update_baseline,
        )
        outcome = run_ci(
            options,
            detector=_build_detector(app_config, mode=MODE_FULL),
            weights=app_config.scoring,
            analysis=app_config.analysis,
            cancel=threading.Event(),
        )

    if "console" in options.output_formats:
        typer.echo(
            render_comparison(
                outcome.snapshot,
                outcome.comparison,
                notice=outcome.resolution.notice,
                warn_on_regression=options.warn_on_regression,
                color=state.color,
            )
        )
    for label, path in (
        ("Snapshot", outcome.snapshot_path),
        ("Baseline", outcome.baseline_path),
        ("Report", outcome.report_path),
        ("Comment", outcome.comment_path),
    ):
        if path is not None:
            typer.echo(f"{label} written to: {path}", err=True)
    if outcome.exit_code:
        raise typer.Exit(code=outcome.exit_code)


@app.command("interactive")
def interactive_command(ctx: typer.Context) -> None:
    """Choose an analysis mode and a path from prompts."""
    state = _state(ctx)
    typer.echo("Available modes:")
    typer.echo("1. Full analysis (detailed report with scoring)")
    typer.echo("2. Quick check (common issues only)")
    typer.echo("3. Simple check (basic analysis)")
    typer.echo("4. Bulk check (entire directory)")
    typer.echo("5. Fix suggestions")
    choice = typer.prompt("Select a mode", type=click.IntRange(1, 5), default=1)
    target = Path(typer.prompt("Path to analyze").strip())
    output_file = typer.prompt("Save results to (leave empty to skip)", default="").strip()
    if output_file:
        state = replace(state, output=Path(output_file))

    with _exit_on_error():
        if choice == 1:
            _run_single_file(state, target, mode=MODE_FULL, detailed=True)
        elif choice == 2:
            _run_single_file(state, target, mode=MODE_QUICK, title="Quick performance check")
        elif choice == 3:
            _run_single_file(state, target, mode=MODE_SIMPLE, title="Simple performance check")
        elif choice == 4:
            app_config = _load_config_or_raise(state)
            bulk, snapshot = _run_bulk(
                state, target, app_config=app_config, analysis=app_config.analysis, mode=MODE_FULL
            )
            typer.echo(render_bulk(bulk, snapshot.summary, color=state.color))
            _write_output(state, render_snapshot_json(snapshot))
        else:
            _run_fix(state, target)


@app.command("rules")
def rules_command(
    ctx: typer.Context,
    mode: Annotated[str, typer.Option(help="Rule mode: full|quick|simple.")] = MODE_FULL,
) -> None:
    """List available rules and which are active for a mode."""
    state = _state(ctx)
    resolved_mode = _choice_or_default(
        value=mode, default=MODE_FULL, allowed=set(MODES), field_name="--mode"
    )
    with _exit_on_error():
        app_config = _load_config_or_raise(state)
        infos = list_rule_info(
            mode=resolved_mode,
            enabled_rule_ids=app_config.rule_enable,
            disabled_rule_ids=app_config.rule_disable,
        )
    typer.echo(render_rules(infos, mode=resolved_mode, color=state.color))


def main() -> None:
    """Console script entrypoint."""
    app()


def _state(ctx: typer.Context) -> CliState:
    state = ctx.obj
    if isinstance(state, CliState):
        return state
    return CliState()


@contextmanager
def _exit_on_error() -> Iterator[None]:
    try:
        yield
    except AnalysisAborted as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=EXIT_ABORTED) from exc
    except AnalyzerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _load_config_or_raise(state: CliState) -> AppConfig:
    return load_app_config(state.repo, config_path=state.config_path)


def _build_detector(
    app_config: AppConfig, *, mode: str, ignored: list[str] | None = None
) -> Detector:
    rule_set = build_rule_set(
        mode=mode,
        enabled_rule_ids=app_config.rule_enable,
        disabled_rule_ids=[*app_config.rule_disable, *(ignored or [])],
    )
    return Detector(
        rule_set,
        max_lines=app_config.analysis.max_lines,
        timeout_seconds=app_config.analysis.file_timeout_seconds,
    )


def _analyze_single(
    state: CliState, file: Path, *, mode: str, ignored: list[str] | None = None
) -> AnalysisResult:
    app_config = _load_config_or_raise(state)
    return analyze_file(
        file,
        detector=_build_detector(app_config, mode=mode, ignored=ignored),
        weights=app_config.scoring,
        extensions=app_config.analysis.extensions,
    )


def _run_single_file(
    state: CliState,
    file: Path,
    *,
    mode: str,
    min_severity: str = "low",
    detailed: bool = False,
    title: str | None = None,
    ignored: list[str] | None = None,
) -> None:
    result = _analyze_single(state, file, mode=mode, ignored=ignored)
    typer.echo(
        render_analysis(
            result,
            color=state.color,
            detailed=detailed,
            min_severity=min_severity,
            title=title,
        )
    )
    _write_output(state, render_json_result(result))


def _run_fix(state: CliState, file: Path) -> None:
    result = _analyze_single(state, file, mode=MODE_FULL)
    typer.echo(render_fix_suggestions(result, color=state.color))


def _run_bulk(
    state: CliState,
    directory: Path,
    *,
    app_config: AppConfig,
    analysis: AnalysisConfig,
    mode: str,
) -> tuple[BulkResult, Snapshot]:
    bulk = analyze_directory(
        directory,
        detector=_build_detector(replace(app_config, analysis=analysis), mode=mode),
        weights=app_config.scoring,
        extensions=analysis.extensions,
        exclude=analysis.exclude,
        max_files=analysis.max_files,
        workers=analysis.workers,
        cancel=threading.Event(),
    )
    return (bulk, Snapshot.create(bulk.results))


def _merge_analysis_options(
    analysis: AnalysisConfig,
    *,
    extensions: str | None,
    exclude: str | None,
    max_files: int | None,
    workers: int | None,
) -> AnalysisConfig:
    merged = replace(
        analysis,
        extensions=split_csv(extensions) if extensions is not None else list(analysis.extensions),
        exclude=split_csv(exclude) if exclude is not None else list(analysis.exclude),
        max_files=_pick(max_files, analysis.max_files),
        workers=_pick(workers, analysis.workers),
    )
    return validate_analysis_config(merged)


def _write_output(state: CliState, text: str) -> None:
    if state.output is None:
        return
    try:
        state.output.parent.mkdir(parents=True, exist_ok=True)
        state.output.write_text(text + "\n", encoding="utf-8")
    except OSError as exc:
        raise StorageError(f"Cannot write {state.output}: {exc.strerror or exc}") from exc
    typer.echo(f"Results saved to: {state.output}", err=True)


def _pick(value: T | None, default: T) -> T:
    return default if value is None else value


def _choice_or_default(
    *,
    value: str | None,
    default: str,
    allowed: set[str],
    field_name: str,
) -> str:
    resolved = (value or default).lower()
    if resolved not in allowed:
        choices = ", ".join(sorted(allowed))
        raise typer.BadParameter(f"{field_name} must be one of: {choices}", param_hint=field_name)
    return resolved
