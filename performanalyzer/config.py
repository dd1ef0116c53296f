"""Configuration loading for performanalyzer."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from performanalyzer.analysis import DEFAULT_EXTENSIONS
from performanalyzer.bulk import DEFAULT_EXCLUDE, DEFAULT_MAX_FILES, DEFAULT_WORKERS
from performanalyzer.detector import DEFAULT_MAX_LINES, DEFAULT_TIMEOUT_SECONDS
from performanalyzer.errors import ConfigError
from performanalyzer.models import Thresholds
from performanalyzer.scoring import ScoreWeights
from performanalyzer.snapshots import DEFAULT_SNAPSHOTS_DIR

CONFIG_FILENAMES = (".performanalyzer.toml", "performanalyzer.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("performanalyzer", "react-performanalyzer")

OUTPUT_FORMATS = ("console", "json", "github-comment")


@dataclass(slots=True)
class AnalysisConfig:
    """File discovery and detector limits."""

    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    max_files: int = DEFAULT_MAX_FILES
    workers: int = DEFAULT_WORKERS
    file_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_lines: int = DEFAULT_MAX_LINES

    def to_dict(self) -> dict[str, Any]:
        return {
            "extensions": list(self.extensions),
            "exclude": list(self.exclude),
            "max_files": self.max_files,
            "workers": self.workers,
            "file_timeout_seconds": self.file_timeout_seconds,
            "max_lines": self.max_lines,
        }


@dataclass(slots=True)
class CiConfig:
    """Baseline comparison and gating for the ci command."""

    baseline_branch: str = "main"
    snapshots_dir: str = DEFAULT_SNAPSHOTS_DIR
    output_formats: list[str] = field(default_factory=lambda: ["console"])
    fail_on_regression: bool = True
    warn_on_regression: bool = True
    thresholds: Thresholds = field(default_factory=Thresholds)

    def to_dict(self) -> dict[str, Any]:
        return {
            "baseline_branch": self.baseline_branch,
            "snapshots_dir": self.snapshots_dir,
            "output": list(self.output_formats),
            "fail_on_regression": self.fail_on_regression,
            "warn_on_regression": self.warn_on_regression,
            "thresholds": self.thresholds.to_dict(),
        }


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration values resolved from project files."""

    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    scoring: ScoreWeights = field(default_factory=ScoreWeights)
    rule_enable: list[str] | None = None
    rule_disable: list[str] = field(default_factory=list)
    ci: CiConfig = field(default_factory=CiConfig)
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysis": self.analysis.to_dict(),
            "scoring": self.scoring.to_dict(),
            "rules": {
                "enable": list(self.rule_enable) if self.rule_enable is not None else None,
                "disable": list(self.rule_disable),
            },
            "ci": self.ci.to_dict(),
            "source": self.source,
        }


def load_app_config(repo: Path, config_path: Path | None = None) -> AppConfig:
    """Load config from explicit path or repository-local files with precedence."""
    repo = repo.resolve()
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (repo / config_path)
        if not resolved.exists():
            raise ConfigError(f"Config file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=str(resolved))

    for filename in CONFIG_FILENAMES:
        resolved = repo / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=str(resolved))

    pyproject_path = repo / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=str(pyproject_path))

    return AppConfig()


def parse_output_formats(value: str | list[str]) -> list[str]:
    """Parse a comma-separated (or list) output-format selection.

    Raises:
        ConfigError: a format is unknown or the selection is empty.
    """
    items = value.split(",") if isinstance(value, str) else list(value)
    formats: list[str] = []
    for item in items:
        name = str(item).strip().lower()
        if not name:
            continue
        if name not in OUTPUT_FORMATS:
            choices = ", ".join(OUTPUT_FORMATS)
            raise ConfigError(f"Unknown output format '{name}'. Expected any of: {choices}")
        if name not in formats:
            formats.append(name)
    if not formats:
        raise ConfigError("At least one output format is required")
    return formats


def split_csv(value: str) -> list[str]:
    """Split a comma-separated option value, dropping blanks."""
    return [item.strip() for item in value.split(",") if item.strip()]


def validate_analysis_config(config: AnalysisConfig) -> AnalysisConfig:
    if config.max_files <= 0:
        raise ConfigError("analysis.max_files must be > 0")
    if config.workers <= 0:
        raise ConfigError("analysis.workers must be > 0")
    if config.file_timeout_seconds <= 0:
        raise ConfigError("analysis.file_timeout_seconds must be > 0")
    if config.max_lines <= 0:
        raise ConfigError("analysis.max_lines must be > 0")
    if not config.extensions:
        raise ConfigError("analysis.extensions must not be empty")
    config.extensions = [_normalize_extension(ext) for ext in config.extensions]
    return config


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if not ext:
        raise ConfigError("analysis.extensions must not contain empty entries")
    return ext if ext.startswith(".") else f".{ext}"


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    if source_path.name == PYPROJECT_FILENAME:
        section = _find_pyproject_tool_section(loaded)
        return section if section is not None else {}

    tool_section = _find_pyproject_tool_section(loaded)
    if tool_section is not None:
        return tool_section
    return loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    for key in PYPROJECT_TOOL_KEYS:
        section = tool.get(key)
        if isinstance(section, dict):
            return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> AppConfig:
    analysis_mapping = _as_table(mapping.get("analysis"), "analysis")
    scoring_mapping = _as_table(mapping.get("scoring"), "scoring")
    rules_mapping = _as_table(mapping.get("rules"), "rules")
    ci_mapping = _as_table(mapping.get("ci"), "ci")

    return AppConfig(
        analysis=_parse_analysis_config(analysis_mapping),
        scoring=ScoreWeights(
            high=_as_number(scoring_mapping.get("high", 10), "scoring.high"),
            medium=_as_number(scoring_mapping.get("medium", 5), "scoring.medium"),
            low=_as_number(scoring_mapping.get("low", 2), "scoring.low"),
        ),
        rule_enable=_as_str_list_or_none(rules_mapping.get("enable"), "rules.enable"),
        rule_disable=_as_str_list(rules_mapping.get("disable"), "rules.disable"),
        ci=_parse_ci_config(ci_mapping),
        source=source,
    )


def _parse_analysis_config(value: dict[str, Any]) -> AnalysisConfig:
    defaults = AnalysisConfig()
    config = AnalysisConfig(
        extensions=_as_str_list(value.get("extensions"), "analysis.extensions")
        or defaults.extensions,
        exclude=_as_str_list(value.get("exclude"), "analysis.exclude")
        if "exclude" in value
        else defaults.exclude,
        max_files=_as_int(value.get("max_files", defaults.max_files), "analysis.max_files"),
        workers=_as_int(value.get("workers", defaults.workers), "analysis.workers"),
        file_timeout_seconds=_as_number(
            value.get("file_timeout_seconds", defaults.file_timeout_seconds),
            "analysis.file_timeout_seconds",
        ),
        max_lines=_as_int(value.get("max_lines", defaults.max_lines), "analysis.max_lines"),
    )
    return validate_analysis_config(config)


def _parse_ci_config(value: dict[str, Any]) -> CiConfig:
    defaults = CiConfig()
    thresholds_mapping = _as_table(value.get("thresholds"), "ci.thresholds")
    default_thresholds = defaults.thresholds
    raw_output = value.get("output", defaults.output_formats)
    if not isinstance(raw_output, (str, list)):
        raise ConfigError("ci.output must be a string or a list of strings")

    return CiConfig(
        baseline_branch=_as_str(
            value.get("baseline_branch", defaults.baseline_branch), "ci.baseline_branch"
        ),
        snapshots_dir=_as_str(
            value.get("snapshots_dir", defaults.snapshots_dir), "ci.snapshots_dir"
        ),
        output_formats=parse_output_formats(raw_output),
        fail_on_regression=_as_bool(
            value.get("fail_on_regression", defaults.fail_on_regression),
            "ci.fail_on_regression",
        ),
        warn_on_regression=_as_bool(
            value.get("warn_on_regression", defaults.warn_on_regression),
            "ci.warn_on_regression",
        ),
        thresholds=Thresholds(
            **{
                name: _as_number(
                    thresholds_mapping.get(name, default),
                    f"ci.thresholds.{name}",
                )
                for name, default in default_thresholds.to_dict().items()
            }
        ),
    )


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{field_name} must be a table/object")
    return value


def _as_str_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{field_name} must be a list of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ConfigError(f"{field_name} must be a list of strings")
        items.append(item)
    return items


def _as_str_list_or_none(value: Any, field_name: str) -> list[str] | None:
    if value is None:
        return None
    return _as_str_list(value, field_name)


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{field_name} must be a non-empty string")
    return value


def _as_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ConfigError(f"{field_name} must be an integer")
    return raw


def _as_bool(raw: Any, field_name: str) -> bool:
    if not isinstance(raw, bool):
        raise ConfigError(f"{field_name} must be a boolean")
    return raw


def _as_number(raw: Any, field_name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ConfigError(f"{field_name} must be a number")
    return raw
