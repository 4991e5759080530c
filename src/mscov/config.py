"""Configuration parsing from ``.mscov.yml``."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from mscov.detectors.projects import DEFAULT_FRAMEWORK_MARKERS, DEFAULT_SKIP_DIRS

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".mscov.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_TRUE_VALUES = {True, "true", "1", "yes"}


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return value in _TRUE_VALUES


def _str_list(value: Any, default: list[str]) -> list[str]:
    if not isinstance(value, list):
        return list(default)
    return [str(item) for item in value]


@dataclass
class ScanConfig:
    """Report discovery and filtering configuration."""

    report_names: list[str] = field(
        default_factory=lambda: ["coverage.cobertura.xml", "coverage.opencover.xml"]
    )
    """File names that are always treated as coverage reports."""

    results_dirs: list[str] = field(default_factory=lambda: ["TestResults"])
    """Directory names conventionally used for test-result output."""

    binary_extensions: list[str] = field(default_factory=lambda: [".coverage"])
    """Extensions of binary coverage containers (detected, not parsed)."""

    skip_dirs: list[str] = field(default_factory=lambda: sorted(DEFAULT_SKIP_DIRS))
    """Directory names skipped while walking the tree."""

    merge_all: bool = False
    """Merge every discovered report instead of using only the newest one."""

    mstest_only: bool = True
    """Only keep reports attributable to MSTest projects."""

    framework_markers: list[str] = field(
        default_factory=lambda: list(DEFAULT_FRAMEWORK_MARKERS)
    )
    """Strings that must all appear in a project file for it to count as a test project."""

    name_hint: str = "MSTest"
    """Report paths containing this substring are always attributed to test projects."""


@dataclass
class DisplayConfig:
    """Terminal output configuration."""

    good_threshold: float = 80.0
    """Coverage percentage at or above which a value is shown green."""

    warn_threshold: float = 50.0
    """Coverage percentage at or above which a value is shown yellow."""

    max_files: int = 50
    """Maximum number of files listed in the scan table (0 = unlimited)."""


@dataclass
class MscovConfig:
    """Complete configuration from ``.mscov.yml``."""

    root: str
    """Solution root directory."""

    scan: ScanConfig = field(default_factory=ScanConfig)

    display: DisplayConfig = field(default_factory=DisplayConfig)

    raw: dict[str, Any] = field(default_factory=dict)
    """Raw parsed YAML for extension/debugging."""


def _parse_scan_config(raw: dict[str, Any]) -> ScanConfig:
    """Parse scan configuration from raw YAML."""
    scan_raw = raw.get("scan", {})
    if not isinstance(scan_raw, dict):
        scan_raw = {}

    default = ScanConfig()
    return ScanConfig(
        report_names=_str_list(scan_raw.get("report_names"), default.report_names),
        results_dirs=_str_list(scan_raw.get("results_dirs"), default.results_dirs),
        binary_extensions=[
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in _str_list(scan_raw.get("binary_extensions"), default.binary_extensions)
        ],
        skip_dirs=_str_list(scan_raw.get("skip_dirs"), default.skip_dirs),
        merge_all=_as_bool(
            scan_raw.get("merge_all", os.environ.get("MSCOV_MERGE_ALL", default.merge_all))
        ),
        mstest_only=_as_bool(
            scan_raw.get("mstest_only", os.environ.get("MSCOV_MSTEST_ONLY", default.mstest_only))
        ),
        framework_markers=_str_list(
            scan_raw.get("framework_markers"), default.framework_markers
        ),
        name_hint=str(scan_raw.get("name_hint", default.name_hint)),
    )


def _parse_display_config(raw: dict[str, Any]) -> DisplayConfig:
    """Parse display configuration from raw YAML."""
    display_raw = raw.get("display", {})
    if not isinstance(display_raw, dict):
        display_raw = {}

    return DisplayConfig(
        good_threshold=float(display_raw.get("good_threshold", 80.0)),
        warn_threshold=float(display_raw.get("warn_threshold", 50.0)),
        max_files=int(display_raw.get("max_files", 50)),
    )


def load_config(root: str | Path) -> MscovConfig:
    """Load and parse ``.mscov.yml`` from *root*.

    Falls back to defaults and environment variables when the file is
    missing or incomplete.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILE_NAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)

    return MscovConfig(
        root=str(raw.get("root", root_path)),
        scan=_parse_scan_config(raw),
        display=_parse_display_config(raw),
        raw=raw,
    )


def _validate_scan_config(scan: ScanConfig) -> list[str]:
    errors: list[str] = []

    if not scan.report_names and not scan.results_dirs:
        errors.append("scan.report_names and scan.results_dirs cannot both be empty")

    if scan.mstest_only and not scan.framework_markers:
        errors.append("scan.framework_markers must not be empty when scan.mstest_only is true")

    overlap = set(scan.skip_dirs) & set(scan.results_dirs)
    if overlap:
        errors.append(
            f"scan.skip_dirs must not contain result directories (got: {', '.join(sorted(overlap))})"
        )

    return errors


def _validate_display_config(display: DisplayConfig) -> list[str]:
    max_percentage = 100.0
    errors: list[str] = []

    if not 0.0 <= display.good_threshold <= max_percentage:
        errors.append(
            f"display.good_threshold must be between 0 and 100 (got: {display.good_threshold})"
        )

    if not 0.0 <= display.warn_threshold <= max_percentage:
        errors.append(
            f"display.warn_threshold must be between 0 and 100 (got: {display.warn_threshold})"
        )

    if display.warn_threshold > display.good_threshold:
        errors.append("display.warn_threshold must not exceed display.good_threshold")

    if display.max_files < 0:
        errors.append(f"display.max_files must be non-negative (got: {display.max_files})")

    return errors


def validate_config(config: MscovConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    if not config.root:
        errors.append("root is required")

    errors.extend(_validate_scan_config(config.scan))
    errors.extend(_validate_display_config(config.display))
    return errors
