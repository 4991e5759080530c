"""mscov CLI — top-level command group."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console

from mscov import __version__
from mscov.config import MscovConfig, load_config, validate_config
from mscov.detectors.projects import find_test_projects
from mscov.models import ScanResult, ScanStatus
from mscov.parsers import detect_format
from mscov.reporters.terminal import CLIReporter, reporter as default_reporter
from mscov.repository import CoverageRepository

logger = logging.getLogger(__name__)
console = Console()

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

_path_option = click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Solution root directory.",
)


def _load_config_or_abort(path: str) -> MscovConfig:
    try:
        return load_config(path)
    except (OSError, yaml.YAMLError, ValueError, TypeError) as e:
        default_reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e


def _run_scan(
    path: str,
    config: MscovConfig,
    *,
    merge_all: bool | None,
    all_projects: bool,
) -> tuple[CoverageRepository, ScanResult]:
    scan_config = config.scan
    if all_projects:
        scan_config = replace(scan_config, mstest_only=False)
    repository = CoverageRepository(scan_config)
    result = repository.scan(path, merge_all=merge_all)
    return repository, result


def _config_to_dict(config: MscovConfig) -> dict[str, Any]:
    result = asdict(config)
    result.pop("raw", None)
    return result


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="mscov")
@click.pass_context
def cli(ctx: click.Context, *, verbose: bool) -> None:
    """mscov — MSTest coverage report discovery and analysis."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=_LOG_FORMAT)


@cli.command()
@_path_option
@click.option(
    "--merge-all/--newest-only",
    default=None,
    help="Merge every discovered report, or use only the most recent one.",
)
@click.option(
    "--all-projects",
    is_flag=True,
    help="Do not restrict reports to MSTest projects.",
)
@click.option("--json-output", "as_json", is_flag=True, help="Output raw JSON instead of tables.")
@click.option("--include-lines", is_flag=True, help="Include per-line statuses in JSON output.")
def scan(
    path: str,
    *,
    merge_all: bool | None,
    all_projects: bool,
    as_json: bool,
    include_lines: bool,
) -> None:
    """Discover and parse coverage reports under a solution root.

    Example:
      mscov scan --path ./MySolution --merge-all
    """
    config = _load_config_or_abort(path)
    reporter = CLIReporter(config.display)

    if as_json:
        _, result = _run_scan(path, config, merge_all=merge_all, all_projects=all_projects)
        click.echo(json.dumps(result.to_dict(include_lines=include_lines), indent=2))
    else:
        with reporter.create_status(f"Scanning {path} ..."):
            _, result = _run_scan(path, config, merge_all=merge_all, all_projects=all_projects)
        reporter.print_scan_result(result, root=Path(path))

    if result.status is ScanStatus.ERROR:
        raise click.Abort


@cli.command()
@_path_option
@click.option("--merge-all/--newest-only", default=None, help="Merge every discovered report.")
@click.option("--all-projects", is_flag=True, help="Do not restrict reports to MSTest projects.")
@click.option("--json-output", "as_json", is_flag=True, help="Output raw JSON instead of tables.")
def summary(path: str, *, merge_all: bool | None, all_projects: bool, as_json: bool) -> None:
    """Show project name → coverage percentage."""
    config = _load_config_or_abort(path)
    reporter = CLIReporter(config.display)
    repository, result = _run_scan(path, config, merge_all=merge_all, all_projects=all_projects)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "status": result.status.value,
                    "message": result.message,
                    "projects": {
                        name: round(pct, 2) for name, pct in repository.summary_view().items()
                    },
                },
                indent=2,
            )
        )
    elif result.status is ScanStatus.OK:
        reporter.print_summary_view(repository.summary_view())
    else:
        reporter.print_scan_result(result)

    if result.status is ScanStatus.ERROR:
        raise click.Abort


@cli.command("file")
@click.argument("source_file")
@_path_option
@click.option("--merge-all/--newest-only", default=None, help="Merge every discovered report.")
@click.option("--all-projects", is_flag=True, help="Do not restrict reports to MSTest projects.")
@click.option("--json-output", "as_json", is_flag=True, help="Output raw JSON instead of a panel.")
def file_command(
    source_file: str,
    path: str,
    *,
    merge_all: bool | None,
    all_projects: bool,
    as_json: bool,
) -> None:
    """Show line-level coverage for SOURCE_FILE.

    SOURCE_FILE may be a full path or just a file name.
    """
    config = _load_config_or_abort(path)
    reporter = CLIReporter(config.display)
    repository, result = _run_scan(path, config, merge_all=merge_all, all_projects=all_projects)

    if result.status is ScanStatus.ERROR:
        reporter.print_error(result.message)
        raise click.Abort

    record = repository.get_file_coverage(source_file)
    if record is None:
        reporter.print_warning(f"No coverage data for {source_file}")
        raise click.Abort

    if as_json:
        click.echo(
            json.dumps(
                {
                    "file_path": record.file_path,
                    "coverable_lines": record.coverable_lines,
                    "covered_lines": record.covered_lines,
                    "coverage_percentage": round(record.coverage_percentage, 2),
                    "lines": {
                        str(line): status.value
                        for line, status in sorted(record.line_status.items())
                    },
                },
                indent=2,
            )
        )
    else:
        reporter.print_file_coverage(record.file_path, record)


@cli.command()
@click.argument("report", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
def detect(report: str) -> None:
    """Print the coverage format of REPORT."""
    click.echo(detect_format(Path(report)).value)


@cli.command()
@_path_option
@click.option("--json-output", "as_json", is_flag=True, help="Output raw JSON instead of a table.")
def projects(path: str, *, as_json: bool) -> None:
    """List MSTest projects under a solution root."""
    config = _load_config_or_abort(path)
    found = find_test_projects(
        path,
        markers=config.scan.framework_markers,
        skip_dirs=frozenset(config.scan.skip_dirs),
    )
    if as_json:
        click.echo(
            json.dumps(
                [{"name": p.name, "project_file": str(p.project_file)} for p in found],
                indent=2,
            )
        )
    else:
        CLIReporter(config.display).print_test_projects(found)


@cli.group("config")
def config_group() -> None:
    """Inspect `.mscov.yml` configuration."""


@config_group.command("show")
@_path_option
@click.option("--json-output", "as_json", is_flag=True, help="Output as JSON instead of YAML.")
def config_show(path: str, *, as_json: bool) -> None:
    """Display the resolved configuration."""
    config_dict = _config_to_dict(_load_config_or_abort(path))
    if as_json:
        click.echo(json.dumps(config_dict, indent=2))
    else:
        console.print()
        console.print("[bold cyan]Configuration:[/bold cyan]")
        console.print()
        click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))


@config_group.command("validate")
@_path_option
def config_validate(path: str) -> None:
    """Validate `.mscov.yml` configuration."""
    config = _load_config_or_abort(path)
    reporter = CLIReporter(config.display)
    errors = validate_config(config)

    if not errors:
        reporter.print_success("Configuration is valid!")
        return

    reporter.print_error(f"Found {len(errors)} configuration error(s):")
    console.print()
    for idx, error in enumerate(errors, start=1):
        console.print(f"  {idx}. [red]{error}[/red]")
    raise click.Abort


if __name__ == "__main__":
    cli()
