# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Typer command-line interface for resolving environment descriptors."""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from .config import Config, load_config
from .errors import (
    ConfigError,
    DescriptorIntegrityError,
    DescriptorValidationError,
    PlatformDiscoveryFailed,
    SourceUnavailable,
)
from .loader import DescriptorLoader, load_catalog
from .logging import configure_logging, fail, ok, section, warn
from .model_record import PlatformOutcome, ResolutionReport
from .overlays import OverlayRegistry
from .platforms import build_enumerator
from .resolver import DescriptorResolver, resolve_all
from .source import TimedPackageSource, retry_source_call

app = typer.Typer(help="Resolve declarative development environments per platform.", no_args_is_help=True)


class CLIError(RuntimeError):
    """Error raised when a CLI command fails and should exit with a status code."""

    def __init__(self, message: str, *, exit_code: int = 1) -> None:
        super().__init__(message)
        self.exit_code = exit_code


@dataclass(slots=True)
class CLILogger:
    """Adapter around project logging helpers respecting CLI emoji and colour settings."""

    use_emoji: bool
    use_color: bool

    def fail(self, message: str) -> None:
        fail(message, use_emoji=self.use_emoji, use_color=self.use_color)

    def warn(self, message: str) -> None:
        warn(message, use_emoji=self.use_emoji, use_color=self.use_color)

    def ok(self, message: str) -> None:
        ok(message, use_emoji=self.use_emoji, use_color=self.use_color)


def build_cli_logger(cfg: Config) -> CLILogger:
    return CLILogger(use_emoji=cfg.output.emoji, use_color=cfg.output.color)


def _load_config(root: Path) -> Config:
    try:
        return load_config(root)
    except ConfigError as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def retry_unavailable(
    report: ResolutionReport,
    resolve_platform: Callable[[str], PlatformOutcome],
    cfg: Config,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> ResolutionReport:
    """Re-run platforms that failed with :class:`SourceUnavailable` using bounded backoff.

    The initial resolution counts as the first attempt; platforms still
    unavailable once ``retry_attempts`` is spent keep their failure.
    """

    remaining = cfg.resolution.retry_attempts - 1
    if remaining < 1:
        return report
    outcomes = dict(report)
    for platform, error in report.failed.items():
        if not isinstance(error, SourceUnavailable):
            continue
        sleep(cfg.resolution.retry_initial_delay)
        try:
            outcomes[platform] = retry_source_call(
                partial(_raise_unavailable, resolve_platform, platform),
                attempts=remaining,
                initial_delay=cfg.resolution.retry_initial_delay * cfg.resolution.retry_backoff_factor,
                backoff_factor=cfg.resolution.retry_backoff_factor,
                sleep=sleep,
            )
        except SourceUnavailable as exc:
            outcomes[platform] = PlatformOutcome(platform=platform, error=exc)
    return ResolutionReport(outcomes)


def _raise_unavailable(resolve_platform: Callable[[str], PlatformOutcome], platform: str) -> PlatformOutcome:
    outcome = resolve_platform(platform)
    if isinstance(outcome.error, SourceUnavailable):
        raise outcome.error
    return outcome


def render_report(report: ResolutionReport, console: Console) -> None:
    """Render ``report`` as a Rich table with one row per platform."""

    table = Table(title="Resolved environments", show_lines=True)
    table.add_column("Platform", style="bold cyan")
    table.add_column("Status")
    table.add_column("Tools")
    table.add_column("Startup")
    for platform, outcome in report.items():
        if outcome.error is not None:
            table.add_row(platform, f"[red]{outcome.error.kind}[/red]", str(outcome.error), "")
        elif outcome.record is not None:
            table.add_row(
                platform,
                "[green]ok[/green]",
                "\n".join(outcome.record.references),
                outcome.record.startup,
            )
    console.print(table)


def run_resolve(
    descriptor_path: Path,
    catalog_path: Path,
    *,
    platforms: list[str],
    host: bool,
    as_json: bool,
    jobs: int | None,
    timeout: float | None,
    root: Path,
    console: Console | None = None,
) -> int:
    """Resolve ``descriptor_path`` against ``catalog_path`` and return an exit status."""

    cfg = _load_config(root)
    logger = build_cli_logger(cfg)
    output = console or Console()
    try:
        catalog = load_catalog(catalog_path)
        descriptor = DescriptorLoader(registry=catalog.overlays).load(descriptor_path)
    except (FileNotFoundError, DescriptorValidationError, DescriptorIntegrityError) as exc:
        logger.fail(str(exc))
        return 2

    effective_timeout = timeout if timeout is not None else cfg.resolution.timeout_seconds
    source = TimedPackageSource(catalog.source, timeout=effective_timeout)
    enumerator = build_enumerator(
        platforms,
        host=host,
        configured=cfg.resolution.platforms,
        timeout=effective_timeout,
    )
    resolver = DescriptorResolver()
    try:
        report = resolve_all(
            descriptor,
            enumerator,
            source,
            jobs=jobs if jobs is not None else cfg.resolution.jobs,
            resolver=resolver,
        )
    except PlatformDiscoveryFailed as exc:
        logger.fail(str(exc))
        return 3
    report = retry_unavailable(report, partial(resolver.outcome, descriptor, source=source), cfg)

    if as_json:
        output.print_json(json.dumps(report.to_payload()))
    else:
        section(f"{descriptor.name} \u2190 {descriptor.source}", use_color=cfg.output.color)
        render_report(report, output)
        for platform, error in report.failed.items():
            logger.warn(f"{platform}: {error}")
        if report.ok:
            logger.ok(f"Resolved '{descriptor.name}' for {len(report)} platform(s)")
    return report.exit_code


@app.callback()
def main(
    debug: Annotated[bool, typer.Option("--debug", help="Emit debug diagnostics.")] = False,
) -> None:
    """Resolve declarative development environments per platform."""

    configure_logging(debug=debug)


@app.command("resolve")
def resolve_command(
    descriptor: Annotated[Path, typer.Argument(help="Environment descriptor (JSON or TOML).")],
    catalog: Annotated[Path, typer.Option("--catalog", "-c", help="Package catalog document.")],
    platform: Annotated[
        list[str] | None,
        typer.Option("--platform", "-p", help="Target platform; repeat for several."),
    ] = None,
    host: Annotated[bool, typer.Option("--host", help="Resolve for the current host only.")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Emit JSON instead of a table.")] = False,
    jobs: Annotated[int | None, typer.Option("--jobs", "-j", min=1, help="Parallel resolutions.")] = None,
    timeout: Annotated[float | None, typer.Option("--timeout", help="Per-call timeout in seconds.")] = None,
    root: Annotated[Path, typer.Option("--root", "-r", help="Project root holding configuration.")] = Path("."),
) -> None:
    """Resolve DESCRIPTOR for every target platform."""

    try:
        exit_code = run_resolve(
            descriptor,
            catalog,
            platforms=platform or [],
            host=host,
            as_json=as_json,
            jobs=jobs,
            timeout=timeout,
            root=root,
        )
    except CLIError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=exc.exit_code) from exc
    raise typer.Exit(code=exit_code)


@app.command("platforms")
def platforms_command(
    host: Annotated[bool, typer.Option("--host", help="Show only the current host.")] = False,
    root: Annotated[Path, typer.Option("--root", "-r", help="Project root holding configuration.")] = Path("."),
) -> None:
    """List the platforms a descriptor would be resolved for."""

    try:
        cfg = _load_config(root)
    except CLIError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=exc.exit_code) from exc
    try:
        platforms = build_enumerator(host=host, configured=cfg.resolution.platforms).enumerate()
    except PlatformDiscoveryFailed as exc:
        build_cli_logger(cfg).fail(str(exc))
        raise typer.Exit(code=3) from exc
    for item in sorted(platforms):
        typer.echo(item)


@app.command("show")
def show_command(
    descriptor: Annotated[Path, typer.Argument(help="Environment descriptor (JSON or TOML).")],
    catalog: Annotated[
        Path | None,
        typer.Option("--catalog", "-c", help="Catalog providing named overlays."),
    ] = None,
) -> None:
    """Print the parsed descriptor."""

    try:
        registry = load_catalog(catalog).overlays if catalog is not None else OverlayRegistry()
        parsed = DescriptorLoader(registry=registry).load(descriptor)
    except (FileNotFoundError, DescriptorValidationError, DescriptorIntegrityError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc
    payload = {
        "name": parsed.name,
        "source": {
            "id": parsed.source.identifier,
            "url": parsed.source.location,
            "rev": parsed.source.revision,
        },
        "overlays": [overlay.name for overlay in parsed.overlays],
        "tools": list(parsed.tools),
        "toolchain": [
            {
                "name": selector.name,
                "channel": selector.channel,
                "version": selector.version,
                "profile": selector.profile,
                "extensions": sorted(selector.extensions),
            }
            for selector in parsed.toolchains
        ],
        "startup": parsed.startup,
    }
    typer.echo(json.dumps(payload, indent=2))


__all__ = ["CLIError", "app", "render_report", "retry_unavailable", "run_resolve"]
