"""``wmsload run`` and ``wmsload profiles`` with live terminal output."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from wmsload._internal.config import load_config, resolve_environment
from wmsload._internal.errors import SetupError, WmsLoadError
from wmsload._internal.logging import setup_logging
from wmsload.cli.report import write_json_report
from wmsload.engine.session import TestSession
from wmsload.patterns.stages import Stage, StagePattern
from wmsload.profiles import get_profile, list_profiles

if TYPE_CHECKING:
    from wmsload._internal.config import WmsLoadConfig
    from wmsload.metrics.models import MetricSnapshot, TestResult

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Configuration helpers
# ---------------------------------------------------------------------------


def _build_config(
    env: str | None,
    base_url: str | None,
    think_scale: float | None,
    timeout: float | None,
) -> WmsLoadConfig:
    """Apply command-line overrides on top of the environment-variable config."""
    config = load_config()
    overrides: dict[str, object] = {}
    if env is not None:
        overrides["environment"] = resolve_environment(env)
    if base_url is not None:
        overrides["base_url"] = base_url.rstrip("/")
    if think_scale is not None:
        overrides["think_scale"] = think_scale
    if timeout is not None:
        overrides["request_timeout"] = timeout
    return dataclasses.replace(config, **overrides)  # type: ignore[arg-type]


def _build_pattern(stages: list[str] | None) -> StagePattern | None:
    """Parse repeated ``--stage`` values into a schedule overriding the profile's.

    Raises:
        typer.BadParameter: If a stage is malformed.
    """
    if not stages:
        return None
    try:
        return StagePattern([Stage.parse(s) for s in stages])
    except WmsLoadError as exc:
        raise typer.BadParameter(str(exc), param_hint="--stage") from exc


# ---------------------------------------------------------------------------
# Rich live display
# ---------------------------------------------------------------------------


def _make_live_table(snapshot: MetricSnapshot | None, elapsed: float) -> Table:
    """Build a Rich table summarising current test metrics.

    Args:
        snapshot: Latest metric snapshot, or None if no data yet.
        elapsed: Elapsed seconds so far.

    Returns:
        Formatted Rich Table.
    """
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if snapshot is None:
        table.add_row("Elapsed", f"{elapsed:.0f}s")
        table.add_row("Status", "Starting...")
        return table

    table.add_row("Elapsed", f"{snapshot.elapsed_seconds:.0f}s")
    table.add_row("Phase", snapshot.phase or "-")
    table.add_row("Active Users", str(snapshot.active_users))
    table.add_row("Requests/sec", f"{snapshot.requests_per_second:.1f}")
    table.add_row("Total Requests", str(snapshot.total_requests))
    table.add_row("p50 Latency", f"{snapshot.latency_p50:.1f}ms")
    table.add_row("p95 Latency", f"{snapshot.latency_p95:.1f}ms")
    table.add_row("p99 Latency", f"{snapshot.latency_p99:.1f}ms")
    table.add_row("Errors", str(snapshot.total_errors))
    table.add_row("Error Rate", f"{snapshot.error_rate * 100:.2f}%")

    return table


def _print_endpoints(result: TestResult) -> None:
    summary = result.final_summary
    if summary is None or not summary.endpoints:
        return
    table = Table(
        title="Per-Endpoint Breakdown",
        show_header=True,
        header_style="bold cyan",
        expand=True,
    )
    table.add_column("Endpoint")
    table.add_column("Requests", justify="right")
    table.add_column("RPS", justify="right")
    table.add_column("p50", justify="right")
    table.add_column("p95", justify="right")
    table.add_column("p99", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Error %", justify="right")

    for ep in summary.endpoints.values():
        table.add_row(
            ep.name,
            str(ep.request_count),
            f"{ep.requests_per_second:.1f}",
            f"{ep.latency_p50:.1f}ms",
            f"{ep.latency_p95:.1f}ms",
            f"{ep.latency_p99:.1f}ms",
            str(ep.error_count),
            f"{ep.error_rate * 100:.2f}%",
        )
    console.print(table)


def _print_checks(result: TestResult) -> None:
    if not result.checks:
        return
    table = Table(title="Checks", show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Check")
    table.add_column("Passes", justify="right")
    table.add_column("Fails", justify="right")
    table.add_column("Pass %", justify="right")

    for tally in result.checks:
        total = tally.passes + tally.fails
        ratio = tally.passes / total if total else 0.0
        style = "green" if tally.fails == 0 else "yellow"
        table.add_row(
            f"[{style}]{tally.name}[/{style}]",
            str(tally.passes),
            str(tally.fails),
            f"{ratio * 100:.1f}%",
        )
    console.print(table)


def _print_thresholds(result: TestResult) -> None:
    if not result.thresholds:
        return
    table = Table(title="Thresholds", show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric")
    table.add_column("Expression")
    table.add_column("Observed", justify="right")
    table.add_column("Result", justify="center")

    for verdict in result.thresholds:
        observed = "no data" if verdict.observed is None else f"{verdict.observed:.4g}"
        mark = "[green]PASS[/green]" if verdict.passed else "[red]FAIL[/red]"
        table.add_row(verdict.metric, verdict.expression, observed, mark)
    console.print(table)


def _print_assessment(result: TestResult) -> None:
    assessment = result.assessment
    if assessment is None:
        return
    colour = {"healthy": "green", "degraded": "yellow"}.get(assessment.grade, "red")
    lines = [
        f"{'[green]ok[/green]' if passed else '[red]failed[/red]'}  {name}"
        for name, passed in assessment.probes.items()
    ]
    console.print(
        Panel(
            "\n".join(lines) or "no probes ran",
            title=f"System assessment: [{colour}]{assessment.grade}[/{colour}]",
            border_style=colour,
        )
    )


def _print_summary(result: TestResult) -> None:
    """Print the final summary tables after the run completes.

    Args:
        result: Completed test result.
    """
    summary = result.final_summary
    table = Table(
        title="Test Complete",
        show_header=True,
        header_style="bold green",
        expand=True,
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Profile", result.profile_name)
    table.add_row("Target", result.base_url)
    table.add_row("Pattern", result.pattern_description)
    table.add_row("Duration", f"{result.duration_seconds:.1f}s")
    table.add_row("Snapshots", str(len(result.snapshots)))

    iterations = result.metrics.get("iterations")
    if iterations is not None:
        table.add_row("Iterations", f"{iterations.values['count']:.0f}")

    if summary:
        table.add_row("Total Requests", str(summary.total_requests))
        table.add_row("Avg Requests/sec", f"{summary.requests_per_second:.1f}")
        table.add_row("p50 Latency", f"{summary.latency_p50:.1f}ms")
        table.add_row("p95 Latency", f"{summary.latency_p95:.1f}ms")
        table.add_row("p99 Latency", f"{summary.latency_p99:.1f}ms")
        table.add_row("Total Errors", str(summary.total_errors))
        table.add_row("Error Rate", f"{summary.error_rate * 100:.2f}%")

    _print_endpoints(result)
    _print_checks(result)
    _print_thresholds(result)
    _print_assessment(result)
    console.print(table)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def run_cmd(
    profile_name: str = typer.Argument(
        ...,
        metavar="PROFILE",
        help="Profile to run: smoke, load, stress, spike, packages or picklists.",
    ),
    env: str | None = typer.Option(
        None,
        "--env",
        "-e",
        help="Target environment: local, staging or production.",
    ),
    base_url: str | None = typer.Option(
        None,
        "--base-url",
        help="Override the environment's base URL.",
    ),
    stage: list[str] | None = typer.Option(
        None,
        "--stage",
        "-s",
        help="Replace the profile's stages, e.g. --stage 30s:10 --stage 1m:10:spike.",
    ),
    think_scale: float | None = typer.Option(
        None,
        "--think-scale",
        help="Multiplier for every think-time sleep (0 disables pacing).",
        min=0.0,
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Default per-request timeout in seconds.",
        min=0.001,
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the full result as JSON to this file.",
        dir_okay=False,
    ),
    no_thresholds: bool = typer.Option(
        False,
        "--no-thresholds",
        help="Skip threshold evaluation.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit one JSON object per log line.",
    ),
) -> None:
    """Run a load profile against the warehouse-operations API."""
    setup_logging(logging.DEBUG if verbose else logging.INFO, json_format=json_logs)

    try:
        profile = get_profile(profile_name)
        config = _build_config(env, base_url, think_scale, timeout)
    except WmsLoadError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    pattern = _build_pattern(stage)

    try:
        with Live(
            _make_live_table(None, 0.0),
            console=console,
            refresh_per_second=2,
            transient=True,
        ) as live:

            def _live_snapshot(snapshot: MetricSnapshot) -> None:
                live.update(_make_live_table(snapshot, snapshot.elapsed_seconds))

            session = TestSession(
                profile,
                config,
                pattern=pattern,
                check_thresholds=not no_thresholds,
                on_snapshot=_live_snapshot,
            )
            console.print(
                Panel(
                    f"[bold]Profile:[/bold]     {profile.name} - {profile.description}\n"
                    f"[bold]Environment:[/bold] {config.environment.name}\n"
                    f"[bold]Target:[/bold]      {config.target_url}\n"
                    f"[bold]Pattern:[/bold]     {session.pattern.describe()}",
                    title="wmsload",
                    border_style="cyan",
                )
            )
            result = asyncio.run(session.run())
    except SetupError as exc:
        console.print(f"[red]Setup failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    except WmsLoadError as exc:
        console.print(f"[red]Load test failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    _print_summary(result)

    if output is not None:
        written = write_json_report(result, output)
        console.print(f"Results written to [bold]{written}[/bold]")

    if not result.thresholds_passed:
        failed = [f"{t.metric} {t.expression}" for t in result.thresholds if not t.passed]
        console.print(f"[red]FAIL:[/red] thresholds crossed: {', '.join(failed)}")
        raise typer.Exit(code=1)

    console.print("[green]Load test completed successfully.[/green]")


def profiles_cmd() -> None:
    """List the built-in profiles with their stages and scenario weights."""
    table = Table(title="Profiles", show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Profile", style="bold")
    table.add_column("Description")
    table.add_column("Stages")
    table.add_column("Scenarios")

    for profile in list_profiles():
        stages = StagePattern(profile.stages).describe()
        scenarios = ", ".join(f"{s.name} ({s.weight:g})" for s in profile.scenarios)
        table.add_row(profile.name, profile.description, stages, scenarios)

    Console().print(table)
