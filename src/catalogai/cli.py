"""
Command-line interface for catalogai.

    catalogai status                 service status and detected tools
    catalogai detect                 detection details for every known tool
    catalogai analyze updates.json   analyze a batch of package updates
    catalogai cache stats|clear|invalidate

catalogai/src/catalogai/cli.py
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import find_project_root, load_config
from .models import (
    AnalysisRequestOptions,
    AnalysisResult,
    AnalysisType,
    ChunkingConfig,
    ChunkProgress,
    PackageUpdateInfo,
    RiskLevel,
    SecurityVulnerabilityData,
    WorkspaceInfo,
)
from .orchestrator import AnalysisOrchestrator

console = Console()
logger = logging.getLogger(__name__)

__all__ = ["cli", "main", "CatalogAIContext", "load_analysis_input"]

_RISK_STYLES = {
    RiskLevel.LOW: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "red",
    RiskLevel.CRITICAL: "bold red",
}


@dataclass
class CatalogAIContext:
    """Shared context for CLI commands."""

    project_root: Optional[Path] = None
    verbose: bool = False
    orchestrator: Optional[AnalysisOrchestrator] = None

    def get_orchestrator(self) -> AnalysisOrchestrator:
        if self.orchestrator is None:
            config = load_config(self.project_root or Path.cwd())
            self.orchestrator = AnalysisOrchestrator(config)
        return self.orchestrator


def load_analysis_input(
    path: Path,
) -> Tuple[WorkspaceInfo, List[PackageUpdateInfo], Dict[str, SecurityVulnerabilityData]]:
    """Read an analysis request file.

    Format: {"workspace": {...}, "packages": [...], "securityData": {"name@version": {...}}}
    using the camelCase field names of the JSON wire form.

    Raises:
        ValueError: the file is not valid JSON or misses required fields
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{path} is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("packages"), list):
        raise ValueError(f"{path} must contain an object with a 'packages' list")

    try:
        workspace_raw = data.get("workspace") or {"name": path.parent.name, "path": str(path.parent)}
        workspace = WorkspaceInfo.from_dict(workspace_raw)
        packages = [PackageUpdateInfo.from_dict(p) for p in data["packages"]]
        security = {
            key: SecurityVulnerabilityData.from_dict(value)
            for key, value in (data.get("securityData") or {}).items()
        }
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid analysis input in {path}: {e}") from e

    return workspace, packages, security


@click.group()
@click.version_option(__version__, prog_name="catalogai")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option(
    "--project-root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Project directory holding pyproject.toml (auto-detected by default)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, project_root: Optional[Path]) -> None:
    """catalogai: AI-assisted analysis of catalog dependency updates."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)

    if ctx.obj is None:
        ctx.obj = CatalogAIContext()
    ctx.obj.verbose = verbose
    ctx.obj.project_root = project_root or ctx.obj.project_root or find_project_root()


@cli.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show AI analysis status."""
    catalog_ctx: CatalogAIContext = ctx.obj
    orchestrator = catalog_ctx.get_orchestrator()
    service = orchestrator.get_status()

    console.print("[bold cyan]AI Analysis Status[/bold cyan]\n")
    console.print(f"Enabled: {'[green]yes[/green]' if service.enabled else '[red]no[/red]'}")
    console.print(f"Active provider: {service.active_provider or '[yellow]none (rule-based fallback)[/yellow]'}")
    console.print(f"Fallback: {'enabled' if service.fallback_enabled else 'disabled'}")

    table = Table(title="Detected AI tools")
    table.add_column("Tool", style="cyan")
    table.add_column("Available")
    table.add_column("Priority", justify="right")
    table.add_column("Version")
    table.add_column("Path")
    for info in service.providers:
        table.add_row(
            info.name,
            "[green]yes[/green]" if info.available else "[dim]no[/dim]",
            str(info.priority),
            info.version or "-",
            info.path or "-",
        )
    console.print(table)

    stats = service.cache_stats
    cache_state = "enabled" if service.cache_enabled else "disabled"
    console.print(
        f"Cache: {cache_state}, {stats.total_entries} entries, "
        f"{stats.hits} hits, {stats.misses} misses ({stats.hit_rate:.0%} hit rate)"
    )


@cli.command("detect")
@click.pass_context
def detect(ctx: click.Context) -> None:
    """Detect AI command-line tools installed on this machine."""
    detector = ctx.obj.get_orchestrator().detector

    summary = detector.get_detection_summary()
    if not summary:
        console.print("[yellow]No AI tools detected. Install Claude, Gemini, or Codex for AI-powered analysis.[/yellow]")
        return

    console.print(summary)
    for info in detector.get_available_providers():
        capabilities = ", ".join(c.value for c in info.capabilities)
        console.print(f"[dim]{info.name}: found via {info.detection_method}, supports {capabilities}[/dim]")


def _print_result(result: AnalysisResult, title: str = "Recommendations") -> None:
    table = Table(title=title)
    table.add_column("Package", style="cyan")
    table.add_column("Update")
    table.add_column("Action")
    table.add_column("Risk")
    table.add_column("Reason")
    for rec in result.recommendations:
        style = _RISK_STYLES[rec.risk_level]
        table.add_row(
            rec.package,
            f"{rec.current_version} -> {rec.target_version}",
            rec.action.value,
            f"[{style}]{rec.risk_level.value}[/{style}]",
            rec.reason,
        )
    console.print(table)
    console.print(f"Provider: {result.provider}  Confidence: {result.confidence:.0%}")
    console.print(result.summary)
    for warning in result.warnings:
        console.print(f"[yellow]warning:[/yellow] {warning}")


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


@cli.command("analyze")
@click.argument("input_file", metavar="INPUT", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--type",
    "analysis_type",
    type=click.Choice([t.value for t in AnalysisType]),
    default=AnalysisType.IMPACT.value,
    help="Analysis type",
)
@click.option("--provider", help="Force a provider (claude, gemini, codex, rule-engine)")
@click.option("--no-cache", is_flag=True, help="Ignore cached results")
@click.option("--comprehensive", is_flag=True, help="Run every analysis type and merge the results")
@click.option("--chunk-size", type=click.IntRange(min=1), help="Packages per chunk for large batches")
@click.option("--format", "-f", "output_format", type=click.Choice(["human", "json"]), default="human", help="Output format")
@click.pass_context
def analyze(
    ctx: click.Context,
    input_file: Path,
    analysis_type: str,
    provider: Optional[str],
    no_cache: bool,
    comprehensive: bool,
    chunk_size: Optional[int],
    output_format: str,
) -> None:
    """Analyze the package updates listed in INPUT (JSON)."""
    try:
        workspace, packages, security = load_analysis_input(input_file)
    except (OSError, ValueError) as e:
        console.print(f"[red]Failed to read analysis input: {e}[/red]")
        ctx.exit(1)

    orchestrator = ctx.obj.get_orchestrator()
    options = AnalysisRequestOptions(
        analysis_type=AnalysisType(analysis_type),
        provider=provider,
        skip_cache=no_cache,
        security_data=security or None,
    )

    if comprehensive:
        multi = orchestrator.analyze_comprehensive(packages, workspace, options)
        if output_format == "json":
            payload = {
                "providers": multi.providers,
                "results": {t.value: r.to_dict() for t, r in multi.results.items()},
                "merged": multi.merged.to_dict() if multi.merged else None,
                "timestamp": multi.timestamp,
            }
            click.echo(json.dumps(payload, indent=2, default=_json_default))
        else:
            console.print(f"Providers: {', '.join(multi.providers)}")
            _print_result(multi.merged or multi.primary, title="Merged recommendations")
        return

    def show_progress(progress: ChunkProgress) -> None:
        console.print(
            f"[dim]Chunk {progress.current_chunk}/{progress.total_chunks} "
            f"({progress.percent_complete}%, {progress.packages_processed}/{progress.total_packages} packages)[/dim]"
        )

    chunking = ChunkingConfig(
        chunk_size=chunk_size,
        on_progress=show_progress if output_format == "human" else None,
    )
    result = orchestrator.analyze_with_chunking(packages, workspace, options, chunking)

    if output_format == "json":
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _print_result(result)


@cli.group("cache")
def cache_group() -> None:
    """Manage cached analysis results."""


@cache_group.command("stats")
@click.pass_context
def cache_stats(ctx: click.Context) -> None:
    """Show cache statistics."""
    stats = ctx.obj.get_orchestrator().get_cache_stats()
    console.print(f"Entries: {stats.total_entries}")
    console.print(f"Hits: {stats.hits}  Misses: {stats.misses}  Hit rate: {stats.hit_rate:.0%}")
    if stats.oldest_entry is not None:
        console.print(f"Oldest entry: {datetime.fromtimestamp(stats.oldest_entry):%Y-%m-%d %H:%M:%S}")
        console.print(f"Newest entry: {datetime.fromtimestamp(stats.newest_entry):%Y-%m-%d %H:%M:%S}")


@cache_group.command("clear")
@click.pass_context
def cache_clear(ctx: click.Context) -> None:
    """Remove every cached result."""
    ctx.obj.get_orchestrator().clear_cache()
    console.print("[green]Cache cleared[/green]")


@cache_group.command("invalidate")
@click.argument("names", nargs=-1, required=True)
@click.pass_context
def cache_invalidate(ctx: click.Context, names: Tuple[str, ...]) -> None:
    """Remove cached results involving any of the named packages."""
    removed = ctx.obj.get_orchestrator().invalidate_cache(names)
    console.print(f"Invalidated {removed} cache entr{'y' if removed == 1 else 'ies'}")


def main() -> None:
    """Console script entry point."""
    cli()
