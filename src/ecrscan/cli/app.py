"""Main CLI application using Typer."""

import asyncio
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from ecrscan.version import __version__
from ecrscan.core.config import get_settings
from ecrscan.core.exceptions import ConfigurationError, EcrScanError, RepositoryNotFoundError
from ecrscan.core.interfaces import IRegistryClient
from ecrscan.core.logging import setup_logging

app = typer.Typer(
    name="ecrscan",
    help="ecrscan - ECR image scan findings inventory",
    no_args_is_help=True,
)

# Report data goes to stdout; everything else goes to stderr
console = Console(stderr=True)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"ecrscan version v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """ecrscan - Inventory container image vulnerability findings from ECR."""
    setup_logging()


def create_client() -> IRegistryClient:
    """Create the registry client used by the commands."""
    from ecrscan.infrastructure.ecr import EcrRegistryClient

    return EcrRegistryClient()


def _resolve_mode(repository: str | None, all_repositories: bool):
    from ecrscan.models import RepositoryMode

    if all_repositories and repository:
        console.print("[red]Give either a repository name or --all, not both[/red]")
        raise typer.Exit(2)
    if all_repositories:
        return RepositoryMode.all()
    if repository:
        return RepositoryMode.named(repository)
    console.print("[red]Usage: ecrscan COMMAND [--all | REPOSITORY][/red]")
    raise typer.Exit(2)


async def run_fetch(
    client: IRegistryClient,
    mode,
    include_findings: bool = True,
    concurrency: int | None = None,
):
    """Enumerate the target repositories and fetch them all."""
    from ecrscan.infrastructure.retry import RetryPolicy
    from ecrscan.orchestration.coordinator import FetchCoordinator
    from ecrscan.pipeline.enumerator import RepositoryEnumerator

    settings = get_settings()
    retry = RetryPolicy.from_settings(settings)
    repositories = await RepositoryEnumerator(client, retry).enumerate(mode)
    coordinator = FetchCoordinator(client, settings, retry, max_concurrent=concurrency)
    return await coordinator.fetch_all(repositories, include_findings=include_findings)


def _execute(
    repository: str | None,
    all_repositories: bool,
    include_findings: bool,
    concurrency: int | None,
):
    mode = _resolve_mode(repository, all_repositories)

    with console.status("[bold green]Fetching scan findings...[/bold green]"):
        try:
            client = create_client()
            return asyncio.run(
                run_fetch(client, mode, include_findings=include_findings, concurrency=concurrency)
            )
        except RepositoryNotFoundError as e:
            console.print(f"[red]Repository not found: {e.repository or repository}[/red]")
            raise typer.Exit(1) from None
        except ConfigurationError as e:
            console.print(f"[red]Configuration error: {e}[/red]")
            raise typer.Exit(1) from None
        except EcrScanError as e:
            console.print(f"[red]Fetch failed: {e}[/red]")
            raise typer.Exit(1) from None
        except KeyboardInterrupt:
            console.print("[yellow]Interrupted; no output written[/yellow]")
            raise typer.Exit(130) from None


def _emit(emitter_cls, records, output: Path | None) -> int:
    from ecrscan.cli.formatters import atomic_output

    if output:
        with atomic_output(output) as f:
            rows = emitter_cls(f).write(records)
        console.print(f"[green]Results saved to {output}[/green]")
        return rows
    rows = emitter_cls(sys.stdout).write(records)
    sys.stdout.flush()
    return rows


def _finish(results, rows: int) -> None:
    from ecrscan.cli.formatters import format_failures, format_run_summary

    format_failures(console, results)
    format_run_summary(console, results, rows)

    if results and all(r.failed for r in results):
        raise typer.Exit(1)


@app.command()
def findings(
    repository: Annotated[
        Optional[str],
        typer.Argument(help="Repository to report on"),
    ] = None,
    all_repositories: Annotated[
        bool,
        typer.Option("--all", "-a", help="Report on every repository"),
    ] = False,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output CSV file (default: stdout)"),
    ] = None,
    concurrency: Annotated[
        Optional[int],
        typer.Option("--concurrency", "-c", min=1, max=50, help="Repositories fetched at once"),
    ] = None,
) -> None:
    """
    Write every scan finding as one CSV row.

    Examples:
        ecrscan findings my-repo
        ecrscan findings --all --output findings.csv
    """
    from ecrscan.cli.formatters import CsvEmitter
    from ecrscan.models import collect_findings

    results = _execute(repository, all_repositories, True, concurrency)
    rows = _emit(CsvEmitter, collect_findings(results), output)
    _finish(results, rows)


@app.command()
def summary(
    repository: Annotated[
        Optional[str],
        typer.Argument(help="Repository to report on"),
    ] = None,
    all_repositories: Annotated[
        bool,
        typer.Option("--all", "-a", help="Report on every repository"),
    ] = False,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output CSV file (default: stdout)"),
    ] = None,
    concurrency: Annotated[
        Optional[int],
        typer.Option("--concurrency", "-c", min=1, max=50, help="Repositories fetched at once"),
    ] = None,
) -> None:
    """
    Write per-image finding counts by severity as CSV.

    Examples:
        ecrscan summary my-repo
        ecrscan summary --all
    """
    from ecrscan.cli.formatters import SummaryEmitter
    from ecrscan.models import collect_images

    results = _execute(repository, all_repositories, False, concurrency)
    rows = _emit(SummaryEmitter, collect_images(results), output)
    _finish(results, rows)


@app.command()
def config() -> None:
    """Show the effective configuration."""
    settings = get_settings()

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("AWS Region", settings.aws_region or "[dim]default chain[/dim]")
    table.add_row("AWS Profile", settings.aws_profile or "[dim]default chain[/dim]")
    table.add_row("Max Concurrent Repositories", str(settings.max_concurrent_repositories))
    table.add_row("Page Size", str(settings.page_size))
    table.add_row("API Requests Per Second", str(settings.api_requests_per_second))
    table.add_row("Throttle Max Retries", str(settings.throttle_max_retries))
    table.add_row("Transient Max Retries", str(settings.transient_max_retries))
    table.add_row(
        "Backoff",
        f"{settings.backoff_base_seconds}s base, {settings.backoff_max_seconds}s max",
    )
    table.add_row(
        "Artifact Media Types",
        ", ".join(settings.artifact_media_types) or "[dim]any[/dim]",
    )
    table.add_row("Log Level", settings.log_level)
    table.add_row("Log Format", settings.log_format)

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
