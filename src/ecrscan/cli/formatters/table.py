"""Table formatter for the run summary."""

from rich.console import Console
from rich.table import Table

from ecrscan.models import FetchResult, collect_failures


def format_failures(console: Console, results: list[FetchResult]) -> None:
    """Print the repositories that failed, with the reason, as a table."""
    failures = collect_failures(results)
    if not failures:
        return

    table = Table(title="Failed Repositories", show_header=True)
    table.add_column("Repository", style="cyan")
    table.add_column("Error", style="red")
    table.add_column("Reason")

    for result in failures:
        error = result.error
        table.add_row(
            result.repository,
            error.kind.value if error else "error",
            error.reason if error else "",
        )

    console.print(table)


def format_run_summary(console: Console, results: list[FetchResult], rows: int) -> None:
    """Print a one-line summary of the run."""
    succeeded = sum(1 for r in results if r.succeeded)
    failed = len(collect_failures(results))
    images = sum(r.images_scanned for r in results if r.succeeded)

    status = "green" if failed == 0 else ("red" if succeeded == 0 and results else "yellow")
    console.print(
        f"[{status}]{succeeded}/{len(results)} repositories fetched[/{status}], "
        f"{images} images scanned, {rows} rows written"
        + (f", [red]{failed} failed[/red]" if failed else "")
    )
