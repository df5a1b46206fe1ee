"""CLI output formatters."""

from ecrscan.cli.formatters.csv_fmt import CsvEmitter, SummaryEmitter, atomic_output
from ecrscan.cli.formatters.table import format_failures, format_run_summary

__all__ = [
    "CsvEmitter",
    "SummaryEmitter",
    "atomic_output",
    "format_failures",
    "format_run_summary",
]
