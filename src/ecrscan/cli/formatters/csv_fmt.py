"""CSV formatters for findings and image summaries."""

import csv
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, TextIO

from ecrscan.models import CSV_COLUMNS, Finding, ImageRef, Severity

SUMMARY_COLUMNS = [
    "repository",
    "image_tags",
    "image_digest",
    "image_scan_completed_at",
    "vulnerability_source_updated_at",
    "critical",
    "high",
    "medium",
    "low",
    "informational",
    "undefined",
]

SUMMARY_SEVERITIES = [
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
    Severity.INFORMATIONAL,
    Severity.UNDEFINED,
]


class CsvEmitter:
    """Serializes findings to CSV in the order given."""

    columns = CSV_COLUMNS

    def __init__(self, stream: TextIO) -> None:
        self._writer = csv.writer(stream, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")

    def write_header(self) -> None:
        self._writer.writerow(self.columns)

    def write(self, findings: Iterable[Finding]) -> int:
        """Write the header and one row per finding; returns the row count."""
        self.write_header()
        count = 0
        for finding in findings:
            self._writer.writerow(finding.to_row())
            count += 1
        return count


class SummaryEmitter(CsvEmitter):
    """Serializes per-image severity counts to CSV."""

    columns = SUMMARY_COLUMNS

    def write(self, images: Iterable[ImageRef]) -> int:  # type: ignore[override]
        self.write_header()
        count = 0
        for image in images:
            self._writer.writerow(
                [
                    image.repository,
                    "|".join(image.image_tags),
                    image.image_digest,
                    _isoformat(image.image_scan_completed_at),
                    _isoformat(image.vulnerability_source_updated_at),
                    *[str(image.count(severity)) for severity in SUMMARY_SEVERITIES],
                ]
            )
            count += 1
        return count


def _isoformat(value) -> str:
    return value.isoformat() if value else ""


@contextmanager
def atomic_output(path: Path) -> Iterator[TextIO]:
    """Write to a temporary sibling of ``path`` and move it into place on success."""
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent or ".")
    try:
        with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
            yield f
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
