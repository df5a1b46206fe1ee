"""Aggregation pipeline: enumeration, pagination and normalization."""

from ecrscan.pipeline.enumerator import RepositoryEnumerator
from ecrscan.pipeline.normalizer import normalize_finding, normalize_severity, parse_raw_finding
from ecrscan.pipeline.paginator import (
    CursorPaginator,
    FindingPaginator,
    ImagePaginator,
    RepositoryPaginator,
)

__all__ = [
    "RepositoryEnumerator",
    "normalize_finding",
    "normalize_severity",
    "parse_raw_finding",
    "CursorPaginator",
    "FindingPaginator",
    "ImagePaginator",
    "RepositoryPaginator",
]
