"""Orchestration of concurrent repository fetches."""

from ecrscan.orchestration.coordinator import FetchCoordinator

__all__ = ["FetchCoordinator"]
