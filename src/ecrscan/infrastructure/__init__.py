"""Infrastructure layer."""

from ecrscan.infrastructure.ecr import EcrRegistryClient
from ecrscan.infrastructure.retry import RetryPolicy

__all__ = ["EcrRegistryClient", "RetryPolicy"]
