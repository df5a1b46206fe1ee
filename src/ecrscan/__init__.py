"""
ecrscan - container image vulnerability findings inventory.

Lists ECR repositories, pages through the basic and enhanced scan findings
of their images, normalizes both report schemas into one record model and
writes the result as CSV.
"""

from ecrscan.version import __version__

__all__ = ["__version__"]
