"""
Package Index Enrichment

Determine how far a tracked package version lags behind the latest release
published on its upstream registry.
"""

__version__ = "0.1.0"

from .cli import main

__all__ = ["main", "__version__"]
