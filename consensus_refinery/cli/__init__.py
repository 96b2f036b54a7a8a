"""Command-line interface for Consensus-Refinery.

Example Usage
-------------
    # From command line:
    consensus-refinery --help
    consensus-refinery cluster --input x.csv --config cluster.yaml --out run1/
    consensus-refinery consensus --input clusterings.csv --proportion 0.7 --out cons/
    consensus-refinery functions
"""

from .main import cli, main

__all__ = [
    "cli",
    "main",
]
