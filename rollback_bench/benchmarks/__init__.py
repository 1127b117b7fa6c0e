"""
Benchmarking harness for Sui abort and rollback costs.

This package drives the scenario grids against a deployed ``taxonomy`` package,
keeps every outcome in an ordered result store, and renders summary tables,
owned-versus-shared comparisons and charts from the collected records.
"""

from .main import main

__all__ = ["main"]
