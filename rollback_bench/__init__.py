"""
Rollback and abort-cost benchmark for Sui Move programs.

Submits parameterised Move calls against a deployed ``taxonomy`` package one at
a time, classifies every failure into a fixed error taxonomy, and aggregates
gas and latency figures into owned-versus-shared comparisons.
"""

__version__ = "0.1.0"
