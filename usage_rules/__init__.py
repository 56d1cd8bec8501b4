"""Aggregate usage-rules.md guidance shipped by project dependencies."""

__version__ = "0.1.0"
