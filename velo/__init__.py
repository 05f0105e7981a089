"""Velo - offline-tolerant mail mutation engine."""

__version__ = "0.1.0"
