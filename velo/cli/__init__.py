"""Velo operator CLI."""

from .cli import main

__all__ = ["main"]
