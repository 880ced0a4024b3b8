"""Command line interface for gsbt."""

from .dispatcher import main

__all__ = ["main"]
