"""Command-line interface."""

from treasury.cli.main import cli

__all__ = ["cli"]
