"""Command-line interface for promptstate."""

from promptstate.interface.cli.core.main import cli_entrypoint, main

__all__ = ["cli_entrypoint", "main"]
