"""Command line client for lessondeck."""

from .client import cli

__all__ = ["cli", "main"]


def main():
    """Main entry point for the lessondeck CLI."""
    cli()
