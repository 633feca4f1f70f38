"""Run the client with ``python -m lessondeck.cli``."""

from .client import cli

if __name__ == '__main__':
    cli()
