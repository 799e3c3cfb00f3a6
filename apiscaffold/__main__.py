# File: apiscaffold/__main__.py
"""
apiscaffold — Module entry point.

Allows running the scaffolder directly via::

    python -m apiscaffold Student V1

This module simply delegates to the CLI entry point defined in ``apiscaffold.cli``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from apiscaffold.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
