#!/usr/bin/env python
"""
PROJUDI Consultation Entry Point.

Main entry point for the PROJUDI consultation CLI.

Usage:
    python -m projudi_scraper.projudi_main validar 00026885420248160136
    python -m projudi_scraper.projudi_main consultar 0002688-54.2024.8.16.0136
    python -m projudi_scraper.projudi_main config --show
"""
import sys


def main() -> int:
    """Main entry point for PROJUDI CLI."""
    from projudi_scraper.infrastructure.cli.projudi_cli import main as cli_main
    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
