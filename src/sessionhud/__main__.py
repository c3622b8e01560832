"""CLI entry point for session-hud."""

import sys


def main() -> int:
    """Main entry point for the sessionhud CLI."""
    from sessionhud.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
