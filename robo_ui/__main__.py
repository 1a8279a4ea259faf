"""Entry point for RoboUI.

Usage:
    python -m robo_ui run NAME        Run a saved job (Ctrl-C cancels)
    python -m robo_ui list            List saved jobs
    python -m robo_ui --help          Everything else
"""

import sys


def main() -> None:
    """Run the console front-end and exit with its status."""
    from robo_ui.cli import main as cli_main

    sys.exit(cli_main())


if __name__ == "__main__":
    main()
