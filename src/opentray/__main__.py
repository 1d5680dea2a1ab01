"""opentray main entry point.

Allows running the command line interface with:
    python -m opentray
"""

from opentray.cli import cli


if __name__ == "__main__":
    cli()
