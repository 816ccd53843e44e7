"""Main entry point when executing foliorelay as a package.

This allows running the package using python -m foliorelay.
"""

from foliorelay.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
