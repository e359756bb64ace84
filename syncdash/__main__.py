"""Main entry point when executing syncdash as a package.

This allows running the package using python -m syncdash.
"""

from syncdash.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
