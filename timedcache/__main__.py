"""Main entry point when executing timedcache as a package.

This allows running the package using python -m timedcache.
"""

from timedcache.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
