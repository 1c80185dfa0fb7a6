"""Main entry point for running splurge-assert-migrate as a module.

This allows users to run the CLI with:
    python -m splurge_assert_migrate [command] [options]
"""

from .cli import main

if __name__ == "__main__":
    main()
