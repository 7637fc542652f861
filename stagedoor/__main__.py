"""Entry point for the Stagedoor CLI.

This module serves as the main entry point when running the stagedoor package directly.
"""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
