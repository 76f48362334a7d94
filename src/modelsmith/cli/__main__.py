"""CLI entry point for modelsmith.cli module.

Enables execution via: python -m modelsmith.cli
"""

from modelsmith.cli.generate import main

if __name__ == "__main__":
    main()
