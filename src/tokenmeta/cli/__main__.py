"""CLI entry point for tokenmeta.cli module.

Enables execution via: python -m tokenmeta.cli
"""

from tokenmeta.cli.resolve_tokens import main

if __name__ == "__main__":
    raise SystemExit(main())
