"""Entry point for ``python -m quickfix``."""

from quickfix.cli import main

if __name__ == "__main__":
    main()
