"""Data files bundled with the package."""
