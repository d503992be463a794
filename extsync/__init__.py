"""extsync - keep installed editor extensions in sync with a desired list."""

__version__ = "0.1.0"
