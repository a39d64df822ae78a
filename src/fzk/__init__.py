"""fzk - fuzzy find and kill processes."""

__version__ = "0.1.0"
