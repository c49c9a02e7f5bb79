"""git-ownership: how much of a repository's current code is yours."""

__version__ = "0.1.0"
