"""tasklog: log what you work on, from the terminal."""

__version__ = "0.3.0"
