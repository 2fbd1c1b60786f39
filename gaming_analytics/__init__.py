"""Gaming revenue and player analytics engine."""

__version__ = "0.1.0"
