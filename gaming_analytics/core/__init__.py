"""Core configuration, caching and audit utilities."""
