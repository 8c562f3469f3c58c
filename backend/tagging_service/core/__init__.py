"""Core configuration, errors and auth."""
