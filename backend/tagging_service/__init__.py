"""Hierarchical tag catalog and tagging service for practice-management apps."""

__version__ = "0.1.0"
