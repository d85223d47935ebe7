"""Docstor: multi-tenant documentation core with revision history and access control."""

__version__ = "0.1.0"
