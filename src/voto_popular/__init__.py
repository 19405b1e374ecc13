"""Voto Popular: multi-tenant civic participation API."""

__version__ = "0.1.0"
