"""Strategist: adaptive agent routing, loop detection and integrity ledgers."""

__version__ = "0.1.0"
