"""Proposal template resolution and variable binding engine."""

__version__ = "0.1.0"
