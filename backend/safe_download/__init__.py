"""Signed-download verification engine."""

__version__ = "0.1.0"
