"""Behavioral interview coach: HTTP backend and realtime voice client."""

__version__ = "0.1.0"
