"""Scheduled processing of pending GitHub Project status changes."""

__version__ = "1.0.0"
