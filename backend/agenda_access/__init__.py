"""Subscription access evaluation for the AgendaHof clinic backend."""

__version__ = "1.0.0"
