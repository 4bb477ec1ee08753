"""Barnehage Tracker - availability tracking for Oslo kindergarten spots."""

__version__ = "0.1.0"
