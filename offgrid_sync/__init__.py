"""Offline-first data vault with sync and conflict reconciliation."""

__version__ = "0.1.0"
