"""Copilot Usage Export -- Microsoft 365 Copilot usage reports to CSV."""

__version__ = "0.1.0"
