"""Pricepulse — scheduled refresh of externally-sourced financial data."""

__version__ = "0.1.0"
