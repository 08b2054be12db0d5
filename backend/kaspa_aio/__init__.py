"""Shared installation-state core for the Kaspa All-in-One wizard and dashboard."""

__version__ = "0.10.0"
