"""Offline firmware cache and catalog mirror for the UniFi Network controller."""

__version__ = "1.0.0"
