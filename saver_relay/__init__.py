"""Relay between the saver browser extension and its controller panel."""

__version__ = "1.0.0"
