"""Secure completion gateway for collaborative AI canvases."""

__version__ = "0.1.0"
