"""Web-to-App Builder backend."""

__version__ = "0.1.0"
