"""Course events and submissions API."""

__version__ = "0.1.0"
