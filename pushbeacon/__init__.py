"""Web push subscription registration and delivery tracking."""

__version__ = "0.1.0"
