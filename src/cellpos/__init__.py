"""Cell-id position provider."""

__version__ = "0.1.0"
