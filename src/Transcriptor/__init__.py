"""Transcriptor: crash-safe acquisition and caching of YouTube transcripts."""

__version__ = "1.0.0"

__all__ = ["__version__"]
