"""Versioned posts with an auditable publish log, synchronized to GitHub."""

__version__ = "0.1.0"
