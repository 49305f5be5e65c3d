"""CoCreate - voice-preserving LinkedIn post generation."""

__version__ = "0.1.0"
