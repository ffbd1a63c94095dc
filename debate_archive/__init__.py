"""Community-moderated archive of debate clip citations."""

__version__ = "0.1.0"
