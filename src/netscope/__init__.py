"""Interactive network discovery and phased host analysis."""

__version__ = "0.3.0"
