"""Static performance analysis for React codebases."""

__version__ = "0.1.0"
