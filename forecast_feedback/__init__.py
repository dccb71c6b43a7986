"""Forecast accuracy feedback service with cached AI summaries."""

__version__ = "1.0.0"
